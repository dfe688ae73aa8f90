"""HTTP surface of the dataflow service.

The FastAPI application lives in :mod:`openapi_dataflow.api.app`; it is not
imported here so that loading the package does not build the application.
"""

from __future__ import annotations

__all__: list[str] = []
