"""FastAPI routers.

Each route module defines a module-level ``router`` (``fastapi.APIRouter``);
registration happens in :mod:`openapi_dataflow.api.app`.
"""

from __future__ import annotations

__all__: list[str] = []
