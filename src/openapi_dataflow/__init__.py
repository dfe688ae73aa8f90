"""OpenAPI-driven dataflow web service.

Routes map URL prefixes to flows; each route carries an OpenAPI document whose
``x-object-alias`` / ``x-attribute-alias`` / ``x-placeholder`` markers decide
how backend rows are shaped into the HTTP response.
"""

from __future__ import annotations

__all__: list[str] = ["__version__"]

__version__ = "0.1.0"
