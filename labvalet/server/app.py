"""FastAPI app creation, global state, and helper functions."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from ..app import LabValet

logger = logging.getLogger(__name__)

_config_path = os.getenv("LABVALET_CONFIG", "config.yaml")

_app: Optional[LabValet] = None


def _try_load_app():
    """Attempt to load LabValet from config. Silent if config missing."""
    global _app
    try:
        if os.path.exists(_config_path):
            _app = LabValet(_config_path)
            logger.info(f"LabValet loaded from {_config_path}")
        else:
            logger.warning(f"Config not found: {_config_path}")
    except Exception as e:
        logger.warning(f"Failed to load config: {e}")
        _app = None


def require_app() -> LabValet:
    """Raise 503 if app is not configured. Lazy-loads on first call."""
    global _app
    if _app is None:
        _try_load_app()
    if _app is None:
        raise HTTPException(503, f"Not configured. Provide a config file at {_config_path}.")
    return _app


def set_app(new_app: Optional[LabValet]):
    """Set the global _app instance (tests and embedding)."""
    global _app
    _app = new_app


def get_app_instance() -> Optional[LabValet]:
    """Get the current global _app instance (may be None)."""
    return _app


# ── Optional API key authentication ──

_API_KEY = os.getenv("LABVALET_API_KEY")
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    request: Request,
    api_key_header_value: Optional[str] = Security(_api_key_header),
):
    """Verify API key from Authorization: Bearer <key> or X-API-Key header.

    When LABVALET_API_KEY is not set, all requests are allowed (dev mode).
    """
    if _API_KEY is None:
        return None

    if api_key_header_value and api_key_header_value == _API_KEY:
        return api_key_header_value

    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]
        if token == _API_KEY:
            return token

    raise HTTPException(401, "Invalid or missing API key")


@asynccontextmanager
async def _lifespan(_api: FastAPI):
    yield
    if _app is not None:
        await _app.shutdown()


def _create_api() -> FastAPI:
    """Create and configure the FastAPI app with routes."""
    _api = FastAPI(title="LabValet", version="0.1.0", lifespan=_lifespan)

    if _API_KEY is None:
        logger.warning(
            "LABVALET_API_KEY is not set. API endpoints are unauthenticated. "
            "Set LABVALET_API_KEY environment variable to enable authentication."
        )

    from .routes import register_routes
    register_routes(_api)
    return _api


api = _create_api()
