"""
Health Check Endpoints.

Basic liveness and version endpoints used for monitoring.
"""

from fastapi import APIRouter

from ratchet_ai import __version__
from ratchet_ai.server.deps import ServicesDep

router = APIRouter()


@router.get("/health", summary="Health Check", response_description="Status object.")
async def health_check(services: ServicesDep):
    """Report liveness and how many SSE observers are connected."""
    return {"status": "ok", "sse_clients": services.hub.client_count if services.hub is not None else 0}


@router.get("/version", summary="Get Version", response_description="Version object.")
async def version():
    return {"version": __version__, "schema_version": "v1"}
