"""
V1 API router aggregator — wires all endpoint modules together.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from app.api.v1.endpoints import auth, punches

api_router = APIRouter()

# Auth (login, refresh, user accounts)
api_router.include_router(auth.router)

# Punching, reports, metrics, exports
api_router.include_router(punches.router)


@api_router.get("/health", tags=["health"])
async def health() -> dict:
    """Public liveness check."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
