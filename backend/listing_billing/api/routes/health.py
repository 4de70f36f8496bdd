"""
Health check route (no authentication, no database access).
"""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Liveness probe for the load balancer."""
    return {"status": "ok"}
