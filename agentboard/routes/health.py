#  AgentBoard - Health Route
#
#  Liveness probe. Public and dependency-free.
#
#  Depends on: models/schemas.py
#  Used by:    app.py

from fastapi import APIRouter

from agentboard.models.schemas import HealthOut

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> HealthOut:
    return HealthOut()
