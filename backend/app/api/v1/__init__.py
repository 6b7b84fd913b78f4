"""API v1 router and endpoint organization."""

from fastapi import APIRouter

from app.api.v1 import ai_clusters

router = APIRouter(prefix="/api/v1", tags=["v1"])

router.include_router(ai_clusters.router, prefix="/ai-clusters", tags=["AI Clusters"])
