"""System API routes: health check with ingestion status."""

from fastapi import APIRouter, Depends

from sei_prices.routers.dependencies import get_orchestrator
from sei_prices.services.ingestion_orchestrator import IngestionOrchestrator

router = APIRouter(tags=["system"])


@router.get("/health")
async def health(orchestrator: IngestionOrchestrator = Depends(get_orchestrator)):
    return {"status": "ok", "ingestion": orchestrator.status}
