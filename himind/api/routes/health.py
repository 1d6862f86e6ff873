from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from himind.api.dependencies import get_orchestrator
from himind.core.database import is_supabase_configured
from himind.features.processing import ProcessingOrchestrator

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(orchestrator: ProcessingOrchestrator = Depends(get_orchestrator)):
    """Pipeline health for monitoring; 503 when unhealthy."""
    health = await orchestrator.get_health()
    body = {
        **health.model_dump(),
        "store": "supabase" if is_supabase_configured() else "memory",
    }
    return JSONResponse(status_code=503 if health.status == "unhealthy" else 200, content=body)
