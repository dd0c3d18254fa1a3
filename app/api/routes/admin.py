import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_plan_generation_service
from app.api.models import SweepStaleResponse
from app.core.security import get_current_admin_user
from app.generation.models import PlanUser
from app.generation.orchestrator import PlanGenerationOrchestrator

router = APIRouter()
logger = logging.getLogger("app.api.routes.admin")


@router.post("/sweep-stale", response_model=SweepStaleResponse)
async def sweep_stale_generations(  # noqa: B008
  current_user: PlanUser = Depends(get_current_admin_user),  # noqa: B008
  service: PlanGenerationOrchestrator = Depends(get_plan_generation_service),  # noqa: B008
) -> SweepStaleResponse:
  """Expire every generating record that stopped advancing."""
  expired = await service.sweep_stale()
  logger.info("Admin %s swept %d stale generation record(s)", current_user.id, len(expired))
  return SweepStaleResponse(reset=len(expired))
