import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from app.ai.pipeline.contracts import PlanPreferences
from app.api.deps import get_plan_generation_service
from app.api.models import ContinueGenerationResponse, EligibilityResponse, GenerationStatusResponse, PlanResponse, ResetResponse, StartGenerationResponse
from app.config import Settings, get_settings
from app.core.security import get_current_active_user
from app.generation.models import PlanUser
from app.generation.orchestrator import PlanGenerationOrchestrator

router = APIRouter()
logger = logging.getLogger("app.api.routes.plan_generation")


def _schedule_auto_advance(background_tasks: BackgroundTasks, settings: Settings, service: PlanGenerationOrchestrator, user: PlanUser) -> None:
  # Off by default; callers then drive the pipeline with /continue.
  if settings.generation_auto_advance:
    background_tasks.add_task(service.advance_until_done, user)


@router.get("/eligibility", response_model=EligibilityResponse)
async def get_eligibility(  # noqa: B008
  current_user: PlanUser = Depends(get_current_active_user),  # noqa: B008
  service: PlanGenerationOrchestrator = Depends(get_plan_generation_service),  # noqa: B008
) -> EligibilityResponse:
  """Report whether the caller may start a new plan."""
  return EligibilityResponse.from_decision(await service.check_eligibility(current_user))


@router.post("/start", response_model=StartGenerationResponse)
async def start_generation(  # noqa: B008
  preferences: PlanPreferences,
  background_tasks: BackgroundTasks,
  settings: Settings = Depends(get_settings),  # noqa: B008
  current_user: PlanUser = Depends(get_current_active_user),  # noqa: B008
  service: PlanGenerationOrchestrator = Depends(get_plan_generation_service),  # noqa: B008
) -> StartGenerationResponse:
  """Create a fresh generation record at the first step."""
  progress = await service.start(current_user, preferences)
  _schedule_auto_advance(background_tasks, settings, service, current_user)
  return StartGenerationResponse(step=int(progress.step), message=progress.message)


@router.post("/continue", response_model=ContinueGenerationResponse)
async def continue_generation(  # noqa: B008
  background_tasks: BackgroundTasks,
  settings: Settings = Depends(get_settings),  # noqa: B008
  current_user: PlanUser = Depends(get_current_active_user),  # noqa: B008
  service: PlanGenerationOrchestrator = Depends(get_plan_generation_service),  # noqa: B008
) -> ContinueGenerationResponse:
  """Run the current step and advance the record."""
  progress = await service.continue_generation(current_user)
  if progress.is_generating:
    _schedule_auto_advance(background_tasks, settings, service, current_user)
  return ContinueGenerationResponse.from_progress(progress)


@router.get("/status", response_model=GenerationStatusResponse)
async def get_status(  # noqa: B008
  current_user: PlanUser = Depends(get_current_active_user),  # noqa: B008
  service: PlanGenerationOrchestrator = Depends(get_plan_generation_service),  # noqa: B008
) -> GenerationStatusResponse:
  return GenerationStatusResponse.from_status(await service.status(current_user))


@router.get("/result", response_model=PlanResponse)
async def get_result(  # noqa: B008
  current_user: PlanUser = Depends(get_current_active_user),  # noqa: B008
  service: PlanGenerationOrchestrator = Depends(get_plan_generation_service),  # noqa: B008
) -> PlanResponse:
  """Return the plan produced by the completed generation."""
  return PlanResponse.from_record(await service.result(current_user))


@router.post("/reset", response_model=ResetResponse)
async def reset_generation(  # noqa: B008
  current_user: PlanUser = Depends(get_current_active_user),  # noqa: B008
  service: PlanGenerationOrchestrator = Depends(get_plan_generation_service),  # noqa: B008
) -> ResetResponse:
  """Discard the caller's generation record; always succeeds."""
  await service.reset(current_user)
  return ResetResponse(ok=True)
