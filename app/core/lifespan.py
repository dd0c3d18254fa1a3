import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import dispose_engine
from app.core.firebase import initialize_firebase
from app.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and Firebase, expire abandoned generations, dispose the engine on shutdown."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  _initialize_logging(settings)
  logger.info("Startup complete - logging verified.")
  initialize_firebase()

  if settings.startup_stale_sweep and settings.pg_dsn:
    await _sweep_stale_generations(logger=logger, stale_after_seconds=settings.stale_record_seconds)

  yield

  await dispose_engine()


async def _sweep_stale_generations(*, logger: logging.Logger, stale_after_seconds: int) -> None:
  """Fail records left generating by callers that never came back."""
  from app.generation.reconciler import StaleRecordWatchdog
  from app.storage.postgres_generation_repo import PostgresGenerationRepository

  try:
    expired = await StaleRecordWatchdog(PostgresGenerationRepository(), stale_after_seconds=stale_after_seconds).sweep()
  except (SQLAlchemyError, OSError, RuntimeError):
    # The service still starts; requests apply the watchdog lazily.
    logger.warning("Startup stale-generation sweep failed.", exc_info=True)
    return
  logger.info("Startup stale-generation sweep expired %d record(s)", len(expired))
