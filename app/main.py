from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import admin, plan_generation
from app.config import get_settings
from app.core.exceptions import global_exception_handler, http_exception_handler, plan_generation_exception_handler, request_validation_exception_handler
from app.core.json import MsgspecJSONResponse
from app.core.lifespan import lifespan
from app.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from app.generation.errors import PlanGenerationError

settings = get_settings()

app = FastAPI(title="FitCoach Plan Generation", default_response_class=MsgspecJSONResponse, lifespan=lifespan, docs_url="/docs" if settings.debug else None, redoc_url=None)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(PlanGenerationError, plan_generation_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(plan_generation.router, prefix="/v1/plan-generation", tags=["plan-generation"])
app.include_router(admin.router, prefix="/v1/plan-generation/admin", tags=["admin"])
