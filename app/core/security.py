from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.database import get_db
from app.core.firebase import verify_id_token
from app.generation.models import PlanUser
from app.schema.sql import User

security_scheme = HTTPBearer()


async def get_current_user(token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)], db: AsyncSession = Depends(get_db)) -> User:  # noqa: B008
  """Verify the Firebase ID token and load the matching user row."""
  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  if not decoded_claims:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})

  firebase_uid = decoded_claims.get("uid")
  if not firebase_uid:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")

  user = (await db.execute(select(User).where(User.firebase_uid == firebase_uid))).scalar_one_or_none()
  if user is None:
    # Users are created by the account service; this API never provisions them.
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> PlanUser:  # noqa: B008
  """Block deactivated accounts and project the row to the generation core's view."""
  if not current_user.is_active:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
  return PlanUser(id=current_user.id, email=current_user.email, full_name=current_user.full_name, is_admin=current_user.is_admin, is_trainer=current_user.is_trainer)


async def get_current_admin_user(current_user: PlanUser = Depends(get_current_active_user)) -> PlanUser:  # noqa: B008
  """Require the admin flag for operational routes."""
  if not current_user.is_admin:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
  return current_user
