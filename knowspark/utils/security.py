from __future__ import annotations

from fastapi import Header, HTTPException, status
from typing import Optional

from knowspark.config import settings


LOCAL_USER_ID = "local"


async def verify_api_key(authorization: Optional[str] = Header(default=None)) -> None:
	if not settings.api_key:
		return
	if not authorization or not authorization.startswith("Bearer "):
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")
	key = authorization.removeprefix("Bearer ")
	if key != settings.api_key:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


async def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
	"""Identity resolved by the upstream auth/session service.

	Requests without a user header fall back to the single local user, which is
	how the app behaves before anyone signs in.
	"""
	user_id = (x_user_id or "").strip()
	return user_id or LOCAL_USER_ID
