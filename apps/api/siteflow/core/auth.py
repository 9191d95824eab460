from __future__ import annotations

import logging
from dataclasses import dataclass, field

from jose import JWTError, jwt
from starlette.requests import Request

from siteflow.context import set_actor_id
from siteflow.core.config import get_settings


logger = logging.getLogger("siteflow.auth")

ANONYMOUS = "anonymous"


@dataclass
class AuthUser:
    sub: str
    roles: list[str] = field(default_factory=list)

    @property
    def is_anonymous(self) -> bool:
        return self.sub == ANONYMOUS


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer ") :].strip()
    return ""


async def get_current_user(request: Request) -> AuthUser:
    """Verify an optional bearer token; tokens are issued elsewhere.

    The subject becomes the actor id used on published events.
    """
    token = _bearer_token(request)
    if not token:
        return AuthUser(sub=ANONYMOUS, roles=["guest"])

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        logger.info("auth.token_rejected", extra={"path": request.url.path})
        return AuthUser(sub=ANONYMOUS, roles=["guest"])

    subject = str(payload.get("sub") or ANONYMOUS)
    roles = payload.get("roles", ["user"])
    if not isinstance(roles, list):
        roles = ["user"]
    set_actor_id(subject)
    return AuthUser(sub=subject, roles=[str(role) for role in roles])
