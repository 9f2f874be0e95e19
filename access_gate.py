"""
Access gate: every request must carry a valid bearer token unless its path is
on the public allow-list. The decoded identity is attached to
`request.state.identity` for the handlers downstream.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config import API_PREFIX, UPLOAD_URL_PATH
from security import InvalidToken, decode_access_token

logger = logging.getLogger(__name__)

ANY_METHOD = None
READ_METHODS = ("GET", "HEAD", "OPTIONS")


@dataclass(frozen=True)
class Identity:
    user_id: str
    is_admin: bool = False


@dataclass(frozen=True)
class PublicPath:
    pattern: re.Pattern
    methods: Optional[Tuple[str, ...]] = ANY_METHOD

    def matches(self, method: str, path: str) -> bool:
        if self.methods is not None and method.upper() not in self.methods:
            return False
        return self.pattern.fullmatch(path) is not None


def exact(path: str, methods=ANY_METHOD) -> PublicPath:
    return PublicPath(re.compile(re.escape(path)), methods)


def prefix(path: str, methods=ANY_METHOD) -> PublicPath:
    """`path` itself and anything below it."""
    return PublicPath(re.compile(re.escape(path) + r"(/.*)?"), methods)


def default_public_paths(api_prefix: str = API_PREFIX) -> Sequence[PublicPath]:
    return (
        exact("/"),
        exact("/docs"),
        exact("/openapi.json"),
        prefix(UPLOAD_URL_PATH),
        prefix(f"{api_prefix}/products", READ_METHODS),
        prefix(f"{api_prefix}/categories", READ_METHODS),
        exact(f"{api_prefix}/users/login"),
        exact(f"{api_prefix}/users/register"),
    )


def is_public(method: str, path: str, public_paths: Iterable[PublicPath]) -> bool:
    if method.upper() == "OPTIONS":
        return True
    return any(p.matches(method, path) for p in public_paths)


def identity_from_header(authorization: Optional[str]) -> Identity:
    if not authorization:
        raise InvalidToken("missing authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise InvalidToken("malformed authorization header")
    payload = decode_access_token(token.strip())
    return Identity(user_id=str(payload["sub"]), is_admin=bool(payload.get("is_admin", False)))


class AccessGateMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, public_paths: Optional[Sequence[PublicPath]] = None):
        super().__init__(app)
        self.public_paths = public_paths if public_paths is not None else default_public_paths()

    async def dispatch(self, request: Request, call_next):
        request.state.identity = None
        if not is_public(request.method, request.url.path, self.public_paths):
            try:
                request.state.identity = identity_from_header(request.headers.get("authorization"))
            except InvalidToken as exc:
                logger.debug("Rejected %s %s: %s", request.method, request.url.path, exc)
                return JSONResponse(
                    status_code=401,
                    content={"success": False, "message": "The user is not authorized"},
                    headers={"WWW-Authenticate": "Bearer"},
                )
        return await call_next(request)


# Dependencies for handlers behind the gate

def get_identity(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise HTTPException(status_code=401, detail="The user is not authorized")
    return identity


def require_admin(request: Request) -> Identity:
    identity = get_identity(request)
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return identity
