from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

import jwt
from jwt import InvalidTokenError

ACCESS_TOKEN_TTL = timedelta(minutes=30)
DEFAULT_ROLE = "requester"
_REQUIRED_CLAIMS = ["sub", "exp"]


def _actor_claims(actor_id: int, role: str, ttl: timedelta) -> dict[str, Any]:
    issued = datetime.now(timezone.utc)
    return {"sub": str(actor_id), "role": role, "iat": issued, "exp": issued + ttl}


def create_access_token(
    *,
    actor_id: int,
    secret: str,
    role: str = DEFAULT_ROLE,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    claims = _actor_claims(actor_id, role, expires_delta or ACCESS_TOKEN_TTL)
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_actor_claims(token: str, *, secret: str, algorithms: Sequence[str]) -> tuple[int, str]:
    """Actor id from ``sub`` and the ``role`` claim. Every unusable token surfaces as ValueError."""
    try:
        claims = jwt.decode(token, secret, algorithms=list(algorithms), options={"require": _REQUIRED_CLAIMS})
    except InvalidTokenError as exc:
        raise ValueError(f"rejected token: {exc}") from exc

    subject = str(claims["sub"])
    if not subject.isdigit() or int(subject) < 1:
        raise ValueError(f"token subject {subject!r} is not an actor id")
    role = claims.get("role", DEFAULT_ROLE)
    if not isinstance(role, str):
        raise ValueError("token role must be a string")
    return int(subject), role


def decode_access_token(token: str, *, secret: str, algorithms: Sequence[str]) -> int:
    actor_id, _ = decode_actor_claims(token, secret=secret, algorithms=algorithms)
    return actor_id


def parse_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
