from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional, Sequence

import jwt
from jwt import InvalidTokenError

Role = Literal["super_admin", "admin", "user"]
ROLES: tuple[Role, ...] = ("super_admin", "admin", "user")


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as asserted by the identity provider's token."""

    user_id: str
    company_id: Optional[int]
    name: str
    email: str
    role: Role = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in ("admin", "super_admin")


def create_access_token(
    *,
    user_id: str,
    secret: str,
    company_id: int | None = None,
    name: str = "",
    email: str = "",
    role: Role = "user",
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=30))
    payload = {
        "sub": str(user_id),
        "company_id": company_id,
        "name": name,
        "email": email,
        "role": role,
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> Identity:
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    sub = payload.get("sub")
    if not sub:
        raise ValueError("token missing sub")

    role = payload.get("role", "user")
    if role not in ROLES:
        raise ValueError(f"unknown role {role!r}")

    company_id = payload.get("company_id")
    if company_id is not None:
        try:
            company_id = int(company_id)
        except (TypeError, ValueError) as exc:
            raise ValueError("token company_id is not an integer") from exc

    return Identity(
        user_id=str(sub),
        company_id=company_id,
        name=str(payload.get("name") or ""),
        email=str(payload.get("email") or ""),
        role=role,
    )
