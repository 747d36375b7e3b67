"""
Client identity.

Authentication happens upstream (gateway); it forwards the verified
identity as headers. The booking core only receives an explicit
ClientSession, or None when nobody is signed in.

Headers:
  X-Client-Id     required for a session
  X-Client-Email  optional
  X-Client-Role   "owner" grants the owner capability
"""

from dataclasses import dataclass

from fastapi import Request

from ..errors import Unauthenticated

OWNER_ROLE = "owner"


@dataclass(frozen=True)
class ClientSession:
    client_id: str
    email: str | None = None
    is_owner: bool = False


def get_current_session(request: Request) -> ClientSession | None:
    """FastAPI dependency: session from gateway headers, or None."""
    client_id = (request.headers.get("X-Client-Id") or "").strip()
    if not client_id:
        return None

    role = (request.headers.get("X-Client-Role") or "").strip().lower()
    return ClientSession(
        client_id=client_id,
        email=request.headers.get("X-Client-Email") or None,
        is_owner=role == OWNER_ROLE,
    )


def require_session(session: ClientSession | None) -> ClientSession:
    if session is None:
        raise Unauthenticated("Sign in to book, cancel or reschedule")
    return session
