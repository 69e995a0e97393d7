from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.organization import User
from app.services.common import coerce_uuid
from app.services.workflow import Workflow


def get_workflow(request: Request) -> Workflow:
    return request.app.state.workflow


def get_current_user(
    x_user_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the sender from ``X-User-Id``, set by the upstream auth layer."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        user_id = coerce_uuid(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Unauthorized") from exc
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


__all__ = [
    "client_ip",
    "get_current_user",
    "get_db",
    "get_workflow",
    "user_agent",
]
