"""
Request context using contextvars for async-safety.

Holds what deeper layers (audit, approval signals) need to know about the
request that caused a write, without threading it through every call.

Usage:
    # In middleware
    with request_context(user=request.user, ip_address=..., path=...):
        response = get_response(request)

    # In application code
    ctx = get_request_context()

    # While approval actions write back to a record
    with approval_triggers_suppressed():
        record.save()
"""
from contextlib import contextmanager
from contextvars import ContextVar
from typing import NamedTuple, Optional


class RequestContext(NamedTuple):
    """Immutable per-request metadata."""

    user: object
    ip_address: Optional[str]
    user_agent: str
    path: str


_current_request: ContextVar[Optional[RequestContext]] = ContextVar(
    "current_request",
    default=None,
)

_triggers_suppressed: ContextVar[bool] = ContextVar(
    "approval_triggers_suppressed",
    default=False,
)


def get_request_context() -> Optional[RequestContext]:
    """Return the current request context, or None outside a request (tasks, shell)."""
    return _current_request.get()


def get_current_user():
    ctx = _current_request.get()
    if ctx is None:
        return None
    user = ctx.user
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return user


@contextmanager
def request_context(user=None, ip_address=None, user_agent="", path=""):
    token = _current_request.set(
        RequestContext(user=user, ip_address=ip_address, user_agent=user_agent, path=path)
    )
    try:
        yield
    finally:
        _current_request.reset(token)


def approval_triggers_active() -> bool:
    return not _triggers_suppressed.get()


@contextmanager
def approval_triggers_suppressed():
    """Saves inside this block do not open on-save approval requests."""
    token = _triggers_suppressed.set(True)
    try:
        yield
    finally:
        _triggers_suppressed.reset(token)


def bind_user(user) -> None:
    """Attach the authenticated user once DRF has resolved it (JWT auth runs in the view)."""
    ctx = _current_request.get()
    if ctx is not None and ctx.user is not user:
        _current_request.set(ctx._replace(user=user))
