from contextvars import ContextVar, Token
from typing import Optional

request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_context.get()


def set_request_id(request_id: str) -> Token:
    """Set the request ID in context and return the token needed to restore it."""
    return request_id_context.set(request_id)


def reset_request_id(token: Token) -> None:
    """Restore the request ID that was active before set_request_id."""
    request_id_context.reset(token)
