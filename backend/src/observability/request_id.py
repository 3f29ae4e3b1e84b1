"""Request ID management for request correlation.

The id lives in a ContextVar so it follows a webhook request through
`run_in_threadpool` into the synchronous service code.
"""

import uuid
from contextvars import ContextVar, Token
from typing import Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

NO_REQUEST_ID = "no-request-id"


def generate_request_id() -> str:
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Current request ID, or "no-request-id" outside of a request."""
    return request_id_var.get() or NO_REQUEST_ID


def set_request_id(request_id: str) -> Token:
    """Bind a request ID to the current context.

    Returns:
        Token: Pass to `reset_request_id` when the request is done
    """
    return request_id_var.set(request_id)


def reset_request_id(token: Token) -> None:
    request_id_var.reset(token)
