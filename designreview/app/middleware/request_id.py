"""Request correlation IDs.

Each request carries an ID that appears in log lines, error bodies and the
``X-Request-ID`` response header. A well-formed ID sent by the client or an
upstream proxy is reused; otherwise a UUID4 is generated.
"""

import re
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

MAX_REQUEST_ID_LENGTH = 128

_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]+$")


def _accept_request_id(value: str) -> bool:
    return 0 < len(value) <= MAX_REQUEST_ID_LENGTH and bool(_VALID_REQUEST_ID.match(value))


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Store the request ID on ``request.state`` and echo it in the response."""

    def __init__(self, app, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = request.headers.get(self.header_name, "").strip()
        request_id = incoming if _accept_request_id(incoming) else str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[self.header_name] = request_id
        return response


def get_request_id(request: Request) -> str:
    """Return the current request ID, or ``"unknown"`` outside the middleware."""
    return getattr(request.state, "request_id", "unknown")
