"""Request id propagation and total-duration reporting.

- Accepts an incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars so every log line of the request carries it
- Echoes the id and the elapsed time in the response headers
- Restores the previous context value afterwards, also on failure
"""

from __future__ import annotations

import time
import uuid

from app.core.logging import request_id_scope
from app.pipeline.context import Next, RequestContext

DURATION_HEADER = "X-Request-Duration-ms"


class CorrelationStage:
    """Outermost stage: tags the request and times the whole pipeline."""

    def __init__(self, *, header_name: str = "X-Request-ID") -> None:
        self.header_name = header_name

    async def __call__(self, ctx: RequestContext, call_next: Next) -> None:
        """Run downstream stages inside a request-id scope.

        Side Effects:
            - Sets request_id in contextvars (accessible via get_request_id())
            - Adds the request id header and X-Request-Duration-ms to the response

        Example:
            >>> # Headers: {"X-Request-ID": "req-abc-123"}
            >>> # Response includes:
            >>> # {"X-Request-ID": "req-abc-123", "X-Request-Duration-ms": "45.67"}
        """

        request_id = ctx.header(self.header_name) or str(uuid.uuid4())
        ctx.state["request_id"] = request_id
        start = time.perf_counter()
        with request_id_scope(request_id):
            await call_next(ctx)

        duration_ms = (time.perf_counter() - start) * 1000
        ctx.response_headers[self.header_name] = request_id
        ctx.response_headers.setdefault(DURATION_HEADER, f"{duration_ms:.2f}")
