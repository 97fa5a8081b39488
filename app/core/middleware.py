"""ASGI middleware bridging FastAPI and the request pipeline.

The middleware converts each incoming HTTP request into a ``RequestContext``,
runs the pipeline with the rest of the ASGI app (router, endpoints) as its
terminal endpoint, and sends the finished context as the response.

The app's response messages are captured into the context rather than sent,
so stages can inspect and rewrite the response, and an exception raised by
an endpoint propagates straight into the pipeline's fault isolation stage.

Usage:
    app.add_middleware(PipelineMiddleware, pipeline=pipeline)
"""

from __future__ import annotations

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.pipeline.context import Endpoint, RequestContext
from app.pipeline.runner import Pipeline

_SKIPPED_HEADERS = ("content-length", "content-type")


def context_from_request(request: Request) -> RequestContext:
    """Build a pipeline context from a Starlette request."""

    return RequestContext.create(
        request.method,
        request.url.path,
        dict(request.headers),
        client_host=request.client.host if request.client else None,
        request=request,
    )


def response_from_context(ctx: RequestContext) -> Response:
    """Render the finished context as a Starlette response."""

    response = Response(
        content=bytes(ctx.body),
        status_code=ctx.status_code,
        media_type=ctx.media_type,
    )
    # Raw pairs keep repeated headers such as set-cookie
    response.raw_headers.extend(ctx.response_headers.raw)
    return response


class PipelineMiddleware:
    """Run every HTTP request through ``pipeline``; other scopes pass through."""

    def __init__(self, app: ASGIApp, *, pipeline: Pipeline) -> None:
        self.app = app
        self.pipeline = pipeline

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        ctx = context_from_request(Request(scope, receive))
        await self.pipeline.handle(ctx, self._endpoint(scope, receive))
        await response_from_context(ctx)(scope, receive, send)

    def _endpoint(self, scope: Scope, receive: Receive) -> Endpoint:
        """Wrap the downstream app as the pipeline's terminal endpoint."""

        async def endpoint(ctx: RequestContext) -> None:
            async def capture(message: Message) -> None:
                if message["type"] == "http.response.start":
                    headers = Headers(raw=message.get("headers", []))
                    ctx.status_code = message["status"]
                    ctx.media_type = headers.get("content-type")
                    for name, value in headers.items():
                        if name not in _SKIPPED_HEADERS:
                            ctx.response_headers.append(name, value)
                elif message["type"] == "http.response.body":
                    ctx.body.extend(message.get("body", b""))

            await self.app(scope, receive, capture)

        return endpoint
