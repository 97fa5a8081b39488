"""RequestContext: per-request state shared by pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from starlette.datastructures import MutableHeaders


@dataclass
class RequestContext:
    """One in-flight request/response pair.

    Stages read the request side (method, path, headers, client host) and
    write the response side (status, body, headers, media type). Created by
    the host bridge on arrival and discarded once the response is sent.

    Attributes:
        method: HTTP method.
        path: Request path without query string.
        headers: Request headers, stored with lower-cased names.
        client_host: Remote address, if the server reported one.
        status_code: Status of the response being built.
        body: Response body buffer.
        response_headers: Headers to send with the response. Names are
            case-insensitive and a name may repeat (e.g. set-cookie).
        media_type: Response content type.
        state: Scratch space for stages.
        request: Host request object, used by the terminal endpoint.
    """

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    client_host: str | None = None
    status_code: int = 200
    body: bytearray = field(default_factory=bytearray)
    response_headers: MutableHeaders = field(default_factory=MutableHeaders)
    media_type: str | None = None
    state: dict[str, Any] = field(default_factory=dict)
    request: Any = None

    @classmethod
    def create(
        cls,
        method: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> "RequestContext":
        """Build a context, normalizing header names to lower case."""

        normalized = {k.lower(): v for k, v in (headers or {}).items()}
        return cls(method=method.upper(), path=path, headers=normalized, **kwargs)

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive request header lookup."""

        return self.headers.get(name.lower(), default)

    def write(
        self,
        status_code: int,
        content: str | bytes,
        *,
        media_type: str = "text/plain; charset=utf-8",
    ) -> None:
        """Replace the response status and body."""

        self.status_code = status_code
        self.media_type = media_type
        data = content.encode("utf-8") if isinstance(content, str) else content
        self.body = bytearray(data)

    def reset_response(self) -> None:
        """Discard anything written to the response so far."""

        self.status_code = 200
        self.body = bytearray()
        self.response_headers = MutableHeaders()
        self.media_type = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


Next = Callable[[RequestContext], Awaitable[None]]
Stage = Callable[[RequestContext, Next], Awaitable[None]]
Endpoint = Next
