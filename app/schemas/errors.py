"""Pydantic schema for error responses produced by fault isolation."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body sent to clients.

    Serialized with ``by_alias=True`` as ``{"StatusCode": 404, "Message": "..."}``.
    """

    status_code: int = Field(
        ...,
        serialization_alias="StatusCode",
        description="HTTP status code of the response.",
    )
    message: str = Field(
        ...,
        serialization_alias="Message",
        description="Generic, client-safe description of the failure class.",
    )
