"""Pydantic request/response/error schemas for the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel


class WriteResponse(BaseModel):
    index: str
    id: str


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict = {}
