"""Query result models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class SearchHit(BaseModel):
    """A single document returned by the cluster with its relevance score."""

    index: str
    id: str
    score: float | None = None
    source: dict[str, Any]
