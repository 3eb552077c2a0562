"""Structured readiness report models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, computed_field

CheckStatus = Literal["pass", "warn", "fail"]


class CheckResult(BaseModel):
    name: str
    status: CheckStatus
    message: str = ""
    details: dict[str, Any] = {}


class HealthReport(BaseModel):
    """Accumulated results of every readiness check in one run."""

    checks: list[CheckResult] = []

    @computed_field
    @property
    def passed(self) -> bool:
        return all(c.status != "fail" for c in self.checks)

    @computed_field
    @property
    def counts(self) -> dict[str, int]:
        counts = {"pass": 0, "warn": 0, "fail": 0}
        for c in self.checks:
            counts[c.status] += 1
        return counts

    def failures(self) -> list[CheckResult]:
        return [c for c in self.checks if c.status == "fail"]
