from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ApiEnvelope(BaseModel):
    status: int
    message: str
    data: Any = None


class ApiError(Exception):
    """Raised inside handlers; rendered as an ApiEnvelope with the same HTTP status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = int(status)
        self.message = str(message)

    def envelope(self) -> ApiEnvelope:
        return ApiEnvelope(status=self.status, message=self.message, data=None)


class BatchCheckRequest(BaseModel):
    domains: list[str] = Field(..., min_length=1)

    def normalized_domains(self) -> list[str]:
        seen: set[str] = set()
        out: list[str] = []
        for raw in self.domains:
            d = str(raw or "").strip()
            if not d or d in seen:
                continue
            seen.add(d)
            out.append(d)
        return out


class DomainCheckRequest(BaseModel):
    domain: str = Field(..., min_length=1, max_length=253)


class NotifiedDomain(BaseModel):
    domain: str
    remainingDays: int  # noqa: N815
    expiry_date: str


class BatchCheckData(BaseModel):
    total_domains: int
    notified_domains: list[NotifiedDomain] = Field(default_factory=list)


class DomainCheckData(BaseModel):
    status: str
