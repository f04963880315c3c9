from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


# --- Requests ---


class SourceIn(BaseModel):
    title: str = ""
    url: str
    snippet: str = ""
    page_content: str | None = None
    score: float | None = None


class ResearchRequest(BaseModel):
    query: str = Field(min_length=1)
    mode: Literal["quick", "exhaustive"] = "quick"
    sources: list[SourceIn] = []


# --- Responses ---


class HealthResponse(BaseModel):
    status: str
    service: str
