from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ScoreRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id_1: str = Field(alias="userId1")
    user_id_2: str = Field(alias="userId2")


class FindRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    page: int = 1
    page_size: int | None = Field(default=None, alias="pageSize")


class InvalidateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")


class MatchResultBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    score_a_to_b: int = Field(alias="scoreAtoB")
    score_b_to_a: int = Field(alias="scoreBtoA")
    mutual_score: int = Field(alias="mutualScore")
    excluded: bool
    breakdown: list[dict[str, float]]
    reasons: list[str] = Field(default_factory=list)
    hard_failures: list[str] = Field(default_factory=list, alias="hardFailures")


class ScoreResponse(BaseModel):
    result: MatchResultBody


class CandidateBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    score: int
    breakdown: dict[str, float]
    reasons: list[str] = Field(default_factory=list)


class CandidatePageBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    candidates: list[CandidateBody]
    total_considered: int = Field(alias="totalConsidered")
    partial: bool
    page: int
    page_size: int = Field(alias="pageSize")
    has_more: bool = Field(alias="hasMore")


class FindResponse(BaseModel):
    result: CandidatePageBody


class InvalidateResponse(BaseModel):
    invalidated: int


class ErrorBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: str
    message: str
    trace_id: str = Field(alias="traceId")


class ErrorResponse(BaseModel):
    error: ErrorBody


class HealthResponse(BaseModel):
    status: str
    module: str
    normalization: dict[str, Any]
