"""Pydantic models for rules domain API requests and responses."""

from typing import Any

from pydantic import BaseModel, Field

from backend.evaluation.schemas import EvaluationSummary


# =============================================================================
# Decision Models
# =============================================================================


class DecisionRequest(BaseModel):
    """Request for a direct decision with explicit inputs."""

    jurisdiction: str = Field(..., description="Jurisdiction, e.g. 'Denver, CO'")
    category: str = Field(..., min_length=1)
    subcategory: str | None = Field(None, description="Evaluate this subcategory only")
    inputs: dict[str, Any] = Field(default_factory=dict)


class DecisionResponse(BaseModel):
    """Response for a direct decision."""

    decision_id: int | None = None
    result: EvaluationSummary


# =============================================================================
# Jurisdiction Models
# =============================================================================


class JurisdictionInfo(BaseModel):
    """Summary of a configured jurisdiction."""

    name: str
    state: str
    type: str
    county: str | None = None
    display_name: str


class JurisdictionListResponse(BaseModel):
    jurisdictions: list[JurisdictionInfo]
    total: int
