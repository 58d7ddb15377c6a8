"""
Runner Types

Pydantic models for session traces, validation findings and the
analysis API request/response.
"""

from typing import Optional, Any, Literal
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ============================================================================
# Input Types
# ============================================================================

class SessionTrace(BaseModel):
    """Stage ids one respondent visited, in order."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(
        validation_alias=AliasChoices('sessionId', 'session_id'),
        serialization_alias='sessionId',
        description="Respondent session identifier",
    )
    visited_stage_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices('visitedStageIds', 'visited_stage_ids'),
        serialization_alias='visitedStageIds',
        description="Stage ids in visit order (revisits allowed)",
    )
    completed: bool = Field(default=False, description="Whether the session reached a submit/terminal action")


# ============================================================================
# Validation Types
# ============================================================================

IssueCode = Literal[
    'DanglingReference',
    'DuplicateStageId',
    'UnreachableStage',
    'PrematureTermination',
    'ConnectionMismatch',
    'EmptyFunnel',
    'ValidationFailure',
]

Severity = Literal['error', 'warning']


class ValidationIssue(BaseModel):
    """One validator finding. Findings are data; they never block resolution."""
    model_config = ConfigDict(frozen=True)

    code: IssueCode
    severity: Severity
    stage_id: Optional[str] = None
    branch_id: Optional[str] = None
    target_stage_id: Optional[str] = None
    message: str = ""


class ValidationReport(BaseModel):
    """Errors and warnings found in a stage list."""
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """True when there are no errors (warnings are allowed)."""
        return not self.errors

    def add(self, issue: ValidationIssue) -> None:
        if issue.severity == 'error':
            self.errors.append(issue)
        else:
            self.warnings.append(issue)

    def issues_for(self, code: str) -> list[ValidationIssue]:
        return [i for i in self.errors + self.warnings if i.code == code]

    def to_dict(self) -> dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'errors': [i.model_dump() for i in self.errors],
            'warnings': [i.model_dump() for i in self.warnings],
        }


# ============================================================================
# Request Types
# ============================================================================

class AnalysisRequest(BaseModel):
    """Request to analyze a funnel.

    Without sessions the result is a structural overview of the stage graph;
    with sessions it is the per-stage funnel.
    """
    stages: list[dict[str, Any]] = Field(description="Ordered stage snapshot")
    sessions: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Session traces ({sessionId, visitedStageIds, completed})"
    )
    analysis_type: Optional[str] = Field(
        default=None,
        description="Override automatic analysis type selection"
    )


# ============================================================================
# Response Types - Declarative Schema
# ============================================================================

class DimensionSpec(BaseModel):
    """Describes a data dimension."""
    id: str = Field(description="Field name in data rows")
    name: str = Field(description="Human-readable label")
    type: str = Field(description="Semantic type: stage, branch, outcome, categorical, ordinal")
    role: str = Field(default="primary", description="Role: primary, secondary, filter")


class MetricSpec(BaseModel):
    """Describes a metric."""
    id: str = Field(description="Field name in data rows")
    name: str = Field(description="Human-readable label")
    type: str = Field(description="Semantic type: count, ratio, probability")
    format: Optional[str] = Field(default=None, description="Display format: percent, number")
    role: Optional[str] = Field(default=None, description="Visual role: primary, secondary")


class ChartSpec(BaseModel):
    """Chart rendering hints."""
    recommended: str = Field(description="Recommended chart type: funnel, bar, table")
    alternatives: list[str] = Field(default_factory=list, description="Alternative valid chart types")
    hints: dict[str, Any] = Field(default_factory=dict, description="Chart-specific hints")


class ResultSemantics(BaseModel):
    """How to interpret and render the data."""
    dimensions: list[DimensionSpec] = Field(description="Data dimensions")
    metrics: list[MetricSpec] = Field(description="Data metrics")
    chart: ChartSpec = Field(description="Chart rendering hints")


class DimensionValueMeta(BaseModel):
    """Metadata for a dimension value."""
    name: str = Field(description="Human-readable label")
    order: Optional[int] = Field(default=None, description="Sort order")


class AnalysisResult(BaseModel):
    """Analysis result with declarative schema."""
    # Identity
    analysis_type: str = Field(description="Matched analysis type ID")
    analysis_name: str = Field(description="Human-readable analysis name")
    analysis_description: str = Field(default="", description="Analysis description")

    # Static context
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Analysis-specific context that doesn't vary by dimension"
    )

    # How to interpret the data
    semantics: Optional[ResultSemantics] = Field(
        default=None,
        description="Declarative schema for rendering"
    )

    # Per-dimension-value metadata
    dimension_values: dict[str, dict[str, DimensionValueMeta]] = Field(
        default_factory=dict,
        description="Metadata per dimension value (labels, order)"
    )

    # The actual data
    data: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Data rows with dimension and metric values"
    )


class AnalysisResponse(BaseModel):
    """Response from analysis computation."""
    success: bool = Field(default=True, description="Whether analysis succeeded")
    result: Optional[AnalysisResult] = Field(
        default=None,
        description="Analysis result"
    )
    error: Optional[dict[str, Any]] = Field(
        default=None,
        description="Error details if success=False"
    )


class AnalysisError(BaseModel):
    """Error response from analysis."""
    error: bool = Field(default=True)
    error_type: str = Field(description="Error category: validation_error, compute_error")
    message: str = Field(description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional error context"
    )
