"""
Enscope - Pydantic Schemas
==========================

Request and response schemas for API validation.
"""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from enscope.core.models import AutomationTier, GapSeverity, GapType, WorkflowStatus


# ==========================================================================
# Base Schemas
# ==========================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# Passphrases are compared exactly; surrounding whitespace is significant.
Passphrase = Annotated[str, StringConstraints(min_length=1, max_length=255, strip_whitespace=False)]


class TierDistribution(BaseSchema):
    """Number (or percentage) of steps per automation tier."""

    autonomous: int = 0
    human_in_loop: int = 0
    human_only: int = 0


# ==========================================================================
# Project Schemas
# ==========================================================================

class ProjectCreate(BaseSchema):
    """Schema for creating a project."""

    name: str = Field(min_length=1, max_length=255)
    client_name: str = Field(min_length=1, max_length=255)
    passphrase: Passphrase
    engagement_type: Optional[str] = Field(None, max_length=255)
    observability_tools: list[str] = []
    team_members: list[str] = []


class ProjectJoin(BaseSchema):
    """Schema for joining a project by name and passphrase."""

    name: str = Field(min_length=1, max_length=255)
    passphrase: Passphrase


class ProjectUpdate(BaseSchema):
    """Schema for updating project details (partial)."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    client_name: Optional[str] = Field(None, min_length=1, max_length=255)
    engagement_type: Optional[str] = Field(None, min_length=1, max_length=255)
    observability_tools: Optional[list[str]] = None
    team_members: Optional[list[str]] = None


class WorkflowSummary(BaseSchema):
    """Workflow as listed under a project."""

    id: UUID
    workflow_index: int
    workflow_name: str
    status: WorkflowStatus


class ProjectResponse(BaseSchema):
    """Project with its workflows and tools (passphrase hash never included)."""

    id: UUID
    name: str
    client_name: str
    engagement_type: str
    team_members: list[str] = []
    created_at: datetime
    workflows: list[WorkflowSummary] = []
    observability_tools: list[str] = []


class ProjectListItem(BaseSchema):
    """Project row in the project list."""

    id: UUID
    name: str
    client_name: str
    engagement_type: str
    created_at: datetime


class DashboardWorkflow(WorkflowSummary):
    """Workflow row on the dashboard."""

    step_count: int
    completed_steps: int


class CompletionStats(BaseSchema):
    percentage: int
    complete_workflows: int
    total_workflows: int


class DashboardScores(BaseSchema):
    average_composite: int
    total_scored_steps: int


class DashboardResponse(BaseSchema):
    """Project dashboard payload."""

    project: ProjectListItem
    workflows: list[DashboardWorkflow]
    observability_tools: list[str]
    completion: CompletionStats
    scores: DashboardScores


# ==========================================================================
# Workflow / Step Schemas
# ==========================================================================

class StepFields(BaseSchema):
    """The interview fields of a step."""

    step_name: str = ""
    description: str = ""
    role_team: str = ""
    trigger_input: str = ""
    systems_tools: str = ""
    decision_points: str = ""
    output_handoff: str = ""
    pain_points: str = ""
    time_effort: str = ""
    raw_transcript: str = ""


class StepCreate(StepFields):
    """Schema for creating a step; all fields optional."""


class StepUpdate(BaseSchema):
    """Schema for updating a step; omitted fields keep their value."""

    step_name: Optional[str] = None
    description: Optional[str] = None
    role_team: Optional[str] = None
    trigger_input: Optional[str] = None
    systems_tools: Optional[str] = None
    decision_points: Optional[str] = None
    output_handoff: Optional[str] = None
    pain_points: Optional[str] = None
    time_effort: Optional[str] = None
    raw_transcript: Optional[str] = None


class StepResponse(StepFields):
    """Schema for a step in responses."""

    id: UUID
    project_workflow_id: UUID
    step_number: int
    created_at: datetime
    updated_at: datetime


class ScoreResponse(BaseSchema):
    """Stored readiness score of a step."""

    id: UUID
    workflow_step_id: UUID
    rule_based_score: int
    data_availability_score: int
    exception_frequency_score: int
    auditability_score: int
    speed_sensitivity_score: int
    composite_score: int
    candidate_tier: AutomationTier
    score_rationale: str


class StepWithScore(StepResponse):
    """Step together with its score (None when unscored)."""

    score: Optional[ScoreResponse] = None


class WorkflowDetail(BaseSchema):
    """Workflow with all its steps."""

    id: UUID
    project_id: UUID
    workflow_index: int
    workflow_name: str
    status: WorkflowStatus
    updated_at: datetime
    steps: list[StepWithScore] = []


class WorkflowStatusUpdate(BaseSchema):
    status: WorkflowStatus


class WorkflowResponse(WorkflowSummary):
    project_id: UUID
    updated_at: datetime


# ==========================================================================
# Score Schemas
# ==========================================================================

class StepScoreValues(BaseSchema):
    """Dimension scores plus derived composite and tier."""

    rule_based: int
    data_availability: int
    exception_frequency: int
    auditability: int
    speed_sensitivity: int
    composite: int
    tier: AutomationTier


class StepScoreResult(BaseSchema):
    """Outcome of scoring one step; exactly one of scores/error is set."""

    step_id: UUID
    step_name: str
    scores: Optional[StepScoreValues] = None
    penalty_applied: int = 0
    error: Optional[str] = None


class GenerateScoresResponse(BaseSchema):
    workflow_id: UUID
    workflow_name: str
    scored_steps: int
    failed_steps: int
    results: list[StepScoreResult]


class WorkflowScoreRow(ScoreResponse):
    step_number: int
    step_name: str


class WorkflowScoresResponse(BaseSchema):
    workflow_id: UUID
    workflow_name: str
    total_scored_steps: int
    average_composite_score: int
    tier_distribution: TierDistribution  # percentages
    scores: list[WorkflowScoreRow]


class ProjectWorkflowScores(BaseSchema):
    id: UUID
    workflow_index: int
    workflow_name: str
    status: WorkflowStatus
    scored_steps: int
    avg_composite: Optional[float] = None
    autonomous_count: int
    human_in_loop_count: int
    human_only_count: int


class EngagementLevel(BaseSchema):
    avg_composite_score: int
    total_scored_steps: int
    tier_distribution: TierDistribution


class ProjectScoresResponse(BaseSchema):
    project_id: UUID
    project_name: str
    client_name: str
    engagement_level: EngagementLevel
    workflows: list[ProjectWorkflowScores]


# ==========================================================================
# Dependency Gap Schemas
# ==========================================================================

class GapCreate(BaseSchema):
    """Schema for recording a dependency gap."""

    project_id: UUID
    workflow_index: int = Field(ge=1, le=8)
    gap_type: GapType
    severity: GapSeverity
    description: str = Field(min_length=1)


class GapUpdate(BaseSchema):
    """Schema for updating a gap (partial)."""

    workflow_index: Optional[int] = Field(None, ge=1, le=8)
    gap_type: Optional[GapType] = None
    severity: Optional[GapSeverity] = None
    description: Optional[str] = Field(None, min_length=1)


class GapResponse(BaseSchema):
    id: UUID
    project_id: UUID
    workflow_index: int
    gap_type: GapType
    severity: GapSeverity
    description: str
    identified_at: datetime


class GapListResponse(BaseSchema):
    project_id: UUID
    total_gaps: int
    gaps: list[GapResponse]


class SeverityCounts(BaseSchema):
    red: int = 0
    amber: int = 0
    green: int = 0


class GapSummaryResponse(BaseSchema):
    project_id: UUID
    summary: dict[str, SeverityCounts]
    dimension_status: dict[str, GapSeverity]


# ==========================================================================
# AI Schemas
# ==========================================================================

class AssistRequest(BaseSchema):
    """Field-level guidance request."""

    project_id: UUID = Field(alias="projectId")
    workflow_index: int = Field(alias="workflowIndex", ge=1, le=8)
    field_name: str = Field(alias="fieldName", min_length=1)
    field_value: Optional[str] = Field(None, alias="fieldValue")
    all_step_data: Optional[dict[str, Optional[str]]] = Field(None, alias="allStepData")


class GapFlag(BaseSchema):
    type: GapType
    description: str


class AssistResponse(BaseSchema):
    field_name: str
    workflow_index: int
    guidance: str
    gap_flags: list[GapFlag]
    relevant_tools: list[str]


class ScoreStepData(StepFields):
    id: Optional[UUID] = None


class ScoreStepWorkflowData(BaseSchema):
    workflow_name: str = ""
    workflow_index: Optional[int] = Field(None, ge=1, le=8)


class ScoreStepRequest(BaseSchema):
    """Ad-hoc scoring of step data; nothing is persisted."""

    step_data: ScoreStepData = Field(alias="stepData")
    workflow_data: ScoreStepWorkflowData = Field(alias="workflowData")


class ScoreStepResponse(BaseSchema):
    step_id: Optional[UUID] = None
    step_name: str
    scores: StepScoreValues
    rationale: str


# ==========================================================================
# Diagram Schemas
# ==========================================================================

class DiagramResponse(BaseSchema):
    workflow_id: UUID
    workflow_index: int
    workflow_name: str
    status: WorkflowStatus
    total_steps: int
    mermaid_diagram: str


# ==========================================================================
# Report Schemas
# ==========================================================================

class ReportStepScores(BaseSchema):
    rule_based: int
    data_availability: int
    exception_frequency: int
    auditability: int
    speed_sensitivity: int
    composite: int
    tier: AutomationTier
    rationale: str


class ReportStep(BaseSchema):
    step_number: int
    step_name: str
    description: str
    role_team: str
    systems_tools: str
    decision_points: str
    pain_points: str
    scores: Optional[ReportStepScores] = None


class WorkflowStatistics(BaseSchema):
    total_steps: int
    scored_steps: int
    average_composite: int
    tier_distribution: TierDistribution


class ReportGap(BaseSchema):
    gap_type: GapType
    severity: GapSeverity
    description: str
    identified_at: datetime


class WorkflowReportResponse(BaseSchema):
    workflow_id: UUID
    workflow_index: int
    workflow_name: str
    status: WorkflowStatus
    statistics: WorkflowStatistics
    steps: list[ReportStep]
    dependency_gaps: list[ReportGap]


class EngagementStatistics(BaseSchema):
    total_workflows: int
    completed_workflows: int
    total_steps: int
    completed_steps: int
    total_scored_steps: int
    average_composite: int
    tier_distribution: TierDistribution


class EngagementWorkflowRow(BaseSchema):
    id: UUID
    workflow_index: int
    workflow_name: str
    status: WorkflowStatus
    total_steps: int
    completed_steps: int
    scored_steps: int
    average_composite: int
    tier_distribution: TierDistribution


class EngagementReportResponse(BaseSchema):
    project_id: UUID
    project_name: str
    client_name: str
    engagement_type: str
    created_at: datetime
    statistics: EngagementStatistics
    dependency_gaps_summary: dict[str, SeverityCounts]
    dimension_status: dict[str, GapSeverity]
    observability_tools: list[str]
    workflows: list[EngagementWorkflowRow]


# ==========================================================================
# Common Response Schemas
# ==========================================================================

class MessageResponse(BaseSchema):
    """Generic message response."""

    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    """Error response schema."""

    error: str
    status: int


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str
    version: str
    environment: str
    database: str
