"""
Enscope - Database Models
=========================

SQLAlchemy models for the readiness assessment schema.

Every child row is owned by exactly one parent and disappears with it:
foreign keys carry ON DELETE CASCADE and relationships use passive deletes
so the database does the work.
"""

import enum
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from enscope.core.database import Base


# ==========================================================================
# Enums
# ==========================================================================

class WorkflowStatus(str, enum.Enum):
    """Interview progress of a workflow."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"    # Set on first step edit
    COMPLETE = "complete"          # Only set explicitly by the user


class AutomationTier(str, enum.Enum):
    """Automation candidacy derived from the composite score."""
    AUTONOMOUS = "autonomous"          # composite >= 20
    HUMAN_IN_LOOP = "human_in_loop"    # composite >= 13
    HUMAN_ONLY = "human_only"


class GapType(str, enum.Enum):
    """Dependency dimension a gap belongs to."""
    CMDB = "cmdb"
    DISCOVERY = "discovery"
    OBSERVABILITY = "observability"
    OTHER = "other"


class GapSeverity(str, enum.Enum):
    """RAG severity of a dependency gap."""
    RED = "red"
    AMBER = "amber"
    GREEN = "green"


WORKFLOW_NAMES: tuple[str, ...] = (
    "Signal Intake & Event Detection",
    "Triage & Classification",
    "Correlation & Context Enrichment",
    "Assignment & Coordination",
    "Diagnosis & Resolution",
    "Escalation & Major Incident Management",
    "Verification & Closure",
    "Post-Incident Review & Learning",
)


def _value_enum(enum_cls: type[enum.Enum]) -> Enum:
    """Store enum values (not member names) in a portable VARCHAR column."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=20,
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==========================================================================
# Mixins
# ==========================================================================

class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )


# ==========================================================================
# Models
# ==========================================================================

class Project(Base, TimestampMixin):
    """
    A client engagement.

    Owns the eight fixed workflows, the observability tool tags and the
    dependency gaps recorded for the client.
    """

    __tablename__ = "projects"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        index=True,
        nullable=False,
    )
    client_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    engagement_type: Mapped[str] = mapped_column(
        String(255),
        default="ITOM Event Management",
        nullable=False,
    )
    team_members: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    passphrase_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Relationships
    workflows: Mapped[list["ProjectWorkflow"]] = relationship(
        back_populates="project",
        order_by="ProjectWorkflow.workflow_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    observability_tools: Mapped[list["ObservabilityTool"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    dependency_gaps: Mapped[list["DependencyGap"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    @property
    def tool_names(self) -> list[str]:
        return [tool.tool_name for tool in self.observability_tools]

    def __repr__(self) -> str:
        return f"<Project {self.name[:50]}>"


class ObservabilityTool(Base):
    """Observability tool tag attached to a project."""

    __tablename__ = "observability_tools"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tool_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    project: Mapped["Project"] = relationship(back_populates="observability_tools")

    def __repr__(self) -> str:
        return f"<ObservabilityTool {self.tool_name}>"


class ProjectWorkflow(Base):
    """One of the eight fixed workflows of a project."""

    __tablename__ = "project_workflows"
    __table_args__ = (
        UniqueConstraint("project_id", "workflow_index", name="uq_project_workflow_index"),
        CheckConstraint("workflow_index BETWEEN 1 AND 8", name="ck_workflow_index_range"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workflow_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    workflow_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    status: Mapped[WorkflowStatus] = mapped_column(
        _value_enum(WorkflowStatus),
        default=WorkflowStatus.NOT_STARTED,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    # Relationships
    project: Mapped["Project"] = relationship(back_populates="workflows")
    steps: Mapped[list["WorkflowStep"]] = relationship(
        back_populates="workflow",
        order_by="WorkflowStep.step_number",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<ProjectWorkflow {self.workflow_index}: {self.workflow_name}>"


class WorkflowStep(Base, TimestampMixin):
    """
    One interview step of a workflow.

    The nine interview fields are free text and default to empty strings.
    """

    __tablename__ = "workflow_steps"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    project_workflow_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("project_workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Interview fields
    step_name: Mapped[str] = mapped_column(Text, default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    role_team: Mapped[str] = mapped_column(Text, default="", nullable=False)
    trigger_input: Mapped[str] = mapped_column(Text, default="", nullable=False)
    systems_tools: Mapped[str] = mapped_column(Text, default="", nullable=False)
    decision_points: Mapped[str] = mapped_column(Text, default="", nullable=False)
    output_handoff: Mapped[str] = mapped_column(Text, default="", nullable=False)
    pain_points: Mapped[str] = mapped_column(Text, default="", nullable=False)
    time_effort: Mapped[str] = mapped_column(Text, default="", nullable=False)
    raw_transcript: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Relationships
    workflow: Mapped["ProjectWorkflow"] = relationship(back_populates="steps")
    score: Mapped[Optional["StepScore"]] = relationship(
        back_populates="step",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkflowStep {self.step_number}: {self.step_name[:50]}>"


class StepScore(Base, TimestampMixin):
    """
    Automation readiness score of a step (at most one per step).

    `composite_score` is the stored, post-penalty value; the tier is derived
    from it.
    """

    __tablename__ = "step_scores"
    __table_args__ = (
        CheckConstraint("rule_based_score BETWEEN 1 AND 5", name="ck_rule_based_range"),
        CheckConstraint("data_availability_score BETWEEN 1 AND 5", name="ck_data_availability_range"),
        CheckConstraint("exception_frequency_score BETWEEN 1 AND 5", name="ck_exception_frequency_range"),
        CheckConstraint("auditability_score BETWEEN 1 AND 5", name="ck_auditability_range"),
        CheckConstraint("speed_sensitivity_score BETWEEN 1 AND 5", name="ck_speed_sensitivity_range"),
        CheckConstraint("composite_score BETWEEN 0 AND 25", name="ck_composite_range"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    workflow_step_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("workflow_steps.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    # Dimensions (1-5)
    rule_based_score: Mapped[int] = mapped_column(Integer, nullable=False)
    data_availability_score: Mapped[int] = mapped_column(Integer, nullable=False)
    exception_frequency_score: Mapped[int] = mapped_column(Integer, nullable=False)
    auditability_score: Mapped[int] = mapped_column(Integer, nullable=False)
    speed_sensitivity_score: Mapped[int] = mapped_column(Integer, nullable=False)

    # Derived
    composite_score: Mapped[int] = mapped_column(Integer, nullable=False)
    candidate_tier: Mapped[AutomationTier] = mapped_column(
        _value_enum(AutomationTier),
        nullable=False,
    )
    score_rationale: Mapped[str] = mapped_column(Text, default="", nullable=False)

    step: Mapped["WorkflowStep"] = relationship(back_populates="score")

    def __repr__(self) -> str:
        return f"<StepScore {self.composite_score} {self.candidate_tier.value}>"


class DependencyGap(Base):
    """A CMDB / discovery / observability / other gap recorded for a project."""

    __tablename__ = "dependency_gaps"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workflow_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    gap_type: Mapped[GapType] = mapped_column(
        _value_enum(GapType),
        nullable=False,
    )
    severity: Mapped[GapSeverity] = mapped_column(
        _value_enum(GapSeverity),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    identified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )

    project: Mapped["Project"] = relationship(back_populates="dependency_gaps")

    def __repr__(self) -> str:
        return f"<DependencyGap {self.gap_type.value}/{self.severity.value}>"
