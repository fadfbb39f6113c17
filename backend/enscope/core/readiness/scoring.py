"""
Readiness Scoring - composite, tier and contextual penalty.

Each step is scored by the LLM on five dimensions (1-5). The composite is
their sum (5-25), reduced by a contextual penalty when the project carries
blocking dependency gaps, and mapped to one of three automation tiers:

    composite >= 20  -> autonomous
    composite >= 13  -> human_in_loop
    otherwise        -> human_only
"""

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from enscope.core.config import PenaltyRule
from enscope.core.exceptions import LLMError, ScoreParseError
from enscope.core.models import (
    AutomationTier,
    DependencyGap,
    ProjectWorkflow,
    StepScore,
    WorkflowStep,
)

logger = logging.getLogger(__name__)


DIMENSIONS: tuple[str, ...] = (
    "rule_based_score",
    "data_availability_score",
    "exception_frequency_score",
    "auditability_score",
    "speed_sensitivity_score",
)

MIN_DIMENSION = 1
MAX_DIMENSION = 5

AUTONOMOUS_THRESHOLD = 20
HUMAN_IN_LOOP_THRESHOLD = 13


# ==========================================================================
# Pure aggregation
# ==========================================================================

@dataclass(frozen=True)
class DimensionScores:
    """The five dimension scores of a step, already clamped to 1-5."""

    rule_based: int
    data_availability: int
    exception_frequency: int
    auditability: int
    speed_sensitivity: int
    rationale: str = ""

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "DimensionScores":
        """
        Build from an LLM score payload.

        Raises:
            ScoreParseError: If a dimension is missing or not numeric
        """
        values = []
        for name in DIMENSIONS:
            raw = payload.get(name)
            if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
                raise ScoreParseError(f"Score payload is missing a numeric '{name}'")
            try:
                values.append(clamp_dimension(round(float(raw))))
            except (ValueError, OverflowError) as e:
                raise ScoreParseError(f"Score payload has a non-numeric '{name}': {raw!r}") from e

        rationale = payload.get("rationale") or ""
        return cls(*values, rationale=str(rationale))

    def as_tuple(self) -> tuple[int, int, int, int, int]:
        return (
            self.rule_based,
            self.data_availability,
            self.exception_frequency,
            self.auditability,
            self.speed_sensitivity,
        )

    @property
    def raw_composite(self) -> int:
        return sum(self.as_tuple())


@dataclass(frozen=True)
class ScoreResult:
    """Composite and tier after the contextual penalty."""

    dimensions: DimensionScores
    raw_composite: int
    penalty: int
    composite: int
    tier: AutomationTier


class GapLike(Protocol):
    workflow_index: int
    gap_type: Any
    severity: Any


def clamp_dimension(value: int) -> int:
    return max(MIN_DIMENSION, min(MAX_DIMENSION, int(value)))


def classify_tier(composite: float) -> AutomationTier:
    """Map a composite score (or an average of composites) to a tier."""
    if composite >= AUTONOMOUS_THRESHOLD:
        return AutomationTier.AUTONOMOUS
    if composite >= HUMAN_IN_LOOP_THRESHOLD:
        return AutomationTier.HUMAN_IN_LOOP
    return AutomationTier.HUMAN_ONLY


def _enum_value(value: Any) -> str:
    return getattr(value, "value", value)


def contextual_penalty(
    workflow_index: int,
    gaps: Iterable[GapLike],
    rules: Sequence[PenaltyRule],
) -> int:
    """
    Points to subtract from the composite of a step in `workflow_index`.

    The largest matching rule wins; rules never stack.
    """
    penalty = 0
    for gap in gaps:
        gap_type = _enum_value(gap.gap_type)
        severity = _enum_value(gap.severity)
        for rule in rules:
            if (
                rule.scored_workflow_index == workflow_index
                and rule.gap_workflow_index == gap.workflow_index
                and severity == rule.severity
                and gap_type in rule.gap_types
            ):
                penalty = max(penalty, rule.penalty)
    return penalty


def aggregate_scores(
    dimensions: DimensionScores,
    workflow_index: int,
    gaps: Iterable[GapLike],
    rules: Sequence[PenaltyRule],
) -> ScoreResult:
    """Combine dimension scores and project gaps into a stored composite and tier."""
    raw = dimensions.raw_composite
    penalty = contextual_penalty(workflow_index, gaps, rules)
    composite = max(0, raw - penalty)
    return ScoreResult(
        dimensions=dimensions,
        raw_composite=raw,
        penalty=penalty,
        composite=composite,
        tier=classify_tier(composite),
    )


# ==========================================================================
# Payload parsing
# ==========================================================================

def extract_json_object(text: str) -> dict[str, Any]:
    """
    Return the first well-formed JSON object embedded in free text.

    Raises:
        ScoreParseError: If the text holds no decodable JSON object
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(value, dict):
                return value
        start = text.find("{", start + 1)
    raise ScoreParseError("No JSON object found in score response")


def parse_score_payload(text: str) -> DimensionScores:
    return DimensionScores.from_payload(extract_json_object(text))


# ==========================================================================
# Batch scoring service
# ==========================================================================

class StepScorer(Protocol):
    async def score_step(self, step: WorkflowStep, workflow_name: str) -> DimensionScores: ...


@dataclass
class StepOutcome:
    """Result of scoring one step inside a batch."""

    step: WorkflowStep
    result: Optional[ScoreResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class BatchOutcome:
    workflow: ProjectWorkflow
    outcomes: list[StepOutcome] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)


class ReadinessScorer:
    """
    Scores every step of a workflow and upserts one StepScore per step.

    Steps are scored sequentially. A failed LLM call or an unparseable
    payload is recorded on that step's outcome and nothing is written for
    it; the remaining steps are still scored.
    """

    def __init__(
        self,
        db: AsyncSession,
        llm: StepScorer,
        rules: Sequence[PenaltyRule],
    ):
        self.db = db
        self.llm = llm
        self.rules = list(rules)

    async def project_gaps(self, project_id) -> list[DependencyGap]:
        result = await self.db.execute(
            select(DependencyGap).where(DependencyGap.project_id == project_id)
        )
        return list(result.scalars().all())

    async def score_workflow(
        self,
        workflow: ProjectWorkflow,
        steps: Sequence[WorkflowStep],
    ) -> BatchOutcome:
        gaps = await self.project_gaps(workflow.project_id)
        batch = BatchOutcome(workflow=workflow)

        for step in steps:
            try:
                dimensions = await self.llm.score_step(step, workflow.workflow_name)
            except LLMError as e:
                logger.warning(
                    "Scoring failed for step %s of workflow %s: %s",
                    step.id, workflow.workflow_index, e,
                )
                batch.outcomes.append(StepOutcome(step=step, error=str(e)))
                continue

            result = aggregate_scores(dimensions, workflow.workflow_index, gaps, self.rules)
            await self.upsert_score(step, result)
            batch.outcomes.append(StepOutcome(step=step, result=result))

        await self.db.commit()
        logger.info(
            "Scored workflow %s: %d ok, %d failed",
            workflow.workflow_index, len(batch.outcomes) - batch.failed, batch.failed,
        )
        return batch

    async def upsert_score(self, step: WorkflowStep, result: ScoreResult) -> StepScore:
        """Insert or replace the score row of a step."""
        existing = await self.db.execute(
            select(StepScore).where(StepScore.workflow_step_id == step.id)
        )
        score = existing.scalar_one_or_none()
        if score is None:
            score = StepScore(workflow_step_id=step.id)
            self.db.add(score)

        dims = result.dimensions
        score.rule_based_score = dims.rule_based
        score.data_availability_score = dims.data_availability
        score.exception_frequency_score = dims.exception_frequency
        score.auditability_score = dims.auditability
        score.speed_sensitivity_score = dims.speed_sensitivity
        score.composite_score = result.composite
        score.candidate_tier = result.tier
        score.score_rationale = dims.rationale

        await self.db.flush()
        return score
