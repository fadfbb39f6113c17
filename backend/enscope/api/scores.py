"""
Enscope - Scores API
====================

Batch scoring of a workflow and score rollups.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import delete, select

from enscope.api.deps import (
    LLM,
    AppSettings,
    DbSession,
    get_project_or_404,
    get_workflow_or_404,
    load_steps,
)
from enscope.core.models import StepScore, WorkflowStep
from enscope.core.readiness.reports import (
    average_composite,
    engagement_totals,
    load_workflow_rollups,
    tier_counts,
    tier_percentages,
)
from enscope.core.readiness.scoring import ReadinessScorer, ScoreResult, StepOutcome
from enscope.core.schemas import (
    EngagementLevel,
    GenerateScoresResponse,
    MessageResponse,
    ProjectScoresResponse,
    ProjectWorkflowScores,
    StepScoreResult,
    StepScoreValues,
    TierDistribution,
    WorkflowScoreRow,
    WorkflowScoresResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/scores", tags=["Scores"])


# ==========================================================================
# Helper Functions
# ==========================================================================

def score_values(result: ScoreResult) -> StepScoreValues:
    dims = result.dimensions
    return StepScoreValues(
        rule_based=dims.rule_based,
        data_availability=dims.data_availability,
        exception_frequency=dims.exception_frequency,
        auditability=dims.auditability,
        speed_sensitivity=dims.speed_sensitivity,
        composite=result.composite,
        tier=result.tier,
    )


def outcome_result(outcome: StepOutcome) -> StepScoreResult:
    if outcome.result is None:
        return StepScoreResult(
            step_id=outcome.step.id,
            step_name=outcome.step.step_name,
            error=outcome.error,
        )
    return StepScoreResult(
        step_id=outcome.step.id,
        step_name=outcome.step.step_name,
        scores=score_values(outcome.result),
        penalty_applied=outcome.result.penalty,
    )


# ==========================================================================
# Scoring
# ==========================================================================

@router.post(
    "/generate/{workflow_id}",
    response_model=GenerateScoresResponse,
    summary="Score all steps of a workflow",
    responses={
        400: {"description": "Workflow has no steps"},
        404: {"description": "Workflow not found"},
    },
)
async def generate_scores(
    workflow_id: UUID,
    db: DbSession,
    llm: LLM,
    settings: AppSettings,
) -> GenerateScoresResponse:
    """
    Score every step of a workflow with the LLM.

    Steps are scored one after another. A step whose scoring call fails is
    reported with an `error` and keeps its previous score, if any.
    """
    workflow = await get_workflow_or_404(workflow_id, db)
    steps = await load_steps(db, workflow.id)

    if not steps:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Workflow has no steps to score",
        )

    scorer = ReadinessScorer(db, llm, settings.SCORE_PENALTY_RULES)
    batch = await scorer.score_workflow(workflow, steps)

    logger.info(
        "Workflow scored",
        workflow_id=str(workflow.id),
        steps=len(steps),
        failed=batch.failed,
    )

    return GenerateScoresResponse(
        workflow_id=workflow.id,
        workflow_name=workflow.workflow_name,
        scored_steps=len(batch.outcomes) - batch.failed,
        failed_steps=batch.failed,
        results=[outcome_result(o) for o in batch.outcomes],
    )


@router.delete(
    "/reset/{workflow_id}",
    response_model=MessageResponse,
    summary="Reset workflow scores",
    responses={404: {"description": "Workflow not found"}},
)
async def reset_scores(workflow_id: UUID, db: DbSession) -> MessageResponse:
    """Delete the scores of every step of a workflow."""
    workflow = await get_workflow_or_404(workflow_id, db)

    step_ids = select(WorkflowStep.id).where(WorkflowStep.project_workflow_id == workflow.id)
    result = await db.execute(
        delete(StepScore)
        .where(StepScore.workflow_step_id.in_(step_ids))
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    logger.info("Workflow scores reset", workflow_id=str(workflow.id), deleted=result.rowcount)

    return MessageResponse(message=f"Deleted {result.rowcount} scores")


# ==========================================================================
# Rollups
# ==========================================================================

@router.get(
    "/workflow/{workflow_id}",
    response_model=WorkflowScoresResponse,
    summary="Workflow scores",
    responses={404: {"description": "Workflow not found"}},
)
async def get_workflow_scores(workflow_id: UUID, db: DbSession) -> WorkflowScoresResponse:
    """Scores of a workflow in step order, with average and tier percentages."""
    workflow = await get_workflow_or_404(workflow_id, db)

    result = await db.execute(
        select(StepScore, WorkflowStep.step_number, WorkflowStep.step_name)
        .join(WorkflowStep, StepScore.workflow_step_id == WorkflowStep.id)
        .where(WorkflowStep.project_workflow_id == workflow.id)
        .order_by(WorkflowStep.step_number)
    )
    rows = [
        WorkflowScoreRow(
            id=score.id,
            workflow_step_id=score.workflow_step_id,
            step_number=step_number,
            step_name=step_name,
            rule_based_score=score.rule_based_score,
            data_availability_score=score.data_availability_score,
            exception_frequency_score=score.exception_frequency_score,
            auditability_score=score.auditability_score,
            speed_sensitivity_score=score.speed_sensitivity_score,
            composite_score=score.composite_score,
            candidate_tier=score.candidate_tier,
            score_rationale=score.score_rationale,
        )
        for score, step_number, step_name in result.all()
    ]

    counts = tier_counts(r.candidate_tier for r in rows)

    return WorkflowScoresResponse(
        workflow_id=workflow.id,
        workflow_name=workflow.workflow_name,
        total_scored_steps=len(rows),
        average_composite_score=average_composite([r.composite_score for r in rows]),
        tier_distribution=TierDistribution(**tier_percentages(counts)),
        scores=rows,
    )


@router.get(
    "/project/{project_id}",
    response_model=ProjectScoresResponse,
    summary="Project scores",
    responses={404: {"description": "Project not found"}},
)
async def get_project_scores(project_id: UUID, db: DbSession) -> ProjectScoresResponse:
    """Per-workflow score rollups and the engagement-level average."""
    project = await get_project_or_404(project_id, db)
    rollups = await load_workflow_rollups(db, project.id)
    totals = engagement_totals(rollups)

    return ProjectScoresResponse(
        project_id=project.id,
        project_name=project.name,
        client_name=project.client_name,
        engagement_level=EngagementLevel(
            avg_composite_score=totals.average_composite,
            total_scored_steps=totals.scored_steps,
            tier_distribution=TierDistribution(**totals.tiers),
        ),
        workflows=[
            ProjectWorkflowScores(
                id=r.id,
                workflow_index=r.workflow_index,
                workflow_name=r.workflow_name,
                status=r.status,
                scored_steps=r.scored_steps,
                avg_composite=r.avg_composite,
                autonomous_count=r.tiers["autonomous"],
                human_in_loop_count=r.tiers["human_in_loop"],
                human_only_count=r.tiers["human_only"],
            )
            for r in rollups
        ],
    )
