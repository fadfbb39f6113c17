"""
Enscope - AI API
================

Field-level interview guidance and ad-hoc step scoring.
"""

import structlog
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from enscope.api.deps import LLM, AppSettings, DbSession, Prompts, get_project_or_404
from enscope.core.exceptions import LLMError
from enscope.core.models import DependencyGap, GapSeverity, ProjectWorkflow
from enscope.core.readiness.prompts import build_assist_message
from enscope.core.readiness.scoring import aggregate_scores
from enscope.core.schemas import (
    AssistRequest,
    AssistResponse,
    GapFlag,
    ScoreStepRequest,
    ScoreStepResponse,
    StepScoreValues,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/ai", tags=["AI"])


@router.post(
    "/assist",
    response_model=AssistResponse,
    summary="Field guidance",
    responses={
        400: {"description": "Missing required fields"},
        404: {"description": "Project not found"},
        500: {"description": "LLM call failed"},
    },
)
async def assist(
    data: AssistRequest,
    db: DbSession,
    llm: LLM,
    prompts: Prompts,
    settings: AppSettings,
) -> AssistResponse:
    """
    Guidance for one interview field.

    The system prompt combines global and workflow-specific guidance with the
    project's observability tools. The most recent red gaps of the project
    are returned alongside as flags.
    """
    project = await get_project_or_404(data.project_id, db)

    result = await db.execute(
        select(ProjectWorkflow.workflow_name).where(
            ProjectWorkflow.project_id == project.id,
            ProjectWorkflow.workflow_index == data.workflow_index,
        )
    )
    workflow_name = result.scalar_one_or_none() or f"Workflow {data.workflow_index}"
    tools = project.tool_names

    system_prompt = prompts.assemble(data.workflow_index, data.field_name, tools, workflow_name)
    user_message = build_assist_message(data.field_name, data.field_value, data.all_step_data)

    try:
        guidance = await llm.generate(system_prompt, user_message)
    except LLMError as e:
        logger.error("Field assistance failed", project_id=str(project.id), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate assistance: {e}",
        ) from e

    gaps = await db.execute(
        select(DependencyGap)
        .where(
            DependencyGap.project_id == project.id,
            DependencyGap.severity == GapSeverity.RED,
        )
        .order_by(DependencyGap.identified_at.desc())
        .limit(settings.MAX_GAP_FLAGS)
    )

    return AssistResponse(
        field_name=data.field_name,
        workflow_index=data.workflow_index,
        guidance=guidance,
        gap_flags=[GapFlag(type=g.gap_type, description=g.description) for g in gaps.scalars()],
        relevant_tools=tools,
    )


@router.post(
    "/score-step",
    response_model=ScoreStepResponse,
    summary="Score step data",
    responses={
        400: {"description": "Missing required fields"},
        500: {"description": "LLM call failed"},
    },
)
async def score_step(data: ScoreStepRequest, llm: LLM) -> ScoreStepResponse:
    """
    Score step data without saving anything.

    No contextual penalty is applied since no project gaps are consulted.
    """
    step = data.step_data

    try:
        dimensions = await llm.score_step(step, data.workflow_data.workflow_name)
    except LLMError as e:
        logger.error("Step scoring failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to score step: {e}",
        ) from e

    result = aggregate_scores(dimensions, data.workflow_data.workflow_index or 0, gaps=[], rules=[])

    return ScoreStepResponse(
        step_id=step.id,
        step_name=step.step_name,
        scores=StepScoreValues(
            rule_based=dimensions.rule_based,
            data_availability=dimensions.data_availability,
            exception_frequency=dimensions.exception_frequency,
            auditability=dimensions.auditability,
            speed_sensitivity=dimensions.speed_sensitivity,
            composite=result.composite,
            tier=result.tier,
        ),
        rationale=dimensions.rationale,
    )
