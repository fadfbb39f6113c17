"""
Enscope - Workflows API
=======================

Workflow details, step CRUD and workflow status.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, status
from sqlalchemy import func, select

from enscope.api.deps import (
    DbSession,
    get_step_or_404,
    get_workflow_or_404,
    load_steps,
)
from enscope.core.models import ProjectWorkflow, WorkflowStatus, WorkflowStep
from enscope.core.schemas import (
    MessageResponse,
    StepCreate,
    StepResponse,
    StepUpdate,
    StepWithScore,
    WorkflowDetail,
    WorkflowResponse,
    WorkflowStatusUpdate,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/workflows", tags=["Workflows"])


# ==========================================================================
# Steps
# ==========================================================================

@router.put(
    "/steps/{step_id}",
    response_model=StepResponse,
    summary="Update step",
    responses={404: {"description": "Step not found"}},
)
async def update_step(
    step_id: UUID,
    data: StepUpdate,
    db: DbSession,
) -> StepResponse:
    """
    Update the interview fields of a step.

    Omitted fields keep their value. The first edit of a step moves its
    workflow from `not_started` to `in_progress`.
    """
    step = await get_step_or_404(step_id, db)

    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(step, field, value if value is not None else "")

    workflow = await db.get(ProjectWorkflow, step.project_workflow_id)
    if changes and workflow is not None and workflow.status == WorkflowStatus.NOT_STARTED:
        workflow.status = WorkflowStatus.IN_PROGRESS

    await db.commit()
    await db.refresh(step)

    return StepResponse.model_validate(step)


@router.delete(
    "/steps/{step_id}",
    response_model=MessageResponse,
    summary="Delete step",
    responses={404: {"description": "Step not found"}},
)
async def delete_step(step_id: UUID, db: DbSession) -> MessageResponse:
    """Delete a step and its score."""
    step = await get_step_or_404(step_id, db)

    await db.delete(step)
    await db.commit()

    return MessageResponse(message="Step deleted successfully")


# ==========================================================================
# Workflows
# ==========================================================================

@router.get(
    "/{workflow_id}",
    response_model=WorkflowDetail,
    summary="Get workflow",
    responses={404: {"description": "Workflow not found"}},
)
async def get_workflow(workflow_id: UUID, db: DbSession) -> WorkflowDetail:
    """Get a workflow with all its steps in step order, each with its score."""
    workflow = await get_workflow_or_404(workflow_id, db)
    steps = await load_steps(db, workflow.id)

    return WorkflowDetail(
        id=workflow.id,
        project_id=workflow.project_id,
        workflow_index=workflow.workflow_index,
        workflow_name=workflow.workflow_name,
        status=workflow.status,
        updated_at=workflow.updated_at,
        steps=[StepWithScore.model_validate(s) for s in steps],
    )


@router.post(
    "/{workflow_id}/steps",
    response_model=StepResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create step",
    responses={404: {"description": "Workflow not found"}},
)
async def create_step(
    workflow_id: UUID,
    data: StepCreate,
    db: DbSession,
) -> StepResponse:
    """Append a step; its number is one more than the current highest."""
    workflow = await get_workflow_or_404(workflow_id, db)

    result = await db.execute(
        select(func.max(WorkflowStep.step_number)).where(
            WorkflowStep.project_workflow_id == workflow.id
        )
    )
    next_number = (result.scalar() or 0) + 1

    step = WorkflowStep(
        project_workflow_id=workflow.id,
        step_number=next_number,
        **data.model_dump(),
    )
    db.add(step)
    await db.commit()
    await db.refresh(step)

    return StepResponse.model_validate(step)


@router.put(
    "/{workflow_id}/status",
    response_model=WorkflowResponse,
    summary="Update workflow status",
    responses={
        400: {"description": "Invalid status"},
        404: {"description": "Workflow not found"},
    },
)
async def update_workflow_status(
    workflow_id: UUID,
    data: WorkflowStatusUpdate,
    db: DbSession,
) -> WorkflowResponse:
    """Set the workflow status (not_started, in_progress or complete)."""
    workflow = await get_workflow_or_404(workflow_id, db)

    old_status = workflow.status
    workflow.status = data.status
    await db.commit()
    await db.refresh(workflow)

    logger.info(
        "Workflow status changed",
        workflow_id=str(workflow.id),
        from_status=old_status.value,
        to_status=workflow.status.value,
    )

    return WorkflowResponse.model_validate(workflow)
