"""
Enscope - Diagrams API
======================

Mermaid flowchart of a workflow.
"""

from uuid import UUID

from fastapi import APIRouter

from enscope.api.deps import DbSession, get_workflow_or_404, load_steps
from enscope.core.readiness.diagrams import DiagramStep, build_workflow_diagram
from enscope.core.schemas import DiagramResponse

router = APIRouter(prefix="/diagrams", tags=["Diagrams"])


@router.get(
    "/workflow/{workflow_id}",
    response_model=DiagramResponse,
    summary="Workflow diagram",
    responses={404: {"description": "Workflow not found"}},
)
async def get_workflow_diagram(workflow_id: UUID, db: DbSession) -> DiagramResponse:
    """Mermaid `graph TD` definition of the workflow, steps colored by tier."""
    workflow = await get_workflow_or_404(workflow_id, db)
    steps = await load_steps(db, workflow.id)

    diagram = build_workflow_diagram(
        workflow.workflow_name,
        [
            DiagramStep(
                step_number=s.step_number,
                step_name=s.step_name,
                description=s.description,
                pain_points=s.pain_points,
                composite_score=s.score.composite_score if s.score else None,
                candidate_tier=s.score.candidate_tier.value if s.score else None,
            )
            for s in steps
        ],
    )

    return DiagramResponse(
        workflow_id=workflow.id,
        workflow_index=workflow.workflow_index,
        workflow_name=workflow.workflow_name,
        status=workflow.status,
        total_steps=len(steps),
        mermaid_diagram=diagram,
    )
