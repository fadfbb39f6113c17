"""
Enscope - Projects API
======================

Project creation, passphrase join, project details and the dashboard.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import func, select

from enscope.api.deps import (
    AppSettings,
    DbSession,
    get_project_or_404,
    hash_passphrase,
    verify_passphrase,
)
from enscope.core.models import (
    WORKFLOW_NAMES,
    ObservabilityTool,
    Project,
    ProjectWorkflow,
    StepScore,
    WorkflowStep,
)
from enscope.core.readiness.reports import load_workflow_rollups, round_half_up
from enscope.core.schemas import (
    CompletionStats,
    DashboardResponse,
    DashboardScores,
    DashboardWorkflow,
    MessageResponse,
    ProjectCreate,
    ProjectJoin,
    ProjectListItem,
    ProjectResponse,
    ProjectUpdate,
    WorkflowSummary,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/projects", tags=["Projects"])


# ==========================================================================
# Helper Functions
# ==========================================================================

def project_response(project: Project) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        name=project.name,
        client_name=project.client_name,
        engagement_type=project.engagement_type,
        team_members=project.team_members or [],
        created_at=project.created_at,
        workflows=[WorkflowSummary.model_validate(w) for w in project.workflows],
        observability_tools=project.tool_names,
    )


async def reload_project(db, project_id: UUID) -> Project:
    """Re-read a project so its eager relationships reflect the last commit."""
    result = await db.execute(
        select(Project)
        .where(Project.id == project_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


def _clean_tools(tools: list[str]) -> list[str]:
    return [t.strip() for t in tools if t and t.strip()]


# ==========================================================================
# Project CRUD
# ==========================================================================

@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create project",
    responses={
        201: {"description": "Project created with its eight workflows"},
        400: {"description": "Missing required fields"},
    },
)
async def create_project(
    data: ProjectCreate,
    db: DbSession,
    settings: AppSettings,
) -> ProjectResponse:
    """
    Create a project.

    The eight fixed workflows are created with status `not_started` and the
    passphrase is stored as a bcrypt hash.
    """
    project = Project(
        name=data.name,
        client_name=data.client_name,
        engagement_type=data.engagement_type or settings.DEFAULT_ENGAGEMENT_TYPE,
        team_members=data.team_members,
        passphrase_hash=hash_passphrase(data.passphrase),
    )
    project.workflows = [
        ProjectWorkflow(workflow_index=index, workflow_name=name)
        for index, name in enumerate(WORKFLOW_NAMES, start=1)
    ]
    project.observability_tools = [
        ObservabilityTool(tool_name=tool) for tool in _clean_tools(data.observability_tools)
    ]

    db.add(project)
    await db.commit()

    logger.info("Project created", project_id=str(project.id), name=project.name)

    return project_response(await reload_project(db, project.id))


@router.post(
    "/join",
    response_model=ProjectResponse,
    summary="Join project",
    responses={
        200: {"description": "Passphrase accepted"},
        401: {"description": "Invalid passphrase"},
        404: {"description": "Project not found"},
    },
)
async def join_project(
    data: ProjectJoin,
    db: DbSession,
) -> ProjectResponse:
    """
    Join a project by name and passphrase.

    There are no sessions; a successful join only returns the project.
    """
    result = await db.execute(
        select(Project).where(Project.name == data.name).order_by(Project.created_at.desc())
    )
    candidates = result.scalars().all()

    if not candidates:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )

    for project in candidates:
        if verify_passphrase(data.passphrase, project.passphrase_hash):
            logger.info("Project joined", project_id=str(project.id))
            return project_response(project)

    logger.warning("Invalid passphrase for project", name=data.name)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid passphrase",
    )


@router.get(
    "",
    response_model=list[ProjectListItem],
    summary="List projects",
)
async def list_projects(db: DbSession) -> list[ProjectListItem]:
    """List projects, newest first."""
    result = await db.execute(select(Project).order_by(Project.created_at.desc()))
    return [ProjectListItem.model_validate(p) for p in result.scalars().all()]


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Get project",
    responses={404: {"description": "Project not found"}},
)
async def get_project(project_id: UUID, db: DbSession) -> ProjectResponse:
    """Get project details with workflows and tools."""
    project = await get_project_or_404(project_id, db)
    return project_response(project)


@router.put(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Update project",
    responses={404: {"description": "Project not found"}},
)
async def update_project(
    project_id: UUID,
    data: ProjectUpdate,
    db: DbSession,
) -> ProjectResponse:
    """
    Update project details.

    Only provided fields are changed. A provided tool list replaces the
    current tools. The passphrase cannot be changed.
    """
    project = await get_project_or_404(project_id, db)

    update_data = data.model_dump(exclude_unset=True, exclude={"observability_tools"})
    for field, value in update_data.items():
        if value is not None:
            setattr(project, field, value)

    if data.observability_tools is not None:
        project.observability_tools = [
            ObservabilityTool(tool_name=tool) for tool in _clean_tools(data.observability_tools)
        ]

    await db.commit()

    return project_response(await reload_project(db, project.id))


@router.delete(
    "/{project_id}",
    response_model=MessageResponse,
    summary="Delete project",
    responses={404: {"description": "Project not found"}},
)
async def delete_project(project_id: UUID, db: DbSession) -> MessageResponse:
    """Delete a project with all its workflows, steps, scores, tools and gaps."""
    project = await get_project_or_404(project_id, db)

    await db.delete(project)
    await db.commit()

    logger.info("Project deleted", project_id=str(project_id))

    return MessageResponse(message="Project deleted successfully")


# ==========================================================================
# Dashboard
# ==========================================================================

@router.get(
    "/{project_id}/dashboard",
    response_model=DashboardResponse,
    summary="Project dashboard",
    responses={404: {"description": "Project not found"}},
)
async def get_dashboard(project_id: UUID, db: DbSession) -> DashboardResponse:
    """
    Dashboard data: workflow progress and score overview.

    A step counts as completed once it has a name. Completion percentage is
    the share of workflows marked complete.
    """
    project = await get_project_or_404(project_id, db)
    rollups = await load_workflow_rollups(db, project.id)

    complete = sum(1 for r in rollups if r.is_complete)
    total = len(rollups)

    score_result = await db.execute(
        select(func.avg(StepScore.composite_score), func.count(StepScore.id))
        .join(WorkflowStep, StepScore.workflow_step_id == WorkflowStep.id)
        .join(ProjectWorkflow, WorkflowStep.project_workflow_id == ProjectWorkflow.id)
        .where(ProjectWorkflow.project_id == project.id)
    )
    avg_score, scored = score_result.one()

    return DashboardResponse(
        project=ProjectListItem.model_validate(project),
        workflows=[
            DashboardWorkflow(
                id=r.id,
                workflow_index=r.workflow_index,
                workflow_name=r.workflow_name,
                status=r.status,
                step_count=r.total_steps,
                completed_steps=r.completed_steps,
            )
            for r in rollups
        ],
        observability_tools=project.tool_names,
        completion=CompletionStats(
            percentage=round_half_up(complete / total * 100) if total else 0,
            complete_workflows=complete,
            total_workflows=total,
        ),
        scores=DashboardScores(
            average_composite=round_half_up(float(avg_score)) if avg_score is not None else 0,
            total_scored_steps=scored or 0,
        ),
    )


@router.get(
    "/{project_id}/workflows",
    response_model=list[WorkflowSummary],
    summary="List project workflows",
    responses={404: {"description": "Project not found"}},
)
async def list_project_workflows(project_id: UUID, db: DbSession) -> list[WorkflowSummary]:
    """The eight workflows of a project in workflow order."""
    project = await get_project_or_404(project_id, db)
    return [WorkflowSummary.model_validate(w) for w in project.workflows]
