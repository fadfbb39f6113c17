"""
Enscope - Dependency Gaps API
=============================

CRUD for CMDB / discovery / observability gaps and the RAG summary.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from enscope.api.deps import DbSession, get_project_or_404
from enscope.core.models import DependencyGap
from enscope.core.readiness.gaps import summarize_gaps
from enscope.core.schemas import (
    GapCreate,
    GapListResponse,
    GapResponse,
    GapSummaryResponse,
    GapUpdate,
    MessageResponse,
    SeverityCounts,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/gaps", tags=["Dependency Gaps"])


# ==========================================================================
# Helper Functions
# ==========================================================================

async def get_gap_or_404(gap_id: UUID, db) -> DependencyGap:
    """Get gap by ID or raise 404."""
    result = await db.execute(select(DependencyGap).where(DependencyGap.id == gap_id))
    gap = result.scalar_one_or_none()

    if not gap:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Gap not found",
        )

    return gap


async def project_gaps(db, project_id: UUID) -> list[DependencyGap]:
    """Gaps of a project, most recently identified first."""
    result = await db.execute(
        select(DependencyGap)
        .where(DependencyGap.project_id == project_id)
        .order_by(DependencyGap.identified_at.desc())
    )
    return list(result.scalars().all())


# ==========================================================================
# Endpoints
# ==========================================================================

@router.get(
    "/{project_id}/summary",
    response_model=GapSummaryResponse,
    summary="Gap summary",
    responses={404: {"description": "Project not found"}},
)
async def get_gap_summary(project_id: UUID, db: DbSession) -> GapSummaryResponse:
    """Gap counts per type and severity, and the RAG status of each type."""
    project = await get_project_or_404(project_id, db)
    summary = summarize_gaps(await project_gaps(db, project.id))

    return GapSummaryResponse(
        project_id=project.id,
        summary={gap_type: SeverityCounts(**counts) for gap_type, counts in summary.counts.items()},
        dimension_status=summary.overall,
    )


@router.get(
    "/{project_id}",
    response_model=GapListResponse,
    summary="List gaps",
    responses={404: {"description": "Project not found"}},
)
async def list_gaps(project_id: UUID, db: DbSession) -> GapListResponse:
    """All gaps of a project, most recent first."""
    project = await get_project_or_404(project_id, db)
    gaps = await project_gaps(db, project.id)

    return GapListResponse(
        project_id=project.id,
        total_gaps=len(gaps),
        gaps=[GapResponse.model_validate(g) for g in gaps],
    )


@router.post(
    "",
    response_model=GapResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create gap",
    responses={
        400: {"description": "Missing or invalid fields"},
        404: {"description": "Project not found"},
    },
)
async def create_gap(data: GapCreate, db: DbSession) -> GapResponse:
    """Record a dependency gap against a workflow of a project."""
    project = await get_project_or_404(data.project_id, db)

    gap = DependencyGap(
        project_id=project.id,
        workflow_index=data.workflow_index,
        gap_type=data.gap_type,
        severity=data.severity,
        description=data.description,
    )
    db.add(gap)
    await db.commit()
    await db.refresh(gap)

    logger.info(
        "Dependency gap recorded",
        project_id=str(project.id),
        gap_type=gap.gap_type.value,
        severity=gap.severity.value,
    )

    return GapResponse.model_validate(gap)


@router.put(
    "/{gap_id}",
    response_model=GapResponse,
    summary="Update gap",
    responses={404: {"description": "Gap not found"}},
)
async def update_gap(gap_id: UUID, data: GapUpdate, db: DbSession) -> GapResponse:
    """Update a gap; omitted fields keep their value."""
    gap = await get_gap_or_404(gap_id, db)

    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(gap, field, value)

    await db.commit()
    await db.refresh(gap)

    return GapResponse.model_validate(gap)


@router.delete(
    "/{gap_id}",
    response_model=MessageResponse,
    summary="Delete gap",
    responses={404: {"description": "Gap not found"}},
)
async def delete_gap(gap_id: UUID, db: DbSession) -> MessageResponse:
    gap = await get_gap_or_404(gap_id, db)

    await db.delete(gap)
    await db.commit()

    return MessageResponse(message="Gap deleted successfully")
