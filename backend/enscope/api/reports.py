"""
Enscope - Reports API
=====================

Workflow and engagement reports, CSV export and the HTML report.
"""

from typing import Literal
from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import HTMLResponse, Response
from sqlalchemy import select

from enscope.api.deps import LLM, DbSession, get_project_or_404, load_steps
from enscope.api.gaps import project_gaps
from enscope.core.exceptions import LLMError
from enscope.core.models import DependencyGap, ProjectWorkflow
from enscope.core.readiness.gaps import summarize_gaps
from enscope.core.readiness.reports import (
    average_composite,
    engagement_csv,
    engagement_totals,
    gaps_csv,
    load_workflow_rollups,
    readiness_average,
    render_html_report,
    tier_counts,
    workflows_csv,
)
from enscope.core.readiness.scoring import classify_tier
from enscope.core.schemas import (
    EngagementReportResponse,
    EngagementStatistics,
    EngagementWorkflowRow,
    ReportGap,
    ReportStep,
    ReportStepScores,
    SeverityCounts,
    TierDistribution,
    WorkflowReportResponse,
    WorkflowStatistics,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/projects", tags=["Reports"])


# ==========================================================================
# JSON Reports
# ==========================================================================

@router.get(
    "/{project_id}/workflows/{workflow_index}/report",
    response_model=WorkflowReportResponse,
    summary="Workflow report",
    responses={404: {"description": "Workflow not found"}},
)
async def get_workflow_report(
    project_id: UUID,
    workflow_index: int,
    db: DbSession,
) -> WorkflowReportResponse:
    """Steps with scores, statistics and the gaps recorded against the workflow."""
    result = await db.execute(
        select(ProjectWorkflow).where(
            ProjectWorkflow.project_id == project_id,
            ProjectWorkflow.workflow_index == workflow_index,
        )
    )
    workflow = result.scalar_one_or_none()

    if not workflow:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workflow not found",
        )

    steps = await load_steps(db, workflow.id)
    scores = [s.score for s in steps if s.score is not None]

    gaps = await db.execute(
        select(DependencyGap)
        .where(
            DependencyGap.project_id == project_id,
            DependencyGap.workflow_index == workflow_index,
        )
        .order_by(DependencyGap.identified_at.desc())
    )

    return WorkflowReportResponse(
        workflow_id=workflow.id,
        workflow_index=workflow.workflow_index,
        workflow_name=workflow.workflow_name,
        status=workflow.status,
        statistics=WorkflowStatistics(
            total_steps=len(steps),
            scored_steps=len(scores),
            average_composite=average_composite([s.composite_score for s in scores]),
            tier_distribution=TierDistribution(**tier_counts(s.candidate_tier for s in scores)),
        ),
        steps=[
            ReportStep(
                step_number=s.step_number,
                step_name=s.step_name,
                description=s.description,
                role_team=s.role_team,
                systems_tools=s.systems_tools,
                decision_points=s.decision_points,
                pain_points=s.pain_points,
                scores=ReportStepScores(
                    rule_based=s.score.rule_based_score,
                    data_availability=s.score.data_availability_score,
                    exception_frequency=s.score.exception_frequency_score,
                    auditability=s.score.auditability_score,
                    speed_sensitivity=s.score.speed_sensitivity_score,
                    composite=s.score.composite_score,
                    tier=s.score.candidate_tier,
                    rationale=s.score.score_rationale,
                ) if s.score else None,
            )
            for s in steps
        ],
        dependency_gaps=[ReportGap.model_validate(g) for g in gaps.scalars()],
    )


@router.get(
    "/{project_id}/report",
    response_model=EngagementReportResponse,
    summary="Engagement report",
    responses={404: {"description": "Project not found"}},
)
async def get_engagement_report(project_id: UUID, db: DbSession) -> EngagementReportResponse:
    """Project-wide rollup: statistics, gap summary, tools and per-workflow rows."""
    project = await get_project_or_404(project_id, db)
    rollups = await load_workflow_rollups(db, project.id)
    totals = engagement_totals(rollups)
    gap_summary = summarize_gaps(await project_gaps(db, project.id))

    return EngagementReportResponse(
        project_id=project.id,
        project_name=project.name,
        client_name=project.client_name,
        engagement_type=project.engagement_type,
        created_at=project.created_at,
        statistics=EngagementStatistics(
            total_workflows=totals.total_workflows,
            completed_workflows=totals.completed_workflows,
            total_steps=totals.total_steps,
            completed_steps=totals.completed_steps,
            total_scored_steps=totals.scored_steps,
            average_composite=totals.average_composite,
            tier_distribution=TierDistribution(**totals.tiers),
        ),
        dependency_gaps_summary={
            gap_type: SeverityCounts(**counts) for gap_type, counts in gap_summary.counts.items()
        },
        dimension_status=gap_summary.overall,
        observability_tools=project.tool_names,
        workflows=[
            EngagementWorkflowRow(
                id=r.id,
                workflow_index=r.workflow_index,
                workflow_name=r.workflow_name,
                status=r.status,
                total_steps=r.total_steps,
                completed_steps=r.completed_steps,
                scored_steps=r.scored_steps,
                average_composite=r.rounded_average,
                tier_distribution=TierDistribution(**r.tiers),
            )
            for r in rollups
        ],
    )


# ==========================================================================
# Exports
# ==========================================================================

@router.get(
    "/{project_id}/reports/csv",
    summary="CSV export",
    response_class=Response,
    responses={
        200: {"content": {"text/csv": {}}, "description": "CSV file"},
        404: {"description": "Project not found"},
    },
)
async def export_csv(
    project_id: UUID,
    db: DbSession,
    report_type: Literal["engagement", "workflows", "gaps"] = Query(
        "engagement", alias="type", description="Report to export"
    ),
) -> Response:
    """Export the engagement summary, workflow rollups or gap list as CSV."""
    project = await get_project_or_404(project_id, db)

    if report_type == "gaps":
        content = gaps_csv(await project_gaps(db, project.id))
    elif report_type == "workflows":
        content = workflows_csv(await load_workflow_rollups(db, project.id))
    else:
        rollups = await load_workflow_rollups(db, project.id)
        gap_summary = summarize_gaps(await project_gaps(db, project.id))
        content = engagement_csv(project, engagement_totals(rollups), gap_summary)

    return Response(
        content=content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="enscope-{report_type}-{project.id}.csv"'
        },
    )


@router.get(
    "/{project_id}/reports/html",
    response_class=HTMLResponse,
    summary="HTML report",
    responses={
        404: {"description": "Project not found"},
        500: {"description": "LLM call failed"},
    },
)
@router.get(
    "/{project_id}/reports/pdf",
    response_class=HTMLResponse,
    summary="HTML report (printable)",
    include_in_schema=False,
)
async def export_html(project_id: UUID, db: DbSession, llm: LLM) -> HTMLResponse:
    """
    Standalone HTML report with an LLM-written executive summary.

    Served as an attachment; browsers can print it to PDF.
    """
    project = await get_project_or_404(project_id, db)
    rollups = await load_workflow_rollups(db, project.id)
    totals = engagement_totals(rollups)
    readiness = classify_tier(readiness_average(rollups))

    try:
        report_text = await llm.generate_report(
            project_name=project.name,
            client_name=project.client_name,
            engagement_type=project.engagement_type,
            workflow_count=totals.total_workflows,
            completion_percentage=totals.completion_percentage,
            readiness_tier=readiness.value,
        )
    except LLMError as e:
        logger.error("Report generation failed", project_id=str(project.id), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate report: {e}",
        ) from e

    html = render_html_report(project, rollups, project.tool_names, report_text)

    return HTMLResponse(
        content=html,
        headers={
            "Content-Disposition": f'attachment; filename="enscope-report-{project.id}.html"'
        },
    )
