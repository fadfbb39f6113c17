"""
Readiness Reports - rollups and export rendering.

Per-workflow rollups come from a single aggregate query (steps LEFT JOIN
scores, grouped by workflow). Project-level figures are weighted by the
number of scored steps of each workflow. Rendering helpers produce the
CSV exports and the standalone HTML report.
"""

import csv
import io
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from html import escape
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from enscope.core.models import (
    AutomationTier,
    ProjectWorkflow,
    StepScore,
    WorkflowStatus,
    WorkflowStep,
)
from enscope.core.readiness.diagrams import TIER_LABELS
from enscope.core.readiness.gaps import GapSummary
from enscope.core.readiness.scoring import classify_tier

TIERS: tuple[str, ...] = tuple(tier.value for tier in AutomationTier)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def tier_counts(tiers: Iterable[Any]) -> dict[str, int]:
    counts = {tier: 0 for tier in TIERS}
    for tier in tiers:
        counts[AutomationTier(tier).value] += 1
    return counts


def tier_percentages(counts: dict[str, int]) -> dict[str, int]:
    total = sum(counts.values())
    if total == 0:
        return {tier: 0 for tier in TIERS}
    return {tier: round_half_up(counts.get(tier, 0) / total * 100) for tier in TIERS}


def average_composite(composites: Sequence[int]) -> int:
    if not composites:
        return 0
    return round_half_up(sum(composites) / len(composites))


# ==========================================================================
# Workflow rollups
# ==========================================================================

@dataclass(frozen=True)
class WorkflowRollup:
    """Step and score counts of one workflow."""

    id: UUID
    workflow_index: int
    workflow_name: str
    status: WorkflowStatus
    total_steps: int = 0
    completed_steps: int = 0
    scored_steps: int = 0
    avg_composite: Optional[float] = None
    tiers: dict[str, int] = field(default_factory=lambda: {tier: 0 for tier in TIERS})

    @property
    def rounded_average(self) -> int:
        return round_half_up(self.avg_composite) if self.avg_composite is not None else 0

    @property
    def is_complete(self) -> bool:
        return self.status == WorkflowStatus.COMPLETE


async def load_workflow_rollups(db: AsyncSession, project_id: UUID) -> list[WorkflowRollup]:
    """Rollup of every workflow of a project, in workflow order."""
    tier_sums = [
        func.sum(case((StepScore.candidate_tier == tier, 1), else_=0))
        for tier in AutomationTier
    ]
    query = (
        select(
            ProjectWorkflow.id,
            ProjectWorkflow.workflow_index,
            ProjectWorkflow.workflow_name,
            ProjectWorkflow.status,
            func.count(WorkflowStep.id),
            func.sum(case((WorkflowStep.step_name != "", 1), else_=0)),
            func.count(StepScore.id),
            func.avg(StepScore.composite_score),
            *tier_sums,
        )
        .outerjoin(WorkflowStep, WorkflowStep.project_workflow_id == ProjectWorkflow.id)
        .outerjoin(StepScore, StepScore.workflow_step_id == WorkflowStep.id)
        .where(ProjectWorkflow.project_id == project_id)
        .group_by(ProjectWorkflow.id)
        .order_by(ProjectWorkflow.workflow_index)
    )
    result = await db.execute(query)

    rollups = []
    for row in result.all():
        (wf_id, index, name, status, total, completed, scored, avg, *tiers) = row
        rollups.append(
            WorkflowRollup(
                id=wf_id,
                workflow_index=index,
                workflow_name=name,
                status=WorkflowStatus(status),
                total_steps=total or 0,
                completed_steps=completed or 0,
                scored_steps=scored or 0,
                avg_composite=float(avg) if avg is not None else None,
                tiers={tier: count or 0 for tier, count in zip(TIERS, tiers)},
            )
        )
    return rollups


@dataclass(frozen=True)
class EngagementTotals:
    """Project-level figures summed over workflow rollups."""

    total_workflows: int
    completed_workflows: int
    total_steps: int
    completed_steps: int
    scored_steps: int
    average_composite: int
    tiers: dict[str, int]

    @property
    def completion_percentage(self) -> int:
        if self.total_workflows == 0:
            return 0
        return round_half_up(self.completed_workflows / self.total_workflows * 100)


def engagement_totals(rollups: Sequence[WorkflowRollup]) -> EngagementTotals:
    composite_sum = 0.0
    scored = 0
    tiers = {tier: 0 for tier in TIERS}

    for rollup in rollups:
        if rollup.scored_steps and rollup.avg_composite is not None:
            composite_sum += rollup.avg_composite * rollup.scored_steps
            scored += rollup.scored_steps
        for tier in TIERS:
            tiers[tier] += rollup.tiers.get(tier, 0)

    return EngagementTotals(
        total_workflows=len(rollups),
        completed_workflows=sum(1 for r in rollups if r.is_complete),
        total_steps=sum(r.total_steps for r in rollups),
        completed_steps=sum(r.completed_steps for r in rollups),
        scored_steps=scored,
        average_composite=round_half_up(composite_sum / scored) if scored else 0,
        tiers=tiers,
    )


def readiness_average(rollups: Sequence[WorkflowRollup]) -> float:
    """Mean of workflow averages; unscored workflows count as 0."""
    if not rollups:
        return 0.0
    return sum(r.avg_composite or 0.0 for r in rollups) / len(rollups)


# ==========================================================================
# CSV export
# ==========================================================================

def render_csv(header: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def engagement_csv(project: Any, totals: EngagementTotals, gaps: GapSummary) -> str:
    rows: list[tuple[str, Any]] = [
        ("Project", project.name),
        ("Client", project.client_name),
        ("Engagement Type", project.engagement_type),
        ("Total Workflows", totals.total_workflows),
        ("Completed Workflows", totals.completed_workflows),
        ("Completion Percentage", totals.completion_percentage),
        ("Total Steps", totals.total_steps),
        ("Completed Steps", totals.completed_steps),
        ("Scored Steps", totals.scored_steps),
        ("Average Composite", totals.average_composite),
    ]
    rows.extend((f"{TIER_LABELS[tier]} Steps", totals.tiers[tier]) for tier in TIERS)
    rows.extend(
        (f"{gap_type.upper()} Status", status.value)
        for gap_type, status in gaps.overall.items()
    )
    return render_csv(("Metric", "Value"), rows)


def workflows_csv(rollups: Iterable[WorkflowRollup]) -> str:
    header = (
        "Workflow Index",
        "Workflow Name",
        "Status",
        "Total Steps",
        "Completed Steps",
        "Scored Steps",
        "Average Composite",
        *(TIER_LABELS[tier] for tier in TIERS),
    )
    rows = (
        (
            r.workflow_index,
            r.workflow_name,
            r.status.value,
            r.total_steps,
            r.completed_steps,
            r.scored_steps,
            r.rounded_average,
            *(r.tiers[tier] for tier in TIERS),
        )
        for r in rollups
    )
    return render_csv(header, rows)


def gaps_csv(gaps: Iterable[Any]) -> str:
    header = ("Workflow Index", "Gap Type", "Severity", "Description", "Identified At")
    rows = (
        (
            gap.workflow_index,
            getattr(gap.gap_type, "value", gap.gap_type),
            getattr(gap.severity, "value", gap.severity),
            gap.description,
            gap.identified_at.isoformat() if gap.identified_at else "",
        )
        for gap in gaps
    )
    return render_csv(header, rows)


# ==========================================================================
# HTML report
# ==========================================================================

_REPORT_STYLE = """
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0; padding: 40px; color: #333; }
    .header { margin-bottom: 40px; border-bottom: 3px solid #0066cc; padding-bottom: 20px; }
    h1 { margin: 0; color: #0066cc; font-size: 28px; }
    .subtitle { color: #666; margin-top: 5px; }
    .date { color: #999; font-size: 12px; margin-top: 10px; }
    .metrics { display: grid; grid-template-columns: 1fr 1fr 1fr; gap: 20px; margin-bottom: 40px; }
    .metric-card { background: #f5f5f5; padding: 20px; border-radius: 8px; border-left: 4px solid #0066cc; }
    .metric-label { font-size: 12px; color: #666; text-transform: uppercase; margin-bottom: 5px; }
    .metric-value { font-size: 28px; font-weight: bold; color: #0066cc; }
    .section { margin-bottom: 40px; }
    .section h2 { color: #0066cc; border-bottom: 2px solid #0066cc; padding-bottom: 10px; }
    table { width: 100%; border-collapse: collapse; }
    th { background: #f5f5f5; padding: 12px; text-align: left; border-bottom: 2px solid #ddd; }
    td { padding: 12px; border-bottom: 1px solid #ddd; }
    .status-complete { color: #28a745; font-weight: bold; }
    .status-in_progress { color: #ffc107; font-weight: bold; }
    .status-not_started { color: #999; }
    .report-text { background: #f9f9f9; padding: 20px; border-radius: 8px; line-height: 1.6; }
    .tools { display: flex; flex-wrap: wrap; gap: 10px; }
    .tool-badge { background: #e7f3ff; color: #0066cc; padding: 6px 12px; border-radius: 20px; font-size: 12px; }
    .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #ddd; color: #999; font-size: 12px; text-align: center; }
"""


def _workflow_row(rollup: WorkflowRollup) -> str:
    average = str(rollup.rounded_average) if rollup.avg_composite is not None else "N/A"
    status = rollup.status.value
    return (
        "<tr>"
        f"<td><strong>{escape(rollup.workflow_name)}</strong></td>"
        f'<td><span class="status-{status}">{status.replace("_", " ")}</span></td>'
        f"<td>{rollup.total_steps}</td>"
        f"<td>{average}</td>"
        "</tr>"
    )


def render_html_report(
    project: Any,
    rollups: Sequence[WorkflowRollup],
    tools: Sequence[str],
    report_text: str,
    generated_on: Optional[date] = None,
) -> str:
    """Standalone HTML engagement report; all interpolated text is escaped."""
    generated_on = generated_on or date.today()
    completion = engagement_totals(rollups).completion_percentage
    average = readiness_average(rollups)
    tier_label = TIER_LABELS[classify_tier(average).value]

    summary = "<br>".join(escape(line) for line in report_text.split("\n"))
    rows = "\n".join(_workflow_row(r) for r in rollups)

    tools_section = ""
    if tools:
        badges = "".join(f'<span class="tool-badge">{escape(t)}</span>' for t in tools)
        tools_section = (
            '<div class="section">\n'
            "  <h2>Observability Tools</h2>\n"
            f'  <div class="tools">{badges}</div>\n'
            "</div>"
        )

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>Enscope Report - {escape(project.name)}</title>
  <style>{_REPORT_STYLE}</style>
</head>
<body>
  <div class="header">
    <h1>{escape(project.name)}</h1>
    <p class="subtitle">{escape(project.client_name)} | {escape(project.engagement_type)}</p>
    <p class="date">Generated: {generated_on.isoformat()}</p>
  </div>

  <div class="metrics">
    <div class="metric-card">
      <div class="metric-label">Workflow Completion</div>
      <div class="metric-value">{completion}%</div>
    </div>
    <div class="metric-card">
      <div class="metric-label">Average Automation Readiness</div>
      <div class="metric-value">{round_half_up(average)}</div>
    </div>
    <div class="metric-card">
      <div class="metric-label">Readiness Tier</div>
      <div class="metric-value">{tier_label}</div>
    </div>
  </div>

  <div class="section">
    <h2>Executive Summary</h2>
    <div class="report-text">{summary}</div>
  </div>

  <div class="section">
    <h2>Workflow Status</h2>
    <table>
      <thead>
        <tr><th>Workflow</th><th>Status</th><th>Steps</th><th>Avg Readiness</th></tr>
      </thead>
      <tbody>
{rows}
      </tbody>
    </table>
  </div>

  {tools_section}

  <div class="footer">
    <p>Enscope - IT Automation Assessment Platform</p>
  </div>
</body>
</html>
"""
