"""
Mermaid flowchart for a workflow.

Start node, one node per step (in step order) colored by automation tier,
optional description / pain-point side nodes, and a straight chain
Start --> Step1 --> ... --> End.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from enscope.core.models import AutomationTier

EMPTY_DIAGRAM = 'graph TD\n  Start["No steps defined"]'

DESCRIPTION_LIMIT = 50
PAIN_POINT_LIMIT = 40

UNSCORED = "null"

TIER_COLORS = {
    AutomationTier.AUTONOMOUS.value: "#28a745",
    AutomationTier.HUMAN_IN_LOOP.value: "#ffc107",
    AutomationTier.HUMAN_ONLY.value: "#dc3545",
    UNSCORED: "#6c757d",
}

TIER_LABELS = {
    AutomationTier.AUTONOMOUS.value: "Autonomous",
    AutomationTier.HUMAN_IN_LOOP.value: "Human-in-Loop",
    AutomationTier.HUMAN_ONLY.value: "Human-Only",
    UNSCORED: "Not Scored",
}

CLASS_DEFS = (
    f"classDef tier_autonomous fill:{TIER_COLORS['autonomous']},stroke:#1e7e34,color:#fff;",
    f"classDef tier_human_in_loop fill:{TIER_COLORS['human_in_loop']},stroke:#e0a800,color:#000;",
    f"classDef tier_human_only fill:{TIER_COLORS['human_only']},stroke:#bd2130,color:#fff;",
    f"classDef tier_null fill:{TIER_COLORS[UNSCORED]},stroke:#5a6268,color:#fff;",
    "classDef description fill:#e7f3ff,stroke:#0066cc,color:#000;",
    "classDef pain fill:#ffe7e7,stroke:#dc3545,color:#000;",
    "classDef start fill:#0066cc,stroke:#004a99,color:#fff;",
    "classDef end fill:#28a745,stroke:#1e7e34,color:#fff;",
    "class Start start;",
    "class End end;",
)


@dataclass(frozen=True)
class DiagramStep:
    step_number: int
    step_name: str = ""
    description: str = ""
    pain_points: str = ""
    composite_score: Optional[int] = None
    candidate_tier: Optional[str] = None


def escape_label(text: str) -> str:
    """Make user text safe inside a quoted Mermaid label."""
    text = " ".join(text.split())
    # "#" first: every later replacement introduces one
    return (
        text.replace("#", "#35;")
        .replace("&", "#amp;")
        .replace('"', "#quot;")
        .replace("<", "#lt;")
        .replace(">", "#gt;")
    )


def truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _tier_key(step: DiagramStep) -> str:
    tier = step.candidate_tier
    if tier is None:
        return UNSCORED
    return getattr(tier, "value", tier)


def build_workflow_diagram(workflow_name: str, steps: Iterable[DiagramStep]) -> str:
    """Render a workflow's steps as a Mermaid `graph TD` definition."""
    ordered = sorted(steps, key=lambda s: s.step_number)
    if not ordered:
        return EMPTY_DIAGRAM

    lines = ["graph TD", f'  Start["{escape_label(workflow_name)}"]']

    for step in ordered:
        node = f"Step{step.step_number}"
        tier = _tier_key(step)
        label = escape_label(step.step_name or f"Step {step.step_number}")

        if step.composite_score is not None:
            label += f"<br/><strong>Score: {step.composite_score}</strong>"
        label += f"<br/><em>{TIER_LABELS[tier]}</em>"
        lines.append(f'  {node}["{label}"]:::tier_{tier}')

        if step.description:
            short = escape_label(truncate(step.description, DESCRIPTION_LIMIT))
            lines.append(f'  {node}_Desc["{short}"]:::description')
            lines.append(f"  {node} --> {node}_Desc")

        if step.pain_points:
            short = escape_label(truncate(step.pain_points, PAIN_POINT_LIMIT))
            lines.append(f'  {node}_Pain["⚠ {short}"]:::pain')
            lines.append(f"  {node} --> {node}_Pain")

    chain = " --> ".join(["  Start"] + [f"Step{s.step_number}" for s in ordered])
    lines.append(f'{chain} --> End["Workflow Complete"]')
    lines.extend(f"  {directive}" for directive in CLASS_DEFS)

    return "\n".join(lines)
