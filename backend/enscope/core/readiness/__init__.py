"""
Enscope Readiness - assessment logic.

Components:
- scoring: composite, tier and contextual penalty; batch workflow scoring
- gaps: dependency gap RAG summary
- diagrams: Mermaid flowchart of a workflow
- prompts: system prompt assembly for field guidance
- llm: Claude client
- reports: rollups, CSV and HTML export
"""

from enscope.core.readiness.diagrams import DiagramStep, build_workflow_diagram
from enscope.core.readiness.gaps import GapSummary, summarize_gaps
from enscope.core.readiness.llm import ClaudeClient
from enscope.core.readiness.prompts import PromptLibrary
from enscope.core.readiness.scoring import (
    DimensionScores,
    ReadinessScorer,
    ScoreResult,
    aggregate_scores,
    classify_tier,
)

__all__ = [
    "ClaudeClient",
    "DiagramStep",
    "DimensionScores",
    "GapSummary",
    "PromptLibrary",
    "ReadinessScorer",
    "ScoreResult",
    "aggregate_scores",
    "build_workflow_diagram",
    "classify_tier",
    "summarize_gaps",
]
