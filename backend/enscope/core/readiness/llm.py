"""
Claude client for guidance, step scoring and report summaries.

Wraps the Anthropic async SDK. Every failure (missing key, transport,
API status, unexpected content, unparseable score payload) surfaces as
`LLMError` so callers can decide between a 500 and a per-item error.
"""

from typing import Any, Optional

import structlog
from anthropic import APIError, AsyncAnthropic

from enscope.core.config import Settings
from enscope.core.exceptions import LLMError
from enscope.core.readiness.scoring import DimensionScores, parse_score_payload

logger = structlog.get_logger()


SCORE_SYSTEM_PROMPT = """You are an expert in IT Operations Management (ITOM) and event management automation.
You will score workflow steps on their automation readiness across 5 dimensions, each on a scale of 1-5.
Return your response as a JSON object with the following structure:
{
  "rule_based_score": <number 1-5>,
  "data_availability_score": <number 1-5>,
  "exception_frequency_score": <number 1-5>,
  "auditability_score": <number 1-5>,
  "speed_sensitivity_score": <number 1-5>,
  "rationale": "<detailed explanation of scores>"
}

Scoring guidance:
- Rule Based: How well-defined and consistent are the decision criteria? (1=very vague, 5=crystal clear rules)
- Data Availability: What percentage and quality of input data is readily available? (1=<20%, 5=>95%)
- Exception Frequency: How often do exceptions/edge cases occur? (1=very frequent, 5=rarely)
- Auditability: How well can decisions be tracked and audited? (1=no audit trail, 5=full traceability)
- Speed Sensitivity: How time-critical is this step? (1=not urgent, 5=seconds matter)"""

REPORT_SYSTEM_PROMPT = """You are an expert in IT Operations Management reporting.
Generate a comprehensive executive summary report for an event management automation assessment.
Be concise but informative, highlighting key findings and recommendations."""

_STEP_FIELDS = (
    ("Step Name", "step_name"),
    ("Description", "description"),
    ("Role/Team", "role_team"),
    ("Trigger Input", "trigger_input"),
    ("Systems/Tools", "systems_tools"),
    ("Decision Points", "decision_points"),
    ("Output/Handoff", "output_handoff"),
    ("Pain Points", "pain_points"),
    ("Time/Effort", "time_effort"),
)


def build_score_message(step: Any, workflow_name: str) -> str:
    """User message asking for the five dimension scores of one step."""
    lines = ["Score this workflow step for automation readiness:"]
    for label, attr in _STEP_FIELDS:
        value = getattr(step, attr, "") or ""
        fallback = "Untitled" if attr == "step_name" else "N/A"
        lines.append(f"{label}: {value or fallback}")
    lines.append(f"Workflow: {workflow_name or 'Unknown'}")
    return "\n".join(lines)


def build_report_message(
    project_name: str,
    client_name: str,
    engagement_type: str,
    workflow_count: int,
    completion_percentage: int,
    readiness_tier: str,
) -> str:
    return "\n".join([
        "Generate an executive summary report for this project:",
        f"Project: {project_name}",
        f"Client: {client_name}",
        f"Engagement Type: {engagement_type}",
        f"Workflows: {workflow_count}",
        f"Average Completion: {completion_percentage}%",
        f"Overall Readiness Tier: {readiness_tier or 'Unknown'}",
    ])


class ClaudeClient:
    """Thin async wrapper around the Anthropic Messages API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        max_tokens: int = 1024,
        report_max_tokens: int = 2048,
        timeout: float = 60.0,
        client: Optional[AsyncAnthropic] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.report_max_tokens = report_max_tokens
        if client is None and api_key:
            client = AsyncAnthropic(api_key=api_key, timeout=timeout)
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClaudeClient":
        return cls(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.ANTHROPIC_MODEL,
            max_tokens=settings.LLM_MAX_TOKENS,
            report_max_tokens=settings.REPORT_MAX_TOKENS,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def generate(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send one system prompt + user message and return the text reply.

        Raises:
            LLMError: If the client is unconfigured or the call fails
        """
        if self._client is None:
            raise LLMError("ANTHROPIC_API_KEY is not configured")

        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens or self.max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            )
        except APIError as e:
            logger.error("Claude API call failed", model=self.model, error=str(e))
            raise LLMError(f"Claude API error: {e}") from e

        for block in response.content:
            if getattr(block, "type", None) == "text":
                return block.text
        raise LLMError("Unexpected response type from Claude")

    async def score_step(self, step: Any, workflow_name: str) -> DimensionScores:
        """Ask Claude for the five dimension scores of a step."""
        text = await self.generate(SCORE_SYSTEM_PROMPT, build_score_message(step, workflow_name))
        return parse_score_payload(text)

    async def generate_report(self, **project_facts: Any) -> str:
        """Executive summary text for the HTML report."""
        return await self.generate(
            REPORT_SYSTEM_PROMPT,
            build_report_message(**project_facts),
            max_tokens=self.report_max_tokens,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
