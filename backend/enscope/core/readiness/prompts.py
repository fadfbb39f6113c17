"""
System prompt assembly for field-level guidance.

The prompt is four blocks in fixed order: global guidance, workflow
context, workflow-specific guidance, closing instruction. Guidance texts
are read from PROMPTS_DIR when present there, otherwise the built-in
defaults below are used.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Optional

GLOBAL_PROMPT_FILE = "global-system-context.txt"
WORKFLOW_PROMPT_FILE = "workflow-{index}.txt"

DEFAULT_GLOBAL_PROMPT = """You are an expert in IT Operations Management (ITOM) and event management automation.
Your role is to provide guidance on automating IT event and incident management workflows.
Consider the following when making recommendations:
- Automation readiness based on rule clarity, data availability, and exception frequency
- Risk and compliance implications
- Integration with existing CMDB, discovery tools, and observability platforms
- Team capabilities and training requirements
- Gradual automation path (human_only -> human_in_loop -> autonomous)"""

DEFAULT_WORKFLOW_PROMPTS: dict[int, str] = {
    1: """Focus on signal intake and event detection:
- How clear are event sources and detection rules?
- What's the coverage of monitoring across infrastructure?
- Are there gaps in observability?""",
    2: """Focus on triage and classification:
- How well-defined are triage criteria?
- What enrichment data is available?
- Are classification rules consistent?""",
    3: """Focus on correlation and context enrichment:
- How accessible is context data (CMDB, discovery)?
- Can events be reliably correlated?
- What tools are used for enrichment?""",
    4: """Focus on assignment and coordination:
- How clear are escalation rules?
- What team structures exist?
- How is work assigned and tracked?""",
    5: """Focus on diagnosis and resolution:
- How well-documented are runbooks?
- What systems can automate remediation?
- How reliable are resolution steps?""",
    6: """Focus on escalation and major incident management:
- What defines a major incident?
- How are stakeholders notified?
- What escalation paths exist?""",
    7: """Focus on verification and closure:
- How is resolution verified?
- What verification steps are automated?
- How are false positives handled?""",
    8: """Focus on post-incident review and learning:
- How are lessons captured?
- What metrics are tracked?
- How are improvements implemented?""",
}


class PromptLibrary:
    """Guidance texts keyed by workflow index, with file overrides."""

    def __init__(self, prompts_dir: Optional[str | Path] = None):
        self.prompts_dir = Path(prompts_dir) if prompts_dir else None

    def _read(self, filename: str) -> Optional[str]:
        if self.prompts_dir is None:
            return None
        path = self.prompts_dir / filename
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def global_prompt(self) -> str:
        text = self._read(GLOBAL_PROMPT_FILE)
        return text if text is not None else DEFAULT_GLOBAL_PROMPT

    def workflow_prompt(self, workflow_index: int) -> str:
        text = self._read(WORKFLOW_PROMPT_FILE.format(index=workflow_index))
        if text is not None:
            return text
        return DEFAULT_WORKFLOW_PROMPTS.get(workflow_index, "")

    def assemble(
        self,
        workflow_index: int,
        field_name: str,
        tools: Sequence[str] = (),
        workflow_name: str = "",
    ) -> str:
        """Build the system prompt for guidance on one interview field."""
        tools_list = ", ".join(tools) if tools else "None specified"

        return (
            f"{self.global_prompt()}\n"
            "\n"
            "WORKFLOW CONTEXT:\n"
            f"Workflow: {workflow_name or f'Workflow {workflow_index}'}\n"
            f"Field Being Completed: {field_name}\n"
            f"Available Tools: {tools_list}\n"
            "\n"
            "WORKFLOW-SPECIFIC GUIDANCE:\n"
            f"{self.workflow_prompt(workflow_index)}\n"
            "\n"
            f'Provide targeted guidance for filling in the "{field_name}" field '
            "considering the workflow and available tools."
        )


def build_assist_message(
    field_name: str,
    field_value: Optional[str] = None,
    context: Optional[dict[str, Optional[str]]] = None,
) -> str:
    """User message for a guidance request, with the other filled-in fields."""
    message = f'Please provide guidance for the "{field_name}" field.\n'
    if field_value:
        message += f'Current value: "{field_value}"\n'
    if context:
        message += "\nContext from other fields:\n"
        for key, value in context.items():
            if value:
                message += f"- {key}: {value}\n"
    message += "\nProvide specific, actionable guidance for this field."
    return message
