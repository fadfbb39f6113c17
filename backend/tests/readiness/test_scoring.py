"""
Enscope - Scoring Tests
=======================

Composite, tier boundaries, contextual penalty and score payload parsing.
"""

from dataclasses import dataclass

import pytest

from enscope.core.config import PenaltyRule, Settings
from enscope.core.exceptions import LLMError, ScoreParseError
from enscope.core.models import AutomationTier
from enscope.core.readiness.scoring import (
    DimensionScores,
    aggregate_scores,
    classify_tier,
    contextual_penalty,
    extract_json_object,
    parse_score_payload,
)


@dataclass
class Gap:
    workflow_index: int
    gap_type: str
    severity: str


DEFAULT_RULES = Settings().SCORE_PENALTY_RULES


def dims_summing_to_22() -> DimensionScores:
    return DimensionScores(5, 5, 4, 4, 4)


# ==========================================================================
# Tier Classification
# ==========================================================================

class TestClassifyTier:
    """Tier boundaries at 20 and 13."""

    @pytest.mark.parametrize(
        "composite, tier",
        [
            (25, AutomationTier.AUTONOMOUS),
            (20, AutomationTier.AUTONOMOUS),
            (19, AutomationTier.HUMAN_IN_LOOP),
            (13, AutomationTier.HUMAN_IN_LOOP),
            (12, AutomationTier.HUMAN_ONLY),
            (0, AutomationTier.HUMAN_ONLY),
        ],
    )
    def test_boundaries(self, composite: int, tier: AutomationTier):
        assert classify_tier(composite) == tier

    def test_fractional_average(self):
        """Averages just under a boundary stay in the lower tier."""
        assert classify_tier(19.9) == AutomationTier.HUMAN_IN_LOOP
        assert classify_tier(12.5) == AutomationTier.HUMAN_ONLY


# ==========================================================================
# Dimension Scores
# ==========================================================================

class TestDimensionScores:
    """Building dimension scores from an LLM payload."""

    def test_raw_composite_range(self):
        assert DimensionScores(1, 1, 1, 1, 1).raw_composite == 5
        assert DimensionScores(5, 5, 5, 5, 5).raw_composite == 25

    def test_from_payload_clamps_out_of_range(self):
        scores = DimensionScores.from_payload({
            "rule_based_score": 0,
            "data_availability_score": 9,
            "exception_frequency_score": -3,
            "auditability_score": 5,
            "speed_sensitivity_score": 1,
        })

        assert scores.as_tuple() == (1, 5, 1, 5, 1)

    def test_from_payload_accepts_numeric_strings_and_floats(self):
        scores = DimensionScores.from_payload({
            "rule_based_score": "4",
            "data_availability_score": 3.6,
            "exception_frequency_score": 2,
            "auditability_score": "5",
            "speed_sensitivity_score": 1.2,
            "rationale": "Clear runbook",
        })

        assert scores.as_tuple() == (4, 4, 2, 5, 1)
        assert scores.rationale == "Clear runbook"

    def test_missing_dimension_raises(self):
        with pytest.raises(ScoreParseError):
            DimensionScores.from_payload({"rule_based_score": 3})

    @pytest.mark.parametrize("bad", ["high", None, True, [3]])
    def test_non_numeric_dimension_raises(self, bad):
        payload = {
            "rule_based_score": bad,
            "data_availability_score": 3,
            "exception_frequency_score": 3,
            "auditability_score": 3,
            "speed_sensitivity_score": 3,
        }
        with pytest.raises(ScoreParseError):
            DimensionScores.from_payload(payload)

    def test_parse_error_is_an_llm_error(self):
        assert issubclass(ScoreParseError, LLMError)


# ==========================================================================
# Contextual Penalty
# ==========================================================================

class TestContextualPenalty:
    """Red CMDB/discovery gaps on workflows 3 and 5 weaken both workflows."""

    def test_red_cmdb_gap_on_workflow_3_penalizes_workflow_3(self):
        result = aggregate_scores(
            dims_summing_to_22(), 3, [Gap(3, "cmdb", "red")], DEFAULT_RULES
        )

        assert result.raw_composite == 22
        assert result.penalty == 4
        assert result.composite == 18
        assert result.tier == AutomationTier.HUMAN_IN_LOOP

    @pytest.mark.parametrize(
        "gap_workflow, scored_workflow",
        [(3, 3), (3, 5), (5, 3), (5, 5)],
    )
    def test_default_rules_cover_workflows_3_and_5(self, gap_workflow, scored_workflow):
        gaps = [Gap(gap_workflow, "discovery", "red")]
        assert contextual_penalty(scored_workflow, gaps, DEFAULT_RULES) == 4

    def test_amber_gap_does_not_penalize(self):
        assert contextual_penalty(3, [Gap(3, "cmdb", "amber")], DEFAULT_RULES) == 0

    def test_observability_gap_does_not_penalize(self):
        assert contextual_penalty(3, [Gap(3, "observability", "red")], DEFAULT_RULES) == 0

    def test_gap_on_other_workflow_does_not_penalize(self):
        assert contextual_penalty(3, [Gap(4, "cmdb", "red")], DEFAULT_RULES) == 0

    def test_other_scored_workflow_is_not_penalized(self):
        assert contextual_penalty(4, [Gap(3, "cmdb", "red")], DEFAULT_RULES) == 0

    def test_penalties_do_not_stack(self):
        gaps = [Gap(3, "cmdb", "red"), Gap(5, "discovery", "red"), Gap(3, "discovery", "red")]
        assert contextual_penalty(5, gaps, DEFAULT_RULES) == 4

    def test_largest_matching_rule_wins(self):
        rules = [
            PenaltyRule(gap_workflow_index=2, scored_workflow_index=2, penalty=2),
            PenaltyRule(gap_workflow_index=2, scored_workflow_index=2, penalty=6),
        ]
        assert contextual_penalty(2, [Gap(2, "cmdb", "red")], rules) == 6

    def test_rule_gap_types_and_severity_are_configurable(self):
        rules = [
            PenaltyRule(
                gap_workflow_index=1,
                scored_workflow_index=2,
                penalty=3,
                gap_types=["observability"],
                severity="amber",
            )
        ]
        assert contextual_penalty(2, [Gap(1, "observability", "amber")], rules) == 3
        assert contextual_penalty(2, [Gap(1, "observability", "red")], rules) == 0

    def test_composite_never_negative(self):
        rules = [PenaltyRule(gap_workflow_index=1, scored_workflow_index=1, penalty=10)]
        result = aggregate_scores(DimensionScores(1, 1, 1, 1, 1), 1, [Gap(1, "cmdb", "red")], rules)

        assert result.composite == 0
        assert result.tier == AutomationTier.HUMAN_ONLY

    def test_rescoring_does_not_double_subtract(self):
        gaps = [Gap(3, "cmdb", "red")]
        first = aggregate_scores(dims_summing_to_22(), 3, gaps, DEFAULT_RULES)
        second = aggregate_scores(dims_summing_to_22(), 3, gaps, DEFAULT_RULES)

        assert first == second
        assert second.composite == 18


# ==========================================================================
# Payload Extraction
# ==========================================================================

PAYLOAD = (
    '{"rule_based_score": 4, "data_availability_score": 3, '
    '"exception_frequency_score": 2, "auditability_score": 5, '
    '"speed_sensitivity_score": 4, "rationale": "Mostly rule driven"}'
)


class TestExtractJson:
    """Tolerant extraction of the first JSON object in a reply."""

    def test_object_surrounded_by_prose(self):
        text = f"Here are the scores:\n```json\n{PAYLOAD}\n```\nLet me know."
        assert extract_json_object(text)["auditability_score"] == 5

    def test_skips_brace_text_that_is_not_json(self):
        text = "Scores {see below} follow: " + PAYLOAD
        assert extract_json_object(text)["rule_based_score"] == 4

    def test_first_object_wins(self):
        text = '{"first": 1} and {"second": 2}'
        assert extract_json_object(text) == {"first": 1}

    def test_nested_braces_in_strings(self):
        text = '{"rationale": "uses {placeholders}", "n": 1}'
        assert extract_json_object(text)["rationale"] == "uses {placeholders}"

    @pytest.mark.parametrize("text", ["", "no json here", "[1, 2, 3]", "{broken"])
    def test_no_object_raises(self, text: str):
        with pytest.raises(ScoreParseError):
            extract_json_object(text)

    def test_parse_score_payload(self):
        scores = parse_score_payload("Result: " + PAYLOAD)

        assert scores.as_tuple() == (4, 3, 2, 5, 4)
        assert scores.raw_composite == 18
        assert scores.rationale == "Mostly rule driven"
