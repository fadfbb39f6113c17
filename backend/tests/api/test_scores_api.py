"""
Enscope - Scores API Tests
==========================
"""

from uuid import uuid4

from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from enscope.core.models import StepScore
from enscope.core.readiness.scoring import DimensionScores


class TestGenerateScores:
    """Tests for batch scoring of a workflow."""

    async def test_scores_every_step(self, client: AsyncClient, workflow_ids: dict, add_step, fake_llm):
        await add_step(workflow_ids[1], step_name="Receive alert")
        await add_step(workflow_ids[1], step_name="Acknowledge")
        fake_llm.scores["Acknowledge"] = DimensionScores(3, 3, 2, 3, 3, rationale="Some judgement")

        response = await client.post(f"/api/scores/generate/{workflow_ids[1]}")

        assert response.status_code == 200
        data = response.json()
        assert data["scored_steps"] == 2
        assert data["failed_steps"] == 0
        first, second = data["results"]
        assert first["scores"]["composite"] == 20
        assert first["scores"]["tier"] == "autonomous"
        assert second["scores"]["composite"] == 14
        assert second["scores"]["tier"] == "human_in_loop"
        assert second["penalty_applied"] == 0
        assert fake_llm.score_calls == [
            ("Receive alert", "Signal Intake & Event Detection"),
            ("Acknowledge", "Signal Intake & Event Detection"),
        ]

    async def test_partial_failure(self, client: AsyncClient, workflow_ids: dict, add_step, fake_llm):
        """A failing step is reported; the others are still scored."""
        await add_step(workflow_ids[1], step_name="Receive alert")
        await add_step(workflow_ids[1], step_name="Flaky")
        await add_step(workflow_ids[1], step_name="Close")
        fake_llm.failing_steps.add("Flaky")

        response = await client.post(f"/api/scores/generate/{workflow_ids[1]}")

        assert response.status_code == 200
        data = response.json()
        assert data["scored_steps"] == 2
        assert data["failed_steps"] == 1
        failed = data["results"][1]
        assert failed["scores"] is None
        assert "timed out" in failed["error"]

        scores = await client.get(f"/api/scores/workflow/{workflow_ids[1]}")
        assert [s["step_name"] for s in scores.json()["scores"]] == ["Receive alert", "Close"]

    async def test_rescore_replaces(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        workflow_ids: dict,
        add_step,
        fake_llm,
    ):
        """Scoring twice keeps one score per step with the latest values."""
        await add_step(workflow_ids[1], step_name="Receive alert")
        await client.post(f"/api/scores/generate/{workflow_ids[1]}")

        fake_llm.default_scores = DimensionScores(1, 1, 1, 1, 1, rationale="Manual")
        await client.post(f"/api/scores/generate/{workflow_ids[1]}")

        count = await db_session.execute(select(func.count(StepScore.id)))
        assert count.scalar() == 1

        scores = await client.get(f"/api/scores/workflow/{workflow_ids[1]}")
        row = scores.json()["scores"][0]
        assert row["composite_score"] == 5
        assert row["candidate_tier"] == "human_only"
        assert row["score_rationale"] == "Manual"

    async def test_failed_rescore_keeps_previous(
        self, client: AsyncClient, workflow_ids: dict, add_step, fake_llm
    ):
        await add_step(workflow_ids[1], step_name="Receive alert")
        await client.post(f"/api/scores/generate/{workflow_ids[1]}")

        fake_llm.failing_steps.add("Receive alert")
        response = await client.post(f"/api/scores/generate/{workflow_ids[1]}")
        assert response.json()["failed_steps"] == 1

        scores = await client.get(f"/api/scores/workflow/{workflow_ids[1]}")
        assert scores.json()["scores"][0]["composite_score"] == 20

    async def test_contextual_penalty(
        self,
        client: AsyncClient,
        project: dict,
        workflow_ids: dict,
        add_step,
        add_gap,
        fake_llm,
    ):
        """A red CMDB gap on correlation drops a 22 to 18 (human-in-loop)."""
        await add_step(workflow_ids[3], step_name="Correlate events")
        await add_gap(project["id"], 3, "cmdb", "red", "CI relationships missing")
        fake_llm.default_scores = DimensionScores(5, 5, 4, 4, 4)

        response = await client.post(f"/api/scores/generate/{workflow_ids[3]}")

        result = response.json()["results"][0]
        assert result["scores"]["composite"] == 18
        assert result["scores"]["tier"] == "human_in_loop"
        assert result["penalty_applied"] == 4

    async def test_penalty_needs_red_gap(
        self,
        client: AsyncClient,
        project: dict,
        workflow_ids: dict,
        add_step,
        add_gap,
        fake_llm,
    ):
        await add_step(workflow_ids[3], step_name="Correlate events")
        await add_gap(project["id"], 3, "cmdb", "amber")
        await add_gap(project["id"], 3, "observability", "red")
        fake_llm.default_scores = DimensionScores(5, 5, 4, 4, 4)

        response = await client.post(f"/api/scores/generate/{workflow_ids[3]}")

        result = response.json()["results"][0]
        assert result["scores"]["composite"] == 22
        assert result["penalty_applied"] == 0

    async def test_penalty_does_not_apply_elsewhere(
        self,
        client: AsyncClient,
        project: dict,
        workflow_ids: dict,
        add_step,
        add_gap,
    ):
        await add_step(workflow_ids[1], step_name="Receive alert")
        await add_gap(project["id"], 3, "discovery", "red")

        response = await client.post(f"/api/scores/generate/{workflow_ids[1]}")

        assert response.json()["results"][0]["penalty_applied"] == 0

    async def test_no_steps(self, client: AsyncClient, workflow_ids: dict, fake_llm):
        response = await client.post(f"/api/scores/generate/{workflow_ids[1]}")

        assert response.status_code == 400
        assert response.json()["error"] == "Workflow has no steps to score"
        assert fake_llm.score_calls == []

    async def test_unknown_workflow(self, client: AsyncClient):
        response = await client.post(f"/api/scores/generate/{uuid4()}")

        assert response.status_code == 404


class TestScoreRollups:
    """Tests for workflow and project score rollups."""

    async def test_workflow_scores(self, client: AsyncClient, workflow_ids: dict, add_step, fake_llm):
        await add_step(workflow_ids[2], step_name="A")
        await add_step(workflow_ids[2], step_name="B")
        await add_step(workflow_ids[2], step_name="C")
        fake_llm.scores["B"] = DimensionScores(3, 3, 3, 3, 3)
        fake_llm.scores["C"] = DimensionScores(2, 2, 2, 2, 2)
        await client.post(f"/api/scores/generate/{workflow_ids[2]}")

        response = await client.get(f"/api/scores/workflow/{workflow_ids[2]}")

        assert response.status_code == 200
        data = response.json()
        assert data["total_scored_steps"] == 3
        # (20 + 15 + 10) / 3
        assert data["average_composite_score"] == 15
        assert data["tier_distribution"] == {"autonomous": 33, "human_in_loop": 33, "human_only": 33}
        assert [s["step_number"] for s in data["scores"]] == [1, 2, 3]

    async def test_workflow_scores_empty(self, client: AsyncClient, workflow_ids: dict):
        response = await client.get(f"/api/scores/workflow/{workflow_ids[2]}")

        data = response.json()
        assert data["total_scored_steps"] == 0
        assert data["average_composite_score"] == 0
        assert data["tier_distribution"] == {"autonomous": 0, "human_in_loop": 0, "human_only": 0}

    async def test_project_scores(
        self, client: AsyncClient, project: dict, workflow_ids: dict, add_step, fake_llm
    ):
        await add_step(workflow_ids[1], step_name="A")
        await add_step(workflow_ids[2], step_name="B")
        await add_step(workflow_ids[2], step_name="C")
        fake_llm.scores["C"] = DimensionScores(3, 3, 3, 3, 3)
        await client.post(f"/api/scores/generate/{workflow_ids[1]}")
        await client.post(f"/api/scores/generate/{workflow_ids[2]}")

        response = await client.get(f"/api/scores/project/{project['id']}")

        assert response.status_code == 200
        data = response.json()
        engagement = data["engagement_level"]
        # (20 + 20 + 15) / 3
        assert engagement["avg_composite_score"] == 18
        assert engagement["total_scored_steps"] == 3
        assert engagement["tier_distribution"] == {"autonomous": 2, "human_in_loop": 1, "human_only": 0}

        workflows = {w["workflow_index"]: w for w in data["workflows"]}
        assert len(workflows) == 8
        assert workflows[2]["avg_composite"] == 17.5
        assert workflows[2]["autonomous_count"] == 1
        assert workflows[2]["human_in_loop_count"] == 1
        assert workflows[8]["scored_steps"] == 0
        assert workflows[8]["avg_composite"] is None

    async def test_project_scores_unknown(self, client: AsyncClient):
        response = await client.get(f"/api/scores/project/{uuid4()}")

        assert response.status_code == 404


class TestResetScores:

    async def test_reset(self, client: AsyncClient, workflow_ids: dict, add_step):
        await add_step(workflow_ids[1], step_name="A")
        await add_step(workflow_ids[1], step_name="B")
        await add_step(workflow_ids[2], step_name="Other")
        await client.post(f"/api/scores/generate/{workflow_ids[1]}")
        await client.post(f"/api/scores/generate/{workflow_ids[2]}")

        response = await client.delete(f"/api/scores/reset/{workflow_ids[1]}")

        assert response.status_code == 200
        assert response.json()["message"] == "Deleted 2 scores"

        first = await client.get(f"/api/scores/workflow/{workflow_ids[1]}")
        assert first.json()["total_scored_steps"] == 0
        second = await client.get(f"/api/scores/workflow/{workflow_ids[2]}")
        assert second.json()["total_scored_steps"] == 1

    async def test_reset_then_workflow_detail(self, client: AsyncClient, workflow_ids: dict, add_step):
        await add_step(workflow_ids[1], step_name="A")
        await client.post(f"/api/scores/generate/{workflow_ids[1]}")
        await client.delete(f"/api/scores/reset/{workflow_ids[1]}")

        response = await client.get(f"/api/workflows/{workflow_ids[1]}")
        assert response.json()["steps"][0]["score"] is None

    async def test_reset_unknown_workflow(self, client: AsyncClient):
        response = await client.delete(f"/api/scores/reset/{uuid4()}")

        assert response.status_code == 404
