"""
Enscope - Projects API Tests
============================
"""

from uuid import uuid4

from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from enscope.core.models import (
    WORKFLOW_NAMES,
    DependencyGap,
    ObservabilityTool,
    Project,
    ProjectWorkflow,
    StepScore,
    WorkflowStep,
)


# ==========================================================================
# Create / Join
# ==========================================================================

class TestCreateProject:
    """Tests for project creation."""

    async def test_create_project(self, client: AsyncClient):
        """Creates the project with eight workflows and its tools."""
        response = await client.post(
            "/api/projects",
            json={
                "name": "Globex",
                "client_name": "Globex Inc",
                "passphrase": "s3cret",
                "observability_tools": ["Splunk", " ", "Datadog"],
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Globex"
        assert data["engagement_type"] == "ITOM Event Management"
        assert data["observability_tools"] == ["Splunk", "Datadog"]
        assert [w["workflow_index"] for w in data["workflows"]] == list(range(1, 9))
        assert [w["workflow_name"] for w in data["workflows"]] == list(WORKFLOW_NAMES)
        assert all(w["status"] == "not_started" for w in data["workflows"])
        assert "passphrase" not in data
        assert "passphrase_hash" not in data

    async def test_passphrase_is_hashed(self, client: AsyncClient, db_session: AsyncSession, project: dict):
        result = await db_session.execute(select(Project.passphrase_hash))
        stored = result.scalar_one()

        assert stored != "correct horse battery staple"
        assert stored.startswith("$2")

    async def test_missing_fields(self, client: AsyncClient):
        """Missing required fields return 400 with an error body."""
        response = await client.post("/api/projects", json={"name": "Only a name"})

        assert response.status_code == 400
        data = response.json()
        assert data["status"] == 400
        assert "client_name" in data["error"]
        assert "passphrase" in data["error"]

    async def test_custom_engagement_type(self, client: AsyncClient):
        response = await client.post(
            "/api/projects",
            json={"name": "X", "client_name": "Y", "passphrase": "z", "engagement_type": "ITOM Discovery"},
        )

        assert response.json()["engagement_type"] == "ITOM Discovery"


class TestJoinProject:
    """Tests for joining a project by name and passphrase."""

    async def test_join_success(self, client: AsyncClient, project: dict):
        response = await client.post(
            "/api/projects/join",
            json={"name": project["name"], "passphrase": "correct horse battery staple"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == project["id"]
        assert len(data["workflows"]) == 8
        assert data["observability_tools"] == ["Splunk", "Dynatrace"]

    async def test_join_wrong_passphrase(self, client: AsyncClient, project: dict):
        response = await client.post(
            "/api/projects/join",
            json={"name": project["name"], "passphrase": "wrong"},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid passphrase", "status": 401}

    async def test_join_unknown_project(self, client: AsyncClient):
        response = await client.post(
            "/api/projects/join",
            json={"name": "Nope", "passphrase": "whatever"},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Project not found"

    async def test_join_passphrase_whitespace_is_significant(self, client: AsyncClient):
        """Padding around a passphrase is part of it."""
        await client.post(
            "/api/projects",
            json={"name": "Padded", "client_name": "Initech", "passphrase": "  secret  "},
        )

        stripped = await client.post("/api/projects/join", json={"name": "Padded", "passphrase": "secret"})
        assert stripped.status_code == 401

        exact = await client.post("/api/projects/join", json={"name": "Padded", "passphrase": "  secret  "})
        assert exact.status_code == 200

    async def test_join_name_is_stripped(self, client: AsyncClient, project: dict):
        response = await client.post(
            "/api/projects/join",
            json={"name": f"  {project['name']} ", "passphrase": "correct horse battery staple"},
        )

        assert response.status_code == 200

    async def test_join_missing_passphrase(self, client: AsyncClient):
        response = await client.post("/api/projects/join", json={"name": "Nope"})

        assert response.status_code == 400


# ==========================================================================
# Read / Update / Delete
# ==========================================================================

class TestProjectCrud:

    async def test_list_projects(self, client: AsyncClient, project: dict):
        response = await client.get("/api/projects")

        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == [project["id"]]

    async def test_get_project(self, client: AsyncClient, project: dict):
        response = await client.get(f"/api/projects/{project['id']}")

        assert response.status_code == 200
        assert response.json()["client_name"] == "Acme Corp"

    async def test_get_unknown_project(self, client: AsyncClient):
        response = await client.get(f"/api/projects/{uuid4()}")

        assert response.status_code == 404
        assert response.json() == {"error": "Project not found", "status": 404}

    async def test_invalid_project_id(self, client: AsyncClient):
        response = await client.get("/api/projects/not-a-uuid")

        assert response.status_code == 400

    async def test_update_project(self, client: AsyncClient, project: dict):
        response = await client.put(
            f"/api/projects/{project['id']}",
            json={"client_name": "Acme Holdings", "observability_tools": ["New Relic"]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["client_name"] == "Acme Holdings"
        assert data["name"] == project["name"]
        assert data["observability_tools"] == ["New Relic"]

    async def test_update_keeps_passphrase(self, client: AsyncClient, project: dict):
        await client.put(f"/api/projects/{project['id']}", json={"passphrase": "changed"})

        response = await client.post(
            "/api/projects/join",
            json={"name": project["name"], "passphrase": "correct horse battery staple"},
        )
        assert response.status_code == 200

    async def test_list_project_workflows(self, client: AsyncClient, project: dict):
        response = await client.get(f"/api/projects/{project['id']}/workflows")

        assert response.status_code == 200
        assert len(response.json()) == 8

    async def test_delete_cascades(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        project: dict,
        workflow_ids: dict,
        add_step,
        add_gap,
    ):
        """Deleting a project removes workflows, steps, scores, tools and gaps."""
        await add_step(workflow_ids[1], step_name="Receive alert")
        await add_gap(project["id"], 1, "cmdb", "red")
        await client.post(f"/api/scores/generate/{workflow_ids[1]}")

        response = await client.delete(f"/api/projects/{project['id']}")
        assert response.status_code == 200

        for model in (Project, ProjectWorkflow, WorkflowStep, StepScore, ObservabilityTool, DependencyGap):
            count = await db_session.execute(select(func.count()).select_from(model))
            assert count.scalar() == 0, model.__tablename__

        response = await client.get(f"/api/projects/{project['id']}")
        assert response.status_code == 404


# ==========================================================================
# Dashboard
# ==========================================================================

class TestDashboard:

    async def test_empty_dashboard(self, client: AsyncClient, project: dict):
        response = await client.get(f"/api/projects/{project['id']}/dashboard")

        assert response.status_code == 200
        data = response.json()
        assert data["project"]["id"] == project["id"]
        assert data["completion"] == {"percentage": 0, "complete_workflows": 0, "total_workflows": 8}
        assert data["scores"] == {"average_composite": 0, "total_scored_steps": 0}
        assert data["observability_tools"] == ["Splunk", "Dynatrace"]

    async def test_dashboard_counts(
        self,
        client: AsyncClient,
        project: dict,
        workflow_ids: dict,
        add_step,
        fake_llm,
    ):
        await add_step(workflow_ids[1], step_name="Receive alert")
        await add_step(workflow_ids[1])
        await client.put(f"/api/workflows/{workflow_ids[2]}/status", json={"status": "complete"})
        await client.put(f"/api/workflows/{workflow_ids[3]}/status", json={"status": "complete"})
        await client.post(f"/api/scores/generate/{workflow_ids[1]}")

        response = await client.get(f"/api/projects/{project['id']}/dashboard")
        data = response.json()

        first = data["workflows"][0]
        assert first["step_count"] == 2
        assert first["completed_steps"] == 1
        assert data["completion"]["percentage"] == 25
        assert data["completion"]["complete_workflows"] == 2
        assert data["scores"] == {"average_composite": 20, "total_scored_steps": 2}

    async def test_dashboard_unknown_project(self, client: AsyncClient):
        response = await client.get(f"/api/projects/{uuid4()}/dashboard")

        assert response.status_code == 404
