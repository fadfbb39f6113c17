"""
Enscope - Test Fixtures
=======================

Shared pytest fixtures for all tests.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from enscope.api.deps import get_llm
from enscope.api.main import app
from enscope.core.database import Database, get_db
from enscope.core.exceptions import LLMError
from enscope.core.readiness.scoring import DimensionScores


# ==========================================================================
# Test Database Setup
# ==========================================================================

# Use in-memory SQLite for tests (fast)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def database() -> AsyncGenerator[Database, None]:
    """
    Provide a clean in-memory database for each test.

    Creates all tables before test, drops after.
    """
    db = Database(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await db.create_all()

    yield db

    await db.drop_all()
    await db.close()


@pytest_asyncio.fixture(scope="function")
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session_factory() as session:
        yield session


# ==========================================================================
# Fake LLM
# ==========================================================================

class FakeLLM:
    """
    Scripted stand-in for ClaudeClient.

    Step scores are looked up by step name, falling back to `default_scores`.
    Steps named in `failing_steps` raise LLMError, as does every call while
    `error` is set.
    """

    def __init__(self) -> None:
        self.default_scores = DimensionScores(4, 4, 4, 4, 4, rationale="Well-defined step")
        self.scores: dict[str, DimensionScores] = {}
        self.failing_steps: set[str] = set()
        self.error: Optional[str] = None
        self.guidance = "Describe the event sources feeding this step."
        self.report_text = "Executive summary\nReadiness is moderate."
        self.generate_calls: list[tuple[str, str]] = []
        self.score_calls: list[tuple[str, str]] = []
        self.report_calls: list[dict[str, Any]] = []
        self.configured = True

    async def generate(self, system_prompt: str, user_message: str, max_tokens: Optional[int] = None) -> str:
        self.generate_calls.append((system_prompt, user_message))
        if self.error:
            raise LLMError(self.error)
        return self.guidance

    async def score_step(self, step: Any, workflow_name: str) -> DimensionScores:
        self.score_calls.append((step.step_name, workflow_name))
        if self.error:
            raise LLMError(self.error)
        if step.step_name in self.failing_steps:
            raise LLMError(f"Claude API error: scoring '{step.step_name}' timed out")
        return self.scores.get(step.step_name, self.default_scores)

    async def generate_report(self, **project_facts: Any) -> str:
        self.report_calls.append(project_facts)
        if self.error:
            raise LLMError(self.error)
        return self.report_text

    async def close(self) -> None:
        pass


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


# ==========================================================================
# Client Fixture
# ==========================================================================

@pytest_asyncio.fixture(scope="function")
async def client(database: Database, fake_llm: FakeLLM) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide test HTTP client with database and LLM overrides.

    Every request gets its own session, as in production.
    """
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with database.session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm] = lambda: fake_llm

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ==========================================================================
# Project Fixtures
# ==========================================================================

PROJECT_PAYLOAD = {
    "name": "Acme ITOM Assessment",
    "client_name": "Acme Corp",
    "passphrase": "correct horse battery staple",
    "observability_tools": ["Splunk", "Dynatrace"],
}


@pytest_asyncio.fixture
async def project(client: AsyncClient) -> dict:
    """Create a project through the API and return its JSON."""
    response = await client.post("/api/projects", json=PROJECT_PAYLOAD)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def workflow_ids(project: dict) -> dict[int, str]:
    """Workflow IDs of the project keyed by workflow index (1-8)."""
    return {w["workflow_index"]: w["id"] for w in project["workflows"]}


@pytest.fixture
def add_step(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    """Create a step in a workflow; returns the step JSON."""
    async def _add_step(wf_id: str, **fields: str) -> dict:
        response = await client.post(f"/api/workflows/{wf_id}/steps", json=fields)
        assert response.status_code == 201
        return response.json()

    return _add_step


@pytest.fixture
def add_gap(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    """Record a gap for a project; returns the gap JSON."""
    async def _add_gap(
        project_id: str,
        workflow_index: int,
        gap_type: str,
        severity: str,
        description: str = "Gap",
    ) -> dict:
        response = await client.post(
            "/api/gaps",
            json={
                "project_id": project_id,
                "workflow_index": workflow_index,
                "gap_type": gap_type,
                "severity": severity,
                "description": description,
            },
        )
        assert response.status_code == 201
        return response.json()

    return _add_gap
