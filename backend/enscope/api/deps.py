"""
Enscope - API Dependencies
==========================

Shared dependencies for FastAPI endpoints.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from passlib.hash import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from enscope.core.config import Settings, get_settings
from enscope.core.database import get_db
from enscope.core.models import Project, ProjectWorkflow, WorkflowStep
from enscope.core.readiness.llm import ClaudeClient
from enscope.core.readiness.prompts import PromptLibrary


# ==========================================================================
# Passphrase Utilities
# ==========================================================================

def hash_passphrase(passphrase: str) -> str:
    """Hash a project passphrase using bcrypt."""
    return bcrypt.hash(passphrase)


def verify_passphrase(passphrase: str, passphrase_hash: str) -> bool:
    """Verify a passphrase against its stored hash."""
    return bcrypt.verify(passphrase, passphrase_hash)


# ==========================================================================
# Service Dependencies
# ==========================================================================

def get_llm(request: Request) -> ClaudeClient:
    """Claude client created in the application lifespan."""
    llm: Optional[ClaudeClient] = getattr(request.app.state, "llm", None)
    if llm is None:
        raise RuntimeError("LLM client is not initialized; the application lifespan has not run")
    return llm


def get_prompt_library(
    settings: Annotated[Settings, Depends(get_settings)],
) -> PromptLibrary:
    return PromptLibrary(settings.PROMPTS_DIR)


# ==========================================================================
# Lookups
# ==========================================================================

async def get_project_or_404(project_id: UUID, db: AsyncSession) -> Project:
    """Get project by ID or raise 404."""
    result = await db.execute(select(Project).where(Project.id == project_id))
    project = result.scalar_one_or_none()

    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )

    return project


async def get_workflow_or_404(workflow_id: UUID, db: AsyncSession) -> ProjectWorkflow:
    """Get workflow by ID or raise 404."""
    result = await db.execute(select(ProjectWorkflow).where(ProjectWorkflow.id == workflow_id))
    workflow = result.scalar_one_or_none()

    if not workflow:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workflow not found",
        )

    return workflow


async def get_step_or_404(step_id: UUID, db: AsyncSession) -> WorkflowStep:
    """Get step by ID or raise 404."""
    result = await db.execute(select(WorkflowStep).where(WorkflowStep.id == step_id))
    step = result.scalar_one_or_none()

    if not step:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Step not found",
        )

    return step


async def load_steps(db: AsyncSession, workflow_id: UUID) -> list[WorkflowStep]:
    """Steps of a workflow in step order, scores included."""
    result = await db.execute(
        select(WorkflowStep)
        .where(WorkflowStep.project_workflow_id == workflow_id)
        .order_by(WorkflowStep.step_number)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


# ==========================================================================
# Type Aliases for Dependency Injection
# ==========================================================================

# Use these in endpoint signatures for cleaner code
DbSession = Annotated[AsyncSession, Depends(get_db)]
LLM = Annotated[ClaudeClient, Depends(get_llm)]
Prompts = Annotated[PromptLibrary, Depends(get_prompt_library)]
AppSettings = Annotated[Settings, Depends(get_settings)]
