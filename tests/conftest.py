"""
Shared fixtures: a fresh in-memory database per test, a set of actors
spread over two production companies, and project factories.
"""

import os

# The MCP mount is not needed under test and must be off before api.py is imported.
os.environ.setdefault("PROJECTS_MCP_ENABLED", "false")

import pytest

from application import CreateProjectCommand, CreateProjectUseCase
from config import Settings
from infrastructure import InMemoryDatabase, InMemoryUnitOfWork
from model import Actor, Project, ProjectPermissions, ProjectStatus, Role


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def uow(db):
    return InMemoryUnitOfWork(db)


@pytest.fixture
def settings():
    return Settings(mcp_enabled=False)


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------

@pytest.fixture
def client_actor():
    return Actor(id="client-1", role=Role.CLIENT, company_id="studio-1")


@pytest.fixture
def other_client():
    return Actor(id="client-2", role=Role.CLIENT, company_id="studio-1")


@pytest.fixture
def admin():
    return Actor(id="admin-1", role=Role.ADMIN, company_id="studio-1")


@pytest.fixture
def foreign_admin():
    return Actor(id="admin-2", role=Role.ADMIN, company_id="studio-2")


@pytest.fixture
def staff():
    return Actor(id="staff-1", role=Role.STAFF, company_id="studio-1")


@pytest.fixture
def other_staff():
    return Actor(id="staff-2", role=Role.STAFF, company_id="studio-1")


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@pytest.fixture
def make_project():
    """Build an unsaved project owned by client-1 in studio-1, managed by admin-1."""

    def _make(**overrides) -> Project:
        fields = dict(
            name="Brand Film",
            client_id="client-1",
            company_id="studio-1",
            project_manager="admin-1",
            status=ProjectStatus.PLANNING,
            permissions=ProjectPermissions(
                view_access={"client-1", "admin-1"},
                edit_access={"admin-1"},
                comment_access={"client-1", "admin-1"},
            ),
        )
        fields.update(overrides)
        return Project(**fields)

    return _make


@pytest.fixture
def create_project(uow):
    """Create and persist a project through the use case; returns its DTO."""

    def _create(actor: Actor, name: str = "Brand Film", **kwargs):
        cmd = CreateProjectCommand(actor=actor, name=name, **kwargs)
        return CreateProjectUseCase().execute(cmd, uow)

    return _create
