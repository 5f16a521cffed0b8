"""
api.py

REST API layer for the Production Project Workflow Engine.

Framework : FastAPI
Auth      : The authentication provider sits in front of this service and
            forwards the verified identity as request headers:
                X-Actor-Id     — the actor's uid
                X-Actor-Role   — client | staff | admin
                X-Company-Id   — production company scope (optional)
            The get_current_actor dependency turns them into an Actor and
            every endpoint passes that Actor to the relevant use case.

Structure
---------
  Routers (all prefixed under /api/v1)
  ├── /projects                        — create, list, get, update, delete
  │   ├── /{project_id}/staff          — staff assignment
  │   ├── /{project_id}/status         — status workflow
  │   ├── /{project_id}/transitions    — statuses reachable by the actor
  │   ├── /{project_id}/team           — team composition
  │   ├── /{project_id}/comments       — discussion threads & replies
  │   └── /{project_id}/activity       — audit activity log
  └── /me/notifications                — current-actor notification inbox

Error handling
--------------
  NotFoundError          → 404
  AccessDeniedError      → 403  (404 on project reads when
                                 conceal_hidden_projects is enabled)
  CompanyMismatchError   → 403
  InvalidTransitionError → 409
  InvalidRoleError       → 401
  WorkflowError          → 422
  ValueError             → 422
  Unhandled              → 500 (FastAPI default)

Response envelope
-----------------
  Success  : { "data": <payload> }
  Error    : { "detail": "<message>" }

Running
-------
  uvicorn api:app --reload
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

from fastapi import APIRouter, Depends, FastAPI, Header, Path, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_mcp import FastApiMCP
from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import Settings, get_settings
from infrastructure import InMemoryUnitOfWork
from application import (
    # Exceptions
    AccessDeniedError,
    CompanyMismatchError,
    InvalidRoleError,
    InvalidTransitionError,
    NotFoundError,
    WorkflowError,
    # Use-case commands
    AddProjectCommentCommand,
    AssignStaffCommand,
    ChangeProjectStatusCommand,
    CreateProjectCommand,
    ReplyToCommentCommand,
    UpdateProjectCommand,
    # Use-case classes
    AddProjectCommentUseCase,
    AssignStaffUseCase,
    ChangeProjectStatusUseCase,
    CreateProjectUseCase,
    DeleteProjectUseCase,
    GetActivityLogUseCase,
    GetAllowedTransitionsUseCase,
    GetMyNotificationsUseCase,
    GetProjectTeamUseCase,
    GetProjectUseCase,
    ListProjectCommentsUseCase,
    ListProjectsUseCase,
    ReplyToCommentUseCase,
    UpdateProjectUseCase,
    AbstractUnitOfWork,
    actor_from_claims,
)
from model import Actor, Priority

logger = logging.getLogger("projects.api")

T = TypeVar("T")

settings = get_settings()


# ---------------------------------------------------------------------------
# App bootstrap
# ---------------------------------------------------------------------------

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description=(
        "Role-based access and lifecycle workflow for production projects: "
        "permission checks, field-level update filtering, staff assignment, "
        "status transitions, stakeholder notifications and an audit log."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Global exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(NotFoundError)
async def not_found_handler(request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AccessDeniedError)
async def access_denied_handler(request, exc: AccessDeniedError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(CompanyMismatchError)
async def company_mismatch_handler(request, exc: CompanyMismatchError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request, exc: InvalidTransitionError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(InvalidRoleError)
async def invalid_role_handler(request, exc: InvalidRoleError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request, exc: WorkflowError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request, exc: ValueError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_uow() -> AbstractUnitOfWork:
    """Returns the in-memory Unit of Work (no database required)."""
    return InMemoryUnitOfWork()


def get_current_actor(
    x_actor_id: str = Header(..., description="Authenticated actor uid."),
    x_actor_role: str = Header(..., description="One of: client, staff, admin"),
    x_company_id: Optional[str] = Header(default=None),
) -> Actor:
    return actor_from_claims(x_actor_id, x_actor_role, x_company_id)


# ---------------------------------------------------------------------------
# Envelope helpers
# ---------------------------------------------------------------------------

def _ok(data: Any) -> Dict:
    """Wrap a DTO or list of DTOs in the standard success envelope."""
    if dataclasses.is_dataclass(data):
        return {"data": dataclasses.asdict(data)}
    if isinstance(data, list):
        return {
            "data": [
                dataclasses.asdict(item) if dataclasses.is_dataclass(item) else item
                for item in data
            ]
        }
    return {"data": data}


def _conceal_hidden(settings: Settings, call: Callable[[], T]) -> T:
    """
    Run a project read.  When concealment is on, a project the actor may not
    view is reported exactly like a project that does not exist.
    """
    try:
        return call()
    except AccessDeniedError as exc:
        if not settings.conceal_hidden_projects:
            raise
        raise NotFoundError("Project not found.") from exc


# ===========================================================================
# REQUEST BODY SCHEMAS  (Pydantic v2)
# ===========================================================================

class BudgetSchema(BaseModel):
    estimated: float = Field(default=0.0, ge=0.0)
    actual: float = Field(default=0.0, ge=0.0)
    currency: str = Field(default="USD", min_length=3, max_length=3)


class CreateProjectRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    client_id: Optional[str] = Field(
        default=None, description="Owning client (admin-created projects only)."
    )
    company_id: Optional[str] = Field(
        default=None, description="Commissioned company (client requests only)."
    )
    assigned_staff: List[str] = Field(default_factory=list)
    priority: str = Field(default="medium", description="One of: low, medium, high, urgent")
    project_type: str = Field(default="", max_length=100)
    genre: str = Field(default="", max_length=100)
    tags: List[str] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    estimated_hours: float = Field(default=0.0, ge=0.0)
    communication_method: str = Field(default="email", max_length=50)
    budget: Optional[BudgetSchema] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: str) -> str:
        valid = {p.value for p in Priority}
        if v not in valid:
            raise ValueError(f"priority must be one of: {sorted(valid)}")
        return v


class TimelineUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0.0)
    actual_hours: Optional[float] = Field(default=None, ge=0.0)


class CommunicationsUpdate(BaseModel):
    last_client_contact: Optional[datetime] = None
    next_scheduled_call: Optional[datetime] = None
    preferred_contact_method: Optional[str] = Field(default=None, max_length=50)
    client_feedback_status: Optional[str] = Field(default=None, max_length=50)


class PermissionsUpdate(BaseModel):
    view_access: Optional[List[str]] = None
    edit_access: Optional[List[str]] = None
    comment_access: Optional[List[str]] = None
    approval_required: Optional[bool] = None


class UpdateProjectRequest(BaseModel):
    """
    Partial update.  Only keys present in the body are applied; unknown keys
    (including status and ownership fields) are ignored.
    """
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    project_manager: Optional[str] = None
    assigned_staff: Optional[List[str]] = None
    priority: Optional[str] = Field(default=None, description="One of: low, medium, high, urgent")
    project_type: Optional[str] = Field(default=None, max_length=100)
    genre: Optional[str] = Field(default=None, max_length=100)
    tags: Optional[List[str]] = None
    timeline: Optional[TimelineUpdate] = None
    budget: Optional[BudgetSchema] = None
    communications: Optional[CommunicationsUpdate] = None
    permissions: Optional[PermissionsUpdate] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: Optional[str]) -> Optional[str]:
        valid = {p.value for p in Priority}
        if v is not None and v not in valid:
            raise ValueError(f"priority must be one of: {sorted(valid)}")
        return v


class AssignStaffRequest(BaseModel):
    staff_ids: List[str] = Field(..., min_length=1)


class ChangeStatusRequest(BaseModel):
    status: str = Field(
        ...,
        min_length=1,
        description="One of: planning, in_progress, review, completed, cancelled",
    )
    comment: str = Field(default="", max_length=2000)


class AddCommentRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    tags: List[str] = Field(default_factory=list)
    attachments: List[str] = Field(default_factory=list)


class ReplyRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


# ===========================================================================
# ROUTERS
# ===========================================================================

api_v1 = APIRouter(prefix=settings.api_prefix)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

project_router = APIRouter(prefix="/projects", tags=["Projects"])


@project_router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
)
def create_project(
    body: CreateProjectRequest,
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    """
    Clients create a self-service request they own; admins create a project
    in their own company and become its project manager.
    """
    fields = body.model_dump()
    if body.budget is not None:
        fields["budget"] = body.budget.model_dump()
    cmd = CreateProjectCommand(actor=actor, **fields)
    result = CreateProjectUseCase().execute(cmd, uow)
    return _ok(result)


@project_router.get(
    "",
    summary="List the projects visible to the current actor",
)
def list_projects(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    priority: Optional[str] = Query(default=None),
    project_type: Optional[str] = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    """
    Clients see their own projects, staff see projects they are assigned to,
    admins see every project of their company.
    """
    filters = {
        "status": status_filter,
        "priority": priority,
        "project_type": project_type,
    }
    result = ListProjectsUseCase().execute(
        actor, uow, filters={k: v for k, v in filters.items() if v is not None}
    )
    return _ok(result)


@project_router.get(
    "/{project_id}",
    summary="Get a project by ID",
)
def get_project(
    project_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
):
    result = _conceal_hidden(
        settings, lambda: GetProjectUseCase().execute(project_id, actor, uow)
    )
    return _ok(result)


@project_router.patch(
    "/{project_id}",
    summary="Update project fields (filtered by role)",
)
def update_project(
    body: UpdateProjectRequest,
    project_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
):
    """
    Fields the actor's role may not write are silently dropped.  Status is
    changed through /status, never through this endpoint.
    """
    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    cmd = UpdateProjectCommand(project_id=project_id, actor=actor, updates=updates)
    result = UpdateProjectUseCase(settings).execute(cmd, uow)
    return _ok(result)


@project_router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project (company admins only)",
)
def delete_project(
    project_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    DeleteProjectUseCase().execute(project_id, actor, uow)


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

workflow_router = APIRouter(prefix="/projects/{project_id}", tags=["Workflow"])


@workflow_router.post(
    "/staff",
    summary="Assign staff to a project",
)
def assign_staff(
    body: AssignStaffRequest,
    project_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
):
    """
    Additive.  Only staff who were not already on the project are notified.
    """
    cmd = AssignStaffCommand(project_id=project_id, actor=actor, staff_ids=body.staff_ids)
    result = AssignStaffUseCase(settings).execute(cmd, uow)
    return _ok(result)


@workflow_router.post(
    "/status",
    summary="Move a project to a new lifecycle status",
)
def change_status(
    body: ChangeStatusRequest,
    project_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
):
    cmd = ChangeProjectStatusCommand(
        project_id=project_id,
        actor=actor,
        new_status=body.status,
        comment=body.comment,
    )
    result = ChangeProjectStatusUseCase(settings).execute(cmd, uow)
    return _ok(result)


@workflow_router.get(
    "/transitions",
    summary="Statuses the current actor may move the project to",
)
def allowed_transitions(
    project_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
):
    result = _conceal_hidden(
        settings, lambda: GetAllowedTransitionsUseCase().execute(project_id, actor, uow)
    )
    return _ok(result)


# ---------------------------------------------------------------------------
# Team & Collaboration
# ---------------------------------------------------------------------------

collaboration_router = APIRouter(prefix="/projects/{project_id}", tags=["Collaboration"])


@collaboration_router.get(
    "/team",
    summary="List the project's client, manager and staff",
)
def get_team(
    project_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
):
    result = _conceal_hidden(
        settings, lambda: GetProjectTeamUseCase().execute(project_id, actor, uow)
    )
    return _ok(result)


@collaboration_router.get(
    "/comments",
    summary="List discussion threads on a project",
)
def list_comments(
    project_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
    settings: Settings = Depends(get_settings),
):
    result = _conceal_hidden(
        settings, lambda: ListProjectCommentsUseCase().execute(project_id, actor, uow)
    )
    return _ok(result)


@collaboration_router.post(
    "/comments",
    status_code=status.HTTP_201_CREATED,
    summary="Start a discussion thread",
)
def add_comment(
    body: AddCommentRequest,
    project_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    cmd = AddProjectCommentCommand(
        project_id=project_id,
        actor=actor,
        content=body.content,
        tags=body.tags,
        attachments=body.attachments,
    )
    result = AddProjectCommentUseCase().execute(cmd, uow)
    return _ok(result)


@collaboration_router.post(
    "/comments/{comment_id}/replies",
    status_code=status.HTTP_201_CREATED,
    summary="Reply to a discussion thread",
)
def reply_to_comment(
    body: ReplyRequest,
    project_id: str = Path(...),
    comment_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    cmd = ReplyToCommentCommand(
        project_id=project_id,
        comment_id=comment_id,
        actor=actor,
        content=body.content,
    )
    result = ReplyToCommentUseCase().execute(cmd, uow)
    return _ok(result)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

audit_router = APIRouter(prefix="/projects/{project_id}/activity", tags=["Audit"])


@audit_router.get(
    "",
    summary="Activity log of a project (editors only)",
)
def get_activity(
    project_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetActivityLogUseCase().execute(project_id, actor, uow)
    return _ok(result)


# ---------------------------------------------------------------------------
# Me
# ---------------------------------------------------------------------------

me_router = APIRouter(prefix="/me", tags=["My Notifications"])


@me_router.get(
    "/notifications",
    summary="Notification inbox of the current actor",
)
def my_notifications(
    actor: Actor = Depends(get_current_actor),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetMyNotificationsUseCase().execute(actor, uow)
    return _ok(result)


# ---------------------------------------------------------------------------
# Register routers
# ---------------------------------------------------------------------------

api_v1.include_router(project_router)
api_v1.include_router(workflow_router)
api_v1.include_router(collaboration_router)
api_v1.include_router(audit_router)
api_v1.include_router(me_router)

app.include_router(api_v1)


# ===========================================================================
# HEALTH CHECK
# ===========================================================================

@app.get("/health", tags=["Health"], summary="Service health check")
def health():
    return {"status": "ok", "service": settings.app_name, "version": settings.version}


# ---------------------------------------------------------------------------
# MCP Server — exposes all API routes as MCP tools
# Accessible at: http://localhost:8000/mcp
# ---------------------------------------------------------------------------
if settings.mcp_enabled:
    mcp = FastApiMCP(app)
    mcp.mount()


# ---------------------------------------------------------------------------
# OpenAPI tag metadata
# ---------------------------------------------------------------------------

tags_metadata = [
    {
        "name": "Projects",
        "description": (
            "Project CRUD.  Listing is scoped by role, reads are gated by view "
            "access, and updates pass through the role-based field filter."
        ),
    },
    {
        "name": "Workflow",
        "description": (
            "Staff assignment and the status state machine: "
            "planning → in_progress → review → completed, with admin-only "
            "cancellation and restart from cancelled."
        ),
    },
    {
        "name": "Collaboration",
        "description": "Project team view and discussion threads.",
    },
    {
        "name": "Audit",
        "description": "Append-only activity log written by every mutation.",
    },
    {
        "name": "My Notifications",
        "description": "Current-actor notification inbox across all projects.",
    },
]

app.openapi_tags = tags_metadata
