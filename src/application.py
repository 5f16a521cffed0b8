"""
application.py

Application layer for the Production Project Workflow Engine.

Overview
--------
The application layer sits between the presentation layer (API / UI) and the
domain / service layer.  It is responsible for:

  1. Defining clean output DTOs (dataclasses) that carry only the data
     the presentation layer needs — no raw domain objects are leaked upward.
  2. Declaring abstract collaborator interfaces (project storage, comment
     storage, notification sink, activity log) so that the application layer
     remains fully persistence-agnostic (implementations live in
     infrastructure.py).
  3. Declaring the UnitOfWork abstraction that groups those collaborators
     under one transactional boundary per request.
  4. Implementing Use Case handlers — one class per user-facing operation —
     that orchestrate permission checks, service calls, storage reads/writes,
     and side-effects (notifications, activity records) in the correct order.

Structure
---------
DTOs
    ProjectDTO, PermissionsDTO, TimelineDTO, BudgetDTO, CommunicationsDTO
    AssignmentResultDTO, ActivityDTO, NotificationDTO
    CommentDTO, CommentReplyDTO, TeamMemberDTO

Collaborator interfaces
    AbstractProjectRepository
    AbstractCommentRepository
    AbstractNotificationSink
    AbstractActivityLog

Unit of Work
    AbstractUnitOfWork

Use Cases
    --- Project lifecycle ---
    CreateProjectUseCase
    ListProjectsUseCase
    GetProjectUseCase
    UpdateProjectUseCase
    AssignStaffUseCase
    ChangeProjectStatusUseCase
    GetAllowedTransitionsUseCase
    DeleteProjectUseCase

    --- Team & collaboration ---
    GetProjectTeamUseCase
    ListProjectCommentsUseCase
    AddProjectCommentUseCase
    ReplyToCommentUseCase

    --- Audit & notifications ---
    GetActivityLogUseCase
    GetMyNotificationsUseCase

Design notes
------------
- Use cases receive commands carrying the acting Actor and return DTOs only.
- Each use case accepts a UnitOfWork at execute() time; use cases that emit
  notifications take the Settings they need in their constructor.
- Every mutating use case appends exactly one ActivityRecord on success and
  none on failure.  All checks run before the first write.
- Notifications are best-effort: a failing send is logged and skipped, and
  never undoes the mutation or its activity record.
- All timestamps flowing out are ISO-8601 strings (UTC) for easy JSON
  serialisation.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from config import Settings
from model import (
    ActivityAction,
    ActivityRecord,
    Actor,
    CommentReply,
    Notification,
    Project,
    ProjectComment,
    Role,
    TeamMember,
)
# Exceptions and actor_from_claims are re-exported here for the API layer.
from service import (
    AccessDeniedError,
    ActivityService,
    CommentService,
    CompanyMismatchError,
    InvalidRoleError,
    InvalidTransitionError,
    NotFoundError,
    NotificationService,
    PermissionService,
    ProjectService,
    StaffAssignmentService,
    StatusWorkflowService,
    TeamService,
    UpdateFilterService,
    WorkflowError,
    actor_from_claims,
    role_policy,
)

logger = logging.getLogger("projects.application")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _fmt(dt: Optional[datetime]) -> Optional[str]:
    """Convert a datetime to an ISO-8601 UTC string, or None."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def _fmt_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


# ===========================================================================
# DTO DEFINITIONS
# ===========================================================================

# ---------------------------------------------------------------------------
# Project DTOs
# ---------------------------------------------------------------------------

@dataclass
class PermissionsDTO:
    view_access: List[str]
    edit_access: List[str]
    comment_access: List[str]
    approval_required: bool


@dataclass
class TimelineDTO:
    start_date: Optional[str]
    end_date: Optional[str]
    estimated_hours: float
    actual_hours: float


@dataclass
class BudgetDTO:
    estimated: float
    actual: float
    currency: str


@dataclass
class CommunicationsDTO:
    last_client_contact: Optional[str]
    next_scheduled_call: Optional[str]
    preferred_contact_method: str
    client_feedback_status: str


@dataclass
class ProjectDTO:
    id: str
    name: str
    description: str
    client_id: Optional[str]
    company_id: Optional[str]
    project_manager: Optional[str]
    assigned_staff: List[str]
    status: str
    priority: str
    permissions: PermissionsDTO
    timeline: TimelineDTO
    budget: BudgetDTO
    communications: CommunicationsDTO
    project_type: str
    genre: str
    tags: List[str]
    created_at: str
    updated_at: str
    completed_at: Optional[str]


@dataclass
class AssignmentResultDTO:
    project: ProjectDTO
    newly_assigned: List[str]


# ---------------------------------------------------------------------------
# Audit & Notification DTOs
# ---------------------------------------------------------------------------

@dataclass
class ActivityDTO:
    id: str
    actor_id: str
    action: str
    project_id: str
    details: Dict[str, Any]
    timestamp: str


@dataclass
class NotificationDTO:
    id: str
    recipient_id: str
    notification_type: str
    title: str
    message: str
    project_id: str
    action_url: str
    created_at: str


# ---------------------------------------------------------------------------
# Collaboration DTOs
# ---------------------------------------------------------------------------

@dataclass
class CommentReplyDTO:
    id: str
    author_id: str
    author_role: str
    content: str
    created_at: str


@dataclass
class CommentDTO:
    id: str
    project_id: str
    author_id: str
    author_role: str
    content: str
    tags: List[str]
    attachments: List[str]
    replies: List[CommentReplyDTO]
    created_at: str


@dataclass
class TeamMemberDTO:
    actor_id: str
    project_role: str
    capabilities: List[str]


# ===========================================================================
# DTO ASSEMBLERS
# ===========================================================================

class _Assembler:
    """Converts domain model instances into DTOs."""

    @staticmethod
    def project(p: Project) -> ProjectDTO:
        return ProjectDTO(
            id=p.id,
            name=p.name,
            description=p.description,
            client_id=p.client_id,
            company_id=p.company_id,
            project_manager=p.project_manager,
            assigned_staff=sorted(p.assigned_staff),
            status=p.status.value,
            priority=p.priority.value,
            permissions=PermissionsDTO(
                view_access=sorted(p.permissions.view_access),
                edit_access=sorted(p.permissions.edit_access),
                comment_access=sorted(p.permissions.comment_access),
                approval_required=p.permissions.approval_required,
            ),
            timeline=TimelineDTO(
                start_date=_fmt_date(p.timeline.start_date),
                end_date=_fmt_date(p.timeline.end_date),
                estimated_hours=p.timeline.estimated_hours,
                actual_hours=p.timeline.actual_hours,
            ),
            budget=BudgetDTO(
                estimated=p.budget.estimated,
                actual=p.budget.actual,
                currency=p.budget.currency,
            ),
            communications=CommunicationsDTO(
                last_client_contact=_fmt(p.communications.last_client_contact),
                next_scheduled_call=_fmt(p.communications.next_scheduled_call),
                preferred_contact_method=p.communications.preferred_contact_method,
                client_feedback_status=p.communications.client_feedback_status,
            ),
            project_type=p.project_type,
            genre=p.genre,
            tags=list(p.tags),
            created_at=_fmt(p.created_at),
            updated_at=_fmt(p.updated_at),
            completed_at=_fmt(p.completed_at),
        )

    @staticmethod
    def activity(a: ActivityRecord) -> ActivityDTO:
        return ActivityDTO(
            id=a.id,
            actor_id=a.actor_id,
            action=a.action.value,
            project_id=a.project_id,
            details=dict(a.details),
            timestamp=_fmt(a.timestamp),
        )

    @staticmethod
    def notification(n: Notification) -> NotificationDTO:
        return NotificationDTO(
            id=n.id,
            recipient_id=n.recipient_id,
            notification_type=n.notification_type.value,
            title=n.title,
            message=n.message,
            project_id=n.project_id,
            action_url=n.action_url,
            created_at=_fmt(n.created_at),
        )

    @staticmethod
    def reply(r: CommentReply) -> CommentReplyDTO:
        return CommentReplyDTO(
            id=r.id,
            author_id=r.author_id,
            author_role=r.author_role.value,
            content=r.content,
            created_at=_fmt(r.created_at),
        )

    @staticmethod
    def comment(c: ProjectComment) -> CommentDTO:
        return CommentDTO(
            id=c.id,
            project_id=c.project_id,
            author_id=c.author_id,
            author_role=c.author_role.value,
            content=c.content,
            tags=list(c.tags),
            attachments=list(c.attachments),
            replies=[_Assembler.reply(r) for r in c.replies],
            created_at=_fmt(c.created_at),
        )

    @staticmethod
    def team_member(m: TeamMember) -> TeamMemberDTO:
        return TeamMemberDTO(
            actor_id=m.actor_id,
            project_role=m.project_role.value,
            capabilities=list(m.capabilities),
        )


# ===========================================================================
# COLLABORATOR INTERFACES
# ===========================================================================

class AbstractProjectRepository(abc.ABC):
    """
    Document storage for projects.  Each call must be atomic per document;
    serialising concurrent read-modify-write cycles on one project is the
    implementation's responsibility.
    """
    @abc.abstractmethod
    def get(self, project_id: str) -> Optional[Project]: ...
    @abc.abstractmethod
    def create(self, project: Project) -> Project: ...
    @abc.abstractmethod
    def update(self, project_id: str, fields: Mapping[str, Any]) -> Project: ...
    @abc.abstractmethod
    def query(self, filter_spec: Mapping[str, Any]) -> List[Project]: ...
    @abc.abstractmethod
    def delete(self, project_id: str) -> None: ...


class AbstractCommentRepository(abc.ABC):
    @abc.abstractmethod
    def get(self, comment_id: str) -> Optional[ProjectComment]: ...
    @abc.abstractmethod
    def list_for_project(self, project_id: str) -> List[ProjectComment]: ...
    @abc.abstractmethod
    def save(self, comment: ProjectComment) -> None: ...


class AbstractNotificationSink(abc.ABC):
    """Fire-and-forget delivery; failures are the sink's concern."""
    @abc.abstractmethod
    def send(self, notification: Notification) -> None: ...
    @abc.abstractmethod
    def list_for_recipient(self, actor_id: str) -> List[Notification]: ...


class AbstractActivityLog(abc.ABC):
    """Append-only audit sink."""
    @abc.abstractmethod
    def append(self, record: ActivityRecord) -> None: ...
    @abc.abstractmethod
    def list_for_project(self, project_id: str) -> List[ActivityRecord]: ...


# ===========================================================================
# UNIT OF WORK
# ===========================================================================

class AbstractUnitOfWork(abc.ABC):
    """
    Groups all collaborators under a single transactional boundary.
    Use as a context manager:

        with uow:
            uow.projects.update(project_id, fields)
            uow.activities.append(record)
            uow.commit()
    """
    projects: AbstractProjectRepository
    comments: AbstractCommentRepository
    notifications: AbstractNotificationSink
    activities: AbstractActivityLog

    def __enter__(self) -> "AbstractUnitOfWork":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.rollback()
        else:
            self.commit()

    @abc.abstractmethod
    def commit(self) -> None: ...

    @abc.abstractmethod
    def rollback(self) -> None: ...


# ===========================================================================
# SERVICE SINGLETONS (shared across use cases)
# ===========================================================================

_permission_svc = PermissionService()
_filter_svc = UpdateFilterService()
_assignment_svc = StaffAssignmentService(_permission_svc)
_workflow_svc = StatusWorkflowService(_permission_svc)
_project_svc = ProjectService(_permission_svc)
_activity_svc = ActivityService()
_comment_svc = CommentService(_permission_svc)
_team_svc = TeamService()


# ===========================================================================
# USE CASE HELPERS
# ===========================================================================

def _get_project_or_raise(uow: AbstractUnitOfWork, project_id: str) -> Project:
    project = uow.projects.get(project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found.")
    return project


def _get_viewable_project(uow: AbstractUnitOfWork, project_id: str, actor: Actor) -> Project:
    project = _get_project_or_raise(uow, project_id)
    if not _permission_svc.can_view(project, actor):
        logger.warning(f"View denied: project={project_id}, actor={actor.id}")
        raise AccessDeniedError(f"Actor {actor.id} cannot view project {project_id}.")
    return project


def _get_editable_project(uow: AbstractUnitOfWork, project_id: str, actor: Actor) -> Project:
    project = _get_project_or_raise(uow, project_id)
    if not _permission_svc.can_edit(project, actor):
        logger.warning(f"Edit denied: project={project_id}, actor={actor.id}")
        raise AccessDeniedError(
            f"You do not have permission to edit project {project_id}."
        )
    return project


def _dispatch_notifications(
    uow: AbstractUnitOfWork,
    notifications: Iterable[Notification],
) -> int:
    """
    Send each notification independently.  A failing send is logged and
    skipped; the count of successful sends is returned.
    """
    sent = 0
    for notification in notifications:
        try:
            uow.notifications.send(notification)
            sent += 1
        except Exception:
            logger.warning(
                f"Notification delivery failed: recipient={notification.recipient_id}, "
                f"project={notification.project_id}, type={notification.notification_type.value}",
                exc_info=True,
            )
    return sent


# Storage filter that bounds what each role can list.  None means "nothing".
_LIST_SCOPES: Dict[Role, Callable[[Actor], Optional[Dict[str, Any]]]] = {
    Role.CLIENT: lambda actor: {"client_id": actor.id},
    Role.STAFF: lambda actor: {"assigned_staff": actor.id},
    Role.ADMIN: lambda actor: {"company_id": actor.company_id} if actor.company_id else None,
}

_SCOPE_KEYS = frozenset({"client_id", "assigned_staff", "company_id", "project_manager"})


# ===========================================================================
# USE CASES — PROJECT LIFECYCLE
# ===========================================================================

@dataclass
class CreateProjectCommand:
    actor: Actor
    name: str
    description: str = ""
    client_id: Optional[str] = None
    company_id: Optional[str] = None
    assigned_staff: List[str] = field(default_factory=list)
    priority: str = "medium"
    project_type: str = ""
    genre: str = ""
    tags: List[str] = field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    estimated_hours: float = 0.0
    communication_method: str = "email"
    budget: Optional[Dict[str, Any]] = None


class CreateProjectUseCase:
    """
    Create a project from a client self-service request or an admin's direct
    creation.  The project starts in PLANNING.
    """

    def execute(self, cmd: CreateProjectCommand, uow: AbstractUnitOfWork) -> ProjectDTO:
        data = {k: v for k, v in vars(cmd).items() if k != "actor"}
        with uow:
            project = _project_svc.create_project(data, cmd.actor)
            project = uow.projects.create(project)
            uow.activities.append(
                _activity_svc.record(
                    cmd.actor,
                    ActivityAction.PROJECT_CREATED,
                    project.id,
                    project_name=project.name,
                    project_type=project.project_type,
                    client_id=project.client_id,
                )
            )
            uow.commit()
            logger.info(f"Project created: project={project.id}, actor={cmd.actor.id}")
            return _Assembler.project(project)


class ListProjectsUseCase:
    """
    Role-scoped listing.  Caller filters can only narrow the result: any
    scope key they pass is replaced by the actor's own scope.
    """

    def execute(
        self,
        actor: Actor,
        uow: AbstractUnitOfWork,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[ProjectDTO]:
        scope = role_policy(_LIST_SCOPES, actor)(actor)
        if scope is None:
            logger.info(f"Actor {actor.id} has no company scope; no projects listed")
            return []
        narrowing = {k: v for k, v in (filters or {}).items() if k not in _SCOPE_KEYS}
        with uow:
            projects = uow.projects.query({**narrowing, **scope})
            projects.sort(key=lambda p: p.created_at, reverse=True)
            return [_Assembler.project(p) for p in projects]


class GetProjectUseCase:
    def execute(self, project_id: str, actor: Actor, uow: AbstractUnitOfWork) -> ProjectDTO:
        with uow:
            return _Assembler.project(_get_viewable_project(uow, project_id, actor))


@dataclass
class UpdateProjectCommand:
    project_id: str
    actor: Actor
    updates: Dict[str, Any] = field(default_factory=dict)


class UpdateProjectUseCase:
    """
    Apply a field update after the role filter.  Fields the actor may not
    write are dropped; an update that ends up empty is still written (and
    audited) as a no-op.  Staff added through assigned_staff are notified
    the same way as through AssignStaffUseCase.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or Settings()
        self._notifications = NotificationService(settings.action_url_template)

    def execute(self, cmd: UpdateProjectCommand, uow: AbstractUnitOfWork) -> ProjectDTO:
        with uow:
            project = _get_editable_project(uow, cmd.project_id, cmd.actor)
            allowed = _filter_svc.filter_update(cmd.updates, cmd.actor, project)
            fields = _project_svc.apply_update(project, allowed, cmd.actor)
            newly_assigned: List[str] = []
            if "assigned_staff" in fields:
                newly_assigned = [
                    s for s in allowed["assigned_staff"] or []
                    if s not in project.assigned_staff
                ]
            updated = uow.projects.update(project.id, fields)
            details: Dict[str, Any] = {
                "updated_fields": sorted(k for k in fields if k != "updated_at"),
                "project_name": project.name,
            }
            if newly_assigned:
                details["newly_assigned"] = list(dict.fromkeys(newly_assigned))
            uow.activities.append(
                _activity_svc.record(
                    cmd.actor, ActivityAction.PROJECT_UPDATED, project.id, **details
                )
            )
            uow.commit()
            _dispatch_notifications(
                uow, self._notifications.assignment_notifications(updated, newly_assigned)
            )
            return _Assembler.project(updated)


@dataclass
class AssignStaffCommand:
    project_id: str
    actor: Actor
    staff_ids: List[str] = field(default_factory=list)


class AssignStaffUseCase:
    """
    Add staff to a project, notify only those who were not already assigned,
    then record the assignment.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or Settings()
        self._notifications = NotificationService(settings.action_url_template)

    def execute(self, cmd: AssignStaffCommand, uow: AbstractUnitOfWork) -> AssignmentResultDTO:
        with uow:
            project = _get_project_or_raise(uow, cmd.project_id)
            result = _assignment_svc.assign_staff(project, cmd.staff_ids, cmd.actor)
            updated = uow.projects.update(
                project.id,
                {
                    "assigned_staff": result.project.assigned_staff,
                    "permissions": result.project.permissions,
                    "updated_at": result.project.updated_at,
                },
            )
            _dispatch_notifications(
                uow,
                self._notifications.assignment_notifications(updated, result.newly_assigned),
            )
            uow.activities.append(
                _activity_svc.record(
                    cmd.actor,
                    ActivityAction.STAFF_ASSIGNED,
                    project.id,
                    assigned_staff=list(cmd.staff_ids),
                    newly_assigned=list(result.newly_assigned),
                    project_name=project.name,
                )
            )
            uow.commit()
            logger.info(
                f"Staff assigned: project={project.id}, actor={cmd.actor.id}, "
                f"newly_assigned={result.newly_assigned}"
            )
            return AssignmentResultDTO(
                project=_Assembler.project(updated),
                newly_assigned=list(result.newly_assigned),
            )


@dataclass
class ChangeProjectStatusCommand:
    project_id: str
    actor: Actor
    new_status: str
    comment: str = ""


class ChangeProjectStatusUseCase:
    """
    Move a project along the status workflow, record the change, then notify
    every stakeholder except the actor.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or Settings()
        self._notifications = NotificationService(settings.action_url_template)

    def execute(self, cmd: ChangeProjectStatusCommand, uow: AbstractUnitOfWork) -> ProjectDTO:
        with uow:
            project = _get_project_or_raise(uow, cmd.project_id)
            changed = _workflow_svc.change_status(project, cmd.new_status, cmd.actor)
            updated = uow.projects.update(
                project.id,
                {
                    "status": changed.status,
                    "completed_at": changed.completed_at,
                    "timeline": changed.timeline,
                    "updated_at": changed.updated_at,
                },
            )
            uow.activities.append(
                _activity_svc.record(
                    cmd.actor,
                    ActivityAction.STATUS_CHANGED,
                    project.id,
                    from_status=project.status.value,
                    to_status=updated.status.value,
                    comment=cmd.comment,
                    project_name=project.name,
                )
            )
            uow.commit()
            logger.info(
                f"Project status transition: project={project.id}, "
                f"from={project.status.value}, to={updated.status.value}, actor={cmd.actor.id}"
            )
            _dispatch_notifications(
                uow,
                self._notifications.status_change_notifications(
                    updated, updated.status, cmd.actor
                ),
            )
            return _Assembler.project(updated)


class GetAllowedTransitionsUseCase:
    def execute(self, project_id: str, actor: Actor, uow: AbstractUnitOfWork) -> List[str]:
        with uow:
            project = _get_viewable_project(uow, project_id, actor)
            return [s.value for s in _workflow_svc.allowed_transitions(project, actor)]


class DeleteProjectUseCase:
    """Hard-delete a project.  Admin-only and scoped to the admin's company."""

    def execute(self, project_id: str, actor: Actor, uow: AbstractUnitOfWork) -> None:
        with uow:
            project = _get_project_or_raise(uow, project_id)
            if not _permission_svc.can_delete(actor):
                raise AccessDeniedError("Only administrators can delete projects.")
            if not _permission_svc.is_company_admin(project, actor):
                raise CompanyMismatchError("Project does not belong to your company.")
            uow.projects.delete(project.id)
            uow.activities.append(
                _activity_svc.record(
                    actor,
                    ActivityAction.PROJECT_DELETED,
                    project.id,
                    project_name=project.name,
                )
            )
            uow.commit()
            logger.info(f"Project deleted: project={project.id}, actor={actor.id}")


# ===========================================================================
# USE CASES — TEAM & COLLABORATION
# ===========================================================================

class GetProjectTeamUseCase:
    def execute(self, project_id: str, actor: Actor, uow: AbstractUnitOfWork) -> List[TeamMemberDTO]:
        with uow:
            project = _get_viewable_project(uow, project_id, actor)
            return [_Assembler.team_member(m) for m in _team_svc.get_team(project)]


class ListProjectCommentsUseCase:
    def execute(self, project_id: str, actor: Actor, uow: AbstractUnitOfWork) -> List[CommentDTO]:
        with uow:
            _get_viewable_project(uow, project_id, actor)
            comments = sorted(
                uow.comments.list_for_project(project_id), key=lambda c: c.created_at
            )
            return [_Assembler.comment(c) for c in comments]


@dataclass
class AddProjectCommentCommand:
    project_id: str
    actor: Actor
    content: str
    tags: List[str] = field(default_factory=list)
    attachments: List[str] = field(default_factory=list)


class AddProjectCommentUseCase:
    def execute(self, cmd: AddProjectCommentCommand, uow: AbstractUnitOfWork) -> CommentDTO:
        with uow:
            project = _get_project_or_raise(uow, cmd.project_id)
            comment = _comment_svc.add_comment(
                project,
                cmd.actor,
                content=cmd.content,
                tags=cmd.tags,
                attachments=cmd.attachments,
            )
            uow.comments.save(comment)
            uow.activities.append(
                _activity_svc.record(
                    cmd.actor,
                    ActivityAction.COMMENT_ADDED,
                    project.id,
                    comment_id=comment.id,
                    project_name=project.name,
                )
            )
            uow.commit()
            return _Assembler.comment(comment)


@dataclass
class ReplyToCommentCommand:
    project_id: str
    comment_id: str
    actor: Actor
    content: str


class ReplyToCommentUseCase:
    def execute(self, cmd: ReplyToCommentCommand, uow: AbstractUnitOfWork) -> CommentReplyDTO:
        with uow:
            project = _get_project_or_raise(uow, cmd.project_id)
            comment = uow.comments.get(cmd.comment_id)
            if comment is None:
                raise NotFoundError(f"Comment {cmd.comment_id} not found.")
            reply = _comment_svc.reply(project, comment, cmd.actor, cmd.content)
            uow.comments.save(comment)
            uow.activities.append(
                _activity_svc.record(
                    cmd.actor,
                    ActivityAction.COMMENT_REPLY,
                    project.id,
                    comment_id=comment.id,
                    reply_id=reply.id,
                    project_name=project.name,
                )
            )
            uow.commit()
            return _Assembler.reply(reply)


# ===========================================================================
# USE CASES — AUDIT & NOTIFICATIONS
# ===========================================================================

class GetActivityLogUseCase:
    """Activity history of one project, oldest first.  Requires edit access."""

    def execute(self, project_id: str, actor: Actor, uow: AbstractUnitOfWork) -> List[ActivityDTO]:
        with uow:
            _get_editable_project(uow, project_id, actor)
            records = _activity_svc.chronological(uow.activities.list_for_project(project_id))
            return [_Assembler.activity(r) for r in records]


class GetMyNotificationsUseCase:
    def execute(self, actor: Actor, uow: AbstractUnitOfWork) -> List[NotificationDTO]:
        with uow:
            notifications = sorted(
                uow.notifications.list_for_recipient(actor.id),
                key=lambda n: n.created_at,
                reverse=True,
            )
            return [_Assembler.notification(n) for n in notifications]
