"""
service.py

Service layer for the Production Project Workflow Engine.

Responsibilities
----------------
Each service class encapsulates the business rules for one concern.
Services receive and return domain model instances (from model.py) and
never touch persistence: callers fetch projects from a repository, hand
them in, and persist whatever comes back.

Services
--------
- PermissionService        – view / edit / delete / create / comment predicates
- UpdateFilterService      – role-based field allow-listing of updates
- StaffAssignmentService   – additive staff assignment and permission merge
- StatusWorkflowService    – project status state machine
- ProjectService           – project construction and update sanitising
- NotificationService      – assignment and status-change notifications
- ActivityService          – audit activity records
- CommentService           – project discussion threads
- TeamService              – project team composition

Design notes
------------
- Services never mutate the project they are given. Operations that change
  a project return a new instance.
- Role dispatch goes through per-role tables keyed by Role. A role missing
  from a table raises InvalidRoleError.
- Business rule violations raise a WorkflowError subclass.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from model import (
    ActivityAction,
    ActivityRecord,
    Actor,
    Budget,
    CommentReply,
    Communications,
    Notification,
    NotificationType,
    Priority,
    Project,
    ProjectComment,
    ProjectPermissions,
    ProjectRole,
    ProjectStatus,
    Role,
    TeamMember,
    Timeline,
)

logger = logging.getLogger("projects.service")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class WorkflowError(Exception):
    """Base class for every rule violation raised by the engine."""


class AccessDeniedError(WorkflowError):
    """The actor lacks the capability required for the operation."""


class NotFoundError(WorkflowError):
    """A referenced project (or comment) does not exist."""


class CompanyMismatchError(WorkflowError):
    """The actor's company scope does not match the project's."""


class InvalidTransitionError(WorkflowError):
    """The requested status change is not a legal edge for this actor."""


class InvalidRoleError(WorkflowError):
    """The actor's role is not one of the recognised roles."""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def role_policy(table: Mapping[Role, Any], actor: Actor) -> Any:
    """Fetch a per-role policy entry, rejecting roles the table does not know."""
    try:
        return table[actor.role]
    except KeyError:
        raise InvalidRoleError(f"Unrecognised role '{actor.role}'.") from None


def actor_from_claims(uid: str, role: str, company_id: Optional[str] = None) -> Actor:
    """Build an Actor from raw authentication claims, validating the role."""
    try:
        parsed = Role(role)
    except ValueError:
        raise InvalidRoleError(f"Unrecognised role '{role}'.") from None
    if not uid:
        raise InvalidRoleError("Actor id must not be empty.")
    return Actor(id=uid, role=parsed, company_id=company_id or None)


def _ordered_unique(ids: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for i in ids:
        if i and i not in seen:
            seen.add(i)
            result.append(i)
    return result


# ---------------------------------------------------------------------------
# PermissionService
# ---------------------------------------------------------------------------

class PermissionService:
    """
    Pure capability predicates. None of these raise; callers decide how to
    react to False (usually an AccessDeniedError).

    The explicit client / manager / staff checks in can_view overlap with a
    correctly maintained view_access set and are evaluated independently of it.
    """

    def can_view(self, project: Project, actor: Actor) -> bool:
        return (
            actor.id in project.permissions.view_access
            or actor.id == project.client_id
            or actor.id == project.project_manager
            or actor.id in project.assigned_staff
        )

    def can_edit(self, project: Project, actor: Actor) -> bool:
        return (
            actor.id in project.permissions.edit_access
            or actor.id == project.project_manager
            or self.is_company_admin(project, actor)
        )

    def can_comment(self, project: Project, actor: Actor) -> bool:
        return (
            actor.id in project.permissions.comment_access
            or actor.id == project.client_id
            or actor.id == project.project_manager
            or actor.id in project.assigned_staff
        )

    def can_delete(self, actor: Actor) -> bool:
        return actor.role == Role.ADMIN

    def can_create(self, actor: Actor) -> bool:
        return actor.role in (Role.CLIENT, Role.ADMIN)

    def is_company_admin(self, project: Project, actor: Actor) -> bool:
        return (
            actor.role == Role.ADMIN
            and actor.company_id is not None
            and actor.company_id == project.company_id
        )


# ---------------------------------------------------------------------------
# UpdateFilterService
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldPolicy:
    """
    Which update keys a role may submit.

    `allowed` is an allow-list (None means every key); `denied` is always
    removed afterwards.
    """
    allowed: Optional[FrozenSet[str]] = None
    denied: FrozenSet[str] = frozenset()

    def permits(self, key: str) -> bool:
        if key in self.denied:
            return False
        return self.allowed is None or key in self.allowed


UPDATE_FIELD_POLICY: Dict[Role, FieldPolicy] = {
    Role.CLIENT: FieldPolicy(allowed=frozenset({"description", "communications"})),
    Role.STAFF: FieldPolicy(denied=frozenset({"assigned_staff", "client_id", "company_id"})),
    Role.ADMIN: FieldPolicy(),
}


class UpdateFilterService:
    """
    Strips the keys an actor's role may not write. Disallowed keys are
    dropped silently rather than failing the whole request.
    """

    def filter_update(
        self,
        proposed: Mapping[str, Any],
        actor: Actor,
        project: Project,
    ) -> Dict[str, Any]:
        policy: FieldPolicy = role_policy(UPDATE_FIELD_POLICY, actor)
        allowed = {k: v for k, v in proposed.items() if policy.permits(k)}
        dropped = sorted(set(proposed) - set(allowed))
        if dropped:
            logger.debug(
                f"Dropped update fields for project={project.id}, "
                f"actor={actor.id}, role={actor.role.value}: {dropped}"
            )
        return allowed


# ---------------------------------------------------------------------------
# StaffAssignmentService
# ---------------------------------------------------------------------------

@dataclass
class AssignmentResult:
    project: Project
    newly_assigned: List[str]


class StaffAssignmentService:
    """
    Merges staff into a project's assignment and permission sets.

    Assignment is additive. newly_assigned is computed against the state
    before the merge and drives notification fan-out.
    """

    def __init__(self, permissions: Optional[PermissionService] = None):
        self._permissions = permissions or PermissionService()

    def assign_staff(
        self,
        project: Project,
        staff_ids: Iterable[str],
        actor: Actor,
    ) -> AssignmentResult:
        if actor.role != Role.ADMIN:
            raise AccessDeniedError("Only administrators can assign staff to projects.")
        if not self._permissions.is_company_admin(project, actor):
            raise CompanyMismatchError(
                f"Project {project.id} does not belong to company {actor.company_id}."
            )

        requested = _ordered_unique(staff_ids)
        newly_assigned = [s for s in requested if s not in project.assigned_staff]

        permissions = project.permissions.copy()
        permissions.view_access.update(requested)
        permissions.edit_access.update(requested)
        permissions.comment_access.update(requested)

        updated = dataclasses.replace(
            project,
            assigned_staff=set(project.assigned_staff).union(requested),
            permissions=permissions,
            updated_at=_utcnow(),
        )
        return AssignmentResult(project=updated, newly_assigned=newly_assigned)


# ---------------------------------------------------------------------------
# StatusWorkflowService
# ---------------------------------------------------------------------------

# Valid transitions: from_status -> allowed to_statuses
VALID_TRANSITIONS: Dict[ProjectStatus, FrozenSet[ProjectStatus]] = {
    ProjectStatus.PLANNING: frozenset({ProjectStatus.IN_PROGRESS, ProjectStatus.CANCELLED}),
    ProjectStatus.IN_PROGRESS: frozenset(
        {ProjectStatus.REVIEW, ProjectStatus.COMPLETED, ProjectStatus.CANCELLED}
    ),
    ProjectStatus.REVIEW: frozenset({ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED}),
    ProjectStatus.COMPLETED: frozenset(),
    ProjectStatus.CANCELLED: frozenset({ProjectStatus.PLANNING}),
}

# Transitions into these statuses additionally require the ADMIN role.
ADMIN_ONLY_STATUSES: FrozenSet[ProjectStatus] = frozenset({ProjectStatus.CANCELLED})


class StatusWorkflowService:
    """
    Finite-state machine over ProjectStatus.

        planning ──► in_progress ──► review ──► completed
           │  ▲          │  ▲          │
           │  │          │  └──────────┘
           ▼  │          ▼
        cancelled ◄──────┘

    COMPLETED is terminal. Cancellation is admin-only.
    """

    def __init__(self, permissions: Optional[PermissionService] = None):
        self._permissions = permissions or PermissionService()

    @staticmethod
    def is_terminal(status: ProjectStatus) -> bool:
        return not VALID_TRANSITIONS.get(status)

    def is_valid_transition(
        self,
        current: ProjectStatus,
        new_status: ProjectStatus,
        actor: Actor,
    ) -> bool:
        if new_status in ADMIN_ONLY_STATUSES and actor.role != Role.ADMIN:
            return False
        return new_status in VALID_TRANSITIONS.get(current, frozenset())

    def allowed_transitions(self, project: Project, actor: Actor) -> List[ProjectStatus]:
        """Statuses this actor may move the project to right now."""
        if not self._permissions.can_edit(project, actor):
            return []
        return [
            s for s in ProjectStatus
            if self.is_valid_transition(project.status, s, actor)
        ]

    def change_status(self, project: Project, new_status: Any, actor: Actor) -> Project:
        """
        Validate and apply a status change, returning the updated project.

        Raises:
            AccessDeniedError: the actor cannot edit the project.
            InvalidTransitionError: unknown target, illegal edge, or a
                cancellation requested by a non-admin.
        """
        if not self._permissions.can_edit(project, actor):
            raise AccessDeniedError(
                f"Actor {actor.id} cannot change the status of project {project.id}."
            )
        try:
            target = ProjectStatus(new_status)
        except ValueError:
            raise InvalidTransitionError(f"Unknown project status '{new_status}'.") from None

        if not self.is_valid_transition(project.status, target, actor):
            logger.warning(
                f"Invalid status transition attempted: project={project.id}, "
                f"from={project.status.value}, to={target.value}, actor={actor.id}"
            )
            if target in ADMIN_ONLY_STATUSES and actor.role != Role.ADMIN:
                raise InvalidTransitionError(
                    f"Only administrators can move a project to '{target.value}'."
                )
            raise InvalidTransitionError(
                f"Invalid status transition from {project.status.value} to {target.value}."
            )

        now = _utcnow()
        changes: Dict[str, Any] = {"status": target, "updated_at": now}
        if target == ProjectStatus.COMPLETED:
            changes["completed_at"] = now
            changes["timeline"] = dataclasses.replace(
                project.timeline,
                actual_hours=project.timeline.actual_hours or 0,
            )
        return dataclasses.replace(project, **changes)


# ---------------------------------------------------------------------------
# ProjectService
# ---------------------------------------------------------------------------

# Keys that update_project never writes, whatever the role.
WORKFLOW_OWNED_FIELDS: FrozenSet[str] = frozenset(
    {"id", "client_id", "company_id", "status", "completed_at", "created_at", "updated_at"}
)


def _overlay(current: Any, value: Any) -> Any:
    """
    Overlay a partial, already validated dict onto a value-object dataclass.
    Type validation belongs to the request schemas in api.py.
    """
    if dataclasses.is_dataclass(value):
        return value
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected an object for {type(current).__name__}, got {value!r}.")
    names = {f.name for f in dataclasses.fields(current)}
    unknown = set(value) - names
    if unknown:
        raise ValueError(f"Unknown {type(current).__name__} fields: {sorted(unknown)}.")
    return dataclasses.replace(current, **value)


def _check_timeline(timeline: Timeline) -> Timeline:
    if timeline.start_date and timeline.end_date and timeline.end_date < timeline.start_date:
        raise ValueError("end_date must not be before start_date.")
    return timeline


class ProjectService:
    """Builds new projects and turns filtered updates into storage fields."""

    def __init__(self, permissions: Optional[PermissionService] = None):
        self._permissions = permissions or PermissionService()

    def create_project(self, data: Mapping[str, Any], creator: Actor) -> Project:
        """
        Create and return a new Project (unsaved).

        A client always owns what they create. An admin creates within their
        own company and becomes the project manager.
        """
        if not self._permissions.can_create(creator):
            raise AccessDeniedError("You do not have permission to create projects.")

        named_staff = _ordered_unique(data.get("assigned_staff") or [])
        if creator.role == Role.CLIENT:
            client_id = creator.id
            company_id = data.get("company_id") or creator.company_id
            project_manager = None
        else:
            client_id = data.get("client_id") or None
            company_id = creator.company_id
            project_manager = creator.id

        view_access = set(named_staff) | {creator.id}
        if client_id:
            view_access.add(client_id)
        edit_access = set(named_staff)
        if creator.role == Role.ADMIN:
            edit_access.add(creator.id)

        timeline = _check_timeline(Timeline(
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            estimated_hours=data.get("estimated_hours") or 0,
            actual_hours=0,
        ))

        communications = Communications(
            preferred_contact_method=data.get("communication_method") or "email",
        )
        budget = _overlay(Budget(), data["budget"]) if data.get("budget") else Budget()

        now = _utcnow()
        return Project(
            name=data.get("name", ""),
            description=data.get("description", ""),
            client_id=client_id,
            company_id=company_id,
            project_manager=project_manager,
            assigned_staff=set(named_staff),
            status=ProjectStatus.PLANNING,
            priority=Priority(data.get("priority") or Priority.MEDIUM),
            permissions=ProjectPermissions(
                view_access=view_access,
                edit_access=edit_access,
                comment_access=set(view_access),
                approval_required=creator.role == Role.CLIENT,
            ),
            timeline=timeline,
            budget=budget,
            communications=communications,
            project_type=data.get("project_type", ""),
            genre=data.get("genre", ""),
            tags=list(data.get("tags") or []),
            created_at=now,
            updated_at=now,
        )

    def apply_update(
        self,
        project: Project,
        fields: Mapping[str, Any],
        actor: Actor,
    ) -> Dict[str, Any]:
        """
        Convert role-filtered update fields into storage-ready values.

        Workflow-owned keys and unknown keys are ignored. project_manager
        is only honoured for an admin of the project's company. Writes to
        assigned_staff or permissions re-establish the permission invariants.
        """
        known = {f.name for f in dataclasses.fields(Project)}
        result: Dict[str, Any] = {}
        for key, value in fields.items():
            if key in WORKFLOW_OWNED_FIELDS or key not in known:
                logger.debug(f"Ignoring update field '{key}' on project {project.id}")
                continue
            if key == "project_manager" and not self._permissions.is_company_admin(project, actor):
                logger.debug(
                    f"Ignoring project_manager change on project {project.id} by actor {actor.id}"
                )
                continue
            result[key] = self._coerce_field(project, key, value)

        if "assigned_staff" in result or "permissions" in result:
            staff = result.get("assigned_staff", project.assigned_staff)
            perms = result.get("permissions", project.permissions).copy()
            for access in (perms.view_access, perms.edit_access, perms.comment_access):
                access.update(staff)
            if project.client_id:
                perms.view_access.add(project.client_id)
                perms.comment_access.add(project.client_id)
            result["permissions"] = perms

        result["updated_at"] = _utcnow()
        return result

    @staticmethod
    def _coerce_field(project: Project, key: str, value: Any) -> Any:
        if key == "timeline":
            return _check_timeline(_overlay(project.timeline, value))
        if key == "budget":
            return _overlay(project.budget, value)
        if key == "communications":
            return _overlay(project.communications, value)
        if key == "permissions":
            merged = _overlay(project.permissions, value)
            return ProjectPermissions(
                view_access=set(merged.view_access),
                edit_access=set(merged.edit_access),
                comment_access=set(merged.comment_access),
                approval_required=bool(merged.approval_required),
            )
        if key == "assigned_staff":
            return set(_ordered_unique(value or []))
        if key == "priority":
            return Priority(value)
        if key == "tags":
            return list(value or [])
        return value


# ---------------------------------------------------------------------------
# NotificationService
# ---------------------------------------------------------------------------

class NotificationService:
    """Builds Notification instructions; sending is the caller's concern."""

    def __init__(self, action_url_template: str = "/projects/{project_id}"):
        self._action_url_template = action_url_template

    def action_url(self, project: Project) -> str:
        return self._action_url_template.format(project_id=project.id)

    def assignment_notifications(
        self,
        project: Project,
        newly_assigned: Iterable[str],
    ) -> List[Notification]:
        return [
            Notification(
                recipient_id=staff_id,
                title="New Project Assignment",
                message=f"You have been assigned to project: {project.name}",
                project_id=project.id,
                action_url=self.action_url(project),
                notification_type=NotificationType.PROJECT_ASSIGNMENT,
            )
            for staff_id in _ordered_unique(newly_assigned)
        ]

    @staticmethod
    def stakeholders(project: Project, exclude: Optional[str] = None) -> List[str]:
        """Client, manager and assigned staff, minus `exclude`, without duplicates."""
        candidates = [project.client_id, project.project_manager, *sorted(project.assigned_staff)]
        return [i for i in _ordered_unique(c for c in candidates if c) if i != exclude]

    def status_change_notifications(
        self,
        project: Project,
        new_status: ProjectStatus,
        changed_by: Actor,
    ) -> List[Notification]:
        label = new_status.value.replace("_", " ")
        return [
            Notification(
                recipient_id=recipient,
                title="Project Status Updated",
                message=f"{project.name} status changed to {label}",
                project_id=project.id,
                action_url=self.action_url(project),
                notification_type=NotificationType.STATUS_CHANGE,
            )
            for recipient in self.stakeholders(project, exclude=changed_by.id)
        ]


# ---------------------------------------------------------------------------
# ActivityService
# ---------------------------------------------------------------------------

class ActivityService:
    """Creates immutable ActivityRecord entries and orders them for display."""

    def record(
        self,
        actor: Actor,
        action: ActivityAction,
        project_id: str,
        **details: Any,
    ) -> ActivityRecord:
        return ActivityRecord(
            actor_id=actor.id,
            action=action,
            project_id=project_id,
            details=details,
            timestamp=_utcnow(),
        )

    def chronological(self, records: Iterable[ActivityRecord]) -> List[ActivityRecord]:
        return sorted(records, key=lambda r: r.timestamp)


# ---------------------------------------------------------------------------
# CommentService
# ---------------------------------------------------------------------------

class CommentService:
    def __init__(self, permissions: Optional[PermissionService] = None):
        self._permissions = permissions or PermissionService()

    def _require_comment_access(self, project: Project, actor: Actor) -> None:
        if not self._permissions.can_comment(project, actor):
            raise AccessDeniedError(
                f"Actor {actor.id} cannot comment on project {project.id}."
            )

    def add_comment(
        self,
        project: Project,
        actor: Actor,
        content: str,
        tags: Optional[List[str]] = None,
        attachments: Optional[List[str]] = None,
    ) -> ProjectComment:
        """Create and return a new ProjectComment (unsaved)."""
        self._require_comment_access(project, actor)
        if not content.strip():
            raise ValueError("Comment content must not be empty.")
        return ProjectComment(
            project_id=project.id,
            author_id=actor.id,
            author_role=actor.role,
            content=content,
            tags=list(tags or []),
            attachments=list(attachments or []),
        )

    def reply(
        self,
        project: Project,
        comment: ProjectComment,
        actor: Actor,
        content: str,
    ) -> CommentReply:
        """Append a reply to `comment` in place and return it."""
        self._require_comment_access(project, actor)
        if comment.project_id != project.id:
            raise NotFoundError(f"Comment {comment.id} not found on project {project.id}.")
        if not content.strip():
            raise ValueError("Reply content must not be empty.")
        reply = CommentReply(author_id=actor.id, author_role=actor.role, content=content)
        comment.replies.append(reply)
        return reply


# ---------------------------------------------------------------------------
# TeamService
# ---------------------------------------------------------------------------

TEAM_CAPABILITIES: Dict[ProjectRole, List[str]] = {
    ProjectRole.CLIENT: ["view", "comment"],
    ProjectRole.MANAGER: ["view", "edit", "delete", "assign"],
    ProjectRole.STAFF: ["view", "edit", "comment"],
}


class TeamService:
    def get_team(self, project: Project) -> List[TeamMember]:
        """Client first, then the manager, then assigned staff in id order."""
        members: List[TeamMember] = []
        if project.client_id:
            members.append(self._member(project.client_id, ProjectRole.CLIENT))
        if project.project_manager:
            members.append(self._member(project.project_manager, ProjectRole.MANAGER))
        for staff_id in sorted(project.assigned_staff):
            members.append(self._member(staff_id, ProjectRole.STAFF))
        return members

    @staticmethod
    def _member(actor_id: str, role: ProjectRole) -> TeamMember:
        return TeamMember(
            actor_id=actor_id,
            project_role=role,
            capabilities=list(TEAM_CAPABILITIES[role]),
        )
