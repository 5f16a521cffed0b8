"""
model.py

Domain models for the Production Project Workflow Engine.

Entities
--------
- Actor
- Project
  - ProjectPermissions
  - Timeline
  - Budget
  - Communications
- ActivityRecord
- Notification
- ProjectComment
  - CommentReply
- TeamMember

All models use Python dataclasses for clean, framework-agnostic definitions.
Identifiers are opaque strings: actor ids come from the authentication
provider, project / comment ids are uuid4 text generated here.
Timestamps are always stored in UTC.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Role(str, Enum):
    """
    The closed set of actor roles.

    CLIENT  – Commissions projects and follows their progress.
    STAFF   – Production crew working on assigned projects.
    ADMIN   – Manages projects and staff within one production company.
    """
    CLIENT = "client"
    STAFF = "staff"
    ADMIN = "admin"


class ProjectStatus(str, Enum):
    """Lifecycle status of a project. PLANNING is initial, COMPLETED is terminal."""
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationType(str, Enum):
    """Category of a stakeholder notification."""
    PROJECT_ASSIGNMENT = "project_assignment"
    STATUS_CHANGE = "status_change"


class ActivityAction(str, Enum):
    """Audit actions recorded for every successful mutation."""
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    STAFF_ASSIGNED = "staff_assigned"
    STATUS_CHANGED = "status_changed"
    PROJECT_DELETED = "project_deleted"
    COMMENT_ADDED = "comment_added"
    COMMENT_REPLY = "comment_reply"


class ProjectRole(str, Enum):
    """Role a participant plays on one specific project (team view)."""
    CLIENT = "client"
    MANAGER = "manager"
    STAFF = "staff"


# ---------------------------------------------------------------------------
# Actor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Actor:
    """
    An authenticated participant performing an operation.

    Supplied per request by the authentication layer and never persisted.
    `company_id` scopes admins and staff to one production company; for
    clients it names the company they commissioned, if known.
    """
    id: str
    role: Role
    company_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Project value objects
# ---------------------------------------------------------------------------


@dataclass
class ProjectPermissions:
    """
    Per-project capability sets, each holding actor ids.

    Invariants maintained by the service layer:
      - the project's client is always in view_access and comment_access
      - every assigned staff member is in all three sets
    """
    view_access: Set[str] = field(default_factory=set)
    edit_access: Set[str] = field(default_factory=set)
    comment_access: Set[str] = field(default_factory=set)
    approval_required: bool = False

    def copy(self) -> "ProjectPermissions":
        return ProjectPermissions(
            view_access=set(self.view_access),
            edit_access=set(self.edit_access),
            comment_access=set(self.comment_access),
            approval_required=self.approval_required,
        )


@dataclass
class Timeline:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    estimated_hours: float = 0.0
    actual_hours: float = 0.0


@dataclass
class Budget:
    estimated: float = 0.0
    actual: float = 0.0
    currency: str = "USD"


@dataclass
class Communications:
    """Client communication preferences and touch-points."""
    last_client_contact: Optional[datetime] = None
    next_scheduled_call: Optional[datetime] = None
    preferred_contact_method: str = "email"
    client_feedback_status: str = "pending"


# ---------------------------------------------------------------------------
# Core Project Entity
# ---------------------------------------------------------------------------


@dataclass
class Project:
    """
    A production project commissioned by a client and delivered by a company.

    `client_id` and `company_id` are fixed at creation. `assigned_staff` and
    the permission sets only ever change together. `completed_at` is set
    exactly once, when status becomes COMPLETED.
    """
    id: str = field(default_factory=_new_id)
    name: str = ""
    description: str = ""

    # Ownership & scope
    client_id: Optional[str] = None
    company_id: Optional[str] = None
    project_manager: Optional[str] = None
    assigned_staff: Set[str] = field(default_factory=set)

    # Workflow
    status: ProjectStatus = ProjectStatus.PLANNING
    priority: Priority = Priority.MEDIUM

    permissions: ProjectPermissions = field(default_factory=ProjectPermissions)
    timeline: Timeline = field(default_factory=Timeline)
    budget: Budget = field(default_factory=Budget)
    communications: Communications = field(default_factory=Communications)

    # Metadata
    project_type: str = ""
    genre: str = ""
    tags: List[str] = field(default_factory=list)

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Audit & Notification Entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActivityRecord:
    """
    Append-only audit entry written once per successful mutation.
    Never edited or deleted.
    """
    actor_id: str
    action: ActivityAction
    project_id: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)
    id: str = field(default_factory=_new_id)


@dataclass(frozen=True)
class Notification:
    """Instruction handed to the notification sink; delivery is not tracked here."""
    recipient_id: str
    title: str
    message: str
    project_id: str
    action_url: str
    notification_type: NotificationType = NotificationType.STATUS_CHANGE
    created_at: datetime = field(default_factory=_utcnow)
    id: str = field(default_factory=_new_id)


# ---------------------------------------------------------------------------
# Collaboration Entities
# ---------------------------------------------------------------------------


@dataclass
class CommentReply:
    author_id: str
    author_role: Role
    content: str
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class ProjectComment:
    """A discussion thread root on a project, with its flat list of replies."""
    project_id: str
    author_id: str
    author_role: Role
    content: str
    tags: List[str] = field(default_factory=list)
    attachments: List[str] = field(default_factory=list)
    replies: List[CommentReply] = field(default_factory=list)
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class TeamMember:
    """One participant of a project as seen from the team view."""
    actor_id: str
    project_role: ProjectRole
    capabilities: List[str] = field(default_factory=list)
