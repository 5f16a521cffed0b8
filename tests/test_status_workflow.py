"""
Status workflow engine tests.
"""

import itertools

import pytest

from model import ProjectStatus, Timeline
from service import (
    VALID_TRANSITIONS,
    AccessDeniedError,
    InvalidTransitionError,
    StatusWorkflowService,
)


workflow = StatusWorkflowService()

LEGAL_EDGES = {
    (current, target)
    for current, targets in VALID_TRANSITIONS.items()
    for target in targets
}
ILLEGAL_EDGES = [
    pair for pair in itertools.product(ProjectStatus, ProjectStatus)
    if pair not in LEGAL_EDGES
]


def test_transition_table():
    assert VALID_TRANSITIONS == {
        ProjectStatus.PLANNING: {ProjectStatus.IN_PROGRESS, ProjectStatus.CANCELLED},
        ProjectStatus.IN_PROGRESS: {
            ProjectStatus.REVIEW, ProjectStatus.COMPLETED, ProjectStatus.CANCELLED,
        },
        ProjectStatus.REVIEW: {ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED},
        ProjectStatus.COMPLETED: set(),
        ProjectStatus.CANCELLED: {ProjectStatus.PLANNING},
    }


@pytest.mark.parametrize("current,target", sorted(LEGAL_EDGES))
def test_admin_may_take_every_legal_edge(make_project, admin, current, target):
    project = make_project(status=current)
    assert workflow.change_status(project, target, admin).status is target


@pytest.mark.parametrize("current,target", ILLEGAL_EDGES)
def test_illegal_edges_rejected(make_project, admin, current, target):
    project = make_project(status=current)
    with pytest.raises(InvalidTransitionError):
        workflow.change_status(project, target.value, admin)
    assert project.status is current


@pytest.mark.parametrize("target", list(ProjectStatus))
def test_completed_is_terminal(make_project, admin, target):
    project = make_project(status=ProjectStatus.COMPLETED)
    with pytest.raises(InvalidTransitionError):
        workflow.change_status(project, target, admin)
    assert StatusWorkflowService.is_terminal(ProjectStatus.COMPLETED)


def test_cancellation_is_admin_only(make_project, staff):
    project = make_project(status=ProjectStatus.IN_PROGRESS, assigned_staff={"staff-1"})
    project.permissions.edit_access.add("staff-1")
    with pytest.raises(InvalidTransitionError):
        workflow.change_status(project, "cancelled", staff)
    assert project.status is ProjectStatus.IN_PROGRESS


def test_staff_with_edit_access_may_move_forward(make_project, staff):
    project = make_project(status=ProjectStatus.IN_PROGRESS)
    project.permissions.edit_access.add("staff-1")
    assert workflow.change_status(project, "review", staff).status is ProjectStatus.REVIEW


def test_edit_access_checked_first(make_project, client_actor):
    with pytest.raises(AccessDeniedError):
        workflow.change_status(make_project(), "in_progress", client_actor)


def test_unknown_status_is_invalid_transition(make_project, admin):
    with pytest.raises(InvalidTransitionError):
        workflow.change_status(make_project(), "archived", admin)


def test_completion_sets_timestamp_and_hours(make_project, admin):
    project = make_project(status=ProjectStatus.REVIEW)
    completed = workflow.change_status(project, ProjectStatus.COMPLETED, admin)
    assert completed.completed_at is not None
    assert completed.timeline.actual_hours == 0
    assert project.completed_at is None


def test_completion_carries_actual_hours_forward(make_project, admin):
    project = make_project(
        status=ProjectStatus.IN_PROGRESS,
        timeline=Timeline(estimated_hours=80, actual_hours=72.5),
    )
    completed = workflow.change_status(project, "completed", admin)
    assert completed.timeline.actual_hours == 72.5
    assert completed.timeline.estimated_hours == 80


def test_non_completion_leaves_completed_at_unset(make_project, admin):
    cancelled = workflow.change_status(make_project(), "cancelled", admin)
    restarted = workflow.change_status(cancelled, "planning", admin)
    assert cancelled.completed_at is None
    assert restarted.completed_at is None


class TestAllowedTransitions:

    def test_admin_sees_cancellation(self, make_project, admin):
        allowed = workflow.allowed_transitions(make_project(), admin)
        assert set(allowed) == {ProjectStatus.IN_PROGRESS, ProjectStatus.CANCELLED}

    def test_staff_does_not_see_cancellation(self, make_project, staff):
        project = make_project()
        project.permissions.edit_access.add("staff-1")
        assert workflow.allowed_transitions(project, staff) == [ProjectStatus.IN_PROGRESS]

    def test_viewer_without_edit_gets_nothing(self, make_project, client_actor):
        assert workflow.allowed_transitions(make_project(), client_actor) == []
