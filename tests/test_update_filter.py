"""
Update filter and update sanitiser tests.
"""

from datetime import date

import pytest

from model import Actor, Priority, ProjectPermissions, ProjectStatus, Timeline
from service import InvalidRoleError, ProjectService, UpdateFilterService


update_filter = UpdateFilterService()
project_service = ProjectService()


class TestFilterUpdate:

    def test_client_keeps_only_description(self, make_project, client_actor):
        updates = {"status": "completed", "description": "x", "budget": 99}
        assert update_filter.filter_update(updates, client_actor, make_project()) == {
            "description": "x"
        }

    def test_client_may_update_communications(self, make_project, client_actor):
        updates = {"communications": {"preferred_contact_method": "phone"}, "name": "New"}
        result = update_filter.filter_update(updates, client_actor, make_project())
        assert result == {"communications": {"preferred_contact_method": "phone"}}

    def test_staff_loses_assignment_and_ownership_fields(self, make_project, staff):
        updates = {
            "assigned_staff": ["staff-9"],
            "client_id": "client-9",
            "company_id": "studio-9",
            "description": "cut v2",
            "tags": ["edit"],
        }
        result = update_filter.filter_update(updates, staff, make_project())
        assert result == {"description": "cut v2", "tags": ["edit"]}

    def test_admin_passes_everything(self, make_project, admin):
        updates = {"assigned_staff": ["staff-9"], "name": "Renamed", "budget": {"estimated": 10}}
        assert update_filter.filter_update(updates, admin, make_project()) == updates

    def test_empty_result_is_not_an_error(self, make_project, client_actor):
        assert update_filter.filter_update({"name": "x"}, client_actor, make_project()) == {}

    def test_unknown_role_rejected(self, make_project):
        intruder = Actor(id="x", role="superuser")
        with pytest.raises(InvalidRoleError):
            update_filter.filter_update({"description": "x"}, intruder, make_project())


class TestApplyUpdate:

    def test_workflow_owned_fields_are_ignored(self, make_project, admin):
        project = make_project()
        fields = project_service.apply_update(
            project,
            {"status": "completed", "id": "other", "completed_at": None, "name": "Renamed"},
            admin,
        )
        assert "status" not in fields
        assert "id" not in fields
        assert "completed_at" not in fields
        assert fields["name"] == "Renamed"
        assert "updated_at" in fields

    def test_unknown_fields_are_ignored(self, make_project, admin):
        fields = project_service.apply_update(make_project(), {"colour": "red"}, admin)
        assert set(fields) == {"updated_at"}

    def test_nested_values_are_merged(self, make_project, admin):
        project = make_project()
        fields = project_service.apply_update(
            project,
            {
                "timeline": {"start_date": date(2026, 1, 5), "estimated_hours": 40},
                "budget": {"estimated": 1200.0},
                "priority": "high",
            },
            admin,
        )
        assert fields["timeline"].start_date == date(2026, 1, 5)
        assert fields["timeline"].estimated_hours == 40
        assert fields["timeline"].actual_hours == project.timeline.actual_hours
        assert fields["budget"].estimated == 1200.0
        assert fields["budget"].currency == "USD"
        assert fields["priority"] is Priority.HIGH

    def test_unknown_nested_field_is_a_value_error(self, make_project, admin):
        with pytest.raises(ValueError):
            project_service.apply_update(make_project(), {"budget": {"bogus": 1}}, admin)

    def test_project_manager_requires_company_admin(self, make_project, staff, admin, foreign_admin):
        project = make_project()
        assert "project_manager" not in project_service.apply_update(
            project, {"project_manager": "staff-1"}, staff
        )
        assert "project_manager" not in project_service.apply_update(
            project, {"project_manager": "admin-2"}, foreign_admin
        )
        fields = project_service.apply_update(project, {"project_manager": "admin-3"}, admin)
        assert fields["project_manager"] == "admin-3"

    def test_staff_write_keeps_permission_invariants(self, make_project, admin):
        project = make_project(assigned_staff={"staff-1"})
        fields = project_service.apply_update(
            project,
            {"assigned_staff": ["staff-1", "staff-2"], "permissions": {"view_access": []}},
            admin,
        )
        perms = fields["permissions"]
        assert fields["assigned_staff"] == {"staff-1", "staff-2"}
        for access in (perms.view_access, perms.edit_access, perms.comment_access):
            assert {"staff-1", "staff-2"} <= access
        assert "client-1" in perms.view_access
        assert "client-1" in perms.comment_access

    def test_input_project_not_mutated(self, make_project, admin):
        project = make_project(permissions=ProjectPermissions(view_access={"client-1"}))
        project_service.apply_update(project, {"assigned_staff": ["staff-1"]}, admin)
        assert project.assigned_staff == set()
        assert project.permissions.view_access == {"client-1"}
        assert project.status is ProjectStatus.PLANNING

    def test_timeline_update_cannot_end_before_start(self, make_project, admin):
        with pytest.raises(ValueError):
            project_service.apply_update(
                make_project(),
                {"timeline": {"start_date": date(2026, 5, 1), "end_date": date(2026, 1, 1)}},
                admin,
            )

    def test_timeline_end_checked_against_stored_start(self, make_project, admin):
        project = make_project(timeline=Timeline(start_date=date(2026, 5, 1)))
        with pytest.raises(ValueError):
            project_service.apply_update(
                project, {"timeline": {"end_date": date(2026, 4, 30)}}, admin
            )
        fields = project_service.apply_update(
            project, {"timeline": {"end_date": date(2026, 5, 1)}}, admin
        )
        assert fields["timeline"].end_date == date(2026, 5, 1)
