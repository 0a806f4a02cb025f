"""
Task board workflow: default configuration, creation defaults, terminal
status gating, reordering, configuration validation and the role
permission matrix. Service-level tests first, then the HTTP surface.
"""

import pytest

from qaboard.core.exceptions import DenialReason, PermissionDenied, ValidationError
from qaboard.models import db
from qaboard.models.task import Task, TaskConfiguration
from qaboard.services import project_service, task_workflow as tw


API = "/api/v1"

REQUIRED_URL_FIELD = {"key": "url", "label": "URL publicada", "type": "text", "required": True}


@pytest.fixture()
def ctx(ctx_for):
    return ctx_for("web_leader")


@pytest.fixture()
def config_with_required_field(project):
    return tw.update_configuration(project.id, {"custom_fields": [REQUIRED_URL_FIELD]})


# ═══════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════

class TestConfiguration:
    def test_default_created_on_first_use(self, project):
        assert TaskConfiguration.query.filter_by(project_id=project.id).count() == 0
        config = tw.get_or_create_configuration(project.id)
        assert [s["key"] for s in config.custom_statuses] == ["todo", "in_progress", "completed"]
        assert [s["key"] for s in config.custom_statuses if s["is_final"]] == ["completed"]
        assert [p["key"] for p in config.custom_priorities] == ["low", "medium", "high"]
        assert config.custom_fields == []
        assert config.module_enabled

    def test_second_call_reuses_configuration(self, project):
        first = tw.get_or_create_configuration(project.id)
        assert tw.get_or_create_configuration(project.id).id == first.id

    def test_unknown_project(self):
        from qaboard.core.exceptions import NotFoundError

        with pytest.raises(NotFoundError):
            tw.get_or_create_configuration(999)

    def test_removing_last_final_status_leaves_config_unchanged(self, project):
        config = tw.get_or_create_configuration(project.id)
        before = dict(config.to_dict())
        patch = {"custom_statuses": [
            {"key": "todo", "label": "Por hacer", "is_final": False, "order": 0},
            {"key": "doing", "label": "Haciendo", "is_final": False, "order": 1},
        ]}
        with pytest.raises(ValidationError) as exc:
            tw.update_configuration(project.id, patch)
        assert exc.value.message == "Debe haber al menos un estado final"

        db.session.expire_all()
        after = TaskConfiguration.query.filter_by(project_id=project.id).one().to_dict()
        assert after == before

    @pytest.mark.parametrize("patch, field", [
        ({"custom_statuses": []}, "custom_statuses"),
        ({"custom_priorities": []}, "custom_priorities"),
        ({"custom_priorities": [{"key": "a"}, {"key": "a"}]}, "custom_priorities"),
        ({"custom_fields": [{"key": "env", "type": "select", "options": []}]}, "custom_fields"),
        ({"custom_fields": [{"key": "x"}, {"key": "x", "type": "number"}]}, "custom_fields"),
        ({"permissions": {"qa": {"can_fly": True}}}, "permissions"),
        ({"permissions": {"qa": "all"}}, "permissions"),
        ({"custom_statuses": ["todo", "done"]}, "custom_statuses"),
        ({"custom_priorities": "high"}, "custom_priorities"),
        ({"custom_fields": [{"key": 5}]}, "custom_fields"),
        ({"custom_fields": ["url"]}, "custom_fields"),
        ({"custom_fields": {"key": "url"}}, "custom_fields"),
    ])
    def test_invalid_patches(self, project, patch, field):
        with pytest.raises(ValidationError) as exc:
            tw.update_configuration(project.id, patch)
        assert field in exc.value.details

    def test_default_value_outside_options_rejected(self, project, ctx):
        patch = {"custom_fields": [
            {"key": "env", "type": "select", "options": ["dev", "prod"], "default_value": "staging"},
        ]}
        with pytest.raises(ValidationError) as exc:
            tw.update_configuration(project.id, patch)
        assert "custom_fields" in exc.value.details

        db.session.expire_all()
        assert tw.get_configuration(project.id).custom_fields == []
        assert tw.create_task(ctx, project.id, {"title": "A"}).custom_fields == {}

    def test_valid_patch_replaces_arrays(self, project):
        statuses = [
            {"key": "backlog", "label": "Backlog", "is_final": False, "order": 0},
            {"key": "done", "label": "Hecho", "is_final": True, "order": 1},
        ]
        config = tw.update_configuration(project.id, {"custom_statuses": statuses})
        assert [s["key"] for s in config.custom_statuses] == ["backlog", "done"]
        assert [p["key"] for p in config.custom_priorities] == ["low", "medium", "high"]

    def test_labels_fall_back_to_key(self, project):
        config = tw.get_or_create_configuration(project.id)
        assert tw.status_label(config, "in_progress") == "En progreso"
        assert tw.priority_label(config, "high") == "Alta"
        assert tw.status_label(config, "archived") == "archived"


# ═══════════════════════════════════════════════════════════════
# Creating tasks
# ═══════════════════════════════════════════════════════════════

class TestCreateTask:
    def test_defaults(self, project, ctx):
        task = tw.create_task(ctx, project.id, {"title": "  Revisar formulario  "})
        assert task.title == "Revisar formulario"
        assert task.status == "todo"
        assert task.priority == "medium"
        assert task.order == 0
        assert task.created_by == "web_leader@example.com"
        assert task.completed_at is None

    def test_order_appends_to_project(self, project, ctx):
        tw.create_task(ctx, project.id, {"title": "A"})
        tw.create_task(ctx, project.id, {"title": "B", "status": "in_progress"})
        third = tw.create_task(ctx, project.id, {"title": "C"})
        assert third.order == 2

    def test_priority_falls_back_to_first_without_medium(self, project, ctx):
        tw.update_configuration(project.id, {"custom_priorities": [
            {"key": "p1", "label": "P1"}, {"key": "p2", "label": "P2"},
        ]})
        assert tw.create_task(ctx, project.id, {"title": "X"}).priority == "p1"

    @pytest.mark.parametrize("title", [None, "", "   "])
    def test_title_required(self, project, ctx, title):
        with pytest.raises(ValidationError) as exc:
            tw.create_task(ctx, project.id, {"title": title})
        assert exc.value.message == "El título es requerido"
        assert Task.query.count() == 0

    def test_unknown_status(self, project, ctx):
        with pytest.raises(ValidationError):
            tw.create_task(ctx, project.id, {"title": "X", "status": "archived"})

    def test_module_disabled(self, project, ctx):
        tw.update_configuration(project.id, {"module_enabled": False})
        with pytest.raises(ValidationError):
            tw.create_task(ctx, project.id, {"title": "X"})

    def test_custom_field_values_validated(self, project, ctx):
        tw.update_configuration(project.id, {"custom_fields": [{"key": "hours", "type": "number"}]})
        with pytest.raises(ValidationError) as exc:
            tw.create_task(ctx, project.id, {"title": "X", "custom_fields": {"hours": "lots"}})
        assert "hours" in exc.value.details
        task = tw.create_task(ctx, project.id, {"title": "X", "custom_fields": {"hours": "3"}})
        assert task.custom_fields == {"hours": 3}

    def test_default_values_applied(self, project, ctx):
        tw.update_configuration(project.id, {"custom_fields": [
            {"key": "env", "type": "select", "options": ["dev", "prod"], "default_value": "dev"},
        ]})
        assert tw.create_task(ctx, project.id, {"title": "X"}).custom_fields == {"env": "dev"}


# ═══════════════════════════════════════════════════════════════
# Moving tasks
# ═══════════════════════════════════════════════════════════════

class TestMoveTask:
    def test_final_move_blocked_by_empty_required_field(self, project, ctx, config_with_required_field):
        task = tw.create_task(ctx, project.id, {"title": "Publicar"})
        with pytest.raises(ValidationError) as exc:
            tw.move_task(ctx, task.id, "completed")
        assert "URL publicada" in exc.value.message
        assert exc.value.details == {"url": "required"}

        db.session.expire_all()
        stored = db.session.get(Task, task.id)
        assert stored.status == "todo"
        assert stored.completed_at is None

    def test_final_move_succeeds_after_filling_field(self, project, ctx, config_with_required_field):
        task = tw.create_task(ctx, project.id, {"title": "Publicar"})
        tw.update_task(ctx, task.id, {"custom_fields": {"url": "https://example.com"}})
        moved = tw.move_task(ctx, task.id, "completed")
        assert moved.status == "completed"
        assert moved.completed_by == "web_leader@example.com"
        assert moved.completed_at is not None

    def test_missing_fields_all_named(self, project, ctx):
        tw.update_configuration(project.id, {"custom_fields": [
            REQUIRED_URL_FIELD,
            {"key": "approved", "label": "Aprobado", "type": "checkbox", "required": True},
        ]})
        task = tw.create_task(ctx, project.id, {"title": "Publicar"})
        with pytest.raises(ValidationError) as exc:
            tw.move_task(ctx, task.id, "completed")
        assert set(exc.value.details) == {"url", "approved"}

    def test_non_final_move_ignores_required_fields(self, project, ctx, config_with_required_field):
        task = tw.create_task(ctx, project.id, {"title": "Publicar"})
        moved = tw.move_task(ctx, task.id, "in_progress")
        assert moved.status == "in_progress"
        assert moved.completed_at is None

    def test_leaving_final_status_clears_completion(self, project, ctx):
        task = tw.create_task(ctx, project.id, {"title": "X"})
        tw.move_task(ctx, task.id, "completed")
        reopened = tw.move_task(ctx, task.id, "todo")
        assert reopened.completed_at is None
        assert reopened.completed_by is None

    def test_move_appends_to_target_column(self, project, ctx):
        a = tw.create_task(ctx, project.id, {"title": "A", "status": "in_progress"})
        b = tw.create_task(ctx, project.id, {"title": "B"})
        moved = tw.move_task(ctx, b.id, "in_progress")
        assert [t.id for t in tw.tasks_by_status(project.id, "in_progress")] == [a.id, b.id]
        assert moved.order == 1

    def test_update_with_status_routes_through_move(self, project, ctx, config_with_required_field):
        task = tw.create_task(ctx, project.id, {"title": "Publicar"})
        with pytest.raises(ValidationError):
            tw.update_task(ctx, task.id, {"title": "Publicado", "status": "completed"})
        db.session.expire_all()
        assert db.session.get(Task, task.id).title == "Publicar"

        updated = tw.update_task(ctx, task.id, {
            "title": "Publicado", "status": "completed",
            "custom_fields": {"url": "https://example.com"},
        })
        assert updated.status == "completed"
        assert updated.title == "Publicado"


# ═══════════════════════════════════════════════════════════════
# Reorder, delete, permissions
# ═══════════════════════════════════════════════════════════════

class TestReorderAndDelete:
    def test_reorder_sets_index(self, project, ctx):
        ids = [tw.create_task(ctx, project.id, {"title": t}).id for t in ("A", "B", "C")]
        tw.reorder_within_status(ctx, project.id, "todo", [ids[2], ids[0], ids[1]])
        column = tw.tasks_by_status(project.id, "todo")
        assert [t.id for t in column] == [ids[2], ids[0], ids[1]]
        assert [t.order for t in column] == [0, 1, 2]

    def test_reorder_requires_full_column(self, project, ctx):
        ids = [tw.create_task(ctx, project.id, {"title": t}).id for t in ("A", "B")]
        with pytest.raises(ValidationError):
            tw.reorder_within_status(ctx, project.id, "todo", [ids[1]])

    def test_delete(self, project, ctx):
        task = tw.create_task(ctx, project.id, {"title": "A"})
        tw.delete_task(ctx, task.id)
        assert Task.query.count() == 0

    def test_reorder_rejects_non_numeric_ids(self, project, ctx):
        tw.create_task(ctx, project.id, {"title": "A"})
        with pytest.raises(ValidationError) as exc:
            tw.reorder_within_status(ctx, project.id, "todo", ["abc"])
        assert exc.value.details == {"ids": "invalid"}


class TestBoardView:
    def test_rows_written_outside_the_service_are_shown(self, project, ctx):
        tw.create_task(ctx, project.id, {"title": "A"})
        tw.board_view(project.id)

        db.session.add(Task(project_id=project.id, title="B", status="todo", priority="medium",
                            order=1, custom_fields={}))
        db.session.commit()

        todo = tw.board_view(project.id)[0]
        assert [t["title"] for t in todo["tasks"]] == ["A", "B"]

    def test_rows_deleted_outside_the_service_disappear(self, project, ctx):
        task = tw.create_task(ctx, project.id, {"title": "A"})
        Task.query.filter_by(id=task.id).delete()
        db.session.commit()
        assert tw.board_view(project.id)[0]["tasks"] == []

    def test_deleting_project_drops_its_board(self, app, project, ctx):
        pid = project.id
        tw.create_task(ctx, pid, {"title": "A"})
        tw.board_view(pid)
        assert pid in app.extensions["task_board_cache"]._caches

        project_service.delete_project(pid)
        assert pid not in app.extensions["task_board_cache"]._caches

        reused = project_service.create_project({"name": "Otro", "site_type": "blog"})
        assert all(c["tasks"] == [] for c in tw.board_view(reused.id))


class TestPermissionMatrix:
    @pytest.fixture()
    def restricted(self, project):
        return tw.update_configuration(project.id, {"permissions": {
            "qa": {"can_create": True, "can_edit": False, "can_delete": False, "can_change_status": True},
        }})

    def test_denied_flag(self, project, ctx_for, restricted):
        task = tw.create_task(ctx_for("qa"), project.id, {"title": "A"})
        with pytest.raises(PermissionDenied) as exc:
            tw.delete_task(ctx_for("qa"), task.id)
        assert exc.value.reason is DenialReason.TASK_PERMISSION
        assert exc.value.action == "can_delete"

    def test_granted_flag(self, project, ctx_for, restricted):
        task = tw.create_task(ctx_for("qa"), project.id, {"title": "A"})
        assert tw.move_task(ctx_for("qa"), task.id, "in_progress").status == "in_progress"

    def test_roles_without_entry_unrestricted(self, project, ctx_for, restricted):
        task = tw.create_task(ctx_for("developer"), project.id, {"title": "A"})
        tw.delete_task(ctx_for("developer"), task.id)

    def test_top_level_role_unrestricted(self, project, ctx_for):
        tw.update_configuration(project.id, {"permissions": {"web_leader": {"can_delete": False}}})
        task = tw.create_task(ctx_for("web_leader"), project.id, {"title": "A"})
        tw.delete_task(ctx_for("web_leader"), task.id)


# ═══════════════════════════════════════════════════════════════
# HTTP surface
# ═══════════════════════════════════════════════════════════════

class TestTaskAPI:
    def test_config_get_and_invalid_patch(self, client, project):
        res = client.get(f"{API}/projects/{project.id}/task-config")
        assert res.status_code == 200
        assert len(res.get_json()["custom_statuses"]) == 3

        res = client.patch(f"{API}/projects/{project.id}/task-config", json={"custom_priorities": []})
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_RULE"
        assert "custom_priorities" in body["details"]

    def test_create_move_flow(self, client, project, headers_for):
        h = headers_for("web_leader")
        client.patch(f"{API}/projects/{project.id}/task-config", json={"custom_fields": [REQUIRED_URL_FIELD]})

        res = client.post(f"{API}/projects/{project.id}/tasks", json={"title": "Publicar"}, headers=h)
        assert res.status_code == 201
        task = res.get_json()
        assert task["status_label"] == "Por hacer"
        assert task["priority_label"] == "Media"

        res = client.patch(f"{API}/tasks/{task['id']}/status", json={"status": "completed"}, headers=h)
        assert res.status_code == 422
        assert res.get_json()["details"] == {"url": "required"}

        res = client.put(f"{API}/tasks/{task['id']}", json={"custom_fields": {"url": "https://x.io"}}, headers=h)
        assert res.status_code == 200

        res = client.patch(f"{API}/tasks/{task['id']}/status", json={"status": "completed"}, headers=h)
        assert res.status_code == 200
        assert res.get_json()["completed_by"] == "web_leader@example.com"

    def test_create_without_title(self, client, project, headers_for):
        res = client.post(f"{API}/projects/{project.id}/tasks", json={}, headers=headers_for("qa"))
        assert res.status_code == 422

    def test_board_and_list(self, client, project, headers_for):
        h = headers_for("web_leader")
        for title in ("A", "B"):
            client.post(f"{API}/projects/{project.id}/tasks", json={"title": title}, headers=h)

        res = client.get(f"{API}/projects/{project.id}/board")
        columns = res.get_json()["columns"]
        assert [c["key"] for c in columns] == ["todo", "in_progress", "completed"]
        assert [t["title"] for t in columns[0]["tasks"]] == ["A", "B"]

        res = client.get(f"{API}/projects/{project.id}/tasks?status=todo")
        assert res.get_json()["total"] == 2

    def test_reorder_and_delete(self, client, project, headers_for):
        h = headers_for("web_leader")
        ids = [
            client.post(f"{API}/projects/{project.id}/tasks", json={"title": t}, headers=h).get_json()["id"]
            for t in ("A", "B")
        ]
        res = client.put(
            f"{API}/projects/{project.id}/tasks/order",
            json={"status": "todo", "ids": list(reversed(ids))}, headers=h,
        )
        assert res.status_code == 200
        assert [t["id"] for t in res.get_json()["tasks"]] == list(reversed(ids))

        res = client.delete(f"{API}/tasks/{ids[0]}", headers=h)
        assert res.status_code == 200
        assert client.delete(f"{API}/tasks/{ids[0]}", headers=h).status_code == 404

    def test_permission_denied_envelope(self, client, project, headers_for):
        client.patch(f"{API}/projects/{project.id}/task-config",
                     json={"permissions": {"qa": {"can_create": False}}})
        res = client.post(f"{API}/projects/{project.id}/tasks", json={"title": "A"}, headers=headers_for("qa"))
        assert res.status_code == 403
        body = res.get_json()
        assert body["code"] == "ERR_FORBIDDEN"
        assert body["details"]["reason"] == "task_permission"

    def test_reorder_with_non_numeric_ids_is_422(self, client, project, headers_for):
        h = headers_for("web_leader")
        client.post(f"{API}/projects/{project.id}/tasks", json={"title": "A"}, headers=h)
        for ids in (["abc"], "1,2", [1.5], None):
            res = client.put(
                f"{API}/projects/{project.id}/tasks/order", json={"status": "todo", "ids": ids}, headers=h,
            )
            assert res.status_code == 422
            assert res.get_json()["code"] == "ERR_VALIDATION_RULE"

    def test_config_patch_with_string_statuses_is_422(self, client, project):
        res = client.patch(f"{API}/projects/{project.id}/task-config", json={"custom_statuses": ["todo", "done"]})
        assert res.status_code == 422
        assert "custom_statuses" in res.get_json()["details"]
