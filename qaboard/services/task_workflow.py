"""
Task Workflow Service — configurable task board per project.

The state machine has no fixed status names: each project's
TaskConfiguration supplies the statuses (one or more flagged ``is_final``),
the priorities, the custom fields and an optional role permission matrix.

Rules:
  - Entering a final status requires every ``required`` custom field to be
    filled; the move is rejected whole, naming every missing field.
  - ``completed_by`` / ``completed_at`` are stamped only on entry into a
    final status and cleared when the task leaves the final set.
  - A project without a configuration gets the default one on first use.
  - Task writes go through the optimistic board cache and are rolled back
    there when the database refuses them.

Usage:
    from qaboard.services import task_workflow as tw
    task = tw.create_task(ctx, project_id, {"title": "Revisar formulario"})
    tw.move_task(ctx, task.id, "completed")
"""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone

from qaboard.core.exceptions import DenialReason, PermissionDenied, ValidationError
from qaboard.models import db
from qaboard.models.project import Project
from qaboard.models.task import TASK_PERMISSION_FLAGS, Task, TaskConfiguration, default_task_config
from qaboard.services.custom_field_types import (
    missing_required,
    parse_field_definitions,
    validate_field_values,
)
from qaboard.services.optimistic_cache import get_board_cache, reconcile
from qaboard.services.permission_gate import get_gate
from qaboard.utils.helpers import clean_text, get_or_raise, parse_date_input, parse_id_list

logger = logging.getLogger(__name__)

CONFIG_FIELDS = ("module_enabled", "custom_statuses", "custom_priorities", "custom_fields", "permissions")
TASK_EDITABLE_FIELDS = ("title", "description", "priority", "assigned_to", "due_date", "custom_fields")

_PERMISSION_MESSAGES = {
    "can_create": "Tu rol no puede crear tareas",
    "can_edit": "Tu rol no puede editar tareas",
    "can_delete": "Tu rol no puede eliminar tareas",
    "can_change_status": "Tu rol no puede cambiar el estado de las tareas",
}


# ═════════════════════════════════════════════════════════════════════════════
# Configuration
# ═════════════════════════════════════════════════════════════════════════════

def get_configuration(project_id):
    return TaskConfiguration.query.filter_by(project_id=project_id).first()


def get_or_create_configuration(project_id):
    """Return the project's board configuration, creating the default on first use."""
    get_or_raise(Project, project_id)
    config = get_configuration(project_id)
    if config is not None:
        return config

    defaults = default_task_config()
    config = TaskConfiguration(project_id=project_id, **defaults)
    db.session.add(config)
    db.session.commit()
    logger.info("Default task configuration created", extra={"project_id": project_id})
    return config


def _entries(candidate, label, errors):
    """The list under ``label``, or None after recording a shape error."""
    entries = candidate.get(label) or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        errors[label] = "Debe ser una lista de objetos"
        return None
    return entries


def _unique_keys(entries, label, errors):
    keys = [e.get("key") for e in entries]
    if any(not isinstance(k, str) or not k.strip() for k in keys):
        errors[label] = "Cada elemento necesita una clave"
        return
    dupes = sorted({k for k in keys if keys.count(k) > 1})
    if dupes:
        errors[label] = f"Claves duplicadas: {', '.join(dupes)}"


def validate_configuration(candidate: dict) -> None:
    """Raise ValidationError if ``candidate`` is not a usable board definition."""
    errors = {}

    statuses = _entries(candidate, "custom_statuses", errors)
    if statuses is not None:
        if not statuses:
            errors["custom_statuses"] = "Debe haber al menos un estado"
        elif not any(s.get("is_final") for s in statuses):
            errors["custom_statuses"] = "Debe haber al menos un estado final"
        else:
            _unique_keys(statuses, "custom_statuses", errors)

    priorities = _entries(candidate, "custom_priorities", errors)
    if priorities is not None:
        if not priorities:
            errors["custom_priorities"] = "Debe haber al menos una prioridad"
        else:
            _unique_keys(priorities, "custom_priorities", errors)

    fields = candidate.get("custom_fields") or []
    try:
        parse_field_definitions(fields)
    except ValidationError as exc:
        errors["custom_fields"] = exc.message
    else:
        _unique_keys(fields, "custom_fields", errors)

    permissions = candidate.get("permissions") or {}
    if not isinstance(permissions, dict):
        errors["permissions"] = "Debe ser un objeto rol -> permisos"
    else:
        for role, flags in permissions.items():
            if flags is not None and not isinstance(flags, dict):
                errors["permissions"] = f"Permisos de {role} deben ser un objeto"
                break
            unknown = set(flags or {}) - set(TASK_PERMISSION_FLAGS)
            if unknown:
                errors["permissions"] = f"Permisos desconocidos para {role}: {', '.join(sorted(unknown))}"
                break

    if errors:
        first = next(iter(errors.values()))
        raise ValidationError(first, details=errors)


def update_configuration(project_id, patch: dict):
    """Validate and apply a configuration patch.

    Arrays in the patch replace the stored ones whole. A rejected patch
    leaves the stored configuration untouched.
    """
    config = get_or_create_configuration(project_id)
    unknown = set(patch or {}) - set(CONFIG_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            details={k: "unknown" for k in unknown},
        )

    candidate = {f: copy.deepcopy(getattr(config, f)) for f in CONFIG_FIELDS}
    candidate.update(copy.deepcopy(patch))
    try:
        validate_configuration(candidate)
    except ValidationError as exc:
        logger.info("Configuration patch rejected: %s", exc.message, extra={"project_id": project_id})
        raise

    for key in patch:
        setattr(config, key, candidate[key])
    db.session.commit()
    logger.info(
        "Task configuration updated keys=%s", sorted(patch),
        extra={"project_id": project_id},
    )
    return config


def status_label(config, status_key):
    status = config.status(status_key) if config else None
    return status.get("label") if status else status_key


def priority_label(config, priority_key):
    priority = config.priority(priority_key) if config else None
    return priority.get("label") if priority else priority_key


# ═════════════════════════════════════════════════════════════════════════════
# Permission matrix
# ═════════════════════════════════════════════════════════════════════════════

def can_perform(config, role, flag) -> bool:
    """True if ``role`` holds ``flag`` in the board's permission matrix.

    Roles without an entry, and the top-level role, are unrestricted.
    """
    if get_gate().is_top_level(role):
        return True
    entry = (config.permissions or {}).get(role)
    if entry is None:
        return True
    return bool(entry.get(flag, True))


def _require(config, ctx, flag):
    if not can_perform(config, ctx.acting_role, flag):
        logger.info(
            "Task permission %s denied for role=%s", flag, ctx.acting_role,
            extra={"project_id": config.project_id, "role": ctx.acting_role, "action": flag},
        )
        raise PermissionDenied(
            DenialReason.TASK_PERMISSION, _PERMISSION_MESSAGES[flag],
            role=ctx.acting_role, action=flag,
        )


# ═════════════════════════════════════════════════════════════════════════════
# Tasks
# ═════════════════════════════════════════════════════════════════════════════

def _board_cache(project_id):
    # Re-primed from the store before every read and every mutation snapshot
    return get_board_cache(
        project_id,
        loader=lambda: [t.to_dict() for t in Task.query.filter_by(project_id=project_id).all()],
        refresh=True,
    )


def _field_definitions(config):
    return parse_field_definitions(config.custom_fields)


def _parse_due_date(value):
    try:
        return parse_date_input(value)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"due_date": "invalid"}) from exc


def _check_required_for(config, status_key, custom_fields):
    """Reject entry into a final status while required fields are empty."""
    status = config.status(status_key)
    if not status or not status.get("is_final"):
        return
    missing = missing_required(_field_definitions(config), custom_fields)
    if missing:
        raise ValidationError(
            f"Completa: {', '.join(f.label for f in missing)}",
            details={f.key: "required" for f in missing},
        )


def _commit_task(task):
    def persist():
        db.session.commit()
        return {task.id: task.to_dict()}
    return persist


def list_tasks(project_id):
    get_or_raise(Project, project_id)
    return (
        Task.query.filter_by(project_id=project_id)
        .order_by(Task.status, Task.order, Task.id)
        .all()
    )


def tasks_by_status(project_id, status_key):
    """Tasks in one column, sorted by their position."""
    return (
        Task.query.filter_by(project_id=project_id, status=status_key)
        .order_by(Task.order, Task.id)
        .all()
    )


def create_task(ctx, project_id, data: dict):
    """Create a task at the end of the project's board."""
    config = get_or_create_configuration(project_id)
    if not config.module_enabled:
        raise ValidationError("El módulo de tareas está desactivado para este proyecto")
    _require(config, ctx, "can_create")
    cache = _board_cache(project_id)

    title = clean_text(data.get("title"))
    if not title:
        raise ValidationError("El título es requerido", details={"title": "required"})

    statuses = config.custom_statuses or []
    status_key = data.get("status") or (statuses[0]["key"] if statuses else "todo")
    if config.status(status_key) is None:
        raise ValidationError(f"Estado desconocido: {status_key}", details={"status": "invalid"})

    priority_key = data.get("priority")
    if not priority_key:
        priorities = config.custom_priorities or []
        if config.priority("medium") is not None:
            priority_key = "medium"
        else:
            priority_key = priorities[0]["key"] if priorities else "medium"
    elif config.priority(priority_key) is None:
        raise ValidationError(f"Prioridad desconocida: {priority_key}", details={"priority": "invalid"})

    definitions = _field_definitions(config)
    custom_fields = {
        d.key: d.validate(d.default_value) for d in definitions if d.default_value is not None
    }
    custom_fields.update(validate_field_values(definitions, data.get("custom_fields") or {}))
    _check_required_for(config, status_key, custom_fields)

    task = Task(
        project_id=project_id,
        title=title,
        description=data.get("description") or "",
        status=status_key,
        priority=priority_key,
        assigned_to=data.get("assigned_to") or None,
        due_date=_parse_due_date(data.get("due_date")),
        order=Task.query.filter_by(project_id=project_id).count(),
        custom_fields=custom_fields,
        created_by=ctx.email,
    )
    if config.status(status_key).get("is_final"):
        task.completed_by = ctx.email
        task.completed_at = datetime.now(timezone.utc)

    placeholder = f"tmp-{uuid.uuid4().hex[:8]}"
    optimistic = {"id": placeholder, "project_id": project_id, "title": title,
                  "status": status_key, "priority": priority_key, "order": task.order}

    def persist():
        db.session.add(task)
        db.session.commit()
        return {placeholder: None, task.id: task.to_dict()}

    reconcile(cache, {placeholder: optimistic}, persist)
    logger.info(
        "Task created status=%s", status_key,
        extra={"project_id": project_id, "task_id": task.id, "role": ctx.acting_role},
    )
    return task


def move_task(ctx, task_id, new_status):
    """Move a task to another status column.

    Moving into a final status is all-or-nothing: if any required custom
    field is empty the task stays where it was.
    """
    task = get_or_raise(Task, task_id)
    config = get_or_create_configuration(task.project_id)
    _require(config, ctx, "can_change_status")
    cache = _board_cache(task.project_id)

    target = config.status(new_status)
    if target is None:
        raise ValidationError(f"Estado desconocido: {new_status}", details={"status": "invalid"})
    if task.status == new_status:
        return task

    _check_required_for(config, new_status, task.custom_fields)

    current = config.status(task.status)
    was_final = bool(current and current.get("is_final"))
    old_status = task.status
    new_order = len(tasks_by_status(task.project_id, new_status))

    task.status = new_status
    task.order = new_order
    if target.get("is_final") and not was_final:
        task.completed_by = ctx.email
        task.completed_at = datetime.now(timezone.utc)
    elif not target.get("is_final"):
        task.completed_by = None
        task.completed_at = None

    reconcile(cache, {task.id: task.to_dict()}, _commit_task(task))
    logger.info(
        "Task moved %s -> %s", old_status, new_status,
        extra={"project_id": task.project_id, "task_id": task.id, "role": ctx.acting_role},
    )
    return task


def update_task(ctx, task_id, data: dict):
    """Edit task fields; a ``status`` key is routed through move_task."""
    task = get_or_raise(Task, task_id)
    config = get_or_create_configuration(task.project_id)
    _require(config, ctx, "can_edit")
    cache = _board_cache(task.project_id)

    errors = {}
    if "title" in data:
        title = clean_text(data.get("title"))
        if not title:
            errors["title"] = "required"
    if "priority" in data and config.priority(data["priority"]) is None:
        errors["priority"] = "invalid"
    if errors:
        raise ValidationError("Datos de tarea inválidos", details=errors)

    custom_fields = task.custom_fields or {}
    if "custom_fields" in data:
        cleaned = validate_field_values(_field_definitions(config), data.get("custom_fields") or {})
        custom_fields = {**custom_fields, **cleaned}
        # Editing a completed task may not empty its required fields
        _check_required_for(config, task.status, custom_fields)

    due_date = _parse_due_date(data["due_date"]) if "due_date" in data else task.due_date

    new_status = data.get("status")
    if new_status and new_status != task.status:
        # Reject the whole edit up front if the status change would fail
        _require(config, ctx, "can_change_status")
        if config.status(new_status) is None:
            raise ValidationError(f"Estado desconocido: {new_status}", details={"status": "invalid"})
        _check_required_for(config, new_status, custom_fields)

    for key in ("title", "description", "priority", "assigned_to"):
        if key in data:
            value = data[key]
            setattr(task, key, value.strip() if key == "title" else value)
    task.due_date = due_date
    task.custom_fields = dict(custom_fields)

    reconcile(cache, {task.id: task.to_dict()}, _commit_task(task))
    logger.info(
        "Task updated fields=%s", sorted(k for k in data if k in TASK_EDITABLE_FIELDS),
        extra={"project_id": task.project_id, "task_id": task.id, "role": ctx.acting_role},
    )

    if new_status and new_status != task.status:
        return move_task(ctx, task.id, new_status)
    return task


def delete_task(ctx, task_id):
    task = get_or_raise(Task, task_id)
    config = get_or_create_configuration(task.project_id)
    _require(config, ctx, "can_delete")
    cache = _board_cache(task.project_id)
    project_id = task.project_id

    def persist():
        db.session.delete(task)
        db.session.commit()
        return {task_id: None}

    reconcile(cache, {task_id: None}, persist)
    logger.info(
        "Task deleted", extra={"project_id": project_id, "task_id": task_id, "role": ctx.acting_role},
    )


def reorder_within_status(ctx, project_id, status_key, ordered_ids):
    """Set each task's ``order`` to its index in ``ordered_ids``.

    ``ordered_ids`` must be the complete membership of the column.
    """
    config = get_or_create_configuration(project_id)
    _require(config, ctx, "can_edit")
    cache = _board_cache(project_id)
    if config.status(status_key) is None:
        raise ValidationError(f"Estado desconocido: {status_key}", details={"status": "invalid"})

    column = {t.id: t for t in tasks_by_status(project_id, status_key)}
    ordered_ids = parse_id_list(ordered_ids)
    if len(set(ordered_ids)) != len(ordered_ids) or set(ordered_ids) != set(column):
        raise ValidationError(
            "La lista debe contener exactamente las tareas de la columna",
            details={"expected": sorted(column), "received": ordered_ids},
        )

    changes = {}
    for index, tid in enumerate(ordered_ids):
        column[tid].order = index
        changes[tid] = column[tid].to_dict()

    def persist():
        db.session.commit()
        return {tid: column[tid].to_dict() for tid in ordered_ids}

    reconcile(cache, changes, persist)
    logger.info(
        "Column %s reordered (%d tasks)", status_key, len(ordered_ids),
        extra={"project_id": project_id, "role": ctx.acting_role},
    )
    return [column[tid] for tid in ordered_ids]


def board_view(project_id):
    """The board as readers see it: configured columns with their cached tasks."""
    config = get_or_create_configuration(project_id)
    cache = _board_cache(project_id)
    return [
        {**status, "tasks": cache.by_status(status["key"])}
        for status in sorted(config.custom_statuses or [], key=lambda s: s.get("order", 0))
    ]
