"""
Checklist Service — per-project QA checklist, phase overrides and conflicts.

Caller of the pure engines: runs the generator once per project, persists
the items in one transaction, gates every mutation through the permission
gate with the caller's SessionContext, and keeps the project's
denormalised risk metrics in step with the risk engine.

Status changes are gated as "complete" (any role whose phases cover the
item); every structural change requires a leader role.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from qaboard.core.exceptions import DenialReason, PermissionDenied, ValidationError
from qaboard.models import db
from qaboard.models.checklist import ITEM_STATUSES, WEIGHT_LEVELS, ChecklistItem, Conflict
from qaboard.models.project import Project
from qaboard.services import risk_engine
from qaboard.services.checklist_generator import generate_checklist
from qaboard.services.permission_gate import ChecklistAction, get_gate
from qaboard.services.template_catalog import PHASES, phases_in_order
from qaboard.utils.helpers import clean_text, get_or_raise, parse_id_list

logger = logging.getLogger(__name__)

VIEWS = ("all", "pending", "critical")
# Statuses settable directly; "conflict" is entered through open_conflict
DIRECT_STATUSES = ITEM_STATUSES - {"conflict"}


def _phase_rank(project):
    order = project.phase_order or [p.key for p in phases_in_order()]
    return {key: idx for idx, key in enumerate(order)}


def _require_phase(phase):
    if not isinstance(phase, str) or phase not in PHASES:
        raise ValidationError(f"Fase desconocida: {phase}", details={"phase": "invalid"})


# ═════════════════════════════════════════════════════════════════════════════
# Generation and listing
# ═════════════════════════════════════════════════════════════════════════════

def initialize_checklist(project_id):
    """Generate and persist the project's checklist once.

    Returns the existing items unchanged if the checklist is non-empty.
    """
    project = get_or_raise(Project, project_id)
    existing = list_items(project_id)
    if existing:
        return existing

    generated = generate_checklist(project.site_type, project.technology, project.applicable_areas)
    items = [ChecklistItem(**g.to_record(project_id)) for g in generated]
    db.session.add_all(items)
    db.session.commit()
    logger.info(
        "Checklist initialised site_type=%s technology=%s items=%d",
        project.site_type, project.technology, len(items),
        extra={"project_id": project_id},
    )
    project_risk(project_id)
    return list_items(project_id)


def list_items(project_id):
    project = get_or_raise(Project, project_id)
    rank = _phase_rank(project)
    items = ChecklistItem.query.filter_by(project_id=project_id).all()
    return sorted(items, key=lambda i: (rank.get(i.phase, len(rank)), i.order or 0, i.id))


def ordered_phases(project):
    """Visible phases with display names, in the project's phase order."""
    names = project.custom_phase_names or {}
    hidden = set(project.hidden_phases or [])
    rank = _phase_rank(project)
    phases = sorted(PHASES.values(), key=lambda p: (rank.get(p.key, len(rank)), p.order))
    return [
        {
            "key": p.key,
            "name": names.get(p.key) or p.name,
            "default_name": p.name,
            "area": p.area,
        }
        for p in phases
        if p.key not in hidden
    ]


def items_by_phase(project_id, view="all"):
    """Items of the visible phases grouped by phase, filtered by ``view``.

    view: ``all`` | ``pending`` (not completed) | ``critical`` (weight critical)
    """
    if view not in VIEWS:
        raise ValidationError(f"Vista desconocida: {view}", details={"view": f"one of {', '.join(VIEWS)}"})
    project = get_or_raise(Project, project_id)
    items = list_items(project_id)
    if view == "pending":
        items = [i for i in items if i.status != "completed"]
    elif view == "critical":
        items = [i for i in items if i.weight == "critical"]

    grouped = []
    for phase in ordered_phases(project):
        phase_items = [i for i in items if i.phase == phase["key"]]
        grouped.append({**phase, "items": phase_items})
    return grouped


# ═════════════════════════════════════════════════════════════════════════════
# Item mutations
# ═════════════════════════════════════════════════════════════════════════════

def set_item_status(ctx, item_id, status):
    """Change an item's status; completion stamps who, as which role, and when."""
    if not isinstance(status, str) or status not in DIRECT_STATUSES:
        raise ValidationError(
            f"Estado no válido: {status}",
            details={"status": f"one of {', '.join(sorted(DIRECT_STATUSES))}"},
        )
    item = get_or_raise(ChecklistItem, item_id)
    get_gate().check(ctx.acting_role, item.phase, ChecklistAction.COMPLETE_ITEM)

    previous = item.status
    item.status = status
    if status == "completed":
        item.completed_by = ctx.email
        item.completed_by_role = ctx.acting_role
        item.completed_at = datetime.now(timezone.utc)
    else:
        item.completed_by = None
        item.completed_by_role = None
        item.completed_at = None
    db.session.commit()

    logger.info(
        "Checklist item %s: %s -> %s", item.id, previous, status,
        extra={"project_id": item.project_id, "role": ctx.acting_role, "action": "complete_item"},
    )
    project_risk(item.project_id)
    return item


def update_item(ctx, item_id, data: dict):
    """Edit title, description, weight or phase of an item (leaders only)."""
    item = get_or_raise(ChecklistItem, item_id)
    gate = get_gate()
    gate.check(ctx.acting_role, item.phase, ChecklistAction.EDIT_ITEM)

    errors = {}
    if "title" in data and not clean_text(data.get("title")):
        errors["title"] = "required"
    if "weight" in data and data["weight"] not in WEIGHT_LEVELS:
        errors["weight"] = f"one of {', '.join(WEIGHT_LEVELS)}"
    if "phase" in data and (not isinstance(data["phase"], str) or data["phase"] not in PHASES):
        errors["phase"] = "invalid"
    if errors:
        raise ValidationError("Datos de ítem inválidos", details=errors)

    if "phase" in data and data["phase"] != item.phase:
        gate.check(ctx.acting_role, data["phase"], ChecklistAction.EDIT_ITEM)

    if "title" in data:
        item.title = data["title"].strip()
    for key in ("description", "weight", "phase"):
        if key in data:
            setattr(item, key, data[key])
    db.session.commit()

    logger.info(
        "Checklist item %s updated fields=%s", item.id, sorted(data),
        extra={"project_id": item.project_id, "role": ctx.acting_role, "action": "edit_item"},
    )
    if "weight" in data:
        project_risk(item.project_id)
    return item


def add_item(ctx, project_id, data: dict):
    """Append a new item to the end of a phase (leaders only)."""
    get_or_raise(Project, project_id)
    phase = data.get("phase")
    _require_phase(phase)
    get_gate().check(ctx.acting_role, phase, ChecklistAction.ADD_ITEM)

    title = clean_text(data.get("title"))
    if not title:
        raise ValidationError("El título es requerido", details={"title": "required"})
    weight = data.get("weight") or "medium"
    if weight not in WEIGHT_LEVELS:
        raise ValidationError(f"Peso no válido: {weight}", details={"weight": "invalid"})

    last = (
        db.session.query(db.func.max(ChecklistItem.order))
        .filter_by(project_id=project_id, phase=phase)
        .scalar()
    )
    item = ChecklistItem(
        project_id=project_id,
        phase=phase,
        title=title,
        description=data.get("description") or "",
        weight=weight,
        order=(last or 0) + 1,
        status="pending",
        applicable_technologies=["all"],
        applicable_site_types=["all"],
    )
    db.session.add(item)
    db.session.commit()

    logger.info(
        "Checklist item %s added to %s", item.id, phase,
        extra={"project_id": project_id, "role": ctx.acting_role, "action": "add_item"},
    )
    project_risk(project_id)
    return item


def delete_item(ctx, item_id):
    """Delete an item and the conflicts raised on it (leaders only)."""
    item = get_or_raise(ChecklistItem, item_id)
    get_gate().check(ctx.acting_role, item.phase, ChecklistAction.DELETE_ITEM)

    project_id = item.project_id
    Conflict.query.filter_by(checklist_item_id=item.id).delete()
    db.session.delete(item)
    db.session.commit()

    logger.info(
        "Checklist item %s deleted", item_id,
        extra={"project_id": project_id, "role": ctx.acting_role, "action": "delete_item"},
    )
    project_risk(project_id)


def reorder_items(ctx, project_id, phase, ordered_ids):
    """Renumber a phase's items 1..n in the given order (leaders only).

    ``ordered_ids`` must list every item of the phase exactly once.
    """
    get_or_raise(Project, project_id)
    _require_phase(phase)
    get_gate().check(ctx.acting_role, phase, ChecklistAction.REORDER_ITEMS)

    items = {i.id: i for i in ChecklistItem.query.filter_by(project_id=project_id, phase=phase).all()}
    ordered_ids = parse_id_list(ordered_ids)
    if len(set(ordered_ids)) != len(ordered_ids) or set(ordered_ids) != set(items):
        raise ValidationError(
            "La lista debe contener exactamente los ítems de la fase",
            details={"expected": sorted(items), "received": ordered_ids},
        )
    for position, iid in enumerate(ordered_ids, start=1):
        items[iid].order = position
    db.session.commit()

    logger.info(
        "Phase %s reordered (%d items)", phase, len(ordered_ids),
        extra={"project_id": project_id, "role": ctx.acting_role, "action": "reorder_items"},
    )
    return [items[iid] for iid in ordered_ids]


# ═════════════════════════════════════════════════════════════════════════════
# Phase overrides
# ═════════════════════════════════════════════════════════════════════════════

def rename_phase(ctx, project_id, phase, name):
    project = get_or_raise(Project, project_id)
    _require_phase(phase)
    get_gate().check(ctx.acting_role, phase, ChecklistAction.RENAME_PHASE)

    name = clean_text(name)
    if not name:
        raise ValidationError("El nombre es requerido", details={"name": "required"})
    project.custom_phase_names = {**(project.custom_phase_names or {}), phase: name}
    db.session.commit()

    logger.info(
        "Phase %s renamed to %r", phase, name,
        extra={"project_id": project_id, "role": ctx.acting_role, "action": "rename_phase"},
    )
    return project


def hide_phase(ctx, project_id, phase, hidden=True):
    """Hide (or show again) a phase for this project; its items are kept."""
    project = get_or_raise(Project, project_id)
    _require_phase(phase)
    get_gate().check(ctx.acting_role, phase, ChecklistAction.HIDE_PHASE)

    current = [p for p in (project.hidden_phases or []) if p != phase]
    if hidden:
        current.append(phase)
    project.hidden_phases = current
    db.session.commit()

    logger.info(
        "Phase %s %s", phase, "hidden" if hidden else "shown",
        extra={"project_id": project_id, "role": ctx.acting_role, "action": "hide_phase"},
    )
    return project


def reorder_phases(ctx, project_id, phase_keys):
    """Set the project's phase order (top-level role only).

    ``phase_keys`` must be a permutation of every catalogue phase.
    """
    project = get_or_raise(Project, project_id)
    get_gate().check(ctx.acting_role, None, ChecklistAction.REORDER_PHASES)

    if phase_keys is None:
        phase_keys = []
    if not isinstance(phase_keys, list) or not all(isinstance(k, str) for k in phase_keys):
        raise ValidationError("El orden debe ser una lista de fases", details={"phases": "invalid"})
    if len(set(phase_keys)) != len(phase_keys) or set(phase_keys) != set(PHASES):
        raise ValidationError(
            "El orden debe incluir cada fase exactamente una vez",
            details={"expected": sorted(PHASES)},
        )
    project.phase_order = phase_keys
    db.session.commit()

    logger.info(
        "Phase order updated", extra={"project_id": project_id, "role": ctx.acting_role, "action": "reorder_phases"},
    )
    return project


# ═════════════════════════════════════════════════════════════════════════════
# Conflicts
# ═════════════════════════════════════════════════════════════════════════════

def list_conflicts(project_id, status=None):
    get_or_raise(Project, project_id)
    q = Conflict.query.filter_by(project_id=project_id)
    if status:
        q = q.filter_by(status=status)
    return q.order_by(Conflict.created_at.desc(), Conflict.id.desc()).all()


def open_conflict(ctx, item_id, description):
    """Raise a conflict on an item; the item moves to status ``conflict``."""
    item = get_or_raise(ChecklistItem, item_id)
    get_gate().check(ctx.acting_role, item.phase, ChecklistAction.COMPLETE_ITEM)

    description = clean_text(description)
    if not description:
        raise ValidationError("Describe el conflicto", details={"description": "required"})

    conflict = Conflict(
        project_id=item.project_id,
        checklist_item_id=item.id,
        description=description,
        status="open",
        raised_by=ctx.email,
        raised_by_role=ctx.acting_role,
    )
    item.status = "conflict"
    item.completed_by = None
    item.completed_by_role = None
    item.completed_at = None
    db.session.add(conflict)
    db.session.commit()

    logger.info(
        "Conflict %s opened on item %s", conflict.id, item.id,
        extra={"project_id": item.project_id, "role": ctx.acting_role, "action": "open_conflict"},
    )
    project_risk(item.project_id)
    return conflict


def resolve_conflict(ctx, conflict_id, resolution):
    """Close a conflict (top-level role only); its item goes back to pending."""
    conflict = get_or_raise(Conflict, conflict_id)
    if not get_gate().is_top_level(ctx.acting_role):
        raise PermissionDenied(
            DenialReason.REQUIRES_TOP_LEVEL_ROLE,
            "Solo el Líder Web puede resolver conflictos",
            role=ctx.acting_role, action="resolve_conflict",
        )
    if conflict.status != "open":
        raise ValidationError("El conflicto ya está resuelto", details={"status": conflict.status})

    conflict.status = "resolved"
    conflict.resolution = clean_text(resolution)
    conflict.resolved_by = ctx.email
    conflict.resolved_at = datetime.now(timezone.utc)

    item = conflict.checklist_item
    if item is not None and item.status == "conflict":
        still_open = (
            Conflict.query.filter(
                Conflict.checklist_item_id == item.id,
                Conflict.status == "open",
                Conflict.id != conflict.id,
            ).count()
        )
        if not still_open:
            item.status = "pending"
    db.session.commit()

    logger.info(
        "Conflict %s resolved", conflict.id,
        extra={"project_id": conflict.project_id, "role": ctx.acting_role, "action": "resolve_conflict"},
    )
    project_risk(conflict.project_id)
    return conflict


# ═════════════════════════════════════════════════════════════════════════════
# Risk
# ═════════════════════════════════════════════════════════════════════════════

def project_risk(project_id, now=None):
    """Assess the project and sync its denormalised metrics when they changed."""
    project = get_or_raise(Project, project_id)
    items = ChecklistItem.query.filter_by(project_id=project_id).all()
    conflicts = Conflict.query.filter_by(project_id=project_id, status="open").all()
    risk = risk_engine.assess(items, conflicts, project, now=now)

    metrics = {
        "completion_percentage": round(risk.completion_rate, 2),
        "critical_pending": risk.critical_pending,
        "risk_level": risk.level,
        "has_conflicts": risk.conflicts > 0,
    }
    if any(getattr(project, k) != v for k, v in metrics.items()):
        for key, value in metrics.items():
            setattr(project, key, value)
        db.session.commit()
        logger.info(
            "Project metrics synced level=%s completion=%.1f",
            risk.level, risk.completion_rate, extra={"project_id": project_id},
        )
    return risk
