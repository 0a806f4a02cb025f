"""
Permission Gate — role-and-phase gating for checklist mutations.

Roles are data: a capability table (display name, leader flag, phases)
loaded from YAML and consulted through one gate. Evaluation order:

  1. the top-level role (``web_leader``) may do anything on any phase
  2. unknown role                               → invalid_role
  3. phase outside the role's phases            → phase_not_authorized
  4. structural action by a non-leader role     → requires_leader
  5. completing an item passes for any role that cleared step 3

Reordering phases is reserved to the top-level role alone.

Usage:
    from qaboard.services.permission_gate import ChecklistAction, get_gate

    gate = get_gate()
    gate.check("qa", "qa", ChecklistAction.COMPLETE_ITEM)     # passes
    gate.can_act("qa", "qa", ChecklistAction.EDIT_ITEM)       # False
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import yaml
from flask import current_app, has_app_context

from qaboard.core.exceptions import DenialReason, PermissionDenied

logger = logging.getLogger(__name__)

ALL_PHASES = "all"
DEFAULT_TOP_LEVEL_ROLE = "web_leader"
_DEFAULT_ROLES_FILE = Path(__file__).resolve().parent.parent / "data" / "roles.yaml"


# ═════════════════════════════════════════════════════════════════════════════
# Actions, capabilities, decisions
# ═════════════════════════════════════════════════════════════════════════════

class ChecklistAction(str, Enum):
    COMPLETE_ITEM = "complete_item"
    EDIT_ITEM = "edit_item"
    DELETE_ITEM = "delete_item"
    ADD_ITEM = "add_item"
    REORDER_ITEMS = "reorder_items"
    RENAME_PHASE = "rename_phase"
    HIDE_PHASE = "hide_phase"
    REORDER_PHASES = "reorder_phases"


STRUCTURAL_ACTIONS = frozenset(a for a in ChecklistAction if a is not ChecklistAction.COMPLETE_ITEM)

# Verb used in phase denial messages, per action
_ACTION_VERB = {
    ChecklistAction.COMPLETE_ITEM: "completar ítems",
    ChecklistAction.EDIT_ITEM: "editar ítems",
    ChecklistAction.DELETE_ITEM: "eliminar ítems",
    ChecklistAction.ADD_ITEM: "agregar ítems",
    ChecklistAction.REORDER_ITEMS: "reordenar ítems",
    ChecklistAction.RENAME_PHASE: "renombrar",
    ChecklistAction.HIDE_PHASE: "ocultar",
    ChecklistAction.REORDER_PHASES: "reordenar fases",
}

# Leader-only denial message, per action
_LEADER_ONLY_MESSAGE = {
    ChecklistAction.EDIT_ITEM: "Solo los líderes pueden editar ítems. Puedes marcarlos como completados",
    ChecklistAction.DELETE_ITEM: "Solo los líderes pueden eliminar ítems",
    ChecklistAction.ADD_ITEM: "Solo los líderes pueden agregar ítems",
    ChecklistAction.REORDER_ITEMS: "Solo los líderes pueden reordenar ítems",
    ChecklistAction.RENAME_PHASE: "Solo los líderes pueden renombrar fases",
    ChecklistAction.HIDE_PHASE: "Solo los líderes pueden ocultar fases",
}


def denial_message(reason: DenialReason, action: ChecklistAction) -> str:
    """User-facing message for a denial; each reason reads differently."""
    if reason is DenialReason.INVALID_ROLE:
        return "Rol no válido"
    if reason is DenialReason.REQUIRES_TOP_LEVEL_ROLE:
        return "Solo el Líder Web puede reordenar las fases"
    if reason is DenialReason.PHASE_NOT_AUTHORIZED:
        if action in (ChecklistAction.RENAME_PHASE, ChecklistAction.HIDE_PHASE):
            return f"No tienes permisos para {_ACTION_VERB[action]} esta fase"
        return f"No tienes permisos para {_ACTION_VERB[action]} de esta fase"
    return _LEADER_ONLY_MESSAGE.get(action, "Solo los líderes pueden modificar la estructura del checklist")


@dataclass(frozen=True)
class RoleCapability:
    """What one role may do: leader flag plus its phase set."""
    key: str
    name: str
    is_leader: bool = False
    phases: frozenset[str] | None = None  # None = all phases
    color: str = ""

    @property
    def all_phases(self) -> bool:
        return self.phases is None

    def covers(self, phase: str | None) -> bool:
        return self.phases is None or phase in self.phases

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "name": self.name,
            "is_leader": self.is_leader,
            "phases": ALL_PHASES if self.phases is None else sorted(self.phases),
            "color": self.color,
        }

    @classmethod
    def from_dict(cls, key: str, data: dict) -> "RoleCapability":
        raw = data.get("phases", ALL_PHASES)
        if raw == ALL_PHASES or (isinstance(raw, list) and ALL_PHASES in raw):
            phases = None
        else:
            phases = frozenset(raw or [])
        return cls(
            key=key,
            name=data.get("name", key.replace("_", " ").title()),
            is_leader=bool(data.get("is_leader", False)),
            phases=phases,
            color=data.get("color", ""),
        )


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: DenialReason | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }


_ALLOWED = GateDecision(True)


# ═════════════════════════════════════════════════════════════════════════════
# Role registry
# ═════════════════════════════════════════════════════════════════════════════

class RoleRegistry:
    """
    Capability table keyed by role.

    Loaded from a YAML file with a top-level ``roles`` mapping. Additional
    roles can be registered at runtime without code changes elsewhere.
    """

    def __init__(self, roles_file: str | Path | None = None):
        self._roles_file = Path(roles_file) if roles_file else _DEFAULT_ROLES_FILE
        self._roles: dict[str, RoleCapability] = {}
        self._load()

    def _load(self):
        with open(self._roles_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        roles = data.get("roles") or {}
        if not isinstance(roles, dict):
            raise ValueError(f"'roles' must be a mapping in {self._roles_file}")
        for key, spec in roles.items():
            self.register(RoleCapability.from_dict(key, spec or {}))
        logger.info("Loaded %d role capabilities from %s", len(self._roles), self._roles_file.name)

    def register(self, capability: RoleCapability):
        self._roles[capability.key] = capability

    def get(self, role: str | None) -> RoleCapability | None:
        if not role:
            return None
        return self._roles.get(role)

    def keys(self) -> list[str]:
        return list(self._roles)

    def __contains__(self, role) -> bool:
        return role in self._roles

    def to_dict(self) -> dict:
        return {k: c.to_dict() for k, c in self._roles.items()}


# ═════════════════════════════════════════════════════════════════════════════
# Gate
# ═════════════════════════════════════════════════════════════════════════════

class PermissionGate:
    """Single entry point for every checklist permission decision."""

    def __init__(self, registry: RoleRegistry, top_level_role: str = DEFAULT_TOP_LEVEL_ROLE):
        self.registry = registry
        self.top_level_role = top_level_role

    def evaluate(self, role: str | None, phase: str | None, action: ChecklistAction) -> GateDecision:
        """Decide whether ``role`` may perform ``action`` on ``phase``."""
        action = ChecklistAction(action)

        if role == self.top_level_role:
            return _ALLOWED

        capability = self.registry.get(role)
        if capability is None:
            return self._deny(DenialReason.INVALID_ROLE, action)

        if action is ChecklistAction.REORDER_PHASES:
            return self._deny(DenialReason.REQUIRES_TOP_LEVEL_ROLE, action)

        if not capability.covers(phase):
            return self._deny(DenialReason.PHASE_NOT_AUTHORIZED, action)

        if action in STRUCTURAL_ACTIONS and not capability.is_leader:
            return self._deny(DenialReason.REQUIRES_LEADER, action)

        return _ALLOWED

    def can_act(self, role, phase, action) -> bool:
        return self.evaluate(role, phase, action).allowed

    def check(self, role, phase, action) -> None:
        """Raise PermissionDenied unless the action is allowed."""
        decision = self.evaluate(role, phase, action)
        if not decision.allowed:
            logger.info(
                "Permission denied role=%s phase=%s action=%s reason=%s",
                role, phase, ChecklistAction(action).value, decision.reason.value,
                extra={"role": role, "action": ChecklistAction(action).value},
            )
            raise PermissionDenied(
                decision.reason, decision.message,
                role=role, phase=phase, action=ChecklistAction(action).value,
            )

    def can_rename_phase(self, role, phase) -> bool:
        return self.can_act(role, phase, ChecklistAction.RENAME_PHASE)

    def can_hide_phase(self, role, phase) -> bool:
        return self.can_act(role, phase, ChecklistAction.HIDE_PHASE)

    def can_reorder_phases(self, role) -> bool:
        return self.can_act(role, None, ChecklistAction.REORDER_PHASES)

    def is_top_level(self, role) -> bool:
        return role == self.top_level_role

    def allowed_actions(self, role, phase) -> list[str]:
        """Actions ``role`` may take on ``phase`` (for UI affordances)."""
        return [a.value for a in ChecklistAction if self.can_act(role, phase, a)]

    @staticmethod
    def _deny(reason: DenialReason, action: ChecklistAction) -> GateDecision:
        return GateDecision(False, reason, denial_message(reason, action))


def init_permission_gate(app):
    """Load the role table named in config and attach the gate to the app."""
    registry = RoleRegistry(app.config.get("ROLE_CAPABILITIES_FILE"))
    gate = PermissionGate(registry, app.config.get("TOP_LEVEL_ROLE", DEFAULT_TOP_LEVEL_ROLE))
    app.extensions["permission_gate"] = gate
    return gate


_fallback_gate: PermissionGate | None = None


def get_gate() -> PermissionGate:
    """Return the app's gate, or a gate over the bundled table outside an app."""
    global _fallback_gate
    if has_app_context() and "permission_gate" in current_app.extensions:
        return current_app.extensions["permission_gate"]
    if _fallback_gate is None:
        _fallback_gate = PermissionGate(RoleRegistry())
    return _fallback_gate
