"""
Permission gate: role/phase/leader rules, denial reasons and the
YAML-backed role table.
"""

import pytest

from qaboard.core.exceptions import DenialReason, PermissionDenied
from qaboard.services.permission_gate import (
    STRUCTURAL_ACTIONS,
    ChecklistAction,
    PermissionGate,
    RoleCapability,
    RoleRegistry,
    denial_message,
)


@pytest.fixture()
def gate():
    return PermissionGate(RoleRegistry())


class TestTopLevelRole:
    @pytest.mark.parametrize("action", list(ChecklistAction))
    def test_web_leader_may_do_anything(self, gate, action):
        assert gate.can_act("web_leader", "security", action)

    def test_web_leader_acts_on_phase_nobody_lists(self, gate):
        assert gate.can_act("web_leader", "some_future_phase", ChecklistAction.EDIT_ITEM)

    def test_only_web_leader_reorders_phases(self, gate):
        assert gate.can_reorder_phases("web_leader")
        decision = gate.evaluate("administrador", None, ChecklistAction.REORDER_PHASES)
        assert not decision
        assert decision.reason is DenialReason.REQUIRES_TOP_LEVEL_ROLE


class TestRoleRules:
    def test_unknown_role(self, gate):
        decision = gate.evaluate("intern", "qa", ChecklistAction.COMPLETE_ITEM)
        assert decision.reason is DenialReason.INVALID_ROLE
        assert decision.message == "Rol no válido"

    def test_missing_role(self, gate):
        assert gate.evaluate(None, "qa", ChecklistAction.COMPLETE_ITEM).reason is DenialReason.INVALID_ROLE

    def test_non_leader_completes_in_own_phase(self, gate):
        assert gate.can_act("qa", "qa", ChecklistAction.COMPLETE_ITEM)

    def test_non_leader_cannot_edit_in_own_phase(self, gate):
        decision = gate.evaluate("qa", "qa", ChecklistAction.EDIT_ITEM)
        assert decision.reason is DenialReason.REQUIRES_LEADER
        assert "Puedes marcarlos como completados" in decision.message

    @pytest.mark.parametrize("action", sorted(STRUCTURAL_ACTIONS - {ChecklistAction.REORDER_PHASES}))
    def test_non_leader_denied_every_structural_action(self, gate, action):
        assert gate.evaluate("developer", "development", action).reason is DenialReason.REQUIRES_LEADER

    def test_phase_outside_capability(self, gate):
        decision = gate.evaluate("qa", "development", ChecklistAction.COMPLETE_ITEM)
        assert decision.reason is DenialReason.PHASE_NOT_AUTHORIZED

    def test_phase_check_precedes_leader_check(self, gate):
        decision = gate.evaluate("leader_software", "ux_ui", ChecklistAction.EDIT_ITEM)
        assert decision.reason is DenialReason.PHASE_NOT_AUTHORIZED

    def test_area_leader_edits_own_phase(self, gate):
        assert gate.can_act("leader_software", "security", ChecklistAction.EDIT_ITEM)
        assert gate.can_rename_phase("leader_creativity", "content")
        assert gate.can_hide_phase("leader_product", "planning")
        assert not gate.can_hide_phase("leader_product", "qa")

    def test_administrador_covers_all_phases(self, gate):
        assert gate.can_act("administrador", "seo_accessibility", ChecklistAction.DELETE_ITEM)

    def test_allowed_actions_for_non_leader(self, gate):
        assert gate.allowed_actions("seo", "seo_accessibility") == ["complete_item"]
        assert gate.allowed_actions("seo", "qa") == []


class TestDenialMessages:
    def test_each_reason_reads_differently(self):
        action = ChecklistAction.EDIT_ITEM
        messages = {
            denial_message(DenialReason.INVALID_ROLE, action),
            denial_message(DenialReason.PHASE_NOT_AUTHORIZED, action),
            denial_message(DenialReason.REQUIRES_LEADER, action),
            denial_message(DenialReason.REQUIRES_TOP_LEVEL_ROLE, action),
        }
        assert len(messages) == 4

    def test_check_raises_with_reason(self, gate):
        with pytest.raises(PermissionDenied) as exc:
            gate.check("marketing", "qa", ChecklistAction.COMPLETE_ITEM)
        assert exc.value.reason is DenialReason.PHASE_NOT_AUTHORIZED
        assert exc.value.role == "marketing"
        assert exc.value.phase == "qa"
        assert exc.value.action == "complete_item"


class TestRoleRegistry:
    def test_bundled_table(self):
        registry = RoleRegistry()
        assert "web_leader" in registry
        assert registry.get("qa").phases == frozenset({"qa", "responsive"})
        assert registry.get("administrador").all_phases

    def test_custom_table_from_yaml(self, tmp_path):
        path = tmp_path / "roles.yaml"
        path.write_text(
            "roles:\n"
            "  auditor:\n"
            "    name: Auditor\n"
            "    is_leader: false\n"
            "    phases: [delivery]\n",
            encoding="utf-8",
        )
        gate = PermissionGate(RoleRegistry(path))
        assert gate.can_act("auditor", "delivery", ChecklistAction.COMPLETE_ITEM)
        assert not gate.can_act("auditor", "qa", ChecklistAction.COMPLETE_ITEM)
        assert gate.evaluate("qa", "qa", ChecklistAction.COMPLETE_ITEM).reason is DenialReason.INVALID_ROLE

    def test_register_at_runtime(self):
        registry = RoleRegistry()
        registry.register(RoleCapability.from_dict("leader_qa", {"is_leader": True, "phases": ["qa"]}))
        gate = PermissionGate(registry)
        assert gate.can_act("leader_qa", "qa", ChecklistAction.REORDER_ITEMS)

    def test_roles_endpoint(self, client):
        res = client.get("/api/v1/roles")
        assert res.status_code == 200
        body = res.get_json()
        assert body["top_level_role"] == "web_leader"
        assert body["roles"]["qa"]["is_leader"] is False
        assert body["roles"]["web_leader"]["phases"] == "all"
