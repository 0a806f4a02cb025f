"""
Checklist Blueprint

Prefix: /api/v1

Endpoints:
  Checklist:
    POST  /projects/<pid>/checklist                        -- Generate once (no-op if present)
    GET   /projects/<pid>/checklist?view=all|pending|critical
    GET   /projects/<pid>/checklist/risk                   -- Risk assessment
    POST  /projects/<pid>/checklist/items                  -- Add item

  Phases:
    GET   /projects/<pid>/checklist/phases                 -- Visible phases, ordered
    PUT   /projects/<pid>/checklist/phases                 -- Reorder phases
    PUT   /projects/<pid>/checklist/phases/<phase>         -- Rename / hide / show
    PUT   /projects/<pid>/checklist/phases/<phase>/order   -- Reorder items

  Items:
    PATCH  /checklist-items/<iid>/status                   -- Complete / reopen
    PUT    /checklist-items/<iid>                          -- Edit
    DELETE /checklist-items/<iid>

  Conflicts:
    GET   /projects/<pid>/conflicts?status=open|resolved
    POST  /checklist-items/<iid>/conflicts                 -- Raise
    POST  /conflicts/<cid>/resolve                         -- Resolve (web leader)

The acting role comes from the X-Acting-Role header.
"""

import logging

from flask import Blueprint, jsonify, request

from qaboard.blueprints import json_body, session_ctx
from qaboard.services import checklist_service as cs
from qaboard.services.permission_gate import get_gate
from qaboard.services.project_service import get_project

logger = logging.getLogger(__name__)

checklist_bp = Blueprint("checklist", __name__, url_prefix="/api/v1")


def _item_dict(item, role):
    d = item.to_dict()
    d["allowed_actions"] = get_gate().allowed_actions(role, item.phase)
    return d


# ------------------------------------------------------------------
#  Checklist
# ------------------------------------------------------------------

@checklist_bp.route("/projects/<int:pid>/checklist", methods=["POST"])
def initialize_checklist_route(pid):
    items = cs.initialize_checklist(pid)
    return jsonify({"items": [i.to_dict() for i in items], "total": len(items)}), 201


@checklist_bp.route("/projects/<int:pid>/checklist", methods=["GET"])
def get_checklist_route(pid):
    view = request.args.get("view", "all")
    role = session_ctx().acting_role
    phases = cs.items_by_phase(pid, view)
    return jsonify({
        "view": view,
        "phases": [
            {**{k: v for k, v in p.items() if k != "items"},
             "items": [_item_dict(i, role) for i in p["items"]]}
            for p in phases
        ],
    }), 200


@checklist_bp.route("/projects/<int:pid>/checklist/risk", methods=["GET"])
def risk_route(pid):
    return jsonify(cs.project_risk(pid).to_dict()), 200


@checklist_bp.route("/projects/<int:pid>/checklist/items", methods=["POST"])
def add_item_route(pid):
    item = cs.add_item(session_ctx(), pid, json_body())
    return jsonify(item.to_dict()), 201


# ------------------------------------------------------------------
#  Phases
# ------------------------------------------------------------------

@checklist_bp.route("/projects/<int:pid>/checklist/phases", methods=["GET"])
def list_phases_route(pid):
    return jsonify({"phases": cs.ordered_phases(get_project(pid))}), 200


@checklist_bp.route("/projects/<int:pid>/checklist/phases", methods=["PUT"])
def reorder_phases_route(pid):
    project = cs.reorder_phases(session_ctx(), pid, json_body().get("phases"))
    return jsonify({"phases": cs.ordered_phases(project)}), 200


@checklist_bp.route("/projects/<int:pid>/checklist/phases/<phase>", methods=["PUT"])
def update_phase_route(pid, phase):
    """Body: {name?, hidden?}"""
    ctx = session_ctx()
    data = json_body()
    project = None
    if "name" in data:
        project = cs.rename_phase(ctx, pid, phase, data.get("name"))
    if "hidden" in data:
        project = cs.hide_phase(ctx, pid, phase, bool(data.get("hidden")))
    if project is None:
        return jsonify({"error": "name or hidden is required"}), 400
    return jsonify({"phases": cs.ordered_phases(project)}), 200


@checklist_bp.route("/projects/<int:pid>/checklist/phases/<phase>/order", methods=["PUT"])
def reorder_items_route(pid, phase):
    items = cs.reorder_items(session_ctx(), pid, phase, json_body().get("ids"))
    return jsonify({"items": [i.to_dict() for i in items]}), 200


# ------------------------------------------------------------------
#  Items
# ------------------------------------------------------------------

@checklist_bp.route("/checklist-items/<int:iid>/status", methods=["PATCH"])
def set_status_route(iid):
    item = cs.set_item_status(session_ctx(), iid, json_body().get("status"))
    return jsonify(item.to_dict()), 200


@checklist_bp.route("/checklist-items/<int:iid>", methods=["PUT"])
def update_item_route(iid):
    item = cs.update_item(session_ctx(), iid, json_body())
    return jsonify(item.to_dict()), 200


@checklist_bp.route("/checklist-items/<int:iid>", methods=["DELETE"])
def delete_item_route(iid):
    cs.delete_item(session_ctx(), iid)
    return jsonify({"deleted": True}), 200


# ------------------------------------------------------------------
#  Conflicts
# ------------------------------------------------------------------

@checklist_bp.route("/projects/<int:pid>/conflicts", methods=["GET"])
def list_conflicts_route(pid):
    conflicts = cs.list_conflicts(pid, request.args.get("status") or None)
    return jsonify({"conflicts": [c.to_dict() for c in conflicts], "total": len(conflicts)}), 200


@checklist_bp.route("/checklist-items/<int:iid>/conflicts", methods=["POST"])
def open_conflict_route(iid):
    conflict = cs.open_conflict(session_ctx(), iid, json_body().get("description"))
    return jsonify(conflict.to_dict()), 201


@checklist_bp.route("/conflicts/<int:cid>/resolve", methods=["POST"])
def resolve_conflict_route(cid):
    conflict = cs.resolve_conflict(session_ctx(), cid, json_body().get("resolution"))
    return jsonify(conflict.to_dict()), 200
