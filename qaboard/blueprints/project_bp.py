"""
Project Blueprint

Prefix: /api/v1

Endpoints:
  Projects:
    GET/POST        /projects                       -- List/create
    GET/PUT/DELETE  /projects/<pid>                 -- Single project CRUD

  Team:
    GET/POST        /projects/<pid>/team            -- List/add-or-update members
    DELETE          /projects/<pid>/team/<mid>      -- Deactivate member

  Reference data:
    GET             /roles                          -- Role capability table
    GET             /catalog                        -- Phases, weights, site types
    GET             /session                        -- Acting identity and role
"""

import logging

from flask import Blueprint, jsonify

from qaboard.blueprints import json_body, paginate_query, session_ctx
from qaboard.models.project import Project
from qaboard.services import project_service
from qaboard.services.permission_gate import get_gate
from qaboard.services.template_catalog import catalog_summary

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1")


# ------------------------------------------------------------------
#  Projects
# ------------------------------------------------------------------

@project_bp.route("/projects", methods=["GET"])
def list_projects_route():
    query = Project.query.order_by(Project.created_at.desc(), Project.id.desc())
    projects, total = paginate_query(query)
    return jsonify({"projects": [p.to_dict() for p in projects], "total": total}), 200


@project_bp.route("/projects", methods=["POST"])
def create_project_route():
    project = project_service.create_project(json_body())
    return jsonify(project.to_dict()), 201


@project_bp.route("/projects/<int:pid>", methods=["GET"])
def get_project_route(pid):
    return jsonify(project_service.get_project(pid).to_dict()), 200


@project_bp.route("/projects/<int:pid>", methods=["PUT"])
def update_project_route(pid):
    project = project_service.update_project(pid, json_body())
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:pid>", methods=["DELETE"])
def delete_project_route(pid):
    project_service.delete_project(pid)
    return jsonify({"deleted": True}), 200


# ------------------------------------------------------------------
#  Team
# ------------------------------------------------------------------

@project_bp.route("/projects/<int:pid>/team", methods=["GET"])
def list_team_route(pid):
    members = project_service.list_team_members(pid)
    return jsonify({"members": [m.to_dict() for m in members], "total": len(members)}), 200


@project_bp.route("/projects/<int:pid>/team", methods=["POST"])
def add_team_member_route(pid):
    member = project_service.add_team_member(pid, json_body())
    return jsonify(member.to_dict()), 201


@project_bp.route("/projects/<int:pid>/team/<int:mid>", methods=["DELETE"])
def remove_team_member_route(pid, mid):
    project_service.remove_team_member(pid, mid)
    return jsonify({"deleted": True}), 200


# ------------------------------------------------------------------
#  Reference data
# ------------------------------------------------------------------

@project_bp.route("/roles", methods=["GET"])
def roles_route():
    gate = get_gate()
    return jsonify({"roles": gate.registry.to_dict(), "top_level_role": gate.top_level_role}), 200


@project_bp.route("/catalog", methods=["GET"])
def catalog_route():
    return jsonify(catalog_summary()), 200


@project_bp.route("/session", methods=["GET"])
def session_route():
    ctx = session_ctx()
    capability = get_gate().registry.get(ctx.acting_role)
    return jsonify({
        **ctx.to_dict(),
        "role": capability.to_dict() if capability else None,
        "is_top_level": get_gate().is_top_level(ctx.acting_role),
    }), 200
