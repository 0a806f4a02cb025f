"""
Task Board Blueprint

Prefix: /api/v1

Endpoints:
  Configuration:
    GET    /projects/<pid>/task-config          -- Board definition (default on first use)
    PATCH  /projects/<pid>/task-config          -- Validated partial update

  Tasks:
    GET    /projects/<pid>/tasks?status=<key>   -- List (optionally one column)
    POST   /projects/<pid>/tasks                -- Create
    GET    /projects/<pid>/board                -- Columns with their tasks
    PUT    /projects/<pid>/tasks/order          -- Reorder a column {status, ids}
    PUT    /tasks/<tid>                         -- Edit fields
    PATCH  /tasks/<tid>/status                  -- Move to another column
    DELETE /tasks/<tid>
"""

import logging

from flask import Blueprint, jsonify, request

from qaboard.blueprints import json_body, session_ctx
from qaboard.services import task_workflow as tw

logger = logging.getLogger(__name__)

task_bp = Blueprint("task", __name__, url_prefix="/api/v1")


def _task_dict(task, config):
    d = task.to_dict()
    d["status_label"] = tw.status_label(config, task.status)
    d["priority_label"] = tw.priority_label(config, task.priority)
    return d


# ------------------------------------------------------------------
#  Configuration
# ------------------------------------------------------------------

@task_bp.route("/projects/<int:pid>/task-config", methods=["GET"])
def get_config_route(pid):
    return jsonify(tw.get_or_create_configuration(pid).to_dict()), 200


@task_bp.route("/projects/<int:pid>/task-config", methods=["PATCH"])
def update_config_route(pid):
    config = tw.update_configuration(pid, json_body())
    return jsonify(config.to_dict()), 200


# ------------------------------------------------------------------
#  Tasks
# ------------------------------------------------------------------

@task_bp.route("/projects/<int:pid>/tasks", methods=["GET"])
def list_tasks_route(pid):
    config = tw.get_or_create_configuration(pid)
    status = request.args.get("status")
    tasks = tw.tasks_by_status(pid, status) if status else tw.list_tasks(pid)
    return jsonify({"tasks": [_task_dict(t, config) for t in tasks], "total": len(tasks)}), 200


@task_bp.route("/projects/<int:pid>/tasks", methods=["POST"])
def create_task_route(pid):
    task = tw.create_task(session_ctx(), pid, json_body())
    config = tw.get_configuration(pid)
    return jsonify(_task_dict(task, config)), 201


@task_bp.route("/projects/<int:pid>/board", methods=["GET"])
def board_route(pid):
    return jsonify({"columns": tw.board_view(pid)}), 200


@task_bp.route("/projects/<int:pid>/tasks/order", methods=["PUT"])
def reorder_tasks_route(pid):
    data = json_body()
    tasks = tw.reorder_within_status(session_ctx(), pid, data.get("status"), data.get("ids"))
    return jsonify({"tasks": [t.to_dict() for t in tasks]}), 200


@task_bp.route("/tasks/<int:tid>", methods=["PUT"])
def update_task_route(tid):
    task = tw.update_task(session_ctx(), tid, json_body())
    return jsonify(_task_dict(task, tw.get_configuration(task.project_id))), 200


@task_bp.route("/tasks/<int:tid>/status", methods=["PATCH"])
def move_task_route(tid):
    task = tw.move_task(session_ctx(), tid, json_body().get("status"))
    return jsonify(_task_dict(task, tw.get_configuration(task.project_id))), 200


@task_bp.route("/tasks/<int:tid>", methods=["DELETE"])
def delete_task_route(tid):
    tw.delete_task(session_ctx(), tid)
    return jsonify({"deleted": True}), 200
