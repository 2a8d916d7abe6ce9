"""
Task blueprint — tasks, subtasks, approvals and lifecycle actions.

Routes:
  GET    /projects/<pid>/tasks                  – tasks visible to the caller
  POST   /projects/<pid>/tasks                  – create
  GET    /tasks/<tid>                           – detail with derived fields
  PATCH  /tasks/<tid>                           – edit
  DELETE /tasks/<tid>                           – delete
  POST   /tasks/<tid>/subtasks                  – add subtask
  PATCH  /tasks/<tid>/subtasks/<sid>            – toggle / set completion
  POST   /tasks/<tid>/approvals                 – record one (gate, party) decision
  POST   /tasks/<tid>/complete                  – two-press complete
  POST   /tasks/<tid>/advance                   – one column right
  PUT    /tasks/<tid>/status                    – explicit status write
  PUT    /tasks/<tid>/dependencies              – replace dependency list
  GET    /tasks/<tid>/comments                  – thread, optionally filtered by status
  POST   /tasks/<tid>/comments                  – { text }
  PATCH  /tasks/<tid>/comments/<cid>            – { status: pending|done }
  DELETE /tasks/<tid>/comments/<cid>            – author or admin
"""

from flask import Blueprint, g, jsonify, request

from atelier.blueprints import json_body
from atelier.middleware.project_access import current_user, require_project_capability
from atelier.services import comment_service, task_service
from atelier.utils.errors import E, api_error

task_bp = Blueprint("tasks", __name__, url_prefix="/api/v1")


def _task_response(user, task, status=200):
    return jsonify(task_service.task_payload(user, task)), status


# ═════════════════════════════════════════════════════════════════════════════
# Tasks
# ═════════════════════════════════════════════════════════════════════════════


@task_bp.route("/projects/<project_id>/tasks", methods=["GET"])
@require_project_capability()
def list_tasks(project_id):
    return jsonify(task_service.list_tasks(g.current_user, g.project))


@task_bp.route("/projects/<project_id>/tasks", methods=["POST"])
@require_project_capability("can_manage_tasks")
def create_task(project_id):
    task = task_service.create_task(g.current_user, g.project, json_body())
    return _task_response(g.current_user, task, 201)


@task_bp.route("/tasks/<task_id>", methods=["GET"])
def get_task(task_id):
    user = current_user()
    return _task_response(user, task_service.get_task_for(user, task_id))


@task_bp.route("/tasks/<task_id>", methods=["PATCH"])
def update_task(task_id):
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    return _task_response(user, task_service.update_task(user, task, json_body()))


@task_bp.route("/tasks/<task_id>", methods=["DELETE"])
def delete_task(task_id):
    user = current_user()
    task_service.delete_task(user, task_service.get_task_for(user, task_id))
    return jsonify({"deleted": True, "id": task_id})


# ── Subtasks ─────────────────────────────────────────────────────────────────


@task_bp.route("/tasks/<task_id>/subtasks", methods=["POST"])
def add_subtask(task_id):
    """Body: { title }"""
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    subtask = task_service.add_subtask(user, task, json_body().get("title"))
    return jsonify({"subtask": subtask.to_dict(),
                    "task": task_service.task_payload(user, task)}), 201


@task_bp.route("/tasks/<task_id>/subtasks/<subtask_id>", methods=["PATCH"])
def toggle_subtask(task_id, subtask_id):
    """Body: { is_completed } (optional; omitted flips the flag)"""
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    task = task_service.toggle_subtask(user, task, subtask_id, json_body().get("is_completed"))
    return _task_response(user, task)


# ── Approvals ────────────────────────────────────────────────────────────────


@task_bp.route("/tasks/<task_id>/approvals", methods=["POST"])
def record_approval(task_id):
    """Body: { gate: start|completion, party: client|admin|designer, status }"""
    data = json_body()
    missing = [k for k in ("gate", "party", "status") if not data.get(k)]
    if missing:
        return api_error(E.VALIDATION_REQUIRED, f"Missing fields: {', '.join(missing)}",
                         details={k: "required" for k in missing})
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    task = task_service.record_approval(user, task, data["gate"], data["party"], data["status"])
    return _task_response(user, task)


# ── Lifecycle ────────────────────────────────────────────────────────────────


@task_bp.route("/tasks/<task_id>/complete", methods=["POST"])
def complete_task(task_id):
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    return _task_response(user, task_service.complete_task(user, task))


@task_bp.route("/tasks/<task_id>/advance", methods=["POST"])
def advance_task(task_id):
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    return _task_response(user, task_service.advance_task(user, task))


@task_bp.route("/tasks/<task_id>/status", methods=["PUT"])
def set_task_status(task_id):
    """Body: { status }"""
    status = json_body().get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    return _task_response(user, task_service.set_task_status(user, task, status))


@task_bp.route("/tasks/<task_id>/dependencies", methods=["PUT"])
def set_dependencies(task_id):
    """Body: { dependencies: [task_id, ...] }"""
    dependencies = json_body().get("dependencies")
    if not isinstance(dependencies, list):
        return api_error(E.VALIDATION_INVALID, "dependencies must be a list")
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    return _task_response(user, task_service.set_dependencies(user, task, dependencies))


# ── Comments ─────────────────────────────────────────────────────────────────


@task_bp.route("/tasks/<task_id>/comments", methods=["GET"])
def list_task_comments(task_id):
    """Query: ?status=pending|done"""
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    return jsonify(comment_service.list_comments(user, task, request.args.get("status")))


@task_bp.route("/tasks/<task_id>/comments", methods=["POST"])
def add_task_comment(task_id):
    """Body: { text }"""
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    comment = comment_service.add_comment(user, task, json_body())
    return jsonify(comment.to_dict()), 201


@task_bp.route("/tasks/<task_id>/comments/<comment_id>", methods=["PATCH"])
def set_task_comment_status(task_id, comment_id):
    """Body: { status: pending|done }"""
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    comment = comment_service.set_comment_status(user, task, comment_id, json_body().get("status"))
    return jsonify(comment.to_dict())


@task_bp.route("/tasks/<task_id>/comments/<comment_id>", methods=["DELETE"])
def delete_task_comment(task_id, comment_id):
    user = current_user()
    task = task_service.get_task_for(user, task_id)
    comment_service.delete_comment(user, task, comment_id)
    return jsonify({"deleted": True, "id": comment_id})
