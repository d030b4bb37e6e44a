"""
Academic Term Portal
Scheduler blueprint — background job introspection and manual triggers.

Endpoints:
    GET   /api/v1/scheduler/status                 — loop state
    GET   /api/v1/scheduler/jobs                   — registered jobs
    GET   /api/v1/scheduler/jobs/<name>            — one job record
    POST  /api/v1/scheduler/jobs/<name>/trigger    — run now
    PATCH /api/v1/scheduler/jobs/<name>/toggle     — enable / disable
"""

import logging

from flask import Blueprint, jsonify, request

from portal.services.scheduler_service import SchedulerService, get_registered_jobs
from portal.utils.errors import E, api_error

logger = logging.getLogger(__name__)

scheduler_bp = Blueprint("scheduler_bp", __name__, url_prefix="/api/v1/scheduler")


@scheduler_bp.route("/status", methods=["GET"])
def scheduler_status():
    return jsonify(SchedulerService.status()), 200


@scheduler_bp.route("/jobs", methods=["GET"])
def list_jobs():
    return jsonify({"jobs": SchedulerService.list_jobs()}), 200


@scheduler_bp.route("/jobs/<job_name>", methods=["GET"])
def get_job(job_name):
    job = SchedulerService.get_job_status(job_name)
    if job is None:
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")
    return jsonify(job), 200


@scheduler_bp.route("/jobs/<job_name>/trigger", methods=["POST"])
def trigger_job(job_name):
    if job_name not in get_registered_jobs():
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")
    logger.info("Manual trigger of job %s", job_name, extra={"job_name": job_name})
    result = SchedulerService.run_job(job_name)
    status = 200 if result["status"] == "success" else 500
    return jsonify(result), status


@scheduler_bp.route("/jobs/<job_name>/toggle", methods=["PATCH"])
def toggle_job(job_name):
    """Body: {enabled: bool}."""
    data = request.get_json(silent=True) or {}
    enabled = data.get("enabled")
    if not isinstance(enabled, bool):
        return api_error(E.VALIDATION_REQUIRED, "enabled (boolean) is required",
                         details={"enabled": "required"})
    job = SchedulerService.toggle_job(job_name, enabled)
    if job is None:
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")
    return jsonify(job), 200
