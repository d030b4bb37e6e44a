"""
Academic Term Portal
Grade release blueprint.

Endpoints:
    POST /api/v1/grades/release                 — release final grades for a track
    GET  /api/v1/grades/release/<track>         — release state for a track
    GET  /api/v1/grades/release/<track>/window  — the open grade_release window, 423 if none
"""

import logging

from flask import Blueprint, g, jsonify, request

from portal.core.exceptions import PortalError
from portal.middleware.window_enforcement import require_active_window
from portal.services import grade_release
from portal.services.workflow_graph import Phase
from portal.utils.errors import portal_error_response
from portal.utils.helpers import current_actor

logger = logging.getLogger(__name__)

grade_release_bp = Blueprint("grade_release_bp", __name__, url_prefix="/api/v1/grades")


@grade_release_bp.errorhandler(PortalError)
def _handle_portal_error(error: PortalError):
    return portal_error_response(error)


@grade_release_bp.route("/release", methods=["POST"])
def release_grades():
    """Body: {track}. 409 if already released or no grade_release window is active."""
    data = request.get_json(silent=True) or {}
    record = grade_release.release_grades(data.get("track"), released_by=current_actor(data))
    return jsonify({"released": True, "record": record.to_dict()}), 201


@grade_release_bp.route("/release/<track>", methods=["GET"])
def release_state(track):
    return jsonify(grade_release.release_status(track)), 200


@grade_release_bp.route("/release/<track>/window", methods=["GET"])
@require_active_window(Phase.GRADE_RELEASE)
def release_window(track):
    return jsonify(g.active_window.to_dict()), 200
