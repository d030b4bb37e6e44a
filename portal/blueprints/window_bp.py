"""
Academic Term Portal
Window blueprint — coordinator scheduling of workflow windows.

Endpoints:
    WINDOWS      /api/v1/windows                     GET, POST
                 /api/v1/windows/<id>                GET, PUT, DELETE
    STATUS       /api/v1/windows/statuses            GET
                 /api/v1/windows/active              GET
                 /api/v1/windows/upcoming            GET
                 /api/v1/windows/reconcile           POST
    WIZARD       /api/v1/windows/availability        GET
                 /api/v1/windows/workflow            GET

POST /windows accepts three date modes:
    common         phases[] × tracks[] × sub_stages[] sharing one start/end
    individual     selections[], each with its own start/end
    bulk-semester  one track, every workflow step (explicit or sequential cadence)

Batch responses are 201 when everything was created, 207 when only part
was, 422 when nothing was.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from portal.core.exceptions import PortalError, ValidationError
from portal.services import bulk_sequencer, window_repository, window_validator
from portal.services.window_status import WindowStatus, compute_statuses
from portal.services.workflow_graph import describe_graph, parse_phase, parse_sub_stage, parse_track
from portal.utils.errors import portal_error_response
from portal.utils.helpers import current_actor, parse_datetime, utcnow

logger = logging.getLogger(__name__)

window_bp = Blueprint("window_bp", __name__, url_prefix="/api/v1")

DATE_MODES = ("common", "individual", "bulk-semester")


@window_bp.errorhandler(PortalError)
def _handle_portal_error(error: PortalError):
    return portal_error_response(error)


# ── Helpers ──────────────────────────────────────────────────────────────────


def _optional(parser, name):
    value = request.args.get(name)
    return parser(value, name) if value else None


def _now_arg():
    value = request.args.get("now")
    return parse_datetime(value, "now") if value else utcnow()


def _batch_response(report):
    if report.success_count and not report.failure_count:
        status = 201
    elif report.success_count:
        status = 207
    else:
        status = 422
    return jsonify(report.to_dict()), status


# ═════════════════════════════════════════════════════════════════════════════
# Listing / status
# ═════════════════════════════════════════════════════════════════════════════


@window_bp.route("/windows", methods=["GET"])
def list_windows():
    """List windows, optionally filtered by track, phase, sub_stage, status, created_by."""
    now = _now_arg()
    windows = window_repository.list_windows(
        track=_optional(parse_track, "track"),
        phase=_optional(parse_phase, "phase"),
        sub_stage=_optional(parse_sub_stage, "sub_stage"),
        created_by=request.args.get("created_by"),
    )
    status = request.args.get("status")
    if status:
        try:
            wanted = WindowStatus(status)
        except ValueError:
            raise ValidationError(
                f"Invalid status '{status}'. Must be one of: upcoming, active, ended",
                details={"status": "must be one of ['upcoming', 'active', 'ended']"},
            ) from None
        windows = [w for w in windows if w.status_at(now) is wanted]
    return jsonify({
        "items": [w.to_dict(now) for w in windows],
        "total": len(windows),
        "now": now.isoformat(),
    }), 200


@window_bp.route("/windows/<int:window_id>", methods=["GET"])
def get_window(window_id):
    return jsonify(window_repository.get(window_id).to_dict()), 200


@window_bp.route("/windows/statuses", methods=["GET"])
def window_statuses():
    """Status of every window, all evaluated against one instant."""
    now = _now_arg()
    statuses = compute_statuses(window_repository.list_windows(), now)
    return jsonify({
        "now": now.isoformat(),
        "statuses": {str(wid): status.value for wid, status in statuses.items()},
    }), 200


@window_bp.route("/windows/active", methods=["GET"])
def active_window():
    """The Active window for a phase/track (and sub-stage), if any."""
    phase = parse_phase(request.args.get("phase"))
    track = parse_track(request.args.get("track"))
    sub_stage = _optional(parse_sub_stage, "sub_stage")
    now = _now_arg()
    window = window_repository.find_active(phase, track, sub_stage, now=now)
    return jsonify({
        "window": window.to_dict(now) if window else None,
        "is_active": window is not None,
    }), 200


@window_bp.route("/windows/upcoming", methods=["GET"])
def upcoming_windows():
    track = _optional(parse_track, "track")
    default_limit = current_app.config.get("UPCOMING_WINDOWS_LIMIT", 5)
    limit = request.args.get("limit", default_limit, type=int)
    limit = max(1, min(limit, 100))
    now = _now_arg()
    windows = window_repository.find_upcoming(track, limit=limit, now=now)
    return jsonify({"items": [w.to_dict(now) for w in windows]}), 200


@window_bp.route("/windows/reconcile", methods=["POST"])
def reconcile_windows():
    """Refresh the cached status column now instead of waiting for the scheduler."""
    summary = window_repository.reconcile_statuses()
    return jsonify(summary), 200


# ═════════════════════════════════════════════════════════════════════════════
# Coordinator wizard
# ═════════════════════════════════════════════════════════════════════════════


@window_bp.route("/windows/availability", methods=["GET"])
def window_availability():
    track = request.args.get("track")
    return jsonify({
        "track": parse_track(track).value,
        "steps": window_validator.availability(track),
    }), 200


@window_bp.route("/windows/workflow", methods=["GET"])
def workflow_graph():
    return jsonify({"steps": describe_graph()}), 200


# ═════════════════════════════════════════════════════════════════════════════
# Create / edit / delete
# ═════════════════════════════════════════════════════════════════════════════


@window_bp.route("/windows", methods=["POST"])
def create_windows():
    """Create one or many windows.

    Body (common):        {date_mode, phases[], tracks[], sub_stage? | sub_stages[]?, start, end}
    Body (individual):    {date_mode, selections: [{phase, track, sub_stage?, start, end}]}
    Body (bulk-semester): {date_mode, track, cadence: explicit, steps: [...]}
                          {date_mode, track, cadence: sequential, start,
                           phase_duration_hours?, gap_hours?}
    """
    data = request.get_json(silent=True) or {}
    actor = current_actor(data)
    mode = data.get("date_mode") or "common"

    if mode == "common":
        sub_stages = data.get("sub_stages")
        if sub_stages is None:
            sub_stages = [data["sub_stage"]] if data.get("sub_stage") else []
        report = window_validator.create_common(
            data.get("phases") or [],
            data.get("tracks") or [],
            sub_stages,
            data.get("start"),
            data.get("end"),
            created_by=actor,
        )
    elif mode == "individual":
        selections = data.get("selections")
        if not isinstance(selections, list) or not selections:
            raise ValidationError(
                "selections must be a non-empty list",
                details={"selections": "required"},
            )
        if not all(isinstance(s, dict) for s in selections):
            raise ValidationError(
                "each selection must be an object",
                details={"selections": "invalid"},
            )
        report = window_validator.create_windows(selections, created_by=actor)
    elif mode == "bulk-semester":
        plan = bulk_sequencer.plan_from_payload(
            data,
            default_phase_hours=current_app.config.get("BULK_DEFAULT_PHASE_HOURS", 168),
            default_gap_hours=current_app.config.get("BULK_DEFAULT_GAP_HOURS", 24),
        )
        report = bulk_sequencer.submit(plan, created_by=actor)
    else:
        raise ValidationError(
            f"Invalid date_mode '{mode}'. Must be one of: {', '.join(DATE_MODES)}",
            details={"date_mode": f"must be one of {list(DATE_MODES)}"},
        )

    return _batch_response(report)


@window_bp.route("/windows/<int:window_id>", methods=["PUT"])
def update_window(window_id):
    """Change a window's start and/or end. Ended windows are immutable."""
    data = request.get_json(silent=True) or {}
    window = window_validator.update_window(window_id, data)
    return jsonify(window.to_dict()), 200


@window_bp.route("/windows/<int:window_id>", methods=["DELETE"])
def delete_window(window_id):
    window_repository.delete(window_id)
    return jsonify({"message": "Window deleted", "id": window_id}), 200
