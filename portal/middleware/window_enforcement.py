"""
Window Enforcement — decorators that gate downstream actions on an Active window.

Proposal submission, applications, project submissions and grading all live
outside the scheduler. Their routes declare which window must be open and
this decorator answers 423 ERR_WINDOW_CLOSED when it is not.

Usage:
    @bp.route("/proposals", methods=["POST"])
    @require_active_window(Phase.PROPOSAL)
    def submit_proposal():
        ...

    @bp.route("/tracks/<track>/assessments/<stage>", methods=["POST"])
    @require_active_window(Phase.ASSESSMENT, track_arg="track", sub_stage_arg="stage")
    def grade(track, stage):
        ...

The track and sub-stage are looked up in the URL, then the query string,
then the JSON body. The matching Window is exposed as ``g.active_window``.
"""

import functools
import logging

from flask import g, request

from portal.core.exceptions import ValidationError
from portal.services import window_repository
from portal.services.workflow_graph import Phase, parse_sub_stage, parse_track
from portal.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def _lookup(name, kwargs):
    if name in kwargs:
        return kwargs[name]
    if name in request.args:
        return request.args.get(name)
    payload = request.get_json(silent=True) or {}
    return payload.get(name)


def require_active_window(phase: Phase, track_arg: str = "track", sub_stage_arg: str | None = None):
    """
    Decorator: only run the view while a window for ``phase`` is Active.

    Args:
        phase: Workflow phase the action belongs to.
        track_arg: Name of the URL/query/body field carrying the track.
        sub_stage_arg: Name of the field carrying the sub-stage, for
            submission/assessment actions.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            try:
                track = parse_track(_lookup(track_arg, kwargs), track_arg)
                sub_stage = None
                if sub_stage_arg:
                    sub_stage = parse_sub_stage(_lookup(sub_stage_arg, kwargs), sub_stage_arg)
            except ValidationError as exc:
                return api_error(exc.code, exc.message, details=exc.details)

            window = window_repository.find_active(phase, track, sub_stage)
            if window is None:
                stage = f" ({sub_stage.value})" if sub_stage else ""
                logger.info(
                    "Blocked %s: no active %s%s window for %s",
                    f.__name__, phase.value, stage, track.value,
                    extra={"track": track.value, "phase": phase.value},
                )
                return api_error(
                    E.WINDOW_CLOSED,
                    f"The {phase.value}{stage} window for {track.value} is not open",
                    details={
                        "phase": phase.value,
                        "track": track.value,
                        "sub_stage": sub_stage.value if sub_stage else None,
                    },
                )

            g.active_window = window
            return f(*args, **kwargs)
        return decorated
    return decorator
