# trip_timeline/routes/timeline.py
"""Timeline routes and blueprint configuration."""

import functools
import logging
from datetime import timedelta

from flask import Blueprint, jsonify, request

from trip_timeline.api.config import get_timeline_config
from trip_timeline.api.store import EntryNotFoundError
from trip_timeline.api.services.timeline_service import AlreadyScheduledError, LockedBlockError
from trip_timeline.api.timezone_utils import available_timezone_names

logger = logging.getLogger(__name__)


def _handle_errors(view):
    """Turn service errors into JSON responses."""

    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except EntryNotFoundError as e:
            return jsonify({"error": f"Unknown entry: {e.args[0]}"}), 404
        except (LockedBlockError, AlreadyScheduledError) as e:
            return jsonify({"error": str(e)}), 409
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            logger.error(f"Unhandled error in {view.__name__}: {e}")
            return jsonify({"error": str(e)}), 500

    return wrapper


def _history_state(service):
    return {"can_undo": service.can_undo, "can_redo": service.can_redo}


def create_timeline_blueprint(service, loop):
    """Create and configure the timeline blueprint.

    Args:
        service: TimelineService for the trip being planned
        loop: BackgroundLoop that runs the service's coroutines

    Returns:
        Configured Flask Blueprint
    """
    timeline_bp = Blueprint("timeline", __name__, url_prefix="/timeline")

    @timeline_bp.route("/api/config")
    def api_config():
        """Return the trip settings the front-end needs."""
        cfg = get_timeline_config()
        return jsonify({
            "trip_timezone": service.trip_timezone,
            "travel_mode": cfg["travel_mode"],
            **_history_state(service),
        })

    @timeline_bp.route("/api/entries")
    @_handle_errors
    def api_entries():
        entries = loop.run(service.refresh())
        local = service.local_times()
        return jsonify({"entries": [{**e.to_dict(), "local": local[e.id]} for e in entries]})

    @timeline_bp.route("/api/timezones")
    def api_timezones():
        return jsonify({"timezones": list(available_timezone_names())})

    @timeline_bp.route("/api/days/<date_str>/timezone")
    @_handle_errors
    def api_day_timezone(date_str):
        """Zone a day is lived in, with its flights."""
        loop.run(service.refresh())
        return jsonify({"date": date_str, **service.day_timezone(date_str).to_dict()})

    @timeline_bp.route("/api/days/<date_str>/layout")
    @_handle_errors
    def api_day_layout(date_str):
        """Column layout for one day's overlapping entries."""
        loop.run(service.refresh())
        layout = service.layout_for_day(date_str)
        return jsonify({"date": date_str, "layout": [r.to_dict() for r in layout]})

    @timeline_bp.route("/api/entries/<entry_id>/block")
    @_handle_errors
    def api_block(entry_id):
        loop.run(service.refresh())
        service.get_entry(entry_id)
        return jsonify(service.block_for(entry_id).to_dict())

    @timeline_bp.route("/api/entries/<entry_id>/place", methods=["POST"])
    @_handle_errors
    def api_place(entry_id):
        data = request.get_json(silent=True) or {}
        missing = [k for k in ("date", "start_time", "end_time") if not data.get(k)]
        if missing:
            raise ValueError(f"Missing fields: {', '.join(missing)}")

        check = loop.run(service.place_entry(
            entry_id,
            data["date"],
            data["start_time"],
            data["end_time"],
            end_date=data.get("end_date"),
            tz=data.get("tz"),
        ))
        return jsonify({
            "entry_id": check.conflict.entry_id,
            **check.to_dict(),
            **_history_state(service),
        })

    @timeline_bp.route("/api/conflict/resolve", methods=["POST"])
    @_handle_errors
    def api_resolve_conflict():
        data = request.get_json(silent=True) or {}
        recommendation_id = data.get("recommendation_id")
        if not recommendation_id:
            raise ValueError("recommendation_id is required")
        action = loop.run(service.resolve_conflict(recommendation_id))
        return jsonify({"applied": action.description, **_history_state(service)})

    @timeline_bp.route("/api/conflict/dismiss", methods=["POST"])
    def api_dismiss_conflict():
        service.dismiss_conflict()
        return jsonify({"dismissed": True, **_history_state(service)})

    @timeline_bp.route("/api/entries/<entry_id>/chain-shift", methods=["POST"])
    @_handle_errors
    def api_chain_shift(entry_id):
        data = request.get_json(silent=True) or {}
        delta = timedelta(minutes=float(data.get("delta_minutes", 0)))
        moved = loop.run(service.chain_shift(entry_id, delta))
        return jsonify({"moved": moved, **_history_state(service)})

    @timeline_bp.route("/api/groups/move", methods=["POST"])
    @_handle_errors
    def api_move_group():
        data = request.get_json(silent=True) or {}
        delta = timedelta(minutes=float(data.get("delta_minutes", 0)))
        moved = loop.run(service.move_group(data.get("entry_ids") or [], delta))
        return jsonify({"moved": moved, **_history_state(service)})

    @timeline_bp.route("/api/undo", methods=["POST"])
    @_handle_errors
    def api_undo():
        action = loop.run(service.undo())
        return jsonify({"undone": action.description if action else None, **_history_state(service)})

    @timeline_bp.route("/api/redo", methods=["POST"])
    @_handle_errors
    def api_redo():
        action = loop.run(service.redo())
        return jsonify({"redone": action.description if action else None, **_history_state(service)})

    @timeline_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "timeline"})

    return timeline_bp
