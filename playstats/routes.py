from __future__ import annotations

import logging
import math
from dataclasses import asdict
from datetime import date
from typing import Any, Callable, Dict

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from . import db
from .aggregation import (
    calculate_summary,
    compare_period_stats,
    get_best_gaming_month,
    get_cumulative_spending,
    get_current_streak,
    get_gaming_velocity,
    get_hours_by_month,
    get_last_month_stats,
    get_last_week_stats,
    get_longest_streak,
    get_monthly_trends,
    get_period_stats,
    get_spending_by_month,
)
from .awards import build_awards, build_awards_for_key
from .ballots import LOCAL_USER, create_ballot_store
from .insights import (
    find_hidden_gems,
    find_regret_purchases,
    find_shelf_warmers,
    get_discount_effectiveness,
    get_gaming_personality,
    get_genre_preference,
    get_genre_rut,
    get_mood_arc,
    get_patient_gamer_stats,
    get_period_personality,
    get_platform_preference,
    get_rotation_stats,
    get_session_analysis,
    grade_period,
    summarize_completion_times,
)
from .metrics import calculate_metrics, roi_rating
from .models import GameEntry, PlayLogEntry, load_games
from .records import PlayLog, optional_text, parse_local_date
from .statuses import iter_status_definitions, validate_status

bp = Blueprint("core", __name__)

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return _jsonable(value.to_dict())
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def _parse_date_field(value: Any, label: str, *, required: bool = False) -> date | None:
    if value in (None, ""):
        if required:
            raise ValueError(f"{label} is required.")
        return None
    parsed = parse_local_date(value)
    if parsed is None:
        raise ValueError(f"Invalid {label.lower()}.")
    return parsed


def _parse_number(value: Any, label: str, *, default: float | None = 0.0) -> float | None:
    if value in (None, ""):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{label} must be a number.") from exc
    if not math.isfinite(number):
        raise ValueError(f"{label} must be a finite number.")
    if number < 0:
        raise ValueError(f"{label} cannot be negative.")
    return number


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(force=True) or {}
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object.")
    return payload


def _text_field(payload: Dict[str, Any], name: str) -> str:
    value = payload.get(name)
    if value is None:
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"{name} must be a string.")
    return str(value).strip()


def _today_arg() -> date | None:
    raw = request.args.get("date") or request.args.get("today")
    if not raw:
        return None
    parsed = parse_local_date(raw)
    if parsed is None:
        raise ValueError("Invalid date.")
    return parsed


def _range_args() -> tuple[date, date]:
    start = _parse_date_field(request.args.get("start"), "Start date", required=True)
    end = _parse_date_field(request.args.get("end"), "End date", required=True)
    if end < start:
        raise ValueError("End date must not be before start date.")
    return start, end


def _user_id() -> str:
    return (request.headers.get("X-User-Id") or "").strip() or LOCAL_USER


@bp.errorhandler(ValueError)
def handle_value_error(error: ValueError):
    return jsonify({"error": str(error)}), 400


@bp.route("/api/statuses")
def statuses_collection():
    return jsonify(
        [
            {"value": status.value, "label": status.label, "owned": status.owned}
            for status in iter_status_definitions()
        ]
    )


@bp.route("/api/games", methods=["GET", "POST"])
def games_collection():
    if request.method == "POST":
        payload = _json_body()
        name = _text_field(payload, "name")
        if not name:
            return jsonify({"error": "Name is required."}), 400

        status = validate_status(payload.get("status"))
        rating = _parse_number(payload.get("rating"), "Rating")
        if rating > 10:
            return jsonify({"error": "Rating must be between 0 and 10."}), 400

        game = GameEntry(
            name=name,
            status=status,
            price=_parse_number(payload.get("price"), "Price"),
            original_price=_parse_number(
                payload.get("original_price"), "Original price", default=None
            ),
            hours=_parse_number(payload.get("hours"), "Hours"),
            rating=rating,
            platform=optional_text(payload.get("platform")),
            genre=optional_text(payload.get("genre")),
            franchise=optional_text(payload.get("franchise")),
            purchase_source=optional_text(payload.get("purchase_source")),
            subscription_source=optional_text(payload.get("subscription_source")),
            acquired_free=bool(payload.get("acquired_free")),
            date_purchased=_parse_date_field(payload.get("date_purchased"), "Purchase date"),
            start_date=_parse_date_field(payload.get("start_date"), "Start date"),
            end_date=_parse_date_field(payload.get("end_date"), "End date"),
        )

        for raw_log in payload.get("play_logs") or []:
            log = PlayLog.from_dict(raw_log)
            if log is None:
                return jsonify({"error": "Play logs need a valid date and positive hours."}), 400
            game.play_logs.append(
                PlayLogEntry(played_on=log.date, hours=log.hours, note=log.note)
            )

        try:
            db.session.add(game)
            db.session.commit()
        except SQLAlchemyError as error:
            db.session.rollback()
            logger.exception("Failed to save game %s", name, exc_info=error)
            return jsonify({"error": "Failed to save game."}), 500

        logger.info("Game created: %s (%s)", name, status)
        return jsonify(game.to_dict()), 201

    return jsonify([game.to_dict() for game in load_games()])


@bp.route("/api/games/<int:game_id>")
def game_detail(game_id: int):
    record = db.get_or_404(GameEntry, game_id).to_record()
    metrics = calculate_metrics(record)
    payload = record.to_dict()
    payload["metrics"] = asdict(metrics)
    payload["metrics"]["roi_rating"] = roi_rating(metrics.roi)
    return jsonify(payload)


@bp.route("/api/games/<int:game_id>/logs", methods=["POST"])
def add_play_log(game_id: int):
    game = db.get_or_404(GameEntry, game_id)
    payload = _json_body()
    log = PlayLog.from_dict(payload)
    if log is None:
        return jsonify({"error": "A play log needs a valid date and positive hours."}), 400

    entry = PlayLogEntry(game_id=game.id, played_on=log.date, hours=log.hours, note=log.note)
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as error:
        db.session.rollback()
        logger.exception("Failed to save play log for game %s", game_id, exc_info=error)
        return jsonify({"error": "Failed to save play log."}), 500

    return jsonify(entry.to_record().to_dict()), 201


@bp.route("/api/analytics/summary")
def analytics_summary():
    return jsonify(_jsonable(calculate_summary(load_games())))


@bp.route("/api/analytics/months")
def analytics_months():
    games = load_games()
    month_count = request.args.get("months", 12, type=int)
    return jsonify(
        {
            "hours_by_month": get_hours_by_month(games),
            "spending_by_month": get_spending_by_month(games),
            "cumulative_spending": get_cumulative_spending(games),
            "best_month": get_best_gaming_month(games),
            "trends": get_monthly_trends(games, max(1, month_count), today=_today_arg()),
        }
    )


@bp.route("/api/analytics/period")
def analytics_period():
    days = request.args.get("days", 7, type=int)
    if days <= 0:
        return jsonify({"error": "Days must be a positive number."}), 400
    games = load_games()
    today = _today_arg()
    stats = get_period_stats(games, days, today=today)
    payload = stats.to_dict()
    payload["days"] = days
    payload["velocity"] = get_gaming_velocity(games, days, today=today)
    return jsonify(payload)


@bp.route("/api/analytics/streaks")
def analytics_streaks():
    games = load_games()
    return jsonify(
        {
            "current": get_current_streak(games, today=_today_arg()),
            "longest": get_longest_streak(games),
        }
    )


@bp.route("/api/analytics/comparison")
def analytics_comparison():
    games = load_games()
    today = _today_arg()
    this_week = get_period_stats(games, 7, today=today)
    last_week = get_last_week_stats(games, today=today)
    this_month = get_period_stats(games, 30, today=today)
    last_month = get_last_month_stats(games, today=today)
    return jsonify(
        {
            "week": {
                "current": this_week.to_dict(),
                "previous": last_week.to_dict(),
                "change": compare_period_stats(this_week, last_week),
            },
            "month": {
                "current": this_month.to_dict(),
                "previous": last_month.to_dict(),
                "change": compare_period_stats(this_month, last_month),
            },
        }
    )


_INSIGHTS: Dict[str, Callable[[list], Any]] = {
    "hidden-gems": find_hidden_gems,
    "regret-purchases": lambda games: find_regret_purchases(games, today=_today_arg()),
    "shelf-warmers": lambda games: find_shelf_warmers(games, today=_today_arg()),
    "platforms": get_platform_preference,
    "genres": get_genre_preference,
    "discounts": get_discount_effectiveness,
    "patient-gamer": get_patient_gamer_stats,
    "completion-times": summarize_completion_times,
    "personality": get_gaming_personality,
    "sessions": get_session_analysis,
    "rotation": lambda games: get_rotation_stats(games, today=_today_arg()),
    "genre-rut": lambda games: get_genre_rut(games, today=_today_arg()),
    "period-personality": lambda games: get_period_personality(games, *_range_args()),
    "grade": lambda games: grade_period(games, *_range_args()),
    "mood-arc": lambda games: get_mood_arc(games, *_range_args()),
}


@bp.route("/api/insights/<name>")
def insight_detail(name: str):
    handler = _INSIGHTS.get(name)
    if handler is None:
        return jsonify({"error": f"Unknown insight: {name}"}), 404
    return jsonify(_jsonable(handler(load_games())))


@bp.route("/api/awards/<period_type>")
def awards_for_period(period_type: str):
    key = request.args.get("key")
    games = load_games()
    if key:
        awards = build_awards_for_key(games, key)
        if awards.period_type != period_type:
            raise ValueError("Period key does not match the period type.")
    else:
        awards = build_awards(games, period_type, _today_arg() or date.today())
    return jsonify(awards.to_dict())


@bp.route("/api/ballots/<period_key>", methods=["GET", "POST", "DELETE"])
def ballots_for_period(period_key: str):
    user_id = _user_id()
    store = create_ballot_store(current_app.config, user_id)

    try:
        if request.method == "POST":
            payload = _json_body()
            ballot = store.cast(
                user_id,
                period_key,
                _text_field(payload, "period_type"),
                _text_field(payload, "category_id"),
                _text_field(payload, "game_id"),
                _text_field(payload, "game_name"),
            )
            return jsonify(ballot.to_dict()), 201

        if request.method == "DELETE":
            removed = store.clear(user_id, period_key)
            return jsonify({"removed": removed})
    except SQLAlchemyError as error:
        db.session.rollback()
        logger.exception("Failed to update ballots for %s", user_id, exc_info=error)
        return jsonify({"error": "Failed to update ballots."}), 500

    return jsonify([ballot.to_dict() for ballot in store.get_all_for_period(user_id, period_key)])
