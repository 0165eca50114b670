from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import asdict
from datetime import date
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response

from prop_tracker.config.app_config import AppConfig, load_app_config
from prop_tracker.journal import Journal
from prop_tracker.metrics.accounts import account_overview, daily_snapshot, trading_account_labels
from prop_tracker.metrics.breakdowns import (
    breakdown_by_contracts,
    breakdown_by_direction,
    breakdown_by_hour,
    breakdown_by_instrument,
    breakdown_by_month,
    breakdown_by_rating,
    breakdown_by_risk_reward,
    breakdown_by_setup,
    breakdown_by_weekday,
    direction_by_instrument,
    performance_after_result,
    rows_to_dicts,
    trade_frequency_impact,
)
from prop_tracker.metrics.calendar import calendar_month, current_streak
from prop_tracker.metrics.equity import compute_daily_equity_curve, compute_drawdown, compute_equity_curve
from prop_tracker.metrics.filters import DATE_RANGES, filter_by_dates, filter_by_range, filter_trades, instruments
from prop_tracker.metrics.financials import filter_expenses, filter_payouts, financial_summary, recent_payouts
from prop_tracker.metrics.ordering import sort_newest_first
from prop_tracker.metrics.summary import (
    compute_trade_stats,
    result_distribution,
    stats_to_dict,
    trade_list_stats,
    trade_list_stats_to_dict,
)
from prop_tracker.models import Trade, is_active_trading_account
from prop_tracker.storage import codec
from prop_tracker.storage.sqlite_store import connect, init_db, load_journal

logger = logging.getLogger(__name__)

AUTH_TOKEN_ENV_VAR = "PROP_TRACKER_AUTH_TOKEN"
_CORS_METHODS = "GET, PUT, OPTIONS"
_CORS_HEADERS = "Content-Type, Authorization"
_CORS_MAX_AGE = "86400"


app = FastAPI(title="Prop Tracker")


@app.get("/sync")
def sync_get(request: Request) -> Response:
    config = load_app_config()
    blob_path = config.server.blob_path
    body = blob_path.read_text(encoding="utf-8") if blob_path.exists() else "{}"
    return Response(content=body, media_type="application/json", headers=_cors_headers(request, config))


@app.put("/sync")
async def sync_put(request: Request) -> Response:
    config = load_app_config()
    headers = _cors_headers(request, config)
    token = os.environ.get(AUTH_TOKEN_ENV_VAR, "").strip()
    if not token or request.headers.get("authorization") != f"Bearer {token}":
        raise HTTPException(status_code=401, detail="Unauthorized", headers=headers)

    raw = await request.body()
    try:
        text = raw.decode("utf-8")
        json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON", headers=headers) from exc

    blob_path = config.server.blob_path
    blob_path.parent.mkdir(parents=True, exist_ok=True)
    blob_path.write_text(text, encoding="utf-8")
    logger.info("Stored sync blob (%d bytes).", len(raw))
    return Response(content="OK", media_type="text/plain", headers=headers)


@app.options("/sync")
def sync_options(request: Request) -> Response:
    return Response(status_code=204, headers=_cors_headers(request, load_app_config()))


@app.get("/api/summary")
def summary_api(request: Request) -> dict[str, Any]:
    journal = _load_journal()
    trades = _filtered_trades(journal, request)
    stats = compute_trade_stats(trades)
    starting_capital = _starting_capital(journal, request)
    drawdown = compute_drawdown(trades, starting_capital)
    return {
        "summary": stats_to_dict(stats),
        "result_distribution": result_distribution(stats),
        "equity_curve": [asdict(point) for point in compute_equity_curve(trades)],
        "daily_equity": [asdict(point) for point in compute_daily_equity_curve(trades, starting_capital)],
        "drawdown": [asdict(point) for point in drawdown.points],
        "max_drawdown_pct": drawdown.max_drawdown_pct,
    }


@app.get("/api/analytics")
def analytics_api(request: Request) -> dict[str, Any]:
    config = load_app_config()
    journal = _load_journal(config)
    trades = _filtered_trades(journal, request)
    after = performance_after_result(trades)
    return {
        "by_instrument": rows_to_dicts(breakdown_by_instrument(trades)),
        "by_setup": rows_to_dicts(breakdown_by_setup(trades, journal.trading_setups)),
        "by_weekday": rows_to_dicts(breakdown_by_weekday(trades)),
        "by_hour": rows_to_dicts(breakdown_by_hour(trades)),
        "by_month": rows_to_dicts(breakdown_by_month(trades)),
        "by_direction": rows_to_dicts(breakdown_by_direction(trades)),
        "by_contracts": rows_to_dicts(breakdown_by_contracts(trades)),
        "by_rating": rows_to_dicts(breakdown_by_rating(trades)),
        "by_risk_reward": rows_to_dicts(breakdown_by_risk_reward(trades, config.analytics.rr_bins)),
        "direction_by_instrument": rows_to_dicts(direction_by_instrument(trades)),
        "after_result": rows_to_dicts(after.values()),
        "trade_frequency": rows_to_dicts(trade_frequency_impact(trades, config.analytics.frequency_bins)),
    }


@app.get("/api/trades")
def trades_api(request: Request) -> dict[str, Any]:
    journal = _load_journal()
    trades = filter_trades(
        journal.trades,
        setup_id=request.query_params.get("setup"),
        result=request.query_params.get("result"),
        instrument=request.query_params.get("instrument"),
    )
    return {
        "trades": codec.encode_collection(codec.KEY_TRADES, sort_newest_first(trades)),
        "stats": trade_list_stats_to_dict(trade_list_stats(trades, _active_count(journal))),
        "instruments": instruments(journal.trades),
    }


@app.get("/api/calendar")
def calendar_api(request: Request) -> dict[str, Any]:
    journal = _load_journal()
    grid = calendar_month(journal.trades, journal.daily_entries, request.query_params.get("month"))
    streak = current_streak(journal.daily_entries)
    return {
        "month": grid.month,
        "label": grid.label,
        "prev": grid.prev_month,
        "next": grid.next_month,
        "summary": asdict(grid.summary),
        "streak": asdict(streak),
        "weeks": [
            [
                {
                    "date": day.date,
                    "day": day.day,
                    "in_month": day.in_month,
                    "pnl": day.pnl,
                    "trade_count": day.trade_count,
                    "has_notes": day.has_notes,
                }
                for day in week
            ]
            for week in grid.weeks
        ],
    }


@app.get("/api/accounts")
def accounts_api(request: Request) -> dict[str, Any]:
    journal = _load_journal()
    day = request.query_params.get("date") or date.today().isoformat()
    snapshot = daily_snapshot(journal.accounts, journal.trades, day, journal.prop_firms)
    return {
        "overview": asdict(account_overview(journal.accounts)),
        "accounts": codec.encode_collection(codec.KEY_ACCOUNTS, journal.accounts),
        "labels": trading_account_labels(journal.accounts, journal.prop_firms),
        "snapshot": asdict(snapshot),
    }


@app.get("/api/financials")
def financials_api(request: Request) -> dict[str, Any]:
    journal = _load_journal()
    payouts = filter_payouts(journal.payouts, request.query_params.get("prop_firm"))
    expenses = filter_expenses(journal.expenses, request.query_params.get("category"))
    return {
        "summary": asdict(financial_summary(journal.payouts, journal.expenses)),
        "recent_payouts": codec.encode_collection(codec.KEY_PAYOUTS, recent_payouts(journal.payouts)),
        "payouts": codec.encode_collection(codec.KEY_PAYOUTS, payouts),
        "expenses": codec.encode_collection(codec.KEY_EXPENSES, expenses),
    }


def _load_journal(config: AppConfig | None = None) -> Journal:
    app_config = config or load_app_config()
    db_path = app_config.app.db_path
    if not db_path.exists():
        raise HTTPException(status_code=404, detail="Database not found.")
    conn = connect(db_path)
    try:
        init_db(conn)
        return load_journal(conn)
    finally:
        conn.close()


def _filtered_trades(journal: Journal, request: Request) -> list[Trade]:
    date_range = (request.query_params.get("range") or load_app_config().analytics.default_range).strip().lower()
    if date_range not in DATE_RANGES:
        raise HTTPException(status_code=400, detail=f"Unknown range: {date_range}")
    trades = filter_by_range(journal.trades, date_range)
    trades = filter_by_dates(trades, request.query_params.get("start"), request.query_params.get("end"))
    return filter_trades(
        trades,
        setup_id=request.query_params.get("setup"),
        result=request.query_params.get("result"),
        instrument=request.query_params.get("instrument"),
    )


def _starting_capital(journal: Journal, request: Request) -> float:
    raw = request.query_params.get("starting_capital")
    if raw:
        try:
            value = float(raw)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="starting_capital must be a number.") from exc
        if math.isfinite(value):
            return value
    return sum(account.account_size for account in journal.accounts if is_active_trading_account(account))


def _active_count(journal: Journal) -> int:
    return sum(1 for account in journal.accounts if is_active_trading_account(account))


def _cors_headers(request: Request, config: AppConfig) -> dict[str, str]:
    headers = {
        "Access-Control-Allow-Methods": _CORS_METHODS,
        "Access-Control-Allow-Headers": _CORS_HEADERS,
        "Access-Control-Max-Age": _CORS_MAX_AGE,
    }
    origin = request.headers.get("origin")
    if origin and origin in config.server.allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


def main() -> None:
    import uvicorn

    app_config = load_app_config()
    uvicorn.run(
        "prop_tracker.web.app:app",
        host=app_config.app.host,
        port=app_config.app.port,
        reload=app_config.app.reload,
    )


if __name__ == "__main__":
    main()
