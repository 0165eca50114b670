from __future__ import annotations

import io
from datetime import date

import pytest
from factories import make_trade

from prop_tracker.ingest.trades_csv import (
    EXPORT_HEADERS,
    load_trades,
    normalize_instrument,
    parse_date_time,
    parse_number,
    parse_trade_rows,
    write_trades_csv,
)
from prop_tracker.models import DirectAccount, SplitAccounts

TODAY = date(2025, 3, 3)


def test_broker_export_is_mapped_by_header_aliases(tmp_path) -> None:
    path = tmp_path / "fills.csv"
    path.write_text(
        "Date,Symbol,Side,Qty,Entry Price,Exit Price,P&L\n"
        "01/15/2025 09:31:05,MNQH5,Sell,2,$21000.50,$20990.25,(41.00)\n"
        "2025-01-16,ESZ4,Buy,1,5000,5010,62.50\n"
        ",,,,,,\n",
        encoding="utf-8",
    )

    result = load_trades(path, setup_id="orb", account=DirectAccount("acc-1"), today=TODAY)

    assert result.skipped == 1
    first, second = result.trades
    assert (first.date, first.time) == ("2025-01-15", "09:31")
    assert first.instrument == "NQ"
    assert first.direction == "short"
    assert first.contracts == 2
    assert (first.entry, first.exit) == (21000.5, 20990.25)
    assert (first.pnl, first.result) == (-41.0, "loss")
    assert first.setup_id == "orb"
    assert first.account == DirectAccount("acc-1")
    assert first.trade_id == ""

    assert (second.date, second.time) == ("2025-01-16", None)
    assert second.instrument == "ES"
    assert second.direction == "long"
    assert (second.pnl, second.result) == (62.5, "win")


def test_missing_columns_fall_back_to_defaults() -> None:
    rows = [["Profit", "Notes"], ["0", "flat"]]

    result = parse_trade_rows(rows, setup_id="s1", account=SplitAccounts(), today=TODAY)

    [trade] = result.trades
    assert trade.date == "2025-03-03"
    assert trade.instrument == "NQ"
    assert trade.contracts == 1
    assert trade.result == "breakeven"
    assert trade.is_split


def test_header_only_file_is_rejected(tmp_path) -> None:
    with pytest.raises(ValueError):
        parse_trade_rows([["Date", "P&L"]], setup_id="s1", account=None)
    with pytest.raises(ValueError):
        load_trades(tmp_path / "trades.xlsx", setup_id="s1", account=None)


@pytest.mark.parametrize(
    ("text", "expected"),
    [("(50.00)", -50.0), ("-12.5", -12.5), ("$1234.50", 1234.5), ("", 0.0), ("n/a", 0.0)],
)
def test_parse_number(text: str, expected: float) -> None:
    assert parse_number(text) == expected


@pytest.mark.parametrize(
    ("symbol", "expected"),
    [("MESM5", "ES"), ("MGC", "GC"), ("M2KZ4", "RTY"), ("MCLF5", "CL"), ("BTCUSDT", "BTCUSD")],
)
def test_normalize_instrument(symbol: str, expected: str) -> None:
    assert normalize_instrument(symbol) == expected


def test_parse_date_time_formats() -> None:
    assert parse_date_time("2025/1/7 14:05", "2025-03-03") == ("2025-01-07", "14:05")
    assert parse_date_time("1/7/25", "2025-03-03") == ("2025-01-07", None)
    assert parse_date_time("yesterday", "2025-03-03") == ("2025-03-03", None)


def test_export_resolves_names_and_split() -> None:
    trades = [
        make_trade(125.5, date="2025-01-06", time="09:35", account=SplitAccounts(), setup_id="orb", rating=4),
        make_trade(-40.0, date="2025-01-07", account=DirectAccount("f1"), setup_id="gone", stop_loss=19990.0),
    ]
    handle = io.StringIO()

    count = write_trades_csv(
        trades,
        handle,
        setup_names={"orb": "Opening Range Breakout"},
        account_labels={"f1": "Apex $50K"},
    )

    lines = handle.getvalue().splitlines()
    assert count == 2
    assert lines[0] == ",".join(EXPORT_HEADERS)
    assert lines[1] == "2025-01-06,09:35,NQ,Opening Range Breakout,Split,long,20000,,,1,125.5,win,,4,"
    assert lines[2] == "2025-01-07,,NQ,,Apex $50K,long,20000,,19990,1,-40,loss,,,"
