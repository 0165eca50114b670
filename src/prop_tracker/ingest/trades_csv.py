from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterable, Mapping, Sequence, TextIO

from prop_tracker.models import (
    DIRECTION_LONG,
    DIRECTION_SHORT,
    RESULT_BREAKEVEN,
    RESULT_LOSS,
    RESULT_WIN,
    AccountRef,
    SplitAccounts,
    Trade,
)

EXPORT_HEADERS = (
    "Date",
    "Time",
    "Instrument",
    "Setup",
    "Account",
    "Direction",
    "Entry",
    "Exit",
    "Stop",
    "Contracts",
    "P&L",
    "Result",
    "R:R",
    "Rating",
    "Notes",
)

# Broker exports name columns inconsistently; the first header containing any alias wins.
_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "instrument": ("instrument", "symbol", "ticker"),
    "contracts": ("contract", "qty", "quantity", "size", "lot"),
    "entry": ("entry", "open", "buy", "avg", "price"),
    "exit": ("exit", "close", "sell"),
    "pnl": ("pnl", "p&l", "profit", "net", "realized"),
    "date": ("date", "time", "timestamp", "exec"),
    "direction": ("direction", "side", "type", "action"),
}

# Micro contracts roll up to their full-size root.
_INSTRUMENT_ROOTS = (
    (("NQ", "MNQ"), "NQ"),
    (("ES", "MES"), "ES"),
    (("GC", "MGC"), "GC"),
    (("CL", "MCL"), "CL"),
    (("YM", "MYM"), "YM"),
    (("RTY", "M2K"), "RTY"),
)
DEFAULT_INSTRUMENT = "NQ"

_ISO_DATE = re.compile(r"(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})")
_US_DATE = re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})")
_CLOCK = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?")


@dataclass(frozen=True)
class IngestResult:
    trades: list[Trade]
    skipped: int = 0


def load_trades(
    path: str | Path,
    *,
    setup_id: str,
    account: AccountRef | None,
    today: date | None = None,
) -> IngestResult:
    """Parse a broker CSV/TSV export into unsaved trades (empty ``trade_id``)."""
    source_path = Path(path)
    suffix = source_path.suffix.lower()
    if suffix not in {".csv", ".tsv", ".txt"}:
        raise ValueError(f"Unsupported file type: {source_path.suffix}")
    with source_path.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.reader(handle, delimiter="\t" if suffix == ".tsv" else ","))
    return parse_trade_rows(rows, setup_id=setup_id, account=account, today=today)


def parse_trade_rows(
    rows: Sequence[Sequence[str]],
    *,
    setup_id: str,
    account: AccountRef | None,
    today: date | None = None,
) -> IngestResult:
    if len(rows) < 2:
        raise ValueError("CSV must have headers and at least one data row")

    headers = [_clean_header(value) for value in rows[0]]
    columns = {name: _find_column(headers, aliases) for name, aliases in _COLUMN_ALIASES.items()}
    fallback_date = (today or date.today()).isoformat()

    trades: list[Trade] = []
    skipped = 0
    for row in rows[1:]:
        values = [_clean_value(value) for value in row]
        if len([value for value in values if value]) < 2:
            skipped += 1
            continue
        trades.append(_row_to_trade(values, columns, setup_id, account, fallback_date))
    return IngestResult(trades=trades, skipped=skipped)


def parse_number(text: str | None) -> float:
    """Parse a money/price cell; accounting negatives like ``(50.00)`` become ``-50.0``."""
    if not text:
        return 0.0
    trimmed = text.strip()
    negative = trimmed.startswith("(") and trimmed.endswith(")")
    cleaned = re.sub(r"[^0-9.\-]", "", trimmed)
    try:
        value = float(cleaned)
    except ValueError:
        return 0.0
    return -abs(value) if negative else value


def normalize_instrument(symbol: str) -> str:
    upper = symbol.upper()
    for aliases, root in _INSTRUMENT_ROOTS:
        if any(alias in upper for alias in aliases):
            return root
    return upper[:6]


def parse_date_time(text: str, fallback_date: str) -> tuple[str, str | None]:
    day = fallback_date
    iso = _ISO_DATE.search(text)
    if iso:
        year, month, dom = iso.groups()
        day = f"{year}-{int(month):02d}-{int(dom):02d}"
    else:
        us = _US_DATE.search(text)
        if us:
            month, dom, year = us.groups()
            if len(year) == 2:
                year = f"20{year}"
            day = f"{year}-{int(month):02d}-{int(dom):02d}"

    clock = _CLOCK.search(text)
    time = f"{int(clock.group(1)):02d}:{clock.group(2)}" if clock else None
    return day, time


def write_trades_csv(
    trades: Iterable[Trade],
    handle: TextIO,
    *,
    setup_names: Mapping[str, str] | None = None,
    account_labels: Mapping[str, str] | None = None,
) -> int:
    setup_names = setup_names or {}
    account_labels = account_labels or {}
    writer = csv.writer(handle)
    writer.writerow(EXPORT_HEADERS)
    count = 0
    for trade in trades:
        writer.writerow(
            [
                trade.date,
                trade.time or "",
                trade.instrument,
                setup_names.get(trade.setup_id, ""),
                _account_cell(trade.account, account_labels),
                trade.direction,
                _number_cell(trade.entry),
                _number_cell(trade.exit),
                _number_cell(trade.stop_loss),
                trade.contracts,
                _number_cell(trade.pnl),
                trade.result,
                _number_cell(trade.risk_reward),
                "" if trade.rating is None else trade.rating,
                trade.notes or "",
            ]
        )
        count += 1
    return count


def _row_to_trade(
    values: list[str],
    columns: Mapping[str, int | None],
    setup_id: str,
    account: AccountRef | None,
    fallback_date: str,
) -> Trade:
    def cell(name: str) -> str:
        index = columns.get(name)
        if index is None or index >= len(values):
            return ""
        return values[index]

    pnl = parse_number(cell("pnl"))
    contracts = 1
    if cell("contracts"):
        try:
            contracts = abs(int(float(cell("contracts")))) or 1
        except ValueError:
            contracts = 1

    exit_value = parse_number(cell("exit")) if cell("exit") else 0.0
    day, time = parse_date_time(cell("date"), fallback_date) if cell("date") else (fallback_date, None)
    instrument = normalize_instrument(cell("instrument")) if cell("instrument") else DEFAULT_INSTRUMENT

    direction = DIRECTION_LONG
    side = cell("direction").lower()
    if "short" in side or "sell" in side:
        direction = DIRECTION_SHORT

    if pnl > 0:
        result = RESULT_WIN
    elif pnl < 0:
        result = RESULT_LOSS
    else:
        result = RESULT_BREAKEVEN

    return Trade(
        trade_id="",
        date=day,
        time=time,
        instrument=instrument,
        setup_id=setup_id,
        account=account,
        direction=direction,
        entry=parse_number(cell("entry")),
        exit=exit_value or None,
        contracts=contracts,
        pnl=pnl,
        result=result,
    )


def _find_column(headers: list[str], aliases: tuple[str, ...]) -> int | None:
    for index, header in enumerate(headers):
        if any(alias in header for alias in aliases):
            return index
    return None


def _clean_header(value: str) -> str:
    return value.strip().lower().replace("'", "").replace('"', "")


def _clean_value(value: str) -> str:
    return value.strip().replace("'", "").replace('"', "").replace("$", "")


def _account_cell(account: AccountRef | None, labels: Mapping[str, str]) -> str:
    if account is None:
        return ""
    if isinstance(account, SplitAccounts):
        return "Split"
    return labels.get(account.account_id, "")


def _number_cell(value: float | None) -> str:
    if value is None:
        return ""
    if value.is_integer():
        return str(int(value))
    return str(value)
