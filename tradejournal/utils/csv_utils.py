"""
CSV import/export for trades.

Incoming files come from many brokers and spreadsheets, so columns are
matched to trade fields by alias. The detected mapping is shown to the
user, who may override it before the actual import.
"""
import io
import math
import re
from typing import Optional

import pandas as pd
from pydantic import ValidationError

from tradejournal.schemas.trade import Trade, TradeCreate

REQUIRED_FIELDS = ["ticker", "enter_time", "exit_time", "enter_price", "exit_price", "quantity"]
OPTIONAL_FIELDS = ["manual_pl", "comments"]
TRADE_FIELDS = REQUIRED_FIELDS + OPTIONAL_FIELDS

FIELD_ALIASES = {
    "ticker": ["ticker", "symbol", "instrument", "contract", "product", "asset", "market"],
    "enter_time": [
        "enter_time", "entertime", "entry_time", "entry_date", "entry", "open_time",
        "opened", "open_date", "buy_time", "bought_timestamp", "start_time",
    ],
    "exit_time": [
        "exit_time", "exittime", "exit_date", "exit", "close_time", "closed",
        "close_date", "sell_time", "sold_timestamp", "end_time",
    ],
    "enter_price": [
        "enter_price", "enterprice", "entry_price", "open_price", "buy_price",
        "avg_entry_price", "entry_avg", "price_in",
    ],
    "exit_price": [
        "exit_price", "exitprice", "close_price", "sell_price", "avg_exit_price",
        "exit_avg", "price_out",
    ],
    "quantity": ["quantity", "qty", "size", "shares", "contracts", "lots", "position_size"],
    "manual_pl": [
        "manual_pl", "manualpl", "pnl", "p&l", "p/l", "profit", "profit_loss",
        "net_pnl", "net_p&l", "realized_pnl", "net_profit",
    ],
    "comments": ["comments", "comment", "notes", "note", "description", "memo"],
}

EXPORT_COLUMNS = [
    "id", "ticker", "enter_time", "exit_time", "enter_price", "exit_price",
    "quantity", "manual_pl", "pl", "comments",
]


def normalize_header(name: str) -> str:
    return re.sub(r"[^a-z0-9&/]", "", str(name).strip().lower())


_ALIAS_LOOKUP = {
    field: {normalize_header(alias) for alias in aliases}
    for field, aliases in FIELD_ALIASES.items()
}


def read_csv(content: bytes) -> pd.DataFrame:
    df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, skipinitialspace=True)
    df.columns = [str(c).strip() for c in df.columns]
    return df


def detect_mapping(columns: list[str]) -> dict[str, Optional[str]]:
    """Map each trade field to the first unused column whose header matches an alias."""
    mapping: dict[str, Optional[str]] = {}
    used: set[str] = set()
    for field in TRADE_FIELDS:
        mapping[field] = None
        for column in columns:
            if column not in used and normalize_header(column) in _ALIAS_LOOKUP[field]:
                mapping[field] = column
                used.add(column)
                break
    return mapping


def missing_fields(mapping: dict[str, Optional[str]]) -> list[str]:
    return [f for f in REQUIRED_FIELDS if not mapping.get(f)]


def _cell(row: dict, column: Optional[str]):
    if not column:
        return None
    value = row.get(column)
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    value = str(value).strip()
    return value or None


def _parse_number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    cleaned = value.replace(",", "").replace("$", "").strip()
    # accounting style negatives, e.g. (12.50)
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]
    number = float(cleaned)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value}")
    return number


def parse_trades(df: pd.DataFrame, mapping: dict[str, Optional[str]]) -> list[TradeCreate]:
    """Convert CSV rows to TradeCreate models; raises ValueError naming the bad row."""
    missing = missing_fields(mapping)
    if missing:
        raise ValueError(f"Missing required columns for: {', '.join(missing)}")
    unknown = [c for c in mapping.values() if c and c not in df.columns]
    if unknown:
        raise ValueError(f"Unknown columns in mapping: {', '.join(unknown)}")

    trades = []
    for i, row in enumerate(df.to_dict(orient="records"), start=1):
        values = {field: _cell(row, mapping.get(field)) for field in TRADE_FIELDS}
        if not any(values.values()):
            continue
        absent = [f for f in REQUIRED_FIELDS if values[f] is None]
        if absent:
            raise ValueError(f"Row {i} is missing required field: {absent[0]}")
        try:
            trades.append(TradeCreate(
                ticker=values["ticker"].upper(),
                enter_time=pd.to_datetime(values["enter_time"]).to_pydatetime(),
                exit_time=pd.to_datetime(values["exit_time"]).to_pydatetime(),
                enter_price=_parse_number(values["enter_price"]),
                exit_price=_parse_number(values["exit_price"]),
                quantity=_parse_number(values["quantity"]),
                manual_pl=_parse_number(values["manual_pl"]),
                comments=values["comments"] or "",
            ))
        except (ValueError, TypeError, ValidationError) as e:
            raise ValueError(f"Row {i} could not be parsed: {e}") from e
    return trades


def preview_rows(df: pd.DataFrame, limit: int = 5) -> list[dict]:
    return df.head(limit).to_dict(orient="records")


def trades_to_csv(trades: list[Trade]) -> str:
    rows = [
        {
            "id": t.id,
            "ticker": t.ticker,
            "enter_time": t.enter_time.isoformat(),
            "exit_time": t.exit_time.isoformat(),
            "enter_price": t.enter_price,
            "exit_price": t.exit_price,
            "quantity": t.quantity,
            "manual_pl": t.manual_pl,
            "pl": t.pl,
            "comments": (t.comments or "").replace("\n", " ").strip(),
        }
        for t in trades
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS).to_csv(index=False)
