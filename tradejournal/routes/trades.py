import json
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response
from typing import Optional
from loguru import logger
from pandas.errors import EmptyDataError, ParserError

from tradejournal.config import MAX_BULK_IMPORT
from tradejournal.db import db
from tradejournal.schemas.trade import ImportPreview, ImportResult, Trade, TradeCreate, TradeUpdate
from tradejournal.services.auth.dependencies import get_current_user
from tradejournal.utils.csv_utils import (
    detect_mapping, missing_fields, parse_trades, preview_rows, read_csv, trades_to_csv, TRADE_FIELDS
)

router = APIRouter(prefix="/trades", tags=["Trades"])


async def _read_upload(file: UploadFile):
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Please choose a CSV file.")
    try:
        return read_csv(content)
    except (EmptyDataError, ParserError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"Could not read CSV: {e}")


def _check_batch_size(count: int):
    if count > MAX_BULK_IMPORT:
        raise HTTPException(status_code=400, detail=f"Maximum {MAX_BULK_IMPORT} trades per import!")


@router.get("/", response_model=list[Trade])
async def list_trades(
    ticker: Optional[str] = None,
    tag_id: Optional[int] = None,
    current_user=Depends(get_current_user),
):
    return await db.list_trades(current_user["id"], ticker=ticker, tag_id=tag_id)

@router.post("/", response_model=Trade, status_code=201)
async def create_trade(trade: TradeCreate, current_user=Depends(get_current_user)):
    try:
        return await db.create_trade(current_user["id"], trade)
    except Exception as e:
        logger.error(f"❌ Failed to create trade: {e}")
        raise HTTPException(status_code=500, detail=f"DB error: {e}")

@router.post("/bulk", response_model=ImportResult, status_code=201)
async def bulk_import(trades: list[TradeCreate], current_user=Depends(get_current_user)):
    if not trades:
        raise HTTPException(status_code=400, detail="An array of trades is required!")
    _check_batch_size(len(trades))

    normalized = [t.model_copy(update={"ticker": t.ticker.upper()}) for t in trades]
    imported = await db.insert_trades(current_user["id"], normalized)
    return ImportResult(imported=imported)

@router.post("/import/preview", response_model=ImportPreview)
async def preview_import(file: UploadFile = File(...), current_user=Depends(get_current_user)):
    """Detect the column mapping of an uploaded CSV so the user can confirm it."""
    df = await _read_upload(file)
    columns = list(df.columns)
    mapping = detect_mapping(columns)
    return ImportPreview(
        columns=columns,
        mapping=mapping,
        missing=missing_fields(mapping),
        row_count=len(df),
        sample=preview_rows(df),
    )

@router.post("/import", response_model=ImportResult, status_code=201)
async def import_csv(
    file: UploadFile = File(...),
    mapping: Optional[str] = Form(None, description="JSON object of trade field -> CSV column"),
    current_user=Depends(get_current_user),
):
    df = await _read_upload(file)
    column_map = detect_mapping(list(df.columns))
    if mapping:
        try:
            overrides = json.loads(mapping)
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="mapping must be a JSON object")
        if not isinstance(overrides, dict):
            raise HTTPException(status_code=400, detail="mapping must be a JSON object")
        column_map.update({k: v for k, v in overrides.items() if k in TRADE_FIELDS})

    try:
        trades = parse_trades(df, column_map)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not trades:
        raise HTTPException(status_code=400, detail="No trades found in file")
    _check_batch_size(len(trades))

    imported = await db.insert_trades(current_user["id"], trades)
    return ImportResult(imported=imported)

@router.get("/export")
async def export_trades(current_user=Depends(get_current_user)):
    rows = await db.list_trades(current_user["id"])
    trades = [Trade.model_validate(r) for r in rows]
    return Response(
        content=trades_to_csv(trades),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=trades.csv"},
    )

@router.get("/{trade_id}", response_model=Trade)
async def get_trade(trade_id: int, current_user=Depends(get_current_user)):
    trade = await db.get_trade(current_user["id"], trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail="Trade not found")
    return trade

@router.put("/{trade_id}", response_model=Trade)
async def update_trade(trade_id: int, trade: TradeUpdate, current_user=Depends(get_current_user)):
    updated = await db.update_trade(current_user["id"], trade_id, trade)
    if not updated:
        raise HTTPException(status_code=404, detail="Trade not found")
    return updated

@router.delete("/{trade_id}", status_code=204)
async def delete_trade(trade_id: int, current_user=Depends(get_current_user)):
    deleted = await db.delete_trade(current_user["id"], trade_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Trade not found")
