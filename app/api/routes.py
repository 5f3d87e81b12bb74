import json
import time
import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.api.deps import get_store, require_bearer
from app.core.logger import get_logger
from app.core.store import KeyValueStore, StoreError
from trading_dashboard.types import (
    ACCOUNT_KEY_PREFIX,
    ACTIVITY_KEY,
    CHART_KEY,
    STATS_KEY,
    StatsDocument,
)

logger = get_logger("API")


router = APIRouter(dependencies=[Depends(require_bearer)])


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def new_account_id() -> str:
    """Millisecond timestamp plus a random suffix: time-ordered, no collisions."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def account_key(account_id: str) -> str:
    """Store key for an account id.

    Ids that already carry the ``account_`` prefix are used as-is, so ``"123"``
    and ``"account_123"`` name the same record. The response echoes the id as
    sent; either spelling works for later updates and deletes.
    """
    if account_id.startswith(ACCOUNT_KEY_PREFIX):
        return account_id
    return f"{ACCOUNT_KEY_PREFIX}{account_id}"


def _reject_constant(token: str) -> Any:
    raise ValueError(f"{token} is not valid JSON")


async def read_json_body(request: Request) -> Any:
    raw = await request.body()
    try:
        # NaN and Infinity would be stored but could never be served back.
        return json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON body") from exc


async def _read_singleton(store: KeyValueStore, key: str, fallback: Any, what: str) -> Any:
    try:
        value = await store.get(key)
    except StoreError as exc:
        logger.error(f"Error fetching {what}: {exc}")
        return error_response(500, f"Failed to fetch {what}")
    if value is None:
        return fallback
    return value


async def _write_singleton(store: KeyValueStore, key: str, body: Any, what: str) -> Any:
    try:
        await store.set(key, body)
    except StoreError as exc:
        logger.error(f"Error updating {what}: {exc}")
        return error_response(500, f"Failed to update {what}")
    logger.info(f"Updated {what}")
    return {"success": True}


@router.get("/dashboard/stats")
async def get_dashboard_stats(store: KeyValueStore = Depends(get_store)):
    return await _read_singleton(store, STATS_KEY, StatsDocument.zero().to_json(), "dashboard stats")


@router.post("/dashboard/stats")
async def update_dashboard_stats(request: Request, store: KeyValueStore = Depends(get_store)):
    body = await read_json_body(request)
    return await _write_singleton(store, STATS_KEY, body, "dashboard stats")


@router.get("/dashboard/chart")
async def get_chart_data(store: KeyValueStore = Depends(get_store)):
    return await _read_singleton(store, CHART_KEY, [], "chart data")


@router.post("/dashboard/chart")
async def update_chart_data(request: Request, store: KeyValueStore = Depends(get_store)):
    body = await read_json_body(request)
    return await _write_singleton(store, CHART_KEY, body, "chart data")


@router.get("/dashboard/activity")
async def get_recent_activity(store: KeyValueStore = Depends(get_store)):
    return await _read_singleton(store, ACTIVITY_KEY, [], "recent activity")


@router.post("/dashboard/activity")
async def update_recent_activity(request: Request, store: KeyValueStore = Depends(get_store)):
    body = await read_json_body(request)
    return await _write_singleton(store, ACTIVITY_KEY, body, "recent activity")


@router.get("/accounts")
async def list_accounts(store: KeyValueStore = Depends(get_store)):
    try:
        accounts = await store.get_by_prefix(ACCOUNT_KEY_PREFIX)
    except StoreError as exc:
        logger.error(f"Error fetching accounts: {exc}")
        return error_response(500, "Failed to fetch accounts")
    return accounts or []


@router.post("/accounts")
async def upsert_account(request: Request, store: KeyValueStore = Depends(get_store)):
    account = await read_json_body(request)
    if not isinstance(account, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Account body must be a JSON object",
        )

    raw_id = account.get("id")
    if not raw_id:
        account_id = new_account_id()
        account["id"] = account_id
    else:
        account_id = str(raw_id)

    try:
        await store.set(account_key(account_id), account)
    except StoreError as exc:
        logger.error(f"Error updating account {account_id}: {exc}")
        return error_response(500, "Failed to update account")
    logger.info(f"Upserted account {account_id}")
    return {"success": True, "accountId": account_id}


@router.delete("/accounts/{account_id:path}")
async def delete_account(account_id: str, store: KeyValueStore = Depends(get_store)):
    try:
        await store.delete(account_key(account_id))
    except StoreError as exc:
        logger.error(f"Error deleting account {account_id}: {exc}")
        return error_response(500, "Failed to delete account")
    logger.info(f"Deleted account {account_id}")
    return {"success": True}
