"""Shared Supabase data access helpers."""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from collections.abc import Iterable
from typing import Any

import httpx
from postgrest import APIError

from app.config import settings
from app.utils.errors import (
    ForeignKeyViolationError,
    InvalidInputError,
    NotFoundError,
    StorageFailureError,
    UniqueViolationError,
)
from supabase import Client

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
# Raised by Postgres when an id is not a well-formed uuid.
INVALID_TEXT_REPRESENTATION = "22P02"
# SQLSTATE classes raised for bad values (22xxx) and other constraint checks (23xxx).
DATA_ERROR_PREFIXES = ("22", "23")

logger = logging.getLogger(__name__)
_profile_cache: dict[str, tuple[float, dict[str, Any] | None]] = {}
_cache_lock = threading.Lock()


def _cache_get(cache: dict[Any, tuple[float, Any]], key: Any) -> Any | None:
    now = time.monotonic()
    with _cache_lock:
        entry = cache.get(key)
        if not entry:
            return None
        expires_at, value = entry
        if expires_at <= now:
            cache.pop(key, None)
            return None
        return value


def _cache_set(
    cache: dict[Any, tuple[float, Any]],
    key: Any,
    value: Any,
    ttl_seconds: int,
) -> None:
    if ttl_seconds <= 0:
        return

    with _cache_lock:
        max_entries = max(100, settings.data_cache_max_entries)
        if len(cache) >= max_entries:
            oldest_key = next(iter(cache))
            cache.pop(oldest_key, None)
        cache[key] = (time.monotonic() + ttl_seconds, value)


def clear_profile_cache() -> None:
    """Drop all cached profile lookups."""
    with _cache_lock:
        _profile_cache.clear()


def translate_api_error(exc: APIError) -> Exception:
    """Map a PostgREST error onto the application error hierarchy."""
    code = str(getattr(exc, "code", "") or "")
    message = str(getattr(exc, "message", "") or "Database request failed")
    if code == UNIQUE_VIOLATION:
        return UniqueViolationError(message)
    if code == FOREIGN_KEY_VIOLATION:
        return ForeignKeyViolationError(message)
    if code.startswith(DATA_ERROR_PREFIXES):
        return InvalidInputError(message)
    return StorageFailureError(message)


class SupabaseService:
    """Thin helper wrapper around a Supabase client."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def execute(self, query, default: Any = None) -> Any:
        """Execute a Supabase query and normalize API and transport errors."""
        started = time.perf_counter()
        try:
            response = query.execute()
        except APIError as exc:
            raise translate_api_error(exc) from exc
        except httpx.HTTPError as exc:
            logger.warning("Supabase request failed: %s", exc)
            raise StorageFailureError() from exc

        elapsed_ms = (time.perf_counter() - started) * 1000
        threshold_ms = settings.slow_query_log_threshold_ms
        if threshold_ms > 0 and elapsed_ms >= threshold_ms:
            logger.warning("Slow Supabase query %.1fms", elapsed_ms)
        data = response.data
        return default if data is None and default is not None else data

    def select_one(
        self,
        table: str,
        filters: dict[str, Any],
        columns: str = "*",
        not_found_label: str | None = None,
    ) -> dict[str, Any]:
        """Select a single row and raise NotFoundError when missing.

        A malformed uuid key cannot name an existing row, so it is reported
        as missing rather than as invalid input.
        """
        query = self.client.table(table).select(columns)
        for key, value in filters.items():
            query = query.eq(key, value)
        try:
            rows = self.execute(query.limit(1), default=[])
        except InvalidInputError as exc:
            if getattr(exc.__cause__, "code", None) != INVALID_TEXT_REPRESENTATION:
                raise
            rows = []
        if not rows:
            label = not_found_label or table
            raise NotFoundError(label)
        return rows[0]

    def select_many(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select many rows from a table with optional filters."""
        query = self.client.table(table).select(columns)
        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit:
            query = query.limit(limit)
        return self.execute(query, default=[])

    def select_in(
        self,
        table: str,
        column: str,
        values: Iterable[Any],
        columns: str = "*",
    ) -> list[dict[str, Any]]:
        """Select rows whose ``column`` is one of ``values``."""
        unique_values = sorted({str(value) for value in values})
        if not unique_values:
            return []
        return self.execute(
            self.client.table(table).select(columns).in_(column, unique_values),
            default=[],
        )

    def count(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Count rows in a table with optional equality filters."""
        query = self.client.table(table).select("*", count="exact", head=True)
        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)
        try:
            response = query.execute()
        except APIError as exc:
            raise translate_api_error(exc) from exc
        except httpx.HTTPError as exc:
            raise StorageFailureError() from exc
        return response.count or 0

    def insert_one(self, table: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return the created object."""
        rows = self.execute(self.client.table(table).insert(payload), default=[])
        if not rows:
            raise StorageFailureError(f"Failed to insert into {table}")
        return rows[0]

    def insert_many(self, table: str, payloads: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert many rows in one request and return inserted rows.

        PostgREST runs a bulk insert as a single statement, so either every
        row is written or none is.
        """
        if not payloads:
            return []
        return self.execute(self.client.table(table).insert(payloads), default=[])

    def update(
        self,
        table: str,
        filters: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows by equality filters and return the updated rows."""
        query = self.client.table(table).update(payload)
        for key, value in filters.items():
            query = query.eq(key, value)
        return self.execute(query, default=[])

    def delete(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Delete rows by equality filters and return removed rows."""
        query = self.client.table(table).delete()
        for key, value in filters.items():
            query = query.eq(key, value)
        return self.execute(query, default=[])

    def get_profiles_map(self, user_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        """Fetch person records by ``user_id`` and return an id-keyed mapping."""
        ids = sorted({str(uid) for uid in user_ids if uid})
        if not ids:
            return {}

        result: dict[str, dict[str, Any]] = {}
        missing_ids: list[str] = []
        for user_id in ids:
            cached = _cache_get(_profile_cache, user_id)
            if cached is None:
                missing_ids.append(user_id)
                continue
            result[user_id] = dict(cached)

        if missing_ids:
            rows = self.select_in(
                "profiles",
                "user_id",
                missing_ids,
                columns="user_id,full_name,student_id,department",
            )
            for row in rows:
                user_key = str(row["user_id"])
                payload = dict(row)
                result[user_key] = payload
                _cache_set(_profile_cache, user_key, payload, settings.profile_cache_ttl_seconds)

        return result


def group_by(rows: list[dict[str, Any]], key: str) -> dict[str, list[dict[str, Any]]]:
    """Group rows by an arbitrary key, keeping row order within each group."""
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for row in rows:
        grouped[str(row[key])].append(row)
    return grouped
