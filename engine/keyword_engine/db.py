"""Supabase データベース操作モジュール.

全テーブルは keyword_engine スキーマに配置。
Supabase client のスキーマ指定は .schema() で行う。
"""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from typing import Any

from supabase import create_client

from keyword_engine.config import SUPABASE_SCHEMA, SUPABASE_SECRET_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _client():
    return create_client(SUPABASE_URL, SUPABASE_SECRET_KEY)


def _table(name: str):
    """keyword_engine スキーマのテーブルを参照する."""
    return _client().schema(SUPABASE_SCHEMA).table(name)


class SupabaseCache:
    """cache_entries テーブルを使う永続キャッシュ.

    行: {"namespace", "key", "value", "cached_at"}。namespace + key で一意。
    """

    def __init__(self, namespace: str, max_age: float) -> None:
        self.namespace = namespace
        self.max_age = max_age

    def get(self, key: str) -> Any | None:
        resp = (
            _table("cache_entries")
            .select("value, cached_at")
            .eq("namespace", self.namespace)
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not resp.data:
            return None
        row = resp.data[0]
        if time.time() - float(row.get("cached_at") or 0) >= self.max_age:
            return None
        return row.get("value")

    def set(self, key: str, value: Any, cached_at: float | None = None) -> None:
        record = {
            "namespace": self.namespace,
            "key": key,
            "value": value,
            "cached_at": time.time() if cached_at is None else cached_at,
        }
        _table("cache_entries").upsert(record, on_conflict="namespace,key").execute()


def insert_movements(records: list[dict]) -> None:
    """順位変動レコードを一括挿入する.

    Args:
        records: [{"domain", "keyword_id", "keyword", "engine", "delta", "report_id", "computed_at"}, ...]
    """
    if not records:
        return
    _table("keyword_movements").insert(records).execute()
    logger.info("keyword_movements に %d 件挿入", len(records))
