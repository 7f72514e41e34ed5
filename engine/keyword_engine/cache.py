"""計算結果キャッシュモジュール.

get / set（取得日時つき）だけを契約とし、期限切れ・未保存はどちらも None を返す。
永続版は db.SupabaseCache、プロセス内版は MemoryCache。
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import asdict
from typing import Any, Protocol

from keyword_engine.models import PageSpeedScore

logger = logging.getLogger(__name__)


class TimestampedCache(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, cached_at: float | None = None) -> None: ...


class MemoryCache:
    """プロセス内キャッシュ. max_entries を超えたら古い順に捨てる."""

    def __init__(
        self,
        max_age: float,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_age = max_age
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, cached_at = entry
        if self._clock() - cached_at >= self.max_age:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, cached_at: float | None = None) -> None:
        self._entries[key] = (value, self._clock() if cached_at is None else cached_at)
        if self.max_entries is not None and len(self._entries) > self.max_entries:
            oldest = sorted(self._entries, key=lambda k: self._entries[k][1])
            for k in oldest[: len(self._entries) - self.max_entries]:
                del self._entries[k]

    def __len__(self) -> int:
        return len(self._entries)


def _pagespeed_key(url: str) -> str:
    return f"pagespeed:{url}"


def _clusters_key(domain: str) -> str:
    return f"clusters:{domain}"


def is_cacheable_score(score: PageSpeedScore) -> bool:
    """取得中・エラー・未計測 (0 点) のスコアは保存しない."""
    return not (score.loading or score.updating or score.error) and score.mobile_score > 0


def save_pagespeed_scores(cache: TimestampedCache, scores: dict[str, PageSpeedScore]) -> int:
    """保存対象のスコアだけをキャッシュに書く. 書いた件数を返す."""
    saved = 0
    for url, score in scores.items():
        if not is_cacheable_score(score):
            continue
        cache.set(_pagespeed_key(url), asdict(score), cached_at=score.cached_at)
        saved += 1
    return saved


def load_pagespeed_score(cache: TimestampedCache, url: str) -> PageSpeedScore | None:
    value = cache.get(_pagespeed_key(url))
    if not isinstance(value, dict):
        return None
    try:
        return PageSpeedScore(**value)
    except TypeError:
        logger.warning("PageSpeed キャッシュ形式不正: url=%s", url)
        return None


def save_cluster_index(cache: TimestampedCache, domain: str, signature: str, index: list[dict]) -> None:
    cache.set(_clusters_key(domain), {"signature": signature, "clusters": index})


def load_cluster_index(cache: TimestampedCache, domain: str, signature: str) -> list[dict] | None:
    """キーワード集合が変わっていなければキャッシュ済みのクラスタ構造を返す."""
    value = cache.get(_clusters_key(domain))
    if not isinstance(value, dict) or value.get("signature") != signature:
        return None
    return value.get("clusters")
