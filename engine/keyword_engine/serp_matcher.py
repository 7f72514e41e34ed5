"""順位レポート照合モジュール.

照合戦略（先にヒットした段を採用）:
  1. 正規化テキストの完全一致
  2. 部分一致（どちらか一方が他方を含む）
  3. 単語重複（3 文字以上の単語が 2 語以上共通）
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from keyword_engine.config import MIN_WORD_OVERLAP
from keyword_engine.models import SerpSnapshot, SerpSnapshotRow
from keyword_engine.normalizer import normalize_text, significant_words

logger = logging.getLogger(__name__)


def _match_exact(keyword: str, rows: list[SerpSnapshotRow]) -> SerpSnapshotRow | None:
    for row in rows:
        if normalize_text(row.keyword_text) == keyword:
            return row
    return None


def _match_substring(keyword: str, rows: list[SerpSnapshotRow]) -> SerpSnapshotRow | None:
    for row in rows:
        row_text = normalize_text(row.keyword_text)
        if row_text and (row_text in keyword or keyword in row_text):
            return row
    return None


def _match_word_overlap(keyword: str, rows: list[SerpSnapshotRow]) -> SerpSnapshotRow | None:
    keyword_words = significant_words(keyword)
    if len(keyword_words) < MIN_WORD_OVERLAP:
        return None
    for row in rows:
        row_words = set(significant_words(row.keyword_text))
        shared = sum(1 for w in keyword_words if w in row_words)
        if shared >= MIN_WORD_OVERLAP:
            return row
    return None


_MATCH_TIERS: tuple[Callable[[str, list[SerpSnapshotRow]], SerpSnapshotRow | None], ...] = (
    _match_exact,
    _match_substring,
    _match_word_overlap,
)


def find_snapshot_row(keyword_text: str, rows: list[SerpSnapshotRow]) -> SerpSnapshotRow | None:
    """キーワードテキストに対応するレポート行を探す.

    Returns:
        一致した行。どの段でも見つからなければ None。
    """
    keyword = normalize_text(keyword_text)
    if not keyword or not rows:
        return None

    for tier in _MATCH_TIERS:
        row = tier(keyword, rows)
        if row is not None:
            if tier is not _match_exact:
                logger.debug("あいまい照合: keyword=%s, row=%s (%s)", keyword, row.keyword_text, tier.__name__)
            return row
    return None


class SerpMatcher:
    """レポート単位・正規化キーワード単位で照合結果をメモ化する.

    履歴グラフのように同じキーワードを多数のレポートに当てる場合に使う。
    """

    def __init__(self) -> None:
        self._memo: dict[tuple[str, str], SerpSnapshotRow | None] = {}

    def find(self, keyword_text: str, snapshot: SerpSnapshot) -> SerpSnapshotRow | None:
        memo_key = (snapshot.report_id, normalize_text(keyword_text))
        if memo_key not in self._memo:
            self._memo[memo_key] = find_snapshot_row(keyword_text, snapshot.rows)
        return self._memo[memo_key]
