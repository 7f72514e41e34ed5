"""順位変動計算モジュール.

圏外 (None) は 1000 位として扱い、変動 = 基準順位 - 現在順位 とする。
正の値が改善、負の値が下落。両方圏外なら 0。
"""

from __future__ import annotations

from keyword_engine.config import ENGINES, PRIMARY_ENGINE, UNRANKED_POSITION
from keyword_engine.models import (
    MovementResult,
    SerpHistory,
    SerpSnapshot,
    SerpSnapshotRow,
    TrendSummary,
)
from keyword_engine.normalizer import normalize_text
from keyword_engine.serp_matcher import SerpMatcher

BaselinePositions = dict[str, dict[str, int | None]]


def compute_movement(baseline: int | None, current: int | None) -> int:
    """基準順位と現在順位から変動量を計算する."""
    if baseline is None and current is None:
        return 0
    effective_baseline = UNRANKED_POSITION if baseline is None else baseline
    effective_current = UNRANKED_POSITION if current is None else current
    return effective_baseline - effective_current


def movement_label(baseline: int | None, current: int | None) -> str:
    """表示用の変動ラベル. 計算結果そのものは compute_movement と同じ値を使う.

    Returns:
        "new"（新規ランクイン）/ "lost"（圏外落ち）/ "up" / "down" / "same"
    """
    if baseline is None and current is not None:
        return "new"
    if baseline is not None and current is None:
        return "lost"
    delta = compute_movement(baseline, current)
    if delta > 0:
        return "up"
    if delta < 0:
        return "down"
    return "same"


def compute_row_movements(
    baseline: dict[str, int | None] | None,
    current_row: SerpSnapshotRow | None,
    engines: tuple[str, ...] = ENGINES,
) -> list[MovementResult]:
    """エンジンごとの変動を計算する. 基準・現在とも欠けていれば圏外扱い."""
    baseline = baseline or {}
    results = []
    for engine in engines:
        current = current_row.position(engine) if current_row else None
        results.append(MovementResult(engine=engine, delta=compute_movement(baseline.get(engine), current)))
    return results


def baseline_positions(snapshot: SerpSnapshot | None) -> BaselinePositions:
    """基準レポートの順位を正規化キーワードテキストで引ける形にする."""
    if snapshot is None:
        return {}
    positions: BaselinePositions = {}
    for row in snapshot.rows:
        key = normalize_text(row.keyword_text)
        if key and key not in positions:
            positions[key] = dict(row.positions)
    return positions


def lookup_baseline(
    positions: BaselinePositions, keyword_text: str, alt_text: str | None = None
) -> dict[str, int | None] | None:
    """キーワードの基準順位を探す.

    表示テキスト → 生のキーワードフィールド → 部分一致 の順に試す。
    """
    key = normalize_text(keyword_text)
    alt_key = normalize_text(alt_text)
    for candidate in (key, alt_key):
        if candidate and candidate in positions:
            return positions[candidate]

    if key:
        for baseline_key, values in positions.items():
            if key in baseline_key or baseline_key in key:
                return values
    return None


def summarize_history(
    keyword_text: str,
    history: SerpHistory,
    engine: str = PRIMARY_ENGINE,
    matcher: SerpMatcher | None = None,
) -> TrendSummary:
    """履歴全体の順位推移をまとめる.

    best / baseline / current は順位が付いたレポートだけから求める。
    """
    matcher = matcher or SerpMatcher()
    ranked: list[int] = []
    for snapshot in history.snapshots:
        row = matcher.find(keyword_text, snapshot)
        position = row.position(engine) if row else None
        if position is not None:
            ranked.append(position)

    baseline = ranked[0] if ranked else None
    current = ranked[-1] if ranked else None
    return TrendSummary(
        keyword_text=keyword_text,
        best=min(ranked) if ranked else None,
        baseline=baseline,
        current=current,
        change=compute_movement(baseline, current),
    )
