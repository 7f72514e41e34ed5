"""キーワードクラスタ構築モジュール.

プロバイダが親子関係（cluster_id / supporting_keywords / parent_id）を返す場合はそれに従い、
関係が一つもない場合はテキスト類似度でまとめる。順位追跡のみのキーワードは末尾に単独で並べる。
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from keyword_engine.config import (
    LOCATION_BOOST,
    LOCATION_WORDS,
    MAX_CLUSTER_CHILDREN,
    PRIMARY_ENGINE,
    SIMILARITY_THRESHOLD,
    UNRANKED_POSITION,
)
from keyword_engine.models import KeywordCluster, KeywordRecord, SerpSnapshotRow
from keyword_engine.normalizer import normalize_relation_id, normalize_text, significant_words
from keyword_engine.resolver import resolve
from keyword_engine.serp_matcher import find_snapshot_row

logger = logging.getLogger(__name__)


@dataclass
class KeywordGraph:
    """キーワードの親子関係. 2 通りの表現を取り込み時に 1 つの隣接表現へまとめる."""

    records: dict[str, KeywordRecord]
    parent_of: dict[str, str] = field(default_factory=dict)
    children_of: dict[str, list[str]] = field(default_factory=lambda: defaultdict(list))
    groups: dict[str, list[str]] = field(default_factory=dict)  # cluster_id → メンバー

    @property
    def has_relationships(self) -> bool:
        return bool(self.parent_of or self.groups)

    @classmethod
    def from_records(cls, records: list[KeywordRecord]) -> KeywordGraph:
        graph = cls(records={r.key: r for r in records})

        # 入れ子の supporting_keywords を優先して読む
        for record in records:
            for child in record.supporting_keywords:
                graph._claim(child.key, record.key, source="supporting_keywords")

        for record in records:
            parent_key = normalize_relation_id(record.parent_id)
            if parent_key:
                graph._claim(record.key, parent_key, source="parent_id")

        for record in records:
            cluster_key = normalize_relation_id(record.cluster_id)
            if cluster_key:
                graph.groups.setdefault(cluster_key, []).append(record.key)

        return graph

    def _claim(self, child_key: str, parent_key: str, source: str) -> None:
        if child_key == parent_key:
            return
        if child_key not in self.records or parent_key not in self.records:
            return
        current = self.parent_of.get(child_key)
        if current is not None:
            if current != parent_key:
                logger.debug(
                    "親の競合: keyword=%s, 採用=%s, 無視=%s (%s)",
                    child_key, current, parent_key, source,
                )
            return
        self.parent_of[child_key] = parent_key
        self.children_of[parent_key].append(child_key)


def flatten_keywords(keywords: list[KeywordRecord]) -> list[KeywordRecord]:
    """入れ子の supporting_keywords を展開し、ID で重複を除いた一覧を返す.

    トップレベルのレコードを優先し、入れ子のみのレコードは発見順に後ろへ並べる。
    削除済みのレコードはその入れ子ごと除く。
    """
    live = [kw for kw in keywords if not kw.deleted]
    seen: dict[str, KeywordRecord] = {}
    for kw in live:
        seen.setdefault(kw.key, kw)

    stack = list(reversed(live))
    while stack:
        kw = stack.pop()
        for child in kw.supporting_keywords:
            if not child.deleted and child.key not in seen:
                seen[child.key] = child
                stack.append(child)
    return list(seen.values())


def tracking_keyword_id(keyword_text: str) -> str:
    """順位データのみのキーワードに振る仮想 ID."""
    return "serp_" + "_".join(normalize_text(keyword_text).split(" "))


def merge_tracking_keywords(
    keywords: list[KeywordRecord], rows: Iterable[SerpSnapshotRow]
) -> list[KeywordRecord]:
    """コンテンツ側に存在しない順位データのキーワードを仮想レコードとして追加する.

    既存キーワード（入れ子の子を含む）との対応は完全一致または部分一致で判定する。
    """
    known = [normalize_text(resolve(kw)) for kw in flatten_keywords(keywords)]
    known = [k for k in known if k]
    merged = list(keywords)
    added = 0

    for row in rows:
        text = normalize_text(row.keyword_text)
        if not text:
            continue
        if any(k == text or k in text or text in k for k in known):
            continue
        merged.append(KeywordRecord(
            id=tracking_keyword_id(row.keyword_text),
            keyword=row.keyword_text.strip(),
            keyword_title=row.keyword_text.strip(),
            is_supporting=True,
            status="tracking_only",
        ))
        known.append(text)
        added += 1

    if added:
        logger.info("順位追跡のみのキーワードを %d 件追加", added)
    return merged


def keyword_similarity(text_a: str, text_b: str) -> float:
    """2 つのキーワードの単語重複率. 地名が共通なら 1.2 倍."""
    words_a = set(significant_words(text_a))
    words_b = set(significant_words(text_b))
    if not words_a or not words_b:
        return 0.0

    common = words_a & words_b
    overlap = len(common) / min(len(words_a), len(words_b))
    if common & LOCATION_WORDS:
        return overlap * LOCATION_BOOST
    return overlap


def build_clusters(keywords: list[KeywordRecord]) -> list[KeywordCluster]:
    """キーワード一覧を親子クラスタにまとめる.

    Returns:
        コンテンツキーワードのクラスタ（親テキスト順）に続けて、
        順位追跡のみのキーワードの単独クラスタ（テキスト順）。
    """
    if not keywords:
        return []

    records = flatten_keywords(keywords)
    texts = {r.key: resolve(r) for r in records}

    def text_key(kw: KeywordRecord) -> tuple[str, str, str]:
        text = texts[kw.key]
        return text.casefold(), text, kw.key

    content = [r for r in records if not r.is_tracking_only]
    tracking = [r for r in records if r.is_tracking_only]

    graph = KeywordGraph.from_records(content)
    if graph.has_relationships:
        clusters = _explicit_clusters(content, graph, text_key)
    else:
        logger.info("明示的な親子関係なし。類似度クラスタリングにフォールバック (%d 件)", len(content))
        clusters = _similarity_clusters(content, texts)

    clusters.sort(key=lambda c: text_key(c.parent))
    for kw in sorted(tracking, key=text_key):
        clusters.append(KeywordCluster(parent=kw))

    logger.debug("クラスタ構築: clusters=%d, keywords=%d", len(clusters), len(records))
    return clusters


def _explicit_clusters(content, graph: KeywordGraph, text_key) -> list[KeywordCluster]:
    clusters: list[KeywordCluster] = []
    assigned: set[str] = set()

    for member_keys in graph.groups.values():
        members = sorted((graph.records[k] for k in member_keys), key=text_key)
        parent = next((m for m in members if not m.is_supporting), members[0])
        has_supporting = any(m.is_supporting for m in members)
        children = [
            m for m in members
            if m.key != parent.key and (m.is_supporting or not has_supporting)
        ][:MAX_CLUSTER_CHILDREN]
        clusters.append(KeywordCluster(parent=parent, children=children))
        assigned.update(m.key for m in (parent, *children))

    for kw in content:
        if kw.key in assigned or kw.key in graph.parent_of:
            continue
        candidates = [
            graph.records[k] for k in graph.children_of.get(kw.key, [])
            if k not in assigned
        ]
        children = sorted(candidates, key=text_key)[:MAX_CLUSTER_CHILDREN]
        clusters.append(KeywordCluster(parent=kw, children=children))
        assigned.add(kw.key)
        assigned.update(c.key for c in children)

    # 上限超過で溢れた子・循環参照などで親に付かなかったもの
    for kw in content:
        if kw.key not in assigned:
            clusters.append(KeywordCluster(parent=kw))
            assigned.add(kw.key)

    return clusters


def _similarity_clusters(content, texts: dict[str, str]) -> list[KeywordCluster]:
    ordered = sorted(
        content,
        key=lambda kw: (len(texts[kw.key].split()), texts[kw.key].casefold(), texts[kw.key], kw.key),
    )
    target_main_count = math.ceil(len(ordered) / 3)

    main_keywords: list[KeywordRecord] = []
    pool: list[KeywordRecord] = []
    for i, kw in enumerate(ordered):
        if len(main_keywords) < target_main_count and i % 3 == 0:
            main_keywords.append(kw)
        else:
            pool.append(kw)

    clusters: list[KeywordCluster] = []
    used: set[str] = set()
    for main in main_keywords:
        scored = [
            (keyword_similarity(texts[main.key], texts[candidate.key]), candidate)
            for candidate in pool
            if candidate.key not in used
        ]
        # 同点はプール内の順序を保つ
        scored.sort(key=lambda pair: pair[0], reverse=True)

        children = [
            candidate for score, candidate in scored[:MAX_CLUSTER_CHILDREN]
            if score >= SIMILARITY_THRESHOLD
        ]
        used.update(c.key for c in children)
        used.add(main.key)
        clusters.append(KeywordCluster(parent=main, children=children))

    for kw in pool:
        if kw.key not in used:
            clusters.append(KeywordCluster(parent=kw))

    return clusters


def cluster_signature(keywords: list[KeywordRecord]) -> str:
    """キーワード ID 集合の署名（クラスタキャッシュのキー）."""
    return "|".join(sorted(r.key for r in flatten_keywords(keywords)))


def cluster_index(clusters: list[KeywordCluster]) -> list[dict]:
    """キャッシュ保存用の ID だけのクラスタ構造."""
    return [
        {"parent_id": c.parent.key, "child_ids": [child.key for child in c.children]}
        for c in clusters
    ]


def clusters_from_index(index: list[dict], keywords: list[KeywordRecord]) -> list[KeywordCluster] | None:
    """キャッシュ済みインデックスからクラスタを復元する. 欠けた ID があれば None."""
    records = {r.key: r for r in flatten_keywords(keywords)}
    clusters: list[KeywordCluster] = []
    for entry in index:
        parent = records.get(str(entry.get("parent_id")))
        children = [records.get(str(cid)) for cid in entry.get("child_ids", [])]
        if parent is None or any(c is None for c in children):
            return None
        clusters.append(KeywordCluster(parent=parent, children=children))
    return clusters


def sort_clusters_by_rank(
    clusters: list[KeywordCluster],
    rows: list[SerpSnapshotRow],
    order: str = "best",
    engine: str = PRIMARY_ENGINE,
) -> list[KeywordCluster]:
    """親キーワードの順位でクラスタを並べ替える. 圏外は 1000 位扱い.

    Args:
        order: "best"（上位順）または "worst"（要改善順）
    """
    def score(cluster: KeywordCluster) -> int:
        row = find_snapshot_row(resolve(cluster.parent), rows)
        position = row.position(engine) if row else None
        return position if position is not None else UNRANKED_POSITION

    if order == "worst":
        return sorted(clusters, key=lambda c: -score(c))
    return sorted(clusters, key=score)
