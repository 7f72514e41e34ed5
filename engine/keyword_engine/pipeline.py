"""ダッシュボード表示用データの組み立て.

入力（キーワード・順位履歴・リンク）が変わるたびに最初から全部作り直す。クラスタだけはキャッシュから渡せる。
I/O は行わない。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from keyword_engine.clustering import (
    build_clusters,
    flatten_keywords,
    merge_tracking_keywords,
    sort_clusters_by_rank,
)
from keyword_engine.config import ENGINES
from keyword_engine.layout import layout
from keyword_engine.links import associate, count_links_by_url, keyword_page_url
from keyword_engine.models import (
    KeywordCluster,
    KeywordRecord,
    LinkAssociation,
    LinkRecord,
    MovementResult,
    NodePosition,
    SerpHistory,
    SerpSnapshot,
    SerpSnapshotRow,
    TrendSummary,
    Viewport,
)
from keyword_engine.movement import (
    baseline_positions,
    compute_row_movements,
    lookup_baseline,
    summarize_history,
)
from keyword_engine.normalizer import normalize_url_key
from keyword_engine.resolver import resolve
from keyword_engine.serp_matcher import SerpMatcher

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = Viewport(width=1200, height=800)


@dataclass
class KeywordFacts:
    """キーワード1件ぶんの派生情報."""

    keyword: KeywordRecord
    text: str
    serp_row: SerpSnapshotRow | None
    movements: list[MovementResult]
    links: LinkAssociation
    trend: TrendSummary
    page_url: str | None = None
    links_in_count: int = 0
    links_out_count: int = 0

    def movement(self, engine: str) -> int:
        return next((m.delta for m in self.movements if m.engine == engine), 0)


@dataclass
class DashboardModel:
    clusters: list[KeywordCluster]
    facts: dict[str, KeywordFacts] = field(default_factory=dict)
    nodes: list[NodePosition] = field(default_factory=list)
    report_id: str | None = None
    is_baseline_report: bool = False


def select_report(history: SerpHistory, report_id: str | None = None) -> SerpSnapshot | None:
    """表示するレポート. report_id 省略時は最新."""
    return history.get(report_id) if report_id else history.latest


def clustering_input(keywords: list[KeywordRecord], rows: list[SerpSnapshotRow]) -> list[KeywordRecord]:
    """クラスタ構築に渡すキーワード一覧（削除済みを除き、順位追跡のみのキーワードを追加）."""
    return merge_tracking_keywords(flatten_keywords(keywords), rows)


def build_dashboard(
    keywords: list[KeywordRecord],
    history: SerpHistory,
    links_in: list[LinkRecord],
    links_out: list[LinkRecord],
    domain: str | None = None,
    viewport: Viewport | None = None,
    report_id: str | None = None,
    sort_order: str | None = None,
    clusters: list[KeywordCluster] | None = None,
) -> DashboardModel:
    """クラスタ・キーワード別の派生情報・ノード座標をまとめて作る.

    Args:
        report_id: 表示するレポート。省略時は最新。
        sort_order: "best" / "worst" で親キーワードの順位順に並べ替える。省略時はテキスト順。
        clusters: キャッシュから復元したクラスタ。渡された場合は再構築しない。
    """
    current = select_report(history, report_id)
    rows = current.rows if current else []
    is_baseline_report = current is not None and current is history.baseline

    if clusters is None:
        clusters = build_clusters(clustering_input(keywords, rows))
    if sort_order:
        clusters = sort_clusters_by_rank(clusters, rows, order=sort_order)

    baseline = baseline_positions(history.baseline)
    link_counts = count_links_by_url(links_in, links_out)
    matcher = SerpMatcher()

    facts: dict[str, KeywordFacts] = {}
    for cluster in clusters:
        for kw in cluster.members:
            text = resolve(kw)
            row = matcher.find(text, current) if current else None
            if is_baseline_report:
                movements = [MovementResult(engine=e, delta=0) for e in ENGINES]
            else:
                initial = lookup_baseline(baseline, text, kw.keyword or kw.keyword_title)
                movements = compute_row_movements(initial, row)

            page_url = keyword_page_url(kw, domain)
            counts = link_counts.get(normalize_url_key(page_url), {"in": 0, "out": 0})
            facts[kw.key] = KeywordFacts(
                keyword=kw,
                text=text,
                serp_row=row,
                movements=movements,
                links=associate(kw, links_in, links_out, domain),
                trend=summarize_history(text, history, matcher=matcher),
                page_url=page_url,
                links_in_count=counts["in"],
                links_out_count=counts["out"],
            )

    nodes = layout(clusters, viewport or DEFAULT_VIEWPORT)
    logger.info(
        "ダッシュボード構築: clusters=%d, keywords=%d, nodes=%d, report=%s",
        len(clusters), len(facts), len(nodes), current.report_id if current else None,
    )
    return DashboardModel(
        clusters=clusters,
        facts=facts,
        nodes=nodes,
        report_id=current.report_id if current else None,
        is_baseline_report=is_baseline_report,
    )
