"""キーワードクラスタ集計 — メインエントリーポイント.

処理フロー:
  1. プロバイダからキーワード・順位レポート履歴・被リンク/発リンクを取得
  2. 取得データを型付きレコードへ変換
  3. クラスタ構築・順位照合・変動計算・リンク関連付け・レイアウト
  4. クラスタ構造をキャッシュ、順位変動を記録
"""

from __future__ import annotations

import logging
import sys
import time
from datetime import datetime, timezone

from keyword_engine.cache import MemoryCache, TimestampedCache, load_cluster_index, save_cluster_index
from keyword_engine.clustering import cluster_index, cluster_signature, clusters_from_index
from keyword_engine.config import CLUSTER_CACHE_MAX_AGE, DEFAULT_DOMAIN, LOG_DIR, MAX_CACHED_DOMAINS, SUPABASE_URL
from keyword_engine.db import SupabaseCache, insert_movements
from keyword_engine.ingest import parse_history, parse_keywords, parse_links
from keyword_engine.pipeline import DashboardModel, build_dashboard, clustering_input, select_report
from keyword_engine.provider import fetch_keywords, fetch_links, fetch_serp_report, fetch_serp_report_list


def setup_logging() -> None:
    """ロギングの初期設定."""
    log_file = LOG_DIR / f"engine_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def _cluster_cache() -> TimestampedCache:
    if SUPABASE_URL:
        return SupabaseCache("clusters", CLUSTER_CACHE_MAX_AGE)
    return MemoryCache(CLUSTER_CACHE_MAX_AGE, max_entries=MAX_CACHED_DOMAINS)


def movement_records(domain: str, model: DashboardModel, computed_at: str) -> list[dict]:
    """順位変動を DB 書き込み用レコードにする."""
    records = []
    for key, facts in model.facts.items():
        for m in facts.movements:
            records.append({
                "domain": domain,
                "keyword_id": key,
                "keyword": facts.text,
                "engine": m.engine,
                "delta": m.delta,
                "report_id": model.report_id,
                "computed_at": computed_at,
            })
    return records


def run(domain: str) -> DashboardModel | None:
    """メイン処理."""
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("=== キーワードクラスタ集計 開始: domain=%s ===", domain)
    start_time = time.time()

    # 1. キーワード取得
    keyword_payloads = fetch_keywords(domain)
    if not keyword_payloads:
        logger.warning("キーワードが取得できませんでした。終了します。")
        return None
    keywords = parse_keywords(keyword_payloads)
    logger.info("取得したキーワード: %d 件", len(keywords))

    # 2. 順位レポート履歴
    error_count = 0
    reports: dict[str, tuple[dict, list[dict]]] = {}
    for meta in fetch_serp_report_list(domain) or []:
        report_id = str(meta.get("report_id") or meta.get("id") or "")
        if not report_id:
            continue
        rows = fetch_serp_report(domain, report_id)
        if rows is None:
            error_count += 1
            logger.warning("スキップ: report_id=%s", report_id)
            continue
        reports[report_id] = (meta, rows)
    history = parse_history(reports)
    logger.info("順位レポート: %d 件", len(history.snapshots))

    # 3. リンク
    links_in = parse_links(fetch_links(domain, "inbound") or [], "inbound")
    links_out = parse_links(fetch_links(domain, "outbound") or [], "outbound")
    logger.info("リンク: inbound=%d 件, outbound=%d 件", len(links_in), len(links_out))

    # 4. クラスタ構造（キーワード集合が変わっていなければキャッシュから復元）
    current = select_report(history)
    cluster_keywords = clustering_input(keywords, current.rows if current else [])
    signature = cluster_signature(cluster_keywords)
    cache = _cluster_cache()
    index = load_cluster_index(cache, domain, signature)
    clusters = clusters_from_index(index, cluster_keywords) if index is not None else None
    if clusters is not None:
        logger.info("クラスタ構造をキャッシュから復元: %d 件", len(clusters))

    # 5. 組み立て
    model = build_dashboard(keywords, history, links_in, links_out, domain=domain, clusters=clusters)
    if clusters is None:
        save_cluster_index(cache, domain, signature, cluster_index(model.clusters))
        logger.info("クラスタ構造をキャッシュに保存")

    # 6. 順位変動を記録
    if SUPABASE_URL and not model.is_baseline_report:
        insert_movements(movement_records(domain, model, datetime.now(timezone.utc).isoformat()))

    # サマリ
    elapsed = time.time() - start_time
    logger.info("=== キーワードクラスタ集計 完了 ===")
    logger.info("クラスタ: %d 件, レポート取得エラー: %d 回, 所要時間: %.1f 秒",
                len(model.clusters), error_count, elapsed)
    return model


def main() -> None:
    run(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_DOMAIN)


if __name__ == "__main__":
    main()
