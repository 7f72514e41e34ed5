"""プロバイダ応答の取り込みモジュール.

連携先ごとにフィールド名が揺れるため、候補名を優先順に並べて最初に値があるものを使う。
壊れたエントリは警告を出してスキップする。
"""

from __future__ import annotations

import logging
from datetime import datetime

from keyword_engine.config import ENGINES
from keyword_engine.models import (
    KeywordRecord,
    LinkRecord,
    SerpHistory,
    SerpSnapshot,
    SerpSnapshotRow,
)
from keyword_engine.normalizer import normalize_relation_id

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"1", "true", "yes", "y"}


def _first(d: dict, *names: str):
    """候補フィールド名のうち最初に値（None・空文字以外）があるものを返す."""
    for name in names:
        value = d.get(name)
        if value is not None and value != "":
            return value
    return None


def _as_text(value) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _as_categories(value) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [c.strip() for c in value.split(",") if c.strip()]
    if isinstance(value, (list, tuple)):
        return [str(c).strip() for c in value if c is not None and str(c).strip()]
    return []


def parse_position(value) -> int | None:
    """順位値を整数にする. 数値でない・0 以下は圏外 (None)."""
    if isinstance(value, dict):
        value = _first(value, "position", "rank", "pos")
    if value is None or isinstance(value, bool):
        return None
    try:
        position = int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return None
    return position if position > 0 else None


def parse_keyword(payload: dict) -> KeywordRecord | None:
    """キーワード1件を KeywordRecord にする. ID がなければ None."""
    raw_id = _first(payload, "id", "keyword_id", "kwid")
    if raw_id is None:
        logger.warning("ID のないキーワードをスキップ: %s", payload)
        return None

    children = []
    for child in _first(payload, "supporting_keywords", "supportingKeywords", "children") or []:
        if isinstance(child, dict):
            parsed = parse_keyword(child)
            if parsed is not None:
                children.append(parsed)

    active = _first(payload, "active")
    return KeywordRecord(
        id=raw_id,
        keyword_title=_as_text(_first(payload, "keywordtitle", "keywordTitle", "keyword_title")),
        keyword=_as_text(_first(payload, "keyword")),
        meta_title=_as_text(_first(payload, "metatitle", "metaTitle", "meta_title")),
        content_html=_as_text(_first(payload, "resfeedtext", "content_html", "content", "html")),
        linked_url=_as_text(_first(payload, "linkouturl", "linkedUrl", "linked_url", "url")),
        parent_id=normalize_relation_id(_first(payload, "parent_keyword_id", "parentId", "parent_id")),
        cluster_id=normalize_relation_id(_first(payload, "cluster_id", "clusterId")),
        supporting_keywords=children,
        categories=_as_categories(_first(payload, "categories", "category")),
        is_supporting=_as_bool(payload.get("is_supporting")) or _as_bool(payload.get("bubblefeed")),
        status=_as_text(_first(payload, "status")),
        active=True if active is None else _as_bool(active),
        deleted=_as_bool(payload.get("deleted")) or _as_bool(payload.get("is_deleted")),
    )


def parse_keywords(payloads: list[dict]) -> list[KeywordRecord]:
    records = []
    for payload in payloads:
        if not isinstance(payload, dict):
            logger.warning("キーワード形式不正: %r", payload)
            continue
        record = parse_keyword(payload)
        if record is not None:
            records.append(record)
    return records


def parse_serp_row(payload: dict) -> SerpSnapshotRow | None:
    text = _as_text(_first(payload, "keyword", "keywordText", "keyword_text"))
    if text is None:
        return None
    positions_source = payload.get("positions") if isinstance(payload.get("positions"), dict) else payload
    return SerpSnapshotRow(
        keyword_text=text.strip(),
        positions={engine: parse_position(positions_source.get(engine)) for engine in ENGINES},
    )


def parse_serp_rows(payloads: list[dict]) -> list[SerpSnapshotRow]:
    rows = []
    for payload in payloads:
        row = parse_serp_row(payload) if isinstance(payload, dict) else None
        if row is None:
            logger.warning("順位レポート行をスキップ: %r", payload)
            continue
        rows.append(row)
    return rows


def parse_timestamp(value) -> float:
    """取得日時を UNIX 秒にする. ミリ秒・ISO 8601 文字列も受け付ける."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value / 1000 if value > 1e11 else float(value)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).timestamp()
        except ValueError:
            pass
    logger.warning("取得日時を解釈できません: %r", value)
    return 0.0


def parse_snapshot(meta: dict, rows: list[dict]) -> SerpSnapshot:
    return SerpSnapshot(
        report_id=str(_first(meta, "report_id", "id", "reportId") or ""),
        captured_at=parse_timestamp(_first(meta, "captured_at", "started", "date", "created_at")),
        rows=parse_serp_rows(rows),
    )


def parse_history(reports: dict[str, tuple[dict, list[dict]]]) -> SerpHistory:
    """report_id → (メタ情報, 行) の辞書から履歴を作る."""
    return SerpHistory([parse_snapshot({**meta, "report_id": rid}, rows) for rid, (meta, rows) in reports.items()])


def parse_link(payload: dict, direction: str) -> LinkRecord:
    return LinkRecord(
        direction=direction,
        source_url=_as_text(_first(payload, "source_url", "sourceUrl", "source")) or "",
        target_url=_as_text(_first(payload, "target_url", "targetUrl", "target")) or "",
        link=_as_text(_first(payload, "link", "url")) or "",
        anchor_text=_as_text(_first(payload, "anchor_text", "anchorText", "anchor")) or "",
        category=_as_text(_first(payload, "category")),
        parent_category=_as_text(_first(payload, "parent_category", "parentCategory")),
        domain=_as_text(_first(payload, "domain_name", "domain")),
        reciprocal=_as_bool(payload.get("reciprocal")),
        disabled=_as_bool(payload.get("disabled")),
    )


def parse_links(payloads: list[dict], direction: str) -> list[LinkRecord]:
    return [parse_link(p, direction) for p in payloads if isinstance(p, dict)]
