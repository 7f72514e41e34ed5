"""被リンク・発リンクとキーワードページの関連付けモジュール.

照合戦略（方向ごとに独立、先にヒットした段を採用）:
  1. token: URL 末尾のページトークン、またはキーワードページ URL の一致
  2. slug: キーワードテキストのスラッグと URL 最終セグメントの部分一致
  3. category: カテゴリ・親カテゴリの一致
  4. all: 何も一致しなければ全件（「リンクなし」と誤表示しないため）
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from keyword_engine.models import KeywordRecord, LinkAssociation, LinkRecord
from keyword_engine.normalizer import (
    collapse_whitespace,
    decode_entities,
    last_path_segment,
    normalize_url_key,
    slugify,
)
from keyword_engine.resolver import extract_page_token, resolve, strip_page_token

logger = logging.getLogger(__name__)

MIN_SEGMENT_LENGTH = 4
_NUMERIC_ID = re.compile(r"\d+")
_CATEGORY_WORD_SPLIT = re.compile(r"[\s/]+")


@dataclass
class _KeywordContext:
    tokens: list[str]
    page_key: str
    slugs: list[str]
    categories: set[str] = field(default_factory=set)


def normalize_category(value: str | None) -> str:
    if not value:
        return ""
    return collapse_whitespace(decode_entities(value)).lower()


def keyword_page_url(keyword: KeywordRecord, domain: str | None = None) -> str | None:
    """キーワードページの URL. linked_url がなければドメインとスラッグから組み立てる."""
    if keyword.linked_url:
        return keyword.linked_url
    if domain and not keyword.is_tracking_only:
        slug = slugify(resolve(keyword))
        if slug:
            return f"https://{domain}/{slug}"
    return None


def candidate_tokens(keyword: KeywordRecord) -> list[str]:
    """キーワードページを特定するトークン候補. URL から取れなければ数値 ID を使う."""
    token = extract_page_token(keyword.linked_url)
    if token:
        return [token]
    if _NUMERIC_ID.fullmatch(keyword.key):
        return [keyword.key]
    return []


def keyword_slugs(keyword_text: str) -> list[str]:
    """テキスト全体・先頭 4 語・先頭 3 語のスラッグ（重複除去）."""
    words = slugify(keyword_text).split("-")
    slugs: list[str] = []
    for candidate in ("-".join(words), "-".join(words[:4]), "-".join(words[:3])):
        if candidate and candidate not in slugs:
            slugs.append(candidate)
    return slugs


def _match_token(links: list[LinkRecord], ctx: _KeywordContext) -> list[LinkRecord]:
    if not ctx.tokens and not ctx.page_key:
        return []
    matched = []
    for link in links:
        for url in link.urls:
            # トークンは URL 最終セグメント末尾のものだけを比べる
            if extract_page_token(url) in ctx.tokens or (
                ctx.page_key and normalize_url_key(url) == ctx.page_key
            ):
                matched.append(link)
                break
    return matched


def _segment_matches(segment: str, slugs: list[str]) -> bool:
    segment = strip_page_token(segment)
    if len(segment) < MIN_SEGMENT_LENGTH:
        return False
    return any(slug in segment or segment in slug for slug in slugs)


def _match_slug(links: list[LinkRecord], ctx: _KeywordContext) -> list[LinkRecord]:
    if not ctx.slugs:
        return []
    return [
        link for link in links
        if any(_segment_matches(last_path_segment(url), ctx.slugs) for url in link.urls)
    ]


def _match_category(links: list[LinkRecord], ctx: _KeywordContext) -> list[LinkRecord]:
    if not ctx.categories:
        return []
    return [
        link for link in links
        if normalize_category(link.category) in ctx.categories
        or normalize_category(link.parent_category) in ctx.categories
    ]


def _match_all(links: list[LinkRecord], ctx: _KeywordContext) -> list[LinkRecord]:
    return list(links)


_LINK_TIERS: tuple[tuple[str, Callable[[list[LinkRecord], _KeywordContext], list[LinkRecord]]], ...] = (
    ("token", _match_token),
    ("slug", _match_slug),
    ("category", _match_category),
    ("all", _match_all),
)


def _run_tiers(links: list[LinkRecord], ctx: _KeywordContext) -> tuple[list[LinkRecord], str]:
    for name, tier in _LINK_TIERS:
        matched = tier(links, ctx)
        if matched:
            return matched, name
    return [], "all"


def associate(
    keyword: KeywordRecord,
    links_in: list[LinkRecord],
    links_out: list[LinkRecord],
    domain: str | None = None,
) -> LinkAssociation:
    """キーワードに関係するリンクを方向別に選ぶ."""
    page_url = keyword_page_url(keyword, domain)
    ctx = _KeywordContext(
        tokens=candidate_tokens(keyword),
        page_key=normalize_url_key(page_url),
        slugs=keyword_slugs(resolve(keyword)),
        categories={c for c in (normalize_category(v) for v in keyword.categories) if c},
    )

    relevant_out, out_tier = _run_tiers(links_out, ctx)

    # キーワード自体にカテゴリがなければ、発リンク側で一致したカテゴリを被リンクに流用する
    in_ctx = ctx
    if not ctx.categories and out_tier != "all":
        out_categories = {
            c for link in relevant_out
            for c in (normalize_category(link.category), normalize_category(link.parent_category))
            if c
        }
        in_ctx = replace(ctx, categories=out_categories)
    relevant_in, in_tier = _run_tiers(links_in, in_ctx)

    if "all" in (in_tier, out_tier):
        logger.info(
            "リンク照合が全件表示にフォールバック: keyword=%s, in=%s, out=%s",
            keyword.key, in_tier, out_tier,
        )
    return LinkAssociation(
        relevant_in=relevant_in,
        relevant_out=relevant_out,
        in_tier=in_tier,
        out_tier=out_tier,
    )


def _category_word_overlap(keyword_text: str, category_text: str) -> int:
    keyword_words = [w for w in keyword_text.lower().split() if len(w) > 2]
    category_words = {w for w in _CATEGORY_WORD_SPLIT.split(category_text.lower()) if len(w) > 2}
    return sum(1 for w in keyword_words if w in category_words)


def score_relevance_tier(link: LinkRecord, keyword_text: str, category_set: set[str]) -> str:
    """リンクの関連度ランク: "most" / "very" / "relevant" / "less"."""
    category = normalize_category(link.category)
    parent = normalize_category(link.parent_category)

    if category and category in category_set:
        return "most"
    if parent and parent in category_set:
        return "very"
    if category and parent and f"{parent}/{category}" in category_set:
        return "very"

    overlap = _category_word_overlap(keyword_text, f"{link.parent_category or ''} {link.category or ''}")
    if overlap >= 2:
        return "relevant"
    return "less"


def filter_links(
    links: list[LinkRecord],
    keyword_text: str,
    category_set: set[str],
    reciprocal: str = "all",
    relevance: str = "all",
) -> list[tuple[LinkRecord, str]]:
    """相互リンク有無・関連度ランクでリンクを絞り込む.

    Args:
        reciprocal: "all" / "reciprocal" / "one-way"
        relevance: "all" または score_relevance_tier の値
    """
    rows = []
    for link in links:
        tier = score_relevance_tier(link, keyword_text, category_set)
        if reciprocal == "reciprocal" and not link.reciprocal:
            continue
        if reciprocal == "one-way" and link.reciprocal:
            continue
        if relevance != "all" and tier != relevance:
            continue
        rows.append((link, tier))
    return rows


def _link_page_key(link: LinkRecord) -> str:
    # 被リンクはリンク先、発リンクはリンク元が自サイトのページ
    url = link.target_url if link.direction == "inbound" else link.source_url
    return normalize_url_key(url or link.link)


def count_links_by_url(links_in: list[LinkRecord], links_out: list[LinkRecord]) -> dict[str, dict[str, int]]:
    """自サイトのページ URL ごとの被リンク・発リンク数."""
    counts: dict[str, dict[str, int]] = {}
    for direction, links in (("in", links_in), ("out", links_out)):
        for link in links:
            key = _link_page_key(link)
            if not key:
                continue
            counts.setdefault(key, {"in": 0, "out": 0})[direction] += 1
    return counts
