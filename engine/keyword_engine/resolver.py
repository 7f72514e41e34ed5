"""キーワード表示テキストの解決モジュール.

解決戦略（先に空でない値が得られたものを採用）:
  1. タイトル系フィールド (keyword_title → keyword → meta_title)
  2. linked_url の最終パスセグメントから作ったスラッグ
  3. 本文 HTML スニペット内の最初の見出し (h1 → h2/h3 → title)
  4. "Keyword #<id>"
"""

from __future__ import annotations

import re
from collections.abc import Callable

from bs4 import BeautifulSoup

from keyword_engine.config import HTML_SCAN_LIMIT
from keyword_engine.models import KeywordRecord
from keyword_engine.normalizer import collapse_whitespace, decode_entities, last_path_segment

# スラッグ末尾のページトークン（例: -123, -4521bc）
_PAGE_TOKEN_PATTERN = re.compile(r"-(\d+[a-z]{0,3})$")
_FILE_EXTENSION = re.compile(r"\.(?:html?|php|aspx?)$")
_SLUG_SPLIT = re.compile(r"[-_]+")

# 見出しの探索順。同じ段の要素は文書順で最初のものを使う
_HEADING_TIERS = (["h1"], ["h2", "h3"], ["title"])

_TITLE_FIELDS: tuple[Callable[[KeywordRecord], str | None], ...] = (
    lambda r: r.keyword_title,
    lambda r: r.keyword,
    lambda r: r.meta_title,
)


def resolve(record: KeywordRecord) -> str:
    """キーワードの表示テキストを返す. 例外は投げない."""
    for strategy in _STRATEGIES:
        text = strategy(record)
        if text:
            return text
    return f"Keyword #{record.id}"


def _from_title_fields(record: KeywordRecord) -> str:
    for accessor in _TITLE_FIELDS:
        value = accessor(record)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _from_linked_url(record: KeywordRecord) -> str:
    return text_from_slug(record.linked_url)


def _from_html(record: KeywordRecord) -> str:
    return heading_from_html(record.content_html)


_STRATEGIES: tuple[Callable[[KeywordRecord], str], ...] = (
    _from_title_fields,
    _from_linked_url,
    _from_html,
)


def strip_page_token(segment: str) -> str:
    """スラッグ末尾のページトークンと拡張子を除去する."""
    segment = _FILE_EXTENSION.sub("", segment)
    return _PAGE_TOKEN_PATTERN.sub("", segment)


def extract_page_token(url: str | None) -> str | None:
    """URL 末尾のページトークン（"-" を除いた部分）を取り出す.

    トークンの前が英字を含むスラッグの場合のみ。"2023-12" のような日付は対象外。
    """
    segment = _FILE_EXTENSION.sub("", last_path_segment(url))
    m = _PAGE_TOKEN_PATTERN.search(segment)
    if m is None or not any(c.isalpha() for c in segment[:m.start()]):
        return None
    return m.group(1)


def text_from_slug(url: str | None) -> str:
    """URL の最終セグメントを "Title Case" のテキストにする.

    例: https://example.com/best-dentist-vancouver-123bc/ → "Best Dentist Vancouver"
    """
    segment = strip_page_token(last_path_segment(url))
    words = [w for w in _SLUG_SPLIT.split(segment) if w]
    if not any(c.isalpha() for w in words for c in w):
        return ""
    return " ".join(w[:1].upper() + w[1:] for w in words)


def heading_from_html(snippet: str | None) -> str:
    """HTML スニペット先頭部分から最初の見出しテキストを取り出す."""
    if not snippet:
        return ""
    soup = BeautifulSoup(decode_entities(snippet[:HTML_SCAN_LIMIT]), "html.parser")
    for names in _HEADING_TIERS:
        tag = soup.find(names)
        if tag is None:
            continue
        text = collapse_whitespace(tag.get_text(" "))
        if text:
            return text
    return ""
