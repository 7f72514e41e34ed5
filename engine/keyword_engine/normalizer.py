"""テキスト正規化モジュール.

全コンポーネント共通の比較用テキストを作る。
"""

from __future__ import annotations

import html
import re
import unicodedata
from urllib.parse import unquote, urlparse

from keyword_engine.config import MIN_WORD_LENGTH

_APOSTROPHES = re.compile(r"['‘’`]")
_NON_WORD = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")
_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")


def decode_entities(text: str | None) -> str:
    """HTML エンティティをデコードする (&amp; → & など)."""
    if not text:
        return ""
    return html.unescape(text)


def strip_diacritics(text: str) -> str:
    """アクセント記号を除去する (é → e)."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def normalize_text(text: str | None) -> str:
    """比較用にテキストを正規化する.

    エンティティデコード → アクセント除去 → 小文字化 → 記号除去 → 空白の畳み込み。
    """
    if not text:
        return ""
    value = strip_diacritics(decode_entities(text)).lower()
    value = _APOSTROPHES.sub("", value)
    value = _NON_WORD.sub(" ", value)
    return collapse_whitespace(value)


def significant_words(text: str | None) -> list[str]:
    """正規化済みテキストから 3 文字以上の単語を出現順に返す."""
    return [w for w in normalize_text(text).split(" ") if len(w) >= MIN_WORD_LENGTH]


def slugify(text: str | None) -> str:
    """URL スラッグを作る ("Best Dentist Vancouver" → "best-dentist-vancouver")."""
    value = strip_diacritics(decode_entities(text)).lower()
    value = _APOSTROPHES.sub("", value)
    return _SLUG_SEPARATORS.sub("-", value).strip("-")


def normalize_relation_id(value: object) -> str | None:
    """親 ID・クラスタ ID を正規化する. 0 / "null" / 空などは関係なしとして None."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text or text == "0" or text.lower() in ("null", "undefined", "none"):
        return None
    return text


def last_path_segment(url: str | None) -> str:
    """URL パスの最後のセグメントをデコードして小文字で返す. 取れなければ空文字."""
    if not url:
        return ""
    parsed = urlparse(url if "://" in url else f"//{url}")
    segments = [s for s in parsed.path.split("/") if s]
    return unquote(segments[-1]).lower() if segments else ""


def normalize_url_key(url: str | None) -> str:
    """URL 比較キー. スキーム・www・末尾スラッシュ・クエリを落とす."""
    if not url:
        return ""
    parsed = urlparse(url.strip() if "://" in url else f"//{url.strip()}")
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    path = parsed.path.rstrip("/").lower()
    return f"{host}{path}"
