"""プロバイダ API 取得モジュール.

キーワード・順位レポート・リンクの一覧を JSON で取得する。
失敗時は例外を投げずに None を返し、呼び出し側でスキップを判断する。
"""

from __future__ import annotations

import logging

import requests

from keyword_engine.config import PROVIDER_API_KEY, PROVIDER_API_URL, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


def _get_json(path: str, params: dict | None = None):
    url = f"{PROVIDER_API_URL.rstrip('/')}/{path.lstrip('/')}"
    headers = {"Accept": "application/json"}
    if PROVIDER_API_KEY:
        headers["Authorization"] = f"Bearer {PROVIDER_API_KEY}"

    try:
        resp = requests.get(url, headers=headers, params=params, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        return resp.json()
    except requests.RequestException as e:
        logger.error("API 取得失敗: path=%s, params=%s, error=%s", path, params, e)
        return None
    except ValueError as e:
        logger.error("API 応答の JSON パースエラー: path=%s, error=%s", path, e)
        return None


def _items(body) -> list[dict] | None:
    """応答本体から一覧を取り出す. 配列そのもの、または data / items 配下を受け付ける."""
    if body is None:
        return None
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in ("data", "items", "results"):
            value = body.get(key)
            if isinstance(value, list):
                return value
    logger.warning("想定外の応答形式: %s", type(body).__name__)
    return None


def fetch_keywords(domain: str) -> list[dict] | None:
    """ドメインの追跡キーワード一覧を取得する."""
    return _items(_get_json("keywords", {"domain": domain}))


def fetch_serp_report_list(domain: str) -> list[dict] | None:
    """順位レポートのメタ情報一覧（report_id, 取得日時）を取得する."""
    return _items(_get_json("serp-reports", {"domain": domain}))


def fetch_serp_report(domain: str, report_id: str) -> list[dict] | None:
    """1 回分の順位レポート行を取得する."""
    return _items(_get_json(f"serp-reports/{report_id}", {"domain": domain}))


def fetch_links(domain: str, direction: str) -> list[dict] | None:
    """被リンク (inbound) または発リンク (outbound) を取得する."""
    path = "links-in" if direction == "inbound" else "links-out"
    return _items(_get_json(path, {"domain": domain}))
