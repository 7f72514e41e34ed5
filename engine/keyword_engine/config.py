"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- Supabase (キャッシュ・履歴保存) ---
SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "")
SUPABASE_SECRET_KEY: str = os.environ.get("SUPABASE_SECRET_KEY", "")
SUPABASE_SCHEMA = "keyword_engine"

# --- プロバイダ API ---
PROVIDER_API_URL: str = os.environ.get("PROVIDER_API_URL", "https://api.example-provider.com/v1")
PROVIDER_API_KEY: str = os.environ.get("PROVIDER_API_KEY", "")
DEFAULT_DOMAIN: str = os.environ.get("DEFAULT_DOMAIN", "")

# --- リクエスト設定 ---
REQUEST_TIMEOUT = 20  # 秒

# --- 検索エンジン ---
ENGINES = ("google", "bing", "yahoo")
PRIMARY_ENGINE = "google"

# --- 順位 ---
UNRANKED_POSITION = 1000  # 圏外の番兵値

# --- クラスタリング ---
MAX_CLUSTER_CHILDREN = 2
SIMILARITY_THRESHOLD = 0.3
LOCATION_BOOST = 1.2
LOCATION_WORDS = frozenset({
    "port", "coquitlam", "vancouver", "burnaby",
    "surrey", "richmond", "langley", "abbotsford",
})
MIN_WORD_LENGTH = 3
MIN_WORD_OVERLAP = 2

# --- キーワード表示テキスト ---
HTML_SCAN_LIMIT = 2000  # 文字

# --- レイアウト ---
GRID_SPACING = 260.0
CHILD_RADIUS = 90.0
GRID_ASPECT = 1.5
MIN_ZOOM = 0.3
MAX_ZOOM = 3.0

# --- キャッシュ ---
PAGESPEED_CACHE_MAX_AGE = 7 * 24 * 60 * 60  # 7日（秒）
CLUSTER_CACHE_MAX_AGE = 24 * 60 * 60  # 24時間（秒）
MAX_CACHED_DOMAINS = 25

# --- ログ ---
LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_DIR.mkdir(exist_ok=True)
