"""データモデル定義."""

from __future__ import annotations

from dataclasses import dataclass, field

KeywordId = int | str


@dataclass
class KeywordRecord:
    """プロバイダが追跡しているキーワード1件を表す."""

    id: KeywordId
    keyword_title: str | None = None
    keyword: str | None = None
    meta_title: str | None = None
    content_html: str | None = None  # 本文 HTML スニペット
    linked_url: str | None = None  # キーワードページの正規 URL
    parent_id: str | None = None  # 正規化済み。関係なしは None
    cluster_id: str | None = None
    supporting_keywords: list[KeywordRecord] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    is_supporting: bool = False
    status: str | None = None
    active: bool = True
    deleted: bool = False

    @property
    def key(self) -> str:
        """ID の文字列表現（int/str 混在の比較用）."""
        return str(self.id)

    @property
    def is_tracking_only(self) -> bool:
        """コンテンツページを持たず順位追跡のみのキーワードか."""
        return self.status == "tracking_only" or self.key.startswith("serp_")


@dataclass
class SerpSnapshotRow:
    """順位レポートの1行."""

    keyword_text: str
    positions: dict[str, int | None] = field(default_factory=dict)  # None = 圏外

    def position(self, engine: str) -> int | None:
        return self.positions.get(engine)


@dataclass
class SerpSnapshot:
    """ある時点で取得した順位レポート."""

    report_id: str
    captured_at: float  # UNIX 秒
    rows: list[SerpSnapshotRow] = field(default_factory=list)


@dataclass
class SerpHistory:
    """取得時刻順に並べた順位レポート群."""

    snapshots: list[SerpSnapshot] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.snapshots = sorted(self.snapshots, key=lambda s: (s.captured_at, s.report_id))

    @property
    def baseline(self) -> SerpSnapshot | None:
        """最も古いレポート（順位変動の基準）."""
        return self.snapshots[0] if self.snapshots else None

    @property
    def latest(self) -> SerpSnapshot | None:
        return self.snapshots[-1] if self.snapshots else None

    def get(self, report_id: str) -> SerpSnapshot | None:
        for snapshot in self.snapshots:
            if snapshot.report_id == report_id:
                return snapshot
        return None


@dataclass
class LinkRecord:
    """被リンク・発リンク1本."""

    direction: str  # "inbound" or "outbound"
    source_url: str = ""
    target_url: str = ""
    link: str = ""  # プロバイダ汎用の URL フィールド
    anchor_text: str = ""
    category: str | None = None
    parent_category: str | None = None
    domain: str | None = None
    reciprocal: bool = False
    disabled: bool = False  # 削除せずに無効化されたリンク

    @property
    def urls(self) -> tuple[str, ...]:
        return tuple(u for u in (self.source_url, self.target_url, self.link) if u)


@dataclass
class KeywordCluster:
    """親キーワードと最大2件の子キーワード."""

    parent: KeywordRecord
    children: list[KeywordRecord] = field(default_factory=list)

    @property
    def parent_id(self) -> KeywordId:
        return self.parent.id

    @property
    def members(self) -> list[KeywordRecord]:
        return [self.parent, *self.children]


@dataclass
class MovementResult:
    """検索エンジン別の順位変動. delta > 0 で改善."""

    engine: str
    delta: int


@dataclass
class LinkAssociation:
    """キーワードに関連付けたリンクと、採用されたマッチ段階."""

    relevant_in: list[LinkRecord]
    relevant_out: list[LinkRecord]
    in_tier: str  # "token" / "slug" / "category" / "all"
    out_tier: str


@dataclass
class Viewport:
    width: float
    height: float


@dataclass
class NodePosition:
    """クラスタ可視化用のノード座標."""

    keyword_id: KeywordId
    x: float
    y: float
    is_parent: bool
    cluster_index: int
    parent_id: KeywordId | None = None
    angle: float | None = None  # 子ノードのみ。親から見た角度（ラジアン）


@dataclass
class TrendSummary:
    """履歴全体での順位推移サマリ."""

    keyword_text: str
    best: int | None
    baseline: int | None
    current: int | None
    change: int


@dataclass
class PageSpeedScore:
    """PageSpeed スコアのキャッシュ値."""

    mobile_score: int
    desktop_score: int
    loading: bool = False
    updating: bool = False
    error: bool = False
    cached_at: float | None = None
