"""クラスタ可視化のレイアウトモジュール.

親ノードはビューポート中央に寄せたグリッド、子ノードは親を中心とした円周上に置く。
物理シミュレーションは使わず、クラスタ数とビューポートだけで座標が決まる。
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from keyword_engine.config import CHILD_RADIUS, GRID_ASPECT, GRID_SPACING, MAX_ZOOM, MIN_ZOOM
from keyword_engine.models import KeywordCluster, KeywordId, NodePosition, Viewport


def grid_shape(cluster_count: int) -> tuple[int, int]:
    """(列数, 行数). 列数 = ceil(sqrt(1.5 * n)) で横長気味にする（クラスタ数を超えない）."""
    if cluster_count <= 0:
        return 0, 0
    columns = min(cluster_count, math.ceil(math.sqrt(cluster_count * GRID_ASPECT)))
    rows = math.ceil(cluster_count / columns)
    return columns, rows


def layout(clusters: list[KeywordCluster], viewport: Viewport) -> list[NodePosition]:
    """クラスタの全ノード座標を計算する."""
    columns, rows = grid_shape(len(clusters))
    if not columns:
        return []

    origin_x = viewport.width / 2 - (columns - 1) * GRID_SPACING / 2
    origin_y = viewport.height / 2 - (rows - 1) * GRID_SPACING / 2

    nodes: list[NodePosition] = []
    for index, cluster in enumerate(clusters):
        row, column = divmod(index, columns)
        px = origin_x + column * GRID_SPACING
        py = origin_y + row * GRID_SPACING
        nodes.append(NodePosition(
            keyword_id=cluster.parent.id,
            x=px,
            y=py,
            is_parent=True,
            cluster_index=index,
        ))

        count = len(cluster.children)
        for i, child in enumerate(cluster.children):
            # 12 時の位置から時計回り
            angle = 2 * math.pi * i / count - math.pi / 2
            nodes.append(NodePosition(
                keyword_id=child.id,
                x=px + CHILD_RADIUS * math.cos(angle),
                y=py + CHILD_RADIUS * math.sin(angle),
                is_parent=False,
                cluster_index=index,
                parent_id=cluster.parent.id,
                angle=angle,
            ))
    return nodes


@dataclass
class ViewState:
    """パン・ズーム・ホバー・選択の表示状態. レイアウト計算とは独立して変化する."""

    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom: float = 1.0
    hovered_id: KeywordId | None = None
    selected_id: KeywordId | None = None

    def pan(self, dx: float, dy: float) -> None:
        self.pan_x += dx
        self.pan_y += dy

    def zoom_by(self, factor: float, anchor: tuple[float, float] | None = None) -> None:
        """ズーム倍率を変える. anchor を渡すとその画面座標が動かないようにパンも補正する."""
        new_zoom = min(MAX_ZOOM, max(MIN_ZOOM, self.zoom * factor))
        if anchor is not None:
            ax, ay = anchor
            ratio = new_zoom / self.zoom
            self.pan_x = ax - (ax - self.pan_x) * ratio
            self.pan_y = ay - (ay - self.pan_y) * ratio
        self.zoom = new_zoom

    def hover(self, keyword_id: KeywordId | None) -> None:
        self.hovered_id = keyword_id

    def select(self, keyword_id: KeywordId | None) -> None:
        """同じノードを再選択すると選択解除."""
        self.selected_id = None if keyword_id == self.selected_id else keyword_id

    def reset(self) -> None:
        self.pan_x = self.pan_y = 0.0
        self.zoom = 1.0
        self.hovered_id = None
        self.selected_id = None

    def to_screen(self, node: NodePosition) -> tuple[float, float]:
        return node.x * self.zoom + self.pan_x, node.y * self.zoom + self.pan_y
