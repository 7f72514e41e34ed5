"""layout モジュールのユニットテスト."""

import pytest

from keyword_engine.layout import ViewState, grid_shape, layout
from keyword_engine.models import KeywordCluster, KeywordRecord, NodePosition, Viewport


def _clusters(count: int) -> list[KeywordCluster]:
    return [KeywordCluster(parent=KeywordRecord(id=i)) for i in range(count)]


class TestGridShape:
    """grid_shape のテスト."""

    def test_nine_clusters(self):
        assert grid_shape(9) == (4, 3)

    def test_small_counts(self):
        assert grid_shape(0) == (0, 0)
        assert grid_shape(1) == (1, 1)
        assert grid_shape(2) == (2, 1)


class TestLayout:
    """layout のテスト."""

    def test_grid_centered_in_viewport(self):
        nodes = layout(_clusters(9), Viewport(1200, 800))

        assert len(nodes) == 9
        assert (nodes[0].x, nodes[0].y) == pytest.approx((210.0, 140.0))
        assert (nodes[3].x, nodes[3].y) == pytest.approx((990.0, 140.0))
        assert (nodes[4].x, nodes[4].y) == pytest.approx((210.0, 400.0))
        assert (nodes[8].x, nodes[8].y) == pytest.approx((210.0, 660.0))
        assert all(n.is_parent for n in nodes)

    def test_children_on_circle(self):
        cluster = KeywordCluster(
            parent=KeywordRecord(id=1),
            children=[KeywordRecord(id=2), KeywordRecord(id=3)],
        )
        parent, first, second = layout([cluster], Viewport(1200, 800))

        assert (parent.x, parent.y) == pytest.approx((600.0, 400.0))
        assert (first.x, first.y) == pytest.approx((600.0, 310.0))
        assert (second.x, second.y) == pytest.approx((600.0, 490.0))
        assert first.parent_id == 1
        assert not first.is_parent
        assert second.cluster_index == 0

    def test_empty(self):
        assert layout([], Viewport(1200, 800)) == []

    def test_deterministic(self):
        clusters = _clusters(5)
        assert layout(clusters, Viewport(800, 600)) == layout(clusters, Viewport(800, 600))


class TestViewState:
    """ViewState のテスト."""

    def test_zoom_is_clamped(self):
        state = ViewState()
        state.zoom_by(10)
        assert state.zoom == 3.0
        state.zoom_by(0.001)
        assert state.zoom == 0.3

    def test_zoom_keeps_anchor_fixed(self):
        state = ViewState()
        node = NodePosition(keyword_id=1, x=100.0, y=50.0, is_parent=True, cluster_index=0)

        state.zoom_by(2, anchor=(100.0, 50.0))

        assert state.to_screen(node) == pytest.approx((100.0, 50.0))
        assert (state.pan_x, state.pan_y) == pytest.approx((-100.0, -50.0))

    def test_pan_select_reset(self):
        state = ViewState()
        state.pan(10, -5)
        state.hover(3)
        state.select(3)
        assert (state.pan_x, state.pan_y) == (10, -5)
        assert state.selected_id == 3

        state.select(3)
        assert state.selected_id is None

        state.reset()
        assert state == ViewState()
