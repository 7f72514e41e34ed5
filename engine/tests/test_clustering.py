"""clustering モジュールのユニットテスト."""

import pytest

from keyword_engine.clustering import (
    build_clusters,
    cluster_index,
    cluster_signature,
    clusters_from_index,
    flatten_keywords,
    keyword_similarity,
    merge_tracking_keywords,
    sort_clusters_by_rank,
)
from keyword_engine.models import KeywordRecord, SerpSnapshotRow


def _kw(id, text, **kwargs) -> KeywordRecord:
    return KeywordRecord(id=id, keyword_title=text, **kwargs)


def _shape(clusters) -> list[tuple]:
    return [(c.parent.key, [child.key for child in c.children]) for c in clusters]


def _similarity_keywords() -> list[KeywordRecord]:
    return [
        _kw(1, "Dentist Vancouver"),
        _kw(2, "Emergency Dentist Vancouver"),
        _kw(3, "Cosmetic Dentist Vancouver"),
        _kw(4, "Roof Repair"),
        _kw(5, "Roof Repair Burnaby"),
        _kw(6, "Emergency Roof Repair Burnaby"),
    ]


class TestBuildClusters:
    """build_clusters のテスト."""

    def test_empty(self):
        assert build_clusters([]) == []

    def test_nested_supporting_keywords(self):
        keywords = [_kw(1, "SEO Services", supporting_keywords=[_kw(2, "Local SEO")])]
        clusters = build_clusters(keywords)

        assert len(clusters) == 1
        assert clusters[0].parent.id == 1
        assert [c.id for c in clusters[0].children] == [2]

    def test_parent_id_children_truncated(self):
        """子は 3 件以上あっても 2 件まで。溢れた子は単独クラスタになること."""
        keywords = [
            _kw(1, "Dental Implants"),
            _kw(2, "Implant Cost", parent_id=1),
            _kw(3, "Implant Recovery", parent_id="1"),
            _kw(4, "Implant Financing", parent_id=1),
            _kw(5, "Braces"),
        ]
        assert _shape(build_clusters(keywords)) == [
            ("5", []),
            ("1", ["2", "4"]),
            ("3", []),
        ]

    def test_supporting_keywords_win_over_parent_id(self):
        keywords = [
            _kw(1, "Alpha Topic", supporting_keywords=[_kw(3, "Gamma Child")]),
            _kw(2, "Beta Topic"),
            _kw(3, "Gamma Child", parent_id=2),
        ]
        assert _shape(build_clusters(keywords)) == [("1", ["3"]), ("2", [])]

    def test_parent_cycle_keeps_every_keyword(self):
        keywords = [_kw(1, "A Topic", parent_id=2), _kw(2, "B Topic", parent_id=1)]
        assert _shape(build_clusters(keywords)) == [("1", []), ("2", [])]

    def test_cluster_id_groups(self):
        keywords = [
            _kw(1, "Pediatric Dentist", cluster_id="c1"),
            _kw(2, "Kids Dental Checkup", cluster_id="c1", is_supporting=True),
            _kw(3, "Baby Teeth Care", cluster_id="c1", is_supporting=True),
            _kw(4, "Child Braces", cluster_id="c1", is_supporting=True),
            _kw(5, "Invisalign"),
        ]
        assert _shape(build_clusters(keywords)) == [
            ("5", []),
            ("2", []),
            ("1", ["3", "4"]),
        ]

    def test_similarity_fallback(self):
        assert _shape(build_clusters(_similarity_keywords())) == [
            ("1", ["3"]),
            ("2", ["6"]),
            ("4", []),
            ("5", []),
        ]

    def test_tracking_only_last_and_sorted(self):
        keywords = [
            KeywordRecord(id="serp_zeta_plumbing", keyword="zeta plumbing"),
            _kw(1, "Roof Repair"),
            KeywordRecord(id=9, keyword="alpha heating", status="tracking_only"),
            _kw(2, "Gutter Cleaning"),
        ]
        assert _shape(build_clusters(keywords)) == [
            ("2", []),
            ("1", []),
            ("9", []),
            ("serp_zeta_plumbing", []),
        ]

    def test_idempotent(self):
        keywords = _similarity_keywords() + [KeywordRecord(id="serp_x", keyword="x marks")]
        assert _shape(build_clusters(keywords)) == _shape(build_clusters(keywords))

    def test_every_keyword_exactly_once(self):
        keywords = [
            _kw(1, "SEO Services", supporting_keywords=[_kw(2, "Local SEO"), _kw(3, "SEO Audit"), _kw(4, "SEO Agency")]),
            _kw(5, "Web Design", parent_id=1),
            _kw(6, "Logo Design", parent_id=5),
            _kw(7, "PPC Management", cluster_id="ads"),
            _kw(8, "Google Ads", cluster_id="ads", is_supporting=True),
            KeywordRecord(id="serp_seo_cost", keyword="seo cost", status="tracking_only"),
        ]
        clusters = build_clusters(keywords)
        members = [m.key for c in clusters for m in c.members]

        assert sorted(members) == sorted(["1", "2", "3", "4", "5", "6", "7", "8", "serp_seo_cost"])
        assert all(len(c.children) <= 2 for c in clusters)


class TestKeywordSimilarity:
    """keyword_similarity のテスト."""

    def test_location_boost(self):
        assert keyword_similarity("Dentist Vancouver", "Cosmetic Dentist Vancouver") == pytest.approx(1.2)

    def test_plain_overlap(self):
        assert keyword_similarity("Emergency Dentist Clinic", "Emergency Roof Repair") == pytest.approx(1 / 3)

    def test_no_overlap(self):
        assert keyword_similarity("Roof Repair", "Gutter Cleaning") == 0
        assert keyword_similarity("a an", "Gutter Cleaning") == 0


class TestMergeTrackingKeywords:
    """merge_tracking_keywords のテスト."""

    def test_adds_only_unknown_rows(self):
        keywords = [_kw(1, "Best Dentist Vancouver", supporting_keywords=[_kw(2, "Local SEO")])]
        rows = [
            SerpSnapshotRow("best dentist vancouver"),
            SerpSnapshotRow("Emergency Plumber Surrey"),
            SerpSnapshotRow("dentist"),
            SerpSnapshotRow("local seo"),
        ]
        merged = merge_tracking_keywords(keywords, rows)

        assert len(merged) == 2
        virtual = merged[1]
        assert virtual.id == "serp_emergency_plumber_surrey"
        assert virtual.keyword == "Emergency Plumber Surrey"
        assert virtual.is_tracking_only


class TestClusterIndex:
    """cluster_index / clusters_from_index のテスト."""

    def test_restore(self):
        keywords = [_kw(1, "SEO Services", supporting_keywords=[_kw(2, "Local SEO")]), _kw(3, "Web Design")]
        index = cluster_index(build_clusters(keywords))

        assert index == [
            {"parent_id": "1", "child_ids": ["2"]},
            {"parent_id": "3", "child_ids": []},
        ]
        assert _shape(clusters_from_index(index, keywords)) == [("1", ["2"]), ("3", [])]

    def test_missing_keyword(self):
        index = [{"parent_id": "1", "child_ids": ["99"]}]
        assert clusters_from_index(index, [_kw(1, "SEO Services")]) is None

    def test_signature_ignores_order(self):
        a = [_kw(2, "B"), _kw(1, "A", supporting_keywords=[_kw(3, "C")])]
        b = [_kw(1, "A"), _kw(3, "C"), _kw(2, "B")]
        assert cluster_signature(a) == cluster_signature(b) == "1|2|3"


class TestSortClustersByRank:
    """sort_clusters_by_rank のテスト."""

    def test_best_and_worst(self):
        clusters = build_clusters([_kw(1, "Alpha Plumbing"), _kw(2, "Beta Heating"), _kw(3, "Gamma Roofing")])
        rows = [
            SerpSnapshotRow("alpha plumbing", {"google": 10}),
            SerpSnapshotRow("gamma roofing", {"google": 2}),
        ]

        assert [c.parent.id for c in sort_clusters_by_rank(clusters, rows)] == [3, 1, 2]
        assert [c.parent.id for c in sort_clusters_by_rank(clusters, rows, order="worst")] == [2, 1, 3]


class TestFlattenKeywords:
    """flatten_keywords のテスト."""

    def test_deleted_records_and_subtrees_dropped(self):
        keywords = [
            _kw(1, "SEO Services", supporting_keywords=[_kw(2, "Old Page", deleted=True), _kw(3, "Local SEO")]),
            _kw(4, "Retired Topic", deleted=True, supporting_keywords=[_kw(5, "Retired Child")]),
        ]
        assert [r.key for r in flatten_keywords(keywords)] == ["1", "3"]

    def test_deleted_child_not_clustered(self):
        keywords = [_kw(1, "SEO Services", supporting_keywords=[_kw(2, "Old Page", deleted=True)])]
        assert _shape(build_clusters(keywords)) == [("1", [])]
