"""ingest モジュールのユニットテスト."""

import json
from pathlib import Path

from keyword_engine.ingest import (
    parse_history,
    parse_keywords,
    parse_link,
    parse_links,
    parse_position,
    parse_serp_rows,
    parse_timestamp,
)
from keyword_engine.resolver import resolve

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _load_fixture(name: str):
    return json.loads((FIXTURES_DIR / name).read_text(encoding="utf-8"))


class TestParseKeywords:
    """parse_keywords のテスト."""

    def test_skips_entries_without_id(self):
        records = parse_keywords(_load_fixture("keywords.json"))
        assert [r.key for r in records] == ["101", "104", "105", "106"]

    def test_nested_supporting_keywords(self):
        """入れ子の子キーワードも取り込み、bubblefeed を補助フラグとして扱うこと."""
        parent = parse_keywords(_load_fixture("keywords.json"))[0]

        assert parent.keyword_title == "SEO Services"
        assert parent.linked_url == "https://example.com/seo-services-101/"
        assert parent.categories == ["Marketing"]
        assert [c.id for c in parent.supporting_keywords] == [102, 103]
        assert all(c.is_supporting for c in parent.supporting_keywords)
        assert parent.supporting_keywords[1].keyword == "Technical SEO Audit"

    def test_relation_ids_normalized(self):
        records = {r.key: r for r in parse_keywords(_load_fixture("keywords.json"))}

        assert records["104"].parent_id is None
        assert records["104"].cluster_id is None
        assert records["105"].parent_id == "104"
        assert records["105"].meta_title == "Dental Implants Vancouver"

    def test_deleted_and_html_title(self):
        record = parse_keywords(_load_fixture("keywords.json"))[3]

        assert record.deleted
        assert resolve(record) == "Teeth Whitening Tips"

    def test_non_dict_payload(self):
        assert parse_keywords(["oops", None, {"id": 1}])[0].id == 1


class TestParseSerpRows:
    """parse_serp_rows / parse_position のテスト."""

    def test_fixture_rows(self):
        rows = parse_serp_rows(_load_fixture("serp_report.json"))

        assert [r.keyword_text for r in rows] == [
            "best dentist vancouver",
            "seo services",
            "cosmetic dentistry coquitlam",
        ]
        assert rows[0].positions == {"google": 4, "bing": 12, "yahoo": None}
        assert rows[1].positions == {"google": 7, "bing": None, "yahoo": None}

    def test_nested_positions(self):
        rows = parse_serp_rows([{"keywordText": "roof repair", "positions": {"google": "3", "bing": 9}}])
        assert rows[0].positions == {"google": 3, "bing": 9, "yahoo": None}

    def test_parse_position(self):
        assert parse_position(5) == 5
        assert parse_position("12.0") == 12
        assert parse_position({"rank": 8}) == 8
        assert parse_position(0) is None
        assert parse_position(-3) is None
        assert parse_position("n/a") is None
        assert parse_position(True) is None
        assert parse_position(float("inf")) is None


class TestParseHistory:
    """parse_timestamp / parse_history のテスト."""

    def test_timestamps(self):
        assert parse_timestamp(1_700_000_000) == 1_700_000_000.0
        assert parse_timestamp(1_700_000_000_000) == 1_700_000_000.0
        assert parse_timestamp("1970-01-02T00:00:00Z") == 86400.0
        assert parse_timestamp("yesterday") == 0.0
        assert parse_timestamp(None) == 0.0

    def test_history_sorted_and_keyed_by_report(self):
        history = parse_history({
            "b": ({"captured_at": 200}, []),
            "a": ({"captured_at": 100, "report_id": "zzz"}, _load_fixture("serp_report.json")),
        })

        assert [s.report_id for s in history.snapshots] == ["a", "b"]
        assert history.baseline.report_id == "a"
        assert len(history.baseline.rows) == 3
        assert history.latest.rows == []


class TestParseLinks:
    """parse_link / parse_links のテスト."""

    def test_field_aliases(self):
        link = parse_link(
            {
                "sourceUrl": "https://partner.ca/resources",
                "target": "https://example.com/seo-services-101/",
                "anchorText": "SEO help",
                "category": "Marketing",
                "parentCategory": "Business",
                "domain_name": "partner.ca",
                "reciprocal": "yes",
            },
            "inbound",
        )

        assert link.direction == "inbound"
        assert link.source_url == "https://partner.ca/resources"
        assert link.target_url == "https://example.com/seo-services-101/"
        assert link.anchor_text == "SEO help"
        assert link.parent_category == "Business"
        assert link.domain == "partner.ca"
        assert link.reciprocal
        assert not link.disabled

    def test_skips_non_dict(self):
        links = parse_links([{"url": "https://example.com/a"}, "bad"], "outbound")
        assert len(links) == 1
        assert links[0].link == "https://example.com/a"
