"""
Tests for the dynamic P5 label scale.
"""

from raporpaud.core.p5 import (
    level_description,
    level_label,
    p5_labels,
    stale_levels,
    with_legacy_levels,
)
from raporpaud.core.schemas import P5Criteria, SchoolSettings


class TestLabels:
    """Test label lookups."""

    def test_default_scale(self):
        assert p5_labels(SchoolSettings()) == ["MB", "BSH", "SB"]

    def test_empty_scale_falls_back_to_defaults(self):
        assert p5_labels(SchoolSettings(p5_labels=[])) == ["MB", "BSH", "SB"]

    def test_label_by_score(self):
        settings = SchoolSettings(p5_labels=["BB", "MB", "BSH", "BSB"])

        assert level_label(settings, 1) == "BB"
        assert level_label(settings, 4) == "BSB"

    def test_score_off_scale_is_none(self):
        settings = SchoolSettings(p5_labels=["MB", "BSH", "SB"])

        assert level_label(settings, 0) is None
        assert level_label(settings, 4) is None


class TestLevelDescriptions:
    """Test sparse level descriptions."""

    def test_missing_level_is_absent_not_error(self):
        criteria = P5Criteria(id="c1", level_descriptions={1: "x", 2: "y"})

        assert level_description(criteria, 1) == "x"
        assert level_description(criteria, 3) is None

    def test_keys_from_json_documents_are_integers(self):
        criteria = P5Criteria.model_validate({"id": "c1", "levelDescriptions": {"2": "y"}})

        assert level_description(criteria, 2) == "y"

    def test_empty_text_is_absent(self):
        criteria = P5Criteria(id="c1", level_descriptions={1: ""})

        assert level_description(criteria, 1) is None

    def test_legacy_fields_fill_missing_levels(self):
        criteria = P5Criteria(id="c1", desc_berkembang="a", desc_mahir="c")

        upgraded = with_legacy_levels(criteria)

        assert upgraded.level_descriptions == {1: "a", 3: "c"}
        assert criteria.level_descriptions == {}

    def test_existing_levels_win_over_legacy_fields(self):
        criteria = P5Criteria(id="c1", level_descriptions={1: "new"}, desc_berkembang="old")

        assert with_legacy_levels(criteria) is criteria

    def test_stale_levels_after_scale_shrinks(self):
        criteria = P5Criteria(id="c1", level_descriptions={1: "a", 3: "c", 4: "d"})

        assert stale_levels(criteria, SchoolSettings(p5_labels=["MB", "BSH"])) == [3, 4]
        assert stale_levels(criteria, SchoolSettings(p5_labels=["A", "B", "C", "D"])) == []
