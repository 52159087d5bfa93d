"""
Tests for field and table naming at the remote boundary.
"""

from raporpaud.store.keys import map_keys, table_name, to_camel_case, to_snake_case


class TestCaseConversion:
    """Test camelCase <-> snake_case conversion."""

    def test_to_snake_case(self):
        assert to_snake_case("academicYear") == "academic_year"
        assert to_snake_case("p5Criteria") == "p5_criteria"
        assert to_snake_case("name") == "name"

    def test_to_camel_case(self):
        assert to_camel_case("academic_year") == "academicYear"
        assert to_camel_case("reflection_answers") == "reflectionAnswers"
        assert to_camel_case("id") == "id"

    def test_round_trip_of_entity_fields(self):
        for name in ["classId", "teacherNote", "generatedDescription", "appLogoUrl"]:
            assert to_camel_case(to_snake_case(name)) == name


class TestMapKeys:
    """Test recursive key mapping."""

    def test_maps_nested_objects_and_arrays(self):
        data = [{"studentId": "1", "levelDescriptions": {"firstLevel": "x"}, "tags": ["aB"]}]

        mapped = map_keys(data, to_snake_case)

        assert mapped == [
            {"student_id": "1", "level_descriptions": {"first_level": "x"}, "tags": ["aB"]}
        ]

    def test_integer_keys_become_strings(self):
        assert map_keys({1: "x"}, to_snake_case) == {"1": "x"}

    def test_scalars_unchanged(self):
        assert map_keys("classId", to_snake_case) == "classId"
        assert map_keys(None, to_snake_case) is None


class TestTableName:
    """Test collection -> table resolution."""

    def test_learning_objectives_live_in_tps(self):
        assert table_name("TPs") == "tps"
        assert table_name("tps") == "tps"

    def test_other_collections_are_snake_cased(self):
        assert table_name("categoryResults") == "category_results"
        assert table_name("p5Assessments") == "p5_assessments"
        assert table_name("students") == "students"
