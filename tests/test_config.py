"""Tests du module config."""

from pathlib import Path

import pytest

from concordlookup.config import Config, ConfigError, DerivedField, LookupField, MatchConfig


def test_match_config_defaults() -> None:
    mc = MatchConfig.from_dict({"source_column": "name", "target_column": "code"})
    assert mc.fuzzy_threshold == 0.8
    assert mc.fuzzy_enabled is True
    assert mc.max_suggestions == 3
    assert mc.also_get == ()
    assert mc.normalization.lowercase is True


def test_match_config_camel_case_keys() -> None:
    mc = MatchConfig.from_dict(
        {
            "sourceColumn": "name",
            "targetColumn": "code",
            "fuzzyThreshold": 0.6,
            "alsoGet": [{"sourceColumn": "manager", "targetFieldName": "mgr"}],
            "normalization": {"caseSensitive": True},
        }
    )
    assert (mc.source_column, mc.target_column) == ("name", "code")
    assert mc.fuzzy_threshold == 0.6
    assert mc.also_get == (DerivedField("manager", "mgr"),)
    assert mc.normalization.lowercase is False


def test_match_config_smart_matching() -> None:
    mc = MatchConfig.from_dict({"source_column": "a", "target_column": "b", "smartMatching": {"enabled": False, "confidence": 0.9}})
    assert mc.fuzzy_enabled is False
    assert mc.fuzzy_threshold == 0.9


@pytest.mark.parametrize("threshold", [-0.1, 1.5, "abc"])
def test_match_config_invalid_threshold(threshold) -> None:
    with pytest.raises(ConfigError, match="fuzzy_threshold"):
        MatchConfig.from_dict({"source_column": "a", "target_column": "b", "fuzzy_threshold": threshold})


def test_match_config_invalid_max_suggestions() -> None:
    with pytest.raises(ConfigError, match="max_suggestions doit être >= 0"):
        MatchConfig.from_dict({"source_column": "a", "target_column": "b", "max_suggestions": -1})


def test_derived_field_requires_target() -> None:
    with pytest.raises(ConfigError, match="target_field_name requis"):
        DerivedField.from_dict({"source_column": "manager"})


def test_lookup_field_legacy_format() -> None:
    lf = LookupField.from_dict(
        {
            "name": "department",
            "referenceFile": "ref_dept",
            "match": {"on": "dept_name", "get": "dept_code"},
            "alsoGet": [{"source": "manager", "name": "dept_manager"}],
            "smartMatching": {"enabled": True, "confidence": 0.75},
            "onMismatch": "null",
        }
    )
    assert lf.reference_id == "ref_dept"
    assert lf.on_mismatch == "null"
    assert lf.match.source_column == "dept_name"
    assert lf.match.target_column == "dept_code"
    assert lf.match.fuzzy_threshold == 0.75
    assert lf.match.also_get[0].target_field_name == "dept_manager"


def test_lookup_field_validation() -> None:
    with pytest.raises(ConfigError, match="name requis"):
        LookupField.from_dict({"reference_id": "r", "match": {}})
    with pytest.raises(ConfigError, match="on_mismatch invalide"):
        LookupField.from_dict({"name": "x", "reference_id": "r", "match": {}, "on_mismatch": "ignore"})


def test_config_from_dict() -> None:
    config = Config.from_dict(
        {
            "lookup_fields": [
                {"name": "department", "reference_id": "ref_dept", "match": {"source_column": "a", "target_column": "b"}}
            ],
            "minConfidence": 0.6,
            "max_fuzzy_matches": 10,
            "process_derived_fields": False,
        }
    )
    assert [f.name for f in config.lookup_fields] == ["department"]
    assert config.min_confidence == 0.6
    assert config.max_fuzzy_matches == 10
    assert config.process_derived_fields is False


def test_config_validation_duplicate_fields() -> None:
    field = {"name": "x", "reference_id": "r", "match": {}}
    with pytest.raises(ConfigError, match="Champs de recherche en double"):
        Config.from_dict({"lookup_fields": [field, field]})


def test_config_validation_min_confidence() -> None:
    with pytest.raises(ConfigError, match="min_confidence doit être entre 0 et 1"):
        Config.from_dict({"min_confidence": 2})


def test_config_validation_max_fuzzy_matches() -> None:
    with pytest.raises(ConfigError, match="max_fuzzy_matches doit être >= 0"):
        Config.from_dict({"max_fuzzy_matches": -5})


def test_config_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        Config.from_dict({"min_confidence": -1})


def test_config_load(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        """
        {
            "lookupFields": [
                {
                    "name": "department",
                    "reference": "ref_dept",
                    "match": {"sourceColumn": "dept_name", "targetColumn": "dept_code"}
                }
            ]
        }
    """,
        encoding="utf-8",
    )
    config = Config.load(config_path)
    assert config.lookup_fields[0].reference_id == "ref_dept"
    assert config.min_confidence == 0.7


def test_config_continue_on_error() -> None:
    assert Config.from_dict({}).continue_on_error is True
    assert Config.from_dict({"continueOnError": False}).continue_on_error is False
