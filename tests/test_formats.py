"""
Unit Tests for the print-format catalog

Covers alias and case-insensitive lookup, the default fallback, validation
messages, and the formats.json load/save cycle with default restoration.
"""

import json
from copy import deepcopy

import pytest

from print_crop.config import DEFAULT_FORMATS
from print_crop.formats import (
    FormatCatalog, load_catalog, load_formats, save_formats, validate_formats,
)


class TestFormatCatalog:

    @pytest.mark.parametrize("name, expected", [
        ("10x15", "10x15"), ("4x6", "10x15"), ("5X7", "13x18"), ("  carta ", "letter"), ("a4", "A4"),
    ])
    def test_get_when_name_or_alias_then_found(self, catalog, name, expected):
        assert catalog.get(name).name == expected

    def test_get_when_unknown_then_default_with_warning(self, catalog, caplog):
        assert catalog.get("poster") is catalog.default
        assert catalog.default.name == "10x15"
        assert "poster" in caplog.text

    def test_get_when_none_then_default(self, catalog):
        assert catalog.get(None) is catalog.default

    def test_contains_when_alias_then_true(self, catalog):
        assert "6x8" in catalog
        assert "poster" not in catalog
        assert 42 not in catalog

    def test_names_when_builtin_then_catalog_order(self, catalog):
        assert catalog.names() == ["10x15", "13x18", "15x20", "letter", "A4"]

    def test_init_when_default_missing_then_raises(self):
        with pytest.raises(ValueError):
            FormatCatalog.from_dicts(DEFAULT_FORMATS, default_name="poster")


class TestValidateFormats:

    def test_validate_when_defaults_then_no_errors(self):
        assert validate_formats(deepcopy(DEFAULT_FORMATS)) == []

    def test_validate_when_not_a_list_then_error(self):
        assert validate_formats({"name": "x"}) == ["Formats data must be a list"]

    def test_validate_when_keys_missing_then_reported(self):
        errors = validate_formats([{"name": "10x15"}])
        assert len(errors) == 1
        assert "missing keys" in errors[0]
        assert "aspect_w" in errors[0]

    @pytest.mark.parametrize("bad", [0, -3, 1.5, "10", True])
    def test_validate_when_dimension_not_positive_int_then_error(self, bad):
        data = deepcopy(DEFAULT_FORMATS)
        data[0]["output_w"] = bad
        errors = validate_formats(data)
        assert any("output_w must be a positive integer" in e for e in errors)

    def test_validate_when_alias_duplicates_name_then_error(self):
        data = deepcopy(DEFAULT_FORMATS)
        data[1]["aliases"] = ["10X15"]
        errors = validate_formats(data)
        assert any("duplicates format '10x15'" in e for e in errors)

    def test_validate_when_default_missing_then_error(self):
        data = [f for f in deepcopy(DEFAULT_FORMATS) if f["name"] != "10x15"]
        assert validate_formats(data) == ["default format '10x15' is missing"]

    def test_validate_when_aliases_not_list_then_error(self):
        data = deepcopy(DEFAULT_FORMATS)
        data[0]["aliases"] = "4x6"
        errors = validate_formats(data)
        assert any("aliases must be a list" in e for e in errors)


class TestLoadSave:

    def test_load_when_file_missing_then_defaults_written(self, tmp_path):
        path = tmp_path / "formats.json"
        assert load_formats(path) == DEFAULT_FORMATS
        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["version"] == 1
        assert raw["formats"] == DEFAULT_FORMATS

    def test_load_when_corrupt_then_defaults_restored(self, tmp_path):
        path = tmp_path / "formats.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_formats(path) == DEFAULT_FORMATS
        assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1

    def test_load_when_envelope_missing_then_defaults_restored(self, tmp_path):
        path = tmp_path / "formats.json"
        path.write_text(json.dumps(DEFAULT_FORMATS), encoding="utf-8")
        assert load_formats(path) == DEFAULT_FORMATS

    def test_load_when_invalid_entries_then_defaults_restored(self, tmp_path):
        path = tmp_path / "formats.json"
        path.write_text(json.dumps({"version": 1, "formats": [{"name": "x"}]}), encoding="utf-8")
        assert load_formats(path) == DEFAULT_FORMATS

    def test_save_when_valid_then_loaded_back(self, tmp_path):
        path = tmp_path / "formats.json"
        formats = deepcopy(DEFAULT_FORMATS) + [
            {"name": "square", "aliases": ["20x20"], "aspect_w": 1, "aspect_h": 1, "output_w": 2000, "output_h": 2000},
        ]
        save_formats(formats, path)
        catalog = load_catalog(path)
        assert catalog.get("20x20").output_size(1.0) == (2000, 2000)

    def test_save_when_invalid_then_raises_and_file_untouched(self, tmp_path):
        path = tmp_path / "formats.json"
        with pytest.raises(ValueError):
            save_formats([{"name": "x"}], path)
        assert not path.exists()

    def test_load_catalog_when_no_path_then_uses_config_dir(self, isolated_config_dir):
        catalog = load_catalog()
        assert catalog.default.name == "10x15"
        assert list(isolated_config_dir.rglob("formats.json"))
