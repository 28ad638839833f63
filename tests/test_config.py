"""
Configuration Tests

Run with: pytest tests/test_config.py -v
"""

import json

import pytest
import yaml

from epubpack.config import (
    BuilderConfig,
    ProgressConfig,
    get_default_config,
    load_config,
    save_config,
)


class TestDefaults:
    """Tests for default configuration values."""

    def test_default_values(self):
        """Defaults should match the conventional EPUB layout."""
        config = get_default_config()
        assert config.packaging.package_dir == "EPUB"
        assert config.packaging.content_dir == "content"
        assert config.packaging.nav_filenames[0] == "toc.xhtml"
        assert config.staging.excluded_files == ["script.js", "EPUB/script.js"]
        assert config.staging.strip_tags == ["img", "script"]
        assert config.staging.cleanup_on_success is True
        assert (config.progress.staging_end, config.progress.repair_end) == (40.0, 60.0)
        assert config.validation.validate_on_package is True

    @pytest.mark.parametrize("staging_end,repair_end", [(0, 50), (60, 40), (40, 100), (50, 50)])
    def test_invalid_progress_bands(self, staging_end, repair_end):
        """Bands must satisfy 0 < staging_end < repair_end < 100."""
        with pytest.raises(ValueError):
            ProgressConfig(staging_end=staging_end, repair_end=repair_end)


class TestSerialization:
    """Tests for loading and saving configuration files."""

    def test_dict_roundtrip(self):
        """from_dict(to_dict()) should restore every section."""
        config = BuilderConfig()
        config.packaging.compression_level = 6
        config.staging.excluded_files = ["junk.txt"]
        config.custom = {"team": "books"}

        restored = BuilderConfig.from_dict(config.to_dict())
        assert restored.packaging.compression_level == 6
        assert restored.staging.excluded_files == ["junk.txt"]
        assert restored.custom == {"team": "books"}

    @pytest.mark.parametrize("suffix", [".yaml", ".yml", ".json"])
    def test_save_and_load(self, tmp_path, suffix):
        """Saved configuration should load back unchanged."""
        config = BuilderConfig()
        config.validation.strict = True
        config.log_level = "DEBUG"
        path = tmp_path / "nested" / f"epubpack{suffix}"

        save_config(config, path)
        loaded = load_config(path)
        assert loaded.validation.strict is True
        assert loaded.log_level == "DEBUG"
        assert loaded.to_dict() == config.to_dict()

    def test_partial_yaml(self, tmp_path):
        """Sections missing from the file should keep their defaults."""
        path = tmp_path / "partial.yaml"
        path.write_text(yaml.safe_dump({"packaging": {"compression_level": 1}}))
        config = load_config(path)
        assert config.packaging.compression_level == 1
        assert config.packaging.package_dir == "EPUB"
        assert config.progress.staging_end == 40.0

    def test_empty_yaml(self, tmp_path):
        """An empty YAML file should give the defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path).to_dict() == BuilderConfig().to_dict()

    def test_invalid_bands_in_file(self, tmp_path):
        """Invalid progress bands in a file should raise ValueError."""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"progress": {"staging_end": 70, "repair_end": 60}}))
        with pytest.raises(ValueError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        """Loading a missing file should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_unsupported_suffix(self, tmp_path):
        """Unknown formats should raise ValueError on load and save."""
        path = tmp_path / "config.ini"
        path.write_text("[x]")
        with pytest.raises(ValueError):
            load_config(path)
        with pytest.raises(ValueError):
            save_config(BuilderConfig(), path)
