# tests/services/test_file_service.py
"""
Tests for path containment, startup path validation and JSON file access.
"""

import json
import os

import pytest

from maintainer_api.core.exceptions import ConfigurationError, InvalidLocaleCode, PathTraversalAttempt
from maintainer_api.services.file_service import FileService, contains, validate_base_paths

LOCALES = ["en", "ja", "de", "fr", "ko", "zh"]


class TestContains:
    """Containment of a candidate path inside a root"""

    def test_file_inside_root(self):
        assert contains("/data/locales/en.json", "/data/locales") is True

    def test_root_itself(self):
        assert contains("/data/locales", "/data/locales") is True
        assert contains("/data/locales/", "/data/locales") is True

    def test_dot_dot_escape(self):
        assert contains("/data/locales/../../etc/passwd", "/data/locales") is False

    def test_sibling_with_common_prefix(self):
        assert contains("/data/localesExtra/en.json", "/data/locales") is False

    def test_dot_dot_that_stays_inside(self):
        assert contains("/data/locales/sub/../en.json", "/data/locales") is True

    def test_relative_paths_resolve_against_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert contains("locales/en.json", str(tmp_path / "locales")) is True
        assert contains("../outside.json", str(tmp_path)) is False


class TestValidateBasePaths:
    """Fail-fast startup check"""

    def test_valid_layout(self, settings):
        root = validate_base_paths(settings.core_path, settings.colors_path, settings.locales_path)
        assert str(root) == os.path.normpath(str(settings.core_path))

    def test_missing_core_path(self, tmp_path):
        missing = tmp_path / "nope"
        with pytest.raises(ConfigurationError, match="Core path does not exist"):
            validate_base_paths(missing, missing / "colors.json", missing / "locales")

    def test_core_path_is_a_file(self, tmp_path):
        core = tmp_path / "core"
        core.write_text("")
        with pytest.raises(ConfigurationError, match="not a directory"):
            validate_base_paths(core, core / "colors.json", core / "locales")

    def test_missing_colors_file(self, settings):
        settings.colors_path.unlink()
        with pytest.raises(ConfigurationError, match="Colors file does not exist") as exc_info:
            validate_base_paths(settings.core_path, settings.colors_path, settings.locales_path)
        assert exc_info.value.component == "paths"

    def test_missing_locales_directory(self, data_root):
        with pytest.raises(ConfigurationError, match="Locales directory does not exist"):
            validate_base_paths(
                data_root,
                data_root / "src" / "data" / "colors_xiv.json",
                data_root / "src" / "data" / "missing",
            )

    def test_colors_file_outside_core(self, data_root, tmp_path):
        outside = tmp_path / "colors.json"
        outside.write_text("[]")
        with pytest.raises(ConfigurationError, match="outside the core path"):
            validate_base_paths(data_root, outside, data_root / "src" / "data" / "locales")


class TestLocalePath:
    """Allow-list first, containment second"""

    def test_supported_code(self, settings):
        files = FileService(settings.colors_path, settings.locales_path, LOCALES)
        assert files.locale_path("en") == settings.locales_path / "en.json"

    @pytest.mark.parametrize("code", ["xx", "EN", "../en", "en/../../etc", ""])
    def test_unsupported_code(self, settings, code):
        files = FileService(settings.colors_path, settings.locales_path, LOCALES)
        with pytest.raises(InvalidLocaleCode):
            files.locale_path(code)

    def test_containment_checked_even_for_allow_listed_codes(self, settings):
        files = FileService(settings.colors_path, settings.locales_path, ["../../escape"])
        with pytest.raises(PathTraversalAttempt) as exc_info:
            files.locale_path("../../escape")

        assert exc_info.value.status_code == 400
        assert exc_info.value.public_message == "Invalid file path"


class TestJsonFiles:
    """Async reads and formatted writes"""

    @pytest.fixture
    def files(self, settings):
        return FileService(settings.colors_path, settings.locales_path, LOCALES)

    @pytest.mark.asyncio
    async def test_read_colors(self, files):
        dyes = await files.read_colors()
        assert dyes[0]["name"] == "Snow White"

    @pytest.mark.asyncio
    async def test_write_format(self, files):
        data = [{"itemID": 1, "name": "スノウホワイト"}]
        await files.write_colors(data)

        text = files.colors_path.read_text(encoding="utf-8")
        assert text == json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        assert "スノウホワイト" in text

    @pytest.mark.asyncio
    async def test_locale_round_trip(self, files, locale_factory):
        data = locale_factory("de")
        await files.write_locale("de", data)
        assert await files.read_locale("de") == data

    @pytest.mark.asyncio
    async def test_item_id_exists(self, files):
        assert await files.item_id_exists(5729) is True
        assert await files.item_id_exists(1) is False

    @pytest.mark.asyncio
    async def test_locale_labels(self, files):
        labels = await files.read_locale_labels()
        assert labels == {code: f"Dye ({code})" for code in LOCALES}

    @pytest.mark.asyncio
    async def test_invalid_json_raises_value_error(self, files):
        files.colors_path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            await files.read_colors()

    @pytest.mark.asyncio
    async def test_write_leaves_no_temp_files(self, files):
        await files.write_colors([{"itemID": 1}])
        assert sorted(p.name for p in files.colors_path.parent.iterdir()) == ["colors_xiv.json", "locales"]

    @pytest.mark.asyncio
    async def test_write_keeps_file_mode(self, files):
        os.chmod(files.colors_path, 0o644)
        await files.write_colors([{"itemID": 1}])
        assert os.stat(files.colors_path).st_mode & 0o777 == 0o644

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_file(self, files, monkeypatch):
        before = files.colors_path.read_text(encoding="utf-8")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        with pytest.raises(OSError):
            await files.write_colors([{"itemID": 1}])

        assert files.colors_path.read_text(encoding="utf-8") == before
        assert not list(files.colors_path.parent.glob("*.tmp"))
