"""Tests for configuration module."""

import pytest

from authswap.config import (
    DEFAULT_EXCLUDE_FILE_TYPES,
    AnalyzerConfig,
    Filters,
    ScopeMatcher,
    SwapEntry,
    get_default_config_yaml,
    load_config,
    save_config,
    save_config_value,
    validate_config,
)
from authswap.errors import ConfigurationError


class TestAnalyzerConfigDefaults:
    """Tests for AnalyzerConfig default values."""

    def test_disabled_without_swap_method(self):
        """A fresh config does nothing until configured."""
        config = AnalyzerConfig()
        assert config.enabled is False
        assert config.has_swap_method() is False

    def test_realtime_and_static_filter_on(self):
        config = AnalyzerConfig()
        assert config.enabled_realtime is True
        assert config.filter_static is True
        assert config.realtime_scope == ""

    def test_default_exclude_file_types(self):
        """Test default excluded file types."""
        filters = AnalyzerConfig().filters
        assert ".css" in filters.exclude_file_types
        assert ".js" in filters.exclude_file_types
        assert filters.exclude_methods == ()


class TestAnalyzerConfigMethods:
    """Tests for AnalyzerConfig methods."""

    def test_start_stop_return_new_snapshots(self):
        config = AnalyzerConfig()
        started = config.start()
        assert started.enabled is True
        assert config.enabled is False
        assert started.stop().enabled is False

    def test_frozen(self):
        config = AnalyzerConfig()
        with pytest.raises(AttributeError):
            config.enabled = True

    def test_has_cookie(self):
        assert AnalyzerConfig(use_cookie=True, cookie_value="s=1").has_cookie
        assert not AnalyzerConfig(use_cookie=True, cookie_value="  ").has_cookie
        assert not AnalyzerConfig(use_cookie=True, cookie_value="null").has_cookie
        assert not AnalyzerConfig(use_cookie=False, cookie_value="s=1").has_cookie

    def test_valid_entries_require_flag_and_values(self):
        headers = (SwapEntry("Authorization", "Bearer x"), SwapEntry("X-Empty", ""))
        assert AnalyzerConfig(custom_headers=headers).valid_custom_headers == []
        config = AnalyzerConfig(use_custom_header=True, custom_headers=headers)
        assert config.valid_custom_headers == [SwapEntry("Authorization", "Bearer x")]
        assert config.has_swap_method()

    def test_validate_ok(self):
        config = AnalyzerConfig(use_url_param=True, url_params=(SwapEntry("uid", "2"),))
        assert config.validate() == []

    def test_validate_errors(self):
        errors = AnalyzerConfig(use_cookie=True, use_custom_header=True).validate()
        assert len(errors) == 2
        assert "cookie" in errors[0].lower()
        assert "header" in errors[1].lower()

    def test_validate_requires_a_method(self):
        errors = AnalyzerConfig().validate()
        assert errors == ["Enable at least one swap method (cookie, custom header, or URL parameter)"]


class TestAnalyzerConfigSerialization:
    def test_round_trip(self):
        config = AnalyzerConfig(
            enabled=True,
            use_cookie=True,
            cookie_value="s=1",
            use_custom_header=True,
            custom_headers=(SwapEntry("X-Tenant", "2"),),
            realtime_scope="example",
            filters=Filters(exclude_methods=("DELETE",), exclude_status_codes=(404,)),
            replay_timeout=10.0,
            bulk_delay=0.5,
        )
        assert AnalyzerConfig.from_dict(config.to_dict()) == config

    def test_legacy_single_keys_folded(self):
        """Old single header/param keys become one-element lists."""
        config = AnalyzerConfig.from_dict({
            "useCustomHeader": True,
            "customHeaderName": "Authorization",
            "customHeaderValue": "Bearer x",
            "useUrlParam": True,
            "urlParamName": "uid",
            "urlParamValue": "2",
        })
        assert config.custom_headers == (SwapEntry("Authorization", "Bearer x"),)
        assert config.url_params == (SwapEntry("uid", "2"),)

    def test_list_keys_win_over_legacy(self):
        config = AnalyzerConfig.from_dict({
            "customHeaders": [{"name": "A", "value": "1"}],
            "customHeaderName": "B",
            "customHeaderValue": "2",
        })
        assert config.custom_headers == (SwapEntry("A", "1"),)

    def test_null_values(self):
        config = AnalyzerConfig.from_dict({"cookieValue": None, "enabledRealtime": None})
        assert config.cookie_value == ""
        assert config.enabled_realtime is True

    def test_methods_uppercased(self):
        filters = Filters.from_dict({"excludeMethods": ["delete", "Put"]})
        assert filters.exclude_methods == ("DELETE", "PUT")

    def test_bad_status_code(self):
        with pytest.raises(ConfigurationError):
            Filters.from_dict({"excludeStatusCodes": ["abc"]})

    def test_null_filter_lists_are_empty(self):
        config = AnalyzerConfig.from_dict({"filters": {
            "excludeFileTypes": None,
            "excludeMethods": None,
            "excludeStatusCodes": None,
            "excludePaths": None,
        }})
        assert config.filters == Filters(exclude_file_types=())

    def test_missing_file_types_use_defaults(self):
        filters = Filters.from_dict({"excludeMethods": ["DELETE"]})
        assert filters.exclude_file_types == DEFAULT_EXCLUDE_FILE_TYPES

    @pytest.mark.parametrize("filters", [
        {"excludeFileTypes": 5},
        {"excludeMethods": {"DELETE": True}},
        "css",
    ])
    def test_non_list_filters_rejected(self, filters):
        with pytest.raises(ConfigurationError):
            AnalyzerConfig.from_dict({"filters": filters})

    def test_bad_timeout(self):
        with pytest.raises(ConfigurationError):
            AnalyzerConfig.from_dict({"replayTimeout": "soon"})


class TestScopeMatcher:
    def test_empty_matches_everything(self):
        assert ScopeMatcher("").matches("https://anything.example/")

    def test_regex_case_insensitive(self):
        matcher = ScopeMatcher(r"^https://api\.example\.com/v\d+/")
        assert matcher.is_regex
        assert matcher.matches("HTTPS://API.example.com/v2/users")
        assert not matcher.matches("https://api.example.com/static/")

    def test_invalid_regex_falls_back_to_substring(self):
        matcher = ScopeMatcher("(unclosed")
        assert not matcher.is_regex
        assert matcher.matches("https://x.example/(UNCLOSED/path")
        assert not matcher.matches("https://x.example/path")

    def test_config_scope_matcher_strips(self):
        config = AnalyzerConfig(realtime_scope="  example.com  ")
        assert config.scope_matcher().pattern == "example.com"


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_nonexistent_file(self, tmp_path, monkeypatch):
        """No file in the working directory gives defaults."""
        monkeypatch.chdir(tmp_path)
        assert load_config() == AnalyzerConfig()

    def test_explicit_missing_path_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_load_valid_config(self, tmp_path):
        """Test loading valid config file."""
        config_file = tmp_path / "authswap.yaml"
        config_file.write_text(
            "authswap:\n"
            "  enabled: true\n"
            "  useCookie: true\n"
            "  cookieValue: session=low\n"
            "  filters:\n"
            "    excludeMethods: [delete]\n"
        )
        config = load_config(config_file)
        assert config.enabled is True
        assert config.cookie_value == "session=low"
        assert config.filters.exclude_methods == ("DELETE",)

    def test_blank_filter_line(self, tmp_path):
        config_file = tmp_path / "authswap.yaml"
        config_file.write_text("authswap:\n  filters:\n    excludeFileTypes:\n")
        config = load_config(config_file)
        assert config.filters.exclude_file_types == ()
        assert validate_config(config_file) == []

    def test_load_without_section(self, tmp_path):
        config_file = tmp_path / "authswap.yaml"
        config_file.write_text("useCookie: true\ncookieValue: a=b\n")
        assert load_config(config_file).cookie_value == "a=b"

    def test_search_order(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".authswap.yml").write_text("authswap:\n  cookieValue: hidden\n")
        assert load_config().cookie_value == "hidden"
        (tmp_path / "authswap.yaml").write_text("authswap:\n  cookieValue: visible\n")
        assert load_config().cookie_value == "visible"

    def test_empty_file(self, tmp_path):
        config_file = tmp_path / "authswap.yaml"
        config_file.write_text("")
        assert load_config(config_file) == AnalyzerConfig()

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "authswap.yaml"
        config_file.write_text("authswap: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(config_file)

    def test_not_a_mapping(self, tmp_path):
        config_file = tmp_path / "authswap.yaml"
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(config_file)

    def test_default_template_loads(self, tmp_path):
        """The generated template is a valid config."""
        config_file = tmp_path / "authswap.yaml"
        config_file.write_text(get_default_config_yaml())
        assert load_config(config_file) == AnalyzerConfig()
        assert validate_config(config_file) == []


class TestSaveConfig:
    def test_save_and_reload(self, tmp_path):
        path = tmp_path / "authswap.yaml"
        config = AnalyzerConfig(enabled=True, use_cookie=True, cookie_value="s=1")
        save_config(config, path)
        assert load_config(path) == config

    def test_keeps_other_sections(self, tmp_path):
        path = tmp_path / "authswap.yaml"
        path.write_text("other:\n  keep: 1\nauthswap:\n  enabled: false\n")
        save_config(AnalyzerConfig().start(), path)
        text = path.read_text()
        assert "keep: 1" in text
        assert load_config(path).enabled is True


class TestSaveConfigValue:
    def _write(self, tmp_path):
        path = tmp_path / "authswap.yaml"
        path.write_text(get_default_config_yaml())
        return path

    def test_scalar_types(self, tmp_path):
        path = self._write(tmp_path)
        save_config_value(path, "enabled", "true")
        save_config_value(path, "replayTimeout", "12.5")
        save_config_value(path, "cookieValue", "session=low")
        config = load_config(path)
        assert config.enabled is True
        assert config.replay_timeout == 12.5
        assert config.cookie_value == "session=low"

    def test_list_field(self, tmp_path):
        path = self._write(tmp_path)
        save_config_value(path, "filters.excludeStatusCodes", "404, 500")
        save_config_value(path, "filters.excludeMethods", "DELETE,PUT")
        filters = load_config(path).filters
        assert filters.exclude_status_codes == (404, 500)
        assert filters.exclude_methods == ("DELETE", "PUT")

    def test_entry_field(self, tmp_path):
        path = self._write(tmp_path)
        save_config_value(path, "customHeaders", "Authorization=Bearer a=b,X-Tenant=2")
        assert load_config(path).custom_headers == (
            SwapEntry("Authorization", "Bearer a=b"),
            SwapEntry("X-Tenant", "2"),
        )

    def test_preserves_comments(self, tmp_path):
        path = self._write(tmp_path)
        save_config_value(path, "useCookie", "true")
        assert "# authswap configuration" in path.read_text()

    def test_bad_status_code(self, tmp_path):
        path = self._write(tmp_path)
        with pytest.raises(ValueError):
            save_config_value(path, "filters.excludeStatusCodes", "abc")


class TestValidateConfig:
    def _write(self, tmp_path, text):
        path = tmp_path / "authswap.yaml"
        path.write_text(text)
        return path

    def test_valid(self, tmp_path):
        path = self._write(tmp_path, "authswap:\n  useCookie: true\n  cookieValue: a=b\n")
        assert validate_config(path) == []

    def test_unknown_key(self, tmp_path):
        path = self._write(tmp_path, "authswap:\n  cookie: a=b\n")
        assert validate_config(path) == ["Unknown key: 'cookie'"]

    def test_bool_type(self, tmp_path):
        path = self._write(tmp_path, "authswap:\n  enabled: yes please\n")
        errors = validate_config(path)
        assert any("'enabled' must be true or false" in e for e in errors)

    def test_negative_and_non_numeric(self, tmp_path):
        path = self._write(tmp_path, "authswap:\n  replayTimeout: -1\n  bulkDelay: soon\n")
        errors = validate_config(path)
        assert "'replayTimeout' must not be negative" in errors
        assert any("'bulkDelay' must be a number" in e for e in errors)

    def test_entries_shape(self, tmp_path):
        path = self._write(tmp_path, "authswap:\n  customHeaders:\n    - name: A\n")
        assert validate_config(path) == ["customHeaders[0] must have 'name' and 'value'"]

    def test_filters(self, tmp_path):
        path = self._write(
            tmp_path,
            "authswap:\n  filters:\n    excludeMethods: DELETE\n    bogus: []\n"
            "    excludeStatusCodes: [abc]\n",
        )
        errors = validate_config(path)
        assert "'filters.excludeMethods' must be a list" in errors
        assert "Unknown key: 'filters.bogus'" in errors
        assert any("excludeStatusCodes" in e for e in errors)

    def test_enabled_config_needs_swap_method(self, tmp_path):
        path = self._write(tmp_path, "authswap:\n  enabled: true\n")
        errors = validate_config(path)
        assert any("at least one swap method" in e for e in errors)

    def test_invalid_yaml(self, tmp_path):
        path = self._write(tmp_path, "authswap: [\n")
        errors = validate_config(path)
        assert len(errors) == 1
        assert "Invalid YAML" in errors[0]
