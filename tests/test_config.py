"""Tests for marker configuration."""

import pytest
import yaml

from coderemoval.config import (
    CONFIG_ENV_VAR,
    CommentStyle,
    MarkerConfig,
    MarkerSet,
    RemoveCodeOptions,
    config_path,
    parse_options,
)
from coderemoval.errors import ConfigurationError

EDITOR_KEYS = [
    "multiLineStart",
    "multiLineEnd",
    "singleLineMarker",
    "productionOnlyStart",
    "productionOnlyEnd",
    "developmentOnlyStart",
    "developmentOnlyEnd",
    "testOnlyStart",
    "testOnlyEnd",
    "debugStart",
    "debugEnd",
    "useSpacing",
    "defaultCommentStyle",
    "preserveIndentation",
    "addEmptyLines",
]


def test_marker_set_defaults():
    """Test the default tokens."""
    markers = MarkerSet()

    assert markers.block_start == "BUILD_REMOVE_START"
    assert markers.block_end == "BUILD_REMOVE_END"
    assert markers.line_start == "BUILD_REMOVE_START"
    assert markers.line_end == "BUILD_REMOVE_END"
    assert markers.line_marker == "BUILD_REMOVE"
    assert markers.tokens() == ["BUILD_REMOVE_START", "BUILD_REMOVE_END", "BUILD_REMOVE"]


def test_marker_set_aliases():
    """Test build plugin option names are accepted."""
    markers = MarkerSet.model_validate({"multiLineStart": "A_START", "singleLine": "A"})

    assert markers.block_start == "A_START"
    assert markers.line_marker == "A"


@pytest.mark.parametrize(
    "token",
    ["", "   ", " PADDED", "TWO\nLINES", "END*/", "/*START"],
)
def test_invalid_tokens(token):
    """Test tokens that cannot be embedded in a comment are rejected."""
    with pytest.raises(ConfigurationError):
        parse_options({"patterns": {"block_start": token}})


def test_identical_pair_rejected():
    """Test a pair whose start equals its end is rejected."""
    with pytest.raises(ConfigurationError, match="identical"):
        parse_options({"patterns": {"singleLineStart": "SAME", "singleLineEnd": "SAME"}})


def test_for_pair_derives_line_marker():
    """Test family MarkerSets reuse the pair and derive the line marker."""
    markers = MarkerSet.for_pair("DEBUG_START", "DEBUG_END")

    assert markers.line_start == "DEBUG_START"
    assert markers.line_end == "DEBUG_END"
    assert markers.line_marker == "DEBUG"
    assert MarkerSet.for_pair("BEGIN", "END").line_marker == "BEGIN"


def test_options_defaults():
    """Test batch option defaults."""
    options = parse_options(None)

    assert options.patterns == MarkerSet()
    assert options.environments == ["production"]
    assert options.include == [".ts", ".js", ".tsx", ".jsx"]
    assert options.exclude == []
    assert options.families == []
    assert options.is_target_environment is None
    assert not options.debug
    assert not options.strict
    assert parse_options(options) is options


def test_options_reject_blank_environment():
    """Test environment names must not be blank."""
    with pytest.raises(ConfigurationError):
        parse_options({"environments": [" "]})
    assert RemoveCodeOptions(environments=[" staging "]).environments == ["staging"]


def test_configuration_error_is_value_error():
    """Test ConfigurationError can be caught as ValueError."""
    with pytest.raises(ValueError):
        parse_options({"include": [""]})


def test_marker_config_families(config):
    """Test each family resolves to its own MarkerSet."""
    assert config.family("default") == MarkerSet()
    assert config.family("production").block_start == "PRODUCTION_ONLY_START"
    assert config.family("development").block_end == "DEV_ONLY_END"
    assert config.family("test").line_marker == "TEST_ONLY"
    with pytest.raises(ConfigurationError):
        config.family("staging")


def test_family_environments(config):
    """Test the default environments each family is stripped in."""
    assert config.marker_family("production").environments == ("development", "test")
    assert config.marker_family("development").environments == ("production", "test")
    assert config.marker_family("test").environments == ("production", "development")
    assert config.marker_family("debug").environments == ("production",)
    assert config.marker_family("debug", ["staging"]).environments == ("staging",)


def test_all_tokens_longest_first(config):
    """Test tokens are ordered so longer tokens come before their prefixes."""
    tokens = config.all_tokens()

    assert tokens.index("BUILD_REMOVE_START") < tokens.index("BUILD_REMOVE")
    assert len(tokens) == 11
    assert [len(t) for t in tokens] == sorted((len(t) for t in tokens), reverse=True)


def test_formatting(config):
    """Test the editor settings map onto FormattingOptions."""
    assert config.formatting.default_style is CommentStyle.BLOCK

    singleline = config.with_setting("defaultCommentStyle", "singleline")
    assert singleline.formatting.default_style is CommentStyle.LINE
    with pytest.raises(ConfigurationError):
        config.with_setting("defaultCommentStyle", "inline")


def test_with_setting_accepts_both_spellings(config):
    """Test keys may be given in camelCase or snake_case."""
    assert not config.with_setting("useSpacing", "false").use_spacing
    assert not config.with_setting("preserve_indentation", False).preserve_indentation
    assert config.use_spacing
    with pytest.raises(ConfigurationError, match="Unknown configuration key"):
        config.with_setting("colour", "blue")
    with pytest.raises(ConfigurationError):
        config.with_setting("debugStart", "DEBUG_END")


def test_to_dict_uses_editor_keys(config):
    """Test the persisted form carries the fifteen editor keys and the build section."""
    data = config.to_dict()

    assert list(data)[:15] == EDITOR_KEYS
    assert data["build"]["environments"] == ["production"]


def test_save_and_load_round_trip(tmp_path, config):
    """Test saving then loading gives the same configuration."""
    path = tmp_path / "nested" / "config.yaml"
    changed = config.with_setting("useSpacing", False)
    changed.save(path)

    assert MarkerConfig.from_file(path) == changed
    assert yaml.safe_load(path.read_text())["useSpacing"] is False


def test_load_partial_file(tmp_path):
    """Test missing keys fall back to defaults."""
    path = tmp_path / "config.yaml"
    path.write_text("debugStart: TRACE_START\ndebugEnd: TRACE_END\nbuild:\n  families: [debug]\n")

    config = MarkerConfig.from_file(path)

    assert config.family("debug").block_start == "TRACE_START"
    assert config.multi_line_start == "BUILD_REMOVE_START"
    assert [family.name for family in config.options().families] == ["debug"]


def test_load_rejects_bad_files(tmp_path):
    """Test malformed configuration is reported as ConfigurationError."""
    path = tmp_path / "config.yaml"

    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        MarkerConfig.from_file(path)

    path.write_text("unknownKey: 1\n")
    with pytest.raises(ConfigurationError):
        MarkerConfig.from_file(path)

    path.write_text("build:\n  families: [release]\n")
    with pytest.raises(ConfigurationError, match="unknown marker family"):
        MarkerConfig.from_file(path)


def test_load_search_order(tmp_path, monkeypatch, isolated_environment):
    """Test explicit path, then environment variable, then home file, then defaults."""
    assert MarkerConfig.load() == MarkerConfig.default()

    home_file = isolated_environment / ".coderemoval" / "config.yaml"
    MarkerConfig(debug_start="HOME_START").save(home_file)
    assert MarkerConfig.load().debug_start == "HOME_START"
    assert config_path() == home_file

    env_file = tmp_path / "env.yaml"
    MarkerConfig(debug_start="ENV_START").save(env_file)
    monkeypatch.setenv(CONFIG_ENV_VAR, str(env_file))
    assert MarkerConfig.load().debug_start == "ENV_START"
    assert config_path() == env_file

    explicit = tmp_path / "explicit.yaml"
    MarkerConfig(debug_start="EXPLICIT_START").save(explicit)
    assert MarkerConfig.load(explicit).debug_start == "EXPLICIT_START"


def test_empty_file_is_defaults(tmp_path):
    """Test an empty YAML file loads as the defaults."""
    path = tmp_path / "config.yaml"
    path.write_text("")

    assert MarkerConfig.from_file(path) == MarkerConfig.default()
