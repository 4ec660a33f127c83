"""Configuration management for coderemoval."""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Literal, Optional, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigurationError

CONFIG_ENV_VAR = "CODE_REMOVAL_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.coderemoval/config.yaml")

DEFAULT_INCLUDE = [".ts", ".js", ".tsx", ".jsx"]

FAMILY_NAMES = ("default", "production", "development", "test", "debug")

# Environments in which each family's regions are removed. A "production only"
# region is kept in production and stripped everywhere else.
DEFAULT_FAMILY_ENVIRONMENTS: dict[str, tuple[str, ...]] = {
    "production": ("development", "test"),
    "development": ("production", "test"),
    "test": ("production", "development"),
    "debug": ("production",),
}

M = TypeVar("M", bound=BaseModel)


class CommentStyle(str, Enum):
    """Comment syntax used when writing markers."""

    BLOCK = "block"
    LINE = "line"


def check_token(value: str) -> str:
    """Validate a marker token; tokens are embedded verbatim in comments."""
    if not value or not value.strip():
        raise ValueError("marker token must not be empty")
    if value != value.strip():
        raise ValueError(f"marker token must not have surrounding whitespace: {value!r}")
    if "\n" in value or "\r" in value:
        raise ValueError(f"marker token must be a single line: {value!r}")
    if "/*" in value or "*/" in value:
        raise ValueError(f"marker token must not contain comment delimiters: {value!r}")
    return value


def validate_model(model: type[M], data: Any) -> M:
    """Build a model, turning pydantic validation errors into ConfigurationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid {model.__name__}: {problems}") from e


class MarkerSet(BaseModel):
    """The five literal tokens of one marker family.

    Field aliases follow the option names used by the build plugins
    (``multiLineStart``, ``singleLine``...), so either spelling is accepted.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    block_start: str = Field("BUILD_REMOVE_START", alias="multiLineStart")
    block_end: str = Field("BUILD_REMOVE_END", alias="multiLineEnd")
    line_start: str = Field("BUILD_REMOVE_START", alias="singleLineStart")
    line_end: str = Field("BUILD_REMOVE_END", alias="singleLineEnd")
    line_marker: str = Field("BUILD_REMOVE", alias="singleLine")

    @field_validator("block_start", "block_end", "line_start", "line_end", "line_marker")
    @classmethod
    def validate_token_format(cls, v: str) -> str:
        """Ensure every token can be embedded in a comment"""
        return check_token(v)

    @model_validator(mode="after")
    def validate_pairs(self) -> "MarkerSet":
        """Ensure start and end tokens of a pair can be told apart"""
        if self.block_start == self.block_end:
            raise ValueError(f"block start and end markers are identical: {self.block_start!r}")
        if self.line_start == self.line_end:
            raise ValueError(f"line start and end markers are identical: {self.line_start!r}")
        return self

    @classmethod
    def for_pair(cls, start: str, end: str, line_marker: Optional[str] = None) -> "MarkerSet":
        """Build a family MarkerSet from a start/end pair.

        The same pair serves both block and line syntax. Without an explicit
        line marker, ``FOO_START`` yields ``FOO``.
        """
        if line_marker is None:
            line_marker = start[: -len("_START")] if start.endswith("_START") and start != "_START" else start
        return validate_model(
            cls,
            {
                "block_start": start,
                "block_end": end,
                "line_start": start,
                "line_end": end,
                "line_marker": line_marker,
            },
        )

    def tokens(self) -> list[str]:
        """Distinct tokens of this set, in declaration order."""
        seen: list[str] = []
        for token in (self.block_start, self.block_end, self.line_start, self.line_end, self.line_marker):
            if token not in seen:
                seen.append(token)
        return seen


class FormattingOptions(BaseModel):
    """Presentation knobs for the marker writer."""

    model_config = ConfigDict(frozen=True)

    use_spacing: bool = True
    preserve_indentation: bool = True
    add_empty_lines: bool = True
    default_style: CommentStyle = CommentStyle.BLOCK


class MarkerFamily(BaseModel):
    """A named MarkerSet and the environments in which its regions are stripped."""

    model_config = ConfigDict(frozen=True)

    name: str
    markers: MarkerSet
    environments: tuple[str, ...] = ("production",)

    @field_validator("environments")
    @classmethod
    def validate_environments(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Ensure environment names are non-empty"""
        return tuple(check_environment(env) for env in v)


def check_environment(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("environment name must not be empty")
    return value.strip()


class RemoveCodeOptions(BaseModel):
    """Options of one batch transform invocation.

    camelCase keys (``isTargetEnvironment``) are accepted alongside the
    snake_case field names.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        arbitrary_types_allowed=True,
        extra="forbid",
    )

    patterns: MarkerSet = Field(default_factory=MarkerSet)
    environments: list[str] = Field(default_factory=lambda: ["production"])
    exclude: list[str] = Field(default_factory=list)
    include: list[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDE))
    debug: bool = False
    is_target_environment: Optional[Callable[[], bool]] = None
    families: list[MarkerFamily] = Field(default_factory=list)
    strict: bool = False

    @field_validator("environments")
    @classmethod
    def validate_environments(cls, v: list[str]) -> list[str]:
        """Ensure environment names are non-empty"""
        return [check_environment(env) for env in v]

    @field_validator("include")
    @classmethod
    def validate_include(cls, v: list[str]) -> list[str]:
        """Ensure include suffixes are non-empty"""
        for suffix in v:
            if not suffix:
                raise ValueError("include suffixes must not be empty")
        return v


def parse_options(options: "RemoveCodeOptions | dict | None") -> RemoveCodeOptions:
    """Validate and default batch options once at entry."""
    return validate_model(RemoveCodeOptions, options)


class BuildSettings(BaseModel):
    """Persisted defaults for the batch transform (``build:`` section)."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="forbid")

    environments: list[str] = Field(default_factory=lambda: ["production"])
    include: list[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: list[str] = Field(default_factory=list)
    families: list[str] = Field(default_factory=list)
    debug: bool = False
    strict: bool = False

    @field_validator("families")
    @classmethod
    def validate_families(cls, v: list[str]) -> list[str]:
        """Ensure only known families are enabled"""
        for name in v:
            if name not in FAMILY_NAMES or name == "default":
                raise ValueError(f"unknown marker family {name!r} (expected one of {', '.join(FAMILY_NAMES[1:])})")
        return v


class MarkerConfig(BaseModel):
    """Host-persisted marker configuration.

    Keys are stored with the camelCase names of the editor settings
    (``multiLineStart``, ``useSpacing``...).
    """

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        validate_assignment=True,
        extra="forbid",
    )

    multi_line_start: str = "BUILD_REMOVE_START"
    multi_line_end: str = "BUILD_REMOVE_END"
    single_line_marker: str = "BUILD_REMOVE"
    production_only_start: str = "PRODUCTION_ONLY_START"
    production_only_end: str = "PRODUCTION_ONLY_END"
    development_only_start: str = "DEV_ONLY_START"
    development_only_end: str = "DEV_ONLY_END"
    test_only_start: str = "TEST_ONLY_START"
    test_only_end: str = "TEST_ONLY_END"
    debug_start: str = "DEBUG_START"
    debug_end: str = "DEBUG_END"
    use_spacing: bool = True
    default_comment_style: Literal["multiline", "singleline"] = "multiline"
    preserve_indentation: bool = True
    add_empty_lines: bool = True
    build: BuildSettings = Field(default_factory=BuildSettings)

    @field_validator(
        "multi_line_start",
        "multi_line_end",
        "single_line_marker",
        "production_only_start",
        "production_only_end",
        "development_only_start",
        "development_only_end",
        "test_only_start",
        "test_only_end",
        "debug_start",
        "debug_end",
    )
    @classmethod
    def validate_token_format(cls, v: str) -> str:
        """Ensure every token can be embedded in a comment"""
        return check_token(v)

    @model_validator(mode="after")
    def validate_pairs(self) -> "MarkerConfig":
        """Ensure each family's start and end differ"""
        for name, (start, end) in self.pairs().items():
            if start == end:
                raise ValueError(f"{name} start and end markers are identical: {start!r}")
        return self

    def pairs(self) -> dict[str, tuple[str, str]]:
        """Start/end token pair of every family."""
        return {
            "default": (self.multi_line_start, self.multi_line_end),
            "production": (self.production_only_start, self.production_only_end),
            "development": (self.development_only_start, self.development_only_end),
            "test": (self.test_only_start, self.test_only_end),
            "debug": (self.debug_start, self.debug_end),
        }

    @property
    def markers(self) -> MarkerSet:
        """The default family as a MarkerSet."""
        return MarkerSet.for_pair(self.multi_line_start, self.multi_line_end, self.single_line_marker)

    def family(self, name: str) -> MarkerSet:
        """MarkerSet of a named family."""
        if name == "default":
            return self.markers
        try:
            start, end = self.pairs()[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown marker family {name!r} (expected one of {', '.join(FAMILY_NAMES)})"
            ) from None
        return MarkerSet.for_pair(start, end)

    def marker_family(self, name: str, environments: Optional[list[str]] = None) -> MarkerFamily:
        """Bind a family to the environments where it is stripped."""
        if environments is None:
            environments = list(DEFAULT_FAMILY_ENVIRONMENTS.get(name, ("production",)))
        return validate_model(
            MarkerFamily,
            {"name": name, "markers": self.family(name), "environments": tuple(environments)},
        )

    def all_tokens(self) -> list[str]:
        """Every configured token, longest first."""
        tokens = {token for pair in self.pairs().values() for token in pair}
        tokens.add(self.single_line_marker)
        return sorted(tokens, key=lambda t: (-len(t), t))

    @property
    def formatting(self) -> FormattingOptions:
        return FormattingOptions(
            use_spacing=self.use_spacing,
            preserve_indentation=self.preserve_indentation,
            add_empty_lines=self.add_empty_lines,
            default_style=CommentStyle.BLOCK if self.default_comment_style == "multiline" else CommentStyle.LINE,
        )

    def options(self, **overrides: Any) -> RemoveCodeOptions:
        """Batch options from the persisted build settings."""
        data: dict[str, Any] = {
            "patterns": self.markers,
            "environments": self.build.environments,
            "include": self.build.include,
            "exclude": self.build.exclude,
            "debug": self.build.debug,
            "strict": self.build.strict,
            "families": [self.marker_family(name) for name in self.build.families],
        }
        data.update({key: value for key, value in overrides.items() if value is not None})
        return parse_options(data)

    def with_setting(self, key: str, value: Any) -> "MarkerConfig":
        """Return a copy with one persisted key changed (camelCase or snake_case)."""
        data = self.to_dict()
        name = key if key in data else to_camel(key)
        if name not in data or name == "build":
            raise ConfigurationError(f"Unknown configuration key: {key}")
        data[name] = value
        return validate_model(MarkerConfig, data)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted camelCase form."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_file(cls, path: Path) -> "MarkerConfig":
        """Load configuration from YAML file."""
        with path.open() as f:
            data = yaml.safe_load(f)

        if data is not None and not isinstance(data, dict):
            raise ConfigurationError(f"{path}: expected a mapping at the top level")
        return validate_model(cls, data or {})

    @classmethod
    def default(cls) -> "MarkerConfig":
        """Create the default configuration."""
        return cls()

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "MarkerConfig":
        """Load configuration from default locations."""
        if path is not None:
            return cls.from_file(path)

        # Check environment variable
        if env_path := os.getenv(CONFIG_ENV_VAR):
            return cls.from_file(Path(env_path))

        # Check for config file
        config_path = DEFAULT_CONFIG_PATH.expanduser()
        if config_path.exists():
            return cls.from_file(config_path)

        return cls.default()

    def save(self, path: Path) -> None:
        """Write configuration as YAML."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)


def config_path() -> Path:
    """Path the configuration is read from and written to."""
    if env_path := os.getenv(CONFIG_ENV_VAR):
        return Path(env_path)
    return DEFAULT_CONFIG_PATH.expanduser()
