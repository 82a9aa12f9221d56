"""Processor configuration and settings.

This module provides the configuration model and I/O functions for a
cpanproc run: where the mirror lives, which remote it follows, which
index entries and archive members are filtered out, and the run modes.

Configuration is stored in ~/.config/cpanproc/config.toml
"""

import logging
import os
import re
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated, Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from cpanproc.core.filters import (
    FilterSpec,
    IndexEntryFilter,
    MemberFilter,
    compile_patterns,
)
from cpanproc.core.paths import DEFAULT_DIRMODE, get_config_path

logger = logging.getLogger(__name__)

DEFAULT_REMOTE = "https://www.cpan.org/"


class ProcessorConfig(BaseModel):
    """Configuration for a mirror-and-expand run.

    Attributes:
        local: Local mirror root directory.
        remote: Base URL of the remote repository.
        source: Derived source directory for the default processor.
        skip_perl: Skip perl core distributions and relatives.
        path_filters: Patterns rejecting index entries by archive path.
        module_filters: Patterns rejecting index entries by module name.
        file_filters: Patterns rejecting archive members from extraction.
        exact_mirror: Remove untracked dotfiles from the mirror too.
        force: Scan the package index even if no index file changed.
        force_expand: Discard all expansions and expand every archive again.
        check_expand: After mirroring, expand any archive lacking an expansion.
        force_processor: Run the downstream processor even without changes.
        trace: Print progress to the console.
        dirmode: Permission bits for created directories.
        timeout: HTTP read timeout in seconds.
        archive_tar_report: Optional archive warnings report file.
        missing_makefile_report: Optional missing Makefile.PL report file.
    """

    model_config = ConfigDict(extra="forbid")

    local: Annotated[Path, Field(description="Local mirror root directory")]
    remote: Annotated[str, Field(description="Remote repository base URL")] = DEFAULT_REMOTE
    source: Annotated[
        Path | None,
        Field(description="Derived source directory for the default processor"),
    ] = None
    skip_perl: Annotated[bool, Field(description="Skip perl core distributions")] = True
    path_filters: Annotated[
        list[re.Pattern[str]],
        Field(description="Reject index entries whose path matches"),
    ] = []
    module_filters: Annotated[
        list[re.Pattern[str]],
        Field(description="Reject index entries whose module matches"),
    ] = []
    file_filters: Annotated[
        list[re.Pattern[str]],
        Field(description="Reject archive members whose name matches"),
    ] = []
    exact_mirror: Annotated[bool, Field(description="Also remove untracked dotfiles")] = False
    force: Annotated[bool, Field(description="Scan the index even if unchanged")] = False
    force_expand: Annotated[bool, Field(description="Re-expand every archive")] = False
    check_expand: Annotated[bool, Field(description="Expand archives lacking expansion")] = False
    force_processor: Annotated[bool, Field(description="Always run the processor")] = False
    trace: Annotated[bool, Field(description="Print progress")] = False
    dirmode: Annotated[
        int,
        Field(ge=0, le=0o7777, description="Permission bits for created directories"),
    ] = DEFAULT_DIRMODE
    timeout: Annotated[
        float,
        Field(gt=0, le=3600, description="HTTP read timeout in seconds"),
    ] = 300.0
    archive_tar_report: Annotated[
        Path | None,
        Field(description="Archive warnings report file"),
    ] = None
    missing_makefile_report: Annotated[
        Path | None,
        Field(description="Missing Makefile.PL report file"),
    ] = None

    @field_validator("path_filters", "module_filters", "file_filters", mode="before")
    @classmethod
    def normalize_filters(cls, v: object, info: Any) -> list[re.Pattern[str]]:
        """Accept a single pattern or a list of patterns."""
        return compile_patterns(v, info.field_name)

    @field_validator("remote")
    @classmethod
    def validate_remote(cls, v: str) -> str:
        """Require an HTTP(S) URL and normalize it to end with a slash."""
        remote = v.strip()
        if not remote.startswith(("http://", "https://")):
            msg = f"remote must be an http:// or https:// URL, got {v!r}"
            raise ValueError(msg)
        return remote if remote.endswith("/") else f"{remote}/"

    @model_validator(mode="after")
    def apply_implied_modes(self) -> "ProcessorConfig":
        """Forced re-expansion implies expansion checking."""
        if self.force_expand:
            self.check_expand = True
        return self

    def index_filter(self) -> IndexEntryFilter:
        """Build the filter applied to package index entries."""
        return IndexEntryFilter(
            skip_perl=self.skip_perl,
            path_filters=FilterSpec(tuple(self.path_filters)),
            module_filters=FilterSpec(tuple(self.module_filters)),
        )

    def member_filter(self) -> MemberFilter:
        """Build the filter applied to archive members."""
        return MemberFilter(file_filters=FilterSpec(tuple(self.file_filters)))


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when the config file is not found."""


class ConfigParseError(ConfigError):
    """Raised when the config file cannot be parsed."""


def load_config(path: Path | None = None, **overrides: object) -> ProcessorConfig:
    """Load processor configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.
        **overrides: Values taking precedence over the file (None is ignored).

    Returns:
        Validated ProcessorConfig object.

    Raises:
        ConfigNotFoundError: If the config file doesn't exist.
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the content doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        raise ConfigNotFoundError(f"Config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    # dirmode is commonly written as an octal string ("0755")
    if isinstance(data.get("dirmode"), str):
        try:
            data["dirmode"] = int(data["dirmode"], 8)
        except ValueError as e:
            raise ConfigError(f"Invalid dirmode {data['dirmode']!r}: expected octal") from e

    data.update({key: value for key, value in overrides.items() if value is not None})
    return build_config(data)


def build_config(data: dict[str, Any]) -> ProcessorConfig:
    """Validate raw configuration data.

    Raises:
        ConfigError: If the data doesn't match the schema.
    """
    try:
        return ProcessorConfig.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def save_config(config: ProcessorConfig, path: Path | None = None) -> Path:
    """Save processor configuration to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        config: The ProcessorConfig object to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()

    # Ensure parent directory exists
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = config_to_dict(config)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path


def config_to_dict(config: ProcessorConfig) -> dict[str, object]:
    """Convert ProcessorConfig to a dictionary for TOML serialization.

    None values are omitted, paths become strings, patterns become their
    source text, and dirmode is written as an octal string.

    Args:
        config: The ProcessorConfig to convert.

    Returns:
        Dictionary ready for TOML serialization.
    """
    result: dict[str, object] = {}
    for key, value in config.model_dump().items():
        if value is None:
            continue
        if isinstance(value, Path):
            result[key] = str(value)
        elif key.endswith("_filters"):
            result[key] = [p.pattern if isinstance(p, re.Pattern) else str(p) for p in value]
        elif key == "dirmode":
            result[key] = f"{value:04o}"
        else:
            result[key] = value
    return result
