"""Editor configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

from storydsl.models.document import ParseOptions, SerializeOptions

DEFAULT_CONFIG_FILE = "storydsl.yaml"

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def _env_flag(name: str) -> bool | None:
    """Read a boolean environment variable; None when unset or unrecognized."""
    value = os.getenv(name)
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    return None


def _parse_options_from_dict(data: dict[str, Any]) -> ParseOptions:
    defaults = ParseOptions()
    return ParseOptions(
        validate_targets=bool(data.get("validate_targets", defaults.validate_targets)),
        auto_generate_ids=bool(data.get("auto_generate_ids", defaults.auto_generate_ids)),
        preserve_line_numbers=bool(
            data.get("preserve_line_numbers", defaults.preserve_line_numbers)
        ),
    )


def _serialize_options_from_dict(data: dict[str, Any]) -> SerializeOptions:
    defaults = SerializeOptions()
    return SerializeOptions(
        include_metadata=bool(data.get("include_metadata", defaults.include_metadata)),
        include_image_prompts=bool(
            data.get("include_image_prompts", defaults.include_image_prompts)
        ),
        include_debug_info=bool(data.get("include_debug_info", defaults.include_debug_info)),
    )


@dataclass(frozen=True)
class EditorConfig:
    """Parser and serializer settings for a story workspace.

    Resolution order for each setting:
    1. Environment variable (e.g., STORYDSL_INCLUDE_IMAGE_PROMPTS)
    2. Config file (e.g., serialize.include_image_prompts)
    3. Built-in default
    """

    parse: ParseOptions = field(default_factory=ParseOptions)
    serialize: SerializeOptions = field(default_factory=SerializeOptions)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EditorConfig:
        """Create config from dictionary.

        Args:
            data: Dictionary with optional ``parse`` and ``serialize`` sections.
                Unknown keys are ignored.

        Returns:
            EditorConfig instance.
        """
        return cls(
            parse=_parse_options_from_dict(dict(data.get("parse") or {})),
            serialize=_serialize_options_from_dict(dict(data.get("serialize") or {})),
        )

    def with_env_overrides(self) -> EditorConfig:
        """Apply STORYDSL_* environment variables on top of this config."""
        parse = self.parse
        serialize = self.serialize

        validate_targets = _env_flag("STORYDSL_VALIDATE_TARGETS")
        if validate_targets is not None:
            parse = replace(parse, validate_targets=validate_targets)

        include_image_prompts = _env_flag("STORYDSL_INCLUDE_IMAGE_PROMPTS")
        if include_image_prompts is not None:
            serialize = replace(serialize, include_image_prompts=include_image_prompts)

        include_debug_info = _env_flag("STORYDSL_INCLUDE_DEBUG_INFO")
        if include_debug_info is not None:
            serialize = replace(serialize, include_debug_info=include_debug_info)

        return replace(self, parse=parse, serialize=serialize)


class ConfigError(Exception):
    """Raised when the editor configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load config at {path}: {reason}")


def load_editor_config(path: Path | None = None) -> EditorConfig:
    """Load editor configuration.

    Args:
        path: YAML config file. When None, defaults are used (environment
            overrides still apply).

    Returns:
        EditorConfig instance.

    Raises:
        ConfigError: If the file is missing, empty or malformed.
    """
    if path is None:
        return EditorConfig().with_env_overrides()

    if not path.exists():
        raise ConfigError(path, "File not found")

    yaml = YAML(typ="safe")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise ConfigError(path, "Empty file")
        if not isinstance(data, dict):
            raise ConfigError(path, "Expected a mapping at top level")

        return EditorConfig.from_dict(dict(data)).with_env_overrides()
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(path, str(e)) from e


def write_default_config(path: Path) -> Path:
    """Write a config file holding the default settings."""
    defaults = EditorConfig()
    data = {
        "parse": {
            "validate_targets": defaults.parse.validate_targets,
            "auto_generate_ids": defaults.parse.auto_generate_ids,
            "preserve_line_numbers": defaults.parse.preserve_line_numbers,
        },
        "serialize": {
            "include_metadata": defaults.serialize.include_metadata,
            "include_image_prompts": defaults.serialize.include_image_prompts,
            "include_debug_info": defaults.serialize.include_debug_info,
        },
    }
    yaml_writer = YAML()
    yaml_writer.default_flow_style = False
    with path.open("w", encoding="utf-8") as f:
        yaml_writer.dump(data, f)
    return path
