"""
Configuration management for code generation.

Handles loading and merging configuration from JSON files,
providing defaults and validation for generator settings.
"""

import copy
import json
from pathlib import Path
from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass, field, fields

from .schema import PrimitiveKind


class ConfigError(Exception):
    """Exception raised for configuration-related errors."""
    pass


@dataclass
class GeneratorConfig:
    """Base configuration for code generators."""

    # Output settings
    package_name: str = ""
    clean_output: bool = True

    # Code style settings
    indent_size: int = 4
    add_comments: bool = True

    # Rendering concurrency (1 renders on the calling thread)
    max_workers: int = 1

    # Primitive type code -> target type name
    type_overrides: Dict[str, str] = field(default_factory=dict)

    # Language-specific settings
    language_config: Dict[str, Any] = field(default_factory=dict)


class ConfigManager:
    """Manages configuration loading and merging."""

    def __init__(self):
        """Initialize configuration manager."""
        self._configs: Dict[str, Dict[str, Any]] = {}
        self._load_defaults()

    def _load_defaults(self):
        """Load default configurations for supported languages."""
        self._configs["typescript"] = {
            "package_name": "fhir-types",
            "indent_size": 2,
            "language_config": {
                "source_dir": "src",
                "emit_helpers": True,
                "emit_validators": True,
                "resource_type_property": True,
            },
        }

        self._configs["python"] = {
            "package_name": "fhir_models",
            "indent_size": 4,
            "language_config": {
                "kw_only": True,
                "emit_helpers": True,
            },
        }

        self._configs["go"] = {
            "package_name": "fhir",
            "indent_size": 4,
            "language_config": {
                "emit_helpers": True,
            },
        }

    def get_config(self, language: str, custom_config: Optional[Dict[str, Any]] = None,
                   config_file: Optional[Union[str, Path]] = None) -> GeneratorConfig:
        """
        Get complete configuration for a language.

        Args:
            language: Target language name
            custom_config: Custom configuration overrides
            config_file: Path to JSON configuration file

        Returns:
            Merged configuration for the language
        """
        merged = copy.deepcopy(self._configs.get(language, {}))

        if config_file:
            file_config = self._load_config_file(config_file)
            # A file may hold per-language sections: {"languages": {"go": {...}}}
            sections = file_config.pop("languages", {})
            self._merge_into(merged, file_config)
            if isinstance(sections, dict) and isinstance(sections.get(language), dict):
                self._merge_into(merged, sections[language])

        if custom_config:
            self._merge_into(merged, custom_config)

        return self._dict_to_config(merged)

    def _merge_into(self, target: Dict[str, Any], overrides: Dict[str, Any]):
        """Merge overrides into target; nested dicts are merged one level deep."""
        known_fields = {f.name for f in fields(GeneratorConfig)}
        for key, value in overrides.items():
            if key not in known_fields:
                # Unknown top-level keys are language settings
                target.setdefault("language_config", {})[key] = value
            elif isinstance(value, dict) and isinstance(target.get(key), dict):
                target[key] = {**target[key], **value}
            else:
                target[key] = value

    def _load_config_file(self, config_path: Union[str, Path]) -> Dict[str, Any]:
        """Load configuration from JSON file."""
        path = Path(config_path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        if not path.suffix.lower() == '.json':
            raise ConfigError(f"Configuration file must be JSON: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in configuration file {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to load configuration file {path}: {e}") from e

        if not isinstance(config, dict):
            raise ConfigError(f"Configuration file must contain a JSON object: {path}")

        return config

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> GeneratorConfig:
        """Convert dictionary to GeneratorConfig instance."""
        try:
            return GeneratorConfig(**config_dict)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def list_languages(self) -> List[str]:
        """Get list of languages with built-in defaults."""
        return sorted(self._configs.keys())

    def validate_config(self, config: GeneratorConfig, language: str) -> List[str]:
        """
        Validate configuration for a language.

        Returns:
            List of validation warnings/errors
        """
        warnings = []

        if config.indent_size < 1:
            warnings.append(f"Invalid indent_size: {config.indent_size}")

        if config.max_workers < 1:
            warnings.append(f"Invalid max_workers: {config.max_workers}")

        for code in config.type_overrides:
            if PrimitiveKind.from_code(code) is None:
                warnings.append(f"type_overrides key is not a primitive type: {code}")

        name = config.package_name
        if language == "go":
            if not name or not name.isidentifier() or name != name.lower():
                warnings.append(f"Invalid Go package name: {name}")

        elif language == "python":
            if not name or not all(part.isidentifier() for part in name.split(".")):
                warnings.append(f"Invalid Python package name: {name}")

        elif language == "typescript":
            if not name or name != name.lower() or " " in name:
                warnings.append(f"Invalid npm package name: {name}")

        return warnings


# Global configuration manager instance
_config_manager = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def load_config(language: str = "", custom_config: Optional[Dict[str, Any]] = None,
                config_file: Optional[Union[str, Path]] = None) -> GeneratorConfig:
    """
    Convenience function to load configuration.

    Args:
        language: Target language name
        custom_config: Custom configuration overrides
        config_file: Path to JSON configuration file

    Returns:
        Merged configuration for the language
    """
    manager = get_config_manager()
    return manager.get_config(language, custom_config, config_file)
