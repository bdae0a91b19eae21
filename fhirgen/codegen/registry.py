"""
Generator registry system for managing available code generators.

Maps language ids and aliases to generator classes. Descriptors are static
class metadata, so listing and describing generators never instantiates one.
The process-wide registry is populated once and then frozen.
"""

import threading
from typing import Dict, Type, Optional, Any, List, Union
from pathlib import Path

from ..logging_config import get_logger
from .core.generator import CodeGenerator, GeneratorDescriptor
from .core.config import GeneratorConfig, load_config

logger = get_logger(__name__)


class RegistryError(Exception):
    """Exception raised for registry-related errors."""

    pass


class UnknownGenerator(RegistryError):
    """No generator is registered under the requested name."""

    def __init__(self, language: str, available: List[str]):
        self.language = language
        self.available = list(available)
        super().__init__(
            f"No generator registered for language: {language}. "
            f"Available: {', '.join(self.available) or 'none'}"
        )


class GeneratorRegistry:
    """Registry for managing available code generators."""

    def __init__(self):
        """Initialize empty registry."""
        self._generators: Dict[str, Type[CodeGenerator]] = {}
        self._aliases: Dict[str, str] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self):
        """Reject any further registration changes."""
        self._frozen = True

    def register(self, generator_class: Type[CodeGenerator], replace: bool = False):
        """
        Register a generator under its descriptor's language id and aliases.

        Args:
            generator_class: Generator class implementing CodeGenerator
            replace: If True, replace an existing registration

        Raises:
            RegistryError: If frozen, the class is invalid, or names conflict
        """
        if self._frozen:
            raise RegistryError("Registry is frozen; generators cannot be added")

        if not isinstance(generator_class, type) or not issubclass(
            generator_class, CodeGenerator
        ):
            raise RegistryError("Generator class must inherit from CodeGenerator")

        descriptor = getattr(generator_class, "descriptor", None)
        if not isinstance(descriptor, GeneratorDescriptor):
            raise RegistryError(
                f"{generator_class.__name__} does not declare a GeneratorDescriptor"
            )

        language_key = descriptor.language.lower()
        if language_key in self._generators and not replace:
            raise RegistryError(f"Language '{language_key}' is already registered")
        if language_key in self._aliases:
            raise RegistryError(
                f"Language '{language_key}' conflicts with an alias of "
                f"'{self._aliases[language_key]}'"
            )

        alias_keys = []
        for alias in descriptor.aliases:
            alias_key = alias.lower()
            if alias_key == language_key:
                continue
            if alias_key in self._generators:
                raise RegistryError(
                    f"Alias '{alias}' conflicts with existing primary language"
                )
            target = self._aliases.get(alias_key)
            if target is not None and target != language_key:
                raise RegistryError(f"Alias '{alias}' already points to '{target}'")
            alias_keys.append(alias_key)

        self._generators[language_key] = generator_class
        for alias_key in alias_keys:
            self._aliases[alias_key] = language_key
        logger.debug("Registered %s generator (%s)", language_key, generator_class.__name__)

    def resolve_language(self, language: str) -> str:
        """
        Resolve a language id or alias to the primary id.

        Raises:
            UnknownGenerator: If nothing is registered under that name
        """
        language_key = (language or "").lower()
        if language_key in self._generators:
            return language_key
        if language_key in self._aliases:
            return self._aliases[language_key]
        raise UnknownGenerator(language, self.list_languages())

    def get_generator_class(self, language: str) -> Type[CodeGenerator]:
        """Get generator class for a language id or alias."""
        return self._generators[self.resolve_language(language)]

    def create_generator(
        self,
        language: str,
        config: Optional[Union[GeneratorConfig, Dict[str, Any], str, Path]] = None,
    ) -> CodeGenerator:
        """
        Create generator instance for language.

        Args:
            language: Language name or alias
            config: Configuration as GeneratorConfig, dict, or file path

        Returns:
            Configured generator instance
        """
        language_key = self.resolve_language(language)
        generator_class = self._generators[language_key]

        if isinstance(config, GeneratorConfig):
            final_config = config
        elif isinstance(config, (str, Path)):
            final_config = load_config(language_key, config_file=config)
        elif isinstance(config, dict):
            final_config = load_config(language_key, custom_config=config)
        elif config is None:
            final_config = load_config(language_key)
        else:
            raise RegistryError(f"Invalid config type: {type(config)}")

        return generator_class(final_config)

    def list_languages(self) -> List[str]:
        """Get list of registered primary language names."""
        return sorted(self._generators.keys())

    def get_aliases_for_language(self, language: str) -> List[str]:
        """Get all aliases for a language."""
        language_key = self.resolve_language(language)
        return sorted(
            alias for alias, target in self._aliases.items() if target == language_key
        )

    def list_generators(self) -> List[GeneratorDescriptor]:
        """Descriptors of every registered generator, sorted by language id."""
        return [self._generators[key].descriptor for key in self.list_languages()]

    def describe_generator(self, language: str) -> GeneratorDescriptor:
        """
        Descriptor for one generator.

        Raises:
            UnknownGenerator: If the language is not registered
        """
        return self.get_generator_class(language).descriptor

    def get_language_info(self, language: str) -> Dict[str, Any]:
        """Descriptor plus class details, as a plain dict."""
        generator_class = self.get_generator_class(language)
        descriptor = generator_class.descriptor
        return {
            "name": descriptor.language,
            "display_name": descriptor.display_name,
            "class": generator_class.__name__,
            "module": generator_class.__module__,
            "file_extension": descriptor.file_extension,
            "aliases": self.get_aliases_for_language(descriptor.language),
            "features": list(descriptor.features),
            "choice_policy": descriptor.choice_policy,
        }


# Global registry instance - created once
_global_registry: Optional[GeneratorRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> GeneratorRegistry:
    """Get the global generator registry, initializing and freezing it once."""
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            registry = GeneratorRegistry()
            _auto_register_generators(registry)
            registry.freeze()
            _global_registry = registry
    return _global_registry


def _auto_register_generators(registry: GeneratorRegistry):
    """
    Register the built-in generators.

    This is the single source of truth for generator registration.
    """
    from .languages.go import GoGenerator
    from .languages.python import PythonGenerator
    from .languages.typescript import TypeScriptGenerator

    registry.register(GoGenerator)
    registry.register(PythonGenerator)
    registry.register(TypeScriptGenerator)


# Public API functions using the global registry


def get_generator(
    language: str,
    config: Optional[Union[GeneratorConfig, Dict[str, Any], str, Path]] = None,
) -> CodeGenerator:
    """Get generator instance from global registry."""
    return get_registry().create_generator(language, config)


def list_supported_languages() -> List[str]:
    """List all supported languages from global registry."""
    return get_registry().list_languages()


def list_generators() -> List[GeneratorDescriptor]:
    """Descriptors of every registered generator."""
    return get_registry().list_generators()


def describe_generator(language: str) -> GeneratorDescriptor:
    """Descriptor for one generator; raises UnknownGenerator."""
    return get_registry().describe_generator(language)


def get_language_info(language: str) -> Dict[str, Any]:
    """Get information about a supported language."""
    return get_registry().get_language_info(language)
