"""
fhirgen code generation.

Builds an intermediate representation from FHIR schema packages and
renders it into Go, Python or TypeScript sources.
"""

from .core.config import ConfigError, ConfigManager, GeneratorConfig, load_config
from .core.emitter import EmitError, FileWriteFailure, WriteReport, emit
from .core.generator import (
    CodeGenerator,
    DuplicatePath,
    GeneratedFile,
    GenerationError,
    GenerationResult,
    GeneratorDescriptor,
    InvalidOutputPath,
    UnsupportedConstruct,
    generate_code,
)
from .core.ir import (
    IR,
    BuildError,
    BuildOptions,
    ConstraintViolation,
    InheritanceCycle,
    NameCollision,
    UnresolvedType,
    build_ir,
)
from .core.schema import EntityDef, FieldDef, Package, SchemaError
from .pipeline import (
    LanguageResult,
    RunReport,
    preview,
    run_generation,
    run_generation_many,
)
from .registry import (
    GeneratorRegistry,
    RegistryError,
    UnknownGenerator,
    describe_generator,
    get_generator,
    get_registry,
    list_generators,
    list_supported_languages,
)

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "run_generation",
    "run_generation_many",
    "preview",
    "RunReport",
    "LanguageResult",
    # Registry
    "GeneratorRegistry",
    "RegistryError",
    "UnknownGenerator",
    "describe_generator",
    "get_generator",
    "get_registry",
    "list_generators",
    "list_supported_languages",
    # Schema and IR
    "Package",
    "EntityDef",
    "FieldDef",
    "SchemaError",
    "IR",
    "BuildOptions",
    "build_ir",
    "BuildError",
    "UnresolvedType",
    "InheritanceCycle",
    "ConstraintViolation",
    "NameCollision",
    # Generation
    "CodeGenerator",
    "GeneratorDescriptor",
    "GeneratedFile",
    "GenerationResult",
    "generate_code",
    "GenerationError",
    "UnsupportedConstruct",
    "DuplicatePath",
    "InvalidOutputPath",
    # Emitter
    "emit",
    "WriteReport",
    "FileWriteFailure",
    "EmitError",
    # Configuration
    "GeneratorConfig",
    "ConfigManager",
    "ConfigError",
    "load_config",
]
