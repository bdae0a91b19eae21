"""
Core code generation components.

Provides the schema model, the IR builder, type mapping, the generator
base class and the emitter shared by all language generators.
"""

from .schema import (
    BindingStrength,
    Cardinality,
    CardinalityRegime,
    EntityDef,
    EntityKind,
    FieldDef,
    Package,
    PrimitiveKind,
    SchemaError,
    TypeRef,
    TypeRefKind,
    ValueSetBinding,
)
from .ir import (
    IR,
    AmbiguousChoice,
    BuildError,
    BuildOptions,
    ConstraintViolation,
    Diagnostic,
    InheritanceCycle,
    InvalidChoice,
    IRBuilder,
    IREntity,
    IRField,
    NameCollision,
    UnresolvedType,
    build_ir,
)
from .types import TargetType, TypeMapper, UnionAlternative
from .generator import (
    CodeGenerator,
    ContentKind,
    DuplicatePath,
    GeneratedFile,
    GenerationError,
    GenerationResult,
    GeneratorDescriptor,
    InvalidOutputPath,
    UnsupportedConstruct,
    generate_code,
)
from .emitter import EmitError, Emitter, FileWriteFailure, WriteReport, emit, read_manifest
from .naming import NameSanitizer, NamingCase
from .config import GeneratorConfig, ConfigManager, ConfigError, load_config
from .templates import TemplateEngine, TemplateError, create_template_engine

__all__ = [
    # Schema model
    "BindingStrength",
    "Cardinality",
    "CardinalityRegime",
    "EntityDef",
    "EntityKind",
    "FieldDef",
    "Package",
    "PrimitiveKind",
    "SchemaError",
    "TypeRef",
    "TypeRefKind",
    "ValueSetBinding",
    # IR and builder
    "IR",
    "AmbiguousChoice",
    "BuildError",
    "BuildOptions",
    "ConstraintViolation",
    "Diagnostic",
    "InheritanceCycle",
    "InvalidChoice",
    "IRBuilder",
    "IREntity",
    "IRField",
    "NameCollision",
    "UnresolvedType",
    "build_ir",
    # Type mapping
    "TargetType",
    "TypeMapper",
    "UnionAlternative",
    # Base generator interface
    "CodeGenerator",
    "ContentKind",
    "DuplicatePath",
    "GeneratedFile",
    "GenerationError",
    "GenerationResult",
    "GeneratorDescriptor",
    "InvalidOutputPath",
    "UnsupportedConstruct",
    "generate_code",
    # Emitter
    "EmitError",
    "Emitter",
    "FileWriteFailure",
    "WriteReport",
    "emit",
    "read_manifest",
    # Naming utilities - language-agnostic
    "NameSanitizer",
    "NamingCase",
    # Configuration system
    "GeneratorConfig",
    "ConfigManager",
    "ConfigError",
    "load_config",
    # Template system - language-agnostic
    "TemplateEngine",
    "TemplateError",
    "create_template_engine",
]
