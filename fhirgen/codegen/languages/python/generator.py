"""
Python code generator implementation.

Generates a package of dataclasses, one module per entity. Base classes are
imported at runtime; types only used in annotations are imported under
``TYPE_CHECKING`` so mutually referencing entities never import each other.
"""

from typing import Any, Dict, List, Optional
from pathlib import Path

from ...core.config import GeneratorConfig
from ...core.generator import (
    CodeGenerator,
    ContentKind,
    GeneratedFile,
    GeneratorDescriptor,
)
from ...core.docs import FieldDoc
from ...core.ir import IR, IREntity
from ...core.naming import NamingCase
from ...core.schema import Cardinality, EntityKind
from ...core.types import TargetType
from .config import PythonConfig
from .naming import (
    GENERATED_CLASS_ATTRIBUTES,
    create_python_field_sanitizer,
    python_class_name,
    python_module_name,
)
from .types import PythonTypeMapper


def docstring_safe(text: str) -> str:
    """Escape text so it can sit inside a triple-quoted docstring."""
    return (text or "").replace("\\", "\\\\").replace('"""', r'\"""')


class PythonGenerator(CodeGenerator):
    """Code generator for Python dataclasses."""

    descriptor = GeneratorDescriptor(
        language="python",
        display_name="Python",
        file_extension=".py",
        aliases=("py",),
        features=(
            "one module per entity",
            "keyword-only dataclasses",
            "PEP 604 optionals",
            "to_dict/to_json helpers",
            "validate() cardinality checks",
            "py.typed marker",
        ),
        description="Python 3.10+ dataclasses in an importable package.",
        example_usage="fhirgen generate core.json --language python --output out/",
        choice_policy=(
            "one optional attribute per alternative (value_string) plus a "
            "CHOICE_GROUPS class variable mapping each group to its attributes"
        ),
    )

    def __init__(self, config: Optional[GeneratorConfig] = None):
        """Initialize Python generator with configuration."""
        super().__init__(config)

        self.field_sanitizer = create_python_field_sanitizer()
        self.python_config = PythonConfig(**self.config.language_config)
        self.package_name = self.config.package_name or "fhir_models"
        self.package_dir = self.package_name.replace(".", "/")
        self.type_mapper = PythonTypeMapper(self.config.type_overrides)

    def get_template_directory(self) -> Path:
        """Return the Python templates directory."""
        return Path(__file__).parent / "templates"

    def entity_path(self, identifier: str) -> str:
        return f"{self.package_dir}/{python_module_name(identifier)}.py"

    def generate_entity(self, entity: IREntity, ir: IR) -> List[GeneratedFile]:
        context = self._class_context(entity, ir)
        code = self.render_template("dataclass_file.py.j2", context)
        return [
            self.make_file(
                self.entity_path(entity.identifier),
                code,
                ContentKind.TYPE_DEFINITION,
                entity.identifier,
            )
        ]

    def generate_support_files(self, ir: IR) -> List[GeneratedFile]:
        exports = [
            {
                "module": python_module_name(identifier),
                "class_name": python_class_name(identifier),
            }
            for identifier in ir.order
        ]
        files = [
            self.make_file(
                f"{self.package_dir}/__init__.py",
                self.render_template(
                    "package_init.py.j2",
                    {
                        "packages": list(ir.packages),
                        "exports": exports,
                        "emit_helpers": self.python_config.emit_helpers,
                    },
                ),
                ContentKind.INDEX,
            )
        ]
        if self.python_config.emit_helpers:
            files.append(
                self.make_file(
                    f"{self.package_dir}/_serialization.py",
                    self.render_template("serialization.py.j2", {}),
                    ContentKind.HELPER,
                )
            )
            files.append(
                self.make_file(
                    f"{self.package_dir}/_validation.py",
                    self.render_template("validation.py.j2", {}),
                    ContentKind.HELPER,
                )
            )
        if self.python_config.emit_py_typed:
            files.append(
                GeneratedFile.from_text(f"{self.package_dir}/py.typed", "", ContentKind.MANIFEST)
            )
        return files

    def validate_ir(self, ir: IR) -> List[str]:
        warnings = super().validate_ir(ir)
        if not self.python_config.dataclass_kw_only:
            warnings.append(
                "kw_only is disabled: required fields after inherited optional "
                "fields will fail at import time"
            )
        return warnings

    def _attribute_names(self, entity: IREntity, ir: IR) -> Dict[str, str]:
        """Attribute name for every (inherited and own) JSON name of the entity."""
        used = set(GENERATED_CLASS_ATTRIBUTES)
        names = {}
        for ir_field in ir.all_fields(entity.identifier):
            json_names = ir_field.choice_names() if ir_field.is_choice else (ir_field.name,)
            for json_name in json_names:
                attribute = self.field_sanitizer.sanitize_name(json_name, NamingCase.SNAKE_CASE)
                names[json_name] = self.field_sanitizer.unique_name(attribute, used)
        return names

    def _class_context(self, entity: IREntity, ir: IR) -> Dict[str, Any]:
        names = self._attribute_names(entity, ir)

        fields = []
        stdlib_imports = set()
        referenced = set()
        for ir_field in entity.fields:
            target = self.type_mapper.map_field(ir_field)
            stdlib_imports.update(target.imports)
            referenced.update(target.entity_refs)
            if target.is_union:
                for alternative in target.alternatives:
                    fields.append(
                        self._field_data(
                            names[alternative.discriminant],
                            alternative.target,
                            alternative.discriminant,
                            FieldDoc.from_field(
                                ir_field,
                                f"{ir_field.name}[x] as {alternative.type_ref.code}",
                            ),
                            required=False,
                            cardinality=ir_field.cardinality,
                            choice_group=ir_field.name,
                        )
                    )
            else:
                fields.append(
                    self._field_data(
                        names[ir_field.name],
                        target,
                        ir_field.name,
                        FieldDoc.from_field(ir_field),
                        required=ir_field.cardinality.is_required,
                        cardinality=ir_field.cardinality,
                    )
                )

        choice_groups = [
            {"name": ir_field.name, "attributes": [names[n] for n in ir_field.choice_names()]}
            for ir_field in ir.all_fields(entity.identifier)
            if ir_field.is_choice
        ]

        referenced.discard(entity.identifier)
        if entity.base:
            referenced.discard(entity.base)
        type_imports = [
            {"module": python_module_name(ref), "class_name": python_class_name(ref)}
            for ref in sorted(referenced)
        ]

        options = self.python_config.dataclass_options()
        return {
            "identifier": entity.identifier,
            "class_name": python_class_name(entity.identifier),
            "kind": entity.kind.value,
            "documentation": (
                docstring_safe(entity.documentation) if self.config.add_comments else ""
            ),
            "packages": list(entity.packages),
            "base": (
                {
                    "module": python_module_name(entity.base),
                    "class_name": python_class_name(entity.base),
                }
                if entity.base
                else None
            ),
            "stdlib_imports": sorted(stdlib_imports),
            "type_imports": type_imports,
            "decorator_args": ", ".join(f"{key}=True" for key in options),
            "resource_type": (
                entity.identifier
                if entity.kind == EntityKind.RESOURCE and not entity.is_abstract
                else None
            ),
            "fields": fields,
            "choice_groups": choice_groups,
        }

    def _field_data(
        self,
        name: str,
        target: TargetType,
        json_name: str,
        doc: FieldDoc,
        required: bool,
        cardinality: Cardinality,
        choice_group: Optional[str] = None,
    ) -> Dict[str, Any]:
        maximum = "None" if cardinality.max is None else cardinality.max
        metadata = f'"json_name": "{json_name}", "min": {cardinality.min}, "max": {maximum}'
        if choice_group:
            metadata += f', "choice_group": "{choice_group}"'

        if target.is_repeated:
            default = "" if required else "default_factory=list, "
        elif target.is_optional or not required:
            default = "default=None, "
        else:
            default = ""

        annotation = target.name
        if not required and not target.is_repeated and not target.is_optional:
            annotation = f"{target.element} | None"

        return {
            "name": name,
            "annotation": annotation,
            "field_args": f"{default}metadata={{{metadata}}}",
            "doc": doc.lines() if self.config.add_comments else [],
        }
