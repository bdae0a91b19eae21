"""
Go code generator implementation.

Generates one Go struct per entity with encoding/json tags. Base types are
embedded so inherited fields are promoted, optional fields are pointers and
repeated fields are slices.
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
from ...core.ir import IR, IREntity, IRField
from ...core.schema import EntityKind, TypeRefKind
from ....logging_config import get_logger
from .naming import (
    create_go_sanitizer,
    go_exported_name,
    go_file_name,
    validate_go_package_name,
)
from .types import GoTypeMapper

KIND_LABELS = {
    EntityKind.RESOURCE: "resource",
    EntityKind.COMPLEX_TYPE: "data type",
    EntityKind.PROFILE: "profile",
    EntityKind.LOGICAL: "logical model",
    EntityKind.BACKBONE: "backbone element",
}

logger = get_logger(__name__)


class GoGenerator(CodeGenerator):
    """Code generator for Go structs with JSON tags."""

    descriptor = GeneratorDescriptor(
        language="go",
        display_name="Go",
        file_extension=".go",
        aliases=("golang",),
        features=(
            "one file per entity",
            "embedded base structs",
            "encoding/json tags",
            "pointer optionals",
            "Ptr helper",
        ),
        description="Go structs with encoding/json tags in a single package.",
        example_usage="fhirgen generate core.json --language go --output out/",
        choice_policy=(
            "one pointer field per alternative (ValueString *string) plus a "
            "<Entity><Field>Choices slice of the alternatives' JSON names"
        ),
    )

    def __init__(self, config: Optional[GeneratorConfig] = None):
        """Initialize Go generator with configuration."""
        super().__init__(config)

        self.sanitizer = create_go_sanitizer()
        self.package_name = self.config.package_name or "fhir"
        self.add_comments = self.config.add_comments
        self.emit_helpers = self.config.language_config.get("emit_helpers", True)

        self.type_mapper = GoTypeMapper(
            self.config.type_overrides,
            decimal_type=self.config.language_config.get("decimal_type", "json.Number"),
        )

    def get_template_directory(self) -> Optional[Path]:
        """Return the Go templates directory."""
        return Path(__file__).parent / "templates"

    def entity_path(self, identifier: str) -> str:
        return f"{self.package_name}/{go_file_name(identifier)}"

    def generate_entity(self, entity: IREntity, ir: IR) -> List[GeneratedFile]:
        """Generate Go struct for a single entity using templates."""
        context = self._struct_context(entity, ir)
        code = self.render_template("struct.go.j2", context)
        return [
            self.make_file(
                self.entity_path(entity.identifier),
                code,
                ContentKind.TYPE_DEFINITION,
                entity.identifier,
            )
        ]

    def generate_support_files(self, ir: IR) -> List[GeneratedFile]:
        """Package documentation and helpers."""
        files = [
            self.make_file(
                f"{self.package_name}/doc.go",
                self.render_template(
                    "doc.go.j2",
                    {
                        "package_name": self.package_name,
                        "packages": list(ir.packages),
                        "types": [go_exported_name(identifier) for identifier in ir.order],
                    },
                ),
                ContentKind.INDEX,
            )
        ]
        if self.emit_helpers:
            files.append(
                self.make_file(
                    f"{self.package_name}/helpers.go",
                    self.render_template("helpers.go.j2", {"package_name": self.package_name}),
                    ContentKind.HELPER,
                )
            )
        return files

    def validate_ir(self, ir: IR) -> List[str]:
        warnings = super().validate_ir(ir)
        warnings.extend(validate_go_package_name(self.package_name))
        return warnings
    def _field_names(self, entity: IREntity, ir: IR) -> Dict[str, str]:
        """Go field name for every (inherited and own) JSON name of the entity."""
        used = set()
        if entity.base:
            used.add(go_exported_name(entity.base))
        names = {}
        for ir_field in ir.all_fields(entity.identifier):
            json_names = ir_field.choice_names() if ir_field.is_choice else (ir_field.name,)
            for json_name in json_names:
                names[json_name] = self.sanitizer.unique_name(go_exported_name(json_name), used)
        return names

    @staticmethod
    def _value_refs(entity: IREntity) -> List[str]:
        """Entities stored inline in a struct: the embedded base and required singular entity fields."""
        refs = [entity.base] if entity.base else []
        for ir_field in entity.fields:
            type_ref = ir_field.type_ref
            if (
                not ir_field.is_choice
                and ir_field.cardinality.is_required
                and not ir_field.cardinality.is_array
                and type_ref.kind == TypeRefKind.ENTITY
            ):
                refs.append(type_ref.entity)
        return refs

    def _contains_by_value(self, ir: IR, start: str, goal: str) -> bool:
        """True when a value of ``start`` holds a value of ``goal`` inline."""
        seen = set()
        stack = [start]
        while stack:
            identifier = stack.pop()
            if identifier == goal:
                return True
            if identifier in seen or identifier not in ir:
                continue
            seen.add(identifier)
            stack.extend(self._value_refs(ir.get(identifier)))
        return False

    def _needs_pointer(self, entity: IREntity, ir_field: IRField, ir: IR) -> bool:
        """A required entity field that leads back to its own struct would make the type infinite."""
        if ir_field.is_choice or ir_field.cardinality.is_array:
            return False
        if not ir_field.cardinality.is_required or ir_field.type_ref.kind != TypeRefKind.ENTITY:
            return False
        return self._contains_by_value(ir, ir_field.type_ref.entity, entity.identifier)

    def _struct_context(self, entity: IREntity, ir: IR) -> Dict[str, Any]:
        struct_name = go_exported_name(entity.identifier)
        names = self._field_names(entity, ir)

        fields = []
        choice_groups = []
        imports = set()
        for ir_field in entity.fields:
            target = self.type_mapper.map_field(ir_field)
            imports.update(target.imports)
            if target.is_union:
                for alternative in target.alternatives:
                    fields.append(
                        self._field_data(
                            names[alternative.discriminant],
                            alternative.target.name,
                            alternative.discriminant,
                            FieldDoc.from_field(
                                ir_field,
                                f"{ir_field.name}[x] as {alternative.type_ref.code}",
                            ),
                            omitempty=True,
                        )
                    )
                choice_groups.append(
                    {
                        "var_name": f"{struct_name}{go_exported_name(ir_field.name)}Choices",
                        "field": ir_field.name,
                        "json_names": [alt.discriminant for alt in target.alternatives],
                    }
                )
                continue

            type_name = target.name
            if self._needs_pointer(entity, ir_field, ir):
                logger.debug(
                    "%s.%s refers back to %s by value; rendering it as a pointer",
                    entity.identifier,
                    ir_field.name,
                    entity.identifier,
                )
                type_name = f"*{target.element}"
            fields.append(
                self._field_data(
                    names[ir_field.name],
                    type_name,
                    ir_field.name,
                    FieldDoc.from_field(ir_field),
                    omitempty=not ir_field.cardinality.is_required,
                )
            )

        return {
            "package_name": self.package_name,
            "struct_name": struct_name,
            "kind": KIND_LABELS[entity.kind],
            "identifier": entity.identifier,
            "documentation": entity.documentation if self.add_comments else "",
            "base": go_exported_name(entity.base) if entity.base else None,
            "imports": sorted(imports),
            "fields": fields,
            "choice_groups": choice_groups,
        }

    def _field_data(
        self,
        name: str,
        type_name: str,
        json_name: str,
        doc: FieldDoc,
        omitempty: bool,
    ) -> Dict[str, Any]:
        return {
            "name": name,
            "type": type_name,
            "json_tag": self._json_tag(json_name, omitempty),
            "doc": doc.lines() if self.add_comments else [],
        }

    def _json_tag(self, json_name: str, omitempty: bool) -> str:
        options = ",omitempty" if omitempty else ""
        return f'`json:"{json_name}{options}"`'
