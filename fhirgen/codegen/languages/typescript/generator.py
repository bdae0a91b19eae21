"""
TypeScript code generator implementation.

Generates one interface per entity under the source directory, each with a
``validate<Entity>`` function, a barrel ``index.ts``, the shared validation
types, a small runtime helper module and a ``package.json``. Entity files
only import types, so the generated package has no runtime cycles.
"""

import json
from typing import Any, Dict, List, Optional, Set
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
from ...core.naming import upper_first
from ...core.schema import EntityKind
from .naming import (
    create_typescript_sanitizer,
    jsdoc_safe,
    ts_module_name,
    ts_property_name,
    ts_type_name,
)
from .types import TypeScriptTypeMapper

KIND_LABELS = {
    EntityKind.RESOURCE: "resource",
    EntityKind.COMPLEX_TYPE: "data type",
    EntityKind.PROFILE: "profile",
    EntityKind.LOGICAL: "logical model",
    EntityKind.BACKBONE: "backbone element",
}


class TypeScriptGenerator(CodeGenerator):
    """Code generator for TypeScript interfaces."""

    descriptor = GeneratorDescriptor(
        language="typescript",
        display_name="TypeScript",
        file_extension=".ts",
        aliases=("ts",),
        features=(
            "one module per entity",
            "interface inheritance",
            "resourceType literal discriminants",
            "type-only imports",
            "choice unions and key lists",
            "package.json manifest",
            "validate<Entity> cardinality checks",
        ),
        description="TypeScript interfaces for an npm package.",
        example_usage="fhirgen generate core.json --language typescript --output out/",
        choice_policy=(
            "one optional property per alternative (valueString?: string) plus an "
            "exported <Entity><Field>Choice union and <Entity><Field>ChoiceKeys list"
        ),
    )

    def __init__(self, config: Optional[GeneratorConfig] = None):
        """Initialize TypeScript generator with configuration."""
        super().__init__(config)

        self.sanitizer = create_typescript_sanitizer()
        self.package_name = self.config.package_name or "fhir-types"
        self.package_version = self.config.language_config.get("package_version", "0.1.0")
        self.source_dir = self.config.language_config.get("source_dir", "src").strip("/")
        self.emit_helpers = self.config.language_config.get("emit_helpers", True)
        self.resource_type_property = self.config.language_config.get(
            "resource_type_property", True
        )
        self.emit_validators = self.config.language_config.get("emit_validators", True)
        self.indent = " " * max(1, self.config.indent_size)
        self.type_mapper = TypeScriptTypeMapper(self.config.type_overrides)

    def get_template_directory(self) -> Optional[Path]:
        """Return the TypeScript templates directory."""
        return Path(__file__).parent / "templates"

    def _source_path(self, stem: str) -> str:
        if self.source_dir:
            return f"{self.source_dir}/{stem}.ts"
        return f"{stem}.ts"

    def entity_path(self, identifier: str) -> str:
        return self._source_path(ts_module_name(identifier))

    def generate_entity(self, entity: IREntity, ir: IR) -> List[GeneratedFile]:
        context = self._interface_context(entity, ir)
        code = self.render_template("interface.ts.j2", context)
        return [
            self.make_file(
                self.entity_path(entity.identifier),
                code,
                ContentKind.TYPE_DEFINITION,
                entity.identifier,
            )
        ]

    def generate_support_files(self, ir: IR) -> List[GeneratedFile]:
        modules = [ts_module_name(identifier) for identifier in ir.order]
        files = [
            self.make_file(
                self._source_path("index"),
                self.render_template(
                    "index.ts.j2",
                    {
                        "packages": list(ir.packages),
                        "modules": modules,
                        "emit_helpers": self.emit_helpers,
                        "emit_validators": self.emit_validators,
                    },
                ),
                ContentKind.INDEX,
            )
        ]
        if self.emit_validators:
            files.append(
                self.make_file(
                    self._source_path("validation"),
                    self.render_template("validation.ts.j2", {"indent": self.indent}),
                    ContentKind.HELPER,
                )
            )
        if self.emit_helpers:
            files.append(
                self.make_file(
                    self._source_path("helpers"),
                    self.render_template(
                        "helpers.ts.j2",
                        {
                            "indent": self.indent,
                            "resource_types": [
                                entity.identifier
                                for entity in ir
                                if self._carries_resource_type(entity, ir)
                            ],
                        },
                    ),
                    ContentKind.HELPER,
                )
            )
        files.append(
            GeneratedFile.from_text("package.json", self._package_manifest(ir), ContentKind.MANIFEST)
        )
        return files

    def validate_ir(self, ir: IR) -> List[str]:
        warnings = super().validate_ir(ir)
        if self.source_dir in ("", "."):
            warnings.append("source_dir is empty: sources are written next to package.json")
        return warnings

    def _package_manifest(self, ir: IR) -> str:
        main = self._source_path("index")
        manifest = {
            "name": self.package_name,
            "version": self.package_version,
            "description": f"TypeScript types generated by fhirgen from {', '.join(ir.packages)}",
            "types": main,
            "main": main,
            "sideEffects": False,
        }
        return json.dumps(manifest, indent=self.config.indent_size) + "\n"

    def _carries_resource_type(self, entity: IREntity, ir: IR) -> bool:
        """Concrete resources that no other resource derives from get a resourceType literal."""
        if not self.resource_type_property:
            return False
        if entity.kind != EntityKind.RESOURCE or entity.is_abstract:
            return False
        if any(f.name == "resourceType" for f in ir.all_fields(entity.identifier)):
            return False
        return not any(
            other.base == entity.identifier and other.kind == EntityKind.RESOURCE
            for other in ir
        )

    def _choice_alias(self, entity: IREntity, field_name: str, taken: Set[str]) -> str:
        alias = f"{ts_type_name(entity.identifier)}{upper_first(field_name)}Choice"
        return self.sanitizer.unique_name(alias, taken)

    def _doc_lines(self, ir_field: IRField, heading: str = "") -> List[str]:
        if not self.config.add_comments:
            return []
        doc = FieldDoc.from_field(ir_field, heading)
        return [jsdoc_safe(line) for line in doc.lines("@{0} {1}")]

    def _interface_context(self, entity: IREntity, ir: IR) -> Dict[str, Any]:
        type_name = ts_type_name(entity.identifier)
        taken = {ts_type_name(identifier) for identifier in ir.entities}

        properties = []
        choices = []
        referenced = set()
        for ir_field in entity.fields:
            target = self.type_mapper.map_field(ir_field)
            referenced.update(target.entity_refs)
            if target.is_union:
                for alternative in target.alternatives:
                    properties.append(
                        {
                            "name": ts_property_name(alternative.discriminant),
                            "optional": True,
                            "type": alternative.target.name,
                            "doc": self._doc_lines(
                                ir_field, f"{ir_field.name}[x] as {alternative.type_ref.code}"
                            ),
                        }
                    )
                alias = self._choice_alias(entity, ir_field.name, taken)
                choices.append(
                    {
                        "alias": alias,
                        "field": ir_field.name,
                        "members": [
                            {
                                "name": ts_property_name(alt.discriminant),
                                "key": alt.discriminant,
                                "type": alt.target.name,
                            }
                            for alt in target.alternatives
                        ],
                    }
                )
            else:
                properties.append(
                    {
                        "name": ts_property_name(ir_field.name),
                        "optional": not ir_field.cardinality.is_required,
                        "type": target.name,
                        "doc": self._doc_lines(ir_field),
                    }
                )

        if entity.base:
            referenced.add(entity.base)
        referenced.discard(entity.identifier)
        imports = [
            {"name": ts_type_name(ref), "module": ts_module_name(ref)}
            for ref in sorted(referenced, key=ts_type_name)
        ]
        resource_type = entity.identifier if self._carries_resource_type(entity, ir) else None

        return {
            "identifier": entity.identifier,
            "type_name": type_name,
            "kind": KIND_LABELS[entity.kind],
            "packages": list(entity.packages),
            "documentation": jsdoc_safe(entity.documentation) if self.config.add_comments else "",
            "base": ts_type_name(entity.base) if entity.base else None,
            "imports": imports,
            "resource_type": resource_type,
            "indent": self.indent,
            "properties": properties,
            "choices": choices,
            "validation": (
                self._validation_context(entity, ir, type_name, resource_type)
                if self.emit_validators
                else None
            ),
        }

    def _validation_context(
        self,
        entity: IREntity,
        ir: IR,
        type_name: str,
        resource_type: Optional[str],
    ) -> Dict[str, Any]:
        """Checks for ``validate<Entity>``; every string is pre-quoted as a TypeScript literal."""
        identifier = entity.identifier
        checks = []
        for ir_field in ir.all_fields(identifier):
            cardinality = ir_field.cardinality
            if ir_field.is_choice:
                path = json.dumps(f"{identifier}.{ir_field.name}[x]")
                checks.append(
                    {
                        "kind": "choice",
                        "path": path,
                        "keys": json.dumps(list(ir_field.choice_names())),
                        "several": json.dumps(f"Choice '{ir_field.name}[x]' has several values: "),
                        "missing": (
                            json.dumps(f"Required choice '{ir_field.name}[x]' is missing")
                            if cardinality.is_required
                            else None
                        ),
                    }
                )
                continue

            key = json.dumps(ir_field.name)
            path = json.dumps(f"{identifier}.{ir_field.name}")
            if not cardinality.is_array:
                if cardinality.is_required:
                    checks.append(
                        {
                            "kind": "required",
                            "key": key,
                            "path": path,
                            "message": json.dumps(f"Required field '{ir_field.name}' is missing"),
                        }
                    )
                continue
            if cardinality.min > 0:
                checks.append(
                    {
                        "kind": "min",
                        "key": key,
                        "path": path,
                        "bound": cardinality.min,
                        "message": json.dumps(
                            f"Field '{ir_field.name}' needs at least {cardinality.min} item(s)"
                        ),
                    }
                )
            if cardinality.max is not None:
                checks.append(
                    {
                        "kind": "max",
                        "key": key,
                        "path": path,
                        "bound": cardinality.max,
                        "message": json.dumps(
                            f"Field '{ir_field.name}' allows at most {cardinality.max} item(s)"
                        ),
                    }
                )

        return {
            "function": f"validate{type_name}",
            "resource_type": json.dumps(resource_type) if resource_type else None,
            "resource_type_path": json.dumps(f"{identifier}.resourceType"),
            "resource_type_message": json.dumps(
                f"Invalid resourceType, expected '{resource_type}'"
            ),
            "checks": checks,
        }
