"""
Tests for the Go, Python and TypeScript generators.
"""

import json

import pytest

from fhirgen.codegen.core.config import GeneratorConfig, load_config
from fhirgen.codegen.core.generator import (
    ContentKind,
    DuplicatePath,
    InvalidOutputPath,
    UnsupportedConstruct,
    check_output_paths,
    GeneratedFile,
    generate_code,
)
from fhirgen.codegen.core.ir import build_ir
from fhirgen.codegen.core.schema import (
    BindingStrength,
    Cardinality,
    FieldDef,
    Package,
    TypeRef,
    ValueSetBinding,
)
from fhirgen.codegen.languages.go import GoGenerator
from fhirgen.codegen.languages.python import PythonGenerator
from fhirgen.codegen.languages.typescript import TypeScriptGenerator
from fhirgen.codegen.registry import get_generator, list_supported_languages

from tests.conftest import make_choice, make_entity, make_field


def files_by_path(files):
    return {generated.path: generated for generated in files}


def type_definitions(files, identifier):
    return [
        generated
        for generated in files
        if generated.kind == ContentKind.TYPE_DEFINITION and generated.entity == identifier
    ]


def build_package_ir(*entities):
    return build_ir([Package("test", "1.0.0", entities)])


@pytest.fixture
def documented_ir():
    """Observation with one fully described field."""
    status = FieldDef(
        name="status",
        cardinality=Cardinality(1, 1),
        type_ref=TypeRef.parse("code"),
        short="registered | final",
        definition="The status of the result value.",
        binding=ValueSetBinding(
            BindingStrength.REQUIRED, "http://hl7.org/fhir/ValueSet/observation-status"
        ),
        is_modifier=True,
        is_summary=True,
    )
    note = make_field("note", "string", short="Comments")
    return build_package_ir(make_entity("Observation", status, note))


# ── Shared behavior ─────────────────────────────────────────────────


class TestEveryGenerator:
    """Behavior every registered generator shares."""

    @pytest.mark.parametrize("language", list_supported_languages())
    def test_one_file_per_entity(self, language, foo_ir):
        files = get_generator(language).generate(foo_ir)
        definitions = type_definitions(files, "Foo")
        assert len(definitions) == 1
        assert "Foo" in definitions[0].text

    @pytest.mark.parametrize("language", list_supported_languages())
    def test_deterministic(self, language, core_ir):
        first = get_generator(language).generate(core_ir)
        second = get_generator(language).generate(core_ir)
        assert [(f.path, f.content) for f in first] == [(f.path, f.content) for f in second]

    @pytest.mark.parametrize("language", list_supported_languages())
    def test_worker_count_does_not_change_output(self, language, core_ir):
        serial = get_generator(language, {"max_workers": 1}).generate(core_ir)
        parallel = get_generator(language, {"max_workers": 4}).generate(core_ir)
        assert [(f.path, f.content) for f in serial] == [(f.path, f.content) for f in parallel]

    @pytest.mark.parametrize("language", list_supported_languages())
    def test_every_entity_rendered(self, language, core_ir):
        files = get_generator(language).generate(core_ir)
        for identifier in core_ir.entities:
            assert len(type_definitions(files, identifier)) == 1

    @pytest.mark.parametrize("language", list_supported_languages())
    def test_files_end_with_newline(self, language, core_ir):
        for generated in get_generator(language).generate(core_ir):
            if generated.content:
                assert generated.text.endswith("\n")
                assert not generated.text.endswith("\n\n")

    @pytest.mark.parametrize(
        "language, declaration",
        [
            ("go", "type Empty struct {\n}\n"),
            ("python", "class Empty:\n"),
            ("typescript", "export interface Empty {\n}\n"),
        ],
    )
    def test_fieldless_entity(self, language, declaration):
        files = get_generator(language).generate(build_package_ir(make_entity("Empty")))
        definitions = type_definitions(files, "Empty")
        assert len(definitions) == 1
        assert declaration in definitions[0].text
        assert definitions[0].text.endswith("\n")

    @pytest.mark.parametrize("language", list_supported_languages())
    def test_entities_named_like_support_files(self, language):
        ir = build_package_ir(
            make_entity("Index", make_field("value", "string")),
            make_entity("Helpers"),
            make_entity("Doc"),
            make_entity("Validation"),
            make_entity("Holder", make_field("index", "Index")),
        )
        paths = [generated.path.lower() for generated in get_generator(language).generate(ir)]
        assert len(paths) == len(set(paths))

    def test_generate_code_metadata(self, foo_ir):
        result = generate_code(get_generator("go"), foo_ir)
        assert result.metadata["language"] == "go"
        assert result.metadata["entity_count"] == 1
        assert result.metadata["file_count"] == len(result.files)
        assert result.metadata["packages"] == ["foo@1.0.0"]
        assert result.warnings == []


# ── Go ──────────────────────────────────────────────────────────────


class TestGoGenerator:
    """Tests for Go struct output."""

    def test_foo(self, foo_ir):
        files = files_by_path(get_generator("go").generate(foo_ir))
        assert set(files) == {"fhir/foo.go", "fhir/doc.go", "fhir/helpers.go"}
        text = files["fhir/foo.go"].text
        assert text.startswith("// Code generated by fhirgen. DO NOT EDIT.")
        assert "package fhir\n" in text
        assert "type Foo struct {" in text
        assert '\tName string `json:"name"`' in text
        assert '\tTags []string `json:"tags,omitempty"`' in text

    def test_embedded_base_and_choices(self, core_ir):
        files = files_by_path(get_generator("go").generate(core_ir))
        text = files["fhir/observation.go"].text
        assert "type Observation struct {\n\tDomainResource\n" in text
        assert '\tStatus string `json:"status"`' in text
        assert '\tValueQuantity *Quantity `json:"valueQuantity,omitempty"`' in text
        assert '\tValueBoolean *bool `json:"valueBoolean,omitempty"`' in text
        assert '\tComponent []ObservationComponent `json:"component,omitempty"`' in text
        assert "var ObservationValueChoices = []string{" in text
        assert '\t"valueCodeableConcept",' in text

    def test_decimal_import(self, core_ir):
        text = files_by_path(get_generator("go").generate(core_ir))["fhir/quantity.go"].text
        assert '"encoding/json"' in text
        assert "Value *json.Number" in text

    def test_doc_lists_types_in_order(self, core_ir):
        text = files_by_path(get_generator("go").generate(core_ir))["fhir/doc.go"].text
        assert text.index("//   - Resource") < text.index("//   - Patient")

    def test_without_helpers(self, foo_ir):
        generator = get_generator("go", {"emit_helpers": False, "package_name": "models"})
        assert set(files_by_path(generator.generate(foo_ir))) == {
            "models/foo.go",
            "models/doc.go",
        }

    def test_package_name_warning(self, foo_ir):
        generator = GoGenerator(GeneratorConfig(package_name="Bad-Name"))
        warnings = generator.validate_ir(foo_ir)
        assert "Package names should not contain hyphens" in warnings

    def test_comments_from_short(self, core_ir):
        text = files_by_path(get_generator("go").generate(core_ir))["fhir/observation.go"].text
        assert "// registered | final | amended" in text
        quiet = get_generator("go", {"add_comments": False}).generate(core_ir)
        assert "registered" not in files_by_path(quiet)["fhir/observation.go"].text

    def test_field_docs(self, documented_ir):
        text = files_by_path(get_generator("go").generate(documented_ir))["fhir/observation.go"].text
        assert (
            "\t// registered | final\n"
            "\t// The status of the result value.\n"
            "\t// cardinality: 1..1\n"
            "\t// modifier: This element is a modifier element\n"
            "\t// summary: This element is a summary element\n"
            "\t// binding: required http://hl7.org/fhir/ValueSet/observation-status\n"
            "\tStatus string `json:\"status\"`\n"
        ) in text
        assert "\t// Comments\n\t// cardinality: 0..1\n\tNote *string" in text

    def test_self_reference_is_a_pointer(self):
        ir = build_package_ir(
            make_entity("Node", make_field("label", "string"), make_field("next", "Node", 1, 1))
        )
        text = files_by_path(get_generator("go").generate(ir))["fhir/node.go"].text
        assert '\tNext *Node `json:"next"`' in text

    def test_mutual_reference_is_a_pointer(self):
        ir = build_package_ir(
            make_entity("Left", make_field("right", "Right", 1, 1)),
            make_entity("Right", make_field("left", "Left", 1, 1)),
        )
        files = files_by_path(get_generator("go").generate(ir))
        assert '\tRight *Right `json:"right"`' in files["fhir/left.go"].text
        assert '\tLeft *Left `json:"left"`' in files["fhir/right.go"].text

    def test_reference_back_through_base_is_a_pointer(self):
        ir = build_package_ir(
            make_entity("Parent", make_field("child", "Child", 1, 1)),
            make_entity("Child", make_field("name", "string"), base="Parent"),
        )
        files = files_by_path(get_generator("go").generate(ir))
        assert '\tChild *Child `json:"child"`' in files["fhir/parent.go"].text
        assert "type Child struct {\n\tParent\n" in files["fhir/child.go"].text

    def test_required_value_without_cycle(self, core_ir):
        text = files_by_path(get_generator("go").generate(core_ir))["fhir/observation.go"].text
        assert '\tCode CodeableConcept `json:"code"`' in text

    def test_support_file_stems_reserved(self):
        ir = build_package_ir(make_entity("Doc"), make_entity("Helpers"))
        files = files_by_path(get_generator("go").generate(ir))
        assert "type Doc struct {" in files["fhir/doc_type.go"].text
        assert "type Helpers struct {" in files["fhir/helpers_type.go"].text
        assert files["fhir/doc.go"].kind == ContentKind.INDEX


# ── Python ──────────────────────────────────────────────────────────


class TestPythonGenerator:
    """Tests for Python dataclass output."""

    def test_foo(self, foo_ir):
        files = files_by_path(get_generator("python").generate(foo_ir))
        assert set(files) == {
            "fhir_models/foo.py",
            "fhir_models/__init__.py",
            "fhir_models/_serialization.py",
            "fhir_models/_validation.py",
            "fhir_models/py.typed",
        }
        text = files["fhir_models/foo.py"].text
        assert "@dataclass(kw_only=True)\nclass Foo:" in text
        assert 'name: str = field(metadata={"json_name": "name", "min": 1, "max": 1})' in text
        assert (
            'tags: list[str] = field(default_factory=list, '
            'metadata={"json_name": "tags", "min": 0, "max": None})'
        ) in text

    def test_init_exports(self, core_ir):
        text = files_by_path(get_generator("python").generate(core_ir))[
            "fhir_models/__init__.py"
        ].text
        assert "from .observation import Observation" in text
        assert '"CodeableConcept",' in text
        assert text.index("import Element") < text.index("import Coding")

    def test_base_and_choices(self, core_ir):
        text = files_by_path(get_generator("python").generate(core_ir))[
            "fhir_models/observation.py"
        ].text
        assert "from .domain_resource import DomainResource" in text
        assert "class Observation(DomainResource):" in text
        assert 'resource_type: ClassVar[str] = "Observation"' in text
        assert "if TYPE_CHECKING:" in text
        assert "    from .codeable_concept import CodeableConcept" in text
        assert (
            '"value": ("value_quantity", "value_codeable_concept", '
            '"value_string", "value_boolean"),'
        ) in text
        assert "value_quantity: Quantity | None = field(default=None" in text

    def test_abstract_resource_has_no_resource_type(self, core_ir):
        text = files_by_path(get_generator("python").generate(core_ir))[
            "fhir_models/domain_resource.py"
        ].text
        assert "resource_type:" not in text

    def test_decimal_import(self, core_ir):
        text = files_by_path(get_generator("python").generate(core_ir))[
            "fhir_models/quantity.py"
        ].text
        assert "from decimal import Decimal" in text
        assert "value: Decimal | None = field(default=None" in text

    def test_dotted_package_name(self, foo_ir):
        generator = PythonGenerator(load_config("python", {"package_name": "acme.fhir"}))
        assert "acme/fhir/foo.py" in files_by_path(generator.generate(foo_ir))

    def test_documentation_is_escaped(self):
        from fhirgen.codegen.languages.python.generator import docstring_safe

        assert docstring_safe('say """hi"""') == 'say \\"""hi\\"""'

    def test_field_docs(self, documented_ir):
        text = files_by_path(get_generator("python").generate(documented_ir))[
            "fhir_models/observation.py"
        ].text
        assert (
            "    # registered | final\n"
            "    # The status of the result value.\n"
            "    # cardinality: 1..1\n"
            "    # modifier: This element is a modifier element\n"
            "    # summary: This element is a summary element\n"
            "    # binding: required http://hl7.org/fhir/ValueSet/observation-status\n"
            "    status: str = field("
        ) in text

    def test_choice_members_carry_cardinality(self, core_ir):
        text = files_by_path(get_generator("python").generate(core_ir))[
            "fhir_models/observation.py"
        ].text
        assert (
            'metadata={"json_name": "valueString", "min": 0, "max": 1, "choice_group": "value"}'
        ) in text

    def test_kw_only_warning(self, foo_ir):
        generator = PythonGenerator(load_config("python", {"kw_only": False}))
        assert any("kw_only" in warning for warning in generator.validate_ir(foo_ir))


# ── TypeScript ──────────────────────────────────────────────────────


class TestTypeScriptGenerator:
    """Tests for TypeScript interface output."""

    def test_foo(self, foo_ir):
        files = files_by_path(get_generator("typescript").generate(foo_ir))
        assert set(files) == {
            "src/Foo.ts",
            "src/index.ts",
            "src/helpers.ts",
            "src/validation.ts",
            "package.json",
        }
        text = files["src/Foo.ts"].text
        assert "export interface Foo {" in text
        assert "  name: string;" in text
        assert "  tags?: string[];" in text

    def test_resource_type_literal(self, core_ir):
        files = files_by_path(get_generator("ts").generate(core_ir))
        assert '  resourceType: "Observation";' in files["src/Observation.ts"].text
        assert "resourceType" not in files["src/DomainResource.ts"].text
        assert "resourceType" not in files["src/Coding.ts"].text

    def test_choice_union(self, core_ir):
        text = files_by_path(get_generator("typescript").generate(core_ir))[
            "src/Observation.ts"
        ].text
        assert "export interface Observation extends DomainResource {" in text
        assert "  valueQuantity?: Quantity;" in text
        assert "export type ObservationValueChoice =\n" in text
        assert "  | { valueQuantity: Quantity }\n" in text
        assert "  | { valueBoolean: boolean };\n" in text
        assert (
            'export const ObservationValueChoiceKeys = ["valueQuantity", '
            '"valueCodeableConcept", "valueString", "valueBoolean"] as const;'
        ) in text

    def test_type_only_imports(self, core_ir):
        text = files_by_path(get_generator("typescript").generate(core_ir))[
            "src/Observation.ts"
        ].text
        assert 'import type { CodeableConcept } from "./CodeableConcept";' in text
        assert 'import type { DomainResource } from "./DomainResource";' in text
        assert 'from "./Observation"' not in text

    def test_index_and_manifest(self, core_ir):
        files = files_by_path(get_generator("typescript").generate(core_ir))
        index = files["src/index.ts"].text
        assert index.index('export * from "./Resource";') < index.index(
            'export * from "./Patient";'
        )
        assert 'export * from "./helpers";' in index
        manifest = json.loads(files["package.json"].text)
        assert manifest["name"] == "fhir-types"
        assert manifest["types"] == "src/index.ts"

    def test_helpers_list_resource_types(self, core_ir):
        text = files_by_path(get_generator("typescript").generate(core_ir))["src/helpers.ts"].text
        assert '"Observation"' in text
        assert '"Patient"' in text
        assert '"DomainResource"' not in text

    def test_custom_source_dir(self, foo_ir):
        generator = TypeScriptGenerator(
            load_config("typescript", {"source_dir": "types", "emit_helpers": False})
        )
        assert set(files_by_path(generator.generate(foo_ir))) == {
            "types/Foo.ts",
            "types/index.ts",
            "types/validation.ts",
            "package.json",
        }

    def test_field_docs(self, documented_ir):
        text = files_by_path(get_generator("typescript").generate(documented_ir))[
            "src/Observation.ts"
        ].text
        assert (
            "  /**\n"
            "   * registered | final\n"
            "   * The status of the result value.\n"
            "   * @cardinality 1..1\n"
            "   * @modifier This element is a modifier element\n"
            "   * @summary This element is a summary element\n"
            "   * @binding required http://hl7.org/fhir/ValueSet/observation-status\n"
            "   */\n"
            "  status: string;\n"
        ) in text
        quiet = get_generator("typescript", {"add_comments": False}).generate(documented_ir)
        assert "@cardinality" not in files_by_path(quiet)["src/Observation.ts"].text

    def test_validator_checks_required_fields(self, foo_ir):
        text = files_by_path(get_generator("typescript").generate(foo_ir))["src/Foo.ts"].text
        assert 'import type { ValidationError, ValidationResult } from "./validation";' in text
        assert "export function validateFoo(value: Foo): ValidationResult {" in text
        assert '  if (record["name"] === undefined || record["name"] === null) {' in text
        assert (
            '    errors.push({ path: "Foo.name", message: "Required field \'name\' is missing", '
            'severity: "error" });'
        ) in text
        assert "countItems" not in text

    def test_validator_checks_resource_type_and_choices(self, core_ir):
        text = files_by_path(get_generator("typescript").generate(core_ir))[
            "src/Observation.ts"
        ].text
        assert '  if (record["resourceType"] !== "Observation") {' in text
        assert (
            '    const present = ["valueQuantity", "valueCodeableConcept", "valueString", '
            '"valueBoolean"].filter((key) => record[key] !== undefined);'
        ) in text
        assert '  if (record["code"] === undefined' in text
        assert '  if (record["implicitRules"]' not in text
        assert "return { valid: errors.every((error) => error.severity !== \"error\"), errors };" in text

    def test_validator_checks_array_bounds(self):
        ir = build_package_ir(
            make_entity(
                "Box",
                make_field("items", "string", 1, 3),
                make_choice("size", "integer", "string", min_value=1),
            )
        )
        text = files_by_path(get_generator("typescript").generate(ir))["src/Box.ts"].text
        assert '  if (countItems(record["items"]) < 1) {' in text
        assert '  if (countItems(record["items"]) > 3) {' in text
        assert "function countItems(value: unknown): number {" in text
        assert "message: \"Required choice 'size[x]' is missing\"" in text

    def test_validation_types_module(self, foo_ir):
        files = files_by_path(get_generator("typescript").generate(foo_ir))
        validation = files["src/validation.ts"].text
        assert "export interface ValidationError {" in validation
        assert '  severity: "error" | "warning" | "info";' in validation
        assert "export interface ValidationResult {" in validation
        assert 'export * from "./validation";' in files["src/index.ts"].text

    def test_without_validators(self, foo_ir):
        generator = get_generator("typescript", {"emit_validators": False})
        files = files_by_path(generator.generate(foo_ir))
        assert "src/validation.ts" not in files
        assert "validate" not in files["src/Foo.ts"].text
        assert "validation" not in files["src/index.ts"].text

    def test_support_module_stems_reserved(self):
        ir = build_package_ir(
            make_entity("Index", make_field("value", "string")),
            make_entity("Helpers"),
            make_entity("Holder", make_field("index", "Index")),
        )
        files = files_by_path(get_generator("typescript").generate(ir))
        assert "export interface Index {" in files["src/Index_.ts"].text
        assert "export interface Helpers {" in files["src/Helpers_.ts"].text
        assert 'import type { Index } from "./Index_";' in files["src/Holder.ts"].text
        assert 'export * from "./Index_";' in files["src/index.ts"].text


# ── Output path validation ──────────────────────────────────────────


class _SingleFileGenerator(GoGenerator):
    def entity_path(self, identifier):
        return "fhir/all.go"


class _EscapingGenerator(GoGenerator):
    def entity_path(self, identifier):
        return f"../{identifier}.go"


class _SilentGenerator(GoGenerator):
    def generate_entity(self, entity, ir):
        return []


class TestOutputPaths:
    """Tests for path checks applied to every generated file set."""

    def test_duplicate_path(self, core_ir):
        with pytest.raises(DuplicatePath) as exc_info:
            _SingleFileGenerator().generate(core_ir)
        assert exc_info.value.path == "fhir/all.go"
        assert exc_info.value.language == "go"

    def test_escaping_path(self, foo_ir):
        with pytest.raises(InvalidOutputPath):
            _EscapingGenerator().generate(foo_ir)

    def test_no_output(self, foo_ir):
        with pytest.raises(UnsupportedConstruct, match="Foo"):
            _SilentGenerator().generate(foo_ir)

    @pytest.mark.parametrize(
        "path", ["/abs.go", "a\\b.go", "a//b.go", "./a.go", "a/../b.go", ""]
    )
    def test_invalid_paths(self, path):
        with pytest.raises(InvalidOutputPath):
            check_output_paths([GeneratedFile.from_text(path, "x")])

    def test_file_used_as_directory(self):
        files = [GeneratedFile.from_text("a", "x"), GeneratedFile.from_text("a/b", "y")]
        with pytest.raises(InvalidOutputPath, match="directory"):
            check_output_paths(files)
