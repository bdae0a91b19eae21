"""
Tests for end-to-end generation runs.
"""

import importlib
import json
import sys
from decimal import Decimal

import pytest

from fhirgen.codegen.core.emitter import MANIFEST_NAME, EmitError, Emitter, read_manifest
from fhirgen.codegen.core.generator import UnsupportedConstruct
from fhirgen.codegen.core.ir import BuildOptions, UnresolvedType
from fhirgen.codegen.core.schema import Package
from fhirgen.codegen.languages.python import PythonGenerator
from fhirgen.codegen.pipeline import (
    PHASE_DONE,
    PHASE_EMIT,
    PHASE_GENERATE,
    preview,
    run_generation,
    run_generation_many,
)
from fhirgen.codegen.registry import UnknownGenerator

from tests.conftest import make_choice, make_entity, make_field


class TestRunGeneration:
    """Tests for single-language runs."""

    def test_foo_end_to_end(self, foo_package, output_dir):
        report = run_generation([foo_package], "go", output_dir)
        assert report.success
        assert "fhir/foo.go" in report.written
        text = (output_dir / "fhir" / "foo.go").read_text()
        assert "type Foo struct {" in text
        manifest = read_manifest(output_dir)
        assert manifest["language"] == "go"
        assert manifest["packages"] == ["foo@1.0.0"]

    def test_alias_and_config(self, foo_package, output_dir):
        report = run_generation(
            [foo_package], "ts", output_dir, config={"package_name": "@acme/fhir"}
        )
        assert report.success
        manifest = json.loads((output_dir / "package.json").read_text())
        assert manifest["name"] == "@acme/fhir"

    def test_build_error_writes_nothing(self, output_dir):
        broken = Package("broken", "1", (make_entity("Foo", make_field("x", "Missing")),))
        with pytest.raises(UnresolvedType):
            run_generation([broken], "go", output_dir)
        assert not output_dir.exists()

    def test_unknown_language(self, foo_package, output_dir):
        with pytest.raises(UnknownGenerator):
            run_generation([foo_package], "cobol", output_dir)

    def test_roots(self, core_package, output_dir):
        report = run_generation(
            [core_package], "python", output_dir, options=BuildOptions(roots=("Patient",))
        )
        assert "fhir_models/patient.py" in report.written
        assert "fhir_models/observation.py" not in report.written

    def test_rerun_is_byte_identical(self, core_package, output_dir):
        run_generation([core_package], "typescript", output_dir)
        first = (output_dir / MANIFEST_NAME).read_bytes()
        run_generation([core_package], "typescript", output_dir)
        assert (output_dir / MANIFEST_NAME).read_bytes() == first

    def test_preview_writes_nothing(self, core_package, output_dir):
        result = preview([core_package], "python")
        assert "fhir_models/observation.py" in result.paths
        assert result.metadata["entity_count"] == 9
        assert not output_dir.exists()


class TestRunGenerationMany:
    """Tests for multi-language runs."""

    def test_each_language_in_its_own_directory(self, foo_package, output_dir):
        run = run_generation_many([foo_package], ["go", "python", "ts"], output_dir)
        assert run.success
        assert [result.language for result in run.results] == ["go", "python", "typescript"]
        assert (output_dir / "go" / "fhir" / "foo.go").exists()
        assert (output_dir / "python" / "fhir_models" / "foo.py").exists()
        assert (output_dir / "typescript" / "src" / "Foo.ts").exists()
        assert all(result.phase == PHASE_DONE for result in run.results)

    def test_aliases_deduplicated(self, foo_package, output_dir):
        run = run_generation_many([foo_package], ["go", "golang", "GO"], output_dir)
        assert [result.language for result in run.results] == ["go"]

    def test_failing_language_is_isolated(self, foo_package, output_dir, monkeypatch):
        def boom(self, entity, ir):
            raise UnsupportedConstruct(entity.identifier, "not today", self.language_name)

        monkeypatch.setattr(PythonGenerator, "generate_entity", boom)
        run = run_generation_many([foo_package], ["go", "python"], output_dir, max_workers=2)

        assert not run.success
        assert run.get("go").success
        python = run.get("python")
        assert python.phase == PHASE_GENERATE
        assert isinstance(python.error, UnsupportedConstruct)
        assert run.failures() == [("generate", "python", str(python.error))]
        assert (output_dir / "go" / "fhir" / "foo.go").exists()
        assert not (output_dir / "python").exists()

    def test_emit_refusal_is_isolated(self, foo_package, output_dir):
        (output_dir / "python").mkdir(parents=True)
        (output_dir / "python" / "keep.txt").write_text("mine")
        run = run_generation_many([foo_package], ["go", "python"], output_dir)
        assert run.get("go").success
        assert run.get("python").phase == "emit"
        assert (output_dir / "python" / "keep.txt").read_text() == "mine"

    def test_broken_output_root_is_isolated(self, foo_package, output_dir):
        output_dir.mkdir()
        (output_dir / "go").symlink_to(output_dir / "nowhere")
        run = run_generation_many([foo_package], ["go", "python"], output_dir)

        go = run.get("go")
        assert go.phase == PHASE_EMIT
        assert isinstance(go.error, EmitError)
        assert run.get("python").success
        assert (output_dir / "python" / "fhir_models" / "foo.py").exists()

    def test_os_error_is_isolated(self, foo_package, output_dir, monkeypatch):
        def unwritable(self, files, output_root, metadata=None):
            raise PermissionError(13, "Permission denied", str(output_root))

        monkeypatch.setattr(Emitter, "emit", unwritable)
        run = run_generation_many([foo_package], ["go", "python"], output_dir)
        assert [result.phase for result in run.results] == [PHASE_EMIT, PHASE_EMIT]
        assert all(isinstance(result.error, PermissionError) for result in run.results)

    def test_unexpected_error_is_isolated(self, foo_package, output_dir, monkeypatch):
        def broken(self, entity, ir):
            raise KeyError(entity.identifier)

        monkeypatch.setattr(PythonGenerator, "generate_entity", broken)
        run = run_generation_many([foo_package], ["go", "python"], output_dir, max_workers=2)

        assert run.get("go").success
        python = run.get("python")
        assert python.phase == PHASE_GENERATE
        assert isinstance(python.error, KeyError)
        assert run.failures()[0][:2] == ("generate", "python")

    def test_unknown_language_raises_before_running(self, foo_package, output_dir):
        with pytest.raises(UnknownGenerator):
            run_generation_many([foo_package], ["go", "cobol"], output_dir)
        assert not output_dir.exists()

    def test_build_error_raises(self, output_dir):
        broken = Package("broken", "1", (make_entity("Foo", base="Missing"),))
        with pytest.raises(UnresolvedType):
            run_generation_many([broken], ["go", "python"], output_dir)

    def test_per_language_configs(self, foo_package, output_dir):
        run = run_generation_many(
            [foo_package],
            ["go", "python"],
            output_dir,
            configs={"golang": {"package_name": "models"}},
        )
        assert run.success
        assert (output_dir / "go" / "models" / "foo.go").exists()
        assert (output_dir / "python" / "fhir_models" / "foo.py").exists()


class TestGeneratedPython:
    """The generated Python package imports and serializes."""

    PACKAGE = "fhirgen_generated_models"

    @pytest.fixture
    def models(self, core_package, output_dir, monkeypatch):
        run_generation([core_package], "python", output_dir, config={"package_name": self.PACKAGE})
        monkeypatch.syspath_prepend(str(output_dir))
        yield importlib.import_module(self.PACKAGE)
        for name in [n for n in sys.modules if n.split(".")[0] == self.PACKAGE]:
            del sys.modules[name]

    def test_to_dict(self, models):
        observation = models.Observation(
            status="final",
            code=models.CodeableConcept(text="Glucose"),
            value_quantity=models.Quantity(value=Decimal("6.3"), unit="mmol/L"),
        )
        assert models.to_dict(observation) == {
            "resourceType": "Observation",
            "status": "final",
            "code": {"text": "Glucose"},
            "valueQuantity": {"value": Decimal("6.3"), "unit": "mmol/L"},
        }
        assert json.loads(models.to_json(observation))["valueQuantity"]["value"] == 6.3

    def test_inheritance(self, models):
        patient = models.Patient(id="p1", active=True, deceased_boolean=False)
        assert isinstance(patient, models.DomainResource)
        assert models.to_dict(patient) == {
            "resourceType": "Patient",
            "id": "p1",
            "active": True,
            "deceasedBoolean": False,
        }

    def test_choice_check(self, models):
        observation = models.Observation(
            status="final",
            code=models.CodeableConcept(),
            value_string="high",
            value_boolean=True,
        )
        with pytest.raises(models.ChoiceError, match="value"):
            models.to_dict(observation)

    def test_required_fields(self, models):
        with pytest.raises(TypeError):
            models.Observation(status="final")


class TestGeneratedPythonNames:
    """Attributes whose names the class body itself uses still import."""

    PACKAGE = "fhirgen_generated_names"

    @pytest.fixture
    def models(self, output_dir, monkeypatch):
        package = Package(
            "names",
            "1.0.0",
            (
                make_entity(
                    "Thing",
                    make_field("field", "string"),
                    make_field("dataclass", "string"),
                    make_field("list", "string", 0, None),
                    make_field("other", "string", 0, None),
                ),
            ),
        )
        report = run_generation([package], "python", output_dir, config={"package_name": self.PACKAGE})
        assert report.success
        monkeypatch.syspath_prepend(str(output_dir))
        yield importlib.import_module(self.PACKAGE)
        for name in [n for n in sys.modules if n.split(".")[0] == self.PACKAGE]:
            del sys.modules[name]

    def test_shadowing_names_are_escaped(self, models):
        thing = models.Thing(field_="a", dataclass_="b", list_=["c"])
        assert thing.other == []
        assert models.to_dict(thing) == {"field": "a", "dataclass": "b", "list": ["c"]}


class TestGeneratedPythonValidation:
    """The generated validate() helper reports cardinality problems."""

    PACKAGE = "fhirgen_generated_validation"

    @pytest.fixture
    def models(self, core_package, output_dir, monkeypatch):
        box = make_entity(
            "Box",
            make_field("items", "string", 1, 2),
            make_field("label", "string", 1, 1),
            make_choice("size", "integer", "string", min_value=1),
        )
        packages = [core_package, Package("boxes", "1.0.0", (box,))]
        report = run_generation(packages, "python", output_dir, config={"package_name": self.PACKAGE})
        assert report.success
        monkeypatch.syspath_prepend(str(output_dir))
        yield importlib.import_module(self.PACKAGE)
        for name in [n for n in sys.modules if n.split(".")[0] == self.PACKAGE]:
            del sys.modules[name]

    def test_valid_instance(self, models):
        box = models.Box(items=["a"], label="small", size_string="S")
        result = models.validate(box)
        assert result.valid
        assert result.issues == ()

    def test_missing_required_field(self, models):
        observation = models.Observation(status=None, code=models.CodeableConcept())
        result = models.validate(observation)
        assert not result.valid
        assert [issue.path for issue in result.issues] == ["Observation.status"]
        assert result.issues[0].message == "Required field 'status' is missing"

    def test_nested_paths(self, models):
        observation = models.Observation(
            status="final",
            code=models.CodeableConcept(),
            component=[models.ObservationComponent(code=None)],
        )
        paths = [issue.path for issue in models.validate(observation).issues]
        assert paths == ["Observation.component[0].code"]

    def test_array_bounds_and_required_choice(self, models):
        empty = models.validate(models.Box(items=[], label="x"))
        assert [issue.path for issue in empty.issues] == ["Box.items", "Box.size[x]"]
        crowded = models.validate(models.Box(items=["a", "b", "c"], label="x", size_integer=1))
        assert [issue.path for issue in crowded.issues] == ["Box.items"]
        assert "at most 2" in crowded.issues[0].message

    def test_several_choice_values(self, models):
        observation = models.Observation(
            status="final",
            code=models.CodeableConcept(),
            value_string="high",
            value_boolean=True,
        )
        issues = models.validate(observation).issues
        assert [issue.path for issue in issues] == ["Observation.value[x]"]
