"""
Intermediate representation for code generation.

The IR builder merges one or more schema packages into a single validated,
frozen model: profile overlays applied, every type reference resolved,
inheritance ordered and checked, choice fields validated. Generators only
ever see the IR, never raw packages.
"""

import heapq
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from ...logging_config import get_logger
from .naming import upper_first
from .schema import (
    Cardinality,
    CardinalityRegime,
    EntityDef,
    EntityKind,
    FieldDef,
    Package,
    TypeRef,
    ValueSetBinding,
)

logger = get_logger(__name__)


class BuildError(Exception):
    """Base class for errors raised while building the IR."""

    def __init__(
        self, message: str, entity: Optional[str] = None, field: Optional[str] = None
    ):
        self.entity = entity
        self.field = field
        super().__init__(message)


class UnresolvedType(BuildError):
    """A base or field type names an entity that no package defines."""

    def __init__(self, identifier: str, referenced_from: str):
        self.identifier = identifier
        self.referenced_from = referenced_from
        super().__init__(
            f"Unresolved type '{identifier}' referenced from {referenced_from}",
            entity=identifier,
        )


class InheritanceCycle(BuildError):
    """The base chain of an entity loops back on itself."""

    def __init__(self, path: Sequence[str]):
        self.path = tuple(path)
        super().__init__(
            f"Inheritance cycle: {' -> '.join(self.path)}", entity=self.path[0]
        )


class ConstraintViolation(BuildError):
    """An overlay or derived entity loosens, removes or re-types a field."""

    def __init__(self, entity: str, field: Optional[str], reason: str):
        self.reason = reason
        target = f"{entity}.{field}" if field else entity
        super().__init__(f"Constraint violation on {target}: {reason}", entity, field)


class NameCollision(BuildError):
    """Two names differ only by letter case."""

    def __init__(
        self,
        names: Iterable[str],
        entity: Optional[str] = None,
        field: Optional[str] = None,
    ):
        self.names = tuple(sorted(names))
        where = f" in {entity}" if entity else ""
        super().__init__(
            f"Names differ only by case{where}: {', '.join(self.names)}", entity, field
        )


class InvalidChoice(BuildError):
    """A choice field offers fewer than two alternatives."""

    def __init__(self, entity: str, field: str, count: int):
        self.count = count
        super().__init__(
            f"Choice field {entity}.{field} needs at least 2 alternatives, has {count}",
            entity,
            field,
        )


class AmbiguousChoice(BuildError):
    """Two alternatives of a choice field cannot be told apart."""

    def __init__(self, entity: str, field: str, alternative: str):
        self.alternative = alternative
        super().__init__(
            f"Choice field {entity}.{field} lists alternative '{alternative}' more than once",
            entity,
            field,
        )


@dataclass(frozen=True)
class Diagnostic:
    """Non-fatal observation recorded while building."""

    code: str
    message: str
    entity: Optional[str] = None
    field: Optional[str] = None


@dataclass(frozen=True)
class IRField:
    """A resolved field, after overlays have been applied."""

    name: str
    cardinality: Cardinality
    type_ref: Optional[TypeRef]
    choices: Tuple[TypeRef, ...]
    declared_by: str
    sources: Tuple[str, ...] = ()
    short: str = ""
    definition: str = ""
    binding: Optional[ValueSetBinding] = None
    is_modifier: bool = False
    is_summary: bool = False

    @classmethod
    def from_def(cls, field_def: FieldDef, declared_by: str, source: str) -> "IRField":
        return cls(
            name=field_def.name,
            cardinality=field_def.cardinality,
            type_ref=field_def.type_ref,
            choices=field_def.choices,
            declared_by=declared_by,
            sources=(source,),
            short=field_def.short,
            definition=field_def.definition,
            binding=field_def.binding,
            is_modifier=field_def.is_modifier,
            is_summary=field_def.is_summary,
        )

    @property
    def is_choice(self) -> bool:
        return bool(self.choices)

    @property
    def regime(self) -> CardinalityRegime:
        return self.cardinality.regime

    @property
    def type_refs(self) -> Tuple[TypeRef, ...]:
        return self.choices if self.choices else (self.type_ref,)

    def entity_refs(self) -> List[str]:
        refs = []
        for type_ref in self.type_refs:
            refs.extend(type_ref.entity_refs())
        return refs

    def choice_discriminant(self, alternative: TypeRef) -> str:
        """Name of one alternative, e.g. ``value`` + ``string`` -> ``valueString``."""
        return f"{self.name}{upper_first(alternative.code)}"

    def choice_names(self) -> Tuple[str, ...]:
        return tuple(self.choice_discriminant(choice) for choice in self.choices)

    def constrained_by(
        self, field_def: FieldDef, source: str, origin: Optional["IRField"] = None
    ) -> "IRField":
        """
        Return this field narrowed by a later definition.

        Choice alternatives are taken from ``origin`` (the first definition)
        so the latest overlay wins, as it does for cardinality.
        """
        if field_def.is_choice:
            allowed = set(field_def.choices)
            choices = tuple(
                choice for choice in (origin or self).choices if choice in allowed
            )
        else:
            choices = ()
        return replace(
            self,
            cardinality=field_def.cardinality,
            type_ref=field_def.type_ref,
            choices=choices,
            sources=self.sources + (source,),
            short=field_def.short or self.short,
            definition=field_def.definition or self.definition,
            binding=field_def.binding or self.binding,
            is_modifier=self.is_modifier or field_def.is_modifier,
            is_summary=self.is_summary or field_def.is_summary,
        )


@dataclass(frozen=True)
class IREntity:
    """A resolved entity. ``fields`` holds only the fields it declares itself."""

    identifier: str
    kind: EntityKind
    base: Optional[str]
    fields: Tuple[IRField, ...]
    documentation: str = ""
    url: Optional[str] = None
    is_abstract: bool = False
    packages: Tuple[str, ...] = ()

    def get_field(self, name: str) -> Optional[IRField]:
        for ir_field in self.fields:
            if ir_field.name == name:
                return ir_field
        return None


class IR:
    """Frozen, validated intermediate representation shared by all generators."""

    def __init__(
        self,
        entities: Mapping[str, IREntity],
        order: Sequence[str],
        packages: Sequence[str] = (),
        diagnostics: Sequence[Diagnostic] = (),
    ):
        self._entities = MappingProxyType(dict(sorted(entities.items())))
        self._order = tuple(order)
        self._packages = tuple(packages)
        self._diagnostics = tuple(diagnostics)

    @property
    def entities(self) -> Mapping[str, IREntity]:
        return self._entities

    @property
    def order(self) -> Tuple[str, ...]:
        """Topological order: every base precedes the entities derived from it."""
        return self._order

    @property
    def packages(self) -> Tuple[str, ...]:
        return self._packages

    @property
    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        return self._diagnostics

    def get(self, identifier: str) -> IREntity:
        return self._entities[identifier]

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entities

    def __iter__(self) -> Iterator[IREntity]:
        return iter(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)

    def ancestors(self, identifier: str) -> List[IREntity]:
        """Base chain of an entity, nearest first."""
        chain = []
        current = self._entities[identifier].base
        while current is not None:
            entity = self._entities[current]
            chain.append(entity)
            current = entity.base
        return chain

    def all_fields(self, identifier: str) -> Tuple[IRField, ...]:
        """Inherited then own fields; a redeclared field keeps its inherited slot."""
        lineage = list(reversed(self.ancestors(identifier)))
        lineage.append(self._entities[identifier])
        merged: Dict[str, IRField] = {}
        for entity in lineage:
            for ir_field in entity.fields:
                merged[ir_field.name] = ir_field
        return tuple(merged.values())

    def dependencies(self, identifier: str) -> List[str]:
        """Entities referenced by an entity's own fields and base, sorted."""
        entity = self._entities[identifier]
        refs = set()
        if entity.base:
            refs.add(entity.base)
        for ir_field in entity.fields:
            refs.update(ir_field.entity_refs())
        refs.discard(identifier)
        return sorted(refs)

    def summary(self) -> Dict[str, int]:
        """Entity counts per kind."""
        counts: Dict[str, int] = {}
        for entity in self._entities.values():
            counts[entity.kind.value] = counts.get(entity.kind.value, 0) + 1
        return dict(sorted(counts.items()))


@dataclass(frozen=True)
class BuildOptions:
    """Options for an IR build. ``roots`` keeps only entities reachable from them."""

    roots: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if self.roots is not None:
            object.__setattr__(self, "roots", tuple(self.roots))


class _Draft:
    """Mutable merge state for one entity."""

    def __init__(self, entity: EntityDef, label: str):
        self.identifier = entity.identifier
        self.kind = entity.kind
        self.base = entity.base
        self.documentation = entity.documentation
        self.url = entity.url
        self.is_abstract = entity.is_abstract
        self.packages = [label]
        self.fields: Dict[str, IRField] = {}
        # First definition of each field; overlays are validated against it
        self.origins: Dict[str, IRField] = {}
        # Last overlay to constrain each field: (package label, cardinality)
        self.overlaid: Dict[str, Tuple[str, Cardinality]] = {}

    def add_field(self, field_def: FieldDef, label: str):
        ir_field = IRField.from_def(field_def, self.identifier, label)
        self.fields[field_def.name] = ir_field
        self.origins[field_def.name] = ir_field

    def freeze(self) -> IREntity:
        return IREntity(
            identifier=self.identifier,
            kind=self.kind,
            base=self.base,
            fields=tuple(self.fields.values()),
            documentation=self.documentation,
            url=self.url,
            is_abstract=self.is_abstract,
            packages=tuple(self.packages),
        )


def _check_narrowing(entity: str, original, candidate):
    """Raise unless ``candidate`` only constrains ``original``."""
    name = candidate.name
    if candidate.cardinality.is_prohibited and not original.cardinality.is_prohibited:
        raise ConstraintViolation(entity, name, "field cannot be removed")
    if candidate.is_choice != original.is_choice:
        raise ConstraintViolation(
            entity, name, "cannot change between a choice and a single type"
        )
    if candidate.is_choice:
        extra = [str(choice) for choice in candidate.choices if choice not in original.choices]
        if extra:
            raise ConstraintViolation(
                entity,
                name,
                f"alternatives {', '.join(extra)} are not allowed by the original definition",
            )
    elif candidate.type_ref != original.type_ref:
        raise ConstraintViolation(
            entity, name, f"cannot re-type {original.type_ref} as {candidate.type_ref}"
        )
    if not candidate.cardinality.narrows(original.cardinality):
        raise ConstraintViolation(
            entity,
            name,
            f"cardinality {candidate.cardinality} widens {original.cardinality}",
        )


class IRBuilder:
    """Builds a frozen IR from schema packages."""

    def __init__(self, options: Optional[BuildOptions] = None):
        self.options = options or BuildOptions()
        self._diagnostics: List[Diagnostic] = []

    def build(self, packages: Iterable[Package]) -> IR:
        """
        Merge, resolve and validate packages into an IR.

        Args:
            packages: Packages in precedence order; later ones overlay earlier ones

        Returns:
            Frozen IR

        Raises:
            BuildError: Any of UnresolvedType, InheritanceCycle,
                ConstraintViolation, NameCollision, InvalidChoice, AmbiguousChoice
        """
        packages = list(packages)
        self._diagnostics = []

        drafts = self._merge(packages)
        self._check_identifier_collisions(drafts)
        self._resolve_references(drafts)
        order = self._topological_order(drafts)
        self._check_choices(drafts)
        self._check_inheritance(drafts, order)
        self._drop_prohibited(drafts)

        if self.options.roots is not None:
            keep = self._reachable(drafts, self.options.roots)
            order = [identifier for identifier in order if identifier in keep]
            drafts = {identifier: drafts[identifier] for identifier in order}
            logger.debug(
                "Restricted IR to %d entities reachable from %s",
                len(drafts),
                ", ".join(self.options.roots),
            )

        ir = IR(
            entities={identifier: draft.freeze() for identifier, draft in drafts.items()},
            order=order,
            packages=[package.label for package in packages],
            diagnostics=self._diagnostics,
        )
        logger.info(
            "Built IR with %d entities from %d package(s)", len(ir), len(packages)
        )
        return ir

    # Merge phase

    def _merge(self, packages: List[Package]) -> Dict[str, _Draft]:
        drafts: Dict[str, _Draft] = {}
        for package in packages:
            logger.debug("Merging package %s", package.label)
            for entity in package.entities:
                draft = drafts.get(entity.identifier)
                if draft is None:
                    drafts[entity.identifier] = self._new_draft(entity, package.label)
                else:
                    self._apply_overlay(draft, entity, package.label)
        return drafts

    def _new_draft(self, entity: EntityDef, label: str) -> _Draft:
        draft = _Draft(entity, label)
        for field_def in entity.fields:
            draft.add_field(field_def, label)
        return draft

    def _drop_prohibited(self, drafts: Mapping[str, _Draft]):
        for identifier in sorted(drafts):
            draft = drafts[identifier]
            for name, ir_field in list(draft.fields.items()):
                if not ir_field.cardinality.is_prohibited:
                    continue
                del draft.fields[name]
                self._diagnostics.append(
                    Diagnostic(
                        "prohibited-field",
                        f"{identifier}.{name} has max 0 and is not generated",
                        identifier,
                        name,
                    )
                )

    def _apply_overlay(self, draft: _Draft, entity: EntityDef, label: str):
        identifier = draft.identifier
        if entity.base is not None and entity.base != draft.base:
            raise ConstraintViolation(
                identifier,
                None,
                f"overlay from {label} changes base from {draft.base!r} to {entity.base!r}",
            )
        if entity.documentation:
            draft.documentation = entity.documentation

        for field_def in entity.fields:
            existing = draft.fields.get(field_def.name)
            if existing is None:
                draft.add_field(field_def, label)
                continue

            _check_narrowing(identifier, draft.origins[field_def.name], field_def)

            previous = draft.overlaid.get(field_def.name)
            if (
                previous is not None
                and previous[0] != label
                and previous[1] != field_def.cardinality
            ):
                message = (
                    f"{identifier}.{field_def.name}: {previous[0]} constrains cardinality "
                    f"to {previous[1]}, {label} to {field_def.cardinality}; using {label}"
                )
                logger.warning(message)
                self._diagnostics.append(
                    Diagnostic("overlay-conflict", message, identifier, field_def.name)
                )
            draft.overlaid[field_def.name] = (label, field_def.cardinality)
            draft.fields[field_def.name] = existing.constrained_by(
                field_def, label, draft.origins[field_def.name]
            )

        draft.packages.append(label)

    # Validation phase

    def _check_identifier_collisions(self, drafts: Mapping[str, _Draft]):
        seen: Dict[str, str] = {}
        for identifier in sorted(drafts):
            key = identifier.lower()
            if key in seen:
                raise NameCollision((seen[key], identifier), entity=identifier)
            seen[key] = identifier

    def _resolve_references(self, drafts: Mapping[str, _Draft]):
        for identifier in sorted(drafts):
            draft = drafts[identifier]
            if draft.base is not None and draft.base not in drafts:
                raise UnresolvedType(draft.base, f"{identifier} (base)")
            for ir_field in draft.fields.values():
                for ref in ir_field.entity_refs():
                    if ref not in drafts:
                        raise UnresolvedType(ref, f"{identifier}.{ir_field.name}")

    def _topological_order(self, drafts: Mapping[str, _Draft]) -> List[str]:
        children: Dict[str, List[str]] = {}
        ready = []
        for identifier, draft in drafts.items():
            if draft.base is None:
                ready.append(identifier)
            else:
                children.setdefault(draft.base, []).append(identifier)
        heapq.heapify(ready)

        order = []
        while ready:
            identifier = heapq.heappop(ready)
            order.append(identifier)
            for child in children.get(identifier, ()):
                heapq.heappush(ready, child)

        if len(order) != len(drafts):
            placed = set(order)
            start = min(identifier for identifier in drafts if identifier not in placed)
            raise InheritanceCycle(self._find_cycle(drafts, start))
        return order

    @staticmethod
    def _find_cycle(drafts: Mapping[str, _Draft], start: str) -> List[str]:
        path: List[str] = []
        position: Dict[str, int] = {}
        current = start
        while current not in position:
            position[current] = len(path)
            path.append(current)
            current = drafts[current].base
        return path[position[current]:] + [current]

    def _check_choices(self, drafts: Mapping[str, _Draft]):
        for identifier in sorted(drafts):
            for ir_field in drafts[identifier].fields.values():
                if not ir_field.is_choice or ir_field.cardinality.is_prohibited:
                    continue
                if len(ir_field.choices) < 2:
                    raise InvalidChoice(identifier, ir_field.name, len(ir_field.choices))
                seen = set()
                for choice in ir_field.choices:
                    key = ir_field.choice_discriminant(choice).lower()
                    if key in seen:
                        raise AmbiguousChoice(identifier, ir_field.name, choice.code)
                    seen.add(key)

    def _check_inheritance(self, drafts: Mapping[str, _Draft], order: List[str]):
        full: Dict[str, Dict[str, IRField]] = {}
        for identifier in order:
            draft = drafts[identifier]
            merged = dict(full[draft.base]) if draft.base else {}
            for ir_field in draft.fields.values():
                inherited = merged.get(ir_field.name)
                if inherited is not None:
                    _check_narrowing(identifier, inherited, ir_field)
                merged[ir_field.name] = ir_field
            self._check_field_collisions(identifier, merged.values())
            full[identifier] = merged

    @staticmethod
    def _check_field_collisions(identifier: str, fields: Iterable[IRField]):
        seen: Dict[str, str] = {}
        for ir_field in fields:
            for name in (ir_field.name,) + ir_field.choice_names():
                key = name.lower()
                if key in seen:
                    raise NameCollision((seen[key], name), entity=identifier, field=name)
                seen[key] = name

    @staticmethod
    def _reachable(drafts: Mapping[str, _Draft], roots: Sequence[str]) -> set:
        for root in roots:
            if root not in drafts:
                raise UnresolvedType(root, "build roots")
        keep = set()
        stack = list(roots)
        while stack:
            identifier = stack.pop()
            if identifier in keep:
                continue
            keep.add(identifier)
            draft = drafts[identifier]
            if draft.base:
                stack.append(draft.base)
            for ir_field in draft.fields.values():
                stack.extend(ir_field.entity_refs())
        return keep


def build_ir(packages: Iterable[Package], options: Optional[BuildOptions] = None) -> IR:
    """Convenience function: build an IR with a fresh builder."""
    return IRBuilder(options).build(packages)
