"""Structural validation of a query against the type graph.

The validator collects every violation it can find instead of stopping at
the first one, then raises them together as ValidationErrors.

Rules:
    - fields exist on the enclosing Object or Interface (__typename always does)
    - arguments are declared, required ones supplied, values coercible
    - selections sharing a response key have the same field and arguments
    - fragments exist, do not form cycles, are used and can apply where spread
    - @skip/@include appear only where allowed and carry a Boolean "if"
    - leaf fields have no sub-selection, composite fields have one
"""

import logging

from .coercion import selection_arguments
from .document import (
    Directive,
    Document,
    FragmentDefinition,
    FragmentSpread,
    OperationType,
    Selection,
    SelectionSet,
)
from .errors import CoercionError, GraphQLError, ValidationError, ValidationErrors
from .types import (
    Interface,
    NamedType,
    NonNull,
    Object,
    Schema,
    Union,
    collect_types,
    is_composite_type,
    is_leaf_type,
    named_type,
    possible_types,
)

logger = logging.getLogger(__name__)

FIELD = "FIELD"
FRAGMENT_SPREAD = "FRAGMENT_SPREAD"
INLINE_FRAGMENT = "INLINE_FRAGMENT"
FRAGMENT_DEFINITION = "FRAGMENT_DEFINITION"
VARIABLE_DEFINITION = "VARIABLE_DEFINITION"

DIRECTIVE_LOCATIONS = {
    "skip": {FIELD, FRAGMENT_SPREAD, INLINE_FRAGMENT},
    "include": {FIELD, FRAGMENT_SPREAD, INLINE_FRAGMENT},
}

LOCATION_NAMES = {
    FIELD: "fields",
    FRAGMENT_SPREAD: "fragment spreads",
    INLINE_FRAGMENT: "inline fragments",
    FRAGMENT_DEFINITION: "fragment definitions",
    VARIABLE_DEFINITION: "variable definitions",
    "QUERY": "queries",
    "MUTATION": "mutations",
    "SUBSCRIPTION": "subscriptions",
}


class QueryValidator:
    """Validates selection sets rooted at one object type.

    Example:
        validator = QueryValidator(schema.query)
        errors = validator.validate(document.operations[0].selection_set)
    """

    def __init__(
        self,
        root_type: Object,
        *,
        max_depth: int | None = None,
        types: dict[str, NamedType] | None = None,
    ):
        self.root_type = root_type
        self.max_depth = max_depth
        self.types = types if types is not None else collect_types(root_type)
        self.errors: list[ValidationError] = []
        self._cyclic: set[str] = set()
        self._validated_fragments: set[int] = set()
        self._depth_reported = False

    def error(self, message: str, node=None) -> None:
        line = getattr(node, "line", None)
        column = getattr(node, "column", None)
        self.errors.append(ValidationError(message, line, column))

    def validate(self, selection_set: SelectionSet) -> list[ValidationError]:
        """Validate a selection set against the root type and return the errors."""
        self._check_fragment_cycles(selection_set)
        self._validate_selection_set(self.root_type, selection_set, depth=1)
        self._check_conflicts(self.root_type, [selection_set])
        return self.errors

    # -- directives ----------------------------------------------------------

    def check_directives(self, directives: list[Directive], location: str) -> None:
        seen: set[str] = set()
        for directive in directives:
            allowed = DIRECTIVE_LOCATIONS.get(directive.name)
            if allowed is None:
                self.error(f'Unknown directive "@{directive.name}".', directive)
                continue
            if directive.name in seen:
                self.error(
                    f'The directive "@{directive.name}" can only be used once at this location.',
                    directive,
                )
            seen.add(directive.name)
            if location not in allowed:
                self.error(
                    f'Directive "@{directive.name}" may not be used on '
                    f"{LOCATION_NAMES.get(location, location)}.",
                    directive,
                )
                continue
            for arg_name in directive.args:
                if arg_name != "if":
                    self.error(f'Unknown argument "{arg_name}" on directive "@{directive.name}".', directive)
            if "if" not in directive.args:
                self.error(
                    f'Directive "@{directive.name}" argument "if" of type "Boolean!" is required, '
                    "but it was not provided.",
                    directive,
                )
            elif not isinstance(directive.args["if"], bool):
                self.error(
                    f'Directive "@{directive.name}" argument "if" expects a Boolean, '
                    f"got {directive.args['if']!r}.",
                    directive,
                )

    # -- fragments -----------------------------------------------------------

    def _named_spreads(self, selection_set: SelectionSet) -> list[FragmentSpread]:
        """Named spreads directly inside a selection set (through fields and inline fragments)."""
        spreads: list[FragmentSpread] = []
        stack = [selection_set]
        while stack:
            current = stack.pop()
            for item in current.items:
                if isinstance(item, Selection):
                    if item.selection_set is not None:
                        stack.append(item.selection_set)
                elif item.inline:
                    stack.append(item.fragment.selection_set)
                else:
                    spreads.append(item)
        return spreads

    def _check_fragment_cycles(self, selection_set: SelectionSet) -> None:
        finished: set[str] = set()

        def visit(fragment: FragmentDefinition, trail: list[str]) -> None:
            trail.append(fragment.name)
            for spread in self._named_spreads(fragment.selection_set):
                target = spread.fragment
                if target is None or target.name in finished:
                    continue
                if target.name in trail:
                    cycle = trail[trail.index(target.name):]
                    if target.name not in self._cyclic:
                        via = ", ".join(f'"{name}"' for name in cycle[1:])
                        suffix = f" via {via}" if via else ""
                        self.error(
                            f'Cannot spread fragment "{target.name}" within itself{suffix}.',
                            spread,
                        )
                    self._cyclic.update(cycle)
                    continue
                visit(target, trail)
            trail.pop()
            finished.add(fragment.name)

        for spread in self._named_spreads(selection_set):
            if spread.fragment is not None and spread.fragment.name not in finished:
                visit(spread.fragment, [])

    def used_fragments(self, selection_set: SelectionSet) -> set[str]:
        """Names of all fragments reachable from a selection set."""
        used: set[str] = set()
        pending = [selection_set]
        while pending:
            for spread in self._named_spreads(pending.pop()):
                if spread.fragment is not None and spread.name not in used:
                    used.add(spread.name)
                    pending.append(spread.fragment.selection_set)
        return used

    def _lookup_type(self, name: str, parent: NamedType) -> NamedType | None:
        if name == parent.name:
            return parent
        found = self.types.get(name)
        if found is not None:
            return found
        if isinstance(parent, Object):
            return parent.interfaces.get(name)
        if isinstance(parent, (Interface, Union)):
            return parent.types.get(name)
        return None

    # -- selection sets ------------------------------------------------------

    def _validate_selection_set(self, parent: NamedType, selection_set: SelectionSet, depth: int) -> None:
        if self.max_depth is not None and depth > self.max_depth and not self._depth_reported:
            self._depth_reported = True
            self.error(f"Query exceeds the maximum depth of {self.max_depth}.", selection_set)

        for item in selection_set.items:
            if isinstance(item, Selection):
                self._validate_field(parent, item, depth)
            else:
                self._validate_spread(parent, item, depth)

    def _validate_field(self, parent: NamedType, selection: Selection, depth: int) -> None:
        self.check_directives(selection.directives, FIELD)

        if selection.name == "__typename":
            if selection.args:
                self.error('Field "__typename" does not take arguments.', selection)
            if selection.selection_set is not None:
                self.error(
                    'Field "__typename" must not have a selection since type "String!" has no subfields.',
                    selection,
                )
            return

        if isinstance(parent, Union):
            self.error(
                f'Cannot query field "{selection.name}" on type "{parent.name}". '
                "Did you mean to use an inline fragment?",
                selection,
            )
            return

        field = parent.fields.get(selection.name) if isinstance(parent, (Object, Interface)) else None
        if field is None:
            self.error(f'Cannot query field "{selection.name}" on type "{parent.name}".', selection)
            return

        self._validate_arguments(parent, selection, field)

        field_type = named_type(field.type)
        if is_leaf_type(field.type):
            if selection.selection_set is not None:
                self.error(
                    f'Field "{selection.name}" must not have a selection since type '
                    f'"{field.type}" has no subfields.',
                    selection,
                )
            return

        if is_composite_type(field.type):
            if selection.selection_set is None:
                self.error(
                    f'Field "{selection.name}" of type "{field.type}" must have a selection of '
                    f'subfields. Did you mean "{selection.name} {{ ... }}"?',
                    selection,
                )
                return
            self._validate_selection_set(field_type, selection.selection_set, depth + 1)

    def _validate_arguments(self, parent: NamedType, selection: Selection, field) -> None:
        coordinate = f"{parent.name}.{selection.name}"
        ok = True
        for arg_name in selection.args:
            if arg_name not in field.args:
                ok = False
                self.error(f'Unknown argument "{arg_name}" on field "{coordinate}".', selection)
        for arg_name, arg_type in field.args.items():
            if (
                isinstance(arg_type, NonNull)
                and arg_name not in selection.args
                and arg_name not in field.defaults
            ):
                ok = False
                self.error(
                    f'Field "{coordinate}" argument "{arg_name}" of type "{arg_type}" is required, '
                    "but it was not provided.",
                    selection,
                )
        if not ok:
            return
        try:
            selection_arguments(selection, field)
        except CoercionError as exc:
            self.error(f'Invalid arguments for field "{coordinate}": {exc.message}', selection)

    def _validate_spread(self, parent: NamedType, spread: FragmentSpread, depth: int) -> None:
        self.check_directives(spread.directives, INLINE_FRAGMENT if spread.inline else FRAGMENT_SPREAD)

        fragment = spread.fragment
        if fragment is None:
            self.error(f'Unknown fragment "{spread.name}".', spread)
            return
        if not spread.inline and fragment.name in self._cyclic:
            return

        target = parent
        if fragment.on is not None:
            target = self._lookup_type(fragment.on, parent)
            if target is None:
                self.error(f'Unknown type "{fragment.on}".', fragment)
                return
            if not is_composite_type(target):
                self.error(f'Fragment cannot condition on non composite type "{fragment.on}".', fragment)
                return
            if not set(possible_types(parent)) & set(possible_types(target)):
                label = f'Fragment "{fragment.name}"' if fragment.name else "Fragment"
                self.error(
                    f'{label} cannot be spread here as objects of type "{parent.name}" '
                    f'can never be of type "{target.name}".',
                    spread,
                )
                return

        if not spread.inline:
            if id(fragment) in self._validated_fragments:
                return
            self._validated_fragments.add(id(fragment))
        self._validate_selection_set(target, fragment.selection_set, depth)

    # -- overlapping fields --------------------------------------------------

    def _collect_fields(
        self,
        parent: NamedType,
        selection_set: SelectionSet,
        fields: dict[str, list[tuple[NamedType, Selection]]],
        visited: set[str],
    ) -> None:
        for item in selection_set.items:
            if isinstance(item, Selection):
                fields.setdefault(item.response_key, []).append((parent, item))
                continue
            fragment = item.fragment
            if fragment is None:
                continue
            if not item.inline:
                if fragment.name in visited or fragment.name in self._cyclic:
                    continue
                visited.add(fragment.name)
            target = parent
            if fragment.on is not None:
                target = self._lookup_type(fragment.on, parent)
                if target is None:
                    continue
            self._collect_fields(target, fragment.selection_set, fields, visited)

    def response_keys(self, parent: NamedType, selection_set: SelectionSet) -> list[str]:
        """Response keys a selection set produces, fragments flattened."""
        fields: dict[str, list[tuple[NamedType, Selection]]] = {}
        self._collect_fields(parent, selection_set, fields, set())
        return list(fields)

    def _check_conflicts(self, parent: NamedType, selection_sets: list[SelectionSet]) -> None:
        fields: dict[str, list[tuple[NamedType, Selection]]] = {}
        for selection_set in selection_sets:
            self._collect_fields(parent, selection_set, fields, set())

        for key, entries in fields.items():
            first_parent, first = entries[0]
            mergeable = [(first_parent, first)]
            conflict = False
            for other_parent, other in entries[1:]:
                if (
                    first_parent is not other_parent
                    and isinstance(first_parent, Object)
                    and isinstance(other_parent, Object)
                ):
                    # Different concrete types never apply to the same value
                    continue
                if other.name != first.name:
                    conflict = True
                    self.error(
                        f'Fields "{key}" are different: "{first.name}" and "{other.name}" '
                        "are different fields.",
                        other,
                    )
                    break
                if other.args != first.args:
                    conflict = True
                    self.error(f'Fields "{key}" are different: they have differing arguments.', other)
                    break
                mergeable.append((other_parent, other))

            if conflict:
                continue
            sub_sets = [s.selection_set for _, s in mergeable if s.selection_set is not None]
            if not sub_sets:
                continue
            owner = first_parent
            field = owner.fields.get(first.name) if isinstance(owner, (Object, Interface)) else None
            if field is not None and is_composite_type(field.type):
                self._check_conflicts(named_type(field.type), sub_sets)


def validate_query(
    root_type: Object,
    selection_set: SelectionSet,
    fragments: dict[str, FragmentDefinition] | None = None,
    *,
    max_depth: int | None = None,
) -> None:
    """Validate a selection set against a root object type.

    Args:
        root_type: Root Object (e.g. the schema's query type)
        selection_set: Selection set of the operation
        fragments: Fragment definitions of the document; when given, fragments
            never spread from selection_set are reported as unused
        max_depth: Optional nesting limit

    Raises:
        ValidationErrors: With every violation found
    """
    validator = QueryValidator(root_type, max_depth=max_depth)
    validator.validate(selection_set)
    if fragments is not None:
        used = validator.used_fragments(selection_set)
        for name, fragment in fragments.items():
            validator.check_directives(fragment.directives, FRAGMENT_DEFINITION)
            if name not in used:
                validator.error(f'Fragment "{name}" is never used.', fragment)
    if validator.errors:
        raise ValidationErrors(validator.errors)


def validate_document(
    schema: Schema,
    document: Document,
    operation_name: str | None = None,
    *,
    max_depth: int | None = None,
) -> None:
    """Validate the chosen operation of a document against a schema.

    Fragment usage is checked across every operation of the document.

    Raises:
        ValidationErrors: With every violation found
    """
    try:
        operation = document.get_operation(operation_name)
    except GraphQLError as exc:
        raise ValidationErrors([ValidationError(exc.message)]) from exc

    root_type = schema.root_type(operation.kind)
    if root_type is None:
        raise ValidationErrors([
            ValidationError(
                f"Schema is not configured for {operation.kind.value}s.",
                operation.line,
                operation.column,
            )
        ])

    validator = QueryValidator(root_type, max_depth=max_depth, types=schema.types)
    validator.check_directives(operation.directives, operation.kind.value.upper())
    for definition in operation.variable_definitions:
        validator.check_directives(definition.directives, VARIABLE_DEFINITION)
    for fragment in document.fragments.values():
        validator.check_directives(fragment.directives, FRAGMENT_DEFINITION)

    validator.validate(operation.selection_set)

    if operation.kind is OperationType.SUBSCRIPTION:
        if len(validator.response_keys(root_type, operation.selection_set)) != 1:
            label = f'Subscription "{operation.name}"' if operation.name else "Anonymous Subscription"
            validator.error(f"{label} must select only one top level field.", operation)

    used: set[str] = set()
    for op in document.operations:
        used |= validator.used_fragments(op.selection_set)
    for name, fragment in document.fragments.items():
        if name not in used:
            validator.error(f'Fragment "{name}" is never used.', fragment)

    if validator.errors:
        logger.debug("Validation failed with %d error(s)", len(validator.errors))
        raise ValidationErrors(validator.errors)
