"""Query-side AST produced by the parser.

A Document is built once per request, validated once and then only read by
the executor. The single exception is the per-Selection argument memo, which
is published with one attribute assignment so readers see either nothing or
a complete value.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .errors import GraphQLError


class OperationType(str, Enum):
    """Kinds of executable operations."""
    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"


class EnumValue(str):
    """An enum literal written in the query, e.g. the RED in color(c: RED)."""

    def __repr__(self) -> str:
        return f"EnumValue({str.__repr__(self)})"


class StringValue(str):
    """A quoted string literal written in the query.

    Kept apart from plain str so that "RED" is not accepted where an enum
    literal is expected; values supplied through variables are plain str.
    """

    def __repr__(self) -> str:
        return f"StringValue({str.__repr__(self)})"


@dataclass
class TypeRef:
    """A type reference as written in a variable definition, e.g. [Int!]!"""
    name: str | None = None
    of_type: "TypeRef | None" = None
    non_null: bool = False

    @property
    def is_list(self) -> bool:
        return self.of_type is not None

    def __str__(self) -> str:
        inner = f"[{self.of_type}]" if self.of_type is not None else str(self.name)
        return f"{inner}!" if self.non_null else inner


@dataclass
class Directive:
    """A directive applied at some location, e.g. @skip(if: true)."""
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    line: int | None = None
    column: int | None = None


@dataclass(eq=False)
class Selection:
    """A field reference inside a selection set.

    The selection

        me: user(id: 166) { name }

    has name "user" (the source field), alias "me" (the key used in the
    response), args {"id": 166} and a sub-selection for "name".
    """
    name: str
    alias: str | None = None
    args: dict[str, Any] = field(default_factory=dict)
    selection_set: "SelectionSet | None" = None
    directives: list[Directive] = field(default_factory=list)
    line: int | None = None
    column: int | None = None
    # Argument coercion memo: None until computed, then (field, value)
    _coerced: tuple[Any, Any] | None = field(default=None, init=False, repr=False)

    @property
    def response_key(self) -> str:
        return self.alias or self.name

    @property
    def parsed(self) -> bool:
        return self._coerced is not None

    def coerced_args(self, owner: Any, compute: Callable[[], Any]) -> Any:
        """Return the coerced arguments for owner, computing them on first use.

        The memo belongs to one field definition at a time: a selection made
        through an interface runs against each concrete type's own field, and
        a different owner recomputes. Concurrent first uses may both compute;
        the last assignment wins and both results are equal.
        """
        memo = self._coerced
        if memo is None or memo[0] is not owner:
            memo = (owner, compute())
            self._coerced = memo
        return memo[1]


@dataclass(eq=False)
class FragmentDefinition:
    """A reusable part of a query, applicable to the type named by ``on``.

    Inline fragments are represented by anonymous definitions; ``on`` is None
    for an inline fragment without a type condition.
    """
    name: str
    on: str | None
    selection_set: "SelectionSet"
    directives: list[Directive] = field(default_factory=list)
    line: int | None = None
    column: int | None = None


@dataclass(eq=False)
class FragmentSpread:
    """A use of a fragment, with the directives at that location."""
    fragment: FragmentDefinition | None
    directives: list[Directive] = field(default_factory=list)
    name: str = ""
    inline: bool = False
    line: int | None = None
    column: int | None = None


@dataclass(eq=False)
class SelectionSet:
    """An ordered sequence of selections and fragment spreads.

    Because several selections may share a name or alias, items are kept in a
    list; they are merged by response key only at execution time.
    """
    items: list[Selection | FragmentSpread] = field(default_factory=list)
    line: int | None = None
    column: int | None = None

    @property
    def selections(self) -> list[Selection]:
        return [item for item in self.items if isinstance(item, Selection)]

    @property
    def fragments(self) -> list[FragmentSpread]:
        return [item for item in self.items if isinstance(item, FragmentSpread)]


@dataclass
class VariableDefinition:
    """A variable declared by an operation, e.g. ($first: Int = 10)."""
    name: str
    type: TypeRef
    default_value: Any = None
    has_default: bool = False
    directives: list[Directive] = field(default_factory=list)


@dataclass(eq=False)
class OperationDefinition:
    """A query, mutation or subscription."""
    kind: OperationType
    name: str | None
    selection_set: SelectionSet
    variable_definitions: list[VariableDefinition] = field(default_factory=list)
    directives: list[Directive] = field(default_factory=list)
    line: int | None = None
    column: int | None = None


@dataclass(eq=False)
class Document:
    """A parsed query document."""
    operations: list[OperationDefinition] = field(default_factory=list)
    fragments: dict[str, FragmentDefinition] = field(default_factory=dict)

    def get_operation(self, name: str | None = None) -> OperationDefinition:
        """Pick the operation to run.

        Args:
            name: Operation name; optional when the document has one operation

        Raises:
            GraphQLError: If the operation cannot be determined
        """
        if name:
            for operation in self.operations:
                if operation.name == name:
                    return operation
            raise GraphQLError(f'unknown operation named "{name}"')
        if len(self.operations) != 1:
            raise GraphQLError("must provide operation name if query contains multiple operations")
        return self.operations[0]
