"""Type graph consumed by the validator and the executor.

The graph is built by a schema layer and treated as immutable afterwards.
Every node is one of a closed set of dataclasses, discriminated by its
``kind``. Object and Interface nodes reference each other directly; equality
is identity so cyclic graphs are safe to compare and print.
"""

from dataclasses import dataclass, field
from enum import Enum as _Enum
from typing import TYPE_CHECKING, Any, Callable, ClassVar

if TYPE_CHECKING:
    from .document import SelectionSet

Resolver = Callable[[Any, Any, Any, "SelectionSet | None"], Any]
BatchResolver = Callable[[Any, list[Any], Any, "SelectionSet | None"], list[Any]]


class TypeKind(str, _Enum):
    """Discriminator for type graph nodes."""
    SCALAR = "SCALAR"
    ENUM = "ENUM"
    OBJECT = "OBJECT"
    INTERFACE = "INTERFACE"
    UNION = "UNION"
    INPUT_OBJECT = "INPUT_OBJECT"
    LIST = "LIST"
    NON_NULL = "NON_NULL"


@dataclass(eq=False)
class Scalar:
    """A leaf value.

    The optional handler converts values on the way out (serialize) and on
    the way in (deserialize). Without one, values pass through unchanged.
    """
    name: str
    handler: Any = None
    description: str = ""
    # URL from @specifiedBy, informational only
    specified_by_url: str = ""

    kind: ClassVar[TypeKind] = TypeKind.SCALAR

    def __str__(self) -> str:
        return self.name

    def serialize(self, value: Any) -> Any:
        if self.handler is None:
            return value
        return self.handler.serialize(value)

    def parse_value(self, value: Any) -> Any:
        if self.handler is None:
            return value
        return self.handler.deserialize(value)


@dataclass(eq=False)
class Enum:
    """A leaf value mapping wire names to host values."""
    name: str
    values: dict[str, Any]
    description: str = ""
    reverse_map: dict[Any, str] = field(default_factory=dict, init=False, repr=False)

    kind: ClassVar[TypeKind] = TypeKind.ENUM

    def __post_init__(self):
        self.reverse_map = {}
        for wire_name, host_value in self.values.items():
            try:
                self.reverse_map.setdefault(host_value, wire_name)
            except TypeError:
                # Unhashable host values can only be matched by wire name
                continue

    def __str__(self) -> str:
        return self.name

    def serialize(self, value: Any) -> str:
        """Convert a host value to its wire name."""
        try:
            if value in self.reverse_map:
                return self.reverse_map[value]
        except TypeError:
            pass
        if isinstance(value, _Enum) and value.name in self.values:
            return value.name
        if isinstance(value, str) and value in self.values:
            return value
        raise ValueError(f'enum "{self.name}" cannot represent value: {value!r}')

    def parse_value(self, wire_name: str) -> Any:
        """Convert a wire name to its host value."""
        if wire_name not in self.values:
            raise ValueError(f'value "{wire_name}" does not exist in "{self.name}" enum')
        return self.values[wire_name]


@dataclass(eq=False)
class Field:
    """Knows how to compute the value of one field of an object."""
    type: "GraphQLType"
    args: dict[str, "GraphQLType"] = field(default_factory=dict)
    resolver: Resolver | None = None
    batch_resolver: BatchResolver | None = None
    defaults: dict[str, Any] = field(default_factory=dict)
    # Converts the coerced argument dict into whatever the resolver expects
    parse_arguments: Callable[[dict[str, Any]], Any] | None = None
    description: str = ""
    # The resolver returns a producer; lazy_resolver (or a plain call) runs it once
    lazy_execution: bool = False
    lazy_resolver: Callable[[Any, Any], Any] | None = None
    # Synchronous resolvers of expensive fields run in a worker thread
    expensive: bool = False
    is_deprecated: bool = False
    deprecation_reason: str | None = None


@dataclass(eq=False)
class Object:
    """A concrete output type with named fields."""
    name: str
    fields: dict[str, Field] = field(default_factory=dict)
    interfaces: dict[str, "Interface"] = field(default_factory=dict, repr=False)
    description: str = ""
    is_type_of: Callable[[Any], bool] | None = None

    kind: ClassVar[TypeKind] = TypeKind.OBJECT

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class Interface:
    """An abstract output type implemented by several objects."""
    name: str
    fields: dict[str, Field] = field(default_factory=dict)
    types: dict[str, Object] = field(default_factory=dict, repr=False)
    description: str = ""
    resolve_type: Callable[[Any], "Object | str | None"] | None = None

    kind: ClassVar[TypeKind] = TypeKind.INTERFACE

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class Union:
    """A choice between several object types."""
    name: str
    types: dict[str, Object] = field(default_factory=dict, repr=False)
    description: str = ""
    resolve_type: Callable[[Any], "Object | str | None"] | None = None

    kind: ClassVar[TypeKind] = TypeKind.UNION

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class InputObject:
    """Coercion target for object-shaped arguments."""
    name: str
    fields: dict[str, "GraphQLType"] = field(default_factory=dict)
    defaults: dict[str, Any] = field(default_factory=dict)
    # @oneOf: exactly one field must be supplied and non-null
    one_of: bool = False
    description: str = ""

    kind: ClassVar[TypeKind] = TypeKind.INPUT_OBJECT

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class List:
    """A collection of values of another type."""
    of_type: "GraphQLType"

    kind: ClassVar[TypeKind] = TypeKind.LIST

    def __str__(self) -> str:
        return f"[{self.of_type}]"


@dataclass(eq=False)
class NonNull:
    """A non-nullable wrapper around any type except another NonNull."""
    of_type: "GraphQLType"

    kind: ClassVar[TypeKind] = TypeKind.NON_NULL

    def __post_init__(self):
        if isinstance(self.of_type, NonNull):
            raise TypeError(f"NonNull cannot wrap another NonNull: {self.of_type}!")

    def __str__(self) -> str:
        return f"{self.of_type}!"


GraphQLType = Scalar | Enum | Object | Interface | Union | InputObject | List | NonNull
NamedType = Scalar | Enum | Object | Interface | Union | InputObject
CompositeType = Object | Interface | Union


@dataclass(eq=False)
class Schema:
    """Root types used to validate and resolve operations."""
    query: Object
    mutation: Object | None = None
    subscription: Object | None = None
    _types: dict[str, NamedType] | None = field(default=None, init=False, repr=False)

    def root_type(self, operation_type: str) -> Object | None:
        """Return the root object for 'query', 'mutation' or 'subscription'."""
        return {
            "query": self.query,
            "mutation": self.mutation,
            "subscription": self.subscription,
        }.get(getattr(operation_type, "value", operation_type))

    @property
    def types(self) -> dict[str, NamedType]:
        """All named types reachable from the root types."""
        if self._types is None:
            roots = [t for t in (self.query, self.mutation, self.subscription) if t is not None]
            self._types = collect_types(*roots)
        return self._types


def implement(obj: Object, interface: Interface) -> None:
    """Declare that obj implements interface, linking both directions."""
    obj.interfaces[interface.name] = interface
    interface.types[obj.name] = obj


def named_type(type_: GraphQLType) -> NamedType:
    """Strip List and NonNull wrappers."""
    while isinstance(type_, (List, NonNull)):
        type_ = type_.of_type
    return type_


def nullable_type(type_: GraphQLType) -> GraphQLType:
    """Strip one NonNull wrapper if present."""
    if isinstance(type_, NonNull):
        return type_.of_type
    return type_


def is_leaf_type(type_: GraphQLType) -> bool:
    return isinstance(named_type(type_), (Scalar, Enum))


def is_composite_type(type_: GraphQLType) -> bool:
    return isinstance(named_type(type_), (Object, Interface, Union))


def possible_types(type_: GraphQLType) -> dict[str, Object]:
    """Return the concrete objects a composite type may resolve to."""
    type_ = named_type(type_)
    if isinstance(type_, Object):
        return {type_.name: type_}
    if isinstance(type_, (Interface, Union)):
        return dict(type_.types)
    return {}


def collect_types(*roots: GraphQLType) -> dict[str, NamedType]:
    """Walk the graph from roots and return every named type by name."""
    found: dict[str, NamedType] = {}
    stack: list[GraphQLType] = list(roots)

    while stack:
        current = named_type(stack.pop())
        if current.name in found:
            continue
        found[current.name] = current

        if isinstance(current, (Object, Interface)):
            for f in current.fields.values():
                stack.append(f.type)
                stack.extend(f.args.values())
        if isinstance(current, Object):
            stack.extend(current.interfaces.values())
        if isinstance(current, (Interface, Union)):
            stack.extend(current.types.values())
        if isinstance(current, InputObject):
            stack.extend(current.fields.values())

    return found
