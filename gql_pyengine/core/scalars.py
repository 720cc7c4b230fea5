"""Scalar handlers and the built-in scalar types.

A handler defines how a scalar is serialized into a response and how an
argument value is deserialized into a host value.

Example usage:
    from gql_pyengine.core.scalars import ScalarRegistry, DateTimeHandler

    registry = ScalarRegistry()
    registry.register("DateTime", DateTimeHandler())

    timestamp = registry.get("DateTime")  # a types.Scalar usable in fields

    # Custom handler
    class MoneyHandler:
        def serialize(self, value):
            return str(value)

        def deserialize(self, value):
            from decimal import Decimal
            return Decimal(value)

    registry.register("Money", MoneyHandler())
"""

from datetime import date, datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from .types import Scalar

MAX_INT = 2**31 - 1
MIN_INT = -(2**31)


@runtime_checkable
class ScalarHandler(Protocol):
    """Protocol for scalar handlers."""

    def serialize(self, value: Any) -> Any:
        """Convert a host value to a JSON-serializable response value."""
        ...

    def deserialize(self, value: Any) -> Any:
        """Convert an argument value to a host value."""
        ...


class IntHandler:
    """Signed 32-bit integers."""

    def serialize(self, value: Any) -> int:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, str) and value.strip():
            value = float(value)
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"Int cannot represent non-integer value: {value}")
            value = int(value)
        if not isinstance(value, int):
            raise ValueError(f"Int cannot represent value: {value!r}")
        if not MIN_INT <= value <= MAX_INT:
            raise ValueError(f"Int cannot represent non 32-bit signed integer value: {value}")
        return value

    def deserialize(self, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Int cannot represent non-integer value: {value!r}")
        if not MIN_INT <= value <= MAX_INT:
            raise ValueError(f"Int cannot represent non 32-bit signed integer value: {value}")
        return value


class FloatHandler:
    """Double-precision floats."""

    def serialize(self, value: Any) -> float:
        if isinstance(value, str) and value.strip():
            return float(value)
        if isinstance(value, (int, float)):
            return float(value)
        raise ValueError(f"Float cannot represent value: {value!r}")

    def deserialize(self, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Float cannot represent non numeric value: {value!r}")
        return float(value)


class StringHandler:
    """UTF-8 strings."""

    def serialize(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (str, int, float)):
            return str(value)
        raise ValueError(f"String cannot represent value: {value!r}")

    def deserialize(self, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError(f"String cannot represent a non string value: {value!r}")
        return value


class BooleanHandler:
    """true / false."""

    def serialize(self, value: Any) -> bool:
        if isinstance(value, (bool, int, float)):
            return bool(value)
        raise ValueError(f"Boolean cannot represent a non boolean value: {value!r}")

    def deserialize(self, value: Any) -> bool:
        if not isinstance(value, bool):
            raise ValueError(f"Boolean cannot represent a non boolean value: {value!r}")
        return value


class IDHandler:
    """Opaque identifiers, serialized as strings."""

    def serialize(self, value: Any) -> str:
        if isinstance(value, bool) or not isinstance(value, (str, int, UUID)):
            raise ValueError(f"ID cannot represent value: {value!r}")
        return str(value)

    def deserialize(self, value: Any) -> str:
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValueError(f"ID cannot represent value: {value!r}")
        return str(value)


class DateTimeHandler:
    """Handler for DateTime scalars using ISO 8601 format."""

    def serialize(self, value: datetime) -> str:
        """Convert datetime to ISO 8601 string."""
        return value.isoformat()

    def deserialize(self, value: str) -> datetime:
        """Parse ISO 8601 string to datetime."""
        if not isinstance(value, str):
            raise ValueError(f"DateTime cannot represent value: {value!r}")
        return datetime.fromisoformat(value.replace("Z", "+00:00"))


class DateHandler:
    """Handler for Date scalars using ISO 8601 date format."""

    def serialize(self, value: date) -> str:
        return value.isoformat()

    def deserialize(self, value: str) -> date:
        if not isinstance(value, str):
            raise ValueError(f"Date cannot represent value: {value!r}")
        return date.fromisoformat(value)


class UUIDHandler:
    """Handler for UUID scalars."""

    def serialize(self, value: UUID) -> str:
        return str(value)

    def deserialize(self, value: str) -> UUID:
        return UUID(str(value))


class JSONHandler:
    """Handler for JSON scalars (pass-through)."""

    def serialize(self, value: Any) -> Any:
        return value

    def deserialize(self, value: Any) -> Any:
        return value


String = Scalar("String", StringHandler())
Int = Scalar("Int", IntHandler())
Float = Scalar("Float", FloatHandler())
Boolean = Scalar("Boolean", BooleanHandler())
ID = Scalar("ID", IDHandler())

BUILTIN_SCALARS: dict[str, Scalar] = {s.name: s for s in (String, Int, Float, Boolean, ID)}


class ScalarRegistry:
    """Registry of scalar types by name.

    The built-in scalars are always present. Registering a handler creates a
    Scalar node that can be used as a field or argument type.

    Example:
        registry = ScalarRegistry()
        registry.register("DateTime", DateTimeHandler())

        field = Field(type=registry.get("DateTime"))
    """

    def __init__(self):
        self._scalars: dict[str, Scalar] = dict(BUILTIN_SCALARS)
        self._register_defaults()

    def _register_defaults(self):
        """Register the common custom scalars."""
        self.register("DateTime", DateTimeHandler())
        self.register("Date", DateHandler())
        self.register("UUID", UUIDHandler())
        self.register("JSON", JSONHandler())

    def register(
        self,
        scalar_name: str,
        handler: ScalarHandler,
        *,
        description: str = "",
        specified_by_url: str = "",
    ) -> Scalar:
        """Register a handler for a scalar type and return the scalar node."""
        if scalar_name in BUILTIN_SCALARS:
            raise ValueError(f"cannot override built-in scalar {scalar_name}")
        scalar = Scalar(
            scalar_name,
            handler,
            description=description,
            specified_by_url=specified_by_url,
        )
        self._scalars[scalar_name] = scalar
        return scalar

    def get(self, scalar_name: str) -> Scalar | None:
        """Get the scalar for a name, or None if not registered."""
        return self._scalars.get(scalar_name)

    def has(self, scalar_name: str) -> bool:
        """Check if a scalar is registered."""
        return scalar_name in self._scalars

    def names(self) -> list[str]:
        return sorted(self._scalars)
