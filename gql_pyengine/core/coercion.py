"""Schema-aware coercion of raw argument values."""

from typing import Any

from .document import EnumValue, Selection, StringValue
from .errors import CoercionError
from .scalars import BUILTIN_SCALARS
from .types import Enum, Field, GraphQLType, InputObject, List, NonNull, Scalar


def _describe(path: tuple) -> str:
    if not path:
        return ""
    text = str(path[0])
    for segment in path[1:]:
        text += f"[{segment}]" if isinstance(segment, int) else f".{segment}"
    return f' at "{text}"'


def coerce_value(type_: GraphQLType, value: Any, path: tuple = ()) -> Any:
    """Coerce a raw value (literal or variable value) to an input type.

    Raises:
        CoercionError: If the value does not fit the type
    """
    if isinstance(type_, NonNull):
        if value is None:
            raise CoercionError(f'Expected non-nullable type "{type_}" not to be null{_describe(path)}.')
        return coerce_value(type_.of_type, value, path)

    if value is None:
        return None

    if isinstance(type_, List):
        if isinstance(value, (list, tuple)):
            return [coerce_value(type_.of_type, item, (*path, i)) for i, item in enumerate(value)]
        # A single value is accepted where a list is expected
        return [coerce_value(type_.of_type, value, path)]

    if isinstance(type_, Scalar):
        if isinstance(value, EnumValue) and type_.name in BUILTIN_SCALARS:
            raise CoercionError(f'{type_.name} cannot represent an enum value: {value}{_describe(path)}.')
        if isinstance(value, StringValue):
            value = str(value)
        try:
            return type_.parse_value(value)
        except (ValueError, TypeError) as exc:
            raise CoercionError(f'Expected type "{type_.name}"{_describe(path)}: {exc}') from exc

    if isinstance(type_, Enum):
        if not isinstance(value, str):
            raise CoercionError(f'Enum "{type_.name}" cannot represent non-string value: {value!r}{_describe(path)}.')
        if isinstance(value, StringValue):
            raise CoercionError(
                f'Enum "{type_.name}" cannot represent non-enum value: "{value}"{_describe(path)}. '
                f"Did you mean the enum value {value}?"
            )
        try:
            return type_.parse_value(str(value))
        except ValueError as exc:
            raise CoercionError(f"{exc}{_describe(path)}.") from exc

    if isinstance(type_, InputObject):
        return _coerce_input_object(type_, value, path)

    raise CoercionError(f'Type "{type_}" is not an input type{_describe(path)}.')


def _coerce_input_object(type_: InputObject, value: Any, path: tuple) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise CoercionError(f'Expected type "{type_.name}" to be an object{_describe(path)}.')

    for name in value:
        if name not in type_.fields:
            raise CoercionError(f'Field "{name}" is not defined by type "{type_.name}"{_describe(path)}.')

    if type_.one_of:
        supplied = [name for name, item in value.items() if item is not None]
        if len(value) != 1 or len(supplied) != 1:
            raise CoercionError(
                f'OneOf Input Object "{type_.name}" must specify exactly one non-null key{_describe(path)}.'
            )

    result: dict[str, Any] = {}
    for name, field_type in type_.fields.items():
        if name in value:
            result[name] = coerce_value(field_type, value[name], (*path, name))
        elif name in type_.defaults:
            result[name] = coerce_value(field_type, type_.defaults[name], (*path, name))
        elif isinstance(field_type, NonNull):
            raise CoercionError(
                f'Field "{name}" of required type "{field_type}" was not provided{_describe(path)}.'
            )
    return result


def coerce_arguments(field: Field, raw_args: dict[str, Any]) -> Any:
    """Coerce the raw arguments of one field selection.

    Unknown names are rejected, defaults applied and required arguments
    enforced. The field's parse_arguments hook, if any, gets the final dict.
    """
    for name in raw_args:
        if name not in field.args:
            raise CoercionError(f'Unknown argument "{name}".')

    result: dict[str, Any] = {}
    for name, arg_type in field.args.items():
        if name in raw_args:
            result[name] = coerce_value(arg_type, raw_args[name], (name,))
        elif name in field.defaults:
            result[name] = coerce_value(arg_type, field.defaults[name], (name,))
        elif isinstance(arg_type, NonNull):
            raise CoercionError(f'Argument "{name}" of required type "{arg_type}" was not provided.')

    if field.parse_arguments is not None:
        try:
            return field.parse_arguments(result)
        except (ValueError, TypeError) as exc:
            raise CoercionError(f"Invalid arguments: {exc}") from exc
    return result


def selection_arguments(selection: Selection, field: Field) -> Any:
    """Coerced arguments of a selection, computed once per selection node."""
    return selection.coerced_args(field, lambda: coerce_arguments(field, selection.args))
