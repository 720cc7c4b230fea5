"""Executor for validated GraphQL operations.

Walks a selection set against a root value, invoking resolvers and batch
resolvers, and assembles an ordered response plus path-tagged errors.

Sibling fields, list elements and batch groups run as concurrent asyncio
tasks; results are always assembled in selection order. Errors in a
non-null position propagate (as exceptions) up to the nearest nullable
field or list element, which becomes null and records the error.
"""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .coercion import selection_arguments
from .config import EngineConfig
from .context import ExecutionContext
from .document import Directive, Document, OperationType, Selection, SelectionSet
from .errors import ExecutionError, GraphQLError, PathSegment
from .types import (
    Enum,
    Field,
    GraphQLType,
    Interface,
    List,
    NamedType,
    NonNull,
    Object,
    Scalar,
    Union,
    collect_types,
    named_type,
    nullable_type,
    possible_types,
)

logger = logging.getLogger(__name__)

# Marks a field whose value has not been fetched by a batch call
_UNRESOLVED = object()

FieldMap = dict[str, list[Selection]]


@dataclass
class ExecutionResult:
    """Response data (None when null reached the root) plus errors."""
    data: dict[str, Any] | None
    errors: list[GraphQLError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the result in wire shape; errors is None when empty."""
        return {
            "data": self.data,
            "errors": [e.to_dict() for e in self.errors] or None,
        }


@dataclass
class _ExecutionState:
    ctx: ExecutionContext
    types: dict[str, NamedType]
    errors: list[GraphQLError] = field(default_factory=list)


def should_include(directives: list[Directive]) -> bool:
    """Evaluate @skip and @include; both may be present."""
    for directive in directives:
        if directive.name == "skip" and directive.args.get("if") is True:
            return False
        if directive.name == "include" and directive.args.get("if") is False:
            return False
    return True


def default_resolver(source: Any, name: str) -> Any:
    """Read a field from a mapping key or an attribute of the source."""
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


def _format_path(path: list[PathSegment]) -> str:
    return ".".join(str(p) for p in path)


def _merge_selection_sets(selections: list[Selection]) -> SelectionSet | None:
    """Combine the sub-selections of selections sharing a response key."""
    sets = [s.selection_set for s in selections if s.selection_set is not None]
    if not sets:
        return None
    if len(sets) == 1:
        return sets[0]
    merged = SelectionSet(line=sets[0].line, column=sets[0].column)
    for selection_set in sets:
        merged.items.extend(selection_set.items)
    return merged


def _raise_first(results: list[Any]) -> None:
    for result in results:
        if isinstance(result, BaseException):
            raise result


class Executor:
    """Executes operations against a type graph.

    Examples:
        executor = Executor()
        result = await executor.execute(ctx, schema.query, root, document)

        async for event in executor.subscribe(ctx, schema.subscription, root, document):
            ...
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()

    def _new_state(self, ctx: ExecutionContext | None, root_type: Object) -> _ExecutionState:
        return _ExecutionState(ctx=ctx or ExecutionContext(), types=collect_types(root_type))

    async def execute(
        self,
        ctx: ExecutionContext | None,
        root_type: Object,
        root_value: Any,
        document: Document,
        operation_name: str | None = None,
    ) -> ExecutionResult:
        """Execute one operation of a validated document.

        Args:
            ctx: Context passed to every resolver (a fresh one if None)
            root_type: Root object type matching the operation kind
            root_value: Source value for the root fields
            document: Parsed and validated document
            operation_name: Operation to run when the document has several

        Returns:
            ExecutionResult with ordered data and the collected errors
        """
        try:
            operation = document.get_operation(operation_name)
        except GraphQLError as exc:
            return ExecutionResult(None, [exc])

        state = self._new_state(ctx, root_type)
        serial = operation.kind is OperationType.MUTATION and self.config.serial_mutations
        logger.debug("Executing %s %s", operation.kind.value, operation.name or "<anonymous>")

        try:
            fields = self._collect_fields(state, root_type, operation.selection_set)
            data = await self._execute_fields(state, root_type, root_value, fields, [], serial=serial)
        except ExecutionError as exc:
            # A non-null error reached the root
            state.errors.append(exc)
            data = None

        return ExecutionResult(data, state.errors)

    async def subscribe(
        self,
        ctx: ExecutionContext | None,
        root_type: Object,
        root_value: Any,
        document: Document,
        operation_name: str | None = None,
    ) -> AsyncIterator[ExecutionResult]:
        """Execute a subscription, yielding one result per source event.

        The root field's resolver returns an iterable or async iterable of
        events; every event is completed against the field's selection set.
        """
        try:
            operation = document.get_operation(operation_name)
        except GraphQLError as exc:
            yield ExecutionResult(None, [exc])
            return

        state = self._new_state(ctx, root_type)
        fields = self._collect_fields(state, root_type, operation.selection_set)
        if len(fields) != 1:
            yield ExecutionResult(None, [ExecutionError("subscription must select exactly one field")])
            return

        key, selections = next(iter(fields.items()))
        selection = selections[0]
        path: list[PathSegment] = [key]
        root_field = root_type.fields.get(selection.name)
        if root_field is None:
            yield ExecutionResult(
                None,
                [ExecutionError(f'Cannot query field "{selection.name}" on type "{root_type.name}".', path)],
            )
            return
        sub_selection = _merge_selection_sets(selections)

        try:
            args = selection_arguments(selection, root_field)
            stream = await self._resolve_field(state, root_field, selection.name, root_value, args, sub_selection, path)
            events = self._event_source(stream, path)
        except Exception as exc:
            yield ExecutionResult(None, [ExecutionError.wrap(exc, path)])
            return

        try:
            while True:
                try:
                    event = await events.__anext__()
                except StopAsyncIteration:
                    break
                except Exception as exc:
                    # A failing source ends the stream
                    yield ExecutionResult(None, [ExecutionError.wrap(exc, path)])
                    break
                if state.ctx.cancelled:
                    logger.debug("Subscription %s cancelled", key)
                    break
                yield await self._complete_event(state, root_field, sub_selection, event, key, path)
        finally:
            if hasattr(events, "aclose"):
                await events.aclose()

    async def _complete_event(
        self,
        state: _ExecutionState,
        root_field: Field,
        sub_selection: SelectionSet | None,
        event: Any,
        key: str,
        path: list[PathSegment],
    ) -> ExecutionResult:
        event_state = _ExecutionState(ctx=state.ctx, types=state.types)
        try:
            value = await self._complete_value(event_state, root_field.type, sub_selection, event, path)
            data = {key: value}
        except Exception as exc:
            try:
                data = {key: self._handle_error(event_state, exc, root_field.type, path)}
            except ExecutionError as error:
                event_state.errors.append(error)
                data = None
        return ExecutionResult(data, event_state.errors)

    def _event_source(self, stream: Any, path: list[PathSegment]) -> AsyncIterator[Any]:
        if hasattr(stream, "__aiter__"):
            return stream.__aiter__()
        if isinstance(stream, Iterable) and not isinstance(stream, (str, bytes, Mapping)):
            return self._iterate_sync(stream)
        raise ExecutionError(
            f"Subscription field must return an iterable, got {type(stream).__name__}.", path
        )

    async def _iterate_sync(self, stream: Iterable[Any]) -> AsyncIterator[Any]:
        for event in stream:
            yield event

    # -- field collection ----------------------------------------------------

    def _collect_fields(
        self,
        state: _ExecutionState,
        object_type: Object,
        selection_set: SelectionSet | None,
    ) -> FieldMap:
        """Group selections by response key in first-occurrence order."""
        fields: FieldMap = {}
        if selection_set is not None:
            self._collect_into(state, object_type, selection_set, fields, set())
        return fields

    def _collect_into(
        self,
        state: _ExecutionState,
        object_type: Object,
        selection_set: SelectionSet,
        fields: FieldMap,
        visited: set[str],
    ) -> None:
        for item in selection_set.items:
            if not should_include(item.directives):
                continue
            if isinstance(item, Selection):
                fields.setdefault(item.response_key, []).append(item)
                continue
            fragment = item.fragment
            if fragment is None:
                continue
            if not item.inline:
                if item.name in visited:
                    continue
                visited.add(item.name)
            if self._fragment_applies(state, fragment.on, object_type):
                self._collect_into(state, object_type, fragment.selection_set, fields, visited)

    def _fragment_applies(self, state: _ExecutionState, on: str | None, object_type: Object) -> bool:
        if on is None or on == object_type.name or on in object_type.interfaces:
            return True
        condition = state.types.get(on)
        if isinstance(condition, (Interface, Union)):
            return object_type.name in condition.types
        return False

    # -- fields --------------------------------------------------------------

    async def _execute_fields(
        self,
        state: _ExecutionState,
        object_type: Object,
        source: Any,
        fields: FieldMap,
        path: list[PathSegment],
        *,
        serial: bool = False,
        prefetched: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        keys = list(fields)
        prefetched = prefetched or {}

        if serial:
            results = []
            for key in keys:
                results.append(
                    await self._execute_field(state, object_type, source, fields[key], [*path, key])
                )
        else:
            results = await asyncio.gather(
                *(
                    self._execute_field(
                        state,
                        object_type,
                        source,
                        fields[key],
                        [*path, key],
                        prefetched.get(key, _UNRESOLVED),
                    )
                    for key in keys
                ),
                return_exceptions=True,
            )
            _raise_first(results)

        return dict(zip(keys, results))

    async def _execute_field(
        self,
        state: _ExecutionState,
        parent_type: Object,
        source: Any,
        selections: list[Selection],
        path: list[PathSegment],
        resolved: Any = _UNRESOLVED,
    ) -> Any:
        selection = selections[0]
        if selection.name == "__typename":
            return parent_type.name

        field_def = parent_type.fields.get(selection.name)
        if field_def is None:
            state.errors.append(
                ExecutionError(f'Cannot query field "{selection.name}" on type "{parent_type.name}".', path)
            )
            return None

        sub_selection = _merge_selection_sets(selections)
        try:
            if resolved is _UNRESOLVED:
                args = selection_arguments(selection, field_def)
                resolved = await self._resolve_field(
                    state, field_def, selection.name, source, args, sub_selection, path
                )
            elif isinstance(resolved, Exception):
                raise resolved
            return await self._complete_value(state, field_def.type, sub_selection, resolved, path)
        except Exception as exc:
            return self._handle_error(state, exc, field_def.type, path)

    def _handle_error(
        self,
        state: _ExecutionState,
        exc: Exception,
        type_: GraphQLType,
        path: list[PathSegment],
    ) -> None:
        """Record an error at a nullable position, or propagate it upward."""
        if not isinstance(exc, GraphQLError):
            logger.debug("Resolver error at %s", _format_path(path), exc_info=exc)
        error = ExecutionError.wrap(exc, path)
        if isinstance(type_, NonNull):
            raise error
        state.errors.append(error)
        return None

    def _check_cancelled(self, state: _ExecutionState, path: list[PathSegment] | None) -> None:
        if state.ctx.cancelled:
            raise ExecutionError("execution cancelled", path, extensions={"code": "Canceled"})

    async def _call(self, field_def: Field, fn, *args) -> Any:
        if (
            field_def.expensive
            and self.config.run_expensive_in_thread
            and not inspect.iscoroutinefunction(fn)
        ):
            result = await asyncio.to_thread(fn, *args)
        else:
            result = fn(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _run_lazy(self, state: _ExecutionState, field_def: Field, producer: Any) -> Any:
        """Run the producer returned by a lazy field, exactly once."""
        if field_def.lazy_resolver is not None:
            result = field_def.lazy_resolver(state.ctx, producer)
        elif callable(producer):
            result = producer()
        else:
            result = producer
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _resolve_field(
        self,
        state: _ExecutionState,
        field_def: Field,
        field_name: str,
        source: Any,
        args: Any,
        sub_selection: SelectionSet | None,
        path: list[PathSegment],
    ) -> Any:
        self._check_cancelled(state, path)

        if field_def.resolver is not None:
            value = await self._call(field_def, field_def.resolver, state.ctx, source, args, sub_selection)
        elif field_def.batch_resolver is not None:
            values = await self._call(
                field_def, field_def.batch_resolver, state.ctx, [source], args, sub_selection
            )
            values = list(values)
            if len(values) != 1:
                raise ExecutionError(
                    f"Batch resolver returned {len(values)} values for 1 source.", path
                )
            value = values[0]
            if isinstance(value, Exception):
                raise value
        else:
            value = default_resolver(source, field_name)

        if field_def.lazy_execution:
            value = await self._run_lazy(state, field_def, value)
        return value

    # -- values --------------------------------------------------------------

    async def _complete_value(
        self,
        state: _ExecutionState,
        type_: GraphQLType,
        selection_set: SelectionSet | None,
        value: Any,
        path: list[PathSegment],
    ) -> Any:
        if isinstance(type_, NonNull):
            completed = await self._complete_value(state, type_.of_type, selection_set, value, path)
            if completed is None:
                raise ExecutionError(
                    f'Cannot return null for non-nullable type "{type_}" at "{_format_path(path)}".', path
                )
            return completed

        if value is None:
            return None

        if isinstance(type_, List):
            return await self._complete_list(state, type_, selection_set, value, path)

        if isinstance(type_, (Scalar, Enum)):
            try:
                return type_.serialize(value)
            except (ValueError, TypeError) as exc:
                raise ExecutionError(str(exc), path, original_error=exc) from exc

        if isinstance(type_, Object):
            fields = self._collect_fields(state, type_, selection_set)
            return await self._execute_fields(state, type_, value, fields, path)

        if isinstance(type_, (Interface, Union)):
            object_type = self._resolve_abstract_type(type_, value, path)
            fields = self._collect_fields(state, object_type, selection_set)
            return await self._execute_fields(state, object_type, value, fields, path)

        raise ExecutionError(f'Type "{type_}" cannot be used as an output type.', path)

    def _resolve_abstract_type(
        self,
        abstract: Interface | Union,
        value: Any,
        path: list[PathSegment],
    ) -> Object:
        """Find the concrete object type of a value returned for an interface or union."""
        candidates = possible_types(abstract)
        resolved = abstract.resolve_type(value) if abstract.resolve_type is not None else None

        if resolved is None:
            if isinstance(value, Mapping):
                resolved = value.get("__typename")
            else:
                resolved = getattr(value, "__typename", None)
        if resolved is None:
            for candidate in candidates.values():
                if candidate.is_type_of is not None and candidate.is_type_of(value):
                    resolved = candidate
                    break
        if resolved is None:
            resolved = type(value).__name__

        name = resolved.name if isinstance(resolved, Object) else str(resolved)
        object_type = candidates.get(name)
        if object_type is None:
            raise ExecutionError(
                f'Abstract type "{abstract.name}" must resolve to one of its possible types, '
                f'got "{name}".',
                path,
            )
        return object_type

    async def _complete_list(
        self,
        state: _ExecutionState,
        list_type: List,
        selection_set: SelectionSet | None,
        value: Any,
        path: list[PathSegment],
    ) -> list[Any]:
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
            raise ExecutionError(
                f'Expected a list at "{_format_path(path)}", got {type(value).__name__}.', path
            )

        items = list(value)
        item_type = list_type.of_type
        if self._uses_batch_resolvers(state, item_type, selection_set):
            return await self._complete_batched_list(state, item_type, selection_set, items, path)

        results = await asyncio.gather(
            *(
                self._complete_list_item(state, item_type, selection_set, item, [*path, index])
                for index, item in enumerate(items)
            ),
            return_exceptions=True,
        )
        _raise_first(results)
        return results

    async def _complete_list_item(
        self,
        state: _ExecutionState,
        item_type: GraphQLType,
        selection_set: SelectionSet | None,
        item: Any,
        path: list[PathSegment],
    ) -> Any:
        try:
            if isinstance(item, Exception):
                raise item
            return await self._complete_value(state, item_type, selection_set, item, path)
        except Exception as exc:
            return self._handle_error(state, exc, item_type, path)

    # -- batching ------------------------------------------------------------

    def _uses_batch_resolvers(
        self,
        state: _ExecutionState,
        item_type: GraphQLType,
        selection_set: SelectionSet | None,
    ) -> bool:
        # Nested lists batch at their innermost level
        if selection_set is None or isinstance(nullable_type(item_type), List):
            return False
        for object_type in possible_types(item_type).values():
            for selections in self._collect_fields(state, object_type, selection_set).values():
                field_def = object_type.fields.get(selections[0].name)
                if field_def is not None and field_def.batch_resolver is not None:
                    return True
        return False

    async def _complete_batched_list(
        self,
        state: _ExecutionState,
        item_type: GraphQLType,
        selection_set: SelectionSet,
        items: list[Any],
        path: list[PathSegment],
    ) -> list[Any]:
        """Complete a list of objects, issuing one batch call per (type, field).

        Elements are grouped by concrete type; every batch-resolved field of a
        group is fetched for all of its elements at once and zipped back, so
        one element's error never affects another's.
        """
        abstract = named_type(item_type)
        groups: dict[str, tuple[Object, list[int]]] = {}
        object_types: dict[int, Object] = {}
        failed: dict[int, Exception] = {}

        for index, item in enumerate(items):
            if item is None or isinstance(item, Exception):
                continue
            try:
                if isinstance(abstract, Object):
                    object_type = abstract
                else:
                    object_type = self._resolve_abstract_type(abstract, item, [*path, index])
            except ExecutionError as exc:
                failed[index] = exc
                continue
            object_types[index] = object_type
            groups.setdefault(object_type.name, (object_type, []))[1].append(index)

        group_fields = {
            name: self._collect_fields(state, object_type, selection_set)
            for name, (object_type, _) in groups.items()
        }

        prefetched: dict[int, dict[str, Any]] = {index: {} for index in object_types}
        calls = []
        targets = []
        for name, (object_type, indices) in groups.items():
            for key, selections in group_fields[name].items():
                field_def = object_type.fields.get(selections[0].name)
                if field_def is None or field_def.batch_resolver is None:
                    continue
                sources = [items[i] for i in indices]
                calls.append(self._resolve_batch(state, field_def, selections, sources, path))
                targets.append((key, indices))

        batch_results = await asyncio.gather(*calls)
        for (key, indices), values in zip(targets, batch_results):
            for index, value in zip(indices, values):
                prefetched[index][key] = value

        async def complete(index: int, item: Any) -> Any:
            item_path = [*path, index]
            if index in failed:
                return self._handle_error(state, failed[index], item_type, item_path)
            object_type = object_types.get(index)
            if object_type is None:
                return await self._complete_list_item(state, item_type, selection_set, item, item_path)
            try:
                return await self._execute_fields(
                    state,
                    object_type,
                    item,
                    group_fields[object_type.name],
                    item_path,
                    prefetched=prefetched[index],
                )
            except Exception as exc:
                return self._handle_error(state, exc, item_type, item_path)

        results = await asyncio.gather(
            *(complete(index, item) for index, item in enumerate(items)),
            return_exceptions=True,
        )
        _raise_first(results)
        return results

    async def _resolve_batch(
        self,
        state: _ExecutionState,
        field_def: Field,
        selections: list[Selection],
        sources: list[Any],
        path: list[PathSegment],
    ) -> list[Any]:
        """Call a batch resolver once; failures become per-element errors."""
        selection = selections[0]
        try:
            self._check_cancelled(state, None)
            args = selection_arguments(selection, field_def)
            values = await self._call(
                field_def,
                field_def.batch_resolver,
                state.ctx,
                sources,
                args,
                _merge_selection_sets(selections),
            )
            values = list(values)
            if len(values) != len(sources):
                raise ExecutionError(
                    f'Batch resolver for "{selection.name}" returned {len(values)} values '
                    f"for {len(sources)} sources."
                )
        except Exception as exc:
            if not isinstance(exc, GraphQLError):
                logger.debug("Batch resolver error under %s", _format_path(path), exc_info=exc)
            return [exc] * len(sources)

        if field_def.lazy_execution:
            resolved = []
            for value in values:
                try:
                    resolved.append(
                        value if isinstance(value, Exception) else await self._run_lazy(state, field_def, value)
                    )
                except Exception as exc:
                    resolved.append(exc)
            values = resolved
        return values
