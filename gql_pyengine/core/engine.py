"""Request pipeline: hooks, parse, validate, execute.

Example usage:
    from gql_pyengine.core import GraphQLEngine, Schema

    engine = GraphQLEngine(schema)
    response = await engine.execute("{ hello }")
    response.to_dict()  # {"data": {"hello": "world"}, "errors": None}
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from .config import EngineConfig
from .context import ExecutionContext
from .document import Document, OperationType
from .errors import GraphQLError, ValidationErrors
from .executor import ExecutionResult, Executor
from .hooks import HookRunner
from .models import GraphQLRequest, GraphQLResponse
from .parser import parse
from .types import Schema
from .validator import validate_document

logger = logging.getLogger(__name__)


def _request_errors(exc: GraphQLError) -> list[GraphQLError]:
    if isinstance(exc, ValidationErrors):
        return list(exc.errors)
    return [exc]


def _prepare(
    schema: Schema,
    source: str,
    variables: dict[str, Any] | None,
    operation_name: str | None,
    config: EngineConfig,
) -> Document:
    """Parse and validate; raises GraphQLError for request-level failures."""
    document = parse(source, variables, operation_name)
    validate_document(schema, document, operation_name, max_depth=config.max_depth)
    return document


async def graphql(
    schema: Schema,
    source: str,
    variables: dict[str, Any] | None = None,
    *,
    operation_name: str | None = None,
    root_value: Any = None,
    context: ExecutionContext | None = None,
    config: EngineConfig | None = None,
) -> ExecutionResult:
    """Parse, validate and execute a query or mutation.

    Args:
        schema: Schema to run against
        source: Query document text
        variables: Variable values keyed by name (without "$")
        operation_name: Operation to run when the document has several
        root_value: Source value passed to root resolvers
        context: Context handed to resolvers; created from variables if None
        config: Engine options

    Returns:
        ExecutionResult; data is None when parsing or validation failed
    """
    config = config or EngineConfig()
    try:
        document = _prepare(schema, source, variables, operation_name, config)
    except GraphQLError as exc:
        logger.debug("Rejected request: %s", exc)
        return ExecutionResult(None, _request_errors(exc))

    operation = document.get_operation(operation_name)
    if operation.kind is OperationType.SUBSCRIPTION:
        return ExecutionResult(None, [GraphQLError("subscriptions must be run with subscribe()")])

    ctx = context or ExecutionContext(variables=variables)
    executor = Executor(config)
    return await executor.execute(
        ctx, schema.root_type(operation.kind), root_value, document, operation_name
    )


class GraphQLEngine:
    """Executes requests against a schema with configurable hooks.

    Examples:
        engine = GraphQLEngine(schema, EngineConfig(max_depth=10))
        engine.hooks.add_post_hook(MaskErrorsHook())

        response = await engine.execute("{ hero { name } }")
        response = await engine.execute_request(GraphQLRequest(query="{ hello }"))

        async for event in engine.subscribe("subscription { ticks }"):
            ...
    """

    def __init__(
        self,
        schema: Schema,
        config: EngineConfig | None = None,
        hooks: HookRunner | None = None,
    ):
        self.schema = schema
        self.config = config or EngineConfig()
        self.hooks = hooks or HookRunner()

    async def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        *,
        operation_name: str | None = None,
        root_value: Any = None,
        context: ExecutionContext | None = None,
    ) -> GraphQLResponse:
        """Execute a query or mutation given as text."""
        request = GraphQLRequest(query=query, variables=variables, operation_name=operation_name)
        return await self.execute_request(request, root_value=root_value, context=context)

    async def execute_request(
        self,
        request: GraphQLRequest,
        *,
        root_value: Any = None,
        context: ExecutionContext | None = None,
    ) -> GraphQLResponse:
        """Run a wire request through the hooks and the executor."""
        request = self.hooks.run_pre_hooks(request)
        result = await graphql(
            self.schema,
            request.query,
            request.variables,
            operation_name=request.operation_name,
            root_value=root_value,
            context=context,
            config=self.config,
        )
        response = GraphQLResponse.from_errors(result.data, result.errors)
        return self.hooks.run_post_hooks(request, response)

    async def subscribe(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        *,
        operation_name: str | None = None,
        root_value: Any = None,
        context: ExecutionContext | None = None,
    ) -> AsyncIterator[GraphQLResponse]:
        """Run a subscription, yielding one response per source event.

        A request that fails to parse or validate yields a single response
        carrying the errors.
        """
        request = GraphQLRequest(query=query, variables=variables, operation_name=operation_name)
        request = self.hooks.run_pre_hooks(request)
        try:
            document = _prepare(
                self.schema, request.query, request.variables, request.operation_name, self.config
            )
            operation = document.get_operation(request.operation_name)
            if operation.kind is not OperationType.SUBSCRIPTION:
                raise GraphQLError(f"expected a subscription, got a {operation.kind.value}")
        except GraphQLError as exc:
            response = GraphQLResponse.from_errors(None, _request_errors(exc))
            yield self.hooks.run_post_hooks(request, response)
            return

        ctx = context or ExecutionContext(variables=request.variables)
        executor = Executor(self.config)
        async for result in executor.subscribe(
            ctx, self.schema.subscription, root_value, document, request.operation_name
        ):
            response = GraphQLResponse.from_errors(result.data, result.errors)
            yield self.hooks.run_post_hooks(request, response)
