"""Execution hooks for customizing request handling.

Provides protocols for pre- and post-execution hooks that can rewrite the
request before it is parsed or transform the response before it is returned.

Example usage:
    from gql_pyengine.core.hooks import PreExecuteHook, PostExecuteHook

    # Pre-execution hook to pin the operation
    class OnlyNamedOperations(PreExecuteHook):
        def pre_execute(self, request):
            if request.operation_name is None:
                request.operation_name = "Main"
            return request

    # Post-execution hook to drop error locations
    class StripLocations(PostExecuteHook):
        def post_execute(self, request, response):
            for error in response.errors or []:
                error.locations = None
            return response
"""

from typing import Any, Protocol, runtime_checkable

from .models import GraphQLRequest, GraphQLResponse


@runtime_checkable
class PreExecuteHook(Protocol):
    """Protocol for pre-execution hooks.

    Pre-execution hooks receive the request before parsing and can modify
    or replace it. The returned request is the one that gets executed.

    Example:
        class AddViewer(PreExecuteHook):
            def pre_execute(self, request: GraphQLRequest) -> GraphQLRequest:
                request.variables = {**(request.variables or {}), "viewer": "me"}
                return request
    """

    def pre_execute(self, request: GraphQLRequest) -> GraphQLRequest:
        """Called before the query is parsed.

        Args:
            request: The incoming request

        Returns:
            The (possibly modified) request to execute
        """
        ...


@runtime_checkable
class PostExecuteHook(Protocol):
    """Protocol for post-execution hooks.

    Post-execution hooks receive the finished response, including responses
    for requests that failed to parse or validate.
    """

    def post_execute(self, request: GraphQLRequest, response: GraphQLResponse) -> GraphQLResponse:
        """Called after execution.

        Args:
            request: The request that was executed
            response: The response produced for it

        Returns:
            The (possibly transformed) response to return
        """
        ...


class DefaultVariablesHook:
    """Built-in hook to fill in variables the client did not send.

    Example:
        hook = DefaultVariablesHook({"first": 10})
    """

    def __init__(self, defaults: dict[str, Any]):
        self.defaults = defaults

    def pre_execute(self, request: GraphQLRequest) -> GraphQLRequest:
        """Merge defaults under the request's own variables."""
        variables = {**self.defaults, **(request.variables or {})}
        return request.model_copy(update={"variables": variables})


class MaskErrorsHook:
    """Built-in hook to hide messages of unexpected resolver errors.

    Errors whose code is "Unknown" come from arbitrary exceptions and may
    leak internals; their message is replaced.

    Example:
        hook = MaskErrorsHook("Internal server error")
    """

    def __init__(self, message: str = "Internal server error", code: str = "Unknown"):
        self.message = message
        self.code = code

    def post_execute(self, _request: GraphQLRequest, response: GraphQLResponse) -> GraphQLResponse:
        """Replace the message of every error carrying the masked code."""
        if not response.errors:
            return response
        errors = [
            e.model_copy(update={"message": self.message})
            if (e.extensions or {}).get("code") == self.code
            else e
            for e in response.errors
        ]
        return response.model_copy(update={"errors": errors})


class HookRunner:
    """Runs a collection of hooks in order."""

    def __init__(self):
        self.pre_hooks: list[PreExecuteHook] = []
        self.post_hooks: list[PostExecuteHook] = []

    def add_pre_hook(self, hook: PreExecuteHook):
        """Add a pre-execution hook."""
        self.pre_hooks.append(hook)

    def add_post_hook(self, hook: PostExecuteHook):
        """Add a post-execution hook."""
        self.post_hooks.append(hook)

    def run_pre_hooks(self, request: GraphQLRequest) -> GraphQLRequest:
        """Run all pre-execution hooks in order."""
        for hook in self.pre_hooks:
            request = hook.pre_execute(request)
        return request

    def run_post_hooks(self, request: GraphQLRequest, response: GraphQLResponse) -> GraphQLResponse:
        """Run all post-execution hooks in order."""
        for hook in self.post_hooks:
            response = hook.post_execute(request, response)
        return response
