"""Error model for parsing, validation and execution.

Every error raised by the engine derives from GraphQLError so callers can turn
it into a wire payload with to_dict() regardless of the stage it came from.
"""

from typing import Any

PathSegment = str | int


class GraphQLError(Exception):
    """Base exception for all engine errors."""

    default_code = "Unknown"

    def __init__(
        self,
        message: str,
        *,
        path: list[PathSegment] | None = None,
        locations: list[dict[str, int]] | None = None,
        extensions: dict[str, Any] | None = None,
    ):
        self.message = message
        self.path = list(path) if path is not None else None
        self.locations = locations
        self.extensions = extensions if extensions is not None else {"code": self.default_code}
        super().__init__(message)

    @property
    def code(self) -> str | None:
        return self.extensions.get("code")

    def to_dict(self) -> dict[str, Any]:
        """Return the error in the shape clients receive."""
        result: dict[str, Any] = {"message": self.message}
        if self.locations:
            result["locations"] = self.locations
        if self.path is not None:
            result["path"] = self.path
        if self.extensions:
            result["extensions"] = self.extensions
        return result


class ParseError(GraphQLError):
    """Raised for malformed query documents.

    Always fatal to the whole request: nothing is executed.
    """

    default_code = "GRAPHQL_PARSE_FAILED"

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        self.line = line
        self.column = column
        locations = [{"line": line, "column": column}] if line is not None else None
        super().__init__(message, locations=locations)

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} ({self.line}:{self.column})"


class ValidationError(GraphQLError):
    """A single violation of a validation rule."""

    default_code = "GRAPHQL_VALIDATION_FAILED"

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        locations = [{"line": line, "column": column}] if line is not None else None
        super().__init__(message, locations=locations)


class ValidationErrors(GraphQLError):
    """Raised by the validator with every violation it found."""

    default_code = "GRAPHQL_VALIDATION_FAILED"

    def __init__(self, errors: list[ValidationError]):
        self.errors = errors
        super().__init__("; ".join(e.message for e in errors))


class CoercionError(GraphQLError):
    """Raised when an argument value does not fit its declared type."""

    default_code = "BAD_USER_INPUT"


class ExecutionError(GraphQLError):
    """An error attached to a position of the response tree."""

    def __init__(
        self,
        message: str,
        path: list[PathSegment] | None = None,
        *,
        original_error: BaseException | None = None,
        extensions: dict[str, Any] | None = None,
    ):
        self.original_error = original_error
        super().__init__(message, path=path, extensions=extensions)

    @classmethod
    def wrap(cls, exc: BaseException, path: list[PathSegment]) -> "ExecutionError":
        """Wrap a resolver exception, keeping an existing path if it has one.

        A path-less ExecutionError is copied rather than updated, since the
        same instance may be reported for several list elements.
        """
        if isinstance(exc, ExecutionError):
            if exc.path is not None:
                return exc
            return cls(
                exc.message,
                path,
                original_error=exc.original_error,
                extensions=dict(exc.extensions),
            )
        if isinstance(exc, GraphQLError):
            return cls(
                exc.message,
                path,
                original_error=exc,
                extensions=dict(exc.extensions),
            )
        return cls(str(exc) or type(exc).__name__, path, original_error=exc)
