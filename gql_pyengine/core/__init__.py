"""Core modules for the GraphQL query engine."""

from .config import EngineConfig
from .context import ExecutionContext
from .document import (
    Document,
    EnumValue,
    FragmentDefinition,
    FragmentSpread,
    OperationDefinition,
    OperationType,
    Selection,
    SelectionSet,
    StringValue,
)
from .engine import GraphQLEngine, graphql
from .errors import (
    CoercionError,
    ExecutionError,
    GraphQLError,
    ParseError,
    ValidationError,
    ValidationErrors,
)
from .executor import ExecutionResult, Executor
from .hooks import (
    DefaultVariablesHook,
    HookRunner,
    MaskErrorsHook,
    PostExecuteHook,
    PreExecuteHook,
)
from .models import ErrorPayload, GraphQLRequest, GraphQLResponse
from .parser import QueryParser, parse
from .scalars import (
    ID,
    Boolean,
    DateHandler,
    DateTimeHandler,
    Float,
    Int,
    JSONHandler,
    ScalarHandler,
    ScalarRegistry,
    String,
    UUIDHandler,
)
from .types import (
    Enum,
    Field,
    InputObject,
    Interface,
    List,
    NonNull,
    Object,
    Scalar,
    Schema,
    TypeKind,
    Union,
    implement,
)
from .validator import validate_document, validate_query

__all__ = [
    # Types
    "TypeKind",
    "Scalar",
    "Enum",
    "Field",
    "Object",
    "Interface",
    "Union",
    "InputObject",
    "List",
    "NonNull",
    "Schema",
    "implement",
    # Scalars
    "String",
    "Int",
    "Float",
    "Boolean",
    "ID",
    "ScalarHandler",
    "ScalarRegistry",
    "DateTimeHandler",
    "DateHandler",
    "UUIDHandler",
    "JSONHandler",
    # Document
    "Document",
    "EnumValue",
    "FragmentDefinition",
    "FragmentSpread",
    "OperationDefinition",
    "OperationType",
    "Selection",
    "SelectionSet",
    "StringValue",
    # Parser
    "QueryParser",
    "parse",
    # Validator
    "validate_document",
    "validate_query",
    # Executor
    "ExecutionContext",
    "ExecutionResult",
    "Executor",
    # Errors
    "GraphQLError",
    "ParseError",
    "ValidationError",
    "ValidationErrors",
    "CoercionError",
    "ExecutionError",
    # Hooks
    "PreExecuteHook",
    "PostExecuteHook",
    "DefaultVariablesHook",
    "MaskErrorsHook",
    "HookRunner",
    # Engine
    "EngineConfig",
    "ErrorPayload",
    "GraphQLRequest",
    "GraphQLResponse",
    "GraphQLEngine",
    "graphql",
]
