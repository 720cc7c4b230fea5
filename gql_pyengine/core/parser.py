"""Recursive-descent parser for GraphQL query documents.

Parses query text into a Document and substitutes variable references with
the caller-supplied values, so the selections carry raw argument trees that
are ready for schema-aware coercion.
"""

import logging
from dataclasses import dataclass
from typing import Any

from .document import (
    Directive,
    Document,
    EnumValue,
    FragmentDefinition,
    FragmentSpread,
    OperationDefinition,
    OperationType,
    Selection,
    SelectionSet,
    StringValue,
    TypeRef,
    VariableDefinition,
)
from .errors import ParseError
from .lexer import Lexer, Token, TokenKind

logger = logging.getLogger(__name__)

OPERATION_KEYWORDS = {t.value: t for t in OperationType}
TYPE_SYSTEM_KEYWORDS = {
    "schema", "scalar", "type", "interface", "union", "enum", "input", "directive", "extend",
}

# Marks a variable that was neither supplied nor defaulted but is nullable
_MISSING = object()


@dataclass
class Variable:
    """Placeholder for a $variable until substitution."""
    name: str
    line: int
    column: int


class QueryParser:
    """Parses one query document.

    Example:
        parser = QueryParser("query Q($id: ID!) { user(id: $id) { name } }", {"id": "1"})
        document = parser.parse_document()
    """

    def __init__(
        self,
        source: str,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
    ):
        if not isinstance(source, str):
            raise ParseError("query source must be a string")
        self.lexer = Lexer(source)
        self.variables = variables or {}
        self.operation_name = operation_name

    def parse_document(self) -> Document:
        """Parse the whole source and return the Document."""
        document = Document()
        token = self.lexer.advance()

        while token.kind is not TokenKind.EOF:
            definition = self._parse_definition()
            if isinstance(definition, FragmentDefinition):
                if definition.name in document.fragments:
                    raise ParseError(
                        f'There can be only one fragment named "{definition.name}".',
                        definition.line,
                        definition.column,
                    )
                document.fragments[definition.name] = definition
            else:
                document.operations.append(definition)
            token = self.lexer.token

        self._check_operations(document)
        self._link_fragment_spreads(document)
        self._substitute_variables(document)

        logger.debug(
            "Parsed document with %d operation(s) and %d fragment(s)",
            len(document.operations),
            len(document.fragments),
        )
        return document

    # -- token helpers -------------------------------------------------------

    @property
    def _token(self) -> Token:
        return self.lexer.token

    def _peek(self, kind: TokenKind) -> bool:
        return self._token.kind is kind

    def _skip(self, kind: TokenKind) -> bool:
        if self._token.kind is kind:
            self.lexer.advance()
            return True
        return False

    def _expect(self, kind: TokenKind) -> Token:
        token = self._token
        if token.kind is not kind:
            raise self._unexpected(token, f'Expected "{kind.value}"' if kind is not TokenKind.NAME else "Expected Name")
        self.lexer.advance()
        return token

    def _expect_keyword(self, keyword: str) -> Token:
        token = self._token
        if token.kind is not TokenKind.NAME or token.value != keyword:
            raise self._unexpected(token, f'Expected "{keyword}"')
        self.lexer.advance()
        return token

    def _unexpected(self, token: Token, expected: str | None = None) -> ParseError:
        found = f"found {token.describe()}" if token.kind is not TokenKind.EOF else "found <EOF>"
        message = f"Syntax Error: {expected}, {found}." if expected else f"Syntax Error: Unexpected {token.describe()}."
        return ParseError(message, token.line, token.column)

    # -- definitions ---------------------------------------------------------

    def _parse_definition(self) -> OperationDefinition | FragmentDefinition:
        token = self._token
        if token.kind is TokenKind.BRACE_L:
            selection_set = self._parse_selection_set()
            return OperationDefinition(
                kind=OperationType.QUERY,
                name=None,
                selection_set=selection_set,
                line=token.line,
                column=token.column,
            )
        if token.kind is TokenKind.NAME:
            if token.value in OPERATION_KEYWORDS:
                return self._parse_operation()
            if token.value == "fragment":
                return self._parse_fragment_definition()
            if token.value in TYPE_SYSTEM_KEYWORDS:
                raise ParseError(
                    f'Syntax Error: type system definition "{token.value}" is not allowed in a query document.',
                    token.line,
                    token.column,
                )
        if token.kind in (TokenKind.STRING, TokenKind.BLOCK_STRING):
            raise ParseError(
                "Syntax Error: descriptions are only allowed in type system definitions.",
                token.line,
                token.column,
            )
        raise self._unexpected(token)

    def _parse_operation(self) -> OperationDefinition:
        start = self._expect(TokenKind.NAME)
        kind = OPERATION_KEYWORDS[start.value]
        name = None
        if self._peek(TokenKind.NAME):
            name = self._expect(TokenKind.NAME).value
        variable_definitions = self._parse_variable_definitions()
        directives = self._parse_directives(const=False)
        selection_set = self._parse_selection_set()
        return OperationDefinition(
            kind=kind,
            name=name,
            selection_set=selection_set,
            variable_definitions=variable_definitions,
            directives=directives,
            line=start.line,
            column=start.column,
        )

    def _parse_variable_definitions(self) -> list[VariableDefinition]:
        definitions: list[VariableDefinition] = []
        if not self._skip(TokenKind.PAREN_L):
            return definitions

        seen: set[str] = set()
        while True:
            dollar = self._expect(TokenKind.DOLLAR)
            name = self._expect(TokenKind.NAME).value
            if name in seen:
                raise ParseError(
                    f'There can be only one variable named "${name}".', dollar.line, dollar.column
                )
            seen.add(name)
            self._expect(TokenKind.COLON)
            type_ref = self._parse_type_ref()
            has_default = self._skip(TokenKind.EQUALS)
            default_value = self._parse_value(const=True) if has_default else None
            directives = self._parse_directives(const=True)
            definitions.append(
                VariableDefinition(
                    name=name,
                    type=type_ref,
                    default_value=default_value,
                    has_default=has_default,
                    directives=directives,
                )
            )
            if self._skip(TokenKind.PAREN_R):
                return definitions

    def _parse_type_ref(self) -> TypeRef:
        if self._skip(TokenKind.BRACKET_L):
            inner = self._parse_type_ref()
            self._expect(TokenKind.BRACKET_R)
            type_ref = TypeRef(of_type=inner)
        else:
            type_ref = TypeRef(name=self._expect(TokenKind.NAME).value)
        if self._skip(TokenKind.BANG):
            type_ref.non_null = True
        return type_ref

    def _parse_fragment_definition(self) -> FragmentDefinition:
        start = self._expect_keyword("fragment")
        name_token = self._token
        if name_token.kind is TokenKind.NAME and name_token.value == "on":
            raise self._unexpected(name_token)
        name = self._expect(TokenKind.NAME).value
        self._expect_keyword("on")
        on = self._expect(TokenKind.NAME).value
        directives = self._parse_directives(const=False)
        selection_set = self._parse_selection_set()
        return FragmentDefinition(
            name=name,
            on=on,
            selection_set=selection_set,
            directives=directives,
            line=start.line,
            column=start.column,
        )

    # -- selections ----------------------------------------------------------

    def _parse_selection_set(self) -> SelectionSet:
        start = self._expect(TokenKind.BRACE_L)
        selection_set = SelectionSet(line=start.line, column=start.column)
        while True:
            selection_set.items.append(self._parse_selection())
            if self._skip(TokenKind.BRACE_R):
                return selection_set

    def _parse_selection(self) -> Selection | FragmentSpread:
        if self._peek(TokenKind.SPREAD):
            return self._parse_fragment()
        return self._parse_field()

    def _parse_field(self) -> Selection:
        start = self._expect(TokenKind.NAME)
        alias = None
        name = start.value
        if self._skip(TokenKind.COLON):
            alias = name
            name = self._expect(TokenKind.NAME).value
        args = self._parse_arguments(const=False)
        directives = self._parse_directives(const=False)
        selection_set = self._parse_selection_set() if self._peek(TokenKind.BRACE_L) else None
        return Selection(
            name=name,
            alias=alias,
            args=args,
            selection_set=selection_set,
            directives=directives,
            line=start.line,
            column=start.column,
        )

    def _parse_fragment(self) -> FragmentSpread:
        start = self._expect(TokenKind.SPREAD)
        token = self._token

        if token.kind is TokenKind.NAME and token.value != "on":
            self.lexer.advance()
            return FragmentSpread(
                fragment=None,
                directives=self._parse_directives(const=False),
                name=token.value,
                line=start.line,
                column=start.column,
            )

        on = None
        if token.kind is TokenKind.NAME:
            self._expect_keyword("on")
            on = self._expect(TokenKind.NAME).value
        directives = self._parse_directives(const=False)
        selection_set = self._parse_selection_set()
        fragment = FragmentDefinition(
            name="",
            on=on,
            selection_set=selection_set,
            line=start.line,
            column=start.column,
        )
        return FragmentSpread(
            fragment=fragment,
            directives=directives,
            inline=True,
            line=start.line,
            column=start.column,
        )

    def _parse_arguments(self, const: bool) -> dict[str, Any]:
        args: dict[str, Any] = {}
        if not self._skip(TokenKind.PAREN_L):
            return args
        while True:
            name_token = self._expect(TokenKind.NAME)
            if name_token.value in args:
                raise ParseError(
                    f'There can be only one argument named "{name_token.value}".',
                    name_token.line,
                    name_token.column,
                )
            self._expect(TokenKind.COLON)
            args[name_token.value] = self._parse_value(const)
            if self._skip(TokenKind.PAREN_R):
                return args

    def _parse_directives(self, const: bool) -> list[Directive]:
        directives: list[Directive] = []
        while self._peek(TokenKind.AT):
            start = self._expect(TokenKind.AT)
            name = self._expect(TokenKind.NAME).value
            directives.append(
                Directive(
                    name=name,
                    args=self._parse_arguments(const),
                    line=start.line,
                    column=start.column,
                )
            )
        return directives

    # -- values --------------------------------------------------------------

    def _parse_value(self, const: bool) -> Any:
        token = self._token
        kind = token.kind

        if kind is TokenKind.DOLLAR:
            if const:
                raise ParseError(
                    "Syntax Error: Unexpected variable in constant value.", token.line, token.column
                )
            self.lexer.advance()
            name = self._expect(TokenKind.NAME).value
            return Variable(name, token.line, token.column)
        if kind is TokenKind.INT:
            self.lexer.advance()
            return int(token.value)
        if kind is TokenKind.FLOAT:
            self.lexer.advance()
            return float(token.value)
        if kind in (TokenKind.STRING, TokenKind.BLOCK_STRING):
            self.lexer.advance()
            return StringValue(token.value)
        if kind is TokenKind.NAME:
            self.lexer.advance()
            if token.value == "true":
                return True
            if token.value == "false":
                return False
            if token.value == "null":
                return None
            return EnumValue(token.value)
        if kind is TokenKind.BRACKET_L:
            self.lexer.advance()
            items = []
            while not self._skip(TokenKind.BRACKET_R):
                items.append(self._parse_value(const))
            return items
        if kind is TokenKind.BRACE_L:
            self.lexer.advance()
            fields: dict[str, Any] = {}
            while not self._skip(TokenKind.BRACE_R):
                name_token = self._expect(TokenKind.NAME)
                if name_token.value in fields:
                    raise ParseError(
                        f'There can be only one input field named "{name_token.value}".',
                        name_token.line,
                        name_token.column,
                    )
                self._expect(TokenKind.COLON)
                fields[name_token.value] = self._parse_value(const)
            return fields
        raise self._unexpected(token)

    # -- document-level passes -----------------------------------------------

    def _check_operations(self, document: Document) -> None:
        operations = document.operations
        if not operations:
            raise ParseError("must have a single query")

        if len(operations) > 1:
            for operation in operations:
                if operation.name is None:
                    raise ParseError(
                        "This anonymous operation must be the only defined operation.",
                        operation.line,
                        operation.column,
                    )

        seen: set[str] = set()
        for operation in operations:
            if operation.name in seen:
                raise ParseError(
                    f'There can be only one operation named "{operation.name}".',
                    operation.line,
                    operation.column,
                )
            if operation.name:
                seen.add(operation.name)

    def _link_fragment_spreads(self, document: Document) -> None:
        """Point named spreads at their definitions; unknown names stay None."""
        selection_sets = [op.selection_set for op in document.operations]
        selection_sets.extend(f.selection_set for f in document.fragments.values())

        while selection_sets:
            selection_set = selection_sets.pop()
            for item in selection_set.items:
                if isinstance(item, Selection):
                    if item.selection_set is not None:
                        selection_sets.append(item.selection_set)
                elif item.inline:
                    selection_sets.append(item.fragment.selection_set)
                else:
                    item.fragment = document.fragments.get(item.name)

    def _substitute_variables(self, document: Document) -> None:
        """Replace Variable placeholders with their values.

        With an operation name only that operation and the fragments it
        reaches are substituted; the other operations keep their placeholders
        and never need values. Without one every operation is substituted.
        Operations resolve against their own variable definitions; fragments
        see the definitions of every substituted operation (first wins).
        """
        if self.operation_name is None:
            operations = document.operations
            fragments = list(document.fragments.values())
        else:
            operations = [op for op in document.operations if op.name == self.operation_name]
            fragments = self._reachable_fragments(document, operations)

        shared: dict[str, VariableDefinition] = {}
        for operation in operations:
            scope = {d.name: d for d in operation.variable_definitions}
            for name, definition in scope.items():
                shared.setdefault(name, definition)
            operation.directives = self._substitute_directives(operation.directives, scope)
            self._substitute_selection_set(operation.selection_set, scope)

        for fragment in fragments:
            fragment.directives = self._substitute_directives(fragment.directives, shared)
            self._substitute_selection_set(fragment.selection_set, shared)

    @staticmethod
    def _reachable_fragments(
        document: Document,
        operations: list[OperationDefinition],
    ) -> list[FragmentDefinition]:
        """Named fragments spread, directly or transitively, from the operations."""
        reached: dict[str, FragmentDefinition] = {}
        selection_sets = [op.selection_set for op in operations]
        while selection_sets:
            selection_set = selection_sets.pop()
            for item in selection_set.items:
                if isinstance(item, Selection):
                    if item.selection_set is not None:
                        selection_sets.append(item.selection_set)
                elif item.inline:
                    selection_sets.append(item.fragment.selection_set)
                elif item.fragment is not None and item.name not in reached:
                    reached[item.name] = item.fragment
                    selection_sets.append(item.fragment.selection_set)
        return list(reached.values())

    def _substitute_selection_set(
        self,
        selection_set: SelectionSet,
        scope: dict[str, VariableDefinition],
    ) -> None:
        for item in selection_set.items:
            item.directives = self._substitute_directives(item.directives, scope)
            if isinstance(item, Selection):
                item.args = self._substitute_object(item.args, scope)
                if item.selection_set is not None:
                    self._substitute_selection_set(item.selection_set, scope)
            elif item.inline:
                self._substitute_selection_set(item.fragment.selection_set, scope)

    def _substitute_directives(
        self,
        directives: list[Directive],
        scope: dict[str, VariableDefinition],
    ) -> list[Directive]:
        for directive in directives:
            directive.args = self._substitute_object(directive.args, scope)
        return directives

    def _substitute_object(self, value: dict[str, Any], scope: dict[str, VariableDefinition]) -> dict[str, Any]:
        result = {}
        for key, item in value.items():
            substituted = self._substitute(item, scope)
            # An unsupplied nullable variable leaves the argument out entirely
            if substituted is not _MISSING:
                result[key] = substituted
        return result

    def _substitute(self, value: Any, scope: dict[str, VariableDefinition]) -> Any:
        if isinstance(value, Variable):
            return self._variable_value(value, scope)
        if isinstance(value, list):
            items = [self._substitute(item, scope) for item in value]
            return [None if item is _MISSING else item for item in items]
        if isinstance(value, dict):
            return self._substitute_object(value, scope)
        return value

    def _variable_value(self, variable: Variable, scope: dict[str, VariableDefinition]) -> Any:
        definition = scope.get(variable.name)
        if definition is None:
            raise ParseError(
                f'Variable "${variable.name}" is not defined.', variable.line, variable.column
            )
        if variable.name in self.variables:
            return self.variables[variable.name]
        if definition.has_default:
            return definition.default_value
        if not definition.type.non_null:
            return _MISSING
        raise ParseError(
            f'Variable "${variable.name}" of required type "{definition.type}" was not provided.',
            variable.line,
            variable.column,
        )


def parse(
    source: str,
    variables: dict[str, Any] | None = None,
    operation_name: str | None = None,
) -> Document:
    """Parse a query document, substituting the given variable values.

    Args:
        source: GraphQL query text
        variables: Values for $variable references
        operation_name: Operation that will run; when given, only its variables
            (and those of the fragments it spreads) are substituted

    Returns:
        The parsed Document

    Raises:
        ParseError: On malformed syntax or unresolvable variables
    """
    return QueryParser(source, variables, operation_name).parse_document()
