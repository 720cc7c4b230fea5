"""Tokenizer for GraphQL query documents."""

import re
from dataclasses import dataclass
from enum import Enum

from .errors import ParseError


class TokenKind(Enum):
    """Kinds of lexical tokens."""
    SOF = "<SOF>"
    EOF = "<EOF>"
    BANG = "!"
    DOLLAR = "$"
    AMP = "&"
    PAREN_L = "("
    PAREN_R = ")"
    SPREAD = "..."
    COLON = ":"
    EQUALS = "="
    AT = "@"
    BRACKET_L = "["
    BRACKET_R = "]"
    BRACE_L = "{"
    PIPE = "|"
    BRACE_R = "}"
    NAME = "Name"
    INT = "Int"
    FLOAT = "Float"
    STRING = "String"
    BLOCK_STRING = "BlockString"


@dataclass
class Token:
    kind: TokenKind
    value: str
    line: int
    column: int

    def describe(self) -> str:
        if self.kind in (TokenKind.NAME, TokenKind.INT, TokenKind.FLOAT):
            return f'{self.kind.value} "{self.value}"'
        if self.kind in (TokenKind.STRING, TokenKind.BLOCK_STRING):
            return f"{self.kind.value} {self.value!r}"
        return f'"{self.kind.value}"' if self.kind is not TokenKind.EOF else "<EOF>"


PUNCTUATORS = {
    "!": TokenKind.BANG,
    "$": TokenKind.DOLLAR,
    "&": TokenKind.AMP,
    "(": TokenKind.PAREN_L,
    ")": TokenKind.PAREN_R,
    ":": TokenKind.COLON,
    "=": TokenKind.EQUALS,
    "@": TokenKind.AT,
    "[": TokenKind.BRACKET_L,
    "]": TokenKind.BRACKET_R,
    "{": TokenKind.BRACE_L,
    "|": TokenKind.PIPE,
    "}": TokenKind.BRACE_R,
}

NAME_RE = re.compile(r"[_A-Za-z][_0-9A-Za-z]*")
NUMBER_RE = re.compile(r"-?(0|[1-9][0-9]*)(\.[0-9]+)?([eE][+-]?[0-9]+)?")

ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


class Lexer:
    """Produces tokens on demand, tracking line and column (both 1-based)."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.line_start = 0
        self.token = Token(TokenKind.SOF, "", 0, 0)

    def advance(self) -> Token:
        """Move to the next significant token and return it."""
        self.token = self._read_token()
        return self.token

    def lookahead(self) -> Token:
        """Return the token after the current one without consuming it."""
        state = (self.pos, self.line, self.line_start, self.token)
        try:
            return self.advance()
        finally:
            self.pos, self.line, self.line_start, self.token = state

    def _error(self, message: str, pos: int | None = None) -> ParseError:
        pos = self.pos if pos is None else pos
        return ParseError(f"Syntax Error: {message}", self.line, pos - self.line_start + 1)

    def _newline(self, pos: int) -> None:
        self.line += 1
        self.line_start = pos

    def _skip_ignored(self) -> None:
        source = self.source
        while self.pos < len(source):
            char = source[self.pos]
            if char in " \t,\ufeff":
                self.pos += 1
            elif char == "\n":
                self.pos += 1
                self._newline(self.pos)
            elif char == "\r":
                self.pos += 1
                if self.pos < len(source) and source[self.pos] == "\n":
                    self.pos += 1
                self._newline(self.pos)
            elif char == "#":
                while self.pos < len(source) and source[self.pos] not in "\r\n":
                    self.pos += 1
            else:
                break

    def _read_token(self) -> Token:
        self._skip_ignored()
        source = self.source
        start = self.pos
        column = start - self.line_start + 1

        if start >= len(source):
            return Token(TokenKind.EOF, "", self.line, column)

        char = source[start]

        if char in PUNCTUATORS:
            self.pos += 1
            return Token(PUNCTUATORS[char], char, self.line, column)

        if char == ".":
            if source.startswith("...", start):
                self.pos += 3
                return Token(TokenKind.SPREAD, "...", self.line, column)
            raise self._error('Unexpected character ".", did you mean "..."?')

        if char == "_" or char.isascii() and char.isalpha():
            match = NAME_RE.match(source, start)
            self.pos = match.end()
            return Token(TokenKind.NAME, match.group(), self.line, column)

        if char == "-" or char.isdigit():
            return self._read_number(start, column)

        if char == '"':
            if source.startswith('"""', start):
                return self._read_block_string(start, column)
            return self._read_string(start, column)

        raise self._error(f"Unexpected character {char!r}")

    def _read_number(self, start: int, column: int) -> Token:
        match = NUMBER_RE.match(self.source, start)
        if match is None:
            raise self._error("Invalid number")
        end = match.end()
        # A number must not run straight into a digit, a name start or a dot
        if end < len(self.source) and (self.source[end] in "._" or self.source[end].isalnum()):
            raise self._error(f"Invalid number, unexpected character {self.source[end]!r}", end)
        self.pos = end
        text = match.group()
        is_float = match.group(2) is not None or match.group(3) is not None
        kind = TokenKind.FLOAT if is_float else TokenKind.INT
        return Token(kind, text, self.line, column)

    def _read_string(self, start: int, column: int) -> Token:
        source = self.source
        pos = start + 1
        chunks: list[str] = []
        chunk_start = pos

        while pos < len(source):
            char = source[pos]
            if char == '"':
                chunks.append(source[chunk_start:pos])
                self.pos = pos + 1
                return Token(TokenKind.STRING, "".join(chunks), self.line, column)
            if char in "\r\n":
                break
            if char == "\\":
                chunks.append(source[chunk_start:pos])
                escape = source[pos + 1:pos + 2]
                if escape == "u":
                    digits = source[pos + 2:pos + 6]
                    if len(digits) != 4 or not all(c in "0123456789abcdefABCDEF" for c in digits):
                        raise self._error(f"Invalid Unicode escape sequence: \\u{digits}", pos)
                    chunks.append(chr(int(digits, 16)))
                    pos += 6
                elif escape in ESCAPES:
                    chunks.append(ESCAPES[escape])
                    pos += 2
                else:
                    raise self._error(f"Invalid character escape sequence: \\{escape}", pos)
                chunk_start = pos
                continue
            pos += 1

        raise self._error("Unterminated string", start)

    def _read_block_string(self, start: int, column: int) -> Token:
        source = self.source
        line = self.line
        pos = start + 3
        chunks: list[str] = []
        chunk_start = pos

        while pos < len(source):
            if source.startswith('"""', pos):
                chunks.append(source[chunk_start:pos])
                self.pos = pos + 3
                return Token(TokenKind.BLOCK_STRING, dedent_block_string("".join(chunks)), line, column)
            if source.startswith('\\"""', pos):
                chunks.append(source[chunk_start:pos])
                chunks.append('"""')
                pos += 4
                chunk_start = pos
                continue
            char = source[pos]
            if char == "\n" or char == "\r":
                if char == "\r" and source[pos + 1:pos + 2] == "\n":
                    pos += 1
                pos += 1
                self._newline(pos)
                continue
            pos += 1

        raise self._error("Unterminated string", start)


def dedent_block_string(raw: str) -> str:
    """Apply the block string value algorithm: common indent and blank edges removed."""
    lines = raw.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    common_indent = None
    for line in lines[1:]:
        stripped = line.lstrip(" \t")
        if not stripped:
            continue
        indent = len(line) - len(stripped)
        if common_indent is None or indent < common_indent:
            common_indent = indent

    if common_indent:
        lines = lines[:1] + [line[common_indent:] for line in lines[1:]]

    while lines and not lines[0].strip(" \t"):
        lines.pop(0)
    while lines and not lines[-1].strip(" \t"):
        lines.pop()

    return "\n".join(lines)
