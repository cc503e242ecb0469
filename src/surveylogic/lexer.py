"""
Lexer for logic expressions.

Splits an expression string into tokens:
    - REFERENCE:   {name}, {name[0]}, {row.column}
    - NUMBER:      42, 3.5, .5
    - STRING:      'text' or "text" (backslash escapes allowed)
    - OPERATOR:    + - * / % ^ = == != <> < > <= >= && || !
                   and word operators: and, or, not, contains, notcontains,
                   empty, notempty (case-insensitive)
    - IDENTIFIER:  function names, bare references, true/false/null
    - PUNCTUATION: ( ) ,
Whitespace is skipped. The stream always ends with an EOF token.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List

from surveylogic.errors import LexError
from surveylogic.expressions import is_valid_reference_path


class TokenKind(Enum):
    REFERENCE = "REFERENCE"
    NUMBER = "NUMBER"
    STRING = "STRING"
    IDENTIFIER = "IDENTIFIER"
    OPERATOR = "OPERATOR"
    PUNCTUATION = "PUNCTUATION"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    """
    A single lexical token.

    Attributes:
        kind: token category
        text: raw source text of the token
        position: offset of the token in the source string
        value: decoded value (reference path, number, unescaped string,
               canonical operator spelling)
    """
    kind: TokenKind
    text: str
    position: int
    value: Any = None

    def __repr__(self):
        return f"Token({self.kind.value}, {self.text!r}, pos={self.position})"


# Canonical spellings for operator aliases.
OPERATOR_ALIASES = {
    "==": "=",
    "<>": "!=",
    "&&": "and",
    "||": "or",
    "!": "not",
}

WORD_OPERATORS = {"and", "or", "not", "contains", "notcontains", "empty", "notempty"}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}


class ExpressionLexer:
    """
    Tokenizer for logic expressions.

    Token specs are tried in order; the first match wins, so multi-character
    operators must come before their single-character prefixes.
    """

    # (regex_pattern, token_kind or marker, ignore_flag)
    TOKEN_SPECS = [
        (r"\s+", "WHITESPACE", True),
        (r"\{[^{}]*\}", TokenKind.REFERENCE, False),
        (r"\{", "UNTERMINATED_REFERENCE", False),
        (r"'(?:[^'\\]|\\.)*'", TokenKind.STRING, False),
        (r'"(?:[^"\\]|\\.)*"', TokenKind.STRING, False),
        (r"['\"]", "UNTERMINATED_STRING", False),
        (r"\d+(?:\.\d+)?|\.\d+", TokenKind.NUMBER, False),
        (r"<=|>=|!=|<>|==|&&|\|\|", TokenKind.OPERATOR, False),
        (r"[-+*/%^=<>!]", TokenKind.OPERATOR, False),
        (r"[(),]", TokenKind.PUNCTUATION, False),
        (r"[A-Za-z_][A-Za-z0-9_]*", TokenKind.IDENTIFIER, False),
        (r".", "UNKNOWN", False),
    ]

    def __init__(self):
        self._compiled_patterns = [
            (re.compile(pattern, re.DOTALL), kind, ignore)
            for pattern, kind, ignore in self.TOKEN_SPECS
        ]

    def tokenize(self, text: str) -> List[Token]:
        """
        Split ``text`` into tokens.

        Returns:
            List of tokens, ending with EOF

        Raises:
            LexError: on an unterminated string or reference, a malformed
                      reference path, or an unrecognized character
        """
        tokens: List[Token] = []
        position = 0

        while position < len(text):
            for pattern, kind, ignore in self._compiled_patterns:
                match = pattern.match(text, position)
                if match:
                    break
            else:  # pragma: no cover - the "." spec always matches
                raise LexError("Failed to tokenize", position)

            raw = match.group(0)
            if not ignore:
                tokens.append(self._make_token(kind, raw, position))
            position = match.end()

        tokens.append(Token(kind=TokenKind.EOF, text="", position=position))
        return tokens

    def _make_token(self, kind, raw: str, position: int) -> Token:
        if kind == "UNKNOWN":
            raise LexError(f"Unexpected character '{raw}'", position)
        if kind == "UNTERMINATED_STRING":
            raise LexError("Unterminated string literal", position)
        if kind == "UNTERMINATED_REFERENCE":
            raise LexError("Unterminated reference, missing '}'", position)

        if kind == TokenKind.REFERENCE:
            path = raw[1:-1].strip()
            if not is_valid_reference_path(path):
                raise LexError(f"Invalid reference '{raw}'", position)
            return Token(kind, raw, position, path)

        if kind == TokenKind.STRING:
            return Token(kind, raw, position, _unescape(raw[1:-1]))

        if kind == TokenKind.NUMBER:
            try:
                value = float(raw) if "." in raw else int(raw)
            except ValueError:
                raise LexError(f"Number literal too long ({len(raw)} digits)", position)
            return Token(kind, raw, position, value)

        if kind == TokenKind.OPERATOR:
            return Token(kind, raw, position, OPERATOR_ALIASES.get(raw, raw))

        if kind == TokenKind.IDENTIFIER and raw.lower() in WORD_OPERATORS:
            return Token(TokenKind.OPERATOR, raw, position, raw.lower())

        return Token(kind, raw, position, raw)


def _unescape(body: str) -> str:
    out = []
    chars = iter(body)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append(_ESCAPES.get(nxt, nxt))
        else:
            out.append(ch)
    return "".join(out)


_DEFAULT_LEXER = ExpressionLexer()


def tokenize(source: str) -> List[Token]:
    """Module-level convenience wrapper around ExpressionLexer.tokenize."""
    return _DEFAULT_LEXER.tokenize(source)
