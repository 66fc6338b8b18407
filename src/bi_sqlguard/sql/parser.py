"""SQL tokenization helpers backed by the SQLGlot tokenizer."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from sqlglot import tokenize
from sqlglot.errors import TokenError
from sqlglot.tokens import Token, TokenType

# MySQL lexical rules: '' and "" are strings, `` are identifiers.
SQL_DIALECT = "mysql"

_WORD = re.compile(r"^[^\W\d]\w*$")
_EXECUTABLE_COMMENT = re.compile(r"/\*M?!")


class SQLParseError(RuntimeError):
    """Raised when SQL cannot be tokenized or segmented safely."""


def _optional_token_type(name: str) -> TokenType | None:
    candidate = getattr(TokenType, name, None)
    if isinstance(candidate, TokenType):
        return candidate
    return None


_LITERAL_NAMES = (
    "STRING",
    "NUMBER",
    "NATIONAL_STRING",
    "HEX_STRING",
    "BIT_STRING",
    "BYTE_STRING",
    "RAW_STRING",
    "UNICODE_STRING",
    "HEREDOC_STRING",
)

LITERAL_TOKEN_TYPES: frozenset[TokenType] = frozenset(
    token_type
    for token_type in (_optional_token_type(name) for name in _LITERAL_NAMES)
    if token_type is not None
)

PUNCTUATION_TOKEN_TYPES: dict[TokenType, str] = {
    TokenType.L_PAREN: "(",
    TokenType.R_PAREN: ")",
    TokenType.COMMA: ",",
    TokenType.DOT: ".",
    TokenType.SEMICOLON: ";",
    TokenType.STAR: "*",
}


class LexemeKind(str, Enum):
    WORD = "word"
    QUOTED = "quoted"
    LITERAL = "literal"
    PUNCT = "punct"
    OTHER = "other"


@dataclass(frozen=True)
class Lexeme:
    """Tagged token the reference extractor works on."""

    kind: LexemeKind
    text: str

    @property
    def upper(self) -> str:
        return self.text.upper()

    @property
    def is_identifier(self) -> bool:
        return self.kind in (LexemeKind.WORD, LexemeKind.QUOTED)

    def is_word(self, *words: str) -> bool:
        return self.kind is LexemeKind.WORD and self.upper in words

    def is_punct(self, symbol: str) -> bool:
        return self.kind is LexemeKind.PUNCT and self.text == symbol


@dataclass(frozen=True)
class TokenizedSQL:
    """Comment-free lexeme stream for one SQL text."""

    lexemes: tuple[Lexeme, ...]
    has_executable_comment: bool = False


_HINT = _optional_token_type("HINT")


def _to_lexemes(token: Token, sql: str) -> list[Lexeme]:
    if _HINT is not None and token.token_type == _HINT:
        # Optimizer hints (/*+ ... */) are comments to the reference scan.
        return []
    if token.token_type in LITERAL_TOKEN_TYPES:
        return [Lexeme(LexemeKind.LITERAL, token.text)]
    if token.token_type == TokenType.IDENTIFIER:
        return [Lexeme(LexemeKind.QUOTED, token.text)]
    symbol = PUNCTUATION_TOKEN_TYPES.get(token.token_type)
    if symbol is not None:
        return [Lexeme(LexemeKind.PUNCT, symbol)]

    # Keyword tokens carry upper-cased text and may span several words
    # ("ORDER BY"); the source slice keeps the caller's spelling.
    source = sql[token.start : token.end + 1] or token.text
    lexemes: list[Lexeme] = []
    for part in source.split():
        kind = LexemeKind.WORD if _WORD.match(part) else LexemeKind.OTHER
        lexemes.append(Lexeme(kind, part))
    return lexemes


def tokenize_sql(sql: str) -> TokenizedSQL:
    """Tokenize SQL into lexemes, dropping comments."""
    try:
        tokens = tokenize(sql, read=SQL_DIALECT)
    except TokenError as exc:
        raise SQLParseError(f"Invalid SQL: {exc}") from exc

    lexemes: list[Lexeme] = []
    for token in tokens:
        lexemes.extend(_to_lexemes(token, sql))

    return TokenizedSQL(
        lexemes=tuple(lexemes),
        has_executable_comment=_EXECUTABLE_COMMENT.search(sql) is not None,
    )


def split_statements(lexemes: Sequence[Lexeme]) -> list[list[Lexeme]]:
    """Split a lexeme stream on ';', dropping empty statements."""
    statements: list[list[Lexeme]] = []
    current: list[Lexeme] = []
    for lexeme in lexemes:
        if lexeme.is_punct(";"):
            if current:
                statements.append(current)
            current = []
            continue
        current.append(lexeme)
    if current:
        statements.append(current)
    return statements


def matching_paren(lexemes: Sequence[Lexeme], start: int) -> int:
    """Return the index of the ')' closing the '(' at ``start``."""
    depth = 0
    for index in range(start, len(lexemes)):
        lexeme = lexemes[index]
        if lexeme.is_punct("("):
            depth += 1
        elif lexeme.is_punct(")"):
            depth -= 1
            if depth == 0:
                return index
    raise SQLParseError("Invalid SQL: unbalanced parentheses.")


def split_top_level(lexemes: Sequence[Lexeme], separator: str = ",") -> list[list[Lexeme]]:
    """Split on a punctuation separator outside parentheses."""
    parts: list[list[Lexeme]] = [[]]
    depth = 0
    for lexeme in lexemes:
        if lexeme.is_punct("("):
            depth += 1
        elif lexeme.is_punct(")"):
            depth -= 1
            if depth < 0:
                raise SQLParseError("Invalid SQL: unbalanced parentheses.")
        elif depth == 0 and lexeme.is_punct(separator):
            parts.append([])
            continue
        parts[-1].append(lexeme)
    return parts
