"""Read-only guardrails and schema cross-checks for generated SQL."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from bi_sqlguard.models.schema import DatabaseSchema
from bi_sqlguard.sql.parser import (
    Lexeme,
    LexemeKind,
    SQLParseError,
    split_statements,
    tokenize_sql,
)
from bi_sqlguard.sql.references import ColumnRef, ParsedQuery, QueryScope, extract_statement
from bi_sqlguard.sql.rules import (
    ALIAS_CLAUSES,
    ALLOWED_LEADING_KEYWORDS,
    FORBIDDEN_KEYWORDS,
    FUNCTION_KEYWORDS,
)

logger = logging.getLogger(__name__)

SchemaInput = Sequence[DatabaseSchema | Mapping[str, Any]]


class SQLValidationError(RuntimeError):
    """Raised when SQL fails validation guardrails."""


class ErrorCode(str, Enum):
    EMPTY_INPUT = "empty_input"
    MULTIPLE_STATEMENTS = "multiple_statements"
    FORBIDDEN_OPERATION = "forbidden_operation"
    MALFORMED_SQL = "malformed_sql"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of the lexical safety screen."""

    valid: bool
    error: str | None = None
    code: ErrorCode | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"valid": self.valid}
        if self.error is not None:
            payload["error"] = self.error
        if self.code is not None:
            payload["code"] = self.code.value
        return payload


@dataclass(frozen=True)
class InvalidColumn:
    column: str
    table: str | None = None

    def to_dict(self) -> dict[str, object]:
        if self.table is None:
            return {"column": self.column}
        return {"table": self.table, "column": self.column}


@dataclass(frozen=True)
class SchemaValidationResult:
    """Aggregated table and column violations for one SQL text."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    invalid_tables: list[str] = field(default_factory=list)
    invalid_columns: list[InvalidColumn] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "invalidTables": list(self.invalid_tables),
            "invalidColumns": [item.to_dict() for item in self.invalid_columns],
        }


def _reject(code: ErrorCode, message: str) -> ValidationResult:
    logger.info("Rejected SQL (%s): %s", code.value, message)
    return ValidationResult(valid=False, error=message, code=code)


def _forbidden_keywords(lexemes: Sequence[Lexeme]) -> list[str]:
    found: list[str] = []
    for index, lexeme in enumerate(lexemes):
        if lexeme.kind is not LexemeKind.WORD or lexeme.upper not in FORBIDDEN_KEYWORDS:
            continue
        following = lexemes[index + 1] if index + 1 < len(lexemes) else None
        if lexeme.upper in FUNCTION_KEYWORDS and following is not None and following.is_punct("("):
            continue
        if lexeme.upper not in found:
            found.append(lexeme.upper)
    return found


def _leading_word(lexemes: Sequence[Lexeme]) -> Lexeme | None:
    for lexeme in lexemes:
        if not lexeme.is_punct("("):
            return lexeme
    return None


def validate_sql(sql: str) -> ValidationResult:
    """Screen SQL for a single read-only statement."""
    if not sql or not sql.strip():
        return _reject(ErrorCode.EMPTY_INPUT, "SQL cannot be empty.")

    try:
        tokenized = tokenize_sql(sql)
    except SQLParseError as exc:
        return _reject(ErrorCode.MALFORMED_SQL, str(exc))

    statements = split_statements(tokenized.lexemes)
    if not statements:
        return _reject(ErrorCode.EMPTY_INPUT, "SQL cannot be empty.")
    if len(statements) > 1:
        return _reject(
            ErrorCode.MULTIPLE_STATEMENTS,
            "Multiple SQL statements are not allowed; submit a single query.",
        )
    if tokenized.has_executable_comment:
        return _reject(
            ErrorCode.FORBIDDEN_OPERATION,
            "Forbidden operation detected: executable comments (/*! ... */, /*M! ... */) are not allowed.",
        )

    statement = statements[0]
    forbidden = _forbidden_keywords(statement)
    if forbidden:
        return _reject(
            ErrorCode.FORBIDDEN_OPERATION,
            f"Forbidden operation detected: {', '.join(forbidden)}. "
            "Only read-only queries are allowed.",
        )

    leading = _leading_word(statement)
    if leading is None or leading.kind is not LexemeKind.WORD or leading.upper not in ALLOWED_LEADING_KEYWORDS:
        verb = leading.text if leading is not None else ""
        return _reject(
            ErrorCode.FORBIDDEN_OPERATION,
            f"Forbidden operation: '{verb}' statements are not allowed. "
            "Only SELECT, SHOW, DESCRIBE, EXPLAIN and WITH queries are permitted.",
        )

    logger.debug("SQL passed the safety screen.")
    return ValidationResult(valid=True)


@dataclass(frozen=True)
class _Source:
    """A FROM entry as seen by column resolution."""

    label: str
    columns: frozenset[str] | None


@dataclass
class _Frame:
    sources: list[_Source] = field(default_factory=list)
    names: dict[str, _Source] = field(default_factory=dict)

    @property
    def undecidable(self) -> bool:
        # A bare column may belong to a source whose columns are unknown.
        return any(source.columns is None for source in self.sources)

    @property
    def resolvable(self) -> list[_Source]:
        return [source for source in self.sources if source.columns is not None]


class _Report:
    """Collects de-duplicated violations in discovery order."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.invalid_tables: list[str] = []
        self.invalid_columns: list[InvalidColumn] = []
        self._seen: set[tuple[str, ...]] = set()

    def table(self, name: str) -> None:
        key = ("table", name.lower())
        if key in self._seen:
            return
        self._seen.add(key)
        self.invalid_tables.append(name)
        self.errors.append(f"Table '{name}' does not exist in the database schema.")

    def column(self, column: str, table: str | None, message: str) -> None:
        key = ("column", (table or "").lower(), column.lower())
        if key in self._seen:
            return
        self._seen.add(key)
        self.invalid_columns.append(InvalidColumn(column=column, table=table))
        self.errors.append(message)

    def result(self) -> SchemaValidationResult:
        return SchemaValidationResult(
            valid=not self.errors,
            errors=list(self.errors),
            invalid_tables=list(self.invalid_tables),
            invalid_columns=list(self.invalid_columns),
        )


def _schema_index(schema: SchemaInput) -> dict[str, DatabaseSchema]:
    index: dict[str, DatabaseSchema] = {}
    for entry in schema:
        table = entry if isinstance(entry, DatabaseSchema) else DatabaseSchema.model_validate(entry)
        index.setdefault(table.table_name.lower(), table)
    return index


def _build_frame(
    scope: QueryScope,
    schema: Mapping[str, DatabaseSchema],
    report: _Report,
) -> _Frame:
    frame = _Frame()
    for table_ref in scope.tables:
        table = schema.get(table_ref.name.lower())
        if table is None:
            report.table(table_ref.name)
            source = _Source(label=table_ref.name, columns=None)
        else:
            source = _Source(label=table.table_name, columns=table.column_names)
        frame.sources.append(source)
        if table_ref.alias:
            frame.names.setdefault(table_ref.alias.lower(), source)
        frame.names.setdefault(table_ref.name.lower(), source)

    for derived in scope.derived:
        columns = (
            frozenset(name.lower() for name in derived.columns)
            if derived.columns is not None
            else None
        )
        source = _Source(label=derived.alias, columns=columns)
        frame.sources.append(source)
        if derived.alias:
            frame.names.setdefault(derived.alias.lower(), source)
    return frame


def _check_column(
    ref: ColumnRef,
    frames: Sequence[_Frame],
    select_aliases: set[str],
    report: _Report,
) -> None:
    if ref.qualifier is not None:
        source = next(
            (
                frame.names[ref.qualifier.lower()]
                for frame in frames
                if ref.qualifier.lower() in frame.names
            ),
            None,
        )
        if source is None:
            report.column(
                ref.column,
                ref.qualifier,
                f"Unknown table or alias '{ref.qualifier}' in column reference "
                f"'{ref.qualifier}.{ref.column}'.",
            )
            return
        if ref.column == "*" or source.columns is None:
            return
        if ref.column.lower() not in source.columns:
            report.column(
                ref.column,
                source.label,
                f"Column '{ref.column}' does not exist in table '{source.label}'.",
            )
        return

    name = ref.column.lower()
    if ref.clause in ALIAS_CLAUSES and name in select_aliases:
        return

    searched: list[str] = []
    for frame in frames:
        if frame.undecidable:
            return
        resolvable = frame.resolvable
        if any(name in source.columns for source in resolvable if source.columns is not None):
            return
        searched.extend(source.label for source in resolvable)

    if not searched:
        return
    report.column(
        ref.column,
        None,
        f"Column '{ref.column}' does not exist in any referenced table "
        f"({', '.join(searched)}).",
    )


def _check_query(
    query: ParsedQuery,
    outer: tuple[_Frame, ...],
    schema: Mapping[str, DatabaseSchema],
    report: _Report,
) -> None:
    for cte in query.ctes:
        if cte.query is not None:
            _check_query(cte.query, outer, schema, report)

    select_aliases: set[str] = set()
    for branch in query.branches:
        select_aliases.update(branch.select_aliases)

    for branch in query.branches:
        frame = _build_frame(branch, schema, report)
        frames = (frame, *outer)
        for derived in branch.derived:
            if derived.query is not None:
                _check_query(derived.query, frames if derived.lateral else outer, schema, report)
        for ref in branch.column_refs:
            _check_column(ref, frames, select_aliases, report)
        for subquery in branch.subqueries:
            _check_query(subquery, frames, schema, report)


def validate_schema(sql: str, schema: SchemaInput) -> SchemaValidationResult:
    """Check every table and column referenced by SQL against a schema snapshot."""
    index = _schema_index(schema)
    try:
        tokenized = tokenize_sql(sql)
        statements = [extract_statement(lexemes) for lexemes in split_statements(tokenized.lexemes)]
    except SQLParseError as exc:
        logger.info("Schema validation could not read SQL: %s", exc)
        # The only error with no matching invalid table or column entry.
        return SchemaValidationResult(valid=False, errors=[str(exc)])

    report = _Report()
    for statement in statements:
        _check_query(statement, (), index, report)

    result = report.result()
    logger.debug(
        "Schema validation finished: valid=%s tables=%d columns=%d",
        result.valid,
        len(result.invalid_tables),
        len(result.invalid_columns),
    )
    return result


def ensure_safe_sql(sql: str, schema: SchemaInput | None = None) -> ValidationResult:
    """Validate SQL and raise when violations are present."""
    result = validate_sql(sql)
    violations: list[str] = []
    if not result.valid and result.error is not None:
        violations.append(result.error)
    elif schema is not None:
        violations.extend(validate_schema(sql, schema).errors)

    if violations:
        raise SQLValidationError("\n".join(f"- {item}" for item in violations))
    return result


class SQLValidator:
    """Class-shaped access to the two validator entry points."""

    validate = staticmethod(validate_sql)
    validate_schema = staticmethod(validate_schema)
