"""Table, column and alias extraction over the lexeme stream.

This is a narrow clause recognizer, not a SQL grammar: statements are split
into set-operation branches, each branch into top-level clauses, and each
clause is scanned for identifier chains. Anything it cannot classify is left
alone so that the schema check errs towards accepting a reference.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from bi_sqlguard.sql.parser import (
    Lexeme,
    LexemeKind,
    SQLParseError,
    matching_paren,
    split_top_level,
)
from bi_sqlguard.sql.rules import (
    CLAUSE_KEYWORDS,
    INDEX_HINT_KEYWORDS,
    JOIN_KEYWORDS,
    NAME_INTRODUCERS,
    RESERVED_WORDS,
    SELECT_MODIFIERS,
    SET_OPERATORS,
    TYPED_LITERAL_KEYWORDS,
)


@dataclass(frozen=True)
class TableRef:
    """Base table named in FROM/JOIN."""

    name: str
    alias: str | None = None


@dataclass(frozen=True)
class ColumnRef:
    """Column reference with its optional qualifier and the clause it came from."""

    column: str
    qualifier: str | None = None
    clause: str = "SELECT"


@dataclass
class DerivedTable:
    """FROM subquery, CTE or table function.

    ``columns`` is None when the projection cannot be determined.
    """

    alias: str
    columns: list[str] | None = None
    query: ParsedQuery | None = None
    lateral: bool = False


@dataclass
class QueryScope:
    tables: list[TableRef] = field(default_factory=list)
    derived: list[DerivedTable] = field(default_factory=list)
    column_refs: list[ColumnRef] = field(default_factory=list)
    select_aliases: set[str] = field(default_factory=set)
    projection: list[str] | None = field(default_factory=list)
    subqueries: list[ParsedQuery] = field(default_factory=list)


@dataclass
class ParsedQuery:
    """One query: its set-operation branches and its WITH definitions."""

    branches: list[QueryScope] = field(default_factory=list)
    ctes: list[DerivedTable] = field(default_factory=list)

    @property
    def projection(self) -> list[str] | None:
        if not self.branches:
            return None
        return self.branches[0].projection


CTEMap = Mapping[str, DerivedTable]


def _peek(lexemes: Sequence[Lexeme], index: int) -> Lexeme | None:
    if 0 <= index < len(lexemes):
        return lexemes[index]
    return None


def _is_name(lexeme: Lexeme | None) -> bool:
    if lexeme is None:
        return False
    if lexeme.kind is LexemeKind.QUOTED:
        return True
    return lexeme.kind is LexemeKind.WORD and lexeme.upper not in RESERVED_WORDS


def _is_keyword(lexeme: Lexeme | None, keywords: frozenset[str]) -> bool:
    return (
        lexeme is not None
        and lexeme.kind is LexemeKind.WORD
        and lexeme.upper in keywords
    )


def starts_query(lexemes: Sequence[Lexeme], index: int) -> bool:
    """Return whether a (possibly parenthesized) query starts at ``index``."""
    lexeme = _peek(lexemes, index)
    while lexeme is not None and lexeme.is_punct("("):
        index += 1
        lexeme = _peek(lexemes, index)
    return lexeme is not None and lexeme.is_word("SELECT", "WITH")


def _read_chain(lexemes: Sequence[Lexeme], index: int) -> tuple[list[str], int]:
    """Read ``ident(.ident)*`` optionally ending in ``.*``."""
    parts = [lexemes[index].text]
    index += 1
    while True:
        dot = _peek(lexemes, index)
        part = _peek(lexemes, index + 1)
        if dot is None or part is None or not dot.is_punct("."):
            break
        if part.is_punct("*"):
            parts.append("*")
            index += 2
            break
        if not part.is_identifier:
            break
        parts.append(part.text)
        index += 2
    return parts, index


def _read_alias(lexemes: Sequence[Lexeme], index: int) -> tuple[str | None, int]:
    lexeme = _peek(lexemes, index)
    if lexeme is not None and lexeme.is_word("AS"):
        name = _peek(lexemes, index + 1)
        if name is not None and name.is_identifier:
            return name.text, index + 2
        return None, index + 1
    if _is_name(lexeme):
        assert lexeme is not None
        return lexeme.text, index + 1
    return None, index


def _column_list(lexemes: Sequence[Lexeme], index: int) -> tuple[list[str] | None, int]:
    """Read an optional ``(a, b, ...)`` name list at ``index``."""
    lexeme = _peek(lexemes, index)
    if lexeme is None or not lexeme.is_punct("("):
        return None, index
    close = matching_paren(lexemes, index)
    names = [item.text for item in lexemes[index + 1 : close] if item.is_identifier]
    return names, close + 1


def _condition_end(lexemes: Sequence[Lexeme], start: int) -> int:
    depth = 0
    for index in range(start, len(lexemes)):
        lexeme = lexemes[index]
        if lexeme.is_punct("("):
            depth += 1
        elif lexeme.is_punct(")"):
            depth -= 1
        elif depth == 0:
            if lexeme.is_punct(","):
                return index
            following = _peek(lexemes, index + 1)
            # LEFT(...) and RIGHT(...) are string functions.
            if _is_keyword(lexeme, JOIN_KEYWORDS) and not (
                following is not None and following.is_punct("(")
            ):
                return index
    return len(lexemes)


def _skip_hint(lexemes: Sequence[Lexeme], index: int) -> int:
    """Skip an index hint or PARTITION list starting at ``index``."""
    index += 1
    while index < len(lexemes) and lexemes[index].kind is LexemeKind.WORD:
        index += 1
    lexeme = _peek(lexemes, index)
    if lexeme is not None and lexeme.is_punct("("):
        return matching_paren(lexemes, index) + 1
    return index


def _split_set_operations(lexemes: Sequence[Lexeme]) -> list[list[Lexeme]]:
    branches: list[list[Lexeme]] = [[]]
    depth = 0
    index = 0
    while index < len(lexemes):
        lexeme = lexemes[index]
        if lexeme.is_punct("("):
            depth += 1
        elif lexeme.is_punct(")"):
            depth -= 1
        elif depth == 0 and _is_keyword(lexeme, SET_OPERATORS):
            branches.append([])
            index += 1
            if _peek(lexemes, index) is not None and lexemes[index].is_word("ALL", "DISTINCT"):
                index += 1
            continue
        branches[-1].append(lexeme)
        index += 1
    return branches


def _segment_clauses(lexemes: Sequence[Lexeme]) -> list[tuple[str | None, list[Lexeme]]]:
    """Split one SELECT branch into ``(clause, body)`` pairs at depth zero."""
    segments: list[tuple[str | None, list[Lexeme]]] = []
    clause: str | None = None
    body: list[Lexeme] = []
    depth = 0
    index = 0
    while index < len(lexemes):
        lexeme = lexemes[index]
        if lexeme.is_punct("("):
            depth += 1
        elif lexeme.is_punct(")"):
            depth -= 1
            if depth < 0:
                raise SQLParseError("Invalid SQL: unbalanced parentheses.")
        elif depth == 0 and _is_keyword(lexeme, CLAUSE_KEYWORDS):
            name = lexeme.upper
            step = 1
            following = _peek(lexemes, index + 1)
            previous = _peek(lexemes, index - 1) if index else None
            if name in ("GROUP", "ORDER"):
                if following is None or not following.is_word("BY"):
                    body.append(lexeme)
                    index += 1
                    continue
                name = f"{name} BY"
                step = 2
            elif name == "FOR" and previous is not None and previous.is_word("INDEX", "KEY"):
                # USE INDEX FOR JOIN (...)
                body.append(lexeme)
                index += 1
                continue
            if clause is not None or body:
                segments.append((clause, body))
            clause, body = name, []
            index += step
            continue
        body.append(lexeme)
        index += 1

    if depth != 0:
        raise SQLParseError("Invalid SQL: unbalanced parentheses.")
    segments.append((clause, body))
    return segments


def _skips_reference(
    previous: Lexeme | None,
    following: Lexeme | None,
    parts: list[str],
) -> bool:
    if following is not None and following.is_punct("("):
        return True
    if previous is not None:
        if previous.kind is LexemeKind.OTHER and previous.text in ("@", "@@"):
            return True
        if _is_keyword(previous, NAME_INTRODUCERS):
            return True
    # DATE '2024-01-01', _utf8mb4 'text'
    if len(parts) == 1 and following is not None and following.kind is LexemeKind.LITERAL:
        return True
    return False


def _collect_refs(
    lexemes: Sequence[Lexeme],
    scope: QueryScope,
    ctes: CTEMap,
    clause: str,
) -> None:
    index = 0
    while index < len(lexemes):
        lexeme = lexemes[index]
        if lexeme.is_punct("(") and starts_query(lexemes, index):
            close = matching_paren(lexemes, index)
            scope.subqueries.append(extract_query(lexemes[index + 1 : close], ctes))
            index = close + 1
            continue
        if not _is_name(lexeme):
            index += 1
            continue

        previous = _peek(lexemes, index - 1) if index else None
        parts, end = _read_chain(lexemes, index)
        if not _skips_reference(previous, _peek(lexemes, end), parts):
            qualifier = parts[-2] if len(parts) > 1 else None
            scope.column_refs.append(ColumnRef(parts[-1], qualifier, clause))
        index = end


def _is_implicit_alias(last: Lexeme, previous: Lexeme) -> bool:
    if last.kind is LexemeKind.LITERAL:
        # Adjacent string literals concatenate; prefixed literals are typed.
        if previous.kind is LexemeKind.WORD and (
            previous.upper in TYPED_LITERAL_KEYWORDS or previous.text.startswith("_")
        ):
            return False
        return _is_name(previous) or previous.is_punct(")") or previous.is_word("END")
    if not _is_name(last):
        return False
    return (
        _is_name(previous)
        or previous.is_punct(")")
        or previous.kind is LexemeKind.LITERAL
        or previous.is_word("END")
    )


def _split_alias(item: list[Lexeme]) -> tuple[list[Lexeme], str | None]:
    if len(item) < 2:
        return item, None
    last, previous = item[-1], item[-2]
    if previous.is_word("AS") and (last.is_identifier or last.kind is LexemeKind.LITERAL):
        return item[:-2], last.text
    if _is_implicit_alias(last, previous):
        return item[:-1], last.text
    return item, None


def _plain_column(expression: list[Lexeme]) -> str | None:
    """Return the column name when the item is just ``[qualifier.]column``."""
    if not expression or len(expression) % 2 == 0:
        return None
    for position, lexeme in enumerate(expression):
        if position % 2:
            if not lexeme.is_punct("."):
                return None
        elif not lexeme.is_identifier:
            return None
    return expression[-1].text


def _is_star(expression: list[Lexeme]) -> bool:
    if not expression or not expression[-1].is_punct("*"):
        return False
    return len(expression) == 1 or expression[-2].is_punct(".")


def _extract_select(lexemes: list[Lexeme], scope: QueryScope, ctes: CTEMap) -> None:
    items = split_top_level(lexemes)
    first = items[0]
    skip = 0
    while skip < len(first) and _is_keyword(first[skip], SELECT_MODIFIERS):
        skip += 1
    items[0] = first[skip:]

    projection: list[str] | None = []
    for item in items:
        if not item:
            continue
        expression, alias = _split_alias(item)
        if alias is not None:
            scope.select_aliases.add(alias.lower())
            if projection is not None:
                projection.append(alias)
        elif _is_star(expression):
            projection = None
        elif projection is not None:
            name = _plain_column(expression)
            if name is not None:
                projection.append(name)
        _collect_refs(expression, scope, ctes, "SELECT")
    scope.projection = projection


def _extract_from(lexemes: Sequence[Lexeme], scope: QueryScope, ctes: CTEMap) -> None:
    index = 0
    expect_source = True
    lateral = False
    while index < len(lexemes):
        lexeme = lexemes[index]

        if lexeme.is_punct(",") or _is_keyword(lexeme, JOIN_KEYWORDS):
            expect_source = True
            index += 1
            continue

        if lexeme.is_word("ON"):
            end = _condition_end(lexemes, index + 1)
            _collect_refs(lexemes[index + 1 : end], scope, ctes, "ON")
            index = end
            continue

        if lexeme.is_word("USING"):
            names, index = _column_list(lexemes, index + 1)
            for name in names or []:
                scope.column_refs.append(ColumnRef(name, clause="USING"))
            continue

        if _is_keyword(lexeme, INDEX_HINT_KEYWORDS) or lexeme.is_word("PARTITION"):
            index = _skip_hint(lexemes, index)
            continue

        if lexeme.is_word("LATERAL"):
            lateral = True
            index += 1
            continue

        if lexeme.is_punct("("):
            close = matching_paren(lexemes, index)
            if starts_query(lexemes, index):
                query = extract_query(lexemes[index + 1 : close], ctes)
                alias, index = _read_alias(lexemes, close + 1)
                columns, index = _column_list(lexemes, index)
                if columns is None and query.projection is not None:
                    columns = list(query.projection)
                scope.derived.append(DerivedTable(alias or "", columns, query, lateral))
            else:
                # Parenthesized join group.
                _extract_from(lexemes[index + 1 : close], scope, ctes)
                index = close + 1
            expect_source = False
            lateral = False
            continue

        if expect_source and lexeme.is_word("DUAL"):
            expect_source = False
            index += 1
            continue

        if expect_source and _is_name(lexeme):
            parts, index = _read_chain(lexemes, index)
            following = _peek(lexemes, index)
            if following is not None and following.is_punct("("):
                # Table function such as JSON_TABLE(...): columns unknown.
                close = matching_paren(lexemes, index)
                alias, index = _read_alias(lexemes, close + 1)
                scope.derived.append(DerivedTable(alias or parts[-1]))
            else:
                alias, index = _read_alias(lexemes, index)
                cte = ctes.get(parts[0].lower()) if len(parts) == 1 else None
                if cte is not None:
                    columns = list(cte.columns) if cte.columns is not None else None
                    scope.derived.append(DerivedTable(alias or cte.alias, columns))
                else:
                    scope.tables.append(TableRef(parts[-1], alias))
            expect_source = False
            lateral = False
            continue

        index += 1


def _extract_window(lexemes: Sequence[Lexeme], scope: QueryScope, ctes: CTEMap) -> None:
    for definition in split_top_level(lexemes):
        for position, lexeme in enumerate(definition):
            if not lexeme.is_punct("("):
                continue
            close = matching_paren(definition, position)
            spec = definition[position + 1 : close]
            # A leading name is the base window: WINDOW w2 AS (w1 ORDER BY x)
            if spec and _is_name(spec[0]) and not (len(spec) > 1 and spec[1].is_punct(".")):
                spec = spec[1:]
            _collect_refs(spec, scope, ctes, "WINDOW")
            break


def _extract_branch(lexemes: Sequence[Lexeme], ctes: CTEMap) -> QueryScope:
    scope = QueryScope()
    for clause, body in _segment_clauses(lexemes):
        if clause == "SELECT":
            _extract_select(body, scope, ctes)
        elif clause == "FROM":
            _extract_from(body, scope, ctes)
        elif clause in ("WHERE", "GROUP BY", "HAVING", "ORDER BY"):
            _collect_refs(body, scope, ctes, clause)
        elif clause == "WINDOW":
            _extract_window(body, scope, ctes)
    return scope


def _extract_ctes(
    lexemes: Sequence[Lexeme],
    index: int,
    visible: dict[str, DerivedTable],
) -> tuple[list[DerivedTable], int]:
    recursive = False
    if _peek(lexemes, index) is not None and lexemes[index].is_word("RECURSIVE"):
        recursive = True
        index += 1

    definitions: list[DerivedTable] = []
    while _is_name(_peek(lexemes, index)):
        name = lexemes[index].text
        columns, index = _column_list(lexemes, index + 1)

        keyword = _peek(lexemes, index)
        opening = _peek(lexemes, index + 1)
        if keyword is None or not keyword.is_word("AS") or opening is None or not opening.is_punct("("):
            raise SQLParseError(f"Invalid SQL: malformed WITH definition for '{name}'.")
        close = matching_paren(lexemes, index + 1)

        cte = DerivedTable(name, columns)
        if recursive:
            visible[name.lower()] = cte
        cte.query = extract_query(lexemes[index + 2 : close], visible)
        if cte.columns is None and cte.query.projection is not None:
            cte.columns = list(cte.query.projection)
        visible[name.lower()] = cte
        definitions.append(cte)

        index = close + 1
        separator = _peek(lexemes, index)
        if separator is None or not separator.is_punct(","):
            break
        index += 1
    return definitions, index


def extract_query(lexemes: Sequence[Lexeme], ctes: CTEMap | None = None) -> ParsedQuery:
    """Extract tables, derived tables and column references from a query."""
    visible: dict[str, DerivedTable] = dict(ctes or {})
    query = ParsedQuery()
    index = 0
    if _peek(lexemes, 0) is not None and lexemes[0].is_word("WITH"):
        query.ctes, index = _extract_ctes(lexemes, 1, visible)

    for branch in _split_set_operations(lexemes[index:]):
        if not branch:
            continue
        if branch[0].is_punct("(") and starts_query(branch, 0):
            # (SELECT ...) UNION (SELECT ...): trailing ORDER BY/LIMIT is ignored.
            close = matching_paren(branch, 0)
            inner = extract_query(branch[1:close], visible)
            query.branches.extend(inner.branches)
            query.ctes.extend(inner.ctes)
            continue
        query.branches.append(_extract_branch(branch, visible))
    return query


def _extract_describe(lexemes: Sequence[Lexeme], index: int) -> ParsedQuery:
    for position in range(index, len(lexemes)):
        lexeme = lexemes[position]
        if lexeme.is_word("SELECT", "WITH") or (
            lexeme.is_punct("(") and starts_query(lexemes, position)
        ):
            return extract_query(lexemes[position:])

    if not _is_name(_peek(lexemes, index)):
        return ParsedQuery()
    parts, end = _read_chain(lexemes, index)
    scope = QueryScope(projection=None)
    scope.tables.append(TableRef(parts[-1]))
    column = _peek(lexemes, end)
    if column is not None and column.is_identifier:
        scope.column_refs.append(ColumnRef(column.text, parts[-1], "DESCRIBE"))
    return ParsedQuery(branches=[scope])


def extract_statement(lexemes: Sequence[Lexeme]) -> ParsedQuery:
    """Extract references from one statement, honouring SHOW/DESCRIBE/EXPLAIN."""
    index = 0
    while index < len(lexemes) and lexemes[index].is_punct("("):
        index += 1
    head = _peek(lexemes, index)
    if head is None or head.is_word("SHOW"):
        return ParsedQuery()
    if head.is_word("DESCRIBE", "DESC", "EXPLAIN"):
        return _extract_describe(lexemes, index + 1)
    return extract_query(lexemes)
