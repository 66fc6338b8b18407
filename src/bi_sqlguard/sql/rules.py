"""Keyword tables for the read-only SQL gate."""

from __future__ import annotations

ALLOWED_LEADING_KEYWORDS = frozenset(
    {"SELECT", "SHOW", "DESCRIBE", "DESC", "EXPLAIN", "WITH"}
)

# Rejected wherever they appear unquoted, so the list stays clear of words
# that are plausible column names.
FORBIDDEN_KEYWORDS = frozenset(
    {
        "INSERT",
        "UPDATE",
        "DELETE",
        "DROP",
        "ALTER",
        "TRUNCATE",
        "CREATE",
        "GRANT",
        "REVOKE",
        "EXEC",
        "EXECUTE",
        "REPLACE",
        "MERGE",
        "RENAME",
        "CALL",
        "LOAD",
        "LOCK",
        "UNLOCK",
        "INTO",
        "OUTFILE",
        "DUMPFILE",
        "KILL",
        "PURGE",
        "OPTIMIZE",
        "SHUTDOWN",
    }
)

# MySQL scalar functions that share a name with a forbidden verb.
FUNCTION_KEYWORDS = frozenset({"INSERT", "REPLACE", "TRUNCATE"})

SET_OPERATORS = frozenset({"UNION", "INTERSECT", "EXCEPT"})

JOIN_KEYWORDS = frozenset(
    {"JOIN", "INNER", "LEFT", "RIGHT", "FULL", "OUTER", "CROSS", "NATURAL", "STRAIGHT_JOIN"}
)

INDEX_HINT_KEYWORDS = frozenset({"USE", "FORCE", "IGNORE"})

# Clauses that start a new segment at the top level of a SELECT.
CLAUSE_KEYWORDS = frozenset(
    {
        "SELECT",
        "FROM",
        "WHERE",
        "GROUP",
        "HAVING",
        "ORDER",
        "LIMIT",
        "OFFSET",
        "WINDOW",
        "INTO",
        "FOR",
        "LOCK",
    }
)

# Clauses where a bare name may refer to a SELECT-list alias.
ALIAS_CLAUSES = frozenset({"ORDER BY", "GROUP BY", "HAVING"})

SELECT_MODIFIERS = frozenset(
    {
        "DISTINCT",
        "DISTINCTROW",
        "ALL",
        "HIGH_PRIORITY",
        "STRAIGHT_JOIN",
        "SQL_SMALL_RESULT",
        "SQL_BIG_RESULT",
        "SQL_BUFFER_RESULT",
        "SQL_NO_CACHE",
        "SQL_CACHE",
        "SQL_CALC_FOUND_ROWS",
    }
)

# Words after which the next identifier is a name, not a column reference.
NAME_INTRODUCERS = frozenset({"AS", "COLLATE", "USING", "CHARSET", "SET", "OVER"})

# Keywords that prefix a literal, as in DATE '2024-01-01'.
TYPED_LITERAL_KEYWORDS = frozenset({"DATE", "TIME", "TIMESTAMP", "DATETIME", "INTERVAL"})

TIME_UNITS = frozenset(
    {
        "MICROSECOND",
        "SECOND",
        "MINUTE",
        "HOUR",
        "DAY",
        "WEEK",
        "MONTH",
        "QUARTER",
        "YEAR",
        "SECOND_MICROSECOND",
        "MINUTE_MICROSECOND",
        "MINUTE_SECOND",
        "HOUR_MICROSECOND",
        "HOUR_SECOND",
        "HOUR_MINUTE",
        "DAY_MICROSECOND",
        "DAY_SECOND",
        "DAY_MINUTE",
        "DAY_HOUR",
        "YEAR_MONTH",
    }
)

RESERVED_WORDS = (
    FORBIDDEN_KEYWORDS
    | ALLOWED_LEADING_KEYWORDS
    | SET_OPERATORS
    | JOIN_KEYWORDS
    | INDEX_HINT_KEYWORDS
    | CLAUSE_KEYWORDS
    | SELECT_MODIFIERS
    | NAME_INTRODUCERS
    | TIME_UNITS
    | frozenset(
        {
            "AND",
            "OR",
            "NOT",
            "XOR",
            "IN",
            "IS",
            "NULL",
            "TRUE",
            "FALSE",
            "UNKNOWN",
            "LIKE",
            "RLIKE",
            "REGEXP",
            "BETWEEN",
            "ESCAPE",
            "EXISTS",
            "ANY",
            "SOME",
            "CASE",
            "WHEN",
            "THEN",
            "ELSE",
            "END",
            "ON",
            "BY",
            "ASC",
            "NULLS",
            "DIV",
            "MOD",
            "BINARY",
            "INTERVAL",
            "OVER",
            "PARTITION",
            "ROWS",
            "RANGE",
            "UNBOUNDED",
            "PRECEDING",
            "FOLLOWING",
            "CURRENT",
            "ROW",
            "ROLLUP",
            "CUBE",
            "SEPARATOR",
            "LEADING",
            "TRAILING",
            "BOTH",
            "AGAINST",
            "BOOLEAN",
            "MODE",
            "NATURAL",
            "LANGUAGE",
            "EXPANSION",
            "QUERY",
            "SHARE",
            "NOWAIT",
            "SKIP",
            "LOCKED",
            "OF",
            "INDEX",
            "KEY",
            "RECURSIVE",
            "LATERAL",
            "DUAL",
            "SIGNED",
            "UNSIGNED",
            "CHAR",
            "DECIMAL",
            "INTEGER",
            "CHARACTER",
            "CURRENT_DATE",
            "CURRENT_TIME",
            "CURRENT_TIMESTAMP",
            "CURRENT_USER",
            "LOCALTIME",
            "LOCALTIMESTAMP",
            "UTC_DATE",
            "UTC_TIME",
            "UTC_TIMESTAMP",
            "MEMBER",
            "SOUNDS",
            "ANALYZE",
            "EXTENDED",
            "VALUES",
            "DEFAULT",
        }
    )
)
