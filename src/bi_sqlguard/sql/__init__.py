"""SQL safety screen and schema cross-reference."""

from bi_sqlguard.sql.parser import SQLParseError, tokenize_sql
from bi_sqlguard.sql.validator import (
    ErrorCode,
    InvalidColumn,
    SchemaValidationResult,
    SQLValidationError,
    SQLValidator,
    ValidationResult,
    ensure_safe_sql,
    validate_schema,
    validate_sql,
)

__all__ = [
    "SQLParseError",
    "tokenize_sql",
    "ErrorCode",
    "InvalidColumn",
    "SchemaValidationResult",
    "SQLValidationError",
    "SQLValidator",
    "ValidationResult",
    "ensure_safe_sql",
    "validate_schema",
    "validate_sql",
]
