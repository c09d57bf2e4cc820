"""Rule manifest loading and compilation."""

from .rule_table_loader import (
    RuleCompilationError,
    RuleTableError,
    RuleTableLoader,
    compile_rule,
    default_rule_table,
)

__all__ = [
    "RuleCompilationError",
    "RuleTableError",
    "RuleTableLoader",
    "compile_rule",
    "default_rule_table",
]
