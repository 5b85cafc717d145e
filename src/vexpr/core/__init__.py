"""Core runtime modules for vexpr."""

__all__ = [
    "ast",
    "builtins",
    "evaluator",
    "exceptions",
    "incremental",
    "parser",
    "program",
    "scope",
    "template",
    "values",
]
