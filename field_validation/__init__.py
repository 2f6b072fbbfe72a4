"""
field-validation-lib: Declarative field validation with pipe-delimited rules

This library provides:
- A small rule language ("string|max:30|required|in:valid_names")
- Ordered, non-stopping rule evaluation with per-field error messages
- Optional-field semantics: fields without "required" are only checked when non-empty
- Validation contexts defined in YAML, with named allow-lists
- Two-tier configuration loaded from local or remote sources

Example:
    from field_validation import Validator, make_context

    ctx = make_context("signup", {"age": "integer|required|min:18"})
    result = Validator(ctx).validate({"age": 16})
    result.errors  # {"age": ["The age field must be minimum 18."]}
"""

from .api import ValidationService
from .context import MISSING, UploadedFile, ValidationContext, context_from_config, make_context
from .errors import (
    InvalidRuleParameterError,
    RuleConfigurationError,
    RuleNotDefinedError,
    UnknownNamedListError,
)
from .rule_parser import RuleToken, parse_rules
from .validation_engine import ValidationResult, Validator

__version__ = "0.1.0"
__all__ = [
    "ValidationService",
    "Validator",
    "ValidationResult",
    "ValidationContext",
    "UploadedFile",
    "MISSING",
    "make_context",
    "context_from_config",
    "RuleToken",
    "parse_rules",
    "RuleConfigurationError",
    "RuleNotDefinedError",
    "InvalidRuleParameterError",
    "UnknownNamedListError",
]
