"""
Configuration errors.

These signal a broken rule table, not bad input. Input that fails a rule is
reported through the validation result and never raises.
"""


class RuleConfigurationError(ValueError):
    """Base class for errors in a rule table or context definition."""


class RuleNotDefinedError(RuleConfigurationError):
    """A rule spec names a rule with no handler."""

    def __init__(self, rule_name: str):
        self.rule_name = rule_name
        super().__init__(f"Validation rule {rule_name} not defined.")


class InvalidRuleParameterError(RuleConfigurationError):
    """A rule is missing its parameter or was given an unusable one."""


class UnknownNamedListError(RuleConfigurationError):
    """A rule parameter names a list the context does not define."""
