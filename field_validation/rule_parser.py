"""
Rule Parser - Tokenizing Rule Specifications

A rule specification describes every check for one field, either as a
pipe-delimited string or as an already-split sequence:

    "string|max:30|min:4|required|in:valid_names"
    ["string", "max:30", "min:4", "required", "in:valid_names"]

Each element is split on its first colon into a rule name and an optional
parameter. Further colons belong to the parameter.

Malformed specifications are not rejected here. An empty rule name (from a
trailing or doubled pipe) produces a degenerate token that the engine refuses
as an undefined rule.
"""

from typing import List, NamedTuple, Optional, Sequence, Union

RuleSpec = Union[str, Sequence[str]]

RULE_DELIMITER = "|"
PARAM_DELIMITER = ":"


class RuleToken(NamedTuple):
    """One parsed rule: name plus optional parameter."""

    name: str
    param: Optional[str] = None

    def __str__(self) -> str:
        if self.param is None:
            return self.name
        return f"{self.name}{PARAM_DELIMITER}{self.param}"


def parse_rule(rule: str) -> RuleToken:
    """Split a single "name" or "name:param" string into a RuleToken."""
    if PARAM_DELIMITER in rule:
        name, param = rule.split(PARAM_DELIMITER, 1)
        return RuleToken(name, param)
    return RuleToken(rule)


def parse_rules(rule_spec: RuleSpec) -> List[RuleToken]:
    """
    Parse a rule specification into an ordered list of tokens.

    Args:
        rule_spec: Pipe-delimited string, or sequence of rule strings

    Returns:
        List of RuleToken in written order
    """
    if isinstance(rule_spec, str):
        rules = rule_spec.split(RULE_DELIMITER)
    else:
        rules = [str(rule) for rule in rule_spec]

    return [parse_rule(rule) for rule in rules]


def format_rules(tokens: Sequence[RuleToken]) -> str:
    """Render tokens back into pipe-delimited form."""
    return RULE_DELIMITER.join(str(token) for token in tokens)
