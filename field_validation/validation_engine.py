import html
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional

from .context import MISSING, UploadedFile, ValidationContext, is_upload_mapping
from .errors import RuleConfigurationError, UnknownNamedListError
from .rule_handlers import get_handler, is_empty, is_uploaded_file
from .rule_parser import RuleSpec, RuleToken, parse_rules

logger = logging.getLogger(__name__)

ErrorCollection = Dict[str, List[str]]


def escape_html(value: str) -> str:
    """Default sanitizer: escape markup characters, quotes included."""
    return html.escape(value, quote=True)


@dataclass
class ValidationResult:
    """Outcome of one validation run."""

    errors: ErrorCollection = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.passed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.passed,
            "errors": {name: list(messages) for name, messages in self.errors.items()},
        }


class Validator:
    """Applies rule specs to input data, field by field"""

    def __init__(
        self,
        context: Optional[ValidationContext] = None,
        sanitizer: Callable[[str], str] = escape_html,
        upload_checker: Callable[[UploadedFile], bool] = is_uploaded_file,
    ):
        """
        Initialize validator.

        Args:
            context: Context supplying default rules and named lists
            sanitizer: Applied to string values (and upload filenames) before
                any rule sees them
            upload_checker: Decides whether an UploadedFile really came from
                an upload and still exists
        """
        self.context = context
        self.sanitizer = sanitizer
        self.upload_checker = upload_checker
        self._errors: ErrorCollection = {}

    def validate(
        self, data: Mapping[str, Any], rules: Optional[Mapping[str, RuleSpec]] = None
    ) -> ValidationResult:
        """
        Validate data against a rule set.

        Every field in the rule set is processed in order. A field whose rules
        do not include "required" is skipped while its value is empty.

        Args:
            data: Field name to raw value (scalar, UploadedFile, or upload mapping)
            rules: Field name to rule spec; defaults to the context's rules

        Returns:
            ValidationResult; truthy when no field produced an error

        Raises:
            RuleConfigurationError: If the rule set names an undefined rule,
                omits a required parameter, or references an unknown list.
                The run is aborted.
        """
        if rules is None:
            if self.context is None:
                raise ValueError("No rules given and validator has no context")
            rules = self.context.rules

        self._errors = {}
        for field_name, rule_spec in rules.items():
            value = data.get(field_name, MISSING)
            self._apply_rules(field_name, value, parse_rules(rule_spec))

        return ValidationResult(self._errors)

    def get_errors(self) -> ErrorCollection:
        """Errors recorded by the most recent validate() call."""
        return self._errors

    def resolve_named_list(self, list_name: str) -> List[Any]:
        """Resolve a list parameter against the context."""
        if self.context is None:
            raise UnknownNamedListError(
                f"Named list '{list_name}' requested but validator has no context"
            )
        return self.context.resolve_named_list(list_name)

    def _apply_rules(self, field_name: str, value: Any, tokens: List[RuleToken]):
        if is_upload_mapping(value):
            value = UploadedFile.from_mapping(value)

        if not any(token.name == "required" for token in tokens) and is_empty(value):
            logger.debug(f"Skipping optional field '{field_name}' (empty value)")
            return

        value = self._sanitize(value)
        for token in tokens:
            self._apply_rule(field_name, value, token)

    def _apply_rule(self, field_name: str, value: Any, token: RuleToken):
        try:
            handler = get_handler(token.name)
            messages = handler(self, field_name, value, token.param)
        except RuleConfigurationError as e:
            logger.warning(f"Aborting validation at field '{field_name}': {e}")
            raise

        if messages is None:
            return
        if isinstance(messages, str):
            messages = [messages]
        for message in messages:
            self._errors.setdefault(field_name, []).append(message)

    def _sanitize(self, value: Any) -> Any:
        """Escape text; leave numbers, booleans and containers as they are."""
        if isinstance(value, UploadedFile):
            return replace(value, name=self.sanitizer(value.name))
        if isinstance(value, str):
            return self.sanitizer(value)
        return value
