"""
Public API for field-validation-lib

This is the "front door" - the main entry point for validating records
against the validation contexts defined in configuration.
"""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional

from .config_loader import ConfigLoader
from .context import ValidationContext, context_from_config
from .rule_handlers import describe_rule
from .rule_parser import format_rules, parse_rules
from .validation_engine import Validator

logger = logging.getLogger(__name__)


class ValidationService:
    """
    Main validation service class.

    Builds validation contexts from configuration and validates records
    against them by name.

    Auto-refresh: the contexts config is reloaded when older than
    config_cache_max_age_seconds (checked at most every CHECK_INTERVAL seconds).

    Example:
        from field_validation import ValidationService

        service = ValidationService()
        outcome = service.validate("registration_form", form_data)
        if not outcome["valid"]:
            for field, messages in outcome["errors"].items():
                print(field, messages)
    """

    # Debounce interval for the staleness check (seconds)
    CHECK_INTERVAL = 300

    def __init__(self, local_config_path: Optional[str] = None, validator_options: Optional[Dict[str, Any]] = None):
        """
        Initialize validation service.

        Args:
            local_config_path: Local config file; defaults to the bundled one
            validator_options: Keyword arguments passed to every Validator
                (sanitizer, upload_checker)

        Raises:
            RuntimeError: If config loading fails
            ValueError: If the contexts config is malformed
        """
        self._local_config_path = local_config_path
        self._validator_options = dict(validator_options or {})
        self._initialize()

    def _initialize(self, use_cache: bool = True):
        """Internal initialization logic (used by __init__ and reload_config)."""
        if use_cache:
            self.config_loader = ConfigLoader(self._local_config_path)
        else:
            self.config_loader.load_contexts_config(use_cache=False)

        self._max_age = self.config_loader.get_config_max_age()
        self.contexts = {
            name: context_from_config(name, data)
            for name, data in self.config_loader.get_contexts_config()["contexts"].items()
        }
        self._last_check_time = time.time()

    def _check_and_reload_if_stale(self):
        """Reload the contexts config if stale (debounced)."""
        now = time.time()
        if now - self._last_check_time < self.CHECK_INTERVAL:
            return

        self._last_check_time = now

        age = self.config_loader.get_contexts_config_age()
        if age and age > self._max_age:
            logger.info(f"Contexts config stale ({age:.0f}s > {self._max_age}s), reloading")
            try:
                self.reload_config()
            except (RuntimeError, ValueError) as e:
                logger.warning(f"Contexts config reload failed, keeping current contexts: {e}")

    def get_context(self, context_name: str) -> ValidationContext:
        """
        Look up a configured context by name.

        Raises:
            ValueError: If no such context is configured
        """
        try:
            return self.contexts[context_name]
        except KeyError:
            raise ValueError(
                f"Unknown validation context: {context_name}. "
                f"Available: {', '.join(sorted(self.contexts))}"
            ) from None

    def validate(self, context_name: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Validate a single record against a named context.

        Args:
            context_name: Configured context (e.g. "registration_form")
            data: Field name to raw value

        Returns:
            Dict with:
                - context: The context name
                - valid: True if no field failed
                - errors: Field name to list of messages

        Raises:
            ValueError: If context_name is unknown
            RuleConfigurationError: If the context's rule table is broken

        Example:
            outcome = service.validate("contact_form", {
                "email": "jo@example.com",
                "subject": "Hello",
                "message": "A longer message body",
            })
        """
        self._check_and_reload_if_stale()

        context = self.get_context(context_name)
        result = Validator(context, **self._validator_options).validate(data)
        return {"context": context_name, **result.to_dict()}

    def batch_validate(self, records: List[Mapping[str, Any]], id_fields: List[str], context_name: str) -> List[Dict[str, Any]]:
        """
        Validate multiple records against the same context, in input order.

        Args:
            records: List of field-to-value dicts
            id_fields: Field names used to build each record's identifier
            context_name: Context to use for all records

        Returns:
            List of per-record results, each containing:
                - record_id: Identifier built from id_fields
                - valid: True if the record passed
                - errors: Field name to list of messages

        Example:
            results = service.batch_validate(rows, ["email"], "contact_form")
            failed = [r["record_id"] for r in results if not r["valid"]]
        """
        self._check_and_reload_if_stale()

        validator = Validator(self.get_context(context_name), **self._validator_options)
        results = []
        for record in records:
            result = validator.validate(record)
            results.append({"record_id": self._extract_id(record, id_fields), **result.to_dict()})

        return results

    def discover_contexts(self) -> Dict[str, Dict[str, Any]]:
        """
        Discover configured contexts with metadata and statistics.

        Returns:
            Dict mapping context name to {metadata, stats} where stats has
            total_fields, total_rules, required_fields and named_lists
        """
        self._check_and_reload_if_stale()

        result = {}
        for name, context in self.contexts.items():
            result[name] = {
                "metadata": dict(context.metadata),
                "stats": self._compute_context_stats(context),
            }
        return result

    def discover_rules(self, context_name: str) -> Dict[str, Dict[str, Any]]:
        """
        Describe the rules of a context without running them.

        Returns:
            Dict mapping field name to:
                - rules: The rule spec in pipe-delimited form
                - required: Whether the field is required
                - tokens: List of {rule, param, description}

        Raises:
            ValueError: If context_name is unknown
            RuleNotDefinedError: If a field names an undefined rule
        """
        self._check_and_reload_if_stale()

        context = self.get_context(context_name)
        result = {}
        for field_name, rule_spec in context.rules.items():
            tokens = parse_rules(rule_spec)
            result[field_name] = {
                "rules": format_rules(tokens),
                "required": any(t.name == "required" for t in tokens),
                "tokens": [
                    {"rule": t.name, "param": t.param, "description": describe_rule(t.name)}
                    for t in tokens
                ],
            }
        return result

    def reload_config(self):
        """
        Reload the contexts config from source.

        A remote config is fetched again; the cached copy is only replaced
        once the new document has been fetched and checked.

        Raises:
            RuntimeError: If the config cannot be read or fetched
            ValueError: If the new contexts config is malformed
        """
        self._initialize(use_cache=False)

    def get_config_age(self) -> Optional[float]:
        """Age of the loaded contexts config in seconds."""
        return self.config_loader.get_contexts_config_age()

    def _compute_context_stats(self, context: ValidationContext) -> Dict[str, Any]:
        total_rules = 0
        required_fields = []
        for field_name, rule_spec in context.rules.items():
            tokens = parse_rules(rule_spec)
            total_rules += len(tokens)
            if any(t.name == "required" for t in tokens):
                required_fields.append(field_name)

        return {
            "total_fields": len(context.rules),
            "total_rules": total_rules,
            "required_fields": required_fields,
            "named_lists": sorted(context.named_lists),
        }

    def _extract_id(self, record, id_fields):
        """
        Build a record identifier from id_fields.

        Returns:
            Values joined with "-", or "unknown" if none are present
        """
        id_parts = [str(record[f]) for f in id_fields if f in record]
        if not id_parts:
            return "unknown"
        return "-".join(id_parts)
