"""
Built-in rule handlers.

Every rule name maps to one handler in RULE_HANDLERS. A handler receives the
running validator, the field name, the (already sanitized) value and the
rule parameter, and returns an error message, an iterable of messages, or
None when the value passes.

Handlers other than "required" only run once a field has passed the
emptiness gate, so they never see an empty optional value.
"""

import math
import os
import re
from collections.abc import Sized
from typing import Any, Callable, Dict, List, Optional, Tuple

from email_validator import EmailNotValidError, validate_email

from .context import MISSING, UploadedFile
from .errors import InvalidRuleParameterError, RuleNotDefinedError

# Matches what a form would submit for a number: optional sign, digits with an
# optional fraction, optional exponent, surrounding whitespace allowed.
NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")

# No leading zeros, no whitespace, no fraction.
INTEGER_RE = re.compile(r"^[+-]?(0|[1-9]\d*)$")

ACCEPTED_BOOLEAN_STRINGS = frozenset(["0", "1", "on", "off", "true", "false"])

# Filename extensions accepted for each mime type. Types missing here have no
# valid extension, so the "mime" rule always rejects them.
MIME_EXTENSIONS: Dict[str, Tuple[str, ...]] = {
    "image/gif": (".gif",),
    "image/png": (".png",),
    "image/jpeg": (".jpg",),
    "image/apng": (".apng",),
    "image/webp": (".webp",),
    "image/jpe": (".jpe",),
    "image/svg+xml": (".svg",),
    "text/plain": (".txt",),
    "text/csv": (".csv",),
    "text/html": (".htm", ".html"),
    "application/epub+zip": (".epub",),
    "application/gzip": (".gz",),
    "application/json": (".json",),
    "application/ld+json": (".jsonld",),
    "application/pdf": (".pdf",),
    "audio/mpeg": (".mp3",),
    "video/mp4": (".mp4",),
    "video/mpeg": (".mpeg",),
}


def is_empty(value: Any) -> bool:
    """
    Emptiness policy shared by the short-circuit and the "required" rule.

    Empty: MISSING, None, False, "", "0", numeric zero and empty containers.
    An uploaded file record is never empty.
    """
    if value is MISSING or value is None or value is False:
        return True
    if isinstance(value, UploadedFile):
        return False
    if isinstance(value, str):
        return value in ("", "0")
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, Sized):
        return len(value) == 0
    return False


def is_numeric(value: Any) -> bool:
    """
    True for finite numbers (not bools) and strings that read as one.

    "1e999" matches the number grammar but overflows to infinity, so it is
    treated as text.
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        return NUMERIC_RE.match(value) is not None and math.isfinite(float(value))
    return False


def to_number(value: Any):
    """Numeric value of an is_numeric() value; ints stay exact."""
    if isinstance(value, int):
        return value
    return float(value)


def is_uploaded_file(upload: UploadedFile) -> bool:
    """Default upload check: flagged as uploaded and still present on disk."""
    return bool(upload.uploaded) and os.path.isfile(upload.tmp_name)


def expected_extensions(mime_type: str) -> Tuple[str, ...]:
    """Extensions a filename may carry for the given mime type."""
    return MIME_EXTENSIONS.get(mime_type, ())


def _numeric_param(rule: str, param: Optional[str]) -> float:
    if param is None or not is_numeric(param):
        raise InvalidRuleParameterError(
            f"Rule '{rule}' needs a numeric parameter, got {param!r}"
        )
    return float(param)


def _list_param(rule: str, param: Optional[str]) -> str:
    if not param:
        raise InvalidRuleParameterError(
            f"Rule '{rule}' needs the name of a list parameter"
        )
    return param


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def validate_required(validator, field: str, value: Any, param: Optional[str]):
    if is_empty(value):
        return f"The {field} field is required."


def validate_string(validator, field: str, value: Any, param: Optional[str]):
    if not isinstance(value, str):
        return f"The {field} field must be a string."


def validate_max(validator, field: str, value: Any, param: Optional[str]):
    """Length limit for text, magnitude limit for numbers."""
    limit = _numeric_param("max", param)
    if isinstance(value, str) and not is_numeric(value):
        if len(value) > limit:
            return f"The {field} field must not exceed {param} characters."
    elif is_numeric(value) and to_number(value) > limit:
        return f"The {field} field must not exceed {param}."


def validate_min(validator, field: str, value: Any, param: Optional[str]):
    """
    Length floor for text, magnitude floor for numbers.

    The numeric branch truncates the value toward zero before comparing,
    so 17.9 fails "min:18".
    """
    limit = _numeric_param("min", param)
    if isinstance(value, str) and not is_numeric(value):
        if len(value) < limit:
            return f"The {field} field must be minimum {param} characters."
    elif is_numeric(value) and math.trunc(to_number(value)) < limit:
        return f"The {field} field must be minimum {param}."


def validate_integer(validator, field: str, value: Any, param: Optional[str]):
    if isinstance(value, bool):
        valid = False
    elif isinstance(value, int):
        valid = True
    elif isinstance(value, float):
        valid = value.is_integer()
    elif isinstance(value, str):
        valid = INTEGER_RE.match(value) is not None
    else:
        valid = False

    if not valid:
        return f"The {field} field must be an integer."


def validate_email_address(validator, field: str, value: Any, param: Optional[str]):
    message = f"The {field} field must be a valid email address."
    if not isinstance(value, str):
        return message
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return message


def validate_in(validator, field: str, value: Any, param: Optional[str]):
    allowed = validator.resolve_named_list(_list_param("in", param))
    if value not in allowed:
        return f"The {field} field is invalid."


def validate_file(validator, field: str, value: Any, param: Optional[str]):
    if not isinstance(value, UploadedFile) or not validator.upload_checker(value):
        return f"Missing {field} field."


def validate_mime(validator, field: str, value: Any, param: Optional[str]):
    """Mime type must be allowed and the filename must carry its extension."""
    allowed = validator.resolve_named_list(_list_param("mime", param))
    message = "Invalid File Type"

    if not isinstance(value, UploadedFile) or value.type not in allowed:
        return message

    extensions = expected_extensions(value.type)
    if not extensions or not value.name.endswith(extensions):
        return message


def validate_bool(validator, field: str, value: Any, param: Optional[str]):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and value in (0, 1):
        return None
    if isinstance(value, str) and value in ACCEPTED_BOOLEAN_STRINGS:
        return None
    return f"{field} field is invalid."


Handler = Callable[[Any, str, Any, Optional[str]], Any]

RULE_HANDLERS: Dict[str, Handler] = {
    "required": validate_required,
    "string": validate_string,
    "max": validate_max,
    "min": validate_min,
    "integer": validate_integer,
    "email": validate_email_address,
    "in": validate_in,
    "file": validate_file,
    "mime": validate_mime,
    "bool": validate_bool,
}

RULE_DESCRIPTIONS: Dict[str, str] = {
    "required": "Value must be present and non-empty",
    "string": "Value must be text",
    "max": "Text length, or numeric value, must not exceed the parameter",
    "min": "Text length, or truncated numeric value, must reach the parameter",
    "integer": "Value must be a whole number without padding",
    "email": "Value must be a syntactically valid email address",
    "in": "Value must be a member of the named list",
    "file": "Value must be a file that was actually uploaded",
    "mime": "File type must be in the named list and match the filename extension",
    "bool": "Value must be a boolean or one of 0, 1, on, off, true, false",
}


def get_handler(rule_name: str) -> Handler:
    """
    Look up the handler for a rule name.

    Raises:
        RuleNotDefinedError: If no handler exists for rule_name
    """
    try:
        return RULE_HANDLERS[rule_name]
    except KeyError:
        raise RuleNotDefinedError(rule_name) from None


def describe_rule(rule_name: str) -> str:
    """Return the one-line description of a built-in rule."""
    get_handler(rule_name)
    return RULE_DESCRIPTIONS[rule_name]


def available_rules() -> List[str]:
    """Names of all built-in rules, in table order."""
    return list(RULE_HANDLERS)
