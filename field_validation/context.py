"""
Validation contexts and input records.

A validation context is plain data: the rule table for one kind of input
(one form, one payload type) plus the named allow-lists its rules refer to.
Rules such as "in:valid_names" name a list on the context instead of
embedding it, so the list can be shared between fields and changed without
touching the rule table.

Contexts are built by the factory functions below, either directly in code
or from the "contexts" section of a YAML config document.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import UnknownNamedListError
from .rule_parser import RuleSpec


class _Missing:
    """Marker for a field key absent from the input data."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


@dataclass(frozen=True)
class UploadedFile:
    """
    An uploaded file as handed over by the web layer.

    Attributes:
        name: Client-supplied filename
        type: Client-supplied mime type
        tmp_name: Path of the temporary copy written by the upload transport
        uploaded: True only if the transport confirms tmp_name came from an upload
        size: Size in bytes, if known
    """

    name: str
    type: str
    tmp_name: str
    uploaded: bool = False
    size: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "UploadedFile":
        """Build a record from a form-upload style mapping."""
        return cls(
            name=str(data.get("name", "")),
            type=str(data.get("type", "")),
            tmp_name=str(data.get("tmp_name", "")),
            uploaded=bool(data.get("uploaded", False)),
            size=data.get("size"),
        )


def is_upload_mapping(value: Any) -> bool:
    """True if value is a mapping shaped like a file upload."""
    return isinstance(value, Mapping) and {"name", "type", "tmp_name"} <= set(value)


@dataclass
class ValidationContext:
    """
    Rule table plus the named lists referenced by its rules.

    Attributes:
        name: Context identifier (e.g. "registration_form")
        rules: Ordered mapping of field name to rule spec
        named_lists: Allow-lists referenced by "in:" and "mime:" parameters
        metadata: Free-form description data from config
    """

    name: str
    rules: Dict[str, RuleSpec] = field(default_factory=dict)
    named_lists: Dict[str, List[Any]] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def resolve_named_list(self, list_name: str) -> List[Any]:
        """
        Return the live named list.

        Raises:
            UnknownNamedListError: If the context defines no such list
        """
        try:
            return self.named_lists[list_name]
        except KeyError:
            raise UnknownNamedListError(
                f"Named list '{list_name}' is not defined on context '{self.name}'"
            ) from None


def make_context(
    name: str,
    rules: Mapping[str, RuleSpec],
    named_lists: Optional[Mapping[str, List[Any]]] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> ValidationContext:
    """
    Create a validation context.

    Example:
        ctx = make_context(
            "signup",
            {"name": "required|in:valid_names"},
            {"valid_names": ["Paul", "Larry"]},
        )
    """
    return ValidationContext(
        name=name,
        rules=dict(rules),
        named_lists={k: list(v) for k, v in (named_lists or {}).items()},
        metadata=dict(metadata or {}),
    )


def context_from_config(name: str, config: Mapping[str, Any]) -> ValidationContext:
    """Create a context from one entry of the config "contexts" section."""
    return make_context(
        name,
        config.get("rules", {}),
        config.get("lists", {}),
        config.get("metadata", {}),
    )
