"""Errors raised while normalising raw issues."""

from __future__ import annotations

_PREVIEW_LIMIT = 80


class IssueNormalizationError(ValueError):
    """Raised when a raw issue cannot be mapped to a document."""

    @classmethod
    def not_an_object(cls, raw: object) -> IssueNormalizationError:
        """Return an error for a listing entry that is not a JSON object."""
        return cls(f"Issue payload must be an object, got {type(raw).__name__}")

    @classmethod
    def missing_id(cls, number: object) -> IssueNormalizationError:
        """Return an error for an issue without an integer ``id``."""
        return cls(f"Issue #{number} has no integer id")

    @classmethod
    def invalid_field(cls, field: str, value: object) -> IssueNormalizationError:
        """Return an error for a malformed field value."""
        preview = repr(value)[:_PREVIEW_LIMIT]
        return cls(f"Issue field {field} is malformed: {preview}")
