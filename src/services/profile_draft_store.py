"""In-memory edit buffer for the account page."""

from typing import Any

from src.api.middleware.error_handler import ValidationError
from src.schemas.profile import ProfileDraft


class ProfileDraftStore:
    """Holds the current draft and the snapshot it is diffed against."""

    def __init__(self, snapshot: ProfileDraft) -> None:
        self._snapshot = snapshot
        self._draft = snapshot.model_copy(deep=True)

    @property
    def snapshot(self) -> ProfileDraft:
        """The last-saved values."""
        return self._snapshot

    def get(self) -> ProfileDraft:
        """Return the current draft."""
        return self._draft

    def set(self, field: str, value: Any) -> None:
        """Update one draft field.

        Args:
            field: Attribute name or form field name (e.g. ``statusText``).
            value: New value.

        Raises:
            ValidationError: If the field does not exist or the value has the wrong type.
        """
        attribute = ProfileDraft.field_for(field)
        if attribute is None:
            raise ValidationError(
                f"Unknown profile field: {field}",
                details=[{"loc": [field], "msg": "Unknown profile field", "type": "unknown_field"}],
            )

        values = self._draft.model_dump()
        values[attribute] = value
        try:
            self._draft = ProfileDraft.model_validate(values)
        except ValueError as e:
            raise ValidationError(f"Invalid value for {field}") from e

    def is_dirty(self) -> bool:
        """Whether any draft field differs from the snapshot."""
        return self._draft.model_dump() != self._snapshot.model_dump()

    def reset(self, snapshot: ProfileDraft) -> None:
        """Replace both the snapshot and the draft."""
        self._snapshot = snapshot
        self._draft = snapshot.model_copy(deep=True)
