"""Domain level failures raised by the mailbox use cases."""

from __future__ import annotations

from collections.abc import Mapping, Sequence


class ValidationFailure(ValueError):
    """Raised when an entity cannot be persisted because it is invalid."""

    def __init__(self, errors: Mapping[str, Sequence[str]]) -> None:
        self.errors = {field: list(messages) for field, messages in errors.items()}
        summary = "; ".join(
            f"{field} {message}"
            for field, messages in self.errors.items()
            for message in messages
        )
        super().__init__(summary or "validation failed")


__all__ = ["ValidationFailure"]
