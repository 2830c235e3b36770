"""Lifecycle of an uploaded image asset."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from domain.common.exceptions import IllegalStateTransitionException


class AssetState(str, Enum):
    UPLOADED = "uploaded"
    VALIDATED = "validated"
    REJECTED = "rejected"
    PROMOTED = "promoted"
    DERIVATIVES_PENDING = "derivatives_pending"
    DERIVATIVES_READY = "derivatives_ready"


_TRANSITIONS: dict[AssetState, set[AssetState]] = {
    AssetState.UPLOADED: {AssetState.VALIDATED},
    AssetState.VALIDATED: {AssetState.REJECTED, AssetState.PROMOTED},
    AssetState.PROMOTED: {AssetState.DERIVATIVES_PENDING},
    AssetState.DERIVATIVES_PENDING: {AssetState.DERIVATIVES_READY},
    AssetState.REJECTED: set(),
    AssetState.DERIVATIVES_READY: set(),
}


@dataclass
class MediaAsset:
    """An image moving from a temp key to a permanent key plus derivatives.

    ``derivatives`` maps spec name to URL and only holds the sizes that
    were generated; a missing name means "not generated".
    """

    key: str
    original_filename: str
    state: AssetState = AssetState.UPLOADED
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    derivatives: dict[str, str] = field(default_factory=dict)
    failed_derivatives: list[str] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    def _move(self, target: AssetState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise IllegalStateTransitionException(self.state.value, target.value)
        self.state = target
        self.updated_at = datetime.now(timezone.utc)

    def mark_validated(self, warnings: Optional[list[str]] = None) -> None:
        self._move(AssetState.VALIDATED)
        self.warnings = list(warnings or [])

    def reject(self, errors: list[str]) -> None:
        self._move(AssetState.REJECTED)
        self.errors = list(errors)

    def promote(self, permanent_key: str) -> None:
        self._move(AssetState.PROMOTED)
        self.key = permanent_key

    def start_derivatives(self) -> None:
        self._move(AssetState.DERIVATIVES_PENDING)

    def finish_derivatives(self, generated: dict[str, str], failed: list[str]) -> None:
        self._move(AssetState.DERIVATIVES_READY)
        self.derivatives = dict(generated)
        self.failed_derivatives = list(failed)

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]
