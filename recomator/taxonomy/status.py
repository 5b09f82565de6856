"""
Recommendation status vocabularies and the translation boundary between them.

Two vocabularies exist:
  - ``BackendStatus``        — strings the Recomator API sends in
                               ``stateInfo.state`` and ``/checkStatus``.
  - ``RecommendationStatus`` — the client's lifecycle states.

State machine::

    ACTIVE ──apply──▶ CLAIMED ──▶ SUCCEEDED
                         │
                         └──────▶ FAILED ──re-apply──▶ CLAIMED

``DISMISSED`` recommendations are shown but never transition.

Usage example::

    from recomator.taxonomy.status import to_internal_status, display_name

    status = to_internal_status("ACTIVE")   # RecommendationStatus.ACTIVE
    display_name(status)                    # "Applicable"

This module has NO imports from any other ``recomator`` package except errors.
"""

from enum import StrEnum

from recomator.errors import UnknownStatusError


class RecommendationStatus(StrEnum):
    """Client-side lifecycle state of a recommendation."""

    ACTIVE = "ACTIVE"
    """As received from the backend; not yet acted on."""

    CLAIMED = "CLAIMED"
    """Apply requested (by us or another operator); outcome pending."""

    SUCCEEDED = "SUCCEEDED"
    """Terminal: applied successfully."""

    FAILED = "FAILED"
    """Terminal until the user re-applies."""

    DISMISSED = "DISMISSED"
    """Dismissed on the backend; displayed, never applied."""


class BackendStatus(StrEnum):
    """Status strings returned by ``GET /recommendations/checkStatus``."""

    ACTIVE = "ACTIVE"
    CLAIMED = "CLAIMED"
    IN_PROGRESS = "IN PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    NOT_APPLIED = "NOT APPLIED"


TERMINAL_STATUSES: frozenset[RecommendationStatus] = frozenset({
    RecommendationStatus.SUCCEEDED,
    RecommendationStatus.FAILED,
})

# Statuses that can be (re-)applied by the user.
APPLICABLE_STATUSES: frozenset[RecommendationStatus] = frozenset({
    RecommendationStatus.ACTIVE,
    RecommendationStatus.FAILED,
})

_DISPLAY_NAMES: dict[RecommendationStatus, str] = {
    RecommendationStatus.ACTIVE:    "Applicable",
    RecommendationStatus.CLAIMED:   "In progress",
    RecommendationStatus.SUCCEEDED: "Success",
    RecommendationStatus.FAILED:    "Failed",
    RecommendationStatus.DISMISSED: "Dismissed",
}


def to_internal_status(status_name: str) -> RecommendationStatus:
    """Translate a backend ``stateInfo.state`` string into a lifecycle state.

    Raises:
        UnknownStatusError: For any string outside the fixed mapping.
    """
    try:
        return RecommendationStatus(status_name)
    except ValueError:
        raise UnknownStatusError(status_name) from None


def display_name(status: RecommendationStatus) -> str:
    """Return the user-facing label, e.g. ``"In progress"`` for CLAIMED."""
    return _DISPLAY_NAMES[status]
