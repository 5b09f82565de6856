"""
Recommendation models — wire format and the engine's working record.

Two-stage design:
  1. ``RawRecommendation``    — the JSON object exactly as returned by
                                ``GET /recommendations?request_id=...``
                                (camelCase keys, Google Recommender layout).
  2. ``RecommendationRecord`` — built once from a raw object at ingestion,
                                with derived display fields computed up front
                                and the mutable lifecycle fields the engine
                                drives.

``RawRecommendation`` and its parts are frozen.  ``RecommendationRecord``
is NOT frozen — ``status``, ``needs_watcher``, ``error_header`` and
``error_description`` change as the apply/observe state machine runs.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from recomator.errors import RecommendationParseError
from recomator.taxonomy.status import (
    RecommendationStatus,
    display_name,
    to_internal_status,
)

logger = logging.getLogger(__name__)

SECONDS_PER_WEEK = 60 * 60 * 24 * 7
NANOS_PER_UNIT = 1_000_000_000

_WIRE = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# ── Wire format ───────────────────────────────────────────────────────────────


class Money(BaseModel):
    """Google ``Money``: whole ``units`` (string-encoded int64) plus ``nanos``."""

    model_config = _WIRE

    currency_code: str = Field("USD", alias="currencyCode")
    units: Optional[str] = None
    nanos: Optional[int] = None


class CostProjection(BaseModel):
    model_config = _WIRE

    cost: Money
    duration: str  # e.g. "2592000s"


class Impact(BaseModel):
    model_config = _WIRE

    category: str
    cost_projection: CostProjection = Field(alias="costProjection")


class Operation(BaseModel):
    """One backend operation; ``value`` is a string or an add-snapshot object."""

    model_config = _WIRE

    action: str
    resource: str
    resource_type: str = Field("", alias="resourceType")
    path: str = ""
    value: Optional[Any] = None


class OperationGroup(BaseModel):
    model_config = _WIRE

    operations: list[Operation]


class RecommendationContent(BaseModel):
    model_config = _WIRE

    operation_groups: list[OperationGroup] = Field(alias="operationGroups")


class StateInfo(BaseModel):
    model_config = _WIRE

    state: str


class RawRecommendation(BaseModel):
    """A recommendation exactly as delivered by the backend."""

    model_config = _WIRE

    name: str
    description: str = ""
    recommender_subtype: str = Field(alias="recommenderSubtype")
    primary_impact: Impact = Field(alias="primaryImpact")
    content: RecommendationContent
    state_info: StateInfo = Field(alias="stateInfo")

    def first_operation(self) -> Operation:
        try:
            return self.content.operation_groups[0].operations[0]
        except IndexError:
            raise RecommendationParseError(
                f"Recommendation '{self.name}' has no operations."
            ) from None


# ── Derived field parsers ─────────────────────────────────────────────────────


def extract_from_resource(segment: str, resource: str) -> str:
    """Return the path component following ``/<segment>/``.

    Example::

        extract_from_resource("projects", "//compute.googleapis.com/projects/p1/zones/z/instances/i")
        # → "p1"

    Raises:
        RecommendationParseError: If ``/<segment>/`` does not occur in ``resource``.
    """
    match = re.search(rf"/{re.escape(segment)}/([^/]*)", resource)
    if match is None:
        raise RecommendationParseError(f"Couldn't parse identifier: {resource}")
    return match.group(1)


def cost_per_week(raw: RawRecommendation) -> float:
    """Projected cost change per week (negative means savings).

    The backend reports cost over an arbitrary duration (``"2592000s"``);
    months have no fixed length, so everything is scaled to one week.
    """
    projection = raw.primary_impact.cost_projection
    money = projection.cost
    if money.currency_code != "USD":
        logger.warning(
            "Only USD supported, got %s for %s", money.currency_code, raw.name
        )

    try:
        seconds = int(projection.duration.rstrip("s"))
    except ValueError:
        raise RecommendationParseError(
            f"Bad cost projection duration '{projection.duration}' for {raw.name}."
        ) from None
    if seconds <= 0:
        raise RecommendationParseError(
            f"Non-positive cost projection duration for {raw.name}."
        )

    # Snapshot recommendations sometimes carry only ``nanos``.
    cost = 0.0
    if money.units is not None:
        cost += int(money.units)
    if money.nanos is not None:
        cost += money.nanos / NANOS_PER_UNIT

    return cost * SECONDS_PER_WEEK / seconds


def _is_add_operation_value(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    if set(value) != {"name", "source_disk", "storage_locations"}:
        return False
    locations = value["storage_locations"]
    return (
        isinstance(value["name"], str)
        and isinstance(value["source_disk"], str)
        and isinstance(locations, list)
        and all(isinstance(loc, str) for loc in locations)
    )


def resource_short_name(raw: RawRecommendation) -> str:
    """Name of the affected resource, whatever the recommendation type.

    ``add`` (snapshot) reads the disk from the operation value; ``remove``
    targets a disk; ``replace`` and ``test`` target an instance.
    """
    op = raw.first_operation()
    if op.action == "add":
        if _is_add_operation_value(op.value):
            return extract_from_resource("disks", op.value["source_disk"])
        raise RecommendationParseError(
            f"The value of '{raw.name}' doesn't match the add action."
        )
    if op.action == "remove":
        return extract_from_resource("disks", op.resource)
    if op.action in ("replace", "test"):
        return extract_from_resource("instances", op.resource)
    raise RecommendationParseError(
        f"Recommendation '{raw.name}' contains an unsupported action '{op.action}'."
    )


def project_of(raw: RawRecommendation) -> str:
    return extract_from_resource("projects", raw.first_operation().resource)


# ── Working record ────────────────────────────────────────────────────────────


class RecommendationRecord(BaseModel):
    """A recommendation as tracked by the engine.

    Identity is ``name``.  Fields above the divider are fixed at ingestion;
    fields below are mutated only by the apply orchestrator and the central
    status watcher.

    Attributes:
        name: Globally unique recommendation resource name.
        description: Human-readable summary from the backend.
        subtype: Recommender subtype, e.g. ``"CHANGE_MACHINE_TYPE"``.
        impact_category: Primary impact category, e.g. ``"COST"``.
        cost_per_week: Projected weekly cost delta in USD.
        project: Cloud project the affected resource lives in.
        resource: Short name of the affected instance or disk.
        type: Category used for ranking (the recommender subtype).
        status: Current lifecycle state.
        needs_watcher: Whether the central watcher should poll this record.
        error_header: Short failure summary, if the last attempt failed.
        error_description: Failure details shown under the header.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    name: str
    description: str
    subtype: str
    impact_category: str
    cost_per_week: float
    project: str
    resource: str
    type: str

    status: RecommendationStatus = RecommendationStatus.ACTIVE
    needs_watcher: bool = False
    error_header: Optional[str] = None
    error_description: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: RawRecommendation | dict[str, Any]) -> "RecommendationRecord":
        """Build a record from a wire object, computing every derived field.

        Raises:
            RecommendationParseError: If a derived field cannot be computed.
            UnknownStatusError: If ``stateInfo.state`` is outside the mapping.
            pydantic.ValidationError: If the wire object is malformed.
        """
        if not isinstance(raw, RawRecommendation):
            raw = RawRecommendation.model_validate(raw)
        return cls(
            name=raw.name,
            description=raw.description,
            subtype=raw.recommender_subtype,
            impact_category=raw.primary_impact.category,
            cost_per_week=cost_per_week(raw),
            project=project_of(raw),
            resource=resource_short_name(raw),
            type=raw.recommender_subtype,
            status=to_internal_status(raw.state_info.state),
        )

    @property
    def display_status(self) -> str:
        return display_name(self.status)

    def set_error(self, header: str, description: str) -> None:
        self.error_header = header
        self.error_description = description

    def clear_error(self) -> None:
        self.error_header = None
        self.error_description = None
