"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class PropertyRecord:
    id: int
    host_id: str | None = None
    listing_url: str | None = None
    name: str | None = None
    description: str | None = None
    neighborhood_overview: str | None = None
    neighbourhood_cleansed: str | None = None
    neighbourhood_cleansed_original: str | None = None
    property_type: str | None = None
    property_type_original: str | None = None
    room_type: str | None = None
    room_type_original: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    amenities: tuple[str, ...] = ()
    price: float | None = None
    number_of_reviews: int | None = None
    review_scores_rating: float | None = None
    bathrooms: int | None = None
    bathrooms_text: str | None = None
    bedrooms: int | None = None
    beds: int | None = None
    accommodates: int | None = None
    availability_30: int | None = None
    availability_365: int | None = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HostRecord:
    host_id: str
    host_url: str | None = None
    host_name: str | None = None
    host_since: int | None = None
    host_since_original: str | None = None
    host_location: str | None = None
    host_neighbourhood: str | None = None
    host_about: str | None = None
    host_response_time: str | None = None
    host_response_time_original: str | None = None
    host_is_superhost: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RunStats:
    """Counters for one ingestion run. Only ever incremented."""

    rows_read: int = 0
    properties_indexed: int = 0
    hosts_indexed: int = 0
    properties_skipped: int = 0
    errors: int = 0

    def exceeds(self, max_errors: int) -> bool:
        return self.errors > max_errors


@dataclass(frozen=True)
class RunSummary:
    run_id: str
    status: str
    mode: str
    dry_run: bool
    rows_read: int
    properties_indexed: int
    hosts_indexed: int
    properties_skipped: int
    errors: int
    elapsed_ms: int
    commits: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
