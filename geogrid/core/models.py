"""Core data models shared by the geo-grid ranking pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

# Rank value for "business not present in the search results".
NOT_FOUND = -1


class GridValidationError(ValueError):
    """Raised when a grid request or coordinate is malformed."""


class RankLookupError(RuntimeError):
    """Raised when a ranking lookup could not be completed."""


class GridShape(str, Enum):
    CIRCULAR = "circular"
    SQUARE = "square"

    @classmethod
    def parse(cls, value: Any) -> "GridShape":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise GridValidationError(f"shape must be one of: {', '.join(s.value for s in cls)}") from exc


class EstimationStatus(str, Enum):
    RANKED = "ranked"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise GridValidationError("coordinates must be finite numbers")
        if not -90.0 <= self.latitude <= 90.0:
            raise GridValidationError(f"latitude {self.latitude} is outside [-90, 90]")
        if not -180.0 <= self.longitude <= 180.0:
            raise GridValidationError(f"longitude {self.longitude} is outside [-180, 180]")


@dataclass(frozen=True)
class GridPoint(GeoPoint):
    """A sampled coordinate carrying its measured or synthesized rank."""

    sequence_id: int = 0
    rank: int = NOT_FOUND
    search_volume: int = 0
    rank_change: int = 0
    competitors: Tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return self.rank != NOT_FOUND


@dataclass(frozen=True)
class GridRequest:
    keyword: str
    business_name: str
    center: GeoPoint
    grid_size: int = 5
    radius_km: float = 5.0
    shape: GridShape = GridShape.CIRCULAR
    location: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.keyword or not self.keyword.strip():
            raise GridValidationError("keyword must be provided")
        if not self.business_name or not self.business_name.strip():
            raise GridValidationError("business_name must be provided")
        if isinstance(self.grid_size, bool) or not isinstance(self.grid_size, int) or self.grid_size < 1:
            raise GridValidationError("grid_size must be a positive integer")
        if not math.isfinite(self.radius_km) or self.radius_km <= 0:
            raise GridValidationError("radius_km must be positive")
        if not isinstance(self.shape, GridShape):
            object.__setattr__(self, "shape", GridShape.parse(self.shape))


@dataclass(frozen=True)
class GridSummary:
    average_first_page_rank: float = 0.0
    total_grid_rank_mean: float = 0.0
    top_spot_share: float = 0.0

    @classmethod
    def from_points(cls, points: Iterable[GridPoint]) -> "GridSummary":
        """Aggregate AFPR, TGRM and TSS over the points that have a rank."""
        ranks = [point.rank for point in points if point.found]
        if not ranks:
            return cls()

        first_page = [rank for rank in ranks if rank <= 10]
        top_spots = sum(1 for rank in ranks if rank <= 3)
        return cls(
            average_first_page_rank=sum(first_page) / len(first_page) if first_page else 0.0,
            total_grid_rank_mean=sum(ranks) / len(ranks),
            top_spot_share=100.0 * top_spots / len(ranks),
        )


@dataclass(frozen=True)
class GridResult:
    """Scored grid for one request. The summary is derived from the points."""

    points: Tuple[GridPoint, ...]
    status: EstimationStatus
    center_rank: int = NOT_FOUND

    @property
    def summary(self) -> GridSummary:
        return GridSummary.from_points(self.points)


@dataclass(slots=True)
class LocalSearchResult:
    """Normalized SERP entry returned by a ranking provider."""

    position: int
    title: str
    url: str = ""
    description: str = ""
    domain: str = ""
    type: str = ""
    rating: Optional[float] = None
    reviews_count: Optional[int] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    raw_snapshot: Optional[Dict[str, Any]] = field(default=None, repr=False)
