"""
Aggregate Computation

Derived, cache-only statistics attached to listing views. Always
recomputed from the loaded related collections; never incremental.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional

from ...constants import ACCEPTED_REVIEW_STATUS, CONFIRMED_BOOKING_STATUS

RATING_VALUES = (5, 4, 3, 2, 1)


def _status(record: Mapping[str, Any]) -> str:
    return str(record.get("status") or "").upper()


def _rating(record: Mapping[str, Any]) -> Optional[int]:
    raw = record.get("rating")
    if isinstance(raw, bool):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value in RATING_VALUES else None


@dataclass(frozen=True)
class AggregateStats:
    """Rating and booking statistics for one listing."""

    average_rating: float = 0.0
    total_reviews: int = 0
    rating_histogram: Dict[int, int] = field(
        default_factory=lambda: {value: 0 for value in RATING_VALUES}
    )
    total_bookings: int = 0
    confirmed_bookings: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form; histogram keys become strings."""
        return {
            "averageRating": self.average_rating,
            "totalReviews": self.total_reviews,
            "ratingHistogram": {
                str(value): self.rating_histogram.get(value, 0)
                for value in RATING_VALUES
            },
            "totalBookings": self.total_bookings,
            "confirmedBookings": self.confirmed_bookings,
        }


def compute_listing_stats(
    reviews: Optional[Iterable[Mapping[str, Any]]],
    bookings: Optional[Iterable[Mapping[str, Any]]],
) -> AggregateStats:
    """
    Compute listing statistics from scratch.

    Only accepted reviews with a rating in 1..5 count toward the average,
    total and histogram. Bookings are counted in total and, when their
    status is confirmed, in the confirmed count.

    Args:
        reviews: Canonical review records of the listing
        bookings: Canonical booking records of the listing

    Returns:
        AggregateStats with averageRating rounded to one decimal
    """
    histogram = {value: 0 for value in RATING_VALUES}
    rating_sum = 0
    counted = 0

    for review in reviews or ():
        if _status(review) != ACCEPTED_REVIEW_STATUS:
            continue
        rating = _rating(review)
        if rating is None:
            continue
        histogram[rating] += 1
        rating_sum += rating
        counted += 1

    total_bookings = 0
    confirmed = 0
    for booking in bookings or ():
        total_bookings += 1
        if _status(booking) == CONFIRMED_BOOKING_STATUS:
            confirmed += 1

    average = round(rating_sum / counted, 1) if counted else 0.0

    return AggregateStats(
        average_rating=average,
        total_reviews=counted,
        rating_histogram=histogram,
        total_bookings=total_bookings,
        confirmed_bookings=confirmed,
    )
