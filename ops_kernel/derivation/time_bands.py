"""
Time bands — named parts of the business day.

Band windows are configured as hour ranges and matched as hour-of-day
cron expressions, the same way schedule-bound rules are activated.
"""

from datetime import date, datetime, time
from typing import Dict, Optional

from croniter import croniter

from ops_kernel.models.config import TimeBandWindow, default_time_bands

DEFAULT_BAND = "all"


def time_band_for(moment: datetime, bands: Dict[str, TimeBandWindow]) -> str:
    """Classify a timestamp into a band; outside every window it is 'all'."""
    for name, window in bands.items():
        try:
            if croniter.match(window.cron, moment):
                return name
        except (ValueError, KeyError):
            # Malformed window; treat as no match
            continue
    return DEFAULT_BAND


def band_bounds(
    band: str, day: date, bands: Dict[str, TimeBandWindow]
) -> Optional[tuple]:
    """[start, end) of a band on a given day; None for 'all' or unknown bands."""
    window = bands.get(band)
    if window is None:
        return None
    start = datetime.combine(day, time(hour=window.start_hour))
    if window.end_hour >= 24:
        end = datetime.combine(day, time.max)
    else:
        end = datetime.combine(day, time(hour=window.end_hour))
    return start, end


def band_closed(
    band: str, day: date, as_of: datetime, bands: Dict[str, TimeBandWindow]
) -> bool:
    """Whether the band's window has ended by as_of. 'all' closes at midnight."""
    bounds = band_bounds(band, day, bands)
    if bounds is None:
        return as_of.date() > day
    return as_of >= bounds[1]


def effective_band(
    event_band: str, moment: datetime, bands: Optional[Dict[str, TimeBandWindow]] = None
) -> str:
    """An event recorded without a band belongs to the band of its timestamp."""
    if event_band != DEFAULT_BAND:
        return event_band
    return time_band_for(moment, bands if bands is not None else default_time_bands())


def matches_band(event_band: str, band: str) -> bool:
    """'all' as a filter selects every band."""
    return band == DEFAULT_BAND or event_band == band
