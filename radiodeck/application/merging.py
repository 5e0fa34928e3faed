from dataclasses import replace
from typing import Dict, Iterable, Optional

from radiodeck.domain.entities import SIGNIFICANT_ATTRIBUTES, Station


def _fill_missing(incoming: Station, known: Station) -> Station:
    """Carry attributes the incoming record lacks over from the known one."""
    missing = {
        attr: getattr(known, attr)
        for attr in SIGNIFICANT_ATTRIBUTES
        if getattr(incoming, attr) is None and getattr(known, attr) is not None
    }
    if incoming.id is None and known.id is not None:
        missing["id"] = known.id
    return replace(incoming, **missing) if missing else incoming


def merge_station(known: Optional[Station], incoming: Station) -> Station:
    """Reconcile a freshly fetched station with the one already known under its key.

    The known value is kept (same object) unless a significant attribute
    actually changed, so identical or sparser records never discard metadata.
    """
    if known is None:
        return incoming
    if incoming == known:
        return known
    candidate = _fill_missing(incoming, known)
    if all(getattr(candidate, attr) == getattr(known, attr) for attr in SIGNIFICANT_ATTRIBUTES):
        return known
    return candidate


def merge_stations(known: Dict[str, Station], page: Iterable[Station]) -> Dict[str, Station]:
    """Merge a page of stations into a key -> station mapping.

    Returns a new mapping; existing keys keep their position, new keys are
    appended in arrival order. Stations without any identity are skipped.
    """
    merged = dict(known)
    for station in page:
        key = station.key
        if key is None:
            continue
        merged[key] = merge_station(merged.get(key), station)
    return merged
