"""
Typed view over the opaque catalog payload.

Only the fields the scheduler depends on get accessors; the raw dict is stored
untouched so the normalizer downstream sees exactly what the catalog sent.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
import re
from typing import Any, Dict, Optional

from siphon.geometry import GeoPoint

# legacy WCF JSON dates: "/Date(1514764800000-0800)/"
_WCF_DATE = re.compile(r"/Date\((-?\d+)([+-]\d{4})?\)/")


class CatalogPayload:
    def __init__(self, raw: Dict[str, Any]):
        self.raw = raw

    @classmethod
    def inaccessible(cls) -> "CatalogPayload":
        """Placeholder stored for identifiers the catalog didn't return."""
        return cls({"IsPremium": True})

    @property
    def identifier(self) -> Optional[str]:
        return self.raw.get("Code")

    @property
    def archived(self) -> bool:
        return bool(self.raw.get("Archived"))

    @property
    def premium(self) -> bool:
        return bool(self.raw.get("IsPremium"))

    @property
    def updated(self) -> Optional[datetime]:
        return parse_wcf_date(self.raw.get("DateLastUpdate"))

    @property
    def coordinate(self) -> Optional[GeoPoint]:
        lat, lon = self.raw.get("Latitude"), self.raw.get("Longitude")
        if lat is None or lon is None:
            return None
        return GeoPoint(float(lat), float(lon))


def parse_wcf_date(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    match = _WCF_DATE.fullmatch(value.strip())
    if not match:
        return None
    # the millisecond part is already UTC, the offset is informational
    millis = int(match.group(1))
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=millis)
