"""
Area geometry helpers.

Areas are stored as GeoJSON polygons. Older areas carry a two-corner
bounding box (``[{"lat": .., "lon": ..}, {"lat": .., "lon": ..}]``) instead;
those are normalized to a polygon whenever they are read.
"""
from __future__ import annotations

from typing import Iterable, NamedTuple, Optional, Sequence, Tuple, Union

from shapely.geometry import Point, box, mapping, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

LegacyBox = Sequence[dict]
GeometryLike = Union[dict, LegacyBox]


class GeoPoint(NamedTuple):
    lat: float
    lon: float

    def as_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}


def make_geometry(lat_a: float, lon_a: float, lat_b: float, lon_b: float) -> dict:
    """Build a GeoJSON bbox polygon from two arbitrary corners."""
    polygon = box(
        min(lon_a, lon_b),
        min(lat_a, lat_b),
        max(lon_a, lon_b),
        max(lat_a, lat_b),
    )
    return _as_geojson(polygon)


def is_legacy_box(geometry: GeometryLike) -> bool:
    return not isinstance(geometry, dict) and len(geometry) == 2


def normalize_geometry(geometry: Optional[GeometryLike]) -> Optional[dict]:
    if geometry is None:
        return None
    if is_legacy_box(geometry):
        a, b = geometry
        return make_geometry(
            float(a["lat"]), float(a["lon"]), float(b["lat"]), float(b["lon"])
        )
    if "type" not in geometry:
        raise ValueError(f"Unsupported geometry: {geometry!r}")
    return geometry


def bounding_box(geometry: GeometryLike) -> Tuple[float, float, float, float]:
    """Return (min_lon, min_lat, max_lon, max_lat), GeoJSON bbox order."""
    if is_legacy_box(geometry):
        a, b = geometry
        return (
            min(a["lon"], b["lon"]),
            min(a["lat"], b["lat"]),
            max(a["lon"], b["lon"]),
            max(a["lat"], b["lat"]),
        )
    return tuple(shape(geometry).bounds)


def union(geometries: Iterable[dict]) -> Optional[BaseGeometry]:
    """Merge GeoJSON geometries into one region, None when there are none."""
    shapes = [shape(g) for g in geometries if g]
    if not shapes:
        return None
    merged = unary_union(shapes)
    return None if merged.is_empty else merged


def contains(region: BaseGeometry, point: GeoPoint) -> bool:
    # covers() so that points on the area edge count as inside
    return region.covers(Point(point.lon, point.lat))


def _as_geojson(geom: BaseGeometry) -> dict:
    data = mapping(geom)
    return {
        "type": data["type"],
        "coordinates": [[list(c) for c in ring] for ring in data["coordinates"]],
    }
