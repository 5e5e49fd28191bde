"""
Web-Mercator slippy-tile math.

Coordinates are truncated toward zero (never rounded) when mapped to a tile,
which decides the tile a boundary point belongs to. Discovery depends on this
being stable, so keep it that way.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple

from siphon.geometry import GeoPoint, GeometryLike, bounding_box

# the catalog silently omits results for anything coarser
MIN_ZOOM = 12


@dataclass(frozen=True)
class TileAddress:
    x: int
    y: int
    zoom: int

    def as_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.zoom}

    def __str__(self) -> str:
        return f"{self.zoom}/{self.x}/{self.y}"


def to_tile_address(lat: float, lon: float, zoom: int) -> TileAddress:
    lat_rad = math.radians(lat)
    n = 2.0 ** zoom
    x = int((lon + 180.0) / 360.0 * n)
    y = int((1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n)
    return TileAddress(x, y, zoom)


def to_geo_point(tile: TileAddress) -> GeoPoint:
    """North-west corner of the tile."""
    n = 2.0 ** tile.zoom
    lon = tile.x / n * 360.0 - 180.0
    lat_rad = math.atan(math.sinh(math.pi * (1 - 2 * tile.y / n)))
    return GeoPoint(math.degrees(lat_rad), lon)


def to_geo_bounds(tile: TileAddress) -> Tuple[GeoPoint, GeoPoint]:
    """Return (top_left, bottom_right) corners of the tile."""
    top_left = to_geo_point(tile)
    bottom_right = to_geo_point(TileAddress(tile.x + 1, tile.y + 1, tile.zoom))
    return top_left, bottom_right


def covering_tiles(geometry: GeometryLike, zoom: int) -> List[TileAddress]:
    """
    Every tile in the rectangle spanned by the geometry's bounding box.

    Accepts a GeoJSON geometry or a legacy two-corner box. Tiles are ordered
    column by column (x outer, y inner).
    """
    min_lon, min_lat, max_lon, max_lat = bounding_box(geometry)
    tile_a = to_tile_address(min_lat, min_lon, zoom)
    tile_b = to_tile_address(max_lat, max_lon, zoom)

    assert tile_a.zoom == tile_b.zoom, "Zoom level must match"

    x_lo, x_hi = sorted((tile_a.x, tile_b.x))
    y_lo, y_hi = sorted((tile_a.y, tile_b.y))

    return [
        TileAddress(x, y, tile_a.zoom)
        for x in range(x_lo, x_hi + 1)
        for y in range(y_lo, y_hi + 1)
    ]
