from __future__ import annotations

from typing import Optional

import structlog
from shapely.geometry.base import BaseGeometry

from siphon.geometry import union
from siphon.repositories.areas import AreaRepository

log = structlog.get_logger(__name__)


async def priority_region(areas: AreaRepository) -> Optional[BaseGeometry]:
    """
    Union of every area's geometry, inactive and undiscovered ones included.
    Recomputed per run since areas may change between runs.
    """
    all_areas = await areas.all()
    region = union(area.polygon for area in all_areas)
    log.debug("priority.region", areas=len(all_areas), empty=region is None)
    return region
