"""
Persistence of generated regions.

Outlines are stored as text in the form [[x,z],[x,z],...] with whole block
coordinates, alongside the bounding box of the stored points.
"""

import math
import re
import uuid
from typing import Iterable, List, Sequence, Tuple

import structlog
from sqlalchemy.orm import Session

from ..core.generator import Region
from .models import RegionRecord

logger = structlog.get_logger()

_PAIR = re.compile(r"\[([^\[\]]*)\]")


def outline_to_string(outline: Sequence[Tuple[float, float]]) -> str:
    """Serialize an outline, flooring coordinates to whole blocks."""
    pairs = (f"[{math.floor(x)},{math.floor(z)}]" for x, z in outline)
    return "[" + ",".join(pairs) + "]"


def parse_outline(text: str) -> List[Tuple[int, int]]:
    """
    Parse a stored outline.

    Malformed pairs are skipped; empty or missing text yields no points.
    """
    if not text or len(text) < 4:
        return []

    points = []
    for match in _PAIR.finditer(text):
        parts = match.group(1).split(",")
        if len(parts) != 2:
            continue
        try:
            points.append((int(parts[0].strip()), int(parts[1].strip())))
        except ValueError:
            continue
    return points


class RegionQueries:
    """
    Region storage helpers bound to a session.

    Provides:
    - Upsert of a generation result for a world
    - Loading a world's regions back as Region objects
    - Removal of a world's regions
    """

    def __init__(self, session: Session):
        """Initialize with database session."""
        self.session = session

    def save_regions(self, world: str, regions: Iterable[Region]) -> int:
        """Insert or update regions of a world by id."""
        count = 0
        for region in regions:
            min_x, min_z, max_x, max_z = (math.floor(v) for v in region.bounds)
            self.session.merge(RegionRecord(
                id=region.id,
                world=world,
                category=region.dominant_category,
                area=region.area_blocks,
                cell_count=region.cell_count,
                outline=outline_to_string(region.outline),
                min_x=min_x,
                min_z=min_z,
                max_x=max_x,
                max_z=max_z,
                bulk=region.bulk,
            ))
            count += 1
        self.session.flush()
        logger.info("Regions saved", world=world, regions=count)
        return count

    def load_regions(self, world: str) -> List[Region]:
        """Load a world's regions; bulk water comes last."""
        records = (
            self.session.query(RegionRecord)
            .filter(RegionRecord.world == world)
            .order_by(RegionRecord.bulk, RegionRecord.min_x, RegionRecord.min_z)
            .all()
        )

        regions = []
        for record in records:
            outline = tuple((float(x), float(z)) for x, z in parse_outline(record.outline))
            regions.append(Region(
                id=record.id if isinstance(record.id, uuid.UUID) else uuid.UUID(str(record.id)),
                outline=outline,
                area_blocks=record.area,
                dominant_category=record.category,
                cell_count=record.cell_count,
                bulk=bool(record.bulk),
            ))
        logger.debug("Regions loaded", world=world, regions=len(regions))
        return regions

    def delete_regions(self, world: str) -> int:
        """Remove every region of a world."""
        deleted = (
            self.session.query(RegionRecord)
            .filter(RegionRecord.world == world)
            .delete(synchronize_session=False)
        )
        logger.info("Regions deleted", world=world, regions=deleted)
        return deleted
