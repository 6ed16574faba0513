"""Database models for generated regions."""

import uuid

from sqlalchemy import Boolean, Column, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class RegionRecord(Base):
    """One generated region of a world."""

    __tablename__ = "regions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    world = Column(String(255), nullable=False, index=True)
    category = Column(String(255), nullable=False)
    area = Column(Float, nullable=False)
    cell_count = Column(Integer, nullable=False, default=0)

    # Outline as [[x,z],[x,z],...] in whole blocks
    outline = Column(Text, nullable=False)

    # Bounding box for cheap containment pre-checks
    min_x = Column(Integer, nullable=False)
    min_z = Column(Integer, nullable=False)
    max_x = Column(Integer, nullable=False)
    max_z = Column(Integer, nullable=False)

    bulk = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<RegionRecord {self.id} world={self.world!r} category={self.category!r}>"
