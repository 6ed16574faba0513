"""Tests for region persistence."""

import uuid

import pytest

from py_regions.core.generator import Region
from py_regions.db import Database, RegionQueries, RegionRecord, outline_to_string, parse_outline


@pytest.fixture
def database():
    database = Database("sqlite://")
    database.initialize()
    return database


@pytest.fixture
def regions():
    return [
        Region(
            id=uuid.uuid4(),
            outline=((0.5, 1.7), (10.2, 1.0), (10.9, 9.4), (-0.5, 9.0)),
            area_blocks=90.0,
            dominant_category="plains",
            cell_count=90,
        ),
        Region(
            id=uuid.uuid4(),
            outline=((20.0, 0.0), (40.0, 0.0), (40.0, 20.0), (20.0, 20.0)),
            area_blocks=400.0,
            dominant_category="ocean",
            cell_count=400,
            bulk=True,
        ),
    ]


class TestOutlineFormat:
    """Test the outline text format."""

    def test_floor_to_blocks(self):
        assert outline_to_string([(0.5, 1.7), (-0.5, 9.0)]) == "[[0,1],[-1,9]]"

    def test_parse(self):
        assert parse_outline("[[0,1],[-1,9],[4, 5]]") == [(0, 1), (-1, 9), (4, 5)]

    def test_parse_skips_malformed_pairs(self):
        assert parse_outline("[[1,2],[x,3],[4,5,6],[7,8]]") == [(1, 2), (7, 8)]

    @pytest.mark.parametrize("text", [None, "", "[]", "[[]"])
    def test_parse_empty(self, text):
        assert parse_outline(text) == []


class TestRegionQueries:
    """Test saving and loading regions."""

    def test_roundtrip(self, database, regions):
        with database.get_session() as session:
            assert RegionQueries(session).save_regions("world", regions) == 2

        with database.get_session() as session:
            loaded = RegionQueries(session).load_regions("world")

        assert [r.id for r in loaded] == [r.id for r in regions]
        assert loaded[0].outline == ((0.0, 1.0), (10.0, 1.0), (10.0, 9.0), (-1.0, 9.0))
        assert loaded[0].dominant_category == "plains"
        assert loaded[0].cell_count == 90
        assert loaded[1].bulk
        assert loaded[1].area_blocks == 400.0

    def test_bounding_box_stored(self, database, regions):
        with database.get_session() as session:
            RegionQueries(session).save_regions("world", regions[:1])

        with database.get_session() as session:
            record = session.query(RegionRecord).one()
            assert (record.min_x, record.min_z, record.max_x, record.max_z) == (-1, 1, 10, 9)

    def test_upsert_by_id(self, database, regions):
        with database.get_session() as session:
            RegionQueries(session).save_regions("world", regions)

        changed = Region(
            id=regions[0].id,
            outline=regions[0].outline,
            area_blocks=regions[0].area_blocks,
            dominant_category="forest",
            cell_count=regions[0].cell_count,
        )
        with database.get_session() as session:
            RegionQueries(session).save_regions("world", [changed])

        with database.get_session() as session:
            loaded = RegionQueries(session).load_regions("world")

        assert len(loaded) == 2
        assert loaded[0].dominant_category == "forest"

    def test_worlds_are_separate(self, database, regions):
        with database.get_session() as session:
            queries = RegionQueries(session)
            queries.save_regions("world", regions[:1])
            queries.save_regions("world_nether", regions[1:])

        with database.get_session() as session:
            assert RegionQueries(session).delete_regions("world") == 1

        with database.get_session() as session:
            queries = RegionQueries(session)
            assert queries.load_regions("world") == []
            assert len(queries.load_regions("world_nether")) == 1

    def test_session_requires_initialize(self):
        with pytest.raises(RuntimeError):
            with Database("sqlite://").get_session():
                pass
