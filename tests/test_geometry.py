import json

import pytest
from shapely.geometry import Point, shape

from voter_analytics.filters import bbox_polygon, build_geometry_predicate
from voter_analytics.models import BoundingBox

BOX = BoundingBox(-85.0, 31.0, -84.0, 32.0)


def test_polygon_ring_is_closed_and_counter_clockwise():
    polygon = shape(bbox_polygon(BOX))

    ring = bbox_polygon(BOX)["coordinates"][0]
    assert ring[0] == ring[-1]
    assert len(ring) == 5
    assert polygon.is_valid
    assert polygon.exterior.is_ccw
    assert polygon.bounds == BOX.as_tuple()


def test_predicate_binds_the_polygon_as_geojson():
    predicate = build_geometry_predicate(BOX)

    assert predicate.placeholder_count == 1
    assert "ST_Intersects(geom" in predicate.clause_text
    assert "-85" not in predicate.clause_text
    assert json.loads(predicate.parameters[0]) == bbox_polygon(BOX)


@pytest.mark.parametrize("point, inside", [
    (Point(-85.0, 31.0), True),      # corner
    (Point(-84.5, 32.0), True),      # top edge
    (Point(-84.5, 31.5), True),
    (Point(-84.0 + 1e-9, 32.0), False),
    (Point(-86.0, 31.5), False),
])
def test_boundary_is_included(point, inside):
    polygon = shape(json.loads(build_geometry_predicate(BOX).parameters[0]))

    assert polygon.intersects(point) == inside
