"""
Bounding box -> PostGIS intersection predicate.

The box travels as one bound GeoJSON string; the clause only ever
contains the column name, function names and a single placeholder.
"""

from __future__ import annotations

import json
from typing import Any

from ..models.filters import PLACEHOLDER, BoundingBox, CompiledPredicate

GEOMETRY_COLUMN = "geom"
SRID = 4326


def bbox_polygon(box: BoundingBox) -> dict[str, Any]:
    """GeoJSON Polygon with one closed, counter-clockwise ring."""
    ring = [
        [box.xmin, box.ymin],
        [box.xmax, box.ymin],
        [box.xmax, box.ymax],
        [box.xmin, box.ymax],
        [box.xmin, box.ymin],
    ]
    return {"type": "Polygon", "coordinates": [ring]}


def build_geometry_predicate(box: BoundingBox) -> CompiledPredicate:
    """
    ST_Intersects against the box polygon.

    ST_Intersects includes the boundary, so a voter point lying exactly on
    an edge of the box is matched.
    """
    clause = (
        f"ST_Intersects({GEOMETRY_COLUMN}, "
        f"ST_SetSRID(ST_GeomFromGeoJSON({PLACEHOLDER}), {SRID}))"
    )
    return CompiledPredicate(clause, (json.dumps(bbox_polygon(box)),))
