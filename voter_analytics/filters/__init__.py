"""
Filter pipeline: raw parameters -> FilterSpec -> CompiledPredicate.
"""

from .normalizer import (
    normalize,
    normalize_turnout_request,
    parse_area,
    parse_bbox,
    parse_geography,
)
from .geometry import bbox_polygon, build_geometry_predicate
from .compiler import (
    build_area_predicate,
    build_same_address_predicate,
    build_voted_predicate,
    compile_filter_spec,
    escape_like,
)

__all__ = [
    "normalize",
    "normalize_turnout_request",
    "parse_area",
    "parse_bbox",
    "parse_geography",
    "bbox_polygon",
    "build_geometry_predicate",
    "build_area_predicate",
    "build_same_address_predicate",
    "build_voted_predicate",
    "compile_filter_spec",
    "escape_like",
]
