"""Shapefile summary: geometry type, record count and declared fields.

Usage:
    info = parse_shp_file("data/roads.shp")
    print(info.shape_type, info.num_shapes, [f.name for f in info.fields])
"""

from __future__ import annotations

import logging
import struct
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

import shapefile


logger = logging.getLogger(__name__)

UNKNOWN_SHAPE_TYPE = "UNKNOWN"

# ESRI shape type codes as stored in the .shp header.
SHAPE_TYPE_NAMES: Dict[int, str] = {
    0: "NULL",
    1: "POINT",
    3: "POLYLINE",
    5: "POLYGON",
    8: "MULTIPOINT",
    11: "POINTZ",
    13: "POLYLINEZ",
    15: "POLYGONZ",
    18: "MULTIPOINTZ",
    21: "POINTM",
    23: "POLYLINEM",
    25: "POLYGONM",
    28: "MULTIPOINTM",
    31: "MULTIPATCH",
}


class ShapefileError(ValueError):
    """Raised when a shapefile cannot be opened or read."""


@dataclass(frozen=True)
class Field:
    """An attribute column as declared in the .dbf header."""

    name: str
    field_type: str
    size: int
    decimal: int


@dataclass(frozen=True)
class ShpFileInfo:
    shape_type: str
    num_shapes: int
    fields: List[Field] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def shape_type_name(code: int) -> str:
    if code in SHAPE_TYPE_NAMES:
        return SHAPE_TYPE_NAMES[code]
    return UNKNOWN_SHAPE_TYPE


def _declared_fields(reader) -> List[Field]:
    result = []
    for name, field_type, size, decimal in reader.fields:
        if name == "DeletionFlag":
            continue
        result.append(Field(name=str(name), field_type=str(field_type), size=int(size), decimal=int(decimal)))
    return result


def parse_shp_file(file_path: str) -> ShpFileInfo:
    """Open a shapefile and return its basic information.

    Records of a known geometry type are iterated to exhaustion to count
    them, so the count reflects what is actually readable. pyshp cannot build
    shapes of an unrecognized type, so those files are counted from the index.
    """
    try:
        with shapefile.Reader(str(file_path)) as reader:
            fields = _declared_fields(reader)
            type_name = shape_type_name(reader.shapeType)
            if reader.shapeType in SHAPE_TYPE_NAMES:
                num_shapes = 0
                for _ in reader.iterShapes():
                    num_shapes += 1
            else:
                num_shapes = len(reader)
    except (shapefile.ShapefileException, OSError, struct.error, KeyError) as e:
        raise ShapefileError(f"failed to open SHP file: {e}") from e

    logger.debug(f"Parsed {file_path}: {type_name}, {num_shapes} shapes, {len(fields)} fields")
    return ShpFileInfo(shape_type=type_name, num_shapes=num_shapes, fields=fields)
