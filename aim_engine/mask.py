"""
Rasterized terrain mask and O(1) point classification.

The mask is an RGBA bitmap covering a lat/lon bounding box; channel 0 of each
pixel holds a TerrainClass ordinal. Unpainted pixels (0) and bytes outside the
enum are read as ROUGH: terrain nobody drew is rough.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from .errors import InputError
from .types import GeoPoint, TerrainClass


BYTES_PER_PIXEL = 4

# byte value -> TerrainClass ordinal, with the unpainted / unknown policy baked in
_CLASS_LUT = np.full(256, int(TerrainClass.ROUGH), dtype=np.uint8)
for _c in TerrainClass:
    _CLASS_LUT[int(_c)] = int(_c)
_CLASS_LUT[int(TerrainClass.UNKNOWN)] = int(TerrainClass.ROUGH)


@dataclass(frozen=True)
class BBox:
    west: float
    south: float
    east: float
    north: float

    def validate(self) -> None:
        values = (self.west, self.south, self.east, self.north)
        if not all(math.isfinite(v) for v in values):
            raise InputError(f"bbox must be finite, got {values}")
        if not (self.west < self.east and self.south < self.north):
            raise InputError(f"bbox must satisfy west<east and south<north, got {values}")

    def contains(self, p: GeoPoint) -> bool:
        return self.west <= p.lon <= self.east and self.south <= p.lat <= self.north


class MaskBuffer:
    """
    Read-only view over a classified RGBA raster.

    `data` may be any bytes-like object or a numpy array holding
    width * height * 4 bytes, row-major from the north-west corner.
    """

    def __init__(self, width: int, height: int, bbox: BBox, data):
        if width <= 0 or height <= 0:
            raise InputError(f"mask must be non-empty, got {width}x{height}")
        bbox.validate()

        if isinstance(data, np.ndarray):
            flat = np.ascontiguousarray(data, dtype=np.uint8).reshape(-1)
        else:
            flat = np.frombuffer(bytes(data), dtype=np.uint8)
        expected = width * height * BYTES_PER_PIXEL
        if flat.size != expected:
            raise InputError(
                f"mask buffer holds {flat.size} bytes, expected {expected} "
                f"({width}x{height}x{BYTES_PER_PIXEL})"
            )

        self.width = int(width)
        self.height = int(height)
        self.bbox = bbox
        self.pixels = flat.reshape(self.height, self.width, BYTES_PER_PIXEL)
        self.pixels.setflags(write=False)

    @classmethod
    def from_class_grid(cls, classes, bbox: BBox) -> "MaskBuffer":
        """Build a mask from a 2D grid of class ids (row 0 = north edge)."""
        grid = np.asarray(classes, dtype=np.uint8)
        if grid.ndim != 2:
            raise InputError(f"class grid must be 2D, got shape {grid.shape}")
        height, width = grid.shape
        rgba = np.zeros((height, width, BYTES_PER_PIXEL), dtype=np.uint8)
        rgba[:, :, 0] = grid
        rgba[:, :, 3] = 255
        return cls(width, height, bbox, rgba)

    def pixel_of(self, lat, lon):
        b = self.bbox
        px = math.floor((lon - b.west) / (b.east - b.west) * self.width)
        py = math.floor((b.north - lat) / (b.north - b.south) * self.height)
        px = max(0, min(self.width - 1, px))
        py = max(0, min(self.height - 1, py))
        return px, py


# ============================================================
# Classification
# ============================================================

def classify(point: GeoPoint, mask: Optional[MaskBuffer]) -> TerrainClass:
    """TerrainClass under `point`; points outside the bbox read the nearest edge pixel."""
    if mask is None:
        return TerrainClass.ROUGH
    px, py = mask.pixel_of(point.lat, point.lon)
    return TerrainClass(int(_CLASS_LUT[mask.pixels[py, px, 0]]))


def classify_array(lat: np.ndarray, lon: np.ndarray, mask: Optional[MaskBuffer]) -> np.ndarray:
    """Vectorized :func:`classify`; returns a uint8 array of TerrainClass ordinals."""
    lat = np.asarray(lat, dtype=np.float64)
    lon = np.asarray(lon, dtype=np.float64)
    if mask is None:
        return np.full(lat.shape, int(TerrainClass.ROUGH), dtype=np.uint8)

    b = mask.bbox
    px = np.floor((lon - b.west) / (b.east - b.west) * mask.width)
    py = np.floor((b.north - lat) / (b.north - b.south) * mask.height)
    px = np.clip(px, 0, mask.width - 1).astype(np.intp)
    py = np.clip(py, 0, mask.height - 1).astype(np.intp)
    return _CLASS_LUT[mask.pixels[py, px, 0]]


def classify_many(points: Iterable[GeoPoint], mask: Optional[MaskBuffer]):
    pts = list(points)
    if not pts:
        return []
    lat = np.fromiter((p.lat for p in pts), dtype=np.float64, count=len(pts))
    lon = np.fromiter((p.lon for p in pts), dtype=np.float64, count=len(pts))
    return [TerrainClass(int(c)) for c in classify_array(lat, lon, mask)]
