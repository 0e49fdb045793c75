'''
Device-independent snapshots of spatial state.

Points are relative to the world origin of the AR session, which is where the
device was when recording started. Transforms are 4x4 matrices flattened
row-major to 16 floats; point sets are flat x, y, z triples.
'''

from enum import Enum
from typing import Iterable, Union

import numpy as np
from pydantic import BaseModel, Field

FloatArrayLike = Union[Iterable[float], np.ndarray]


class PlaneClassification(str, Enum):
    UNKNOWN = 'unknown'
    FLOOR = 'floor'
    WALL = 'wall'
    CEILING = 'ceiling'
    TABLE = 'table'
    SEAT = 'seat'
    WINDOW = 'window'
    DOOR = 'door'


class PlaneAlignment(str, Enum):
    UNKNOWN = 'unknown'
    HORIZONTAL = 'horizontal'
    VERTICAL = 'vertical'


class ObservationType(str, Enum):
    DOMINANT_COLORS = 'dominantColors'
    CLASSIFIED_IMAGE = 'classifiedImage'
    DETECTED_IMAGE = 'detectedImage'


def as_matrix4(m: FloatArrayLike) -> np.ndarray:
    arr = np.asarray(m, dtype=float)
    if arr.size != 16:
        raise ValueError(f'transform must have 16 elements, got shape {arr.shape}.')
    return arr.reshape(4, 4)


def as_points(points: FloatArrayLike) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.zeros((0, 3), dtype=float)
    if arr.size % 3 != 0:
        raise ValueError(f'points must be x, y, z triples, got shape {arr.shape}.')
    return arr.reshape(-1, 3)


def matrix_to_floats(m: FloatArrayLike) -> list[float]:
    return as_matrix4(m).reshape(-1).tolist()


def flatten_points(points: FloatArrayLike) -> list[float]:
    return as_points(points).reshape(-1).tolist()


def vector3(v: FloatArrayLike) -> list[float]:
    arr = np.asarray(v, dtype=float).reshape(-1)
    if arr.size != 3:
        raise ValueError(f'expected a 3-vector, got shape {arr.shape}.')
    return arr.tolist()


class SpaceAnchor(BaseModel):
    name: str = ''
    id: str = ''  # UUID
    transform: list[float] = Field(default_factory=list)


class DetectedPlane(BaseModel):
    name: str = ''
    id: str = ''
    transform: list[float] = Field(default_factory=list)
    type: PlaneClassification = PlaneClassification.UNKNOWN
    alignment: PlaneAlignment = PlaneAlignment.UNKNOWN
    center: list[float] = Field(default_factory=list)
    extent: list[float] = Field(default_factory=list)
    points: list[float] = Field(default_factory=list)  # contour boundary vertices


class DetectedFace(BaseModel):
    name: str = ''
    id: str = ''
    transform: list[float] = Field(default_factory=list)
    left_eye_transform: list[float] = Field(default_factory=list)
    right_eye_transform: list[float] = Field(default_factory=list)
    points: list[float] = Field(default_factory=list)  # mesh vertices
    indices: list[int] = Field(default_factory=list)  # triangle indices into points


class SpaceMap(BaseModel):
    center: list[float] = Field(default_factory=list)
    extent: list[float] = Field(default_factory=list)
    anchors: list[SpaceAnchor] = Field(default_factory=list)
    points: list[float] = Field(default_factory=list)  # raw feature points
    identifiers: list[int] = Field(default_factory=list)


class SpaceObservation(BaseModel):
    type: ObservationType
    feature: str = ''
    confidence: float = 0.0
    bbox: list[float] = Field(default_factory=list)  # relative x, y, width, height
