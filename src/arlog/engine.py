'''
The surface of the host AR engine as seen by the recorder.

The engine itself is not part of this package. Adapters translate the engine's
own frame, anchor and scene objects into these models and push them into a
`SessionObserver`.
'''

import uuid
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import numpy as np
from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, field_validator
from trimesh import Trimesh

from arlog.spatial import PlaneAlignment, PlaneClassification, as_matrix4, as_points


def _identity() -> np.ndarray:
    return np.eye(4, dtype=float)


class _EngineModel(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class Anchor(_EngineModel):
    identifier: str = Field(default_factory=lambda: str(uuid.uuid4()).upper())
    name: str | None = None
    transform: Any = Field(default_factory=_identity)

    @field_validator('transform')
    @classmethod
    def _val_transform(cls, v: Any) -> np.ndarray:
        return as_matrix4(v)


class PlaneAnchor(Anchor):
    center: Any = Field(default_factory=lambda: np.zeros(3))
    extent: Any = Field(default_factory=lambda: np.zeros(3))
    classification: PlaneClassification | None = None  # None: classification not supported
    alignment: PlaneAlignment = PlaneAlignment.UNKNOWN
    boundary_vertices: Any = Field(default_factory=lambda: np.zeros((0, 3)))

    @field_validator('center', 'extent')
    @classmethod
    def _val_vector(cls, v: Any) -> np.ndarray:
        arr = np.asarray(v, dtype=float).reshape(-1)
        if arr.size != 3:
            raise ValueError(f'expected a 3-vector, got shape {arr.shape}.')
        return arr

    @field_validator('boundary_vertices')
    @classmethod
    def _val_vertices(cls, v: Any) -> np.ndarray:
        return as_points(v)


class FaceAnchor(Anchor):
    left_eye_transform: Any = None
    right_eye_transform: Any = None
    vertices: Any = Field(default_factory=lambda: np.zeros((0, 3)))
    triangle_indices: list[int] = Field(default_factory=list)

    @field_validator('left_eye_transform', 'right_eye_transform')
    @classmethod
    def _val_eye(cls, v: Any) -> Optional[np.ndarray]:
        return None if v is None else as_matrix4(v)

    @field_validator('vertices')
    @classmethod
    def _val_vertices(cls, v: Any) -> np.ndarray:
        return as_points(v)


class WorldMap(_EngineModel):
    center: Any = Field(default_factory=lambda: np.zeros(3))
    extent: Any = Field(default_factory=lambda: np.zeros(3))
    anchors: list[Anchor] = Field(default_factory=list)
    raw_feature_points: Any = Field(default_factory=lambda: np.zeros((0, 3)))
    identifiers: list[int] = Field(default_factory=list)

    @field_validator('raw_feature_points')
    @classmethod
    def _val_points(cls, v: Any) -> np.ndarray:
        return as_points(v)


class SceneNode(_EngineModel):
    name: str = ''
    transform: Any = Field(default_factory=_identity)
    children: list['SceneNode'] = Field(default_factory=list)
    geometry: Trimesh | None = None
    # diffuse contents: bundled resource paths or in-memory images
    textures: list[str | Path | Image.Image] = Field(default_factory=list)

    @field_validator('transform')
    @classmethod
    def _val_transform(cls, v: Any) -> np.ndarray:
        return as_matrix4(v)

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


class TrackingStateKind(str, Enum):
    NOT_AVAILABLE = 'notAvailable'
    NORMAL = 'normal'
    LIMITED = 'limited'


class TrackingStateReason(str, Enum):
    EXCESSIVE_MOTION = 'excessiveMotion'
    INSUFFICIENT_FEATURES = 'insufficientFeatures'
    INITIALIZING = 'initializing'
    RELOCALIZING = 'relocalizing'


class TrackingState(BaseModel):
    kind: TrackingStateKind = TrackingStateKind.NORMAL
    reason: TrackingStateReason | None = None

    def describe(self) -> str:
        if self.kind == TrackingStateKind.NOT_AVAILABLE:
            return 'AR tracking not available!'
        if self.kind == TrackingStateKind.NORMAL:
            return 'AR tracking works fine.'
        match self.reason:
            case TrackingStateReason.EXCESSIVE_MOTION:
                return 'Limited: Excessive motion of device/camera!'
            case TrackingStateReason.INSUFFICIENT_FEATURES:
                return 'Limited: Insufficient features detected!'
            case TrackingStateReason.INITIALIZING:
                return 'Initializing AR tracking'
            case TrackingStateReason.RELOCALIZING:
                return 'Relocalizing of AR session'
        return 'unknown'


class Frame(_EngineModel):
    timestamp: float = 0.0
    camera_transform: Any = None  # None: ask the source for the current camera pose
    tracking_state: TrackingState = Field(default_factory=TrackingState)
    feature_point_count: int | None = None  # None: no raw feature points this frame

    @field_validator('camera_transform')
    @classmethod
    def _val_transform(cls, v: Any) -> Optional[np.ndarray]:
        return None if v is None else as_matrix4(v)


class SessionObserver:
    """
    Callback capability set of an AR session. Every callback is optional;
    the defaults do nothing.
    """

    def on_frame(self, source: 'ObservedSource', frame: Frame) -> None:
        pass

    def on_anchors_added(self, source: 'ObservedSource', anchors: list[Anchor]) -> None:
        pass

    def on_anchors_updated(self, source: 'ObservedSource', anchors: list[Anchor]) -> None:
        pass

    def on_tracking_state_changed(self, source: 'ObservedSource', state: TrackingState) -> None:
        pass

    def on_error(self, source: 'ObservedSource', error: BaseException) -> None:
        pass

    def on_interrupted(self, source: 'ObservedSource') -> None:
        pass

    def on_interruption_ended(self, source: 'ObservedSource') -> None:
        pass

    def should_attempt_relocalization(self, source: 'ObservedSource') -> bool:
        return False

    def on_audio_sample(self, source: 'ObservedSource', sample: bytes) -> None:
        pass


class ObservedSource(ABC):
    """The AR view/session the recorder attaches to."""

    observer: SessionObserver | None = None

    @abstractmethod
    def scene_root(self) -> SceneNode | None:
        pass

    @abstractmethod
    def camera_transform(self) -> np.ndarray | None:
        pass

    @abstractmethod
    def current_world_map(self) -> WorldMap | None:
        pass
