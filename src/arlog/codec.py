import logging
import shutil
import threading
from pathlib import Path
from typing import Literal

import numpy as np
import trimesh
from PIL import Image
from pydantic import BaseModel, Field

from arlog.engine import Anchor, FaceAnchor, PlaneAnchor, SceneNode, WorldMap
from arlog.spatial import (DetectedFace, DetectedPlane, FloatArrayLike, ObservationType, PlaneClassification,
                           SpaceAnchor, SpaceMap, SpaceObservation, flatten_points, matrix_to_floats, vector3)

logger = logging.getLogger(__name__)

# only textures shipped with the app are copied next to a scene snapshot
BUNDLED_ASSET_PATTERN = 'asset'


# ---- Anchors and maps ---------------------------------------------------------

def to_space_anchor(anchor: Anchor) -> SpaceAnchor:
    return SpaceAnchor(
        name=anchor.name or '',
        id=anchor.identifier,
        transform=matrix_to_floats(anchor.transform))


def to_detected_plane(anchor: PlaneAnchor) -> DetectedPlane:
    return DetectedPlane(
        name=anchor.name or 'plane',
        id=anchor.identifier,
        transform=matrix_to_floats(anchor.transform),
        type=anchor.classification or PlaneClassification.UNKNOWN,
        alignment=anchor.alignment,
        center=vector3(anchor.center),
        extent=vector3(anchor.extent),
        points=flatten_points(anchor.boundary_vertices))


def to_detected_face(anchor: FaceAnchor) -> DetectedFace:
    face = DetectedFace(
        name=anchor.name or 'face',
        id=anchor.identifier,
        transform=matrix_to_floats(anchor.transform),
        points=flatten_points(anchor.vertices),
        indices=list(anchor.triangle_indices))
    if anchor.left_eye_transform is not None:
        face.left_eye_transform = matrix_to_floats(anchor.left_eye_transform)
    if anchor.right_eye_transform is not None:
        face.right_eye_transform = matrix_to_floats(anchor.right_eye_transform)
    return face


def to_space_map(world_map: WorldMap) -> SpaceMap:
    return SpaceMap(
        center=vector3(world_map.center),
        extent=vector3(world_map.extent),
        anchors=[to_space_anchor(a) for a in world_map.anchors],
        points=flatten_points(world_map.raw_feature_points),
        identifiers=list(world_map.identifiers))


def to_observation(kind: ObservationType,
                   feature: str,
                   confidence: float,
                   rel_rect: tuple[float, float, float, float]) -> SpaceObservation:
    x, y, width, height = rel_rect
    return SpaceObservation(
        type=kind,
        feature=feature,
        confidence=confidence,
        bbox=[float(x), float(y), float(width), float(height)])


def matrix_to_string(m: FloatArrayLike) -> str:
    return ' '.join(f'{v:f}' for v in matrix_to_floats(m))


def count_nodes(root: SceneNode) -> int:
    return sum(1 for _ in root.walk())


def compact_json(model: BaseModel) -> str:
    return model.model_dump_json()


def pretty_json(model: BaseModel) -> str:
    return model.model_dump_json(indent=2)


def write_map(path: Path, space_map: SpaceMap) -> None:
    path.write_text(pretty_json(space_map), encoding='utf-8')


# ---- Scene graphs -------------------------------------------------------------

class MeshRecord(BaseModel):
    vertices: list[float] = Field(default_factory=list)
    faces: list[int] = Field(default_factory=list)


class SceneNodeRecord(BaseModel):
    name: str = ''
    transform: list[float] = Field(default_factory=list)
    geometry: MeshRecord | None = None
    textures: list[str] = Field(default_factory=list)
    children: list['SceneNodeRecord'] = Field(default_factory=list)


def _texture_path(texture: str | Path | Image.Image) -> str | None:
    if isinstance(texture, Image.Image):
        # images loaded from a file remember it, generated ones cannot be exported
        return getattr(texture, 'filename', None) or None
    return str(texture)


def to_scene_record(node: SceneNode) -> SceneNodeRecord:
    geometry = None
    if node.geometry is not None:
        geometry = MeshRecord(
            vertices=flatten_points(node.geometry.vertices),
            faces=np.asarray(node.geometry.faces, dtype=int).reshape(-1).tolist())
    textures = [Path(p).name for p in map(_texture_path, node.textures) if p]
    return SceneNodeRecord(
        name=node.name,
        transform=matrix_to_floats(node.transform),
        geometry=geometry,
        textures=textures,
        children=[to_scene_record(child) for child in node.children])


def to_trimesh_scene(root: SceneNode) -> trimesh.Scene:
    scene = trimesh.Scene()

    def add(node: SceneNode, parent_matrix: np.ndarray, path: str) -> None:
        world = parent_matrix @ node.transform
        if node.geometry is not None:
            scene.add_geometry(node.geometry, node_name=path, geom_name=path, transform=world)
        for i, child in enumerate(node.children):
            add(child, world, f'{path}/{child.name or i}')

    add(root, np.eye(4), root.name or 'root')
    return scene


class SceneExporter:
    """
    Writes scene snapshots into one session's `scenes/` folder.

    Exports run on a background executor. One exporter exists per session and
    its lock keeps two snapshots from writing into the folder at once.
    """

    def __init__(self,
                 target: Path,
                 asset_root: Path,
                 scene_format: Literal['json', 'glb'] = 'json'):
        self.target = Path(target)
        self.asset_root = Path(asset_root)
        self.scene_format = scene_format
        self.file_names: set[str] = set()
        self._lock = threading.Lock()

    def export(self, root: SceneNode, path: Path) -> None:
        with self._lock:
            if self.scene_format == 'glb':
                path.write_bytes(to_trimesh_scene(root).export(file_type='glb'))
            else:
                path.write_text(pretty_json(to_scene_record(root)), encoding='utf-8')
            for node in root.walk():
                for texture in node.textures:
                    self.save_texture(texture)

    def save_texture(self, texture: str | Path | Image.Image) -> None:
        path = _texture_path(texture)
        if path is None:
            return
        name = Path(path).name
        if name in self.file_names or BUNDLED_ASSET_PATTERN not in path:
            return
        source = Path(path)
        if not source.is_absolute():
            source = self.asset_root / source
        try:
            shutil.copyfile(source, self.target / name)
            self.file_names.add(name)
        except OSError as e:
            logger.warning('copying texture %s failed: %s', path, e)
