import pathlib
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='ARLOG_', validate_assignment=True)

    enabled: bool = False
    # older session folders are deleted, mind the screen recordings
    max_saved_sessions: int = Field(4, ge=1)

    auto_log_scene: bool = True
    continuously_log_scene: bool = False  # False: only scenes with a changed node count
    auto_log_map: bool = True
    auto_log_planes: bool = True
    auto_log_faces: bool = False
    auto_log_anchors: bool = True  # anchors other than planes and faces

    # seconds, 0 disables the stream
    camera_interval: float = 0.5
    scene_interval: float = 0.25
    map_interval: float = 1.0
    fps_interval: float = 1.0

    scene_format: Literal['json', 'glb'] = 'json'
    local_storage: pathlib.Path = pathlib.Path('.') / 'ARlogs'
    asset_root: pathlib.Path = pathlib.Path('.')

    project_id: str = ''  # empty: no upload
    server_url: str = 'https://service.metason.net/arlog'
    upload_timeout_secs: float = 30

    teardown_grace_secs: float = 0.5
    snapshot_workers: int = 2
    log_level: str = 'INFO'


settings = Settings()
