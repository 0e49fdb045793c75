import os
import pathlib
import platform
from datetime import datetime
from typing import Literal

import psutil
from pydantic import BaseModel, Field

from arlog.items import LogItem

LOG_VERSION = 1  # version of the LogSession data structure

_MB = 1024.0 * 1024.0


class SessionLocation(BaseModel):
    latitude: float = 0.0
    longitude: float = 0.0
    country_code: str = ''
    country: str = ''
    state: str = ''
    postal_code: str = ''
    city: str = ''
    address: str = ''


class SessionDevice(BaseModel):
    name: str = ''
    model: str = ''
    os: str = ''
    os_version: str = ''
    cpu_cores: int = 0
    memory: float = 0.0  # MB
    total_storage: float = 0.0  # MB
    free_storage: float = 0.0  # MB
    screen_width: float = 0.0
    screen_height: float = 0.0

    @classmethod
    def current(cls, screen_size: tuple[float, float] = (0.0, 0.0)) -> 'SessionDevice':
        disk = psutil.disk_usage(str(pathlib.Path.home()))
        return cls(
            name=platform.node(),
            model=platform.machine(),
            os=platform.system(),
            os_version=platform.release(),
            cpu_cores=os.cpu_count() or 0,
            memory=psutil.virtual_memory().total / _MB,
            total_storage=disk.total / _MB,
            free_storage=disk.free / _MB,
            screen_width=float(screen_size[0]),
            screen_height=float(screen_size[1]))


class AppInfo(BaseModel):
    app_name: str = ''
    app_version: str = ''
    app_id: str = ''
    kit_version: str = ''


class LogSession(BaseModel):
    session_name: str = ''
    log_version: int = LOG_VERSION
    app_name: str = ''
    app_version: str = ''
    app_id: str = ''
    kit_version: str = ''
    session_start: datetime
    location: SessionLocation = Field(default_factory=SessionLocation)
    user: str = ''
    organisation: str = ''
    extra: str = ''
    device: SessionDevice = Field(default_factory=SessionDevice)
    camera_interval: float = 0.0
    scene_interval: float = 0.0
    map_interval: float = 0.0
    video_format: str = 'mp4'
    scene_format: Literal['json', 'glb'] = 'json'
    log_items: list[LogItem] = Field(default_factory=list)

    @classmethod
    def new(cls, name: str, start: datetime, app: AppInfo | None = None, **kwargs) -> 'LogSession':
        app = app or AppInfo()
        return cls(session_name=name, session_start=start, **app.model_dump(), **kwargs)

    def append(self, item: LogItem) -> None:
        self.log_items.append(item)
