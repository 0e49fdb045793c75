from enum import Enum

from pydantic import BaseModel, ConfigDict

from arlog.status import get_status


# single character symbols are drawn on the inspector timeline,
# the word-valued ones are used internally


class LogLevel(str, Enum):
    INFO = 'ℹ︎'
    DEBUG = '❗️'
    WARNING = '⚠️'
    ERROR = '‼️'
    SEVERE = '🔥'


class LogSymbol(str, Enum):
    DATA = '📂'  # json payload
    CAPTURE = '📐'  # AR capturing / tracking status
    MAP = '🌐'  # world map, space map, point cloud
    SCENE = '✚'  # scene graph snapshot
    TOUCH = '◎'
    PLANE = '⬛️'
    PLANE_UPDATE = '🔲'
    IMAGE = '📷'
    OBJECT = '⚫️'
    FACE = '🙂'
    FACE_UPDATE = '😶'
    ANCHOR = '📌'
    ANCHOR_UPDATE = '📍'
    FPS = 'fps'
    CAM = 'cam'
    YSHIFT = 'yShift'  # world coordinate shift in height, e.g. to the floor plane
    PASSED = '✅'
    FAILED = '❌'


LogKind = LogLevel | LogSymbol


class LogItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: float = 0.0  # seconds since session start
    type: str
    title: str
    data: str = ''  # text or json, depends on type
    ref: str = ''  # object UUID or asset file name (screen.mp4, scenes/*, maps/*)
    status: str = ''  # '<cpu %> <memory MB>'

    @classmethod
    def create(cls,
               kind: LogKind,
               title: str,
               data: str = '',
               ref: str = '',
               *,
               elapsed: float,
               with_status: bool = True) -> 'LogItem':
        return cls(
            time=elapsed,
            type=kind.value,
            title=title,
            data=data,
            ref=ref,
            status=get_status() if with_status else '')

    @property
    def kind(self) -> LogKind | None:
        for enum_cls in (LogLevel, LogSymbol):
            try:
                return enum_cls(self.type)
            except ValueError:
                pass
        return None
