from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from pydantic import BaseModel, Field

from arlog.session import LogSession

SESSION_FILE = 'session.json'
SCREEN_FILE = 'screen.mp4'
SCENES_DIR = 'scenes'
MAPS_DIR = 'maps'


class BundleError(OSError):
    pass


class BundleListingError(BundleError):
    """The storage root cannot be listed, so retention cannot be enforced."""


class BundleCreateError(BundleError):
    pass


class SessionFolder(BaseModel):
    path: Path
    # retention problems that did not prevent creating the folder
    warnings: list[str] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def session_file(self) -> Path:
        return self.path / SESSION_FILE

    @property
    def screen_file(self) -> Path:
        return self.path / SCREEN_FILE

    @property
    def scenes(self) -> Path:
        return self.path / SCENES_DIR

    @property
    def maps(self) -> Path:
        return self.path / MAPS_DIR


class SessionRepository(ABC):

    def __init__(self, *args, **kwargs):
        pass

    @abstractmethod
    def create(self, start: datetime) -> SessionFolder:
        pass

    @abstractmethod
    def save(self, folder: SessionFolder, session: LogSession) -> None:
        pass

    @abstractmethod
    def get(self, folder_name: str) -> Optional[LogSession]:
        pass

    @abstractmethod
    def all(self) -> Iterator[LogSession]:
        pass
