import logging
import pathlib
import shutil
from datetime import datetime
from typing import Iterator, Optional

from arlog.session import LogSession
from arlog.storage import (SESSION_FILE, BundleCreateError, BundleListingError, SessionFolder,
                           SessionRepository)
from arlog.time import to_base_name, to_folder_name

logger = logging.getLogger(__name__)


def _is_session_dir(path: pathlib.Path) -> bool:
    return path.is_dir() and (path / SESSION_FILE).exists()


def _load_session(path: pathlib.Path) -> LogSession:
    session_path = path / SESSION_FILE
    with session_path.open(encoding='utf-8') as f:
        return LogSession.model_validate_json(f.read())


def snapshot_path(directory: pathlib.Path, now: datetime, extension: str) -> pathlib.Path:
    """`<directory>/<HHmmssSSS>.<extension>`, creating the directory on first use."""
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f'{to_base_name(now)}.{extension}'


class SessionRepositoryLocalFileSystem(SessionRepository):
    """
    One folder per session under `local_storage`, named after the session start
    time so that lexicographic order is chronological order.
    """

    def __init__(self, local_storage: pathlib.Path, max_saved_sessions: int = 4, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if max_saved_sessions < 1:
            raise ValueError('max_saved_sessions must be at least 1')
        self._local_storage = pathlib.Path(local_storage)
        self.max_saved_sessions = max_saved_sessions

    @property
    def root(self) -> pathlib.Path:
        return self._local_storage

    def folders(self) -> list[pathlib.Path]:
        try:
            return sorted((p for p in self._local_storage.iterdir() if p.is_dir()), key=lambda p: p.name)
        except OSError as e:
            raise BundleListingError(f'Cannot list {self._local_storage}: {e}') from e

    def evict(self) -> list[str]:
        """Delete the oldest folders until one slot is left for a new session."""
        if not self._local_storage.exists():
            return []
        folders = self.folders()
        warnings = []
        if len(folders) >= self.max_saved_sessions:
            for path in folders[:len(folders) - self.max_saved_sessions + 1]:
                try:
                    shutil.rmtree(path)
                    logger.info('deleted old session %s', path.name)
                except OSError as e:
                    message = f'Error: deleting {path.name} failed: {e}'
                    logger.error(message)
                    warnings.append(message)
        return warnings

    def create(self, start: datetime) -> SessionFolder:
        warnings = self.evict()
        session_path = self._local_storage / to_folder_name(start)
        try:
            session_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BundleCreateError(f'Cannot create session folder {session_path}: {e}') from e
        return SessionFolder(path=session_path, warnings=warnings)

    def save(self, folder: SessionFolder, session: LogSession) -> None:
        folder.session_file.write_text(session.model_dump_json(indent=2), encoding='utf-8')

    def get(self, folder_name: str) -> Optional[LogSession]:
        path = self._local_storage / folder_name
        if not _is_session_dir(path):
            return None
        return _load_session(path)

    def all(self) -> Iterator[LogSession]:
        if not self._local_storage.exists():
            return
        for path in self.folders():
            if _is_session_dir(path):
                yield _load_session(path)
