import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Callable

logger = logging.getLogger(__name__)

SampleHandler = Callable[[bytes, float], None]
ErrorHandler = Callable[[BaseException], None]
Notify = Callable[[str, str], None]


class CaptureSource(ABC):
    """
    Screen capture subsystem. Delivers encoded video samples with their
    presentation timestamps on its own thread.
    """

    @abstractmethod
    def start(self, on_sample: SampleHandler, on_error: ErrorHandler) -> None:
        """Begin delivering samples; raises if capturing cannot start."""

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering samples; returns once no more samples will arrive."""


def log_notify(title: str, message: str) -> None:
    logger.warning('%s %s', title, message)


class ScreenRecording:
    """Appends capture samples to the session's single video output stream."""

    def __init__(self, path: Path, notify: Notify = log_notify):
        self.path = Path(path)
        self.notify = notify
        self.is_recording = False
        self.first_timestamp: float | None = None  # start of the encoded asset
        self.sample_count = 0
        self.error: BaseException | None = None
        self._file: BinaryIO | None = None
        self._lock = threading.Lock()

    def open(self) -> bool:
        with self._lock:
            try:
                self._file = self.path.open('wb')
            except OSError as e:
                self._fail(e)
                return False
            self.is_recording = True
            return True

    def append(self, data: bytes, timestamp: float) -> None:
        with self._lock:
            if not self.is_recording or self._file is None:
                return
            if self.first_timestamp is None:
                self.first_timestamp = timestamp
            try:
                self._file.write(data)
                self.sample_count += 1
            except OSError as e:
                self._fail(e)

    def fail(self, error: BaseException) -> None:
        with self._lock:
            self._fail(error)

    def _fail(self, error: BaseException) -> None:
        self.is_recording = False
        self.error = error
        logger.error('screen recording failed: %s', error)
        self.notify('Error in capturing screen!', str(error))

    def finish(self) -> None:
        with self._lock:
            self.is_recording = False
            if self._file is not None:
                try:
                    self._file.flush()
                    self._file.close()
                except OSError as e:
                    logger.error('finishing screen recording failed: %s', e)
                self._file = None
