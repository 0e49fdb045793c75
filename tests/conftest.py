"""Shared pytest fixtures."""
from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import pytest

from arlog.capture import CaptureSource
from arlog.engine import ObservedSource, SceneNode, SessionObserver, WorldMap
from arlog.recorder import SessionRecorder
from arlog.session import SessionDevice
from arlog.settings import Settings

START = datetime(2024, 5, 17, 9, 30, 15, 250_000)


class FakeClock:
    """Wall clock the test moves by hand."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


class FakeSource(ObservedSource):
    """An AR view with a scene graph and world map the test controls."""

    def __init__(self, observer: SessionObserver | None = None):
        self.observer = observer
        self.root: SceneNode | None = SceneNode(name='root')
        self.world_map: WorldMap | None = None
        self.camera = np.eye(4)

    def scene_root(self) -> SceneNode | None:
        return self.root

    def camera_transform(self) -> np.ndarray | None:
        return self.camera

    def current_world_map(self) -> WorldMap | None:
        return self.world_map

    def set_node_count(self, count: int) -> None:
        self.root = SceneNode(name='root', children=[SceneNode(name=f'n{i}') for i in range(count - 1)])


class RecordingHostObserver(SessionObserver):
    """Host observer remembering which callbacks reached it."""

    def __init__(self):
        self.calls: list[str] = []

    def on_frame(self, source, frame) -> None:
        self.calls.append('frame')

    def on_anchors_added(self, source, anchors) -> None:
        self.calls.append('anchors_added')

    def on_anchors_updated(self, source, anchors) -> None:
        self.calls.append('anchors_updated')

    def on_tracking_state_changed(self, source, state) -> None:
        self.calls.append('tracking')

    def on_interrupted(self, source) -> None:
        self.calls.append('interrupted')

    def should_attempt_relocalization(self, source) -> bool:
        return True


class FakeCapture(CaptureSource):
    """Capture subsystem whose samples are pushed by the test."""

    def __init__(self, fail_on_start: bool = False, error_on_stop: BaseException | None = None):
        self.fail_on_start = fail_on_start
        self.error_on_stop = error_on_stop
        self.on_sample = None
        self.on_error = None
        self.started = False
        self.stopped = False

    def start(self, on_sample, on_error) -> None:
        if self.fail_on_start:
            raise RuntimeError('screen capture not permitted')
        self.on_sample = on_sample
        self.on_error = on_error
        self.started = True

    def stop(self) -> None:
        self.stopped = True
        if self.error_on_stop is not None:
            self.on_error(self.error_on_stop)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / 'ARlogs'


@pytest.fixture
def config(storage_dir: Path) -> Settings:
    """Enabled settings writing into a temporary directory."""
    return Settings(enabled=True, local_storage=storage_dir, teardown_grace_secs=0, snapshot_workers=1)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def recorder(config: Settings, clock: FakeClock) -> SessionRecorder:
    return SessionRecorder(config=config, clock=clock, device=SessionDevice(name='test-device'))
