import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from enum import Enum
from typing import Callable

import numpy as np
from pydantic import BaseModel

from arlog.assertions import AT_SESSION_END, ARTestCase, LateRegistrationError, Predicate, TestSchedule
from arlog.capture import CaptureSource, Notify, ScreenRecording, log_notify
from arlog.codec import (SceneExporter, compact_json, count_nodes, matrix_to_string, to_detected_face,
                         to_detected_plane, to_observation, to_space_anchor, to_space_map, write_map)
from arlog.engine import (Anchor, FaceAnchor, Frame, ObservedSource, PlaneAnchor, SceneNode, SessionObserver,
                          TrackingState, WorldMap)
from arlog.items import LogItem, LogKind, LogLevel, LogSymbol
from arlog.sampling import AutoLogPolicy
from arlog.session import AppInfo, LogSession, SessionDevice
from arlog.settings import Settings, settings as default_settings
from arlog.spatial import ObservationType, PlaneClassification
from arlog.storage import SCREEN_FILE, BundleCreateError, BundleListingError, SessionFolder, SessionRepository
from arlog.storage.local_file_system import SessionRepositoryLocalFileSystem, snapshot_path
from arlog.time import elapsed_seconds
from arlog.upload import BundleUploader

logger = logging.getLogger(__name__)

Finalizer = Callable[[LogSession], None]
Rect = tuple[float, float, float, float]

FULL_RECT: Rect = (0.0, 0.0, 1.0, 1.0)


class RecorderState(str, Enum):
    IDLE = 'idle'
    STARTING = 'starting'
    RUNNING = 'running'
    STOPPING = 'stopping'


class RecordingObserver(SessionObserver):
    """
    Sits between the AR session and the host's own observer. Every callback is
    forwarded to the host observer first, then recorded.
    """

    def __init__(self, recorder: 'SessionRecorder', prime: SessionObserver | None = None):
        self.recorder = recorder
        self.prime = prime

    def on_frame(self, source: ObservedSource, frame: Frame) -> None:
        if self.prime is not None:
            self.prime.on_frame(source, frame)
        self.recorder.on_frame(source, frame)

    def on_anchors_added(self, source: ObservedSource, anchors: list[Anchor]) -> None:
        if self.prime is not None:
            self.prime.on_anchors_added(source, anchors)
        for anchor in anchors:
            self.recorder.on_anchor_added(anchor)

    def on_anchors_updated(self, source: ObservedSource, anchors: list[Anchor]) -> None:
        if self.prime is not None:
            self.prime.on_anchors_updated(source, anchors)
        for anchor in anchors:
            self.recorder.on_anchor_updated(anchor)

    def on_tracking_state_changed(self, source: ObservedSource, state: TrackingState) -> None:
        if self.prime is not None:
            self.prime.on_tracking_state_changed(source, state)
        self.recorder.capture(state.describe(), title='Tracking Status')

    def on_error(self, source: ObservedSource, error: BaseException) -> None:
        if self.prime is not None:
            self.prime.on_error(source, error)

    def on_interrupted(self, source: ObservedSource) -> None:
        if self.prime is not None:
            self.prime.on_interrupted(source)

    def on_interruption_ended(self, source: ObservedSource) -> None:
        if self.prime is not None:
            self.prime.on_interruption_ended(source)

    def should_attempt_relocalization(self, source: ObservedSource) -> bool:
        if self.prime is not None:
            return self.prime.should_attempt_relocalization(source)
        return False

    def on_audio_sample(self, source: ObservedSource, sample: bytes) -> None:
        if self.prime is not None:
            self.prime.on_audio_sample(source, sample)


class SessionRecorder:
    """
    Records one AR session at a time into a bundle folder.

    Logging calls are no-ops while the recorder is disabled or idle, so
    instrumentation can stay in place in production builds. Nothing here
    raises into the host application; problems are logged and recording
    continues where possible.
    """

    def __init__(self,
                 config: Settings | None = None,
                 repository: SessionRepository | None = None,
                 capture: CaptureSource | None = None,
                 uploader: BundleUploader | None = None,
                 clock: Callable[[], datetime] | None = None,
                 notify: Notify = log_notify,
                 app: AppInfo | None = None,
                 device: SessionDevice | None = None):
        self.settings = config if config is not None else default_settings
        self.repository = repository
        self.capture_source = capture
        self.uploader = uploader
        self.clock = clock or datetime.now
        self.notify = notify
        self.app = app
        self.device = device

        self.state = RecorderState.IDLE
        self.tests = TestSchedule()
        self.session: LogSession | None = None
        self.folder: SessionFolder | None = None
        self.source: ObservedSource | None = None
        self.screen: ScreenRecording | None = None
        self.upload_thread: threading.Thread | None = None

        self._failed = False  # storage could not be listed, stays off for this process
        self._config: Settings | None = None
        self._policy: AutoLogPolicy | None = None
        self._observer: RecordingObserver | None = None
        self._exporter: SceneExporter | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._inbox: queue.SimpleQueue = queue.SimpleQueue()
        self._lock = threading.RLock()
        self._session_start: datetime | None = None
        self._last_elapsed = 0.0

    # ---- State ----------------------------------------------------------------

    @property
    def is_enabled(self) -> bool:
        return self.settings.enabled and not self._failed

    @property
    def is_recording(self) -> bool:
        return self.is_enabled and self.state != RecorderState.IDLE and self.session is not None

    def elapsed(self) -> float:
        """Seconds since session start, never decreasing within a session."""
        with self._lock:
            if self._session_start is None:
                return 0.0
            elapsed = elapsed_seconds(self._session_start, self.clock())
            self._last_elapsed = max(self._last_elapsed, elapsed)
            return self._last_elapsed

    # ---- Lifecycle ------------------------------------------------------------

    def start(self, source: ObservedSource, session_name: str = 'ARSession') -> None:
        if not self.is_enabled:
            logger.warning('%s ARlog session recording is disabled!', LogLevel.WARNING.value)
            return
        with self._lock:
            if self.state != RecorderState.IDLE:
                logger.warning('ARlog is already recording, start ignored')
                return
            self.state = RecorderState.STARTING
            logger.info('ARlog start')
            try:
                self._begin(source, session_name)
            except Exception:
                logger.exception('starting ARlog failed')
                self._abort_start()

    def _begin(self, source: ObservedSource, session_name: str) -> None:
        config = self.settings.model_copy()
        now = self.clock()
        repository = self.repository or SessionRepositoryLocalFileSystem(
            config.local_storage, config.max_saved_sessions)
        try:
            folder = repository.create(now)
        except BundleListingError as e:
            logger.error('%s, disabling ARlog', e)
            self._failed = True
            self.state = RecorderState.IDLE
            return
        except BundleCreateError as e:
            logger.error('%s', e)
            self.state = RecorderState.IDLE
            return

        session = LogSession.new(
            session_name,
            now,
            self.app,
            device=self.device or SessionDevice.current(),
            camera_interval=config.camera_interval,
            scene_interval=config.scene_interval if config.auto_log_scene else 0.0,
            map_interval=config.map_interval if config.auto_log_map else 0.0,
            scene_format=config.scene_format)

        self.repository = repository
        self.folder = folder
        self._config = config
        self._session_start = now
        self._last_elapsed = 0.0
        self._policy = AutoLogPolicy(config)
        self._policy.reset(now)
        self._exporter = None
        # items posted after a previous session ended must not leak into this one
        self._inbox = queue.SimpleQueue()
        self._executor = ThreadPoolExecutor(max_workers=config.snapshot_workers, thread_name_prefix='arlog')
        self.session = session
        for warning in folder.warnings:
            self.text(warning, level=LogLevel.SEVERE)
        self.tests.freeze()

        self._start_screen_recording(now)

        self.source = source
        self._observer = RecordingObserver(self, source.observer)
        source.observer = self._observer
        self.state = RecorderState.RUNNING

    def _abort_start(self) -> None:
        """Undo a partially started session so the next `start()` can run."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        if self.screen is not None:
            self._stop_screen_recording()
        self._restore_observer()
        self.tests.unfreeze()
        self.session = None
        self.state = RecorderState.IDLE

    def stop(self, finalize: Finalizer | None = None) -> None:
        """
        Ends the session. `finalize` receives the session before it is saved,
        to fill in late metadata such as user, organisation or location.
        """
        with self._lock:
            if self.state != RecorderState.RUNNING:
                return
            self.state = RecorderState.STOPPING
            logger.info('ARlog stop')
            self._drain()

            for case in self.tests.finish():
                self._log_test(case)

            if finalize is not None:
                try:
                    finalize(self.session)
                except Exception as e:
                    logger.exception('session finalizer failed')
                    self.error(f'Finalizing session failed: {e}')

            # snapshot writes still in flight must land before the bundle is frozen
            self._executor.shutdown(wait=True)
            self._executor = None
            self._drain()

            if self.screen is not None:
                self.info(self._session_start.isoformat(), title='Screen recording stopped', ref=SCREEN_FILE)
            else:
                self.info(self._session_start.isoformat(), title='Recording stopped')
            self._stop_screen_recording()
            # errors reported while the capture subsystem tore down
            self._drain()
            self._restore_observer()

            try:
                self.repository.save(self.folder, self.session)
            except (OSError, ValueError) as e:
                logger.error('saving session %s failed: %s', self.folder.name, e)

            self._upload(self.folder)
            self.tests.clear()
            self.state = RecorderState.IDLE

    def _start_screen_recording(self, now: datetime) -> None:
        if self.capture_source is None:
            return
        screen = ScreenRecording(self.folder.screen_file, self.notify)
        if not screen.open():
            self.error(f'Screen recording failed! {screen.error}')
            return

        inbox = self._inbox

        def on_error(error: BaseException) -> None:
            screen.fail(error)
            self._post(LogLevel.ERROR, 'Error', f'Screen recording failed! {error}', inbox=inbox)

        try:
            self.capture_source.start(screen.append, on_error)
        except Exception as e:
            screen.fail(e)
            screen.finish()
            self.error(f'Screen recording failed! {e}')
            return
        self.screen = screen
        self.info(now.isoformat(), title='Screen recording started', ref=SCREEN_FILE)

    def _stop_screen_recording(self) -> None:
        if self.screen is None:
            return
        try:
            self.capture_source.stop()
        except Exception as e:
            logger.error('stopping screen capture failed: %s', e)
        self.screen.finish()
        # the capture subsystem may still be tearing down its writer
        if self._config.teardown_grace_secs > 0:
            time.sleep(self._config.teardown_grace_secs)
        self.screen = None

    def _restore_observer(self) -> None:
        if self._observer is not None and self.source is not None and self.source.observer is self._observer:
            self.source.observer = self._observer.prime
        self._observer = None
        self.source = None

    def _upload(self, folder: SessionFolder) -> None:
        uploader = self.uploader
        if uploader is None and self._config.project_id:
            uploader = BundleUploader(self._config.project_id, self._config.server_url,
                                      self._config.upload_timeout_secs)
        if uploader is None:
            return

        def run():
            try:
                count = uploader.upload(folder.path)
                logger.info('uploaded %d files of %s', count, folder.name)
            except Exception:
                logger.exception('uploading %s failed', folder.name)

        self.upload_thread = threading.Thread(target=run, name='arlog-upload', daemon=True)
        self.upload_thread.start()

    # ---- Item plumbing --------------------------------------------------------

    def _log(self,
             kind: LogKind,
             title: str,
             data: str = '',
             ref: str = '',
             with_status: bool = True) -> LogItem | None:
        with self._lock:
            if not self.is_recording:
                return None
            item = LogItem.create(kind, title, data, ref, elapsed=self.elapsed(), with_status=with_status)
            self.session.append(item)
            return item

    def _post(self,
              kind: LogKind,
              title: str,
              data: str = '',
              ref: str = '',
              inbox: queue.SimpleQueue | None = None) -> None:
        """Queue an item from a background thread; appended on the next tick of its session."""
        (self._inbox if inbox is None else inbox).put((kind, title, data, ref))

    def _drain(self) -> None:
        while True:
            try:
                kind, title, data, ref = self._inbox.get_nowait()
            except queue.Empty:
                return
            self._log(kind, title, data, ref)

    def _submit(self, fn: Callable, *args) -> None:
        if self._executor is None:
            fn(*args)
            return
        self._executor.submit(fn, *args)

    def _log_test(self, case: ARTestCase) -> None:
        self._log(LogSymbol.PASSED if case.passed else LogSymbol.FAILED, case.description)

    @staticmethod
    def _encode(model: BaseModel, fallback: str) -> str:
        try:
            return compact_json(model)
        except ValueError as e:
            logger.error('encoding %s failed: %s', fallback, e)
            return fallback

    # ---- Engine callbacks -----------------------------------------------------

    def on_frame(self, source: ObservedSource, frame: Frame) -> None:
        with self._lock:
            if self.state != RecorderState.RUNNING or not self.is_enabled:
                return
            now = self.clock()
            self._drain()
            policy = self._policy

            fps = policy.frame_rate(now)
            if fps is not None:
                self.fps(fps)

            if policy.pose_due(now):
                transform = frame.camera_transform
                if transform is None:
                    transform = source.camera_transform()
                if transform is not None:
                    self.cam(transform)

            if policy.scene.due(now):
                root = source.scene_root()
                if root is not None:
                    count = count_nodes(root)
                    if policy.scene_due(now, count):
                        self._snapshot_scene(root, count, now, 'Scene')

            if policy.map_due(now, frame.feature_point_count):
                self.map_of(source)

            if policy.tests_due(now):
                for case in self.tests.due(self.elapsed()):
                    self._log_test(case)

    def on_anchor_added(self, anchor: Anchor) -> None:
        self._record_anchor(anchor, updated=False)

    def on_anchor_updated(self, anchor: Anchor) -> None:
        self._record_anchor(anchor, updated=True)

    def _record_anchor(self, anchor: Anchor, updated: bool) -> None:
        if not self.is_recording:
            return
        config = self._config
        if config.auto_log_planes and isinstance(anchor, PlaneAnchor):
            plane = to_detected_plane(anchor)
            if plane.type == PlaneClassification.FLOOR:
                self.shift_wc(plane.center[1])
            if updated:
                self._log(LogSymbol.PLANE_UPDATE, 'Plane update', self._encode(plane, 'plane'))
            else:
                self._log(LogSymbol.PLANE, 'Plane detected', self._encode(plane, 'plane'))
            return
        if config.auto_log_faces and isinstance(anchor, FaceAnchor):
            face = to_detected_face(anchor)
            if updated:
                self._log(LogSymbol.FACE_UPDATE, 'Face update', self._encode(face, 'face'))
            else:
                self._log(LogSymbol.FACE, 'Face detected', self._encode(face, 'face'))
            return
        if config.auto_log_anchors:
            space_anchor = to_space_anchor(anchor)
            if updated:
                self._log(LogSymbol.ANCHOR_UPDATE, 'Anchor update', self._encode(space_anchor, 'anchor'))
            else:
                self._log(LogSymbol.ANCHOR, 'Anchor added', self._encode(space_anchor, 'anchor'))

    # ---- Logging API ----------------------------------------------------------

    def info(self, text: str, title: str = 'Info', ref: str = '') -> None:
        self._log(LogLevel.INFO, title, text, ref)

    def debug(self, text: str, title: str = 'Debug') -> None:
        self._log(LogLevel.DEBUG, title, text)

    def warning(self, text: str, title: str = 'Warning') -> None:
        self._log(LogLevel.WARNING, title, text)

    def error(self, text: str, title: str = 'Error') -> None:
        self._log(LogLevel.ERROR, title, text)

    def severe(self, text: str, title: str = 'Severe Bug') -> None:
        self._log(LogLevel.SEVERE, title, text)

    def text(self, text: str, level: LogLevel = LogLevel.DEBUG, title: str = 'Message') -> None:
        self._log(level, title, text)

    def data(self, json_text: str, title: str = 'Data') -> None:
        self._log(LogSymbol.DATA, title, json_text)

    def touch(self, point: tuple[float, float], long: bool = False, title: str = '') -> None:
        if len(title) < 2:
            title = 'Long Tap Interaction' if long else 'Touch Interaction'
        x, y = point
        self._log(LogSymbol.TOUCH, title, f'{int(x)} {int(y)}')

    def shift_wc(self, y: float) -> None:
        """Shift the world coordinate system in height, e.g. to the detected floor."""
        self._log(LogSymbol.YSHIFT, 'Shift WC in y', str(float(y)), with_status=False)

    def fps(self, fps: int) -> None:
        self._log(LogSymbol.FPS, 'fps', str(fps))

    def cam(self, transform: np.ndarray) -> None:
        self._log(LogSymbol.CAM, 'cam', matrix_to_string(transform), with_status=False)

    def capture(self, text: str, title: str = 'AR Capturing Status') -> None:
        self._log(LogSymbol.CAPTURE, title, text)

    def scene(self, root: SceneNode, title: str = 'Scene') -> None:
        with self._lock:
            if not self.is_recording:
                return
            now = self.clock()
            count = count_nodes(root)
            self._snapshot_scene(root, count, now, title)
            self._policy.scene_logged(now, count)

    def _snapshot_scene(self, root: SceneNode, count: int, now: datetime, title: str) -> None:
        extension = self._config.scene_format
        try:
            path = snapshot_path(self.folder.scenes, now, extension)
        except OSError as e:
            self.error(f'Error: {e}', title='Message')
            return
        if self._exporter is None:
            self._exporter = SceneExporter(self.folder.scenes, self._config.asset_root, extension)
        self._submit(self._export_scene, self._exporter, root, path)
        self._log(LogSymbol.SCENE, title, f'{count} nodes', ref=path.name)

    def _export_scene(self, exporter: SceneExporter, root: SceneNode, path) -> None:
        try:
            exporter.export(root, path)
        except Exception as e:
            logger.error('scene writing failed: %s', e)
            self._post(LogLevel.SEVERE, 'Message', f'Scene writing error: {e}')

    def map_of(self, source: ObservedSource, title: str = 'Map') -> None:
        world_map = source.current_world_map()
        if world_map is None:
            return
        self.map(world_map, title=title)

    def map(self, world_map: WorldMap, title: str = 'Map') -> None:
        with self._lock:
            if not self.is_recording:
                return
            try:
                path = snapshot_path(self.folder.maps, self.clock(), 'json')
            except OSError as e:
                self.error(f'Error: {e}', title='Message')
                return
            points = len(world_map.raw_feature_points)
            anchors = len(world_map.anchors)
            self._submit(self._write_map, world_map, path)
            self._log(LogSymbol.MAP, title, f'{points} points, {anchors} anchors', ref=path.name)

    def _write_map(self, world_map: WorldMap, path) -> None:
        try:
            write_map(path, to_space_map(world_map))
        except (OSError, ValueError) as e:
            logger.error('saving world map failed: %s', e)
            self._post(LogLevel.SEVERE, 'Message', f'Error saving world map: {e}')

    def dominant_colors(self, primary: str, secondary: str = '', rel_rect: Rect = FULL_RECT) -> None:
        """Colors as hex codes '#RRGGBBAA'."""
        feature = f'{primary} {secondary}' if secondary else primary
        observation = to_observation(ObservationType.DOMINANT_COLORS, feature, 1.0, rel_rect)
        self._log(LogSymbol.IMAGE, 'Dominant Colors', self._encode(observation, 'observation'))

    def classified_image(self, label: str, confidence: float, rel_rect: Rect = FULL_RECT) -> None:
        observation = to_observation(ObservationType.CLASSIFIED_IMAGE, label, confidence, rel_rect)
        self._log(LogSymbol.IMAGE, 'Image classified', self._encode(observation, 'observation'))

    def detected_image(self, label: str, confidence: float, rel_rect: Rect = FULL_RECT) -> None:
        observation = to_observation(ObservationType.DETECTED_IMAGE, label, confidence, rel_rect)
        self._log(LogSymbol.IMAGE, 'Image detected', self._encode(observation, 'observation'))

    def register_test(self,
                      description: str,
                      predicate: Predicate,
                      trigger_time: float = AT_SESSION_END) -> ARTestCase | None:
        """Assert `predicate` `trigger_time` seconds after start; register before `start()`."""
        if not self.is_enabled:
            return None
        try:
            return self.tests.register(description, predicate, trigger_time)
        except LateRegistrationError as e:
            logger.warning(e)
            self.warning(str(e), title='Test')
            return None
