from datetime import datetime, timedelta

from arlog.settings import Settings


class StreamGate:
    """
    Interval gate for one auto-logged stream. The watermark is the next time
    the stream may emit; an interval of 0 disables the stream.
    """

    def __init__(self, interval: float, enabled: bool = True):
        self.interval = float(interval)
        self.enabled = enabled and self.interval > 0.0
        self.watermark: datetime | None = None

    def reset(self, now: datetime) -> None:
        self.watermark = now

    def due(self, now: datetime) -> bool:
        if not self.enabled:
            return False
        return self.watermark is None or now >= self.watermark

    def advance(self, now: datetime) -> None:
        self.watermark = now + timedelta(seconds=self.interval)


class FrameRateCounter:
    """
    Counts frames per `interval` window. The window restarts at the tick that
    closes it, so jitter between ticks biases the reported rate slightly.
    """

    def __init__(self, interval: float = 1.0):
        self.interval = float(interval)
        self.frame_count = -1
        self.watermark: datetime | None = None

    def reset(self) -> None:
        self.frame_count = -1
        self.watermark = None

    def tick(self, now: datetime) -> int | None:
        if self.frame_count == -1:
            self.watermark = now + timedelta(seconds=self.interval)
            self.frame_count = 0
            return None
        self.frame_count += 1
        if now >= self.watermark:
            fps = self.frame_count
            self.watermark = now + timedelta(seconds=self.interval)
            self.frame_count = 0
            return fps
        return None


class AutoLogPolicy:
    """Decides per frame tick which auto-logged streams emit."""

    def __init__(self, config: Settings):
        self.continuously_log_scene = config.continuously_log_scene
        self.pose = StreamGate(config.camera_interval)
        self.scene = StreamGate(config.scene_interval, enabled=config.auto_log_scene)
        self.map = StreamGate(config.map_interval, enabled=config.auto_log_map)
        self.fps = FrameRateCounter(config.fps_interval)
        self.tests = StreamGate(config.camera_interval)
        # deferred tests are still checked on every tick when poses are not sampled
        self.tests.enabled = True
        self.previous_node_count = 0
        self.previous_point_count = 0

    def reset(self, now: datetime) -> None:
        for gate in (self.pose, self.scene, self.map, self.tests):
            gate.reset(now)
        self.fps.reset()
        self.previous_node_count = 0
        self.previous_point_count = 0

    def pose_due(self, now: datetime) -> bool:
        if not self.pose.due(now):
            return False
        self.pose.advance(now)
        return True

    def scene_due(self, now: datetime, node_count: int) -> bool:
        if not self.scene.due(now):
            return False
        emit = node_count != self.previous_node_count or self.continuously_log_scene
        if emit:
            self.previous_node_count = node_count
        self.scene.advance(now)
        return emit

    def scene_logged(self, now: datetime, node_count: int) -> None:
        """Bookkeeping for a scene snapshot that was logged explicitly."""
        self.previous_node_count = node_count
        if self.scene.enabled:
            self.scene.advance(now)

    def map_due(self, now: datetime, point_count: int | None) -> bool:
        if point_count is None or not self.map.due(now):
            return False
        emit = point_count != self.previous_point_count
        if emit:
            self.previous_point_count = point_count
        self.map.advance(now)
        return emit

    def frame_rate(self, now: datetime) -> int | None:
        return self.fps.tick(now)

    def tests_due(self, now: datetime) -> bool:
        if not self.tests.due(now):
            return False
        if self.tests.interval > 0.0:
            self.tests.advance(now)
        return True
