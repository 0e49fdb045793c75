from arlog.assertions import AT_SESSION_END, AT_SESSION_START, ARTestCase, TestSchedule
from arlog.capture import CaptureSource, ScreenRecording
from arlog.engine import (Anchor, FaceAnchor, Frame, ObservedSource, PlaneAnchor, SceneNode, SessionObserver,
                          TrackingState, TrackingStateKind, TrackingStateReason, WorldMap)
from arlog.items import LogItem, LogLevel, LogSymbol
from arlog.log import setup_logging
from arlog.recorder import RecorderState, RecordingObserver, SessionRecorder
from arlog.session import AppInfo, LogSession, SessionDevice, SessionLocation
from arlog.settings import Settings, settings
from arlog.spatial import (DetectedFace, DetectedPlane, PlaneAlignment, PlaneClassification, SpaceAnchor, SpaceMap,
                           SpaceObservation)
from arlog.storage import SessionFolder, SessionRepository
from arlog.storage.local_file_system import SessionRepositoryLocalFileSystem

__all__ = [
    'AT_SESSION_END',
    'AT_SESSION_START',
    'ARTestCase',
    'TestSchedule',
    'CaptureSource',
    'ScreenRecording',
    'Anchor',
    'FaceAnchor',
    'Frame',
    'ObservedSource',
    'PlaneAnchor',
    'SceneNode',
    'SessionObserver',
    'TrackingState',
    'TrackingStateKind',
    'TrackingStateReason',
    'WorldMap',
    'LogItem',
    'LogLevel',
    'LogSymbol',
    'setup_logging',
    'RecorderState',
    'RecordingObserver',
    'SessionRecorder',
    'AppInfo',
    'LogSession',
    'SessionDevice',
    'SessionLocation',
    'Settings',
    'settings',
    'DetectedFace',
    'DetectedPlane',
    'PlaneAlignment',
    'PlaneClassification',
    'SpaceAnchor',
    'SpaceMap',
    'SpaceObservation',
    'SessionFolder',
    'SessionRepository',
    'SessionRepositoryLocalFileSystem',
]
