"""Perception, state encoding, reward shaping and the highway environment."""

from .base_env import BaseDrivingEnvironment
from .geometry import Point, Reading, intersect, lerp, polygons_overlap
from .highway_env import Car, HighwayEnvironment, Road
from .reward import RewardModel
from .sensor import Sensor
from .state_codec import ACTIONS, StateCodec
from .types import ControlCommand, Pose, RoadGeometry, StepOutcome, TerminalCause

__all__ = [
    'BaseDrivingEnvironment', 'Point', 'Reading', 'intersect', 'lerp', 'polygons_overlap',
    'Car', 'HighwayEnvironment', 'Road', 'RewardModel', 'Sensor', 'ACTIONS', 'StateCodec',
    'ControlCommand', 'Pose', 'RoadGeometry', 'StepOutcome', 'TerminalCause',
]
