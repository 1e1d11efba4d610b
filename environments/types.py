"""Plain data exchanged between the learning core and the simulation."""

import enum
from typing import NamedTuple, Sequence, Tuple


class Pose(NamedTuple):
    """Kinematic snapshot of a car for one tick."""
    x: float
    y: float
    heading: float
    speed: float = 0.0
    max_speed: float = 3.0


class ControlCommand(NamedTuple):
    """Control flags applied for the next integration step."""
    forward: bool = False
    left: bool = False
    right: bool = False
    reverse: bool = False

    @property
    def steering(self) -> bool:
        return self.left != self.right

    def as_vector(self) -> Tuple[int, int, int, int]:
        return (int(self.forward), int(self.left), int(self.right), int(self.reverse))

    @classmethod
    def from_vector(cls, outputs: Sequence[float]) -> 'ControlCommand':
        """Build a command from a network output vector [forward, left, right, reverse]."""
        flags = [bool(v) for v in list(outputs)[:4]]
        flags += [False] * (4 - len(flags))
        return cls(*flags)


class RoadGeometry(NamedTuple):
    """Road extents used to normalize positions."""
    left: float
    right: float
    lane_count: int = 3
    start_y: float = 100.0
    length_scale: float = 1000.0

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def lane_width(self) -> float:
        return self.width / max(self.lane_count, 1)

    def lane_center(self, lane_index: int) -> float:
        lane_index = min(max(lane_index, 0), self.lane_count - 1)
        return self.left + self.lane_width / 2 + lane_index * self.lane_width

    def lane_centers(self) -> Tuple[float, ...]:
        return tuple(self.lane_center(i) for i in range(self.lane_count))


class TerminalCause(str, enum.Enum):
    """Why an episode ended."""
    NONE = 'none'
    COLLISION = 'collision'
    TIMEOUT = 'timeout'


class StepOutcome(NamedTuple):
    """Post-action observables handed to the reward model."""
    state: Sequence[float]
    x: float
    distance: float
    collided: bool = False
    steps: int = 0
