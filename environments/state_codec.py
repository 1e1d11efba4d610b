"""State codec: observables to validated state vectors, action indices to controls."""

import logging
import math
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from .geometry import Reading
from .types import ControlCommand, Pose, RoadGeometry

logger = logging.getLogger(__name__)

# Discrete action table; the last entry is the no-op.
ACTIONS: Tuple[ControlCommand, ...] = (
    ControlCommand(forward=True),
    ControlCommand(forward=True, left=True),
    ControlCommand(forward=True, right=True),
    ControlCommand(left=True),
    ControlCommand(right=True),
    ControlCommand(reverse=True),
    ControlCommand(),
)
NOOP_ACTION = len(ACTIONS) - 1

SPEED_RANGE = (0.0, 1.0)
HEADING_RANGE = (-1.0, 1.0)
LATERAL_RANGE = (-0.5, 1.5)
LONGITUDINAL_RANGE = (-2.0, 2.0)


class StateCodec:
    """Positional state layout.

    [ray proximities..., speed, heading, lateral position, longitudinal position]
    """

    def __init__(self, ray_count: int = 5, state_size: Optional[int] = None,
                 actions: Sequence[ControlCommand] = ACTIONS):
        self.ray_count = ray_count
        self.state_size = state_size if state_size is not None else ray_count + 4
        self.actions = tuple(actions)

    @property
    def speed_index(self) -> int:
        return self.ray_count

    @property
    def heading_index(self) -> int:
        return self.ray_count + 1

    @property
    def lateral_index(self) -> int:
        return self.ray_count + 2

    @property
    def longitudinal_index(self) -> int:
        return self.ray_count + 3

    @property
    def front_ray_index(self) -> int:
        return self.ray_count // 2

    @property
    def action_size(self) -> int:
        return len(self.actions)

    def encode_state(self,
                     readings: Sequence[Optional[Reading]],
                     pose: Pose,
                     road: RoadGeometry) -> np.ndarray:
        """Build a validated state vector from one tick of observables.

        Args:
            readings: Sensor readings, None where nothing was hit
            pose: Car pose
            road: Road extents

        Returns:
            State vector of length state_size
        """
        proximities = [0.0 if reading is None else 1.0 - reading.offset for reading in readings]
        if len(proximities) != self.ray_count:
            logger.warning(f"Got {len(proximities)} readings for {self.ray_count} rays")
            proximities = (proximities + [0.0] * self.ray_count)[:self.ray_count]

        max_speed = pose.max_speed if pose.max_speed else 1.0
        lateral = (pose.x - road.left) / road.width if road.width else 0.0
        longitudinal = (road.start_y - pose.y) / road.length_scale if road.length_scale else 0.0
        raw = proximities + [
            pose.speed / max_speed,
            pose.heading / math.pi,
            lateral,
            longitudinal,
        ]
        return self.validate(raw)

    def validate(self, state: Any) -> np.ndarray:
        """Replace non-finite entries with 0, clamp, and fit to state_size."""
        try:
            vector = np.asarray(state, dtype=np.float64).ravel()
        except (TypeError, ValueError):
            logger.warning("Unreadable state, using zeros")
            vector = np.zeros(self.state_size)
        if vector.shape[0] != self.state_size:
            logger.warning(f"State length {vector.shape[0]} != {self.state_size}")
            fitted = np.zeros(self.state_size)
            n = min(self.state_size, vector.shape[0])
            fitted[:n] = vector[:n]
            vector = fitted
        vector = np.where(np.isfinite(vector), vector, 0.0)

        lows, highs = self._bounds()
        return np.clip(vector, lows, highs)

    def decode_action(self, action_index: Any) -> ControlCommand:
        """Map an action index to control flags; anything unusable is a no-op."""
        try:
            value = float(action_index)
        except (TypeError, ValueError):
            value = float('nan')
        if not math.isfinite(value) or value < 0:
            logger.warning(f"Invalid action {action_index!r}, using no-op")
            return self.actions[-1]
        index = int(value)
        if index >= len(self.actions):
            logger.warning(f"Action {action_index!r} out of range, clamping")
            index = len(self.actions) - 1
        return self.actions[index]

    def _bounds(self):
        lows = np.zeros(self.state_size)
        highs = np.ones(self.state_size)
        ranges = {
            self.speed_index: SPEED_RANGE,
            self.heading_index: HEADING_RANGE,
            self.lateral_index: LATERAL_RANGE,
            self.longitudinal_index: LONGITUDINAL_RANGE,
        }
        for index, (low, high) in ranges.items():
            if index < self.state_size:
                lows[index] = low
                highs[index] = high
        # Extra coordinates beyond the layout are only required to be finite
        for index in range(self.ray_count + 4, self.state_size):
            lows[index] = -np.inf
            highs[index] = np.inf
        return lows, highs
