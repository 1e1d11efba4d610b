"""Reward shaping for the highway driving task."""

from typing import Any, Optional, Sequence

from .state_codec import StateCodec
from .types import ControlCommand, RoadGeometry, StepOutcome, TerminalCause


class RewardModel:
    """Weighted sum of collision, progress, efficiency, blocking and lane terms.

    The lane-centering bonus is added on top of the progress bonus, and
    running out of steps carries its own penalty separate from a collision.
    """

    def __init__(self,
                 codec: StateCodec,
                 road: RoadGeometry,
                 collision_penalty: float = -10.0,
                 timeout_penalty: float = -5.0,
                 progress_bonus: float = 5.0,
                 progress_interval: float = 100.0,
                 step_penalty: float = -0.01,
                 slow_penalty: float = -0.1,
                 min_speed: float = 0.1,
                 blocked_penalty: float = -0.5,
                 proximity_threshold: float = 0.5,
                 lane_change_rebate: float = 0.5,
                 lane_change_tolerance: float = 0.005,
                 lane_bonus: float = 0.5,
                 max_steps: int = 1000):
        self.codec = codec
        self.road = road
        self.collision_penalty = collision_penalty
        self.timeout_penalty = timeout_penalty
        self.progress_bonus = progress_bonus
        self.progress_interval = progress_interval
        self.step_penalty = step_penalty
        self.slow_penalty = slow_penalty
        self.min_speed = min_speed
        self.blocked_penalty = blocked_penalty
        self.proximity_threshold = proximity_threshold
        self.lane_change_rebate = lane_change_rebate
        self.lane_change_tolerance = lane_change_tolerance
        self.lane_bonus = lane_bonus
        self.max_steps = max_steps
        self.next_milestone = progress_interval

    def reset(self):
        """Start a new episode."""
        self.next_milestone = self.progress_interval

    def terminal_cause(self, outcome: StepOutcome) -> TerminalCause:
        if outcome.collided:
            return TerminalCause.COLLISION
        if outcome.steps >= self.max_steps:
            return TerminalCause.TIMEOUT
        return TerminalCause.NONE

    def lane_center_bonus(self, x: float) -> float:
        """Bonus peaking at a lane center, zero one lane width away."""
        distance = min(abs(x - center) for center in self.road.lane_centers())
        lane_width = self.road.lane_width
        if lane_width <= 0:
            return 0.0
        return self.lane_bonus * (1.0 - min(distance / lane_width, 1.0))

    def compute(self, previous_state: Sequence[float], action: Any,
                outcome: StepOutcome) -> float:
        """Reward for the transition from previous_state under action.

        Args:
            previous_state: State vector before the action
            action: Action index that was applied
            outcome: Observables after the action

        Returns:
            Scalar reward
        """
        cause = self.terminal_cause(outcome)
        if cause is TerminalCause.COLLISION:
            return self.collision_penalty

        state = self.codec.validate(outcome.state)
        previous = self.codec.validate(previous_state)
        reward = self.step_penalty

        if outcome.distance >= self.next_milestone:
            reward += self.progress_bonus
            while self.next_milestone <= outcome.distance:
                self.next_milestone += self.progress_interval

        if state[self.codec.speed_index] < self.min_speed:
            reward += self.slow_penalty

        proximity = state[self.codec.front_ray_index]
        if proximity > self.proximity_threshold:
            penalty = self.blocked_penalty * proximity
            if self._changing_lanes(previous, state, action):
                penalty *= 1.0 - self.lane_change_rebate
            reward += penalty

        reward += self.lane_center_bonus(outcome.x)

        if cause is TerminalCause.TIMEOUT:
            reward += self.timeout_penalty
        return float(reward)

    def _changing_lanes(self, previous, state, action: Optional[Any]) -> bool:
        if isinstance(action, ControlCommand):
            command = action
        else:
            command = self.codec.decode_action(action)
        if command.steering:
            return True
        lateral = self.codec.lateral_index
        return abs(state[lateral] - previous[lateral]) > self.lane_change_tolerance
