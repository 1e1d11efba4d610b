"""
Tests for reward shaping.
"""
import pytest

from environments.reward import RewardModel
from environments.state_codec import StateCodec
from environments.types import ControlCommand, RoadGeometry, StepOutcome, TerminalCause

ROAD = RoadGeometry(left=10.0, right=190.0, lane_count=3)


def make_state(front=0.0, speed=0.5, lateral=0.5):
    return [0.0, 0.0, front, 0.0, 0.0, speed, 0.0, lateral, 0.0]


class TestLaneBonus:
    """Test the lane-centering bonus."""

    def setup_method(self):
        self.model = RewardModel(StateCodec(), ROAD)

    def test_lane_centers(self):
        """Test lane centers for a three-lane road."""
        assert ROAD.lane_centers() == pytest.approx((40.0, 100.0, 160.0))

    @pytest.mark.parametrize('x,expected', [
        (40.0, 0.5),
        (100.0, 0.5),
        (70.0, 0.25),
        (130.0, 0.25),
        (-50.0, 0.0),
    ])
    def test_bonus(self, x, expected):
        """Test the bonus falls off linearly to zero one lane width away."""
        assert self.model.lane_center_bonus(x) == pytest.approx(expected)


class TestCompute:
    """Test per-step rewards."""

    def setup_method(self):
        self.model = RewardModel(StateCodec(), ROAD, max_steps=100)

    def outcome(self, state, x=40.0, distance=0.0, collided=False, steps=1):
        return StepOutcome(state, x, distance, collided, steps)

    def test_cruising(self):
        """Test step penalty plus lane bonus when nothing else applies."""
        reward = self.model.compute(make_state(), 0, self.outcome(make_state()))
        assert reward == pytest.approx(0.49)

    def test_slow(self):
        """Test the penalty for crawling."""
        state = make_state(speed=0.05)
        assert self.model.compute(state, 0, self.outcome(state)) == pytest.approx(0.39)

    def test_blocked(self):
        """Test the penalty for an obstacle close ahead."""
        state = make_state(front=0.8)
        assert self.model.compute(make_state(), 0, self.outcome(state)) == pytest.approx(0.09)

    def test_blocked_below_threshold(self):
        """Test that distant obstacles are not penalized."""
        state = make_state(front=0.5)
        assert self.model.compute(make_state(), 0, self.outcome(state)) == pytest.approx(0.49)

    def test_blocked_while_steering(self):
        """Test the rebate when the agent steers away from a blockage."""
        state = make_state(front=0.8)
        assert self.model.compute(make_state(), 1, self.outcome(state)) == pytest.approx(0.29)

    def test_blocked_with_command(self):
        """Test that a ControlCommand action earns the same rebate."""
        state = make_state(front=0.8)
        command = ControlCommand(forward=True, right=True)
        assert self.model.compute(make_state(), command, self.outcome(state)) == pytest.approx(0.29)

    def test_blocked_while_drifting(self):
        """Test the rebate when the lateral position changes without steering."""
        previous = make_state(lateral=0.5)
        state = make_state(front=0.8, lateral=0.51)
        assert self.model.compute(previous, 0, self.outcome(state)) == pytest.approx(0.29)

    def test_collision(self):
        """Test that a collision overrides every other term."""
        state = make_state(front=1.0)
        outcome = self.outcome(state, distance=500.0, collided=True)
        assert self.model.compute(make_state(), 0, outcome) == -10.0
        assert self.model.terminal_cause(outcome) is TerminalCause.COLLISION

    def test_timeout(self):
        """Test that running out of steps is its own terminal cause."""
        outcome = self.outcome(make_state(), steps=100)
        assert self.model.terminal_cause(outcome) is TerminalCause.TIMEOUT
        assert self.model.compute(make_state(), 0, outcome) == pytest.approx(0.49 - 5.0)

    def test_not_terminal(self):
        """Test that an ordinary step has no terminal cause."""
        assert self.model.terminal_cause(self.outcome(make_state(), steps=99)) is TerminalCause.NONE


class TestProgress:
    """Test the distance milestones."""

    def setup_method(self):
        self.model = RewardModel(StateCodec(), ROAD)
        self.state = make_state()

    def reward_at(self, distance):
        return self.model.compute(self.state, 0, StepOutcome(self.state, 40.0, distance))

    def test_milestones(self):
        """Test one bonus per 100 units of forward distance."""
        assert self.reward_at(99.0) == pytest.approx(0.49)
        assert self.reward_at(100.0) == pytest.approx(5.49)
        assert self.reward_at(150.0) == pytest.approx(0.49)
        assert self.reward_at(200.0) == pytest.approx(5.49)

    def test_large_jump(self):
        """Test that skipping several milestones pays once and moves past them."""
        assert self.reward_at(450.0) == pytest.approx(5.49)
        assert self.reward_at(499.0) == pytest.approx(0.49)
        assert self.reward_at(500.0) == pytest.approx(5.49)

    def test_reset(self):
        """Test that reset restarts the milestones."""
        self.reward_at(100.0)
        self.model.reset()
        assert self.reward_at(100.0) == pytest.approx(5.49)
