"""Headless multi-lane highway with traffic for RL and evolutionary experiments."""

import math
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .base_env import BaseDrivingEnvironment
from .geometry import Point, Polygon, Segment, polygons_overlap
from .reward import RewardModel
from .sensor import Sensor
from .state_codec import StateCodec
from .types import ControlCommand, Pose, RoadGeometry, StepOutcome, TerminalCause

ROAD_EXTENT = 1000000.0


class Road:
    """Straight road with vertical borders running to +/- ROAD_EXTENT."""

    def __init__(self, center_x: float = 100.0, width: float = 180.0, lane_count: int = 3):
        self.center_x = center_x
        self.width = width
        self.lane_count = lane_count
        self.left = center_x - width / 2
        self.right = center_x + width / 2

        top, bottom = -ROAD_EXTENT, ROAD_EXTENT
        self.borders: List[Segment] = [
            (Point(self.left, top), Point(self.left, bottom)),
            (Point(self.right, top), Point(self.right, bottom)),
        ]

    @property
    def lane_width(self) -> float:
        return self.width / self.lane_count

    def lane_center(self, lane_index: int) -> float:
        return self.left + self.lane_width / 2 + min(lane_index, self.lane_count - 1) * self.lane_width

    def geometry(self, start_y: float, length_scale: float) -> RoadGeometry:
        return RoadGeometry(self.left, self.right, self.lane_count, start_y, length_scale)


class Car:
    """Simple top-down kinematics; angle 0 drives toward negative y."""

    def __init__(self, x: float, y: float, width: float = 30.0, height: float = 50.0,
                 max_speed: float = 3.0, acceleration: float = 0.2, friction: float = 0.05,
                 turn_rate: float = 0.03):
        self.x = x
        self.y = y
        self.width = width
        self.height = height
        self.max_speed = max_speed
        self.acceleration = acceleration
        self.friction = friction
        self.turn_rate = turn_rate

        self.speed = 0.0
        self.angle = 0.0
        self.damaged = False
        self.polygon = self._create_polygon()

    @property
    def pose(self) -> Pose:
        return Pose(self.x, self.y, self.angle, self.speed, self.max_speed)

    def update(self, command: ControlCommand, borders: List[Segment],
               obstacles: List[Polygon]) -> None:
        """Advance one tick; a damaged car no longer moves."""
        if self.damaged:
            return
        self._move(command)
        self.polygon = self._create_polygon()
        self.damaged = self._assess_damage(borders, obstacles)

    def _assess_damage(self, borders, obstacles) -> bool:
        for border in borders:
            if polygons_overlap(self.polygon, border):
                return True
        for polygon in obstacles:
            if polygons_overlap(self.polygon, polygon):
                return True
        return False

    def _create_polygon(self) -> Tuple[Point, ...]:
        rad = math.hypot(self.width, self.height) / 2
        alpha = math.atan2(self.width, self.height)
        corners = (self.angle - alpha, self.angle + alpha,
                   math.pi + self.angle - alpha, math.pi + self.angle + alpha)
        return tuple(Point(self.x - math.sin(a) * rad, self.y - math.cos(a) * rad)
                     for a in corners)

    def _move(self, command: ControlCommand):
        if command.forward:
            self.speed += self.acceleration
        if command.reverse:
            self.speed -= self.acceleration

        self.speed = min(self.speed, self.max_speed)
        self.speed = max(self.speed, -self.max_speed / 2)

        if self.speed > 0:
            self.speed -= self.friction
        if self.speed < 0:
            self.speed += self.friction
        if abs(self.speed) < self.friction:
            self.speed = 0.0

        if self.speed != 0:
            flip = 1 if self.speed > 0 else -1
            if command.left:
                self.angle += self.turn_rate * flip
            if command.right:
                self.angle -= self.turn_rate * flip

        self.x -= math.sin(self.angle) * self.speed
        self.y -= math.cos(self.angle) * self.speed


class HighwayEnvironment(BaseDrivingEnvironment):
    """Agent car on a highway among forward-driving traffic."""

    def __init__(self,
                 seed: int = 42,
                 max_steps: int = 1000,
                 road_center: float = 100.0,
                 road_width: float = 180.0,
                 lane_count: int = 3,
                 start_lane: int = 0,
                 start_y: float = 100.0,
                 length_scale: float = 1000.0,
                 ray_count: int = 5,
                 ray_length: float = 150.0,
                 ray_spread: float = math.pi / 2,
                 traffic_count: int = 50,
                 traffic_spacing: float = 180.0,
                 traffic_start_y: float = -100.0,
                 traffic_speed: float = 2.0,
                 traffic_jitter: float = 0.0,
                 reward_config: Optional[Dict[str, Any]] = None):
        """Initialize highway environment.

        Args:
            seed: Random seed
            max_steps: Step count after which an episode times out
            road_center: X coordinate of the road center
            road_width: Total road width
            lane_count: Number of lanes
            start_lane: Lane the agent starts in
            start_y: Agent start y; forward progress is measured from here
            length_scale: Distance normalizing the longitudinal coordinate
            ray_count: Sensor rays
            ray_length: Sensor ray length
            ray_spread: Sensor fan angle in radians
            traffic_count: Number of traffic cars
            traffic_spacing: Longitudinal gap between consecutive traffic cars
            traffic_start_y: Y of the first traffic car
            traffic_speed: Traffic max speed
            traffic_jitter: Max random longitudinal offset applied to traffic
            reward_config: Keyword overrides for RewardModel
        """
        super().__init__(seed, max_steps)
        self.start_lane = start_lane
        self.start_y = start_y
        self.traffic_count = traffic_count
        self.traffic_spacing = traffic_spacing
        self.traffic_start_y = traffic_start_y
        self.traffic_speed = traffic_speed
        self.traffic_jitter = traffic_jitter

        self.road = Road(road_center, road_width, lane_count)
        self.road_geometry = self.road.geometry(start_y, length_scale)
        self.sensor = Sensor(ray_count, ray_length, ray_spread)
        self.codec = StateCodec(ray_count)
        self.reward_model = RewardModel(self.codec, self.road_geometry, max_steps=max_steps,
                                        **(reward_config or {}))

        self.car: Car = None
        self.traffic: List[Car] = []
        self.readings = ()
        self.state = None

    def reset(self) -> np.ndarray:
        """Reset the agent car and traffic."""
        self.car = Car(self.road.lane_center(self.start_lane), self.start_y)
        self.traffic = []
        for i in range(self.traffic_count):
            y = self.traffic_start_y - i * self.traffic_spacing
            if self.traffic_jitter:
                y += self.np_random.uniform(-self.traffic_jitter, self.traffic_jitter)
            self.traffic.append(Car(self.road.lane_center(i % self.road.lane_count), y,
                                    max_speed=self.traffic_speed))
        self.reward_model.reset()
        self.current_step = 0
        self.episode_reward = 0.0
        self._observe()
        return self.state

    def step(self, action: Any) -> Tuple[np.ndarray, float, bool, Dict]:
        """Execute one tick.

        Args:
            action: Action index, or a ControlCommand for network-driven cars

        Returns:
            observation, reward, done, info
        """
        if self.car is None:
            self.reset()
        previous_state = self.state
        if isinstance(action, ControlCommand):
            command = action
        else:
            command = self.codec.decode_action(action)

        for car in self.traffic:
            car.update(ControlCommand(forward=True), self.road.borders, [])
        self.car.update(command, self.road.borders, self._nearby_traffic())
        self.current_step += 1
        self._observe()

        outcome = StepOutcome(self.state, self.car.x, self.distance,
                              self.car.damaged, self.current_step)
        reward = self.reward_model.compute(previous_state, action, outcome)
        cause = self.reward_model.terminal_cause(outcome)
        done = cause is not TerminalCause.NONE
        self.episode_reward += reward

        info = {
            'terminal_cause': cause.value,
            'collided': self.car.damaged,
            'distance': self.distance,
            'step': self.current_step,
            'episode_reward': self.episode_reward,
        }
        return self.state, reward, done, info

    @property
    def distance(self) -> float:
        """Forward distance travelled since reset."""
        return self.start_y - self.car.y

    def sensor_inputs(self) -> List[float]:
        """Ray proximities for network-driven cars."""
        return [0.0 if reading is None else 1.0 - reading.offset for reading in self.readings]

    def _observe(self):
        self.readings = self.sensor.read(self.car.pose, self.road.borders,
                                         [car.polygon for car in self._nearby_traffic()])
        self.state = self.codec.encode_state(self.readings, self.car.pose, self.road_geometry)

    def _nearby_traffic(self) -> List[Car]:
        reach = self.sensor.ray_length + max(self.car.width, self.car.height)
        return [car for car in self.traffic if abs(car.y - self.car.y) <= reach]

    @property
    def observation_shape(self) -> Tuple[int]:
        return (self.codec.state_size,)

    @property
    def action_shape(self) -> Tuple[int]:
        return (self.codec.action_size,)
