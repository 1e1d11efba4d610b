"""Ray-cast proximity sensor."""

import math
from typing import Optional, Sequence, Tuple

from .geometry import Point, Polygon, Reading, Segment, intersect, lerp, polygon_edges
from .types import Pose


class Sensor:
    """Fan of rays cast from a car's pose.

    Angle 0 points "up" in screen coordinates: a ray at angle a ends at
    position - (sin(a), cos(a)) * ray_length.
    """

    def __init__(self,
                 ray_count: int = 5,
                 ray_length: float = 150.0,
                 ray_spread: float = math.pi / 2):
        """Initialize sensor.

        Args:
            ray_count: Number of rays in the fan
            ray_length: Length of each ray
            ray_spread: Total angle covered by the fan in radians
        """
        if ray_count < 1:
            raise ValueError(f"ray_count must be positive, got {ray_count}")
        self.ray_count = ray_count
        self.ray_length = ray_length
        self.ray_spread = ray_spread

    def ray_angles(self, heading: float) -> Tuple[float, ...]:
        angles = []
        for i in range(self.ray_count):
            t = 0.5 if self.ray_count == 1 else i / (self.ray_count - 1)
            angles.append(lerp(self.ray_spread / 2, -self.ray_spread / 2, t) + heading)
        return tuple(angles)

    def cast_rays(self, pose: Pose) -> Tuple[Segment, ...]:
        """Generate the rays for the given pose."""
        start = Point(pose.x, pose.y)
        rays = []
        for angle in self.ray_angles(pose.heading):
            end = Point(pose.x - math.sin(angle) * self.ray_length,
                        pose.y - math.cos(angle) * self.ray_length)
            rays.append((start, end))
        return tuple(rays)

    def sense(self,
              rays: Sequence[Segment],
              borders: Sequence[Segment],
              obstacles: Sequence[Polygon]) -> Tuple[Optional[Reading], ...]:
        """Reduce each ray to its nearest hit.

        Args:
            rays: Rays from cast_rays
            borders: Static border segments
            obstacles: Obstacle footprints

        Returns:
            One Reading per ray, or None where the ray hits nothing
        """
        return tuple(self._nearest(ray, borders, obstacles) for ray in rays)

    def read(self,
             pose: Pose,
             borders: Sequence[Segment],
             obstacles: Sequence[Polygon]) -> Tuple[Optional[Reading], ...]:
        """Cast and sense in one call."""
        return self.sense(self.cast_rays(pose), borders, obstacles)

    def _nearest(self, ray, borders, obstacles) -> Optional[Reading]:
        touches = []
        for c, d in borders:
            touch = intersect(ray[0], ray[1], c, d)
            if touch is not None:
                touches.append(touch)

        for polygon in obstacles:
            for c, d in polygon_edges(polygon):
                touch = intersect(ray[0], ray[1], c, d)
                if touch is not None:
                    touches.append(touch)

        if not touches:
            return None
        return min(touches, key=lambda touch: touch.offset)
