"""Geometry kernel: segment intersection and polygon overlap primitives."""

from typing import NamedTuple, Optional, Sequence, Tuple


class Point(NamedTuple):
    """Plane coordinate."""
    x: float
    y: float


class Reading(NamedTuple):
    """Intersection point with its fractional offset along the first segment."""
    x: float
    y: float
    offset: float


Segment = Tuple[Point, Point]
Polygon = Sequence[Point]


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation between a and b."""
    return a + (b - a) * t


def intersect(a: Point, b: Point, c: Point, d: Point) -> Optional[Reading]:
    """Intersect segment AB with segment CD.

    Args:
        a: Start of the first segment
        b: End of the first segment
        c: Start of the second segment
        d: End of the second segment

    Returns:
        Reading at the crossing point with offset = t along AB, or None when
        the segments are parallel or only their extensions cross.
    """
    t_top = (d.x - c.x) * (a.y - c.y) - (d.y - c.y) * (a.x - c.x)
    u_top = (c.y - a.y) * (a.x - b.x) - (c.x - a.x) * (a.y - b.y)
    bottom = (d.y - c.y) * (b.x - a.x) - (d.x - c.x) * (b.y - a.y)

    if bottom == 0:
        return None

    t = t_top / bottom
    u = u_top / bottom
    if 0 <= t <= 1 and 0 <= u <= 1:
        return Reading(lerp(a.x, b.x, t), lerp(a.y, b.y, t), t)
    return None


def polygon_edges(polygon: Polygon):
    """Yield the edges of an implicitly closed polygon."""
    n = len(polygon)
    for i in range(n):
        yield polygon[i], polygon[(i + 1) % n]


def polygons_overlap(p: Polygon, q: Polygon) -> bool:
    """Return True if any edge of p crosses any edge of q."""
    for a, b in polygon_edges(p):
        for c, d in polygon_edges(q):
            if intersect(a, b, c, d) is not None:
                return True
    return False
