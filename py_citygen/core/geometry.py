"""
Planar geometry helpers shared by the street and building engines.

Points are (x, y) tuples or two-element sequences; polygons are sequences of
points in order, implicitly closed.
"""

import math
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]
Polygon = Sequence[Sequence[float]]


class BoundingBox(NamedTuple):
    """Axis-aligned bounding box."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def padded(self, amount: float) -> "BoundingBox":
        return BoundingBox(
            self.min_x - amount,
            self.min_y - amount,
            self.max_x + amount,
            self.max_y + amount,
        )

    def overlaps(self, other: "BoundingBox") -> bool:
        """Strict overlap; boxes that only touch do not overlap."""
        return (
            self.min_x < other.max_x
            and self.max_x > other.min_x
            and self.min_y < other.max_y
            and self.max_y > other.min_y
        )


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two points."""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def direction(p1, p2, p3) -> float:
    """Cross product sign of p3 relative to the directed line p1 -> p2."""
    return (p3[0] - p1[0]) * (p2[1] - p1[1]) - (p2[0] - p1[0]) * (p3[1] - p1[1])


def _on_segment(p1, p2, p) -> bool:
    return (
        min(p1[0], p2[0]) <= p[0] <= max(p1[0], p2[0])
        and min(p1[1], p2[1]) <= p[1] <= max(p1[1], p2[1])
    )


def segments_cross(p1, p2, p3, p4) -> bool:
    """
    Proper crossing test: True only when each segment strictly straddles the
    other. Touching and collinear overlaps do not count.
    """
    d1 = direction(p3, p4, p1)
    d2 = direction(p3, p4, p2)
    d3 = direction(p1, p2, p3)
    d4 = direction(p1, p2, p4)
    return ((d1 > 0 > d2) or (d1 < 0 < d2)) and ((d3 > 0 > d4) or (d3 < 0 < d4))


def segments_intersect(p1, p2, p3, p4) -> bool:
    """Inclusive intersection test, counting touching and collinear overlap."""
    if segments_cross(p1, p2, p3, p4):
        return True

    d1 = direction(p3, p4, p1)
    d2 = direction(p3, p4, p2)
    d3 = direction(p1, p2, p3)
    d4 = direction(p1, p2, p4)

    if d1 == 0 and _on_segment(p3, p4, p1):
        return True
    if d2 == 0 and _on_segment(p3, p4, p2):
        return True
    if d3 == 0 and _on_segment(p1, p2, p3):
        return True
    if d4 == 0 and _on_segment(p1, p2, p4):
        return True
    return False


def segment_intersection(p1, p2, p3, p4) -> Optional[Point]:
    """
    Intersection point of segments p1-p2 and p3-p4.

    Returns:
        (x, y) if the segments meet within both extents, None if they are
        parallel or miss each other
    """
    denom = (p4[1] - p3[1]) * (p2[0] - p1[0]) - (p4[0] - p3[0]) * (p2[1] - p1[1])
    if abs(denom) < 1e-10:
        return None

    ua = ((p4[0] - p3[0]) * (p1[1] - p3[1]) - (p4[1] - p3[1]) * (p1[0] - p3[0])) / denom
    ub = ((p2[0] - p1[0]) * (p1[1] - p3[1]) - (p2[1] - p1[1]) * (p1[0] - p3[0])) / denom

    if 0 <= ua <= 1 and 0 <= ub <= 1:
        return (p1[0] + ua * (p2[0] - p1[0]), p1[1] + ua * (p2[1] - p1[1]))
    return None


def closest_point_on_segment(p, v1, v2) -> Point:
    """Closest point to p on segment v1-v2."""
    dx = v2[0] - v1[0]
    dy = v2[1] - v1[1]
    len_sq = dx * dx + dy * dy
    if len_sq == 0:
        return (v1[0], v1[1])

    t = ((p[0] - v1[0]) * dx + (p[1] - v1[1]) * dy) / len_sq
    t = max(0.0, min(1.0, t))
    return (v1[0] + t * dx, v1[1] + t * dy)


def point_in_polygon(point, polygon: Polygon) -> bool:
    """Ray casting point-in-polygon test."""
    if len(polygon) < 3:
        return False

    px, py = point[0], point[1]
    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        xi, yi = polygon[i][0], polygon[i][1]
        xj, yj = polygon[j][0], polygon[j][1]
        if (yi > py) != (yj > py) and px < (xj - xi) * (py - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def signed_area(polygon: Polygon) -> float:
    """
    Shoelace signed area.

    Positive when the vertices run counter-clockwise in a y-up frame (which is
    clockwise on screen, where y grows downwards).
    """
    if len(polygon) < 3:
        return 0.0
    pts = np.asarray(polygon, dtype=np.float64)
    x = pts[:, 0]
    y = pts[:, 1]
    return float(0.5 * (np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)))


def polygon_area(polygon: Polygon) -> float:
    """Unsigned polygon area."""
    return abs(signed_area(polygon))


def polygon_centroid(polygon: Polygon) -> Point:
    """Vertex average of a polygon ((0, 0) for an empty one)."""
    if len(polygon) == 0:
        return (0.0, 0.0)
    pts = np.asarray(polygon, dtype=np.float64)
    cx, cy = pts.mean(axis=0)
    return (float(cx), float(cy))


def polygon_bounds(polygon: Polygon) -> Optional[BoundingBox]:
    """Bounding box of a polygon, None when it has no vertices."""
    if len(polygon) == 0:
        return None
    pts = np.asarray(polygon, dtype=np.float64)
    min_x, min_y = pts.min(axis=0)
    max_x, max_y = pts.max(axis=0)
    return BoundingBox(float(min_x), float(min_y), float(max_x), float(max_y))


def angle_between(node_pos, neighbor_a, neighbor_b) -> float:
    """
    Angle in degrees (0-180) at node_pos between the rays to two neighbours.

    Degenerate rays (zero length) report 180 so they never block a connection.
    """
    vax = neighbor_a[0] - node_pos[0]
    vay = neighbor_a[1] - node_pos[1]
    vbx = neighbor_b[0] - node_pos[0]
    vby = neighbor_b[1] - node_pos[1]

    len_a = math.hypot(vax, vay)
    len_b = math.hypot(vbx, vby)
    if len_a < 0.001 or len_b < 0.001:
        return 180.0

    dot = (vax * vbx + vay * vby) / (len_a * len_b)
    dot = max(-1.0, min(1.0, dot))
    return math.degrees(math.acos(dot))


def inset_polygon(polygon: Polygon, amount: float) -> List[Point]:
    """
    Shrink a polygon by pulling each vertex toward the vertex centroid.

    This is a radial approximation, not a true offset: vertices closer to the
    centroid than ``amount`` are dropped and concave or elongated shapes can
    self-intersect.

    Returns:
        The inset vertices, or an empty list when fewer than 3 survive
    """
    if len(polygon) < 3:
        return []

    cx, cy = polygon_centroid(polygon)
    result = []
    for vertex in polygon:
        dx = vertex[0] - cx
        dy = vertex[1] - cy
        dist = math.hypot(dx, dy)
        if dist < amount:
            continue
        scale = (dist - amount) / dist
        result.append((cx + dx * scale, cy + dy * scale))

    return result if len(result) >= 3 else []


def rotated_rectangle(center, width: float, depth: float, rotation: float) -> List[Point]:
    """Four corners of a width x depth rectangle rotated about its centre."""
    cx, cy = center[0], center[1]
    hw = width / 2
    hd = depth / 2
    cos_r = math.cos(rotation)
    sin_r = math.sin(rotation)

    corners = [(-hw, -hd), (hw, -hd), (hw, hd), (-hw, hd)]
    return [
        (cx + x * cos_r - y * sin_r, cy + x * sin_r + y * cos_r)
        for x, y in corners
    ]
