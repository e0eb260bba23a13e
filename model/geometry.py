"""Collision and intersection primitives shared by the arena simulation.

Rectangles are anything exposing ``x``, ``y``, ``width`` and ``height`` with
``(x, y)`` as the top-left corner (``Rect`` below, ``Cover`` in entities).
"""

import math
from typing import NamedTuple

PARALLEL_EPSILON = 0.0001


class Rect(NamedTuple):
    x: float
    y: float
    width: float
    height: float


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def distance(ax: float, ay: float, bx: float, by: float) -> float:
    return math.hypot(ax - bx, ay - by)


def box_around(cx: float, cy: float, size: float) -> Rect:
    half = size / 2.0
    return Rect(cx - half, cy - half, size, size)


def rect_overlap(a, b) -> bool:
    # Touching edges are not an overlap.
    return (
        a.x < b.x + b.width
        and a.x + a.width > b.x
        and a.y < b.y + b.height
        and a.y + a.height > b.y
    )


def point_in_rect(px: float, py: float, rect) -> bool:
    return rect.x <= px <= rect.x + rect.width and rect.y <= py <= rect.y + rect.height


def circle_in_square(px: float, py: float, square, half_size: float) -> bool:
    """Square-box hit approximation around the center of ``square``.

    Looser than a circle test at the box corners; the simulation uses
    :func:`circle_vs_circle` for hits.
    """
    cx = square.x + square.width / 2.0
    cy = square.y + square.height / 2.0
    return abs(px - cx) <= half_size and abs(py - cy) <= half_size


def circle_vs_circle(center_distance: float, r1: float, r2: float) -> bool:
    return center_distance <= r1 + r2


def distance_to_rect(px: float, py: float, rect) -> float:
    closest_x = clamp(px, rect.x, rect.x + rect.width)
    closest_y = clamp(py, rect.y, rect.y + rect.height)
    return distance(px, py, closest_x, closest_y)


def segment_intersects_segment(x1: float, y1: float, x2: float, y2: float,
                               x3: float, y3: float, x4: float, y4: float) -> bool:
    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if abs(denom) < PARALLEL_EPSILON:
        return False

    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / denom
    u = -((x1 - x2) * (y1 - y3) - (y1 - y2) * (x1 - x3)) / denom
    return 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0


def rect_edges(rect):
    left = rect.x
    right = rect.x + rect.width
    top = rect.y
    bottom = rect.y + rect.height
    return (
        (left, top, right, top),
        (left, top, left, bottom),
        (right, top, right, bottom),
        (left, bottom, right, bottom),
    )


def segment_intersects_rect(x1: float, y1: float, x2: float, y2: float, rect) -> bool:
    return any(
        segment_intersects_segment(x1, y1, x2, y2, ex1, ey1, ex2, ey2)
        for ex1, ey1, ex2, ey2 in rect_edges(rect)
    )
