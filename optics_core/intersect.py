"""Closed-form ray/surface intersection in the surface-local frame.

All functions take a ray already mapped into the surface's local frame:
planes sit at x = 0 with normal (-1, 0, 0), spheres and cylinders are centred
on the origin (the centre of curvature). Anomalies are reported on the trace
context and yield an invalid ``Intersection``; nothing here raises.

Root selection follows the radius sign: a convex sphere (R > 0) takes the near
root and must be approached from outside, a concave one (R < 0) always takes
the far root.

Example:
    >>> import numpy as np
    >>> from optics_core.diagnostics import TraceContext
    >>> from optics_core.intersect import intersect_plane
    >>> from optics_core.rays import Ray
    >>> from optics_core.surfaces import Surface
    >>> hit = intersect_plane(Ray([-5.0, 1.0, 0.0], [1.0, 0.0, 0.0]), Surface(id="p", shape="planar"), TraceContext())
    >>> hit.valid, hit.distance, hit.point.tolist()
    (True, 5.0, [0.0, 1.0, 0.0])
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Callable, Dict, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from optics_core.diagnostics import TraceConfig, TraceContext
from optics_core.linalg import CANONICAL_NORMAL
from optics_core.rays import Ray
from optics_core.surfaces import Surface

logger = logging.getLogger(__name__)

Vector = NDArray[np.float64]


@dataclass(frozen=True, eq=False)
class Intersection:
    point: Vector = field(default_factory=lambda: np.zeros(3))
    normal: Vector = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))
    distance: float = 0.0
    valid: bool = False


MISS = Intersection()


def plane_aperture_contains(point: Vector, surface: Surface, config: TraceConfig) -> bool:
    """Rectangular when both width and height are set, else circular (semidia or the default)."""

    y, z = float(point[1]), float(point[2])
    if surface.has_rectangular_aperture:
        return abs(y) <= surface.width / 2.0 and abs(z) <= surface.height / 2.0
    sd = surface.semidia if surface.semidia is not None else config.default_semidia
    return y * y + z * z <= sd * sd


def within_aperture(point: Vector, surface: Surface, config: TraceConfig) -> bool:
    """Shape-aware aperture test on a local hit point (squared radial comparison, no sqrt)."""

    if surface.shape == "planar":
        return plane_aperture_contains(point, surface, config)
    if surface.shape == "cylindrical":
        half_w = (surface.width or config.default_cylinder_extent) / 2.0
        half_h = (surface.height or config.default_cylinder_extent) / 2.0
        return abs(point[1]) <= half_w and abs(point[2]) <= half_h
    sd = surface.semidia or config.default_semidia
    return float(point[1] ** 2 + point[2] ** 2) <= sd * sd + config.aperture_tolerance


def plane_crossing(ray: Ray, config: TraceConfig) -> Optional[Tuple[float, Vector]]:
    """Forward crossing of the local x = 0 plane without any aperture test."""

    if abs(ray.direction[0]) < config.eps:
        return None
    t = -float(ray.position[0]) / float(ray.direction[0])
    if t <= config.eps:
        return None
    return t, ray.point_at(t)


def intersect_plane(ray: Ray, surface: Surface, ctx: TraceContext) -> Intersection:
    cfg = ctx.config
    normal = CANONICAL_NORMAL.copy()
    d_dot_n = float(np.dot(ray.direction, normal))
    if d_dot_n >= 0:
        ctx.warn(surface, f"Ray moving away from or parallel to plane surface (Ray·Normal = {d_dot_n:.6f})", "ray_anomaly")
        return Intersection(normal=normal)
    if abs(ray.direction[0]) < cfg.eps:
        ctx.warn(surface, f"Ray parallel to plane surface (direction.x = {ray.direction[0]})", "geometry")
        return Intersection(normal=normal)

    crossing = plane_crossing(ray, cfg)
    if crossing is None:
        return Intersection(normal=normal)
    t, hit = crossing
    if not plane_aperture_contains(hit, surface, cfg):
        ctx.warn(surface, f"Ray hit outside aperture bounds at ({hit[1]:.3f}, {hit[2]:.3f})", "aperture", "info")
        return Intersection(normal=normal)
    return Intersection(point=hit, normal=normal, distance=t, valid=True)


def intersect_sphere(ray: Ray, surface: Surface, ctx: TraceContext) -> Intersection:
    cfg = ctx.config
    radius = float(surface.radius or 0.0)
    if abs(radius) < cfg.eps:
        return intersect_plane(ray, surface, ctx)

    o = ray.position
    d = ray.direction
    a = float(np.dot(d, d))
    b = 2.0 * float(np.dot(o, d))
    c = float(np.dot(o, o)) - radius * radius
    disc = b * b - 4.0 * a * c
    if disc < 0:
        return MISS

    sq = np.sqrt(disc)
    t1 = (-b - sq) / (2.0 * a)
    t2 = (-b + sq) / (2.0 * a)

    if radius > 0:
        dist = float(np.linalg.norm(o))
        if dist < abs(radius):
            ctx.warn(surface, f"ANOMALY: Ray inside convex sphere (R={radius:.3f}, ray at distance {dist:.3f})")
            return MISS
        t = t1 if t1 > cfg.eps else (t2 if t2 > cfg.eps else -1.0)
    else:
        t = t2 if t2 > cfg.eps else (t1 if t1 > cfg.eps else -1.0)

    if t <= cfg.eps or t > cfg.max_distance:
        return MISS

    hit = ray.point_at(t)
    normal = hit / np.linalg.norm(hit)
    if radius < 0:
        normal = -normal
    if not within_aperture(hit, surface, cfg):
        return MISS
    return Intersection(point=hit, normal=normal, distance=float(t), valid=True)


def intersect_cylinder(ray: Ray, surface: Surface, ctx: TraceContext) -> Intersection:
    """Circle of radius |R| in local X-Y, axis along Z; width bounds Y and height bounds Z."""

    cfg = ctx.config
    signed = float(surface.radius or 0.0)
    r = abs(surface.radius or cfg.default_semidia)
    o = ray.position
    d = ray.direction

    if float(np.dot(d, CANONICAL_NORMAL)) >= 0:
        return MISS

    a = d[0] * d[0] + d[1] * d[1]
    b = 2.0 * (o[0] * d[0] + o[1] * d[1])
    c = o[0] * o[0] + o[1] * o[1] - r * r
    if abs(a) < cfg.eps:
        return MISS
    disc = b * b - 4.0 * a * c
    if disc < 0:
        return MISS

    sq = np.sqrt(disc)
    t = (-b - sq) / (2.0 * a) if signed > 0 else (-b + sq) / (2.0 * a)
    if t <= cfg.eps or t > cfg.max_distance:
        return MISS

    hit = ray.point_at(float(t))
    if not within_aperture(hit, surface, cfg):
        return MISS

    normal = np.array([hit[0], hit[1], 0.0])
    normal = normal / np.linalg.norm(normal)
    if signed < 0:
        normal = -normal
    if float(np.dot(normal, d)) > 0:
        normal = -normal
    return Intersection(point=hit, normal=normal, distance=float(t), valid=True)


INTERSECTORS: Dict[str, Callable[[Ray, Surface, TraceContext], Intersection]] = {
    "spherical": intersect_sphere,
    "aspherical": intersect_sphere,
    "planar": intersect_plane,
    "cylindrical": intersect_cylinder,
}


def intersect(ray: Ray, surface: Surface, ctx: TraceContext) -> Intersection:
    """Dispatch on shape; unknown shapes never intersect."""

    fn = INTERSECTORS.get(surface.shape)
    if fn is None:
        logger.debug("surface %s: no intersector for shape %r", surface.id, surface.shape)
        return MISS
    return fn(ray, surface, ctx)
