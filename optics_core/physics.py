"""Surface interaction physics in the surface-local frame.

``apply_surface_physics`` turns an accepted local hit into zero, one or two
outgoing local rays according to the surface mode. Total internal reflection is
ordinary physics and falls back to reflection without a warning.

Diffuse scattering aims at the next surface in sequence: the cone is derived
from that surface's aperture, its distance and its tilt relative to the line of
sight, and holds ``diffuse_sigma_count`` standard deviations. The constants are
tunable heuristics on ``TraceConfig``, not physical laws.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from optics_core.diagnostics import TraceConfig, TraceContext
from optics_core.intersect import Intersection
from optics_core.linalg import normalize
from optics_core.rays import Ray, reflect, refract
from optics_core.surfaces import Surface

logger = logging.getLogger(__name__)

Vector = NDArray[np.float64]

DEFAULT_TRANSMISSION = 0.5


@dataclass(frozen=True)
class SurfaceInteraction:
    """Outgoing local rays; ``blocked`` means neither continues."""

    transmitted: Optional[Ray] = None
    reflected: Optional[Ray] = None
    blocked: bool = False
    transmission: Optional[float] = None

    @property
    def splits(self) -> bool:
        return self.transmitted is not None and self.reflected is not None


BLOCKED = SurfaceInteraction(blocked=True)


def resolve_indices(ray: Ray, surface: Surface, ctx: TraceContext) -> Tuple[float, float]:
    try:
        return ctx.index_lookup(surface, ray.wavelength)
    except ValueError as exc:
        n1 = surface.n1 if surface.n1 is not None else 1.0
        n2 = surface.n2 if surface.n2 is not None else 1.0
        ctx.warn(surface, f"Material lookup failed: {exc} Using n1={n1}, n2={n2}", "physics")
        return n1, n2


def refracted_ray(ray: Ray, hit: Intersection, surface: Surface, ctx: TraceContext) -> Ray:
    n1, n2 = resolve_indices(ray, surface, ctx)
    direction, tir = refract(ray.direction, hit.normal, n1, n2)
    if tir:
        logger.debug("surface %s: total internal reflection (n1=%.4f, n2=%.4f)", surface.id, n1, n2)
    return ray.moved_to(hit.point, direction)


def reflected_ray(ray: Ray, hit: Intersection) -> Ray:
    return ray.moved_to(hit.point, reflect(ray.direction, hit.normal))


def scatter_spread(
    distance: float,
    alignment: float,
    next_surface: Surface,
    config: TraceConfig,
) -> float:
    """Per-sigma angular spread toward ``next_surface`` seen at ``distance``."""

    dims = [
        next_surface.semidia,
        None if next_surface.height is None else next_surface.height / 2.0,
        None if next_surface.width is None else next_surface.width / 2.0,
    ]
    known = [d for d in dims if d]
    if not known:
        return config.diffuse_default_spread
    min_aperture = min(known)
    if min_aperture <= 0 or distance <= 0:
        return config.diffuse_default_spread
    return float(np.arctan(min_aperture / distance)) * abs(alignment) / config.diffuse_sigma_count


def gaussian_direction(center: Vector, spread: float, rng: np.random.Generator, config: TraceConfig) -> Vector:
    """Direction deflected from ``center`` by two clamped Gaussian angles."""

    z0, z1 = rng.standard_normal(2)
    lim = config.diffuse_max_angle
    theta = float(np.clip(z0 * spread, -lim, lim))
    phi = float(np.clip(z1 * spread, -lim, lim))
    std = normalize(np.array([np.cos(theta) * np.cos(phi), np.sin(theta), np.sin(phi)]))

    c = normalize(center)
    if abs(c[0]) > 0.999:
        return std if c[0] > 0 else np.array([-std[0], std[1], std[2]])
    temp = np.array([1.0, 0.0, 0.0])
    if abs(float(np.dot(c, temp))) > 0.9:
        temp = np.array([0.0, 1.0, 0.0])
    u = normalize(np.cross(c, temp))
    v = normalize(np.cross(c, u))
    return normalize(c * std[0] + u * std[1] + v * std[2])


def diffuse_ray(
    ray: Ray,
    hit: Intersection,
    surface: Surface,
    next_surface: Optional[Surface],
    ctx: TraceContext,
) -> Optional[Ray]:
    cfg = ctx.config
    if next_surface is None:
        ctx.warn(surface, f"No next surface found for diffuse surface {surface.id}; ray absorbed", "physics", "error")
        return None

    target = surface.to_local(next_surface.position)
    n2 = surface.vector_to_local(next_surface.normal)
    v = target - hit.point
    distance = float(np.linalg.norm(v))
    if distance < cfg.eps:
        ctx.warn(surface, f"Next surface {next_surface.id} sits on the diffuse hit point; ray absorbed", "physics")
        return None
    center = v / distance
    spread = scatter_spread(distance, float(np.dot(center, normalize(n2))), next_surface, cfg)

    direction = gaussian_direction(center, spread, ctx.rng, cfg)
    alignment = float(np.dot(direction, center))
    if alignment <= cfg.diffuse_min_alignment:
        logger.debug("surface %s: diffuse ray misaligned (%.3f), discarded", surface.id, alignment)
        return None
    return ray.moved_to(hit.point, direction)


def apply_surface_physics(
    ray: Ray,
    hit: Intersection,
    surface: Surface,
    ctx: TraceContext,
    next_surface: Optional[Surface] = None,
) -> SurfaceInteraction:
    """Dispatch on ``surface.mode``; ``ray`` and ``hit`` are local, and so are the outputs."""

    mode = surface.mode
    if mode == "refraction":
        return SurfaceInteraction(transmitted=refracted_ray(ray, hit, surface, ctx))
    if mode == "reflection":
        return SurfaceInteraction(reflected=reflected_ray(ray, hit))
    if mode == "partial":
        t = surface.transmission if surface.transmission is not None else DEFAULT_TRANSMISSION
        return SurfaceInteraction(
            transmitted=refracted_ray(ray, hit, surface, ctx),
            reflected=reflected_ray(ray, hit),
            transmission=t,
        )
    if mode == "absorption":
        return BLOCKED
    if mode == "aperture":
        return SurfaceInteraction(transmitted=ray.moved_to(hit.point))
    if mode == "diffuse":
        scattered = diffuse_ray(ray, hit, surface, next_surface, ctx)
        return BLOCKED if scattered is None else SurfaceInteraction(transmitted=scattered)
    return BLOCKED
