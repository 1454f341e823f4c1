"""Sequential ray tracer with branching at partial surfaces.

Per surface: wavelength gate -> world-to-local -> shape intersection ->
acceptance (valid, front-side, inside aperture) -> mode physics -> local-to-world.

A ray that reaches a ``partial`` surface splits; both children are traced on
independently from the next surface and the result is a tree
(``Leaf`` / ``Branch``) flattened into ``RayPath``s by a post-order walk. The
dominant child keeps the parent light id, the other appends the splitting
surface's numerical id (``1`` -> ``1.3``).

Waypoints: the first ray of a path is the emitted (or branch-start) ray, each
accepted intersection adds a waypoint at the world hit point carrying the
incoming direction, and open paths are finished by ``complete_ray_path``.

Example:
    >>> from optics_core.rays import LightId, Ray
    >>> from optics_core.surfaces import create_surface
    >>> from optics_core.tracer import trace_ray_sequential
    >>> lens = create_surface("lens", {"radius": 50.0, "semidia": 20.0, "n1": 1.0, "n2": 1.5}, [0, 0, 0], 0)
    >>> det = create_surface("det", {"shape": "planar", "mode": "absorption", "width": 50, "height": 50}, [60, 0, 0], 1)
    >>> path = trace_ray_sequential(Ray([-10.0, 0, 0], [1.0, 0, 0], 532.0, light_id=LightId(1)), [lens, det])
    >>> len(path), round(float(path[-1].position[0]), 6), path[-1].stops_at
    (3, 60.0, 1)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from optics_core.diagnostics import TraceContext
from optics_core.intersect import intersect, plane_crossing, within_aperture
from optics_core.physics import apply_surface_physics
from optics_core.rays import UNTERMINATED, Ray, RayPath
from optics_core.surfaces import Surface
from optics_core.wavelength import wavelength_interacts

if TYPE_CHECKING:
    from optics_core.system import OpticalSystem

logger = logging.getLogger(__name__)

Vector = NDArray[np.float64]

SPLIT_THRESHOLD = 0.5


@dataclass(frozen=True, eq=False)
class TraceResult:
    """Outcome of one surface encounter, in world coordinates."""

    ray: Ray
    point: Optional[Vector] = None
    normal: Optional[Vector] = None
    distance: float = 0.0
    valid: bool = False
    transmitted: Optional[Ray] = None
    reflected: Optional[Ray] = None
    blocked: bool = False
    transmission: Optional[float] = None

    @property
    def splits(self) -> bool:
        return self.transmitted is not None and self.reflected is not None


@dataclass
class Leaf:
    rays: List[Ray]


@dataclass
class Branch:
    prefix: List[Ray]
    transmitted: "TraceTree"
    reflected: "TraceTree"


TraceTree = Union[Leaf, Branch]


def ray_to_local(ray: Ray, surface: Surface) -> Ray:
    return replace(ray, position=surface.to_local(ray.position), direction=surface.vector_to_local(ray.direction))


def ray_to_world(ray: Ray, surface: Surface) -> Ray:
    return replace(ray, position=surface.to_world(ray.position), direction=surface.vector_to_world(ray.direction))


def surface_stop_id(surface: Surface, index: int) -> int:
    return surface.numerical_id if surface.numerical_id is not None else index


def _aperture_miss(ray: Ray, local: Ray, surface: Surface, ctx: TraceContext) -> TraceResult:
    """Aperture-mode surface whose 3-D test failed: decide pass-through or block on its own plane."""

    crossing = plane_crossing(local, ctx.config)
    if crossing is None or within_aperture(crossing[1], surface, ctx.config):
        return TraceResult(ray=ray, transmitted=ray)
    hit_world = surface.to_world(crossing[1])
    stop = surface.numerical_id if surface.numerical_id is not None else UNTERMINATED
    return TraceResult(
        ray=ray.stopped_at(stop),
        point=hit_world,
        normal=surface.normal.copy(),
        distance=float(np.linalg.norm(hit_world - ray.position)),
        valid=True,
        blocked=True,
    )


def trace_through_surface(
    ray: Ray,
    surface: Surface,
    context: Optional[TraceContext] = None,
    next_surface: Optional[Surface] = None,
) -> TraceResult:
    ctx = context if context is not None else TraceContext()
    if not wavelength_interacts(ray.wavelength, surface.sel):
        logger.debug("surface %s: %.1f nm excluded by sel=%r", surface.id, ray.wavelength, surface.sel)
        return TraceResult(ray=ray, transmitted=ray)

    local = ray_to_local(ray, surface)
    hit = intersect(local, surface, ctx)
    accepted = (
        hit.valid
        and float(np.dot(local.direction, hit.normal)) < 0
        and within_aperture(hit.point, surface, ctx.config)
    )
    if not accepted:
        if surface.mode == "aperture":
            return _aperture_miss(ray, local, surface, ctx)
        return TraceResult(ray=ray, transmitted=ray)

    interaction = apply_surface_physics(local, hit, surface, ctx, next_surface)
    transmitted = None if interaction.transmitted is None else ray_to_world(interaction.transmitted, surface)
    reflected = None if interaction.reflected is None else ray_to_world(interaction.reflected, surface)
    point = surface.to_world(hit.point)
    normal = surface.vector_to_world(hit.normal)
    outgoing = transmitted if transmitted is not None else reflected
    ctx.record_hit(
        ray,
        surface,
        point,
        normal,
        hit.point,
        hit.distance,
        interaction.blocked,
        None if outgoing is None else outgoing.direction,
    )
    logger.debug(
        "surface %s (%s): hit at %s, blocked=%s, split=%s",
        surface.id, surface.mode, np.round(point, 6), interaction.blocked, interaction.splits,
    )
    return TraceResult(
        ray=ray,
        point=point,
        normal=normal,
        distance=hit.distance,
        valid=True,
        transmitted=transmitted,
        reflected=reflected,
        blocked=interaction.blocked,
        transmission=interaction.transmission,
    )


def _accumulated_length(rays: Sequence[Ray]) -> float:
    if len(rays) < 2:
        return 0.0
    pts = np.array([r.position for r in rays])
    return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))


def complete_ray_path(
    path: List[Ray],
    blocked: bool,
    surfaces: Sequence[Surface],
    last_direction: Vector,
    last_hit_index: int,
    context: TraceContext,
) -> None:
    """Finish an unblocked path in place: stop on a detector, land on a final aperture, or extend."""

    if blocked or not path:
        return
    cfg = context.config
    last = path[-1]
    length = _accumulated_length(path)
    extension = length * cfg.extension_fraction if length > 1e-6 else cfg.fallback_extension
    extended = last.moved_to(last.position + last_direction * extension, last_direction)

    if not surfaces:
        path.append(extended)
        return

    final_index = len(surfaces) - 1
    final = surfaces[final_index]
    reached_final = last_hit_index == final_index

    if reached_final and final.mode == "absorption":
        return

    if not reached_final and final.mode == "aperture":
        probe = last.with_direction(last_direction)
        crossing = plane_crossing(ray_to_local(probe, final), cfg)
        if crossing is not None:
            t, local_point = crossing
            world_point = final.to_world(local_point)
            context.record_hit(probe, final, world_point, final.normal, local_point, t, False, last_direction)
            path.append(last.moved_to(world_point, last_direction))
        else:
            path.append(extended)
        return

    path.append(extended)
    if not reached_final:
        missed = final_index - last_hit_index
        context.warn(final, f"Ray terminated early, missed {missed} surface(s) including final surface", "ray_anomaly")


def trace_ray_with_branching(
    ray: Ray,
    surfaces: Sequence[Surface],
    context: TraceContext,
    start: int = 0,
) -> TraceTree:
    path: List[Ray] = [ray]
    current = ray
    blocked = False
    last_direction = ray.direction
    last_hit_index = start - 1

    for i in range(start, len(surfaces)):
        surface = surfaces[i]
        stop_id = surface_stop_id(surface, i)
        if current.stops_at >= 0 and stop_id >= current.stops_at:
            break

        next_surface = surfaces[i + 1] if i + 1 < len(surfaces) else None
        result = trace_through_surface(current, surface, context, next_surface)

        if result.blocked:
            blocked = True
            if result.valid:
                path.append(current.moved_to(result.point).stopped_at(stop_id))
                last_hit_index = i
            break

        if result.valid:
            path.append(current.moved_to(result.point))
            last_hit_index = i

        if result.splits:
            transmission = result.transmission if result.transmission is not None else SPLIT_THRESHOLD
            parent = current.light_id
            if transmission > SPLIT_THRESHOLD:
                t_id, r_id = parent, parent.branch(stop_id)
            else:
                t_id, r_id = parent.branch(stop_id), parent
            logger.debug("surface %s: split light %s -> T=%s R=%s", surface.id, parent, t_id, r_id)
            return Branch(
                prefix=path,
                transmitted=trace_ray_with_branching(result.transmitted.with_light_id(t_id), surfaces, context, i + 1),
                reflected=trace_ray_with_branching(result.reflected.with_light_id(r_id), surfaces, context, i + 1),
            )

        if result.transmitted is not None:
            current = result.transmitted
        elif result.reflected is not None:
            current = result.reflected
        else:
            break
        last_direction = current.direction

    complete_ray_path(path, blocked, surfaces, last_direction, last_hit_index, context)
    return Leaf(path)


def flatten_paths(tree: TraceTree) -> List[RayPath]:
    """Post-order walk: transmitted paths carry the prefix, reflected paths start at the split point."""

    if isinstance(tree, Leaf):
        light_id = tree.rays[0].light_id
        return [RayPath(light_id, [r.with_light_id(light_id) for r in tree.rays])]
    out: List[RayPath] = []
    for sub in flatten_paths(tree.transmitted):
        prefix = [r.with_light_id(sub.light_id) for r in tree.prefix]
        out.append(RayPath(sub.light_id, prefix + sub.rays[1:]))
    out.extend(flatten_paths(tree.reflected))
    return out


def trace_ray_paths(ray: Ray, surfaces: Sequence[Surface], context: Optional[TraceContext] = None) -> List[RayPath]:
    ctx = context if context is not None else TraceContext()
    return flatten_paths(trace_ray_with_branching(ray, surfaces, ctx))


def trace_ray_sequential(ray: Ray, surfaces: Sequence[Surface], context: Optional[TraceContext] = None) -> List[Ray]:
    """All waypoints of all branches, flattened in path order."""

    return [r for p in trace_ray_paths(ray, surfaces, context) for r in p.rays]


def _ray_seeds(seed: Optional[int], n: int) -> List[int]:
    return [int(s.generate_state(1)[0]) for s in np.random.SeedSequence(seed).spawn(n)]


def trace_bundle(
    rays: Sequence[Ray],
    surfaces: Sequence[Surface],
    context: Optional[TraceContext] = None,
    max_workers: Optional[int] = None,
) -> List[RayPath]:
    """Trace many rays; results keep input order and do not depend on ``max_workers``.

    Every ray gets a private context seeded from ``context.seed``; warnings and
    hits are merged back into ``context`` in input order.
    """

    ctx = context if context is not None else TraceContext()
    rays = list(rays)
    workers = [ctx.spawn(seed) for seed in _ray_seeds(ctx.seed, len(rays))]
    results: Dict[int, List[RayPath]] = {}

    if max_workers is None or max_workers <= 1:
        for i, r in enumerate(rays):
            results[i] = trace_ray_paths(r, surfaces, workers[i])
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futs = {ex.submit(trace_ray_paths, r, surfaces, workers[i]): i for i, r in enumerate(rays)}
            for f in as_completed(futs):
                results[futs[f]] = f.result()

    paths: List[RayPath] = []
    for i in range(len(rays)):
        ctx.merge(workers[i])
        paths.extend(results[i])
    return paths


def trace_system(
    system: "OpticalSystem",
    context: Optional[TraceContext] = None,
    max_workers: Optional[int] = None,
) -> List[RayPath]:
    """Trace every light source of ``system`` through its surface sequence."""

    ctx = context if context is not None else TraceContext()
    rays = [r for light in system.lights for r in light.generate_rays()]
    logger.info("tracing %d rays from %d sources through %d surfaces", len(rays), len(system.lights), len(system.surfaces))
    return trace_bundle(rays, system.surfaces, ctx, max_workers)
