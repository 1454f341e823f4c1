"""Light sources and deterministic ray-bundle patterns.

Rays are laid out in the source-local frame (+X forward, Y-Z is the emitting
plane) and moved to world space with one shared transform
``T(position) @ R(+X -> direction)``.

Randomised patterns draw from ``numpy.random.default_rng(seed)`` recreated on
every generation, so a source regenerated during iterative design always
reproduces the same bundle.

Example:
    >>> from optics_core.sources import LightSource
    >>> src = LightSource(lid=1, kind="linear", param=(10.0,), number=3)
    >>> [round(float(r.position[2]), 6) for r in src.generate_rays()]
    [-5.0, 0.0, 5.0]
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from optics_core.linalg import (
    Matrix,
    direction_from_angles,
    normalize,
    rotation_between,
    transform_point,
    transform_vector,
    translation,
    vec3,
)
from optics_core.rays import DEFAULT_WAVELENGTH_NM, LightId, Ray

logger = logging.getLogger(__name__)

Vector = NDArray[np.float64]

DEFAULT_SEED = 12345
DEFAULT_RAY_COUNT = 8
LOCAL_FORWARD = np.array([1.0, 0.0, 0.0])

PATTERN_DEFAULTS: Dict[str, Tuple[float, ...]] = {
    "linear": (20.0, 0.0),
    "ring": (20.0, 1.0, 0.0),
    "uniform": (20.0,),
    "gaussian": (20.0,),
    "point": (0.0,),
}

LocalRays = Tuple[NDArray[np.float64], NDArray[np.float64]]


def _linear(n: int, width: float, dial: float, rng: np.random.Generator) -> LocalRays:
    # dial 0 points the line at +Z
    dial_rad = np.deg2rad(dial + 90.0)
    t = np.linspace(-1.0, 1.0, n) if n > 1 else np.zeros(1)
    offset = t * width / 2.0
    pos = np.column_stack([np.zeros(n), offset * np.cos(dial_rad), offset * np.sin(dial_rad)])
    return pos, np.tile(LOCAL_FORWARD, (n, 1))


def _ring(n: int, radius: float, aspect: float, dial: float, rng: np.random.Generator) -> LocalRays:
    w, h = 1.0, 1.0
    if aspect > 1:
        h /= aspect
    elif aspect < 1:
        w *= aspect
    theta = np.arange(n) / n * 2.0 * np.pi
    y = np.cos(theta) * radius * w
    z = np.sin(theta) * radius * h
    c, s = np.cos(np.deg2rad(dial)), np.sin(np.deg2rad(dial))
    pos = np.column_stack([np.zeros(n), y * c - z * s, y * s + z * c])
    return pos, np.tile(LOCAL_FORWARD, (n, 1))


def _uniform(n: int, radius: float, rng: np.random.Generator) -> LocalRays:
    """Centre ray plus concentric rings of 6, 12, 18, ... rays."""

    points: List[Tuple[float, float]] = [(0.0, 0.0)]
    scale = max(1, int(np.ceil(np.sqrt(n / 3.14))))
    layer = 1
    while len(points) < n:
        layer_radius = layer * radius / scale
        count = min(6 * layer, n - len(points))
        for i in range(count):
            angle = i / count * 2.0 * np.pi
            points.append((layer_radius * np.cos(angle), layer_radius * np.sin(angle)))
        layer += 1
    yz = np.array(points[:n], dtype=float)
    pos = np.column_stack([np.zeros(n), yz[:, 0], yz[:, 1]])
    return pos, np.tile(LOCAL_FORWARD, (n, 1))


def _gaussian(n: int, half_e2: float, rng: np.random.Generator) -> LocalRays:
    sigma = half_e2 / (2.0 * np.sqrt(2.0))
    y = np.empty(n)
    z = np.empty(n)
    for i in range(n):
        # Box-Muller; u1 in (0, 1] keeps the log finite
        u1 = 1.0 - rng.random()
        u2 = rng.random()
        r = np.sqrt(-2.0 * np.log(u1))
        y[i] = r * np.cos(2.0 * np.pi * u2) * sigma
        z[i] = r * np.sin(2.0 * np.pi * u2) * sigma
    pos = np.column_stack([np.zeros(n), y, z])
    return pos, np.tile(LOCAL_FORWARD, (n, 1))


def _point(n: int, divergence: float, rng: np.random.Generator) -> LocalRays:
    """Common origin; directions uniform in solid angle over a cone of half-angle ``divergence`` (rad)."""

    pos = np.zeros((n, 3))
    if divergence <= 0:
        return pos, np.tile(LOCAL_FORWARD, (n, 1))
    dirs = np.empty((n, 3))
    for i in range(n):
        theta = rng.random() * 2.0 * np.pi
        phi = np.arccos(1.0 - rng.random() * (1.0 - np.cos(divergence)))
        dirs[i] = (np.cos(phi), np.sin(phi) * np.cos(theta), np.sin(phi) * np.sin(theta))
    return pos, dirs


PATTERNS: Dict[str, Callable[..., LocalRays]] = {
    "linear": _linear,
    "ring": _ring,
    "uniform": _uniform,
    "gaussian": _gaussian,
    "point": _point,
}


@dataclass
class LightSource:
    lid: int = 0
    position: Vector = field(default_factory=lambda: np.zeros(3))
    direction: Vector = field(default_factory=lambda: LOCAL_FORWARD.copy())
    wavelength: float = DEFAULT_WAVELENGTH_NM
    number: int = DEFAULT_RAY_COUNT
    kind: str = "linear"
    param: Tuple[float, ...] = ()
    seed: int = DEFAULT_SEED
    intensity: float = 1.0

    def __post_init__(self) -> None:
        if self.kind not in PATTERNS:
            raise ValueError(f"Unknown light source pattern: {self.kind}")
        if int(self.number) <= 0:
            raise ValueError(f"Ray count must be positive, got {self.number}")
        self.number = int(self.number)
        self.position = vec3(self.position)
        self.direction = normalize(vec3(self.direction, default=(1.0, 0.0, 0.0)))
        self.param = tuple(float(p) for p in self.param)

    @property
    def transform(self) -> Matrix:
        """Source-local to world transform."""
        return translation(self.position) @ rotation_between(LOCAL_FORWARD, self.direction)

    @property
    def parameters(self) -> Tuple[float, ...]:
        defaults = PATTERN_DEFAULTS[self.kind]
        given = self.param[: len(defaults)]
        return given + defaults[len(given):]

    def reset_seed(self, seed: int = DEFAULT_SEED) -> None:
        self.seed = int(seed)

    def local_rays(self) -> LocalRays:
        rng = np.random.default_rng(self.seed)
        return PATTERNS[self.kind](self.number, *self.parameters, rng=rng)

    def generate_rays(self, max_rays: Optional[int] = None) -> List[Ray]:
        positions, directions = self.local_rays()
        m = self.transform
        light_id = LightId(int(self.lid))
        rays = [
            Ray(
                position=transform_point(m, p),
                direction=transform_vector(m, d),
                wavelength=float(self.wavelength),
                intensity=float(self.intensity),
                light_id=light_id,
            )
            for p, d in zip(positions, directions)
        ]
        logger.debug("light %s: %d %s rays at %.1f nm", self.lid, len(rays), self.kind, self.wavelength)
        if max_rays is not None and max_rays < len(rays):
            return rays[:max_rays]
        return rays


def _param_tuple(raw: Any) -> Tuple[float, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple, np.ndarray)):
        return tuple(float(v) for v in raw)
    return (float(raw),)


def create_light_source(record: Mapping[str, Any]) -> LightSource:
    """Build a source from a record with ``lid``, ``position``, ``vector`` or ``angles``, ``type``, ``param``."""

    angles = record.get("angles")
    if isinstance(angles, Sequence) and not isinstance(angles, str) and len(angles) > 0:
        az, el = vec3(angles)[:2]
        direction = direction_from_angles(az, el)
    else:
        direction = vec3(record.get("vector"), default=(1.0, 0.0, 0.0))
    return LightSource(
        lid=int(record.get("lid") or 0),
        position=vec3(record.get("position")),
        direction=direction,
        wavelength=float(record.get("wavelength") or DEFAULT_WAVELENGTH_NM),
        number=int(record.get("number") or DEFAULT_RAY_COUNT),
        kind=str(record.get("type") or "linear").lower(),
        param=_param_tuple(record.get("param")),
        seed=int(record.get("seed", DEFAULT_SEED)),
        intensity=float(record.get("intensity", 1.0)),
    )
