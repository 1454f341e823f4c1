"""Ray value objects, cascaded light ids and interaction direction helpers.

Example:
    >>> import numpy as np
    >>> from optics_core.rays import reflect
    >>> d = np.array([1.0, -1.0, 0.0]) / np.sqrt(2)
    >>> n = np.array([0.0, 1.0, 0.0])
    >>> np.allclose(reflect(d, n), np.array([1.0, 1.0, 0.0]) / np.sqrt(2))
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from optics_core.linalg import normalize

Vector = NDArray[np.float64]

DEFAULT_WAVELENGTH_NM = 587.6
UNTERMINATED = -1


@dataclass(frozen=True)
class LightId:
    """Light lineage: emitting source plus one component per non-dominant split.

    ``LightId(1)`` renders as ``"1"``; splitting it at surface 3 gives ``"1.3"``,
    then at surface 5 ``"1.3.5"``.
    """

    source: int
    branches: Tuple[int, ...] = ()

    def branch(self, at: int) -> "LightId":
        return LightId(self.source, self.branches + (int(at),))

    def is_ancestor_of(self, other: "LightId") -> bool:
        return self.source == other.source and other.branches[: len(self.branches)] == self.branches

    @property
    def depth(self) -> int:
        return len(self.branches)

    @classmethod
    def parse(cls, text: str) -> "LightId":
        head, *rest = str(text).split(".")
        return cls(int(head), tuple(int(p) for p in rest))

    def __str__(self) -> str:
        return ".".join([str(self.source), *(str(b) for b in self.branches)])


@dataclass(frozen=True, eq=False)
class Ray:
    position: Vector
    direction: Vector
    wavelength: float = DEFAULT_WAVELENGTH_NM
    intensity: float = 1.0
    light_id: LightId = LightId(-1)
    path_length: float = 0.0
    starts_at: int = 0
    stops_at: int = UNTERMINATED

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", np.asarray(self.position, dtype=float))
        object.__setattr__(self, "direction", normalize(np.asarray(self.direction, dtype=float)))

    def point_at(self, distance: float) -> Vector:
        return self.position + distance * self.direction

    def moved_to(self, point: Vector, direction: Optional[Vector] = None) -> "Ray":
        """New ray at ``point``, accumulating the straight-line distance travelled."""

        p = np.asarray(point, dtype=float)
        step = float(np.linalg.norm(p - self.position))
        return replace(
            self,
            position=p,
            direction=self.direction if direction is None else direction,
            path_length=self.path_length + step,
        )

    def with_direction(self, direction: Vector) -> "Ray":
        return replace(self, direction=direction)

    def with_light_id(self, light_id: LightId) -> "Ray":
        return replace(self, light_id=light_id)

    def stopped_at(self, surface_index: int) -> "Ray":
        return replace(self, stops_at=int(surface_index))

    @property
    def terminated(self) -> bool:
        return self.stops_at >= 0


@dataclass
class RayPath:
    """One continuous polyline of waypoints belonging to a single light id."""

    light_id: LightId
    rays: List[Ray] = field(default_factory=list)

    @property
    def points(self) -> NDArray[np.float64]:
        return np.array([r.position for r in self.rays], dtype=float).reshape(-1, 3)

    @property
    def wavelength(self) -> float:
        return self.rays[0].wavelength if self.rays else DEFAULT_WAVELENGTH_NM

    @property
    def stops_at(self) -> int:
        return self.rays[-1].stops_at if self.rays else UNTERMINATED

    def length(self) -> float:
        pts = self.points
        if len(pts) < 2:
            return 0.0
        return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))

    def __len__(self) -> int:
        return len(self.rays)


def reflect(direction: Vector, normal: Vector) -> Vector:
    """Specular reflection direction with unit normal."""

    d = normalize(direction)
    n = normalize(normal)
    r = d - 2.0 * np.dot(d, n) * n
    return r / np.linalg.norm(r)


def refract(direction: Vector, normal: Vector, n1: float, n2: float) -> Tuple[Vector, bool]:
    """Vector Snell refraction; returns ``(direction, total_internal_reflection)``.

    The normal is flipped when it points along the incident direction. On total
    internal reflection the reflected direction is returned instead.
    """

    i = normalize(direction)
    n = normalize(normal)
    eta = n1 / n2
    cos_i = -float(np.dot(n, i))
    if cos_i < 0.0:
        n = -n
        cos_i = -cos_i
    k = 1.0 - eta * eta * (1.0 - cos_i * cos_i)
    if k < 0.0:
        return reflect(i, n), True
    t = eta * i + (eta * cos_i - np.sqrt(k)) * n
    return t / np.linalg.norm(t), False
