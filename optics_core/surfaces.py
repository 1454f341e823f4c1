"""Optical surface model and the surface geometry builder.

Each surface stores a local->world transform (``inverse_transform``) and its exact
matrix inverse (``forward_transform``, world->local). In the local frame the
canonical normal is (-1, 0, 0) and the origin sits at the centre of curvature,
``vertex - normal * radius``.

Assemblies are built in assembly-local coordinates first, then every member is
placed with one shared transform ``T(offset) @ R_dial @ R_align``.

Example:
    >>> import numpy as np
    >>> from optics_core.surfaces import create_surface
    >>> lens = create_surface("lens", {"shape": "spherical", "radius": 50.0}, position=[0.0, 0.0, 0.0])
    >>> lens.center_of_curvature.tolist()
    [50.0, 0.0, 0.0]
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from optics_core.linalg import (
    CANONICAL_NORMAL,
    Matrix,
    compose,
    get_translation,
    identity,
    invert,
    normal_from_angles,
    normalize,
    rotation_from_axis_angle,
    transform_point,
    transform_vector,
    translation,
    upright_rotation,
    vec3,
)

logger = logging.getLogger(__name__)

Vector = NDArray[np.float64]

SHAPES = ("spherical", "aspherical", "planar", "cylindrical")
MODES = ("refraction", "reflection", "partial", "absorption", "aperture", "diffuse", "inactive")

SHAPE_ALIASES = {"plano": "planar", "flat": "planar", "plane": "planar", "sphere": "spherical", "cylinder": "cylindrical"}
MODE_ALIASES = {
    "refract": "refraction",
    "reflect": "reflection",
    "mirror": "reflection",
    "stop": "aperture",
    "block": "absorption",
}
MODE_COLORS = {
    "reflection": "#C0C0C0",
    "refraction": "#87CEEB",
    "absorption": "#2F2F2F",
    "aperture": "#FFD700",
}
DEFAULT_COLOR = "#FFFFFF"
ALIGNED_TOLERANCE = 1e-3


def canonical_shape(shape: Optional[str]) -> str:
    s = str(shape or "spherical").lower()
    return SHAPE_ALIASES.get(s, s)


def canonical_mode(mode: Optional[str]) -> str:
    m = str(mode or "refraction").lower()
    return MODE_ALIASES.get(m, m)


@dataclass(frozen=True, eq=False)
class Surface:
    """A placed optical surface; optional fields default to ``None`` meaning "not set"."""

    id: str
    shape: str = "spherical"
    mode: str = "refraction"
    position: Vector = field(default_factory=lambda: np.zeros(3))
    normal: Vector = field(default_factory=lambda: CANONICAL_NORMAL.copy())
    inverse_transform: Matrix = field(default_factory=identity)
    forward_transform: Matrix = field(default_factory=identity)
    radius: Optional[float] = None
    semidia: Optional[float] = None
    height: Optional[float] = None
    width: Optional[float] = None
    n1: Optional[float] = None
    n2: Optional[float] = None
    n1_material: Optional[str] = None
    n2_material: Optional[str] = None
    transmission: Optional[float] = None
    sel: Optional[str] = None
    dial: Optional[float] = None
    conic: Optional[float] = None
    aspheric: Tuple[float, ...] = ()
    numerical_id: Optional[int] = None
    assembly_id: Optional[str] = None
    element_index: Optional[int] = None
    color: str = DEFAULT_COLOR
    opacity: float = 0.3

    @property
    def transform(self) -> Matrix:
        return self.inverse_transform

    @property
    def center_of_curvature(self) -> Vector:
        return get_translation(self.inverse_transform)

    @property
    def has_rectangular_aperture(self) -> bool:
        return self.width is not None and self.height is not None

    def to_local(self, point: Vector) -> Vector:
        return transform_point(self.forward_transform, point)

    def to_world(self, point: Vector) -> Vector:
        return transform_point(self.inverse_transform, point)

    def vector_to_local(self, v: Vector) -> Vector:
        return transform_vector(self.forward_transform, v)

    def vector_to_world(self, v: Vector) -> Vector:
        return transform_vector(self.inverse_transform, v)

    def with_numerical_id(self, numerical_id: int) -> "Surface":
        return replace(self, numerical_id=int(numerical_id))


def with_transform(surface: Surface, transform: Matrix) -> Surface:
    """Install a local->world transform and its exact inverse."""

    inv = np.asarray(transform, dtype=float)
    return replace(surface, inverse_transform=inv, forward_transform=invert(inv))


def normal_from_record(record: Mapping[str, Any]) -> Optional[Vector]:
    """Target normal from an explicit ``normal`` or ``angles`` entry, ``None`` if neither is usable."""

    raw = record.get("normal")
    if isinstance(raw, (list, tuple, np.ndarray)):
        try:
            return normalize(vec3(raw))
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed normal %r", raw)
    angles = record.get("angles")
    if isinstance(angles, (list, tuple, np.ndarray)) and len(angles) > 0:
        try:
            az, el = vec3(angles)[:2]
            return normal_from_angles(az, el)
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed angles %r", angles)
    return None


def orientation(normal: Vector, dial: Optional[float] = None) -> Matrix:
    """Rotation taking the canonical normal onto ``normal``, then rolling by ``dial`` degrees about it."""

    n = normalize(normal)
    rot = identity()
    if np.sum(np.abs(n - CANONICAL_NORMAL)) > ALIGNED_TOLERANCE:
        rot = upright_rotation(CANONICAL_NORMAL, n)
    if dial is not None:
        rot = rotation_from_axis_angle(n, np.deg2rad(float(dial))) @ rot
    return rot


def local_transform(vertex: Vector, normal: Vector, radius: Optional[float], dial: Optional[float] = None) -> Matrix:
    n = normalize(normal)
    return compose(orientation(n, dial), np.asarray(vertex, dtype=float) - n * float(radius or 0.0))


def _optional_float(record: Mapping[str, Any], key: str) -> Optional[float]:
    v = record.get(key)
    return None if v is None else float(v)


def _surface_fields(record: Mapping[str, Any]) -> Dict[str, Any]:
    mode = canonical_mode(record.get("mode"))
    transmission = _optional_float(record, "transmission")
    if transmission is not None:
        transmission = min(1.0, max(0.0, transmission))
    return {
        "shape": canonical_shape(record.get("shape")),
        "mode": mode,
        "radius": _optional_float(record, "radius"),
        "semidia": _optional_float(record, "semidia"),
        "height": _optional_float(record, "height"),
        "width": _optional_float(record, "width"),
        "n1": _optional_float(record, "n1"),
        "n2": _optional_float(record, "n2"),
        "n1_material": record.get("n1_material"),
        "n2_material": record.get("n2_material"),
        "transmission": transmission,
        "sel": record.get("sel"),
        "dial": _optional_float(record, "dial"),
        "conic": _optional_float(record, "conic"),
        "aspheric": tuple(float(a) for a in record.get("aspheric") or ()),
        "color": record.get("color") or MODE_COLORS.get(mode, DEFAULT_COLOR),
        "opacity": float(record.get("opacity", 0.3)),
    }


def create_surface(
    surface_id: str,
    record: Mapping[str, Any],
    position: Sequence[float] | Vector = (0.0, 0.0, 0.0),
    numerical_id: Optional[int] = None,
) -> Surface:
    """Build a placed surface from a declarative record at vertex ``position``."""

    fields = _surface_fields(record)
    vertex = vec3(position)
    normal = normal_from_record(record)
    if normal is None:
        normal = CANONICAL_NORMAL.copy()
    surface = Surface(id=str(surface_id), position=vertex, normal=normal, numerical_id=numerical_id, **fields)
    return with_transform(surface, local_transform(vertex, normal, fields["radius"], fields["dial"]))


def _member_keys(assembly: Mapping[str, Any]) -> List[str]:
    def order(key: str) -> Tuple[int, str]:
        digits = "".join(ch for ch in key if ch.isdigit())
        return (int(digits) if digits else 0, key)

    return sorted((k for k in assembly if k != "aid" and isinstance(assembly[k], Mapping)), key=order)


def build_local_assembly(
    assembly: Mapping[str, Any],
    assembly_id: Optional[str] = None,
    first_numerical_id: int = 0,
) -> List[Surface]:
    """Stage one: members in assembly-local coordinates, chained by ``relative`` offsets."""

    surfaces: List[Surface] = []
    cursor = np.zeros(3)
    for element_index, key in enumerate(_member_keys(assembly), start=1):
        record = assembly[key]
        rel = record.get("relative")
        if isinstance(rel, (list, tuple, np.ndarray)):
            cursor = cursor + vec3(rel)
        elif rel is not None:
            cursor = cursor + np.array([float(rel), 0.0, 0.0])

        surface = create_surface(
            key if assembly_id is None else f"{assembly_id}.{key}",
            record,
            position=cursor,
            numerical_id=first_numerical_id + len(surfaces),
        )
        surfaces.append(replace(surface, assembly_id=assembly_id, element_index=element_index))
    return surfaces


def assembly_transform(offset: Vector, normal: Optional[Vector] = None, dial: Optional[float] = None) -> Tuple[Matrix, Matrix]:
    """Return ``(placement, rotation)`` for an assembly: ``T(offset) @ R_dial @ R_align``."""

    target = CANONICAL_NORMAL.copy() if normal is None else normalize(normal)
    rot = orientation(target, dial)
    return translation(offset) @ rot, rot


def place_assembly(
    local_surfaces: Iterable[Surface],
    offset: Sequence[float] | Vector = (0.0, 0.0, 0.0),
    normal: Optional[Vector] = None,
    dial: Optional[float] = None,
) -> List[Surface]:
    """Stage two: apply one shared placement to every member's position, normal and transform."""

    placement, rot = assembly_transform(vec3(offset), normal, dial)
    placed: List[Surface] = []
    for s in local_surfaces:
        moved = replace(
            s,
            position=transform_point(placement, s.position),
            normal=normalize(transform_vector(rot, s.normal)),
        )
        placed.append(with_transform(moved, placement @ s.inverse_transform))
    return placed


def create_assembly_surfaces(
    assembly: Mapping[str, Any],
    offset: Sequence[float] | Vector = (0.0, 0.0, 0.0),
    normal: Optional[Vector] = None,
    assembly_id: Optional[str] = None,
    dial: Optional[float] = None,
    first_numerical_id: int = 0,
) -> List[Surface]:
    if assembly_id is None and assembly.get("aid") is not None:
        assembly_id = str(assembly["aid"])
    local = build_local_assembly(assembly, assembly_id, first_numerical_id)
    return place_assembly(local, offset, normal, dial)


def number_surfaces(surfaces: Iterable[Surface], start: int = 0) -> List[Surface]:
    """Assign sequential numerical ids in sequence order."""

    return [s.with_numerical_id(start + i) for i, s in enumerate(surfaces)]
