"""Glass catalog and refractive-index lookup.

Indices follow the three-term Sellmeier formula with the wavelength in micrometres:
``n^2 = 1 + sum(B_i l^2 / (l^2 - C_i))``.

Example:
    >>> from optics_core.materials import refractive_index
    >>> round(refractive_index("N-BK7", 587.6), 4)
    1.5168
"""

from __future__ import annotations

from dataclasses import dataclass
import difflib
from typing import TYPE_CHECKING, Callable, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

if TYPE_CHECKING:
    from optics_core.surfaces import Surface


@dataclass(frozen=True)
class Glass:
    name: str
    manufacturer: str
    nd: float
    vd: float
    b: Tuple[float, float, float]
    c: Tuple[float, float, float]

    def index(self, wavelength_nm: float) -> float:
        lam2 = (wavelength_nm / 1000.0) ** 2
        n2 = 1.0 + sum(bi * lam2 / (lam2 - ci) for bi, ci in zip(self.b, self.c))
        return float(np.sqrt(max(n2, 1.0)))


GLASS_CATALOG: Dict[str, Glass] = {
    g.name: g
    for g in (
        Glass("N-BK7", "SCHOTT", 1.5168, 64.17, (1.03961212, 0.231792344, 1.01046945), (0.00600069867, 0.0200179144, 103.560653)),
        Glass("N-F2", "SCHOTT", 1.62004, 36.37, (1.39757037, 0.159201403, 1.2686543), (0.00995906143, 0.0546931752, 119.248346)),
        Glass("N-SF5", "SCHOTT", 1.67271, 32.25, (1.52481889, 0.187085527, 1.42729015), (0.011254756, 0.0588995392, 129.141675)),
        Glass("N-SF11", "SCHOTT", 1.78472, 25.68, (1.73759695, 0.313747346, 1.89878101), (0.013188707, 0.0623068142, 155.23629)),
        Glass("F_SILICA", "GENERIC", 1.4585, 67.82, (0.6961663, 0.4079426, 0.8974794), (0.00467914826, 0.0135120631, 97.9340025)),
    )
}

MaterialSpec = Union[str, float, int]
IndexLookup = Callable[["Surface", float], Tuple[float, float]]


def suggest_materials(name: str, catalog: Mapping[str, Glass] = GLASS_CATALOG, n: int = 3) -> List[str]:
    return difflib.get_close_matches(name.upper(), list(catalog), n=n, cutoff=0.5)


def refractive_index(material: MaterialSpec, wavelength_nm: float = 587.6, catalog: Mapping[str, Glass] = GLASS_CATALOG) -> float:
    """Index for a numeric value, ``air``/``vacuum`` or a catalog glass name."""

    if isinstance(material, (int, float)):
        return float(material)
    key = str(material).strip()
    if key.lower() in ("air", "vacuum"):
        return 1.0
    glass = catalog.get(key.upper())
    if glass is not None:
        return glass.index(wavelength_nm)
    hints = suggest_materials(key, catalog)
    hint = f" Did you mean {', '.join(hints)}?" if hints else ""
    raise ValueError(f"{key} not found in glass catalog.{hint}")


def _side_index(value: Optional[float], material: Optional[str], wavelength_nm: float) -> float:
    if value is not None:
        return float(value)
    if material:
        return refractive_index(material, wavelength_nm)
    return 1.0


def surface_indices(surface: "Surface", wavelength_nm: float) -> Tuple[float, float]:
    """Default index lookup: literal n1/n2 first, then material names, then air."""

    return (
        _side_index(surface.n1, surface.n1_material, wavelength_nm),
        _side_index(surface.n2, surface.n2_material, wavelength_nm),
    )
