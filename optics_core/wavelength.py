"""Wavelength selection predicate and visible-spectrum colours.

A surface ``sel`` string is a ``-``-joined list of tokens ``o<nm>`` (only these
wavelengths interact) and ``x<nm>`` (these wavelengths pass through).

Example:
    >>> from optics_core.wavelength import wavelength_interacts
    >>> wavelength_interacts(532.0, "o532"), wavelength_interacts(633.0, "o532")
    (True, False)
    >>> wavelength_interacts(633.0, "x633")
    False
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import logging
import re
from typing import FrozenSet, Optional, Tuple

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"^([ox])(\d+)$")


@dataclass(frozen=True)
class WavelengthSelection:
    only: FrozenSet[int] = frozenset()
    exclude: FrozenSet[int] = frozenset()
    invalid: Tuple[str, ...] = ()

    def interacts(self, wavelength: float) -> bool:
        if self.only and not any(wavelength == w for w in self.only):
            return False
        return not any(wavelength == w for w in self.exclude)


@lru_cache(maxsize=256)
def parse_selection(sel: str) -> WavelengthSelection:
    only = set()
    exclude = set()
    invalid = []
    for token in sel.split("-"):
        m = _TOKEN.match(token.strip())
        if not m:
            logger.warning("Invalid wavelength selection token %r in %r, expected o532 or x633", token, sel)
            invalid.append(token)
            continue
        (only if m.group(1) == "o" else exclude).add(int(m.group(2)))
    return WavelengthSelection(frozenset(only), frozenset(exclude), tuple(invalid))


def wavelength_interacts(wavelength: float, sel: Optional[str]) -> bool:
    if not sel:
        return True
    return parse_selection(sel).interacts(wavelength)


def wavelength_to_rgb(wavelength: float, gamma: float = 0.8) -> Tuple[float, float, float]:
    """Approximate visible colour in [0, 1]; white outside 380-750 nm."""

    wl = float(wavelength)
    if 380 <= wl <= 440:
        att = 0.3 + 0.7 * (wl - 380) / (440 - 380)
        return ((-(wl - 440) / (440 - 380) * att) ** gamma, 0.0, att ** gamma)
    if 440 <= wl <= 490:
        return (0.0, ((wl - 440) / (490 - 440)) ** gamma, 1.0)
    if 490 <= wl <= 510:
        return (0.0, 1.0, (-(wl - 510) / (510 - 490)) ** gamma)
    if 510 <= wl <= 580:
        return (((wl - 510) / (580 - 510)) ** gamma, 1.0, 0.0)
    if 580 <= wl <= 645:
        return (1.0, (-(wl - 645) / (645 - 580)) ** gamma, 0.0)
    if 645 <= wl <= 750:
        att = 0.3 + 0.7 * (750 - wl) / (750 - 645)
        return (att ** gamma, 0.0, 0.0)
    return (1.0, 1.0, 1.0)


def rgb_to_hex(rgb: Tuple[float, float, float]) -> str:
    return "#" + "".join(f"{int(round(c * 255)):02x}" for c in rgb)
