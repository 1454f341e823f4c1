"""Optical system assembled from already-parsed declarative records.

An optical train is an ordered list of named elements. Each element references
a surface template (``sid``), an assembly template (``aid``) or a light source
(``lid``) and places it with an absolute ``position`` plus an optional
``normal``/``angles`` and ``dial``; train values override template values.

Example:
    >>> from optics_core.system import build_optical_system
    >>> system = build_optical_system(
    ...     [{"src": {"lid": 1}, "det": {"sid": 0, "position": [50, 0, 0]}}],
    ...     {"detector": {"sid": 0, "shape": "plano", "mode": "absorption", "semidia": 10}},
    ...     light_templates={"beam": {"lid": 1, "number": 3}},
    ... )
    >>> [s.id for s in system.surfaces], [s.numerical_id for s in system.surfaces], len(system.lights)
    (['det'], [0], 1)
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from optics_core.linalg import vec3
from optics_core.rays import Ray
from optics_core.sources import LightSource, create_light_source
from optics_core.surfaces import Surface, create_assembly_surfaces, create_surface, normal_from_record, number_surfaces

logger = logging.getLogger(__name__)

Records = Union[Mapping[str, Any], Iterable[Mapping[str, Any]]]
PLACEMENT_KEYS = ("normal", "angles", "dial")


@dataclass
class OpticalSystem:
    surfaces: List[Surface] = field(default_factory=list)
    lights: List[LightSource] = field(default_factory=list)
    name: str = ""

    def surface(self, surface_id: str) -> Surface:
        for s in self.surfaces:
            if s.id == str(surface_id):
                return s
        raise KeyError(surface_id)

    def light(self, lid: int) -> LightSource:
        for light in self.lights:
            if light.lid == int(lid):
                return light
        raise KeyError(lid)

    def generate_rays(self) -> List[Ray]:
        return [r for light in self.lights for r in light.generate_rays()]


def _named_records(records: Optional[Records]) -> Iterator[Tuple[str, Mapping[str, Any]]]:
    """Yield ``(name, record)`` from a mapping or from a list of single- or multi-entry mappings."""

    if records is None:
        return
    groups = [records] if isinstance(records, Mapping) else list(records)
    for group in groups:
        for name, record in group.items():
            if isinstance(record, Mapping):
                yield str(name), record


def _index(records: Optional[Records], key: str) -> Dict[str, Mapping[str, Any]]:
    out: Dict[str, Mapping[str, Any]] = {}
    for name, record in _named_records(records):
        out[str(record[key]) if key in record else name] = record
    return out


def _assembly_index(assemblies: Optional[Iterable[Mapping[str, Any]]]) -> Dict[str, Mapping[str, Any]]:
    if assemblies is None:
        return {}
    if isinstance(assemblies, Mapping):
        assemblies = [assemblies]
    return {str(a["aid"]): a for a in assemblies if "aid" in a}


def merge_placement(template: Mapping[str, Any], element: Mapping[str, Any]) -> Dict[str, Any]:
    """Template record with the element's orientation entries taking precedence."""

    merged = dict(template)
    if element.get("normal") is not None:
        merged.pop("angles", None)
    elif element.get("angles") is not None:
        merged.pop("normal", None)
    for k in PLACEMENT_KEYS:
        if element.get(k) is not None:
            merged[k] = element[k]
    return merged


def build_optical_system(
    train: Records,
    surface_templates: Optional[Records] = None,
    assembly_templates: Optional[Iterable[Mapping[str, Any]]] = None,
    light_templates: Optional[Records] = None,
    name: str = "",
) -> OpticalSystem:
    """Build the ordered, numbered surface list and the referenced light sources."""

    surfaces_by_sid = _index(surface_templates, "sid")
    assemblies_by_aid = _assembly_index(assembly_templates)
    lights_by_lid = _index(light_templates, "lid")

    surfaces: List[Surface] = []
    referenced: List[str] = []
    for element_name, element in _named_records(train):
        position = vec3(element.get("position"))
        if element.get("lid") is not None:
            lid = str(element["lid"])
            if lid not in referenced:
                referenced.append(lid)
        if element.get("sid") is not None:
            template = surfaces_by_sid.get(str(element["sid"]))
            if template is None:
                logger.warning("No surface template for sid %s in train element %r", element["sid"], element_name)
            else:
                surfaces.append(create_surface(element_name, merge_placement(template, element), position))
        if element.get("aid") is not None:
            template = assemblies_by_aid.get(str(element["aid"]))
            if template is None:
                logger.warning("No assembly template for aid %s in train element %r", element["aid"], element_name)
            else:
                dial = element.get("dial")
                surfaces.extend(
                    create_assembly_surfaces(
                        template,
                        offset=position,
                        normal=normal_from_record(element),
                        assembly_id=element_name,
                        dial=None if dial is None else float(dial),
                    )
                )

    lights: List[LightSource] = []
    for lid in referenced:
        record = lights_by_lid.get(lid)
        if record is None:
            logger.warning("Train references unknown light source lid %s", lid)
            continue
        lights.append(create_light_source(record))

    system = OpticalSystem(surfaces=number_surfaces(surfaces), lights=lights, name=name)
    logger.info("built system %r: %d surfaces, %d light sources", name, len(system.surfaces), len(lights))
    return system
