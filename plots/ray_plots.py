"""Ray path and hit-map plotting helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence
import warnings

import matplotlib.pyplot as plt
import numpy as np

from optics_core.diagnostics import HitRecord
from optics_core.rays import RayPath
from optics_core.surfaces import Surface
from optics_core.wavelength import wavelength_to_rgb

PROJECTIONS = {"xy": (0, 1), "xz": (0, 2)}


def _save(fig: plt.Figure, outdir: str, name: str) -> str:
    Path(outdir).mkdir(parents=True, exist_ok=True)
    png = Path(outdir) / f"{name}.png"
    pdf = Path(outdir) / f"{name}.pdf"
    fig.savefig(png, dpi=150, bbox_inches="tight")
    try:
        fig.savefig(pdf, bbox_inches="tight")
    except PermissionError:
        warnings.warn(
            f"Could not write '{pdf}' (permission denied). Saved PNG only.",
            RuntimeWarning,
            stacklevel=2,
        )
    plt.close(fig)
    return str(png)


def _surface_trace(surface: Surface, axes: tuple, n: int = 41) -> np.ndarray:
    """World-space outline of a surface cut along the local axis that maps onto the view plane."""

    half = surface.semidia or 10.0
    if surface.has_rectangular_aperture:
        half = max(surface.width, surface.height) / 2.0
    s = np.linspace(-half, half, n)
    lateral = 1 if axes[1] == 1 else 2
    local = np.zeros((n, 3))
    local[:, lateral] = s
    r = surface.radius or 0.0
    curved = surface.shape in ("spherical", "aspherical") or (surface.shape == "cylindrical" and lateral == 1)
    if surface.shape == "cylindrical" and not curved:
        local[:, 0] = -r
    elif curved and abs(r) > 1e-10:
        # vertex sits at local x = -R
        local[:, 0] = -np.sign(r) * np.sqrt(np.clip(r * r - s * s, 0.0, None))
    return np.array([surface.to_world(p) for p in local])


def plot_ray_paths(
    paths: Sequence[RayPath],
    surfaces: Sequence[Surface],
    outdir: str,
    name: str = "ray_paths",
    projection: str = "xy",
) -> str:
    """Paths projected onto X-Y or X-Z, coloured by wavelength, with surface outlines."""

    i, j = PROJECTIONS[projection]
    fig, ax = plt.subplots(figsize=(8, 5))
    for s in surfaces:
        outline = _surface_trace(s, (i, j))
        ax.plot(outline[:, i], outline[:, j], color=s.color, alpha=max(s.opacity, 0.5), lw=1.5)
        ax.annotate(str(s.id), (outline[0, i], outline[0, j]), fontsize=7, color=s.color)
    for p in paths:
        pts = p.points
        if len(pts) < 2:
            continue
        ax.plot(pts[:, i], pts[:, j], color=wavelength_to_rgb(p.wavelength), lw=0.8, alpha=0.8)
    ax.set_facecolor("black")
    ax.set_aspect("equal", adjustable="datalim")
    ax.set_xlabel("x [mm]")
    ax.set_ylabel(f"{'xyz'[j]} [mm]")
    ax.set_title(f"Ray paths ({projection.upper()})")
    return _save(fig, outdir, name)


def plot_hit_map(hits: Iterable[HitRecord], surface: Surface, outdir: str, name: str = "hit_map") -> str:
    """Local Y-Z scatter of the hits recorded on one surface, with its aperture."""

    sel = [h for h in hits if h.surface_id == surface.id]
    yz = np.array([h.local_point[1:3] for h in sel], dtype=float).reshape(-1, 2)
    colors = [wavelength_to_rgb(h.wavelength) for h in sel]
    fig, ax = plt.subplots(figsize=(5, 5))
    if surface.has_rectangular_aperture:
        w, h = surface.width / 2.0, surface.height / 2.0
        ax.plot([-w, w, w, -w, -w], [-h, -h, h, h, -h], color="0.5", lw=1)
    else:
        sd = surface.semidia or 10.0
        t = np.linspace(0.0, 2.0 * np.pi, 181)
        ax.plot(sd * np.cos(t), sd * np.sin(t), color="0.5", lw=1)
    if len(yz):
        ax.scatter(yz[:, 0], yz[:, 1], c=colors, s=10, edgecolors="none")
    ax.set_facecolor("black")
    ax.set_aspect("equal")
    ax.set_xlabel("local y [mm]")
    ax.set_ylabel("local z [mm]")
    ax.set_title(f"Hit map: {surface.id} ({len(yz)} hits)")
    return _save(fig, outdir, name)


def plot_all(paths: Sequence[RayPath], surfaces: Sequence[Surface], hits: Sequence[HitRecord], outdir: str, prefix: str = "") -> list:
    out = [
        plot_ray_paths(paths, surfaces, outdir, f"{prefix}paths_xy", "xy"),
        plot_ray_paths(paths, surfaces, outdir, f"{prefix}paths_xz", "xz"),
    ]
    if surfaces:
        out.append(plot_hit_map(hits, surfaces[-1], outdir, f"{prefix}hits_{surfaces[-1].id}"))
    return out
