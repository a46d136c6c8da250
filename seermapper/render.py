"""
Reference matplotlib renderer for prepared maps.

Fills data regions by category, paints context and no-data regions
flat, hatches flagged regions and draws overlay outlines on top.
"""
from __future__ import annotations

from typing import List, Optional

import matplotlib.pyplot as plt
from matplotlib import colormaps
from matplotlib.colors import rgb2hex
from matplotlib.patches import Patch

from .classify import NO_DATA_CATEGORY
from .config import CONTEXT_COLOR, MAX_CATEGORIES, NO_DATA_COLOR
from .errors import ConfigError

# Outline styling per overlay, drawn in this order
OVERLAY_STYLE = {
    "hsa": {"color": "#7f7f7f", "linewidth": 0.6},
    "county": {"color": "#9e9e9e", "linewidth": 0.5},
    "registry": {"color": "#3d3d3d", "linewidth": 1.0},
    "state": {"color": "#000000", "linewidth": 1.2},
}


def palette_colors(name: str, n: int) -> List[str]:
    """
    Look up ``n`` discrete colors from a named colormap.

    A leading ``-`` reverses the palette (``"-RdYlBu"`` runs blue to red).
    """
    if not 1 <= n <= MAX_CATEGORIES:
        raise ConfigError(f"Palettes support 1..{MAX_CATEGORIES} colors, got {n}")
    reverse = name.startswith("-")
    base = name.lstrip("-")
    try:
        cmap = colormaps[base]
    except KeyError:
        raise ConfigError(f"Unknown palette {base!r}") from None
    if n == 1:
        colors = [rgb2hex(cmap(0.5))]
    else:
        colors = [rgb2hex(cmap(i / (n - 1))) for i in range(n)]
    return colors[::-1] if reverse else colors


def render_map(result, ax=None, title: Optional[str] = None, legend: bool = True):
    """
    Draw a MapResult on a matplotlib axis.

    Returns:
        The matplotlib Figure holding the map
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 7), dpi=150)
    else:
        fig = ax.figure

    regions = result.regions
    classification = result.classification
    colors = palette_colors(result.options.palette, classification.count)

    context = regions[~regions["has_data"].astype(bool)]
    if not context.empty:
        context.plot(ax=ax, color=CONTEXT_COLOR, edgecolor="#bfbfbf", linewidth=0.3)

    no_value = regions[regions["has_data"].astype(bool) & (regions["category"] == NO_DATA_CATEGORY)]
    if not no_value.empty:
        no_value.plot(ax=ax, color=NO_DATA_COLOR, edgecolor="#bfbfbf", linewidth=0.3)

    for idx, color in enumerate(colors):
        part = regions[regions["category"] == idx]
        if not part.empty:
            part.plot(ax=ax, color=color, edgecolor="#bfbfbf", linewidth=0.3)

    hatched = regions[regions["hatched"].astype(bool)]
    if not hatched.empty:
        hatched.plot(ax=ax, facecolor="none", edgecolor="#404040", hatch="///", linewidth=0)

    for name, style in OVERLAY_STYLE.items():
        layer = result.overlays.get(name)
        if layer is not None and not layer.empty:
            layer.boundary.plot(ax=ax, **style)

    if legend:
        handles = [
            Patch(facecolor=c, edgecolor="#808080", label=label)
            for c, label in zip(colors, classification.labels())
        ]
        if not no_value.empty:
            handles.append(Patch(facecolor=NO_DATA_COLOR, edgecolor="#808080", label="No data"))
        if not hatched.empty and result.options.hatch_spec is not None:
            spec = result.options.hatch_spec
            handles.append(Patch(facecolor="white", edgecolor="#404040", hatch="///",
                                 label=f"{spec.op} {spec.threshold:g}"))
        if handles:
            ax.legend(handles=handles, loc="lower right", frameon=True, fontsize=8)

    if title:
        ax.set_title(title, fontsize=12)
    ax.set_axis_off()
    return fig
