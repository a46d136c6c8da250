"""
Geometry hygiene for boundary partitions.

Boundaries arrive pre-projected; nothing here reprojects. Loads are
cleaned once so downstream plotting and centroid math never see null,
empty or invalid shapes.
"""
from __future__ import annotations
from typing import List, Optional

import geopandas as gpd
import shapely
from shapely.geometry.base import BaseGeometry

POLYGON_TYPES = ["Polygon", "MultiPolygon"]


def clean_geoms(
    gdf: gpd.GeoDataFrame,
    types: Optional[List[str]] = None
) -> gpd.GeoDataFrame:
    """
    Drop rows whose geometry is null, empty or of an unexpected type.

    Args:
        gdf: GeoDataFrame with potentially problematic geometries
        types: Optional list of allowed geometry types (e.g. ["Polygon", "MultiPolygon"])

    Returns:
        Copy of ``gdf`` with only valid, non-empty geometries
    """
    g = gdf.geometry
    keep = g.notna() & ~g.is_empty
    keep &= g.apply(lambda x: isinstance(x, BaseGeometry))

    if types is not None:
        keep &= g.geom_type.isin(types)

    out = gdf[keep].copy()

    if types is not None and ("Polygon" in types or "MultiPolygon" in types):
        invalid = ~out.geometry.is_valid
        if invalid.any():
            out.loc[invalid, out.geometry.name] = out.geometry[invalid].apply(shapely.make_valid)

    return out


def add_centroids(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Attach label anchor coordinates (``centroid_x``/``centroid_y``) inside each polygon."""
    out = gdf.copy()
    if out.empty:
        out["centroid_x"] = []
        out["centroid_y"] = []
        return out
    points = out.geometry.representative_point()
    out["centroid_x"] = points.x.values
    out["centroid_y"] = points.y.values
    return out


def empty_boundaries(crs=None, extra_columns: Optional[List[str]] = None) -> gpd.GeoDataFrame:
    """Create an empty GeoDataFrame with the boundary schema."""
    columns = ["region_id", "level", "state_fips", "registry", "centroid_x", "centroid_y", "has_data"]
    columns += list(extra_columns or [])
    return gpd.GeoDataFrame(
        {c: [] for c in columns},
        geometry=gpd.GeoSeries([], crs=crs),
    )
