"""
Synthetic boundary datasets shared by the test suites.

States are 10x10 squares laid out on a grid; their counties, tracts,
HSAs and registries are smaller boxes inside them. Colorado and Virginia
change counties between 2000 and 2010; Alaska has no 2010 county
partition so loads for it fail.
"""
import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

from seermapper.catalog import FrameBoundaryStore, GeometryCatalog


def _frame(rows) -> gpd.GeoDataFrame:
    records = []
    for row in rows:
        region_id, state, registry, geom = row[:4]
        extra = row[4] if len(row) > 4 else {}
        records.append({"region_id": region_id, "state_fips": state, "registry": registry,
                        "name": f"Area {region_id}", **extra, "geometry": geom})
    return gpd.GeoDataFrame(records, geometry="geometry", crs="EPSG:5070")


STATES = _frame([
    ("02", "02", None, box(-40, 20, -30, 30)),
    ("06", "06", None, box(0, 0, 10, 10)),
    ("08", "08", None, box(20, 0, 30, 10)),
    ("15", "15", None, box(-40, 0, -30, 10)),
    ("51", "51", None, box(40, 0, 50, 10)),
    ("53", "53", None, box(0, 20, 10, 30)),
])

COUNTIES_2000 = _frame([
    ("02020", "02", "AK-NAT", box(-40, 20, -35, 25), {"hsa": None}),
    ("06001", "06", "CA-SF", box(0, 0, 5, 5), {"hsa": "101"}),
    ("06037", "06", "CA-LA", box(5, 0, 10, 5), {"hsa": "102"}),
    ("06075", "06", "CA-SF", box(0, 5, 5, 10), {"hsa": "101"}),
    ("06085", "06", "CA-SJ", box(5, 5, 10, 10), {"hsa": "102"}),
    ("08001", "08", None, box(20, 0, 25, 5), {"hsa": "201"}),
    ("08013", "08", None, box(25, 0, 30, 5), {"hsa": "201"}),
    ("08059", "08", None, box(20, 5, 25, 10), {"hsa": "201"}),
    ("51001", "51", None, box(40, 0, 45, 5), {"hsa": "301"}),
    ("51515", "51", None, box(45, 0, 50, 5), {"hsa": "301"}),
    ("53033", "53", "WA-SEA", box(0, 20, 5, 25), {"hsa": "401"}),
    ("53063", "53", None, box(5, 20, 10, 25), {"hsa": "402"}),
])

# Only the boundary-changed states ship a 2010 county partition (no Alaska here)
COUNTIES_2010 = _frame([
    ("08001", "08", None, box(20, 0, 25, 5), {"hsa": "201"}),
    ("08013", "08", None, box(25, 0, 30, 5), {"hsa": "202"}),
    ("08014", "08", None, box(25, 5, 30, 10), {"hsa": "202"}),
    ("08059", "08", None, box(20, 5, 25, 10), {"hsa": "201"}),
    ("51001", "51", None, box(40, 0, 45, 5), {"hsa": "301"}),
    ("51019", "51", None, box(45, 0, 50, 5), {"hsa": "301"}),
])

TRACTS_2000 = _frame([
    ("06037101100", "06", "CA-LA", box(5, 0, 7, 2)),
    ("06037101200", "06", "CA-LA", box(7, 0, 10, 2)),
    ("06001400100", "06", "CA-SF", box(0, 0, 2, 2)),
    ("53033000100", "53", "WA-SEA", box(0, 20, 2, 22)),
])

TRACTS_2010 = _frame([
    ("06037101110", "06", "CA-LA", box(5, 0, 7, 2)),
    ("06037101200", "06", "CA-LA", box(7, 0, 10, 2)),
    ("06001400100", "06", "CA-SF", box(0, 0, 2, 2)),
    ("53033000100", "53", "WA-SEA", box(0, 20, 2, 22)),
])

HSAS_2000 = _frame([
    ("101", "06", None, box(0, 0, 5, 10)),
    ("102", "06", None, box(5, 0, 10, 10)),
    ("201", "08", None, box(20, 0, 30, 10)),
    ("301", "51", None, box(40, 0, 50, 5)),
    ("401", "53", None, box(0, 20, 5, 25)),
    ("402", "53", None, box(5, 20, 10, 25)),
])

HSAS_2010 = _frame([
    ("201", "08", None, box(20, 0, 25, 10)),
    ("202", "08", None, box(25, 0, 30, 10)),
    ("301", "51", None, box(40, 0, 50, 5)),
])

REGISTRIES = _frame([
    ("AK-NAT", "02", "AK-NAT", box(-40, 20, -35, 25)),
    ("CA-LA", "06", "CA-LA", box(5, 0, 10, 5)),
    ("CA-SF", "06", "CA-SF", box(0, 0, 5, 10)),
    ("CA-SJ", "06", "CA-SJ", box(5, 5, 10, 10)),
    ("WA-SEA", "53", "WA-SEA", box(0, 20, 5, 25)),
])


def build_frames():
    return {
        ("state", 2000): STATES,
        ("county", 2000): COUNTIES_2000,
        ("county", 2010): COUNTIES_2010,
        ("tract", 2000): TRACTS_2000,
        ("tract", 2010): TRACTS_2010,
        ("hsa", 2000): HSAS_2000,
        ("hsa", 2010): HSAS_2010,
        ("registry", 2000): REGISTRIES,
    }


@pytest.fixture
def store():
    return FrameBoundaryStore(build_frames())


@pytest.fixture
def catalog(store):
    return GeometryCatalog(store)


def write_parquet_store(root, frames=None):
    """Lay boundary frames out as {root}/{boundary}/{vintage}/{partition}.parquet."""
    for (boundary, vintage), frame in (frames or build_frames()).items():
        out = root / boundary / str(vintage)
        out.mkdir(parents=True, exist_ok=True)
        if boundary == "state":
            frame.to_parquet(out / "US.parquet")
        else:
            for state, part in frame.groupby("state_fips"):
                part.to_parquet(out / f"{state}.parquet")
        pd.DataFrame(frame.drop(columns="geometry")).to_parquet(out / "attributes.parquet")
    return root
