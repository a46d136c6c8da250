import argparse
import logging
import os
import sys

import pandas as pd

from .catalog import GeometryCatalog
from .config import ID_COLUMN_CANDIDATES
from .errors import ConfigError, LevelConflictError
from .pipeline import prepare_map


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Draw a choropleth map of state, county, tract, HSA or registry rates"
    )
    ap.add_argument("--data", required=True, help="CSV with identifier, value and optional p-value columns")
    ap.add_argument("--boundaries", required=True, help="Root directory of the boundary datasets")
    ap.add_argument("--out", required=True, help="Output image path (e.g. map.png)")
    ap.add_argument("--id-col", help="Identifier column (default: conventional names such as FIPS)")
    ap.add_argument("--data-col", help="Value column (default: the only numeric column)")
    ap.add_argument("--hatch-col", help="Column the hatch test is applied to")
    ap.add_argument("--census-year", type=int, default=2000, choices=(2000, 2010))
    ap.add_argument(
        "--categ",
        default="5",
        help="Number of quantile categories (3-11) or comma-separated breakpoints (max 5)",
    )
    ap.add_argument("--hatch", action="store_true", help="Hatch areas whose hatch value passes the test")
    ap.add_argument("--hatch-op", default=">", help="Hatch comparison: > >= < <= == != (default: >)")
    ap.add_argument("--hatch-value", type=float, default=0.05, help="Hatch threshold (default: 0.05)")
    for flag, default in (("seer", "NONE"), ("hsa", "NONE"), ("county", "NONE"), ("tract", "NONE"), ("state", "DATA")):
        ap.add_argument(
            f"--{flag}-b",
            default=default,
            help=f"{flag} boundaries to draw: NONE, DATA, STATE, SEER or ALL (default: {default})",
        )
    ap.add_argument("--map-restriction", default="contiguous", choices=("contiguous", "all"))
    ap.add_argument("--palette", default="-RdYlBu", help="Colormap name; prefix '-' to reverse")
    ap.add_argument("--allow-level-coercion", action="store_true",
                    help="Map county+tract mixes at tract level instead of failing")
    ap.add_argument("--title", help="Map title")
    ap.add_argument("--unmatched-out", help="Write unmatched identifiers to this CSV")
    ap.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    return ap


def options_from_args(args: argparse.Namespace) -> dict:
    options = {
        "censusYear": args.census_year,
        "categ": args.categ,
        "hatch": {"op": args.hatch_op, "value": args.hatch_value} if args.hatch else False,
        "seerB": args.seer_b,
        "hsaB": args.hsa_b,
        "countyB": args.county_b,
        "tractB": args.tract_b,
        "stateB": args.state_b,
        "mapRestriction": args.map_restriction,
        "palette": args.palette,
        "allowLevelCoercion": args.allow_level_coercion,
    }
    for key, value in (("idCol", args.id_col), ("dataCol", args.data_col), ("hatchCol", args.hatch_col)):
        if value:
            options[key] = value
    return options


def run_cli(args: argparse.Namespace) -> int:
    if not os.path.exists(args.data):
        print(f"ERROR: data file not found: {args.data}")
        return 1
    if not os.path.isdir(args.boundaries):
        print(f"ERROR: boundary directory not found: {args.boundaries}")
        return 1

    # keep codes as text so leading zeros survive
    header = pd.read_csv(args.data, nrows=0).columns
    id_cols = [c for c in ID_COLUMN_CANDIDATES if c in header]
    if args.id_col:
        id_cols.append(args.id_col)
    frame = pd.read_csv(args.data, dtype={c: str for c in id_cols} or None)
    catalog = GeometryCatalog.from_directory(args.boundaries)

    try:
        result = prepare_map(frame, options_from_args(args), catalog, progress=True)
    except (ConfigError, LevelConflictError) as e:
        print(f"[cli] {e}")
        return 2

    if result.unmatched:
        print(f"[cli] Unmatched: {result.unmatched.summary()}")
        if args.unmatched_out:
            result.unmatched.to_frame().to_csv(args.unmatched_out, index=False)

    if result.regions.empty:
        print("[cli] Nothing to draw.")
        return 2

    # imported late so the CLI can report config errors without a display backend
    from .render import render_map
    import matplotlib.pyplot as plt

    fig = render_map(result, title=args.title)
    out_dir = os.path.dirname(os.path.abspath(args.out))
    os.makedirs(out_dir, exist_ok=True)
    fig.savefig(args.out, bbox_inches="tight")
    plt.close(fig)
    print(f"[cli] Map written to {args.out}")
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.INFO))
    return run_cli(args)


if __name__ == "__main__":
    sys.exit(main())
