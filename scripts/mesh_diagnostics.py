"""Geometry diagnostics: dual closure, control volumes and agglomeration ratios."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from edgefv.core.dual import check_closure, quality_statistics
from edgefv.core.mesh import Geometry
from edgefv.core.multigrid import build_multigrid_levels
from edgefv.core.preprocess import preprocess_geometry


def diagnose(nx: int, ny: int, nz: int = 0, triangles: bool = False, levels: int = 3) -> Dict:
    geometry = preprocess_geometry(Geometry.structured(nx, ny, nz, triangles=triangles))
    hierarchy = build_multigrid_levels(geometry, levels)
    summary: List[Dict[str, float]] = []
    for level, grid in enumerate(hierarchy):
        stats = quality_statistics(grid)
        stats["level"] = float(level)
        stats["closure_owned"] = check_closure(grid)
        if level:
            stats["ratio"] = hierarchy[level - 1].npoints / grid.npoints
        summary.append(stats)
    return {"mesh": {"nx": nx, "ny": ny, "nz": nz, "triangles": triangles}, "levels": summary}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--nx", type=int, default=16)
    parser.add_argument("--ny", type=int, default=16)
    parser.add_argument("--nz", type=int, default=0)
    parser.add_argument("--triangles", action="store_true")
    parser.add_argument("--levels", type=int, default=3)
    parser.add_argument("--json", type=Path, default=None, help="Write the summary to this file")
    args = parser.parse_args(argv)

    result = diagnose(args.nx, args.ny, args.nz, args.triangles, args.levels)
    for stats in result["levels"]:
        line = (
            f"level {int(stats['level'])}: {int(stats['npoints'])} points, "
            f"{int(stats['nedges'])} edges, volume {stats['volume_total']:.6f}, "
            f"closure {stats['closure_max']:.2e}"
        )
        if "ratio" in stats:
            line += f", ratio {stats['ratio']:.2f}"
        print(line)
    if args.json is not None:
        args.json.write_text(json.dumps(result, indent=2), encoding="utf-8")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
