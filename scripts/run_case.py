"""Run a case directory from its ``system/case.yaml``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from edgefv import Case
from edgefv.utils.errors import RestartError, TopologyError

log = logging.getLogger("run_case")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("case", type=Path, help="Path to <case>/system/case.yaml")
    parser.add_argument("--max-iters", type=int, default=None, help="Override convergence.maxIters")
    parser.add_argument("--quiet", action="store_true", help="Do not print per-iteration residuals")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    try:
        case = Case.from_yaml(args.case)
    except RestartError as exc:
        log.error("Cannot restart: %s", exc)
        return 1
    except TopologyError as exc:
        log.error("Malformed mesh: %s", exc)
        return 1

    if args.max_iters is not None:
        case.control.max_iters = args.max_iters
    case.logger.verbose = not args.quiet
    converged = case.solve()
    report = case.solver.residual_report()
    for k, name in enumerate(report.names):
        log.info(
            "%s: rms %.3e, max %.3e at point %d",
            name,
            report.rms[k],
            report.maximum[k],
            report.location[k],
        )
    return 0 if converged else 2


if __name__ == "__main__":
    raise SystemExit(main())
