import pathlib
import sys

import numpy as np
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

plt = pytest.importorskip("matplotlib.pyplot")

from edgefv import Case, Geometry
from edgefv.core.multigrid import agglomerate
from edgefv.core.preprocess import preprocess_geometry

ARTIFACTS = pathlib.Path(__file__).parent / "artifacts"
ARTIFACTS.mkdir(parents=True, exist_ok=True)


def test_sa_channel_outlet_profile():
    case = Case.from_yaml(ROOT / "tests" / "cases" / "sa_channel" / "system" / "case.yaml")
    case.logger.verbose = False
    case.solve()

    coords = case.geometry.coords
    column = np.flatnonzero(np.isclose(coords[:, 0], coords[:, 0].max()))
    column = column[np.argsort(coords[column, 1])]
    y = coords[column, 1]
    nu_tilde = case.solution[column, 0]

    fig, (ax_profile, ax_history) = plt.subplots(1, 2, figsize=(9, 4))
    ax_profile.plot(nu_tilde, y, "o-")
    ax_profile.set_xlabel("nu_tilde")
    ax_profile.set_ylabel("y")
    ax_history.semilogy(case.control.history)
    ax_history.set_xlabel("iteration")
    ax_history.set_ylabel("max residual")
    fig.savefig(ARTIFACTS / "sa_channel_outlet.png", dpi=150, bbox_inches="tight")
    plt.close(fig)

    assert nu_tilde[0] == pytest.approx(0.0)
    assert nu_tilde[-1] > nu_tilde[0]


def test_agglomeration_map():
    fine = preprocess_geometry(Geometry.structured(8, 8))
    coarse = agglomerate(fine, ratio=4)

    fig, ax = plt.subplots(figsize=(5, 5))
    for i, j in fine.edges.nodes:
        ax.plot(fine.coords[[i, j], 0], fine.coords[[i, j], 1], color="0.8", lw=0.5)
    ax.scatter(fine.coords[:, 0], fine.coords[:, 1], c=fine.parent, cmap="tab20", s=30)
    ax.scatter(coarse.coords[:, 0], coarse.coords[:, 1], marker="x", color="k")
    ax.set_aspect("equal")
    fig.savefig(ARTIFACTS / "agglomeration_8x8.png", dpi=150, bbox_inches="tight")
    plt.close(fig)

    assert (ARTIFACTS / "agglomeration_8x8.png").exists()
