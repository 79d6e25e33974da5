"""
Pytest configuration and common fixtures for motifminer tests.
"""
import sys
import tempfile
from pathlib import Path

import numpy as np
import pytest

from motifminer.models import DataPoint, DataPointIdentifier, Item
from motifminer.structure import LeafIdentifier, StructuralElement

# Force testing the installed package, not the local source
project_root = str(Path(__file__).parent.parent.absolute())
if project_root in sys.path:
    sys.path.remove(project_root)

# three non-collinear atoms around the element center
ATOM_OFFSETS = {"N": (-0.6, 0.4, 0.0), "CA": (0.0, 0.0, 0.0), "C": (0.6, 0.4, 0.2)}


def make_element(pdb, serial, family, center, chain="A", model=1):
    center = np.asarray(center, dtype=float)
    atoms = {name: center + np.asarray(offset) for name, offset in ATOM_OFFSETS.items()}
    return StructuralElement.from_atoms(LeafIdentifier(pdb, model, chain, serial), family, atoms)


def make_data_point(pdb, entries, chain="A"):
    """Build a data point from ``(label, center)`` pairs; the label doubles as family."""
    items = [
        Item(label, make_element(pdb, serial, label, center, chain))
        for serial, (label, center) in enumerate(entries, start=1)
    ]
    return DataPoint(DataPointIdentifier(pdb, chain), items)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def element_factory():
    return make_element


@pytest.fixture
def data_point_factory():
    return make_data_point


@pytest.fixture
def scenario_corpus():
    """Three data points where {A,B} is close in the first two only and C never touches B."""
    return [
        make_data_point("1abc", [("A", (0, 0, 0)), ("B", (3, 0, 0)), ("C", (50, 0, 0))]),
        make_data_point("2abc", [("A", (0, 0, 0)), ("B", (0, 3.5, 0)), ("C", (0, 50, 0))]),
        make_data_point("3abc", [("A", (0, 0, 0)), ("B", (40, 0, 0)), ("C", (0, 0, 3))]),
    ]


def build_synthetic_corpus(seed=0, n_data_points=8):
    """
    Data points holding a planted HIS-CYS-ZN triangle plus scattered decoys.

    The triangle is rotated and shifted randomly in every data point; decoys
    lie far enough from it and from each other to stay unconnected.
    """
    rng = np.random.default_rng(seed)
    triangle = np.array([[0.0, 0.0, 0.0], [3.8, 0.0, 0.0], [1.9, 3.2, 0.0]])
    corpus = []
    for index in range(n_data_points):
        angle = rng.uniform(0, 2 * np.pi)
        rotation = np.array(
            [[np.cos(angle), -np.sin(angle), 0.0], [np.sin(angle), np.cos(angle), 0.0], [0.0, 0.0, 1.0]]
        )
        shift = rng.uniform(-5, 5, size=3)
        planted = triangle @ rotation.T + shift + rng.normal(0, 0.2, size=(3, 3))
        entries = [("HIS", planted[0]), ("CYS", planted[1]), ("ZN", planted[2])]
        for offset, label in enumerate(["GLY", "SER", "ALA"], start=1):
            entries.append((label, shift + np.array([30.0 * offset, 0.0, 0.0]) + rng.normal(0, 1.0, size=3)))
        corpus.append(make_data_point(f"{index + 1}xyz", entries))
    return corpus


@pytest.fixture
def synthetic_corpus():
    return build_synthetic_corpus()
