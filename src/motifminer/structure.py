"""
structure
=========

Lightweight structural model consumed by the miner.  Parsing of structure
files happens elsewhere; this module only holds what the core needs: leaf
substructures (residues, ligands or interaction pseudo-atoms) with their atom
coordinates, ordered motifs built from them and rigid superimposition.
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Iterable, Iterator, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation


@dataclass(frozen=True, order=True)
class LeafIdentifier:
    """Identifier of a leaf substructure, ordered by PDB-ID, model, chain and serial."""

    pdb_identifier: str
    model: int
    chain: str
    serial: int
    insertion_code: str = ""

    def __str__(self) -> str:
        return f"{self.pdb_identifier}-{self.model}-{self.chain}-{self.serial}{self.insertion_code}"


@dataclass(frozen=True)
class StructuralElement:
    """Immutable leaf substructure.

    Attributes
    ----------
    identifier : LeafIdentifier
        Unique identifier, also the canonical ordering key.
    family : str
        Family label, usually the three-letter code.
    atom_names : tuple of str
        Atom names in the order of ``coordinates``.
    coordinates : np.ndarray
        Read-only ``(n_atoms, 3)`` coordinate array.
    """

    identifier: LeafIdentifier
    family: str
    atom_names: Tuple[str, ...] = ()
    coordinates: np.ndarray = dc_field(default=None, compare=False, hash=False, repr=False)

    def __post_init__(self):
        coordinates = np.zeros((0, 3)) if self.coordinates is None else self.coordinates
        coordinates = np.array(coordinates, dtype=np.float64).reshape(-1, 3)
        if coordinates.shape[0] != len(self.atom_names):
            raise ValueError(
                f"Element {self.identifier} has {len(self.atom_names)} atom names "
                f"but {coordinates.shape[0]} coordinates"
            )
        coordinates.setflags(write=False)
        object.__setattr__(self, "atom_names", tuple(self.atom_names))
        object.__setattr__(self, "coordinates", coordinates)

    @classmethod
    def from_atoms(cls, identifier: LeafIdentifier, family: str, atoms: dict) -> "StructuralElement":
        """Build an element from a ``name -> xyz`` mapping."""
        names = tuple(atoms)
        coordinates = np.array([atoms[name] for name in names], dtype=np.float64).reshape(-1, 3)
        return cls(identifier=identifier, family=family, atom_names=names, coordinates=coordinates)

    def atom(self, name: str) -> np.ndarray:
        """Return the coordinates of the named atom."""
        try:
            return self.coordinates[self.atom_names.index(name)]
        except ValueError:
            raise KeyError(f"Element {self.identifier} has no atom {name!r}") from None

    def centroid(self) -> np.ndarray:
        """Return the representative point of the element."""
        if self.coordinates.shape[0] == 0:
            raise ValueError(f"Element {self.identifier} has no atoms")
        return self.coordinates.mean(axis=0)

    def transformed(self, superimposition: "Superimposition") -> "StructuralElement":
        """Return a copy moved by the given rigid transformation."""
        return StructuralElement(
            identifier=self.identifier,
            family=self.family,
            atom_names=self.atom_names,
            coordinates=superimposition.apply(self.coordinates),
        )


@dataclass(frozen=True)
class StructuralMotif:
    """Ordered, de-duplicated collection of structural elements."""

    elements: Tuple[StructuralElement, ...] = ()

    @classmethod
    def from_elements(cls, elements: Iterable[StructuralElement]) -> "StructuralMotif":
        """Sort elements by their identifier and drop duplicates."""
        unique = {}
        for element in sorted(elements, key=lambda e: e.identifier):
            unique.setdefault(element.identifier, element)
        return cls(tuple(unique.values()))

    def __iter__(self) -> Iterator[StructuralElement]:
        return iter(self.elements)

    def __len__(self) -> int:
        return len(self.elements)

    @property
    def identifiers(self) -> Tuple[LeafIdentifier, ...]:
        return tuple(element.identifier for element in self.elements)

    def transformed(self, superimposition: "Superimposition") -> "StructuralMotif":
        return StructuralMotif(tuple(element.transformed(superimposition) for element in self.elements))

    def __str__(self) -> str:
        return "_".join(str(identifier) for identifier in self.identifiers)


@dataclass(frozen=True, eq=False)
class Superimposition:
    """Rigid transformation mapping candidate coordinates onto a reference."""

    rotation: Rotation
    translation: np.ndarray
    rmsd: float

    def apply(self, coordinates: np.ndarray) -> np.ndarray:
        coordinates = np.array(coordinates, dtype=np.float64).reshape(-1, 3)
        if coordinates.shape[0] == 0:
            return coordinates
        return self.rotation.apply(coordinates) + self.translation


def superimpose(reference: np.ndarray, candidate: np.ndarray) -> Superimposition:
    """
    Compute the least-squares superimposition of ``candidate`` onto ``reference``.

    Parameters
    ----------
    reference : np.ndarray
        ``(n, 3)`` reference coordinates.
    candidate : np.ndarray
        ``(n, 3)`` coordinates paired row by row with ``reference``.

    Returns
    -------
    Superimposition
        Rotation and translation to apply to the candidate, with the RMSD
        of the paired points after superimposition.
    """
    reference = np.array(reference, dtype=np.float64).reshape(-1, 3)
    candidate = np.array(candidate, dtype=np.float64).reshape(-1, 3)
    if reference.shape != candidate.shape:
        raise ValueError(f"Cannot superimpose {candidate.shape[0]} points onto {reference.shape[0]} points")
    if reference.shape[0] == 0:
        raise ValueError("Cannot superimpose empty point sets")

    reference_center = reference.mean(axis=0)
    candidate_center = candidate.mean(axis=0)

    if reference.shape[0] == 1:
        rotation = Rotation.identity()
    elif reference.shape[0] == 2:
        # one axis fixes the rotation of a point pair up to the spin about it
        reference_axis = reference[1] - reference[0]
        candidate_axis = candidate[1] - candidate[0]
        if np.linalg.norm(reference_axis) == 0.0 or np.linalg.norm(candidate_axis) == 0.0:
            rotation = Rotation.identity()
        else:
            rotation, _ = Rotation.align_vectors(reference_axis[np.newaxis], candidate_axis[np.newaxis])
    else:
        rotation, _ = Rotation.align_vectors(reference - reference_center, candidate - candidate_center)

    translation = reference_center - rotation.apply(candidate_center)
    mapped = rotation.apply(candidate) + translation
    rmsd = float(np.sqrt(np.mean(np.sum((mapped - reference) ** 2, axis=1))))
    return Superimposition(rotation=rotation, translation=translation, rmsd=rmsd)


def superimpose_elements(
    reference: Sequence[StructuralElement], candidate: Sequence[StructuralElement]
) -> Superimposition:
    """
    Superimpose paired elements using the atoms each pair has in common.

    Pairs without common atoms contribute their centroids instead.
    """
    if len(reference) != len(candidate):
        raise ValueError(f"Cannot pair {len(candidate)} candidate elements with {len(reference)} reference elements")

    reference_points = []
    candidate_points = []
    for ref_element, cand_element in zip(reference, candidate):
        shared = sorted(set(ref_element.atom_names) & set(cand_element.atom_names))
        if shared:
            reference_points.extend(ref_element.atom(name) for name in shared)
            candidate_points.extend(cand_element.atom(name) for name in shared)
        else:
            reference_points.append(ref_element.centroid())
            candidate_points.append(cand_element.centroid())

    return superimpose(np.array(reference_points), np.array(candidate_points))
