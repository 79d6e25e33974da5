from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Union

import numpy as np

from motifminer.structure import LeafIdentifier, StructuralElement, StructuralMotif

logger = logging.getLogger(__name__)

AMINO_ACIDS = frozenset(
    "ALA ARG ASN ASP CYS GLN GLU GLY HIS ILE LEU LYS MET PHE PRO SER THR TRP TYR VAL".split()
)


def _format_atom_name(name: str) -> str:
    """Atom names shorter than four characters start in the second column."""
    return f"{name:<4}" if len(name) >= 4 else f" {name:<3}"


def _element_symbol(name: str) -> str:
    letters = [char for char in name if char.isalpha()]
    return letters[0].upper() if letters else ""


def compose_pdb_lines(elements: Iterable[StructuralElement]) -> List[str]:
    """Compose ATOM/HETATM records of the elements, terminated by END."""
    lines = []
    serial = 1
    for element in elements:
        record = "ATOM" if element.family in AMINO_ACIDS else "HETATM"
        identifier = element.identifier
        for name, (x, y, z) in zip(element.atom_names, element.coordinates):
            lines.append(
                f"{record:<6}{serial:>5} {_format_atom_name(name)} {element.family[:3]:>3} "
                f"{identifier.chain[:1]:1}{identifier.serial:>4}{identifier.insertion_code[:1]:1}   "
                f"{x:>8.3f}{y:>8.3f}{z:>8.3f}{1.0:>6.2f}{0.0:>6.2f}          {_element_symbol(name):>2}"
            )
            serial += 1
    lines.append("END")
    return lines


def parse_pdb_lines(lines: Iterable[str], pdb_identifier: str = "", model: int = 0) -> StructuralMotif:
    """Rebuild a motif from ATOM/HETATM records, one element per residue."""
    atoms: Dict[LeafIdentifier, Dict[str, np.ndarray]] = {}
    families: Dict[LeafIdentifier, str] = {}
    for line in lines:
        if not line.startswith(("ATOM", "HETATM")):
            continue
        identifier = LeafIdentifier(
            pdb_identifier=pdb_identifier,
            model=model,
            chain=line[21].strip(),
            serial=int(line[22:26]),
            insertion_code=line[26].strip(),
        )
        families[identifier] = line[17:20].strip()
        coordinates = np.array([float(line[30:38]), float(line[38:46]), float(line[46:54])])
        atoms.setdefault(identifier, {})[line[12:16].strip()] = coordinates

    return StructuralMotif.from_elements(
        StructuralElement.from_atoms(identifier, families[identifier], atoms[identifier]) for identifier in atoms
    )


def write_pdb(elements: Union[StructuralMotif, Sequence[StructuralElement]], path: Union[str, Path]) -> None:
    """Write the elements to a PDB-style file."""
    with open(path, "w") as out:
        for line in compose_pdb_lines(elements):
            out.write(f"{line}\n")


def write_merged_motifs(merged: Iterable, output_path: Union[str, Path]) -> List[Path]:
    """
    Write merged motifs as ``<output_path>/<key>/<pdb>_<chain>.pdb``.

    A motif that cannot be written is reported and skipped.

    Returns
    -------
    list of Path
        Files written successfully.
    """
    output_path = Path(output_path)
    written = []
    for motif in merged:
        path = output_path / motif.key / motif.file_name
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            write_pdb(motif.motif, path)
        except OSError as exc:
            logger.warning(f"Could not write merged motif {motif.key}/{motif.identifier}: {exc}")
            continue
        written.append(path)
    logger.info(f"Wrote {len(written)} merged motifs to {output_path}")
    return written
