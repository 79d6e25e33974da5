"""
library
=======

Serializable libraries of itemsets and their structural representation.

A library is built either from the largest consensus cluster of every
itemset, as produced by an external consensus clustering, or directly from
raw occurrences.  It is stored as gzip-compressed JSON with kebab-case keys.
"""

from __future__ import annotations

import gzip
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Sequence, Tuple, Union

from motifminer.io import compose_pdb_lines, parse_pdb_lines
from motifminer.models import Itemset
from motifminer.structure import StructuralMotif

logger = logging.getLogger(__name__)


class LibraryError(ValueError):
    """Raised when a library is requested from itemsets without structural backing."""


@dataclass(frozen=True)
class ConsensusCluster:
    """One cluster of a consensus clustering: its observation count and consensus motif."""

    size: int
    consensus: StructuralMotif


@dataclass(frozen=True)
class ItemsetLibraryEntry:
    """Labels of an itemset and the PDB representation of its structure."""

    itemset: Tuple[str, ...]
    pdb_lines: str

    @classmethod
    def of(cls, itemset: Itemset, motif: StructuralMotif) -> "ItemsetLibraryEntry":
        labels = tuple(sorted(str(label) for label in itemset.labels))
        return cls(itemset=labels, pdb_lines="\n".join(compose_pdb_lines(motif)) + "\n")

    def motif(self) -> StructuralMotif:
        return parse_pdb_lines(self.pdb_lines.splitlines())

    def to_dict(self) -> dict:
        return {"itemset": list(self.itemset), "pdb-lines": self.pdb_lines}

    @classmethod
    def from_dict(cls, data: Mapping) -> "ItemsetLibraryEntry":
        return cls(itemset=tuple(data["itemset"]), pdb_lines=data["pdb-lines"])


class ItemsetLibrary:
    """Collection of :class:`ItemsetLibraryEntry`."""

    def __init__(self, entries: Iterable[ItemsetLibraryEntry] = ()):
        self.entries: Tuple[ItemsetLibraryEntry, ...] = tuple(entries)

    @classmethod
    def from_clusters(
        cls,
        clustered_itemsets: Mapping[Itemset, Sequence[ConsensusCluster]],
        minimal_itemset_size: int,
        minimal_cluster_ratio: float,
    ) -> "ItemsetLibrary":
        """
        Build a library from the consensus of each itemset's largest cluster.

        Parameters
        ----------
        clustered_itemsets : mapping
            Clusters of the observations of every itemset.
        minimal_itemset_size : int
            Smaller itemsets are skipped.
        minimal_cluster_ratio : float
            Minimal share of all observations the largest cluster must hold.
        """
        logger.info(f"Creating library for {len(clustered_itemsets)} itemsets")
        entries = []
        for itemset in sorted(clustered_itemsets):
            clusters = clustered_itemsets[itemset]
            if len(itemset) < minimal_itemset_size or not clusters:
                continue
            observation_count = sum(cluster.size for cluster in clusters)
            # the first of equally large clusters wins
            largest = max(clusters, key=lambda cluster: cluster.size)
            if largest.size / observation_count < minimal_cluster_ratio:
                logger.info(
                    f"Itemset {itemset.to_simple_string()} not added to the library, "
                    f"largest cluster of size {largest.size} not sufficient"
                )
                continue
            logger.info(
                f"Itemset {itemset.to_simple_string()} added to the library, largest cluster has size {largest.size}"
            )
            entries.append(ItemsetLibraryEntry.of(itemset, largest.consensus))
        return cls(entries)

    @classmethod
    def from_occurrences(cls, occurrences: Iterable[Itemset], minimal_itemset_size: int) -> "ItemsetLibrary":
        """Build a library with one entry per occurrence."""
        entries = []
        for occurrence in occurrences:
            if len(occurrence) < minimal_itemset_size:
                continue
            if occurrence.motif is None:
                raise LibraryError(
                    f"Itemset libraries can only be constructed from occurrences, got {occurrence!r}"
                )
            entries.append(ItemsetLibraryEntry.of(occurrence, occurrence.motif))
        return cls(entries)

    def to_json(self) -> str:
        return json.dumps({"entries": [entry.to_dict() for entry in self.entries]}, indent=2)

    @classmethod
    def from_json(cls, text: str) -> "ItemsetLibrary":
        data = json.loads(text)
        return cls(ItemsetLibraryEntry.from_dict(entry) for entry in data.get("entries", []))

    def write_to_path(self, path: Union[str, Path]) -> None:
        with gzip.open(path, "wt", encoding="utf-8") as handle:
            handle.write(self.to_json())
        logger.info(f"Wrote library of {len(self)} entries to {path}")

    @classmethod
    def read_from_path(cls, path: Union[str, Path]) -> "ItemsetLibrary":
        with gzip.open(path, "rt", encoding="utf-8") as handle:
            return cls.from_json(handle.read())

    def itemsets(self) -> List[Tuple[str, ...]]:
        return [entry.itemset for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ItemsetLibrary):
            return NotImplemented
        return self.entries == other.entries

    def __repr__(self) -> str:
        return f"ItemsetLibrary(entries={len(self)})"
