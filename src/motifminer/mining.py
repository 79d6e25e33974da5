"""
mining
======

Level-wise (Apriori-style) itemset mining over a corpus of data points.

An occurrence of an itemset is a set of items of one data point that carry
pairwise distinct labels and are pairwise adjacent.  Because every subset of
an occurrence is an occurrence as well, the support of an itemset (the number
of data points holding at least one occurrence) never grows with its
cardinality, which is what makes pruning by support correct.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from motifminer.functions import adjacency_matrix
from motifminer.models import DataPoint, DataPointIdentifier, Itemset

Neighbors = List[FrozenSet[int]]
Adjacency = Callable[[DataPoint], Neighbors]
# (position of the data point in the sorted corpus, indices of the matching items)
Location = Tuple[int, FrozenSet[int]]


class CorpusError(ValueError):
    """Raised for corpora whose occurrences could not be identified unambiguously."""


class DistanceAdjacency:
    """
    Items are adjacent when their element centroids are closer than ``cutoff``.

    Items without a structural element have no neighbors.
    """

    def __init__(self, cutoff: float = 6.5):
        if cutoff <= 0:
            raise ValueError(f"cutoff must be positive, got {cutoff}")
        self.cutoff = float(cutoff)

    def __call__(self, data_point: DataPoint) -> Neighbors:
        located = [index for index, item in enumerate(data_point.items) if item.element is not None]
        neighbors: List[FrozenSet[int]] = [frozenset()] * len(data_point.items)
        if not located:
            return neighbors
        points = np.ascontiguousarray(
            [data_point.items[index].element.centroid() for index in located], dtype=np.float64
        )
        matrix = adjacency_matrix(points, self.cutoff)
        for row, index in enumerate(located):
            neighbors[index] = frozenset(located[column] for column in np.flatnonzero(matrix[row]))
        return neighbors

    def __repr__(self) -> str:
        return f"DistanceAdjacency(cutoff={self.cutoff})"


def validate_corpus(corpus: Sequence[DataPoint]) -> List[DataPoint]:
    """
    Check the corpus and return its data points sorted by identifier.

    Raises
    ------
    CorpusError
        If two data points share an identifier, or if two items of one data
        point reference the same leaf substructure.
    """
    seen: Dict[DataPointIdentifier, DataPoint] = {}
    for data_point in corpus:
        if data_point.identifier in seen:
            raise CorpusError(f"Data point {data_point.identifier} occurs more than once in the corpus")
        seen[data_point.identifier] = data_point

        leaves = {}
        for index, item in enumerate(data_point.items):
            if item.element is None:
                continue
            leaf = item.element.identifier
            if leaf in leaves:
                raise CorpusError(
                    f"Items {leaves[leaf]} and {index} of data point {data_point.identifier} "
                    f"both reference leaf {leaf}"
                )
            leaves[leaf] = index

    return [seen[identifier] for identifier in sorted(seen)]


@dataclass
class MiningResult:
    """Frequent itemsets of a mining run and their concrete occurrences.

    ``itemsets`` is sorted by cardinality, then by sorted labels.  Occurrence
    lists are ordered by data point identifier, then by discovery order.
    """

    data_points: List[DataPoint]
    neighbors: List[Neighbors]
    itemsets: List[Itemset]
    extracted: Dict[Itemset, List[Itemset]] = dc_field(default_factory=dict)
    minimal_support: int = 1

    def occurrences(self, itemset: Itemset) -> List[Itemset]:
        """Concrete occurrences of the itemset, empty if it is not frequent."""
        return self.extracted.get(itemset, [])

    def support(self, itemset: Itemset) -> int:
        return len({occurrence.origin for occurrence in self.occurrences(itemset)})

    def frequent_itemsets(self, minimal_size: int = 1, maximal_size: Optional[int] = None) -> List[Itemset]:
        return [
            itemset
            for itemset in self.itemsets
            if len(itemset) >= minimal_size and (maximal_size is None or len(itemset) <= maximal_size)
        ]

    def get(self, *labels) -> Optional[Itemset]:
        """Return the frequent itemset with the given labels, if any."""
        wanted = Itemset(labels)
        for itemset in self.itemsets:
            if itemset == wanted:
                return itemset
        return None

    def to_frame(self) -> pd.DataFrame:
        """Tabulate itemsets with their support, occurrence count and metrics."""
        rows = [
            {
                "itemset": itemset.to_simple_string(),
                "size": len(itemset),
                "support": itemset.support,
                "occurrences": len(self.occurrences(itemset)),
                "cohesion": itemset.cohesion,
                "consensus": itemset.consensus,
                "affinity": itemset.affinity,
                "p-value": itemset.p_value,
                "ks": itemset.ks,
            }
            for itemset in self.itemsets
        ]
        columns = ["itemset", "size", "support", "occurrences", "cohesion", "consensus", "affinity", "p-value", "ks"]
        return pd.DataFrame(rows, columns=columns)


class ItemsetMiner:
    """
    Level-wise frequent itemset miner.

    Parameters
    ----------
    minimal_support : int
        Minimal number of data points an itemset must occur in.
    maximal_itemset_size : int
        Cardinality at which the search stops.
    adjacency : callable, optional
        ``data_point -> list of neighbor index sets``; defaults to
        :class:`DistanceAdjacency` with a 6.5 Angstrom cutoff.
    """

    def __init__(self, minimal_support: int = 2, maximal_itemset_size: int = 5, adjacency: Optional[Adjacency] = None):
        if minimal_support < 1:
            raise ValueError(f"minimal_support must be positive, got {minimal_support}")
        if maximal_itemset_size < 1:
            raise ValueError(f"maximal_itemset_size must be positive, got {maximal_itemset_size}")
        self.minimal_support = minimal_support
        self.maximal_itemset_size = maximal_itemset_size
        self.adjacency = adjacency if adjacency is not None else DistanceAdjacency()
        self.logger = logging.getLogger(__name__)

    def mine(self, corpus: Sequence[DataPoint]) -> MiningResult:
        """Find all frequent itemsets of the corpus and extract their occurrences."""
        data_points = validate_corpus(corpus)
        self.logger.info(
            f"Mining {len(data_points)} data points with minimal support {self.minimal_support} "
            f"and maximal itemset size {self.maximal_itemset_size}"
        )
        neighbors = [self._neighbors(data_point) for data_point in data_points]

        level = self._prune(self._singletons(data_points))
        self.logger.info(f"Level 1: {len(level)} frequent itemsets")

        frequent: Dict[FrozenSet, List[Location]] = dict(level)
        size = 1
        while level and size < self.maximal_itemset_size:
            candidates = self._extend(level, data_points, neighbors)
            level = self._prune(candidates)
            size += 1
            self.logger.info(f"Level {size}: {len(candidates)} candidates, {len(level)} frequent itemsets")
            frequent.update(level)

        return self._build_result(frequent, data_points, neighbors)

    def _neighbors(self, data_point: DataPoint) -> Neighbors:
        neighbors = list(self.adjacency(data_point))
        if len(neighbors) != len(data_point.items):
            raise ValueError(
                f"Adjacency returned {len(neighbors)} neighbor sets for {len(data_point.items)} items "
                f"of data point {data_point.identifier}"
            )
        return [frozenset(n) for n in neighbors]

    @staticmethod
    def _singletons(data_points: List[DataPoint]) -> Dict[FrozenSet, List[Location]]:
        candidates: Dict[FrozenSet, List[Location]] = {}
        for position, data_point in enumerate(data_points):
            for index, item in enumerate(data_point.items):
                candidates.setdefault(frozenset([item.label]), []).append((position, frozenset([index])))
        return candidates

    @staticmethod
    def _has_frequent_subsets(labels: FrozenSet, level: Dict[FrozenSet, List[Location]]) -> bool:
        return all(labels - {label} in level for label in labels)

    def _extend(
        self,
        level: Dict[FrozenSet, List[Location]],
        data_points: List[DataPoint],
        neighbors: List[Neighbors],
    ) -> Dict[FrozenSet, List[Location]]:
        """Extend every occurrence of the level by one item adjacent to all its members."""
        candidates: Dict[FrozenSet, List[Location]] = {}
        seen = set()
        apriori: Dict[FrozenSet, bool] = {}

        for labels, locations in level.items():
            for position, indices in locations:
                data_point = data_points[position]
                common = frozenset.intersection(*(neighbors[position][index] for index in indices))
                for index in sorted(common - indices):
                    label = data_point.items[index].label
                    if label in labels:
                        continue
                    extended = indices | {index}
                    if (position, extended) in seen:
                        continue
                    seen.add((position, extended))

                    new_labels = labels | {label}
                    if new_labels not in apriori:
                        apriori[new_labels] = self._has_frequent_subsets(new_labels, level)
                    if apriori[new_labels]:
                        candidates.setdefault(new_labels, []).append((position, extended))

        # occurrences reached through different parents are regrouped by data point
        for locations in candidates.values():
            locations.sort(key=lambda location: location[0])
        return candidates

    def _prune(self, candidates: Dict[FrozenSet, List[Location]]) -> Dict[FrozenSet, List[Location]]:
        survivors = {}
        for labels in sorted(candidates, key=lambda l: (len(l), tuple(sorted(l)))):
            locations = candidates[labels]
            support = len({position for position, _ in locations})
            if support >= self.minimal_support:
                survivors[labels] = locations
            else:
                self.logger.debug(f"Pruned {{{','.join(map(str, sorted(labels)))}}} with support {support}")
        return survivors

    def _build_result(
        self,
        frequent: Dict[FrozenSet, List[Location]],
        data_points: List[DataPoint],
        neighbors: List[Neighbors],
    ) -> MiningResult:
        itemsets = []
        extracted = {}
        for labels in sorted(frequent, key=lambda l: (len(l), tuple(sorted(l)))):
            locations = frequent[labels]
            itemset = Itemset(labels)
            itemset.support = len({position for position, _ in locations})
            occurrences = []
            for position, indices in locations:
                data_point = data_points[position]
                occurrence = Itemset(
                    labels,
                    origin=data_point.identifier,
                    item_indices=indices,
                    items=[data_point.items[index] for index in indices],
                )
                occurrence.support = itemset.support
                occurrences.append(occurrence)
            itemsets.append(itemset)
            extracted[itemset] = occurrences

        self.logger.info(
            f"Found {len(itemsets)} frequent itemsets with {sum(len(o) for o in extracted.values())} occurrences"
        )
        return MiningResult(
            data_points=data_points,
            neighbors=neighbors,
            itemsets=itemsets,
            extracted=extracted,
            minimal_support=self.minimal_support,
        )
