"""
association
===========

Pairwise association of itemsets and the relation graph built from it.

Nodes live in an arena: every itemset gets a stable integer index on
insertion, and a side index maps label sets to arena indices so that an
itemset reached through different pairs is stored only once.  Edges are kept
in a :class:`networkx.Graph` over the arena indices.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

import networkx as nx
import numpy as np
from sklearn.metrics import mutual_info_score

from motifminer.metrics import DistributionMetric, MetricKind, find_distribution_metric
from motifminer.models import Itemset


def discretize(values: np.ndarray, bin_width: float = 1.0) -> np.ndarray:
    """Map continuous observations onto integer bins of the given width."""
    if bin_width <= 0:
        raise ValueError(f"bin_width must be positive, got {bin_width}")
    return np.floor(np.asarray(values, dtype=np.float64) / bin_width).astype(np.int64)


def mutual_information(x: np.ndarray, y: np.ndarray, bin_width: float = 1.0) -> float:
    """
    Mutual information in bits between two paired sets of observations.

    Both inputs are capped to the shorter length before pairing.  The score is
    symmetric in its arguments.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    n = min(x.size, y.size)
    if n == 0:
        return 0.0
    score = mutual_info_score(discretize(x[:n], bin_width), discretize(y[:n], bin_width))
    return max(float(score) / np.log(2), 0.0)


@dataclass(frozen=True)
class ItemsetNode:
    """A node of the relation graph: arena index and the itemset it stands for."""

    identifier: int
    itemset: Itemset

    def __str__(self) -> str:
        return f"{self.identifier}:{self.itemset.to_simple_string()}"


class ItemsetRelationGraph:
    """Undirected graph of itemsets weighted by an association score."""

    def __init__(self):
        self._arena: List[ItemsetNode] = []
        self._index: Dict[FrozenSet, int] = {}
        self.graph = nx.Graph()

    def add_itemset(self, itemset: Itemset) -> ItemsetNode:
        """Insert the itemset, reusing the node of an equal itemset if present."""
        position = self._index.get(itemset.labels)
        if position is not None:
            return self._arena[position]
        node = ItemsetNode(identifier=len(self._arena), itemset=itemset)
        self._arena.append(node)
        self._index[itemset.labels] = node.identifier
        self.graph.add_node(node.identifier)
        return node

    def add_edge(self, first: Itemset, second: Itemset, score: float) -> Tuple[ItemsetNode, ItemsetNode]:
        source = self.add_itemset(first)
        target = self.add_itemset(second)
        self.graph.add_edge(source.identifier, target.identifier, weight=float(score))
        return source, target

    def index_of(self, itemset: Itemset) -> Optional[int]:
        return self._index.get(itemset.labels)

    def node(self, identifier: int) -> ItemsetNode:
        return self._arena[identifier]

    @property
    def nodes(self) -> List[ItemsetNode]:
        return list(self._arena)

    @property
    def edges(self) -> List[Tuple[ItemsetNode, ItemsetNode, float]]:
        return [
            (self._arena[min(u, v)], self._arena[max(u, v)], data["weight"])
            for u, v, data in sorted(self.graph.edges(data=True), key=lambda e: (min(e[:2]), max(e[:2])))
        ]

    def __contains__(self, itemset: Itemset) -> bool:
        return itemset.labels in self._index

    def __len__(self) -> int:
        return len(self._arena)

    def __iter__(self) -> Iterator[ItemsetNode]:
        return iter(self._arena)

    def disconnected_subgraphs(self) -> List[List[ItemsetNode]]:
        """Connected components as node lists, ordered by their smallest arena index."""
        components = [sorted(component) for component in nx.connected_components(self.graph)]
        components.sort(key=lambda component: component[0])
        return [[self._arena[identifier] for identifier in component] for component in components]

    def __repr__(self) -> str:
        return f"ItemsetRelationGraph(nodes={len(self)}, edges={self.graph.number_of_edges()})"


class MutualInformationAnalyzer:
    """
    Relates itemsets whose metric distributions share information.

    Parameters
    ----------
    distribution_metrics : sequence of DistributionMetric
        Computed metrics; the one of ``kind`` must be present.
    kind : MetricKind or str
        Metric whose distributions are compared.
    association_threshold : float
        Minimal mutual information in bits for an edge.
    bin_width : float
        Width of the bins used to discretize observations.
    """

    def __init__(
        self,
        distribution_metrics: Sequence[DistributionMetric],
        kind=MetricKind.COHESION,
        association_threshold: float = 1.0,
        bin_width: float = 1.0,
    ):
        self.metric = find_distribution_metric(distribution_metrics, kind)
        self.association_threshold = association_threshold
        self.bin_width = bin_width
        self.scores: List[Tuple[float, Itemset, Itemset]] = []
        self.logger = logging.getLogger(__name__)

    def score(self, first: Itemset, second: Itemset) -> Optional[float]:
        """Mutual information of two itemsets, None when either distribution is empty."""
        x = self.metric.distribution(first)
        y = self.metric.distribution(second)
        if x.is_empty or y.is_empty:
            return None
        return mutual_information(x.values, y.values, self.bin_width)

    def analyze(self, itemsets: Sequence[Itemset]) -> ItemsetRelationGraph:
        """Score every unordered pair of itemsets and build the relation graph."""
        working_set = sorted(set(itemsets))
        graph = ItemsetRelationGraph()
        for itemset in working_set:
            graph.add_itemset(itemset)

        self.logger.info(f"Computing mutual information for {len(working_set)} itemsets")
        scores = []
        for first, second in itertools.combinations(working_set, 2):
            score = self.score(first, second)
            if score is None:
                continue
            scores.append((score, first, second))
            if score > self.association_threshold:
                graph.add_edge(first, second, score)

        scores.sort(key=lambda entry: (-entry[0], entry[1].sort_key, entry[2].sort_key))
        self.scores = scores
        self.logger.info(
            f"{graph.graph.number_of_edges()} of {len(scores)} itemset pairs exceed "
            f"mutual information {self.association_threshold}"
        )
        return graph
