"""
metrics
=======

Distribution metrics computed from the concrete occurrences of an itemset.

Each :class:`MetricKind` carries its evaluation function.  An evaluation
function receives a group of occurrences of equal cardinality and returns
one observation per occurrence.  Items of an occurrence are paired by their
position in label order, so a group does not need to share labels; this lets
the background sampler evaluate random itemsets with the same functions.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Sequence

import numpy as np

from motifminer.functions import mean_nearest_neighbor_distance, mean_pairwise_distance
from motifminer.models import Distribution, Itemset
from motifminer.structure import superimpose

if TYPE_CHECKING:
    from motifminer.mining import MiningResult


class MetricError(ValueError):
    """Raised when a metric cannot be evaluated or was never computed."""


def occurrence_points(occurrence: Itemset) -> np.ndarray:
    """Return the centroids of an occurrence's items in label order."""
    if not occurrence.items:
        raise MetricError(f"{occurrence!r} is not a concrete occurrence")
    points = []
    for item in occurrence.items:
        if item.element is None:
            raise MetricError(f"Item {item.label!r} of {occurrence!r} has no structural element")
        points.append(item.element.centroid())
    return np.ascontiguousarray(points, dtype=np.float64)


def cohesion(occurrences: Sequence[Itemset]) -> np.ndarray:
    """Mean pairwise centroid distance of every occurrence."""
    return np.array([mean_pairwise_distance(occurrence_points(o)) for o in occurrences], dtype=np.float64)


def affinity(occurrences: Sequence[Itemset]) -> np.ndarray:
    """Mean nearest-neighbour centroid distance of every occurrence."""
    return np.array([mean_nearest_neighbor_distance(occurrence_points(o)) for o in occurrences], dtype=np.float64)


def consensus(occurrences: Sequence[Itemset]) -> np.ndarray:
    """RMSD of every occurrence superimposed onto the first occurrence of the group."""
    if not occurrences:
        return np.empty(0, dtype=np.float64)
    reference = occurrence_points(occurrences[0])
    values = []
    for occurrence in occurrences:
        points = occurrence_points(occurrence)
        if points.shape != reference.shape:
            raise MetricError(
                f"Cannot compare {occurrence!r} with {occurrences[0]!r}: cardinalities differ"
            )
        values.append(superimpose(reference, points).rmsd)
    return np.array(values, dtype=np.float64)


_EVALUATORS: Dict[str, Callable[[Sequence[Itemset]], np.ndarray]] = {
    "cohesion": cohesion,
    "consensus": consensus,
    "affinity": affinity,
}


class MetricKind(Enum):
    """Closed set of distribution metrics.

    The value doubles as the name of the :class:`Itemset` field that holds the
    itemset-level summary of the metric.
    """

    COHESION = "cohesion"
    CONSENSUS = "consensus"
    AFFINITY = "affinity"

    @classmethod
    def parse(cls, value) -> "MetricKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            available = [kind.value for kind in cls]
            raise ValueError(f"Unknown metric kind: {value!r}. Available: {available}") from None

    def observe(self, occurrences: Sequence[Itemset]) -> np.ndarray:
        """Evaluate the metric on every occurrence of the group."""
        return _EVALUATORS[self.value](occurrences)

    def summarize(self, occurrences: Sequence[Itemset]) -> float:
        """Itemset-level value of the metric: the mean over the group."""
        return float(np.mean(self.observe(occurrences)))

    def value_of(self, itemset: Itemset):
        """Return the observed itemset-level value, ``None`` when unavailable."""
        return getattr(itemset, self.value)

    def assign(self, itemset: Itemset, value) -> None:
        setattr(itemset, self.value, value)

    def __str__(self) -> str:
        return self.value


class DistributionMetric:
    """
    Builds one distribution per frequent itemset for a metric kind.

    Parameters
    ----------
    kind : MetricKind or str
        Metric to evaluate.
    """

    def __init__(self, kind=MetricKind.COHESION):
        self.kind = MetricKind.parse(kind)
        self.distributions: Dict[Itemset, Distribution] = {}
        self.computed = False
        self.logger = logging.getLogger(__name__)

    def compute(self, result: "MiningResult") -> Dict[Itemset, Distribution]:
        """Evaluate the metric on the occurrences of every frequent itemset.

        Itemsets with fewer than two occurrences, or with occurrences lacking
        structural elements, get an empty distribution and their summary field
        stays ``None``.
        """
        self.logger.info(f"Computing {self.kind} distributions for {len(result.itemsets)} itemsets")
        distributions = {}
        for itemset in result.itemsets:
            occurrences = result.occurrences(itemset)
            distribution = Distribution(itemset, self.kind)
            if len(occurrences) >= 2 and all(occurrence.motif is not None for occurrence in occurrences):
                distribution.extend(self.kind.observe(occurrences))
                self.kind.assign(itemset, distribution.mean())
            else:
                self.logger.debug(
                    f"{self.kind} unavailable for {itemset.to_simple_string()}: {len(occurrences)} occurrence(s)"
                )
                self.kind.assign(itemset, None)
            distributions[itemset] = distribution.freeze()
        self.distributions = distributions
        self.computed = True
        return distributions

    def distribution(self, itemset: Itemset) -> Distribution:
        try:
            return self.distributions[itemset]
        except KeyError:
            raise MetricError(f"No {self.kind} distribution computed for {itemset!r}") from None


def find_distribution_metric(metrics: Sequence[DistributionMetric], kind) -> DistributionMetric:
    """Return the computed metric of the requested kind, failing if it is missing."""
    kind = MetricKind.parse(kind)
    for metric in metrics:
        if metric.kind is kind and metric.computed:
            return metric
    raise MetricError(f"No distribution metric of kind {kind} was computed")
