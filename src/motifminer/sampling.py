"""
sampling
========

Monte-Carlo background distributions for frequent itemsets.

For a target itemset of cardinality k with n occurrences, one background
sample is a group of n random occurrences of cardinality k drawn anywhere in
the corpus, summarised by the metric exactly like the itemset's own
occurrences.  Each target gets its own seed, derived from the run seed in the
sorted order of the targets, so the background does not depend on how the
targets are split across workers.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed

from motifminer.metrics import MetricKind
from motifminer.mining import MiningResult, Neighbors
from motifminer.models import DataPoint, Distribution, Itemset

# (target key, cardinality, group size, seed)
Target = Tuple[Tuple, int, int, int]


def draw_occurrence(
    data_points: Sequence[DataPoint],
    neighbors: Sequence[Neighbors],
    size: int,
    rng: np.random.Generator,
    max_attempts: int = 100,
) -> Optional[Itemset]:
    """
    Draw a random occurrence of the given cardinality.

    A random item of a random data point is grown by random items that are
    adjacent to all members drawn so far and carry a label not yet present.

    Returns
    -------
    Itemset or None
        The random occurrence, or None if no attempt reached ``size`` items.
    """
    for _ in range(max_attempts):
        position = int(rng.integers(len(data_points)))
        data_point = data_points[position]
        located = [index for index, item in enumerate(data_point.items) if item.element is not None]
        if not located:
            continue

        seed_index = located[int(rng.integers(len(located)))]
        members = [seed_index]
        labels = {data_point.items[seed_index].label}
        pool = set(neighbors[position][seed_index])

        while len(members) < size:
            choices = sorted(index for index in pool if data_point.items[index].label not in labels)
            if not choices:
                break
            chosen = choices[int(rng.integers(len(choices)))]
            members.append(chosen)
            labels.add(data_point.items[chosen].label)
            pool &= neighbors[position][chosen]

        if len(members) == size:
            return Itemset(
                labels,
                origin=data_point.identifier,
                item_indices=members,
                items=[data_point.items[index] for index in members],
            )
    return None


def _sample_partition(
    targets: List[Target],
    data_points: Sequence[DataPoint],
    neighbors: Sequence[Neighbors],
    kind: MetricKind,
    sample_size: int,
    max_attempts: int,
) -> List[Tuple[Tuple, List[float]]]:
    """Worker function: sample the background of every target of one partition."""
    logger = logging.getLogger(__name__)
    results = []
    for key, size, group_size, seed in targets:
        rng = np.random.default_rng(seed)
        values = []
        for _ in range(sample_size):
            group = []
            for _ in range(group_size):
                occurrence = draw_occurrence(data_points, neighbors, size, rng, max_attempts)
                if occurrence is not None:
                    group.append(occurrence)
            # every sample summarizes exactly group_size occurrences
            if len(group) < group_size:
                logger.debug(f"Dropped background group of {len(group)} of {group_size} occurrences for {key}")
                continue
            values.append(kind.summarize(group))
        results.append((key, values))
    return results


class DistributionSampler:
    """
    Samples background distributions with a configurable level of parallelism.

    Parameters
    ----------
    result : MiningResult
        Mining run providing the corpus, its adjacency and the occurrences.
    kind : MetricKind or str
        Metric evaluated on the random groups.
    level_of_parallelism : int
        Number of joblib workers, -1 to use all cores.
    sample_size : int
        Number of background samples per itemset.
    seed : int, optional
        Random seed for reproducibility.
    max_draw_attempts : int
        Attempts to draw one random occurrence before giving up on it.
    maximal_group_size : int, optional
        Upper bound of the group size (the target's occurrence count by default).
    """

    def __init__(
        self,
        result: MiningResult,
        kind=MetricKind.COHESION,
        level_of_parallelism: int = 1,
        sample_size: int = 1000,
        seed: Optional[int] = None,
        max_draw_attempts: int = 100,
        maximal_group_size: Optional[int] = None,
    ):
        self.result = result
        self.kind = MetricKind.parse(kind)
        self.level_of_parallelism = level_of_parallelism
        self.sample_size = sample_size
        self.seed = seed
        self.max_draw_attempts = max_draw_attempts
        self.maximal_group_size = maximal_group_size
        self.logger = logging.getLogger(__name__)

    def _group_size(self, itemset: Itemset) -> int:
        count = len(self.result.occurrences(itemset))
        if self.maximal_group_size is not None:
            count = min(count, self.maximal_group_size)
        return max(count, 1)

    def _partitions(self, targets: List[Target]) -> List[List[Target]]:
        workers = self.level_of_parallelism
        if workers < 1:
            workers = max(len(targets), 1)
        workers = min(workers, max(len(targets), 1))
        return [targets[i::workers] for i in range(workers) if targets[i::workers]]

    def sample(self, itemsets: Optional[Iterable[Itemset]] = None) -> Dict[Itemset, Distribution]:
        """
        Sample one background distribution per target itemset.

        Parameters
        ----------
        itemsets : iterable of Itemset, optional
            Targets; all frequent itemsets of the mining result by default.

        Returns
        -------
        dict
            Background distribution per itemset, in sorted itemset order.
        """
        chosen = sorted(set(itemsets) if itemsets is not None else set(self.result.itemsets))
        by_key = {itemset.key: itemset for itemset in chosen}

        base_rng = np.random.default_rng(self.seed)
        seeds = base_rng.integers(0, 2**31, size=len(chosen))
        targets = [
            (itemset.key, len(itemset), self._group_size(itemset), int(seed)) for itemset, seed in zip(chosen, seeds)
        ]

        partitions = self._partitions(targets)
        self.logger.info(
            f"Sampling {self.kind} backgrounds of size {self.sample_size} for {len(targets)} itemsets "
            f"in {len(partitions)} partition(s)"
        )

        worker_results = Parallel(n_jobs=self.level_of_parallelism, backend="loky")(
            delayed(_sample_partition)(
                partition,
                self.result.data_points,
                self.result.neighbors,
                self.kind,
                self.sample_size,
                self.max_draw_attempts,
            )
            for partition in partitions
        )

        # merged after collection; workers never touch the shared map
        collected = {}
        for partition_result in worker_results:
            for key, values in partition_result:
                collected[key] = values

        background = {}
        for itemset in chosen:
            values = collected.get(itemset.key, [])
            if len(values) < self.sample_size:
                self.logger.warning(
                    f"Only {len(values)} of {self.sample_size} background samples drawn for "
                    f"{itemset.to_simple_string()}"
                )
            background[itemset] = Distribution(itemset, self.kind, values).freeze()
        return background
