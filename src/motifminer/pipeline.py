"""
Pipeline for structural itemset mining.
This module chains mining, metric distributions, background sampling,
significance estimation, mutual information analysis and subgraph merging.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field as dc_field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from motifminer.association import ItemsetRelationGraph, MutualInformationAnalyzer
from motifminer.config import MinerConfig, create_miner_config
from motifminer.enrichment import InteractionEnricher
from motifminer.io import write_merged_motifs
from motifminer.library import ConsensusCluster, ItemsetLibrary
from motifminer.mapping import DataPointLabelMapper
from motifminer.merging import MergedMotif, SubgraphMerger
from motifminer.metrics import DistributionMetric, MetricKind
from motifminer.mining import Adjacency, DistanceAdjacency, ItemsetMiner, MiningResult
from motifminer.models import DataPoint, Distribution, Itemset, Significance
from motifminer.sampling import DistributionSampler
from motifminer.statistics import SignificanceEstimator


def setup_logging(verbose: bool):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    if verbose:
        logging.getLogger("numba").setLevel(logging.WARNING)


@dataclass
class PipelineResult:
    """Everything a pipeline run produced."""

    config: MinerConfig
    mining: MiningResult
    metrics: List[DistributionMetric]
    working_set: List[Itemset]
    background: Dict[Itemset, Distribution]
    significance: List[Tuple[Significance, Itemset]]
    estimator: SignificanceEstimator
    graph: ItemsetRelationGraph
    merged: List[MergedMotif]
    written: List[Path] = dc_field(default_factory=list)

    @property
    def significant_itemsets(self) -> List[Itemset]:
        return [itemset for _, itemset in self.significance]

    def build_library(
        self, clustered: Optional[Mapping[Itemset, Sequence[ConsensusCluster]]] = None
    ) -> ItemsetLibrary:
        """
        Library of the significant itemsets.

        With ``clustered``, the result of an external consensus clustering, each
        significant itemset is represented by its largest cluster, filtered by
        ``config.minimal_cluster_ratio``.  Otherwise every occurrence is an entry.
        """
        if clustered is not None:
            significant = set(self.significant_itemsets)
            return ItemsetLibrary.from_clusters(
                {itemset: clusters for itemset, clusters in clustered.items() if itemset in significant},
                self.config.minimal_itemset_size,
                self.config.minimal_cluster_ratio,
            )
        occurrences = [
            occurrence for itemset in self.significant_itemsets for occurrence in self.mining.occurrences(itemset)
        ]
        return ItemsetLibrary.from_occurrences(occurrences, self.config.minimal_itemset_size)


class Pipeline:
    """
    Structural itemset mining pipeline.

    Parameters
    ----------
    config : MinerConfig, optional
        Run configuration, defaults apply when omitted.
    adjacency : callable, optional
        Adjacency notion; centroid distance below ``config.maximal_distance`` by default.
    enricher : InteractionEnricher, optional
        Best-effort enrichment applied to every data point before mining.
    mapper : DataPointLabelMapper, optional
        Label mapping applied after enrichment.
    """

    def __init__(
        self,
        config: Optional[MinerConfig] = None,
        adjacency: Optional[Adjacency] = None,
        enricher: Optional[InteractionEnricher] = None,
        mapper: Optional[DataPointLabelMapper] = None,
    ):
        self.config = config if config is not None else MinerConfig()
        self.adjacency = adjacency if adjacency is not None else DistanceAdjacency(self.config.maximal_distance)
        self.enricher = enricher
        self.mapper = mapper
        self.logger = logging.getLogger(__name__)

    def prepare(self, corpus: Sequence[DataPoint]) -> List[DataPoint]:
        """Apply enrichment and label mapping to the corpus."""
        data_points = list(corpus)
        if self.enricher is not None:
            data_points = [self.enricher.enrich(data_point) for data_point in data_points]
        if self.mapper is not None:
            data_points = self.mapper.map_data_points(data_points)
        return data_points

    def mine(self, corpus: Sequence[DataPoint]) -> MiningResult:
        miner = ItemsetMiner(
            minimal_support=self.config.minimal_support,
            maximal_itemset_size=self.config.maximal_itemset_size,
            adjacency=self.adjacency,
        )
        return miner.mine(corpus)

    def compute_metrics(self, result: MiningResult) -> List[DistributionMetric]:
        metrics = []
        for kind in MetricKind:
            metric = DistributionMetric(kind)
            metric.compute(result)
            metrics.append(metric)
        return metrics

    def select_working_set(self, result: MiningResult) -> List[Itemset]:
        """Frequent itemsets of at least two labels whose configured metric is available."""
        kind = self.config.metric_kind
        minimal_size = max(2, self.config.minimal_itemset_size)
        return [
            itemset
            for itemset in result.frequent_itemsets(minimal_size, self.config.maximal_itemset_size)
            if kind.value_of(itemset) is not None
        ]

    def run(self, corpus: Sequence[DataPoint], output_path: Optional[Union[str, Path]] = None) -> PipelineResult:
        """
        Main entry point of the pipeline.

        Parameters
        ----------
        corpus : sequence of DataPoint
            Labeled data points.
        output_path : str or Path, optional
            Directory receiving the merged motifs.

        Returns
        -------
        PipelineResult
        """
        config = self.config
        self.logger.info(f"Starting pipeline with metric '{config.metric_kind}'")

        data_points = self.prepare(corpus)
        result = self.mine(data_points)
        metrics = self.compute_metrics(result)

        working_set = self.select_working_set(result)
        self.logger.info(f"Working set holds {len(working_set)} itemsets")

        sampler = DistributionSampler(
            result,
            kind=config.metric_kind,
            level_of_parallelism=config.level_of_parallelism,
            sample_size=config.sample_size,
            seed=config.seed,
        )
        background = sampler.sample(working_set)

        estimator = SignificanceEstimator(
            kind=config.metric_kind,
            ks_cutoff=config.ks_cutoff,
            significance_cutoff=config.significance_cutoff,
        )
        significance = estimator.estimate(background)

        analyzer = MutualInformationAnalyzer(
            metrics, kind=config.metric_kind, association_threshold=config.association_threshold
        )
        graph = analyzer.analyze(working_set)

        merger = SubgraphMerger(result, reference_family=config.reference_family)
        merged = merger.merge(graph)

        written = write_merged_motifs(merged, output_path) if output_path is not None else []

        self.logger.info("Pipeline finished")
        return PipelineResult(
            config=config,
            mining=result,
            metrics=metrics,
            working_set=working_set,
            background=background,
            significance=significance,
            estimator=estimator,
            graph=graph,
            merged=merged,
            written=written,
        )


def run_pipeline(
    corpus: Sequence[DataPoint],
    config: Optional[MinerConfig] = None,
    output_path: Optional[Union[str, Path]] = None,
    adjacency: Optional[Adjacency] = None,
    enricher: Optional[InteractionEnricher] = None,
    mapper: Optional[DataPointLabelMapper] = None,
    **kwargs,
) -> PipelineResult:
    """
    Module-level function to run the pipeline.

    Args:
        corpus: Labeled data points
        config: Run configuration; built from ``kwargs`` when omitted
        output_path: Directory receiving the merged motifs
        adjacency: Adjacency notion between items
        enricher: Optional interaction enricher
        mapper: Optional label mapper
        **kwargs: Configuration options, see :class:`MinerConfig`

    Returns:
        Pipeline result
    """
    if config is None:
        config = create_miner_config(**kwargs)
    elif kwargs:
        raise ValueError(f"Pass either a config or configuration options, got both: {sorted(kwargs)}")
    pipeline = Pipeline(config=config, adjacency=adjacency, enricher=enricher, mapper=mapper)
    return pipeline.run(corpus, output_path=output_path)
