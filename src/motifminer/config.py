"""Immutable run configuration of the itemset miner."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

from motifminer.metrics import MetricKind


@dataclass(frozen=True)
class MinerConfig:
    """
    Configuration shared by all pipeline stages.

    Attributes
    ----------
    minimal_support : int
        Minimal number of data points an itemset must occur in.
    minimal_itemset_size : int
        Smallest itemset reported for scoring and merging.
    maximal_itemset_size : int
        Largest itemset the level-wise search generates.
    maximal_distance : float
        Centroid distance (Angstrom) under which two items are adjacent.
    metric_kind : MetricKind
        Metric used for significance estimation and pairwise association.
    sample_size : int
        Number of background samples per itemset.
    level_of_parallelism : int
        Number of background sampling workers, -1 for all cores.
    seed : int, optional
        Seed of the background sampler.
    ks_cutoff : float
        Minimal Kolmogorov-Smirnov p-value of the background normal fit.
    significance_cutoff : float
        P-value under which an itemset is significant.
    minimal_cluster_ratio : float
        Minimal share of the largest cluster for library entries.
    association_threshold : float
        Minimal mutual information (bits) for an edge of the relation graph.
    reference_family : str, optional
        Family used to align merged motifs.
    """

    minimal_support: int = 2
    minimal_itemset_size: int = 2
    maximal_itemset_size: int = 5
    maximal_distance: float = 6.5
    metric_kind: MetricKind = MetricKind.COHESION
    sample_size: int = 1000
    level_of_parallelism: int = 1
    seed: Optional[int] = None
    ks_cutoff: float = 0.05
    significance_cutoff: float = 0.05
    minimal_cluster_ratio: float = 0.5
    association_threshold: float = 1.0
    reference_family: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "metric_kind", MetricKind.parse(self.metric_kind))
        if self.minimal_support < 1:
            raise ValueError(f"minimal_support must be positive, got {self.minimal_support}")
        if self.minimal_itemset_size < 1:
            raise ValueError(f"minimal_itemset_size must be positive, got {self.minimal_itemset_size}")
        if self.maximal_itemset_size < self.minimal_itemset_size:
            raise ValueError(
                f"maximal_itemset_size ({self.maximal_itemset_size}) is smaller than "
                f"minimal_itemset_size ({self.minimal_itemset_size})"
            )
        if self.maximal_distance <= 0:
            raise ValueError(f"maximal_distance must be positive, got {self.maximal_distance}")
        if self.sample_size < 2:
            raise ValueError(f"sample_size must be at least 2, got {self.sample_size}")
        if self.level_of_parallelism == 0 or self.level_of_parallelism < -1:
            raise ValueError(f"level_of_parallelism must be positive or -1, got {self.level_of_parallelism}")
        for name in ("ks_cutoff", "significance_cutoff", "minimal_cluster_ratio"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must lie in [0, 1], got {value}")

    def to_dict(self) -> Dict[str, Any]:
        """Return the configuration with kebab-case keys."""
        data = asdict(self)
        data["metric_kind"] = self.metric_kind.value
        return {key.replace("_", "-"): value for key, value in data.items()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MinerConfig":
        return create_miner_config(**{key.replace("-", "_"): value for key, value in data.items()})

    @classmethod
    def from_json(cls, text: str) -> "MinerConfig":
        return cls.from_dict(json.loads(text))


def create_miner_config(**kwargs) -> MinerConfig:
    """Build a :class:`MinerConfig`, rejecting unknown options."""
    known = {f.name for f in fields(MinerConfig)}
    unknown = sorted(set(kwargs) - known)
    if unknown:
        raise ValueError(f"Unknown configuration option(s): {unknown}. Available: {sorted(known)}")
    return MinerConfig(**kwargs)
