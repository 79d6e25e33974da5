"""
statistics
==========

Significance of itemsets against their sampled background distributions.

The background observations of an itemset are modelled by a normal
distribution.  A one-sample Kolmogorov-Smirnov test checks that the model
fits; itemsets whose background fails the check are skipped, since the model
rather than the itemset is untrustworthy.  For the remaining itemsets the
p-value is the normal's cumulative probability at the itemset's observed
metric value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from motifminer.metrics import MetricKind
from motifminer.models import Distribution, Itemset, Significance


class FitState(Enum):
    """Progress of an itemset through significance estimation."""

    SAMPLED = "sampled"
    FIT_EVALUATED = "fit-evaluated"
    REJECTED_FOR_FIT = "rejected-for-fit"
    SCORED = "scored"
    UNAVAILABLE = "unavailable"
    INSIGNIFICANT = "insignificant"
    SIGNIFICANT = "significant"

    @property
    def terminal(self) -> bool:
        return self in (FitState.REJECTED_FOR_FIT, FitState.UNAVAILABLE, FitState.INSIGNIFICANT, FitState.SIGNIFICANT)


@dataclass(frozen=True)
class NormalFit:
    """Normal model of a background distribution and its KS goodness of fit."""

    mean: float
    std: float
    ks_statistic: float
    ks_p_value: float

    def cdf(self, value: float) -> float:
        return float(stats.norm.cdf(value, loc=self.mean, scale=self.std))


def fit_normal(values: np.ndarray) -> Optional[NormalFit]:
    """
    Fit a normal distribution to ``values`` and test the fit.

    Returns None when the spread is zero or undefined, in which case no
    normal model can be built.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.size < 2:
        return None
    mean = float(np.mean(values))
    std = float(np.std(values, ddof=1))
    if not np.isfinite(std) or std <= 0.0:
        return None
    result = stats.kstest(values, "norm", args=(mean, std))
    return NormalFit(mean=mean, std=std, ks_statistic=float(result.statistic), ks_p_value=float(result.pvalue))


class SignificanceEstimator:
    """
    Estimates the significance of itemsets regarding one metric kind.

    Parameters
    ----------
    kind : MetricKind or str
        Metric whose observed itemset value is tested.
    ks_cutoff : float
        Minimal KS p-value of the background normal fit.
    significance_cutoff : float
        P-value under which an itemset is significant.
    """

    def __init__(self, kind=MetricKind.COHESION, ks_cutoff: float = 0.05, significance_cutoff: float = 0.05):
        self.kind = MetricKind.parse(kind)
        self.ks_cutoff = ks_cutoff
        self.significance_cutoff = significance_cutoff
        self.states: Dict[Itemset, FitState] = {}
        self.fits: Dict[Itemset, NormalFit] = {}
        self.significant_itemsets: List[Tuple[Significance, Itemset]] = []
        self.logger = logging.getLogger(__name__)

    def estimate(self, background: Mapping[Itemset, Distribution]) -> List[Tuple[Significance, Itemset]]:
        """
        Determine the significance of every itemset with a background distribution.

        Returns
        -------
        list of (Significance, Itemset)
            Significant itemsets ranked by p-value, ties by sorted labels.
        """
        self.significant_itemsets = []
        for itemset in sorted(background):
            self.states[itemset] = FitState.SAMPLED
            self._determine_significance(itemset, background[itemset])
        self.significant_itemsets.sort(key=lambda entry: entry[0])
        self.logger.info(
            f"{len(self.significant_itemsets)} of {len(background)} itemsets are significant "
            f"for {self.kind} at p < {self.significance_cutoff}"
        )
        return self.significant_itemsets

    def _determine_significance(self, itemset: Itemset, distribution: Distribution) -> None:
        fit = fit_normal(distribution.values)
        if fit is None:
            self.logger.warning(
                f"itemset {itemset.to_simple_string()} background distribution of type {self.kind} "
                f"cannot be modelled ({len(distribution)} observations), skipping"
            )
            self.states[itemset] = FitState.REJECTED_FOR_FIT
            return

        self.fits[itemset] = fit
        self.states[itemset] = FitState.FIT_EVALUATED
        if fit.ks_p_value < self.ks_cutoff:
            self.logger.warning(
                f"itemset {itemset.to_simple_string()} background distribution of type {self.kind} "
                f"violates KS-cutoff ({fit.ks_p_value:.4g} < {self.ks_cutoff}), skipping"
            )
            self.states[itemset] = FitState.REJECTED_FOR_FIT
            return

        observed = self.kind.value_of(itemset)
        if observed is None:
            self.logger.warning(f"itemset {itemset.to_simple_string()} has no observed {self.kind}, skipping")
            self.states[itemset] = FitState.UNAVAILABLE
            return

        p_value = fit.cdf(observed)
        self.states[itemset] = FitState.SCORED
        self.logger.debug(f"p-value for itemset {itemset.to_simple_string()} is {p_value:.4g}")

        if p_value < self.significance_cutoff:
            significance = Significance(p_value=p_value, key=itemset.key, ks=fit.ks_p_value)
            itemset.p_value = p_value
            itemset.ks = fit.ks_p_value
            self.significant_itemsets.append((significance, itemset))
            self.states[itemset] = FitState.SIGNIFICANT
            self.logger.info(f"itemset {itemset.to_simple_string()} is significant with {significance}")
        else:
            self.states[itemset] = FitState.INSIGNIFICANT
            self.logger.info(f"itemset {itemset.to_simple_string()} is insignificant")

    def state(self, itemset: Itemset) -> Optional[FitState]:
        return self.states.get(itemset)

    def to_frame(self) -> pd.DataFrame:
        """Tabulate the significance ranking."""
        rows = [
            {
                "rank": rank,
                "itemset": itemset.to_simple_string(),
                "p-value": significance.p_value,
                "ks": significance.ks,
                "observed": self.kind.value_of(itemset),
                "null_mean": self.fits[itemset].mean,
                "null_std": self.fits[itemset].std,
            }
            for rank, (significance, itemset) in enumerate(self.significant_itemsets, start=1)
        ]
        return pd.DataFrame(rows, columns=["rank", "itemset", "p-value", "ks", "observed", "null_mean", "null_std"])
