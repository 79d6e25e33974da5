"""
Unit tests for key computational functions in motifminer.

These tests validate the correctness of individual components from:
- motifminer/config.py
- motifminer/models.py and motifminer/structure.py
- motifminer/mining.py
- motifminer/metrics.py
- motifminer/sampling.py
- motifminer/statistics.py
- motifminer/association.py
- motifminer/merging.py
- motifminer/library.py
- motifminer/mapping.py and motifminer/enrichment.py
- motifminer/io.py
"""

import itertools
import logging
import warnings

import numpy as np
import pytest
from scipy import stats

from motifminer.association import ItemsetRelationGraph, MutualInformationAnalyzer, mutual_information
from motifminer.config import MinerConfig, create_miner_config
from motifminer.enrichment import ACTIVE_INTERACTIONS, INTERACTION_LABEL_MAP, InteractionEnricher, InteractionType
from motifminer.functions import adjacency_matrix, mean_nearest_neighbor_distance, mean_pairwise_distance
from motifminer.io import compose_pdb_lines, parse_pdb_lines, write_merged_motifs
from motifminer.library import ConsensusCluster, ItemsetLibrary, LibraryError
from motifminer.mapping import (
    DataPointLabelMapper,
    ExcludeFamilyMappingRule,
    LabelMappingRule,
    create_mapping_rule,
)
from motifminer.mapping import registry as mapping_registry
from motifminer.merging import SubgraphMerger, component_key
from motifminer.metrics import DistributionMetric, MetricError, MetricKind, find_distribution_metric
from motifminer.mining import CorpusError, DistanceAdjacency, ItemsetMiner
from motifminer.models import DataPoint, DataPointIdentifier, Distribution, Item, Itemset, Significance
from motifminer.sampling import DistributionSampler, draw_occurrence
from motifminer.statistics import FitState, SignificanceEstimator
from motifminer.structure import StructuralMotif, superimpose, superimpose_elements


def _metric_with(kind, distributions):
    """A computed metric holding hand-made distributions."""
    metric = DistributionMetric(kind)
    metric.distributions = {
        itemset: Distribution(itemset, metric.kind, values).freeze() for itemset, values in distributions.items()
    }
    metric.computed = True
    return metric


# --- config ---------------------------------------------------------------


def test_config_defaults():
    """Test default configuration values"""
    config = MinerConfig()
    assert config.minimal_support == 2
    assert config.metric_kind is MetricKind.COHESION
    assert config.ks_cutoff == 0.05
    assert config.association_threshold == 1.0


def test_config_json_round_trip():
    """Test kebab-case JSON serialization of the configuration"""
    config = create_miner_config(minimal_support=3, metric_kind="consensus", seed=42, reference_family="ZN")
    text = config.to_json()
    assert '"minimal-support": 3' in text
    assert '"metric-kind": "consensus"' in text
    assert MinerConfig.from_json(text) == config


@pytest.mark.parametrize(
    "options",
    [
        {"minimal_support": 0},
        {"ks_cutoff": 1.5},
        {"significance_cutoff": -0.1},
        {"minimal_cluster_ratio": 2.0},
        {"level_of_parallelism": 0},
        {"metric_kind": "volume"},
        {"minimal_itemset_size": 4, "maximal_itemset_size": 3},
    ],
)
def test_config_rejects_invalid_values(options):
    """Test that invalid configuration values raise ValueError"""
    with pytest.raises(ValueError):
        create_miner_config(**options)


def test_config_rejects_unknown_options():
    """Test that unknown configuration options are reported"""
    with pytest.raises(ValueError, match="Unknown configuration option"):
        create_miner_config(minimal_suport=2)


# --- models ---------------------------------------------------------------


def test_data_point_identifier_validation_and_order():
    """Test PDB-ID validation, ordering and rendering"""
    with pytest.raises(ValueError):
        DataPointIdentifier("0abc", "A")
    identifiers = [DataPointIdentifier("2abc", "A"), DataPointIdentifier("1abc", "B"), DataPointIdentifier("1abc", "A")]
    assert [str(i) for i in sorted(identifiers)] == ["1abc_A", "1abc_B", "2abc_A"]


def test_itemset_equality_by_labels():
    """Test that itemsets compare by label set only"""
    abstract = Itemset.of("B", "A")
    concrete = Itemset(["A", "B"], origin=DataPointIdentifier("1abc", "A"), item_indices=[0, 1])
    assert abstract == concrete
    assert hash(abstract) == hash(concrete)
    assert len({abstract, concrete}) == 1
    assert abstract.to_simple_string() == "{A,B}"
    assert sorted([Itemset.of("A", "B", "C"), Itemset.of("B"), Itemset.of("A", "C")]) == [
        Itemset.of("B"),
        Itemset.of("A", "C"),
        Itemset.of("A", "B", "C"),
    ]


def test_distribution_freeze():
    """Test that frozen distributions reject observations"""
    distribution = Distribution(Itemset.of("A"), MetricKind.COHESION, [1.0, 2.0])
    assert distribution.mean() == pytest.approx(1.5)
    distribution.freeze()
    with pytest.raises(RuntimeError):
        distribution.add(3.0)
    assert Distribution(Itemset.of("A"), MetricKind.COHESION).mean() is None


def test_significance_ordering():
    """Test ordering by p-value with label ties broken lexically"""
    entries = [Significance(0.01, ("B",)), Significance(0.001, ("C",)), Significance(0.01, ("A",))]
    assert [s.key for s in sorted(entries)] == [("C",), ("A",), ("B",)]


def test_superimpose_recovers_rotation():
    """Test rigid superimposition of a rotated point set"""
    rng = np.random.default_rng(1)
    reference = rng.normal(size=(5, 3))
    angle = 0.7
    rotation = np.array([[np.cos(angle), -np.sin(angle), 0], [np.sin(angle), np.cos(angle), 0], [0, 0, 1]])
    candidate = reference @ rotation.T + np.array([1.0, -2.0, 3.0])

    superimposition = superimpose(reference, candidate)

    assert superimposition.rmsd == pytest.approx(0.0, abs=1e-6)
    np.testing.assert_allclose(superimposition.apply(candidate), reference, atol=1e-6)


def test_superimpose_two_points():
    """Test that a point pair is aligned along its axis without warnings"""
    reference = np.array([[-1.5, 0.0, 0.0], [1.5, 0.0, 0.0]])
    candidate = np.array([[0.0, -1.75, 2.0], [0.0, 1.75, 2.0]])

    with warnings.catch_warnings():
        warnings.simplefilter("error")
        superimposition = superimpose(reference, candidate)

    assert superimposition.rmsd == pytest.approx(0.25)
    np.testing.assert_allclose(superimposition.apply(candidate), [[-1.75, 0.0, 0.0], [1.75, 0.0, 0.0]], atol=1e-9)


def test_element_transformed_onto_reference(element_factory):
    """Test moving an element with read-only coordinates onto a reference"""
    reference = element_factory("1abc", 1, "HIS", (0.0, 0.0, 0.0))
    candidate = element_factory("2abc", 1, "HIS", (5.0, -3.0, 8.0))
    original = candidate.coordinates.copy()

    superimposition = superimpose_elements([reference], [candidate])
    moved = candidate.transformed(superimposition)

    np.testing.assert_allclose(moved.coordinates, reference.coordinates, atol=1e-6)
    np.testing.assert_array_equal(candidate.coordinates, original)
    assert not moved.coordinates.flags.writeable


def test_structural_motif_sorts_and_deduplicates(element_factory):
    """Test canonical ordering of motif elements"""
    first = element_factory("1abc", 2, "HIS", (0, 0, 0))
    second = element_factory("1abc", 1, "CYS", (3, 0, 0))
    motif = StructuralMotif.from_elements([first, second, first])
    assert [e.identifier.serial for e in motif] == [1, 2]


# --- functions ------------------------------------------------------------


def test_distance_kernels():
    """Test numba distance kernels on a right triangle"""
    points = np.array([[0.0, 0.0, 0.0], [3.0, 0.0, 0.0], [0.0, 4.0, 0.0]])
    assert mean_pairwise_distance(points) == pytest.approx((3.0 + 4.0 + 5.0) / 3)
    assert mean_nearest_neighbor_distance(points) == pytest.approx((3.0 + 3.0 + 4.0) / 3)
    matrix = adjacency_matrix(points, 4.5)
    assert matrix[0, 1] and matrix[0, 2] and not matrix[1, 2]
    assert not matrix.diagonal().any()


# --- mining ---------------------------------------------------------------


def test_mining_scenario(scenario_corpus):
    """Test that {A,B} is frequent with support 2 and {A,B,C} never occurs"""
    result = ItemsetMiner(minimal_support=2).mine(scenario_corpus)

    ab = result.get("A", "B")
    assert ab is not None
    assert ab.support == 2
    assert [str(o.origin) for o in result.occurrences(ab)] == ["1abc_A", "2abc_A"]
    assert result.get("A", "B", "C") is None
    assert result.occurrences(Itemset.of("A", "B", "C")) == []
    assert result.get("A", "C") is None


def test_mining_anti_monotonicity(synthetic_corpus):
    """Test that supersets never have higher support than their subsets"""
    result = ItemsetMiner(minimal_support=2).mine(synthetic_corpus)
    frequent = {itemset: itemset.support for itemset in result.itemsets}

    assert result.get("CYS", "HIS", "ZN") is not None
    for itemset, support in frequent.items():
        for size in range(1, len(itemset)):
            for labels in itertools.combinations(itemset.key, size):
                subset = Itemset(labels)
                assert subset in frequent
                assert frequent[subset] >= support


def test_mining_is_deterministic(synthetic_corpus):
    """Test that repeated runs yield identical itemsets and occurrences"""
    first = ItemsetMiner(minimal_support=2).mine(synthetic_corpus)
    second = ItemsetMiner(minimal_support=2).mine(list(reversed(synthetic_corpus)))

    assert [i.key for i in first.itemsets] == [i.key for i in second.itemsets]
    for itemset in first.itemsets:
        assert [(o.origin, o.item_indices) for o in first.occurrences(itemset)] == [
            (o.origin, o.item_indices) for o in second.occurrences(itemset)
        ]


def test_mining_respects_maximal_itemset_size(synthetic_corpus):
    """Test that the search stops at the maximal itemset size"""
    result = ItemsetMiner(minimal_support=2, maximal_itemset_size=2).mine(synthetic_corpus)
    assert max(len(itemset) for itemset in result.itemsets) == 2
    assert len(result.frequent_itemsets(minimal_size=2)) == 3


def test_mining_rejects_duplicate_data_points(scenario_corpus):
    """Test that duplicate data point identifiers are a hard failure"""
    with pytest.raises(CorpusError):
        ItemsetMiner().mine(scenario_corpus + [scenario_corpus[0]])


def test_mining_rejects_leaf_collisions(element_factory):
    """Test that two items referencing one leaf are a hard failure"""
    element = element_factory("1abc", 1, "HIS", (0, 0, 0))
    data_point = DataPoint(DataPointIdentifier("1abc", "A"), [Item("HIS", element), Item("ZN", element)])
    with pytest.raises(CorpusError):
        ItemsetMiner(minimal_support=1).mine([data_point])


def test_mining_result_frame(scenario_corpus):
    """Test tabular export of the mining result"""
    result = ItemsetMiner(minimal_support=2).mine(scenario_corpus)
    frame = result.to_frame()
    assert list(frame["itemset"]) == ["{A}", "{B}", "{C}", "{A,B}"]
    assert list(frame["support"]) == [3, 3, 3, 2]


def test_distance_adjacency_skips_items_without_elements(element_factory):
    """Test that items without structure have no neighbors"""
    data_point = DataPoint(
        DataPointIdentifier("1abc", "A"),
        [
            Item("A", element_factory("1abc", 1, "A", (0, 0, 0))),
            Item("B"),
            Item("C", element_factory("1abc", 3, "C", (2, 0, 0))),
        ],
    )
    neighbors = DistanceAdjacency(6.5)(data_point)
    assert neighbors == [frozenset({2}), frozenset(), frozenset({0})]


# --- metrics --------------------------------------------------------------


def test_metric_values_scenario(scenario_corpus):
    """Test cohesion, affinity and consensus of {A,B}"""
    result = ItemsetMiner(minimal_support=2).mine(scenario_corpus)
    metrics = [DistributionMetric(kind) for kind in MetricKind]
    for metric in metrics:
        metric.compute(result)

    ab = result.get("A", "B")
    assert ab.cohesion == pytest.approx(3.25)
    assert ab.affinity == pytest.approx(3.25)
    consensus = find_distribution_metric(metrics, "consensus").distribution(ab)
    np.testing.assert_allclose(consensus.values, [0.0, 0.25], atol=1e-6)
    assert all(np.isfinite(metric.distribution(ab).values).all() for metric in metrics)


def test_metric_unavailable_for_single_occurrence(scenario_corpus):
    """Test that itemsets with one occurrence get an empty distribution"""
    result = ItemsetMiner(minimal_support=1).mine(scenario_corpus)
    metric = DistributionMetric(MetricKind.COHESION)
    metric.compute(result)

    ac = result.get("A", "C")
    assert metric.distribution(ac).is_empty
    assert ac.cohesion is None


def test_missing_metric_kind_is_fatal(scenario_corpus):
    """Test that requesting an uncomputed metric kind fails explicitly"""
    result = ItemsetMiner(minimal_support=2).mine(scenario_corpus)
    metric = DistributionMetric(MetricKind.COHESION)
    metric.compute(result)

    with pytest.raises(MetricError):
        find_distribution_metric([metric], MetricKind.AFFINITY)
    with pytest.raises(MetricError):
        find_distribution_metric([DistributionMetric(MetricKind.AFFINITY)], MetricKind.AFFINITY)
    with pytest.raises(MetricError):
        metric.distribution(Itemset.of("X", "Y"))


# --- sampling -------------------------------------------------------------


def test_draw_occurrence_without_adjacency(scenario_corpus):
    """Test that impossible draws give up"""
    result = ItemsetMiner(minimal_support=2, adjacency=DistanceAdjacency(0.5)).mine(scenario_corpus)
    rng = np.random.default_rng(0)
    assert draw_occurrence(result.data_points, result.neighbors, 2, rng, max_attempts=10) is None
    single = draw_occurrence(result.data_points, result.neighbors, 1, rng)
    assert single is not None and len(single) == 1


def test_sampler_is_deterministic(synthetic_corpus):
    """Test that a fixed seed reproduces the background distributions"""
    result = ItemsetMiner(minimal_support=2).mine(synthetic_corpus)
    targets = result.frequent_itemsets(minimal_size=2)

    first = DistributionSampler(result, sample_size=25, seed=5).sample(targets)
    second = DistributionSampler(result, sample_size=25, seed=5).sample(targets)

    assert list(first) == sorted(targets)
    for itemset in targets:
        assert first[itemset].frozen
        assert len(first[itemset]) == 25
        assert first[itemset].observations == second[itemset].observations


def test_sampler_independent_of_parallelism(synthetic_corpus):
    """Test that the background does not depend on the number of workers"""
    result = ItemsetMiner(minimal_support=2).mine(synthetic_corpus)
    targets = result.frequent_itemsets(minimal_size=2)

    serial = DistributionSampler(result, sample_size=20, seed=9, level_of_parallelism=1).sample(targets)
    parallel = DistributionSampler(result, sample_size=20, seed=9, level_of_parallelism=2).sample(targets)

    for itemset in targets:
        assert serial[itemset].observations == parallel[itemset].observations


def test_sampler_drops_incomplete_groups(scenario_corpus, caplog):
    """Test that groups missing occurrences never become background samples"""
    result = ItemsetMiner(minimal_support=2).mine(scenario_corpus)
    target = result.get("A", "B")
    assert len(result.occurrences(target)) == 2

    caplog.set_level(logging.DEBUG, logger="motifminer.sampling")
    background = DistributionSampler(result, sample_size=50, seed=3, max_draw_attempts=1).sample([target])

    assert len(background[target]) < 50
    assert "Dropped background group of" in caplog.text
    assert "background samples drawn" in caplog.text


# --- statistics -----------------------------------------------------------


def test_estimator_rejects_poor_fit():
    """Test that a bimodal background is rejected regardless of the observed value"""
    rng = np.random.default_rng(2024)
    values = np.concatenate([rng.normal(0.4, 0.01, 500), rng.normal(0.6, 0.01, 500)])
    itemset = Itemset.of("A", "B")
    itemset.cohesion = 0.0

    estimator = SignificanceEstimator(MetricKind.COHESION, ks_cutoff=0.05, significance_cutoff=0.05)
    ranking = estimator.estimate({itemset: Distribution(itemset, MetricKind.COHESION, values)})

    assert ranking == []
    assert estimator.state(itemset) is FitState.REJECTED_FOR_FIT
    assert itemset.p_value is None


def test_estimator_ks_scenario():
    """Test the fit decision against scipy's KS test on a seeded normal background"""
    rng = np.random.default_rng(7)
    values = rng.normal(0.5, 0.1, 1000)
    expected_ks = stats.kstest(values, "norm", args=(values.mean(), values.std(ddof=1))).pvalue

    for observed in (0.0, 0.5, 1.0):
        itemset = Itemset.of("A", "B")
        itemset.cohesion = observed
        estimator = SignificanceEstimator(MetricKind.COHESION, ks_cutoff=0.05)
        estimator.estimate({itemset: Distribution(itemset, MetricKind.COHESION, values)})
        rejected = estimator.state(itemset) is FitState.REJECTED_FOR_FIT
        assert rejected == (expected_ks < 0.05)
        assert 0.0 <= estimator.fits[itemset].ks_p_value <= 1.0


def test_estimator_states_and_ranking():
    """Test p-values, terminal states and the ranking order"""
    values = stats.norm.ppf(np.linspace(0.001, 0.999, 999), loc=0.5, scale=0.1)
    ab, ac, bc, cd, de = (Itemset.of(*pair) for pair in ["AB", "AC", "BC", "CD", "DE"])
    ab.cohesion = 0.2
    ac.cohesion = 0.2
    bc.cohesion = 0.5
    cd.cohesion = None
    background = {
        itemset: Distribution(itemset, MetricKind.COHESION, values) for itemset in (ab, ac, bc, cd)
    }
    background[de] = Distribution(de, MetricKind.COHESION, [0.3] * 10)

    estimator = SignificanceEstimator(MetricKind.COHESION)
    ranking = estimator.estimate(background)

    expected = stats.norm.cdf(0.2, loc=values.mean(), scale=values.std(ddof=1))
    assert [itemset for _, itemset in ranking] == [ab, ac]
    assert ranking[0][0].p_value == pytest.approx(expected)
    assert ab.p_value == pytest.approx(expected)
    assert estimator.state(ab) is FitState.SIGNIFICANT
    assert estimator.state(bc) is FitState.INSIGNIFICANT
    assert estimator.state(cd) is FitState.UNAVAILABLE
    assert estimator.state(de) is FitState.REJECTED_FOR_FIT
    assert all(state.terminal for state in estimator.states.values())

    frame = estimator.to_frame()
    assert list(frame["itemset"]) == ["{A,B}", "{A,C}"]


# --- association ----------------------------------------------------------


def test_mutual_information_symmetry():
    """Test that mutual information is symmetric and non-negative"""
    rng = np.random.default_rng(3)
    x = rng.normal(5, 2, 200)
    y = np.concatenate([x[:150] + rng.normal(0, 1, 150), np.zeros(30)])
    assert y.size != x.size
    assert mutual_information(x, y) == pytest.approx(mutual_information(y, x))
    assert mutual_information(x, y) >= 0.0


def test_mutual_information_caps_to_shorter():
    """Test that the longer distribution is truncated"""
    x = np.array([0.0, 1.0, 2.0, 0.0, 1.0, 2.0])
    assert mutual_information(x, x[:3]) == pytest.approx(mutual_information(x[:3], x[:3]))
    assert mutual_information(x, []) == 0.0


def test_relation_graph_scenario():
    """Test that one strong pair and an isolated itemset give two components"""
    a, b, c = Itemset.of("A", "B"), Itemset.of("B", "C"), Itemset.of("C", "D")
    values = [0.2, 1.2, 2.2] * 30
    metric = _metric_with(
        MetricKind.COHESION, {a: values, b: [value + 0.5 for value in values], c: [5.0] * 90}
    )

    analyzer = MutualInformationAnalyzer([metric], MetricKind.COHESION, association_threshold=1.0)
    graph = analyzer.analyze([a, b, c])

    assert analyzer.scores[0][0] == pytest.approx(np.log2(3))
    assert len(graph) == 3
    assert len(graph.edges) == 1
    components = graph.disconnected_subgraphs()
    assert len(components) == 2
    assert [[node.itemset for node in component] for component in components] == [[a, b], [c]]


def test_relation_graph_reuses_nodes():
    """Test that equal itemsets map onto one node"""
    graph = ItemsetRelationGraph()
    first = graph.add_itemset(Itemset.of("A", "B"))
    again = graph.add_itemset(Itemset(["B", "A"], origin=DataPointIdentifier("1abc", "A")))
    graph.add_edge(Itemset.of("A", "B"), Itemset.of("C"), 2.0)
    assert first is again
    assert len(graph) == 2
    assert graph.index_of(Itemset.of("C")) == 1
    assert Itemset.of("A", "B") in graph


def test_analyzer_skips_empty_distributions():
    """Test that pairs with an unavailable metric are not scored"""
    a, b = Itemset.of("A", "B"), Itemset.of("B", "C")
    metric = _metric_with(MetricKind.COHESION, {a: [1.0, 2.0], b: []})
    analyzer = MutualInformationAnalyzer([metric])
    graph = analyzer.analyze([a, b])
    assert analyzer.scores == []
    assert len(graph.disconnected_subgraphs()) == 2


# --- merging --------------------------------------------------------------


def _graph_of(*itemsets):
    graph = ItemsetRelationGraph()
    for itemset in itemsets:
        graph.add_itemset(itemset)
    for first, second in zip(itemsets, itemsets[1:]):
        graph.add_edge(first, second, 2.0)
    return graph


def test_merge_completeness(synthetic_corpus):
    """Test that merged motifs hold exactly the union of occurrence elements"""
    result = ItemsetMiner(minimal_support=2).mine(synthetic_corpus)
    his_cys, his_zn = result.get("CYS", "HIS"), result.get("HIS", "ZN")

    merged = SubgraphMerger(result).merge(_graph_of(his_cys, his_zn))

    assert len(merged) == len(synthetic_corpus)
    for motif in merged:
        assert motif.key == "CYS-HIS-ZN"
        expected = {
            item.element.identifier
            for itemset in (his_cys, his_zn)
            for occurrence in result.occurrences(itemset)
            if occurrence.origin == motif.identifier
            for item in occurrence.items
        }
        identifiers = motif.motif.identifiers
        assert len(identifiers) == len(set(identifiers))
        assert set(identifiers) == expected
        assert list(identifiers) == sorted(identifiers)
        assert not motif.aligned


def test_merge_aligns_onto_reference(synthetic_corpus):
    """Test superimposition of merged motifs onto the first ZN element"""
    result = ItemsetMiner(minimal_support=2).mine(synthetic_corpus)
    merged = SubgraphMerger(result, reference_family="ZN").merge(_graph_of(result.get("CYS", "HIS", "ZN")))

    assert all(motif.aligned for motif in merged)
    reference = [e for e in merged[0].motif if e.family == "ZN"][0]
    for motif in merged:
        zinc = [e for e in motif.motif if e.family == "ZN"][0]
        np.testing.assert_allclose(zinc.coordinates, reference.coordinates, atol=1e-6)


def test_merge_warns_on_missing_reference(synthetic_corpus, caplog):
    """Test that motifs without a reference element stay unaligned with a warning"""
    result = ItemsetMiner(minimal_support=2).mine(synthetic_corpus)
    merger = SubgraphMerger(result, reference_family="ZN")

    with caplog.at_level(logging.WARNING, logger="motifminer.merging"):
        merged = merger.merge(_graph_of(result.get("CYS", "HIS")))

    assert len(merged) == len(synthetic_corpus)
    assert not any(motif.aligned for motif in merged)
    assert "left unaligned" in caplog.text


def test_component_key():
    """Test deterministic component keys"""
    assert component_key([Itemset.of("ZN", "HIS"), Itemset.of("HIS", "CYS")]) == "CYS-HIS-ZN"


# --- library --------------------------------------------------------------


def test_library_round_trip(synthetic_corpus, temp_dir):
    """Test that a written library reads back equal"""
    result = ItemsetMiner(minimal_support=2).mine(synthetic_corpus)
    occurrences = result.occurrences(result.get("CYS", "HIS", "ZN"))
    library = ItemsetLibrary.from_occurrences(occurrences, minimal_itemset_size=2)

    path = temp_dir / "library.json.gz"
    library.write_to_path(path)
    restored = ItemsetLibrary.read_from_path(path)

    assert len(restored) == len(synthetic_corpus)
    assert restored == library
    assert ItemsetLibrary.from_json(library.to_json()) == library
    assert restored.entries[0].itemset == ("CYS", "HIS", "ZN")
    assert [e.family for e in restored.entries[0].motif()] == ["HIS", "CYS", "ZN"]


def test_library_requires_occurrences():
    """Test that abstract itemsets cannot form a library"""
    with pytest.raises(LibraryError):
        ItemsetLibrary.from_occurrences([Itemset.of("A", "B")], minimal_itemset_size=2)
    assert len(ItemsetLibrary.from_occurrences([Itemset.of("A")], minimal_itemset_size=2)) == 0


def test_library_from_clusters_ratio(synthetic_corpus):
    """Test the minimal cluster ratio filter"""
    result = ItemsetMiner(minimal_support=2).mine(synthetic_corpus)
    motif = result.occurrences(result.get("CYS", "HIS"))[0].motif
    clustered = {
        Itemset.of("CYS", "HIS"): [ConsensusCluster(3, motif), ConsensusCluster(1, motif)],
        Itemset.of("HIS", "ZN"): [ConsensusCluster(2, motif), ConsensusCluster(2, motif), ConsensusCluster(2, motif)],
        Itemset.of("HIS"): [ConsensusCluster(5, motif)],
    }
    library = ItemsetLibrary.from_clusters(clustered, minimal_itemset_size=2, minimal_cluster_ratio=0.5)
    assert library.itemsets() == [("CYS", "HIS")]


# --- mapping and enrichment -----------------------------------------------


def test_label_mapper(data_point_factory):
    """Test exclusion and relabeling of items"""
    data_point = data_point_factory("1abc", [("HIS", (0, 0, 0)), ("UNK", (1, 0, 0)), ("CYS", (2, 0, 0))])
    mapper = DataPointLabelMapper(
        ExcludeFamilyMappingRule("UNK"), LabelMappingRule({"HIS": "H"}, drop_unmapped=False)
    )
    mapped = mapper.map_data_point(data_point)
    assert mapped.labels == ["H", "CYS"]
    assert data_point.labels == ["HIS", "UNK", "CYS"]


def test_mapping_registry():
    """Test building rules from their dictionary form"""
    rule = create_mapping_rule({"type": "exclude-family", "families": ["UNK"]})
    assert isinstance(rule, ExcludeFamilyMappingRule)
    assert rule.to_dict() == {"type": "exclude-family", "families": ["UNK"]}
    assert mapping_registry.get("label-map") is LabelMappingRule
    with pytest.raises(ValueError):
        create_mapping_rule({"type": "no-such-rule"})


def test_interaction_constants_are_read_only():
    """Test immutability of the interaction tables"""
    assert INTERACTION_LABEL_MAP[InteractionType.HYDROGEN_BOND] == "hyb"
    assert InteractionType.HYDROPHOBIC not in ACTIVE_INTERACTIONS
    with pytest.raises(TypeError):
        INTERACTION_LABEL_MAP[InteractionType.HYDROGEN_BOND] = "xxx"


def test_interaction_enricher(data_point_factory):
    """Test that active interactions become pseudo-atom items"""
    data_point = data_point_factory("1abc", [("HIS", (0, 0, 0)), ("CYS", (5, 0, 0))])

    def provider(identifier):
        return {
            "HYDROGEN_BOND": [[[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]]],
            "HYDROPHOBIC": [[[1.0, 1.0, 1.0]]],
        }

    enriched = InteractionEnricher(provider).enrich(data_point)

    assert enriched.labels == ["HIS", "CYS", "hyb"]
    element = enriched.items[-1].element
    assert element.identifier.serial == 3
    assert element.identifier.model == 0
    assert element.atom_names == ("CA",)
    np.testing.assert_allclose(element.centroid(), [1.0, 0.0, 0.0])


def test_interaction_enricher_failure(data_point_factory, caplog):
    """Test that provider failures leave the data point unchanged"""
    data_point = data_point_factory("1abc", [("HIS", (0, 0, 0))])

    def provider(identifier):
        raise OSError("service unavailable")

    with caplog.at_level(logging.WARNING, logger="motifminer.enrichment"):
        enriched = InteractionEnricher(provider).enrich(data_point)

    assert enriched is data_point
    assert "service unavailable" in caplog.text
    assert InteractionEnricher(lambda identifier: None).enrich(data_point) is data_point


# --- io -------------------------------------------------------------------


def test_pdb_lines_round_trip(element_factory):
    """Test composing and parsing PDB records"""
    elements = [element_factory("1abc", 7, "HIS", (1.5, -2.25, 3.0)), element_factory("1abc", 9, "ZN", (0, 0, 0))]
    lines = compose_pdb_lines(elements)

    assert lines[-1] == "END"
    assert lines[0].startswith("ATOM")
    assert lines[3].startswith("HETATM")
    assert lines[0][17:20] == "HIS"
    assert lines[0][22:26] == "   7"

    motif = parse_pdb_lines(lines, pdb_identifier="1abc", model=1)
    assert [e.family for e in motif] == ["HIS", "ZN"]
    np.testing.assert_allclose(motif.elements[0].coordinates, elements[0].coordinates, atol=1e-3)


def test_write_merged_motifs_failure(synthetic_corpus, temp_dir, caplog):
    """Test that unwritable motifs are reported and skipped"""
    result = ItemsetMiner(minimal_support=2).mine(synthetic_corpus)
    merged = SubgraphMerger(result).merge(_graph_of(result.get("CYS", "HIS")))
    blocker = temp_dir / "blocked"
    blocker.write_text("not a directory")

    with caplog.at_level(logging.WARNING, logger="motifminer.io"):
        written = write_merged_motifs(merged, blocker)

    assert written == []
    assert "Could not write merged motif" in caplog.text
