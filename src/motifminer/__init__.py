"""
motifminer
==================

This package mines recurring combinations of labeled structural elements,
so called itemsets, from a corpus of macromolecular structures.  Frequent
itemsets are scored by the geometric agreement of their occurrences,
validated against Monte-Carlo background models and related to each other
by the information their metric distributions share.  Related itemsets are
finally merged into one consensus motif per structure.

The top level modules expose the following key components:

``models``
    Data points, items, itemsets, metric distributions and significance keys.

``structure``
    Leaf substructures, structural motifs and rigid superimposition.

``mining``
    Level-wise frequent itemset mining with occurrence extraction.

``metrics``
    Cohesion, consensus and affinity distributions of frequent itemsets.

``sampling``
    Parallel sampling of background distributions.

``statistics``
    Normal-model significance estimation with a Kolmogorov-Smirnov fit check.

``association``
    Mutual information between itemsets and the itemset relation graph.

``merging``
    Merging of the relation graph's components into consensus motifs.

``library``
    Serializable itemset libraries.

``mapping`` and ``enrichment``
    Optional preprocessing of data points before mining.

``pipeline``
    High level orchestrator running all stages.
"""

__version__ = "0.1.0"
