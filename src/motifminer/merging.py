"""
merging
=======

Merges the occurrences of related itemsets into one motif per data point.

Every connected component of the relation graph is merged independently.
The structural elements of all occurrences of the component's itemsets are
united per data point.  Optionally the merged motifs are superimposed onto a
reference element of a configured family, such as a ligand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from motifminer.association import ItemsetNode, ItemsetRelationGraph
from motifminer.mining import MiningResult
from motifminer.models import DataPointIdentifier, Itemset
from motifminer.structure import StructuralElement, StructuralMotif, superimpose_elements


@dataclass(frozen=True)
class MergedMotif:
    """Merged motif of one data point within one component.

    Attributes
    ----------
    key : str
        Hyphen-joined sorted labels of the component.
    identifier : DataPointIdentifier
        Data point the motif was merged from.
    motif : StructuralMotif
        Merged and, if requested, aligned motif.
    aligned : bool
        Whether the motif was superimposed onto the reference.
    """

    key: str
    identifier: DataPointIdentifier
    motif: StructuralMotif
    aligned: bool = False

    @property
    def file_name(self) -> str:
        return f"{self.identifier}.pdb"


def component_key(itemsets: Iterable[Itemset]) -> str:
    """Deterministic key of a component: its labels sorted, unique and hyphen-joined."""
    labels = sorted({str(label) for itemset in itemsets for label in itemset.labels})
    return "-".join(labels)


def find_family_element(motif: StructuralMotif, family: str) -> Optional[StructuralElement]:
    """Return the first element of the given family in canonical order."""
    for element in motif:
        if element.family == family:
            return element
    return None


class SubgraphMerger:
    """
    Merges the components of an itemset relation graph.

    Parameters
    ----------
    result : MiningResult
        Mining run holding the occurrences of the graph's itemsets.
    reference_family : str, optional
        Family of the element every merged motif is superimposed onto.
    """

    def __init__(self, result: MiningResult, reference_family: Optional[str] = None):
        self.result = result
        self.reference_family = reference_family
        self.logger = logging.getLogger(__name__)

    def merge(self, graph: ItemsetRelationGraph) -> List[MergedMotif]:
        """Merge every connected component of the graph."""
        merged = []
        components = graph.disconnected_subgraphs()
        self.logger.info(f"Merging {len(components)} disconnected subgraphs")
        for component in components:
            merged.extend(self.merge_component(component))
        return merged

    def merge_component(self, component: Sequence[ItemsetNode]) -> List[MergedMotif]:
        itemsets = [node.itemset for node in component]
        key = component_key(itemsets)
        occurrences = [occurrence for itemset in itemsets for occurrence in self.result.occurrences(itemset)]
        motifs = self.merge_occurrences(occurrences)
        self.logger.debug(f"Component {key}: {len(occurrences)} occurrences in {len(motifs)} data points")

        if self.reference_family is None:
            return [MergedMotif(key=key, identifier=identifier, motif=motif) for identifier, motif in motifs.items()]
        return self.align(key, motifs)

    @staticmethod
    def merge_occurrences(occurrences: Iterable[Itemset]) -> Dict[DataPointIdentifier, StructuralMotif]:
        """Unite the structural elements of occurrences per data point, ordered by identifier."""
        grouped: Dict[DataPointIdentifier, List[StructuralElement]] = {}
        for occurrence in occurrences:
            elements = grouped.setdefault(occurrence.origin, [])
            elements.extend(item.element for item in occurrence.items if item.element is not None)
        return {
            identifier: StructuralMotif.from_elements(grouped[identifier])
            for identifier in sorted(grouped)
            if grouped[identifier]
        }

    def align(self, key: str, motifs: Dict[DataPointIdentifier, StructuralMotif]) -> List[MergedMotif]:
        """Superimpose every motif onto the reference family element of the first motif holding one."""
        reference = None
        for identifier, motif in motifs.items():
            reference = find_family_element(motif, self.reference_family)
            if reference is not None:
                self.logger.debug(f"Component {key}: reference {reference.identifier} from {identifier}")
                break

        merged = []
        for identifier, motif in motifs.items():
            candidate = find_family_element(motif, self.reference_family) if reference is not None else None
            if candidate is None:
                self.logger.warning(
                    f"Component {key}: no {self.reference_family} element in {identifier}, motif left unaligned"
                )
                merged.append(MergedMotif(key=key, identifier=identifier, motif=motif))
                continue
            superimposition = superimpose_elements([reference], [candidate])
            merged.append(
                MergedMotif(key=key, identifier=identifier, motif=motif.transformed(superimposition), aligned=True)
            )
        return merged
