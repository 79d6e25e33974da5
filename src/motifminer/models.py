"""
Data Model Module
=================

Core data containers shared by all stages of the miner.

- Immutable data points and items built by external readers
- Itemsets compared by their label set only, independent of origin
- Append-only metric distributions
- Sortable significance keys
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from dataclasses import field as dc_field
from dataclasses import replace
from typing import Any, FrozenSet, Generic, Iterable, Iterator, List, Optional, Protocol, Tuple, TypeVar

import numpy as np

from motifminer.structure import StructuralElement, StructuralMotif

PDB_IDENTIFIER_PATTERN = re.compile(r"[1-9][A-Za-z0-9]{3}")


class Comparable(Protocol):
    """Total-order capability required from item labels."""

    def __lt__(self, other: Any) -> bool: ...


LabelT = TypeVar("LabelT", bound=Comparable)


@dataclass(frozen=True, order=True)
class DataPointIdentifier:
    """PDB-ID and chain of origin of a data point, ordered by PDB-ID then chain."""

    pdb_identifier: str
    chain_identifier: str = ""

    def __post_init__(self):
        if not PDB_IDENTIFIER_PATTERN.search(self.pdb_identifier):
            raise ValueError(f"'{self.pdb_identifier}' is no valid PDB-ID")

    def __str__(self) -> str:
        return f"{self.pdb_identifier}_{self.chain_identifier}"


@dataclass(frozen=True)
class Item(Generic[LabelT]):
    """A labeled item with an optional reference to the structural element it was built from."""

    label: LabelT
    element: Optional[StructuralElement] = dc_field(default=None, compare=False, repr=False)

    def with_label(self, label: LabelT) -> "Item[LabelT]":
        return replace(self, label=label)


@dataclass(frozen=True)
class DataPoint(Generic[LabelT]):
    """An observation of the corpus: one chain of one structure and its items."""

    identifier: DataPointIdentifier
    items: Tuple[Item[LabelT], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    @property
    def labels(self) -> List[LabelT]:
        return [item.label for item in self.items]

    def with_items(self, items: Iterable[Item[LabelT]]) -> "DataPoint[LabelT]":
        return DataPoint(identifier=self.identifier, items=tuple(items))

    def __str__(self) -> str:
        return f"{self.identifier}[{len(self.items)} items]"


class Itemset(Generic[LabelT]):
    """
    A set of unique labels treated as one pattern.

    Abstract itemsets (candidates and frequent patterns) carry no origin.
    Concrete occurrences additionally record the data point they were
    extracted from, the indices of the matching items in that data point,
    the items themselves (ordered by label) and the structural motif built
    from the items' elements.  Equality and hashing only consider the labels.
    """

    def __init__(
        self,
        labels: Iterable[LabelT],
        origin: Optional[DataPointIdentifier] = None,
        item_indices: Optional[Iterable[int]] = None,
        items: Optional[Iterable[Item[LabelT]]] = None,
    ):
        self.labels: FrozenSet[LabelT] = frozenset(labels)
        if not self.labels:
            raise ValueError("An itemset requires at least one label")
        self.origin = origin
        self.item_indices: Optional[FrozenSet[int]] = frozenset(item_indices) if item_indices is not None else None
        self.items: Tuple[Item[LabelT], ...] = tuple(sorted(items, key=lambda item: item.label)) if items else ()

        elements = [item.element for item in self.items]
        if self.items and all(element is not None for element in elements):
            self.motif: Optional[StructuralMotif] = StructuralMotif.from_elements(elements)
        else:
            self.motif = None

        self.support: int = 0
        self.cohesion: Optional[float] = None
        self.consensus: Optional[float] = None
        self.affinity: Optional[float] = None
        self.p_value: Optional[float] = None
        self.ks: Optional[float] = None

    @classmethod
    def of(cls, *labels: LabelT) -> "Itemset[LabelT]":
        return cls(labels)

    @property
    def key(self) -> Tuple[LabelT, ...]:
        """Sorted labels, used for deterministic ordering and tie-breaking."""
        return tuple(sorted(self.labels))

    @property
    def sort_key(self) -> Tuple[int, Tuple[LabelT, ...]]:
        return len(self.labels), self.key

    @property
    def is_occurrence(self) -> bool:
        return self.origin is not None

    def __eq__(self, other) -> bool:
        if not isinstance(other, Itemset):
            return NotImplemented
        return self.labels == other.labels

    def __hash__(self) -> int:
        return hash(self.labels)

    def __lt__(self, other: "Itemset") -> bool:
        return self.sort_key < other.sort_key

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self) -> Iterator[LabelT]:
        return iter(self.key)

    def __contains__(self, label) -> bool:
        return label in self.labels

    def issubset(self, other: "Itemset") -> bool:
        return self.labels <= other.labels

    def to_simple_string(self) -> str:
        return "{" + ",".join(str(label) for label in self.key) + "}"

    def __repr__(self) -> str:
        if self.origin is None:
            return f"Itemset({self.to_simple_string()})"
        return f"Itemset({self.to_simple_string()}@{self.origin})"


class Distribution:
    """Observations of one metric kind for one itemset.

    Observations are appended during accumulation; :meth:`freeze` makes the
    distribution read-only.  An empty distribution means the metric is
    unavailable for the itemset, not that it is zero.
    """

    def __init__(self, itemset: Itemset, kind: Any, observations: Optional[Iterable[float]] = None):
        self.itemset = itemset
        self.kind = kind
        self._observations: List[float] = []
        self._frozen = False
        if observations is not None:
            self.extend(observations)

    def add(self, value: float) -> None:
        if self._frozen:
            raise RuntimeError(f"Distribution of {self.itemset!r} is frozen")
        self._observations.append(float(value))

    def extend(self, values: Iterable[float]) -> None:
        for value in values:
            self.add(value)

    def freeze(self) -> "Distribution":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def observations(self) -> Tuple[float, ...]:
        return tuple(self._observations)

    @property
    def values(self) -> np.ndarray:
        return np.array(self._observations, dtype=np.float64)

    @property
    def is_empty(self) -> bool:
        return not self._observations

    def mean(self) -> Optional[float]:
        if self.is_empty:
            return None
        return float(np.mean(self._observations))

    def __len__(self) -> int:
        return len(self._observations)

    def __repr__(self) -> str:
        return f"Distribution({self.itemset.to_simple_string()}, {self.kind}, n={len(self)})"


@dataclass(frozen=True, order=True)
class Significance:
    """P-value and Kolmogorov-Smirnov fit value of an itemset.

    Ordered by p-value ascending, ties broken by the itemset's sorted labels.
    """

    p_value: float
    key: Tuple[Any, ...] = ()
    ks: float = dc_field(default=float("nan"), compare=False)

    def __str__(self) -> str:
        return f"Significance(p_value={self.p_value:.4g}, ks={self.ks:.4g})"
