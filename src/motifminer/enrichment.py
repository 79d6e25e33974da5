"""
enrichment
==========

Optional enrichment of data points with interaction pseudo-items.

Interaction data comes from an injected provider, for instance a client of a
protein-ligand interaction profiling service.  The provider maps a data point
identifier to ``{interaction type: [coordinates, ...]}`` where each entry
lists the coordinates of the atoms taking part in one interaction, or returns
``None`` when nothing is known.  Each interaction of an active type is added
as an item holding one pseudo-atom at the centroid of those coordinates.
"""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Sequence

import numpy as np

from motifminer.models import DataPoint, DataPointIdentifier, Item
from motifminer.structure import LeafIdentifier, StructuralElement


class InteractionType(Enum):
    HALOGEN_BOND = "HALOGEN_BOND"
    HYDROGEN_BOND = "HYDROGEN_BOND"
    HYDROPHOBIC = "HYDROPHOBIC"
    METAL_COMPLEX = "METAL_COMPLEX"
    PI_CATION = "PI_CATION"
    PI_STACKING = "PI_STACKING"
    SALT_BRIDGE = "SALT_BRIDGE"
    WATER_BRIDGE = "WATER_BRIDGE"


INTERACTION_LABEL_MAP: Mapping[InteractionType, str] = MappingProxyType(
    {
        InteractionType.HALOGEN_BOND: "hal",
        InteractionType.HYDROGEN_BOND: "hyb",
        InteractionType.HYDROPHOBIC: "hyp",
        InteractionType.METAL_COMPLEX: "mec",
        InteractionType.PI_CATION: "pic",
        InteractionType.PI_STACKING: "pis",
        InteractionType.SALT_BRIDGE: "sab",
        InteractionType.WATER_BRIDGE: "wab",
    }
)

ACTIVE_INTERACTIONS = (
    InteractionType.HYDROGEN_BOND,
    InteractionType.METAL_COMPLEX,
    InteractionType.PI_CATION,
    InteractionType.PI_STACKING,
    InteractionType.SALT_BRIDGE,
)

PSEUDO_ATOM_NAME = "CA"

InteractionProvider = Callable[[DataPointIdentifier], Optional[Mapping]]


class InteractionEnricher:
    """
    Adds interaction items to data points.

    Parameters
    ----------
    provider : callable
        ``identifier -> {interaction type: [coordinates, ...]}`` or None.
    active_interactions : sequence of InteractionType
        Interaction types that become items.
    """

    def __init__(
        self, provider: InteractionProvider, active_interactions: Sequence[InteractionType] = ACTIVE_INTERACTIONS
    ):
        self.provider = provider
        self.active_interactions = tuple(active_interactions)
        self.logger = logging.getLogger(__name__)

    def enrich(self, data_point: DataPoint) -> DataPoint:
        """Return the data point extended by its interaction items, or unchanged if none are available."""
        self.logger.info(f"Enriching data point {data_point.identifier} with interaction information")
        try:
            interactions = self.provider(data_point.identifier)
        except Exception as exc:
            self.logger.warning(f"Failed to obtain interactions for {data_point.identifier}: {exc}")
            return data_point
        if not interactions:
            return data_point

        try:
            by_type = {InteractionType(key): value for key, value in interactions.items()}
            added = self._interaction_items(data_point, by_type)
        except (TypeError, ValueError) as exc:
            self.logger.warning(f"Malformed interactions for {data_point.identifier}: {exc}")
            return data_point

        self.logger.debug(f"Added {len(added)} interaction items to {data_point.identifier}")
        return data_point.with_items(list(data_point.items) + added)

    def _interaction_items(self, data_point: DataPoint, interactions: Mapping[InteractionType, List]) -> List[Item]:
        serials = [item.element.identifier.serial for item in data_point.items if item.element is not None]
        next_serial = max(serials, default=0) + 1

        items = []
        for interaction_type in self.active_interactions:
            label = INTERACTION_LABEL_MAP[interaction_type]
            for coordinates in interactions.get(interaction_type, ()):
                points = np.asarray(coordinates, dtype=np.float64).reshape(-1, 3)
                if points.shape[0] == 0:
                    raise ValueError(f"{interaction_type.value} interaction without coordinates")
                identifier = LeafIdentifier(
                    pdb_identifier=data_point.identifier.pdb_identifier,
                    model=0,
                    chain=data_point.identifier.chain_identifier,
                    serial=next_serial,
                )
                element = StructuralElement.from_atoms(identifier, label, {PSEUDO_ATOM_NAME: points.mean(axis=0)})
                items.append(Item(label, element))
                next_serial += 1
        return items
