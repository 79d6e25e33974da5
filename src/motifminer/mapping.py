"""
mapping
=======

Label mapping applied to data points before mining.

Mapping rules turn an item into a relabeled item or drop it by returning
``None``.  Rules are registered under a type key, so they can be built from
configuration dictionaries such as ``{"type": "exclude-family", "families": ["UNK"]}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from motifminer.models import DataPoint, Item


class MappingRuleRegistry:
    """Registry for mapping rules using decorator pattern."""

    def __init__(self):
        self._rules: Dict[str, type] = {}

    def register(self, key: str):
        """Decorator to register a mapping rule class."""

        def decorator(rule_cls):
            self._rules[key] = rule_cls
            rule_cls.type_key = key
            logging.getLogger(__name__).debug(f"Registered mapping rule: {key} -> {rule_cls.__name__}")
            return rule_cls

        return decorator

    def get(self, key: str) -> type:
        """Get rule class by key."""
        if key not in self._rules:
            available = list(self._rules.keys())
            raise ValueError(f"Mapping rule '{key}' not found. Available: {available}")
        return self._rules[key]

    @property
    def keys(self):
        return list(self._rules)


registry = MappingRuleRegistry()


class MappingRule:
    """Base of all rules: maps an item to a new item, or to None to drop it."""

    type_key = ""

    def map_item(self, item: Item) -> Optional[Item]:
        raise NotImplementedError

    def __call__(self, item: Item) -> Optional[Item]:
        return self.map_item(item)


@registry.register("exclude-family")
class ExcludeFamilyMappingRule(MappingRule):
    """Drops items whose structural element (or, lacking one, whose label) belongs to an excluded family."""

    def __init__(self, *families: str):
        self.families = frozenset(families)

    def map_item(self, item: Item) -> Optional[Item]:
        family = item.element.family if item.element is not None else item.label
        if family in self.families:
            return None
        return item

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type_key, "families": sorted(self.families)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExcludeFamilyMappingRule":
        return cls(*data.get("families", ()))


@registry.register("label-map")
class LabelMappingRule(MappingRule):
    """Relabels items through a lookup table; unmapped items are kept or dropped."""

    def __init__(self, mapping: Mapping[Any, Any], drop_unmapped: bool = False):
        self.mapping = dict(mapping)
        self.drop_unmapped = drop_unmapped

    def map_item(self, item: Item) -> Optional[Item]:
        if item.label in self.mapping:
            return item.with_label(self.mapping[item.label])
        return None if self.drop_unmapped else item

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type_key, "mapping": dict(self.mapping), "drop-unmapped": self.drop_unmapped}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LabelMappingRule":
        return cls(data.get("mapping", {}), drop_unmapped=data.get("drop-unmapped", False))


def create_mapping_rule(data: Mapping[str, Any]) -> MappingRule:
    """Build a registered rule from its dictionary form."""
    if "type" not in data:
        raise ValueError(f"Mapping rule definition lacks a 'type': {dict(data)}")
    return registry.get(data["type"]).from_dict(data)


class DataPointLabelMapper:
    """Applies mapping rules in order to every item of a data point."""

    def __init__(self, *rules: MappingRule):
        self.rules = list(rules)
        self.logger = logging.getLogger(__name__)

    def map_item(self, item: Item) -> Optional[Item]:
        for rule in self.rules:
            item = rule.map_item(item)
            if item is None:
                return None
        return item

    def map_data_point(self, data_point: DataPoint) -> DataPoint:
        """Return a new data point holding the mapped items."""
        mapped = [self.map_item(item) for item in data_point.items]
        kept = [item for item in mapped if item is not None]
        if len(kept) != len(data_point.items):
            self.logger.debug(f"Dropped {len(data_point.items) - len(kept)} items of {data_point.identifier}")
        return data_point.with_items(kept)

    def map_data_points(self, data_points: Iterable[DataPoint]):
        return [self.map_data_point(data_point) for data_point in data_points]
