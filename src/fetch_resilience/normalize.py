"""
Entity normalization for list payloads.
"""
from typing import Any, Dict, Iterable, List, Mapping, TypedDict


class NormalizedData(TypedDict):
    entities: Dict[Any, Mapping[str, Any]]
    ids: List[Any]


def normalize_data(items: Iterable[Mapping[str, Any]], id_field: str = "id") -> NormalizedData:
    """
    Index a list of entities by id.

    Later duplicates replace earlier entities; ids keep first-seen order
    without repeats.

    Raises:
        KeyError: an item has no id_field
    """
    normalized: NormalizedData = {"entities": {}, "ids": []}
    for item in items:
        entity_id = item[id_field]
        if entity_id not in normalized["entities"]:
            normalized["ids"].append(entity_id)
        normalized["entities"][entity_id] = item
    return normalized
