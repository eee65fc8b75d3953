"""Lookup of store entities by composite key."""

from typing import Callable, Dict, Generic, Hashable, Iterable, List, Optional, Sequence, TypeVar

EntityType = TypeVar("EntityType")


def find(collection: Iterable[EntityType], **criteria: object) -> Optional[EntityType]:
    """Return the first entity whose attributes equal every criterion.

    Linear scan for ad hoc criteria. The engine's fixed keys go through
    ``EntityIndex`` instead, whose ``first`` returns the same entity as
    ``find`` over the snapshot collection in insertion order.

    Example:
        find(permissions, application_id="app1", name="read:users")
    """
    for entity in collection:
        if all(getattr(entity, attr, None) == value for attr, value in criteria.items()):
            return entity
    return None


class EntityIndex(Generic[EntityType]):
    """Key to entities map over a snapshot collection.

    Built once from the collection and extended with ``add`` on every append,
    so lookups see entities created earlier in the same run. Insertion order
    is preserved per key, which keeps first-match semantics for duplicates.
    """

    def __init__(
        self,
        key_func: Callable[[EntityType], Hashable],
        entities: Iterable[EntityType] = (),
    ) -> None:
        self._key_func = key_func
        self._entries: Dict[Hashable, List[EntityType]] = {}
        for entity in entities:
            self.add(entity)

    def add(self, entity: EntityType) -> None:
        self._entries.setdefault(self._key_func(entity), []).append(entity)

    def first(self, key: Hashable) -> Optional[EntityType]:
        matches = self._entries.get(key)
        return matches[0] if matches else None

    def all(self, key: Hashable) -> Sequence[EntityType]:
        return tuple(self._entries.get(key, ()))

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return sum(len(matches) for matches in self._entries.values())
