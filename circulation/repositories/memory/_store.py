from __future__ import annotations

import itertools
import threading
from typing import Dict, Generic, Iterator, Optional, TypeVar

from pydantic import BaseModel

E = TypeVar("E", bound=BaseModel)


class MemoryStore(Generic[E]):
    """Id-keyed dictionary of frozen entities with auto-increment ids."""

    def __init__(self, id_field: str) -> None:
        self.id_field = id_field
        self.lock = threading.RLock()
        self._rows: Dict[int, E] = {}
        self._ids = itertools.count(1)

    def get(self, entity_id: int) -> Optional[E]:
        with self.lock:
            return self._rows.get(int(entity_id))

    def insert(self, entity: E) -> int:
        with self.lock:
            explicit = getattr(entity, self.id_field)
            if explicit is None:
                new_id = next(self._ids)
                while new_id in self._rows:
                    new_id = next(self._ids)
            else:
                new_id = int(explicit)
                if new_id in self._rows:
                    raise KeyError(f"Duplicate {self.id_field} {new_id}")
            self._rows[new_id] = entity.model_copy(update={self.id_field: new_id})
            return new_id

    def replace(self, entity: E) -> None:
        entity_id = getattr(entity, self.id_field)
        with self.lock:
            if entity_id is None or int(entity_id) not in self._rows:
                raise KeyError(f"Unknown {self.id_field} {entity_id}")
            self._rows[int(entity_id)] = entity

    def values(self) -> Iterator[E]:
        with self.lock:
            rows = list(self._rows.values())
        return iter(rows)
