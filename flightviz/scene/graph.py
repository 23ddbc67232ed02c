"""
Renderer capability surface.

The 3D engine itself lives in the browser. The Python side only needs a
small set of capabilities from it: add an entity, remove an entity,
swap one set of entities for another, list what is on screen, and resolve
a pick to an entity. SceneGraph captures that surface; InMemoryScene is
the implementation served to the front end as JSON snapshots.

Entities are described by kind plus a plain dict of render properties,
loosely following CZML packet layout (positions in cartographic degrees
with heights in meters).
"""

import itertools
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional


class EntityKind:
    """Entity kinds understood by the front-end renderer."""
    WALL = 'wall'
    POLYGON = 'polygon'
    MARKER = 'marker'
    AIRPORT = 'airport'
    POLYLINE = 'polyline'
    AIRCRAFT = 'aircraft'


@dataclass
class SceneEntity:
    """A renderable object: kind, render properties, and free-form tags."""
    kind: str
    properties: Dict[str, Any] = field(default_factory=dict)
    layer: Optional[str] = None
    tags: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, handle: str) -> dict:
        return {
            'id': handle,
            'kind': self.kind,
            'layer': self.layer,
            'tags': dict(self.tags),
            **self.properties,
        }


class SceneGraph(ABC):
    """Abstract scene: the operations the visualization needs from a renderer."""

    @abstractmethod
    def add(self, entity: SceneEntity) -> str:
        """Add an entity and return its opaque handle."""

    @abstractmethod
    def remove(self, handle: str) -> bool:
        """Remove an entity. Returns False if the handle is unknown."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entity."""

    @abstractmethod
    def get(self, handle: str) -> Optional[SceneEntity]:
        """Look up an entity by handle (this is what a pick resolves to)."""

    @abstractmethod
    def handles(self) -> List[str]:
        """Handles of all entities currently in the scene."""

    def replace(self, old: Iterable[str], new: Iterable[SceneEntity]) -> List[str]:
        """
        Remove `old` then add `new`, returning the new handles.

        Implementations that can be observed concurrently must make this
        atomic so no reader sees a half-replaced set.
        """
        for handle in old:
            self.remove(handle)
        return [self.add(entity) for entity in new]


class InMemoryScene(SceneGraph):
    """Thread-safe in-process scene, serialized for the browser renderer."""

    def __init__(self):
        self._entities: Dict[str, SceneEntity] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._revision = 0

    def add(self, entity: SceneEntity) -> str:
        with self._lock:
            handle = f'e{next(self._ids)}'
            self._entities[handle] = entity
            self._revision += 1
            return handle

    def remove(self, handle: str) -> bool:
        with self._lock:
            removed = self._entities.pop(handle, None) is not None
            if removed:
                self._revision += 1
            return removed

    def clear(self) -> None:
        with self._lock:
            self._entities.clear()
            self._revision += 1

    def get(self, handle: str) -> Optional[SceneEntity]:
        with self._lock:
            return self._entities.get(handle)

    def handles(self) -> List[str]:
        with self._lock:
            return list(self._entities)

    def replace(self, old: Iterable[str], new: Iterable[SceneEntity]) -> List[str]:
        new = list(new)
        with self._lock:
            return super().replace(old, new)

    def entities(self, layer: Optional[str] = None, kind: Optional[str] = None) -> Dict[str, SceneEntity]:
        """Snapshot of entities, optionally filtered by layer and/or kind."""
        with self._lock:
            return {
                h: e for h, e in self._entities.items()
                if (layer is None or e.layer == layer)
                and (kind is None or e.kind == kind)
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)

    def snapshot(self) -> dict:
        """JSON-serializable view of the whole scene."""
        with self._lock:
            return {
                'revision': self._revision,
                'entities': [e.to_dict(h) for h, e in self._entities.items()],
            }
