"""
Caché en memoria de vistas renderizadas, indexada por ruta.

Invalidar una ruta descarta la vista guardada para que se recalcule en el
siguiente acceso. Cada ruta lleva un número de generación: una vista
calculada antes de una invalidación no se guarda después de ella.
"""
from collections import Counter, OrderedDict
from typing import Any, Dict, Optional
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def base_path(key: str) -> str:
    return key.split("?", 1)[0]


class ViewCache:
    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries or settings.VIEW_CACHE_MAX_ENTRIES
        self._views: "OrderedDict[str, Any]" = OrderedDict()
        self._generations: Dict[str, int] = {}
        self.revalidations: Counter = Counter()

    def __len__(self) -> int:
        return len(self._views)

    def generation(self, path: str) -> int:
        return self._generations.get(base_path(path), 0)

    def get(self, key: str) -> Optional[Any]:
        view = self._views.get(key)
        if view is not None:
            self._views.move_to_end(key)
        return view

    def set(self, key: str, view: Any, generation: Optional[int] = None) -> bool:
        """
        Guardar una vista. Si se pasa ``generation`` y la ruta fue invalidada
        desde entonces, la vista se descarta y devuelve False.
        """
        if generation is not None and generation != self.generation(key):
            logger.debug(f"Discarding stale view for {key}")
            return False
        self._views[key] = view
        self._views.move_to_end(key)
        while len(self._views) > self.max_entries:
            self._views.popitem(last=False)
        return True

    def revalidate_path(self, path: str) -> None:
        """Marcar como obsoletas la vista de ``path`` y sus variantes con query string"""
        for key in [k for k in self._views if base_path(k) == path]:
            del self._views[key]
        self._generations[path] = self._generations.get(path, 0) + 1
        self.revalidations[path] += 1
        logger.debug(f"View cache invalidated for {path}")

    def clear(self) -> None:
        self._views.clear()
        self._generations.clear()
        self.revalidations.clear()


view_cache = ViewCache()
