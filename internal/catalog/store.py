"""Catalog store: one swappable reference to the active snapshot.

Readers call ``current()`` once per request and work with that snapshot
for the rest of the request. ``reload()`` builds and validates a candidate
in full before publishing it with a single reference assignment, so a
reader sees either the old or the new snapshot, never a mix. A failed
reload leaves the previous snapshot active.

Set IDP_CATALOG_PATH to override the default catalog location.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Optional

from internal.catalog.loader import CatalogSnapshot, load_catalog_file
from internal.models.errors import ResolutionError

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CATALOG_PATH = str(REPO_ROOT / "config" / "catalog.yaml")


class CatalogStore:
    def __init__(self, path: Optional[str] = None):
        self.path = path or os.environ.get("IDP_CATALOG_PATH", DEFAULT_CATALOG_PATH)
        self._snapshot: Optional[CatalogSnapshot] = None
        self._reload_lock = threading.Lock()
        self._reloads = 0
        self._failed_reloads = 0

    def current(self) -> CatalogSnapshot:
        """Return the active snapshot, loading the configured file on first use."""
        snapshot = self._snapshot
        if snapshot is None:
            with self._reload_lock:
                if self._snapshot is None:
                    self._snapshot = load_catalog_file(self.path)
                snapshot = self._snapshot
        return snapshot

    def reload(self, path: Optional[str] = None) -> CatalogSnapshot:
        """Validate a new catalog and publish it.

        Raises:
            CatalogLoadError / AmbiguousMatchError: the candidate is invalid;
                the previously active snapshot (if any) stays in place.
        """
        target = path or self.path
        with self._reload_lock:
            previous = self._snapshot
            try:
                candidate = load_catalog_file(target)
            except ResolutionError as exc:
                self._failed_reloads += 1
                logger.error("Catalog reload from %s failed (%s): %s; keeping version %s",
                             target, exc.code, exc.message,
                             previous.version if previous else None)
                raise
            self._snapshot = candidate
            self.path = target
            self._reloads += 1

        logger.info("Catalog reloaded from %s: %s -> %s", target,
                    previous.version if previous else None, candidate.version)
        return candidate

    def status(self) -> dict:
        snapshot = self._snapshot
        return {
            "path": self.path,
            "version": snapshot.version if snapshot else None,
            "loaded": snapshot is not None,
            "reloads": self._reloads,
            "failed_reloads": self._failed_reloads,
        }


_store = CatalogStore()


def get_catalog_store() -> CatalogStore:
    return _store


def set_catalog_store(store: CatalogStore) -> CatalogStore:
    """Replace the process-wide store (app factory and tests)."""
    global _store
    _store = store
    return _store
