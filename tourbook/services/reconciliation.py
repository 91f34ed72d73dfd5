"""Merge rules for a client holding a locally mutated copy of a collection (bookings,
posts, comment trees) while a background poll or push also refreshes it.

Items are JSON-shaped dicts keyed by ``id``; nested children live under ``replies``.
Nothing here raises for a failed background fetch: the last known good view is kept and
the next poll cycle retries.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, Set

logger = logging.getLogger(__name__)

Item = dict
Fetch = Callable[[], List[Item]]

ID_KEY = "id"
CHILDREN_KEY = "replies"


class TombstoneSet:
    """Ids deleted locally but possibly still present upstream. Session scoped."""

    def __init__(self, ids: Iterable[Any] = ()):
        self._ids: Set[Any] = set(ids)

    def mark(self, item_id: Any) -> None:
        self._ids.add(item_id)

    def release(self, item_id: Any) -> None:
        # only on a failed delete; a successful delete keeps its tombstone
        self._ids.discard(item_id)

    def __contains__(self, item_id: Any) -> bool:
        return item_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def ids(self) -> FrozenSet[Any]:
        return frozenset(self._ids)


@dataclass
class MergeResult:
    items: List[Item]
    tombstoned: FrozenSet[Any] = frozenset()
    changed: bool = False
    suppressed: List[Any] = field(default_factory=list)


def _children(item: Item, children_key: str) -> List[Item]:
    return item.get(children_key) or []


def without_tombstoned(
    items: Iterable[Item],
    tombstones: TombstoneSet,
    children_key: str = CHILDREN_KEY,
    suppressed: Optional[List[Any]] = None,
) -> List[Item]:
    """Copy of ``items`` with tombstoned ids removed at every depth.

    A removed item takes its whole subtree with it. Inputs are never modified.
    """
    kept: List[Item] = []
    for item in items:
        if item.get(ID_KEY) in tombstones:
            if suppressed is not None:
                suppressed.append(item.get(ID_KEY))
            continue
        clone = dict(item)
        if children_key in item:
            clone[children_key] = without_tombstoned(_children(item, children_key), tombstones, children_key, suppressed)
        kept.append(clone)
    return kept


def identity_set(items: Iterable[Item], children_key: str = CHILDREN_KEY) -> FrozenSet[Any]:
    ids: Set[Any] = set()
    for item in items:
        ids.add(item.get(ID_KEY))
        ids |= identity_set(_children(item, children_key), children_key)
    return frozenset(ids)


def identity_changed(current: Iterable[Item], fetched: Iterable[Item], children_key: str = CHILDREN_KEY) -> bool:
    return identity_set(current, children_key) != identity_set(fetched, children_key)


def count_tree(items: Iterable[Item], children_key: str = CHILDREN_KEY) -> int:
    """Total items including nested children, always recomputed from the tree."""
    return sum(1 + count_tree(_children(item, children_key), children_key) for item in items)


def merge(
    local: List[Item],
    fetched: List[Item],
    tombstones: TombstoneSet,
    children_key: str = CHILDREN_KEY,
) -> MergeResult:
    """Reconcile a poll result with the local view.

    The fetched collection is authoritative except for tombstoned ids. When the resulting
    identity set equals the local one the local view is returned as is (``changed`` False)
    so callers can skip recomputing derived values. Same inputs give the same output.
    """
    suppressed: List[Any] = []
    candidate = without_tombstoned(fetched, tombstones, children_key, suppressed)
    if suppressed:
        logger.info("Suppressed tombstoned ids %s from refresh", suppressed)
    if not identity_changed(local, candidate, children_key):
        return MergeResult(items=local, tombstoned=tombstones.ids, changed=False, suppressed=suppressed)
    return MergeResult(items=candidate, tombstoned=tombstones.ids, changed=True, suppressed=suppressed)


def _remove(items: List[Item], item_id: Any, children_key: str) -> List[Item]:
    out = []
    for item in items:
        if item.get(ID_KEY) == item_id:
            continue
        if children_key in item:
            item = dict(item)
            item[children_key] = _remove(_children(item, children_key), item_id, children_key)
        out.append(item)
    return out


class SyncedCollection:
    """A local view plus its tombstones, with optimistic mutation helpers."""

    def __init__(self, items: Optional[List[Item]] = None, children_key: str = CHILDREN_KEY):
        self.items: List[Item] = list(items or [])
        self.children_key = children_key
        self.tombstones = TombstoneSet()

    @property
    def total_count(self) -> int:
        return count_tree(self.items, self.children_key)

    def refresh(self, fetch: Fetch) -> bool:
        """Run one poll cycle. Returns True when the view was replaced."""
        try:
            fetched = fetch()
        except Exception as e:
            logger.warning("Refresh failed, keeping last known view: %s", e)
            return False
        result = merge(self.items, fetched, self.tombstones, self.children_key)
        if result.changed:
            self.items = result.items
        return result.changed

    def delete(self, item_id: Any, write: Callable[[Any], Any]) -> None:
        """Remove locally first, then ask upstream. A failed write restores the view."""
        snapshot = copy.deepcopy(self.items)
        self.tombstones.mark(item_id)
        self.items = _remove(self.items, item_id, self.children_key)
        try:
            write(item_id)
        except Exception:
            logger.warning("Delete of %s failed, restoring", item_id)
            self.tombstones.release(item_id)
            self.items = snapshot
            raise

    def mutate(
        self,
        apply: Callable[[List[Item]], List[Item]],
        write: Callable[[], Any],
        confirm: Optional[Fetch] = None,
    ) -> None:
        """Optimistic update.

        ``apply`` gets a deep copy of the view and returns the new one. If ``write``
        raises, the pre-mutation snapshot is restored exactly and the error propagates.
        If ``confirm`` raises, the optimistic view is kept and the failure only logged.
        """
        snapshot = copy.deepcopy(self.items)
        self.items = apply(copy.deepcopy(self.items))
        try:
            write()
        except Exception:
            self.items = snapshot
            raise
        if confirm is None:
            return
        try:
            fetched = confirm()
        except Exception as e:
            logger.warning("Confirm fetch failed, keeping optimistic view: %s", e)
            return
        self.items = without_tombstoned(fetched, self.tombstones, self.children_key)
