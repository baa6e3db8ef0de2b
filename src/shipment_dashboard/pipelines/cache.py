from __future__ import annotations

import logging
from typing import Any, Dict, Hashable, Optional, Set, Tuple

_MISSING = object()


class ViewCache:
    """
    Last good result per (scope, params), e.g. ("orders", filters+page).

    mark_stale(scope) invalidates every entry of that scope at once; a stale
    entry is dropped on the next get(), so the following read refetches.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._entries: Dict[Tuple[str, Hashable], Any] = {}
        self._stale: Set[str] = set()
        self.logger = logger or logging.getLogger("shipment_dashboard.pipelines.cache")

    def get(self, scope: str, params: Hashable = (), default: Any = None) -> Any:
        if scope in self._stale:
            self._drop(scope)
        return self._entries.get((scope, params), default)

    def put(self, scope: str, params: Hashable, value: Any) -> None:
        # a fresh entry must not revalidate the scope's other stale entries
        if scope in self._stale:
            self._drop(scope)
        self._entries[(scope, params)] = value

    def contains(self, scope: str, params: Hashable = ()) -> bool:
        return self.get(scope, params, _MISSING) is not _MISSING

    def mark_stale(self, *scopes: str) -> None:
        for scope in scopes:
            self._stale.add(scope)
        self.logger.debug("Marked stale: %s", ", ".join(scopes))

    def is_stale(self, scope: str) -> bool:
        return scope in self._stale

    def _drop(self, scope: str) -> None:
        for key in [k for k in self._entries if k[0] == scope]:
            del self._entries[key]
        self._stale.discard(scope)

    def __len__(self) -> int:
        return len(self._entries)
