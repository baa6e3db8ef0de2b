from __future__ import annotations

import copy
import datetime as dt
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol


class OrderStore(Protocol):
    """What the reconciliation core needs from the persistence engine."""

    def all_orders(self, client_id: Optional[str] = None) -> List[Dict[str, Any]]:
        ...

    def get_by_awb(self, awb: str) -> Optional[Dict[str, Any]]:
        ...

    def get_by_order_id(self, order_id: str) -> Optional[Dict[str, Any]]:
        ...

    def create_order(self, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_order(self, record_id: Any, changes: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def get_client(self, client_id: str) -> Optional[Dict[str, Any]]:
        ...


@dataclass
class JsonOrderStore:
    """Orders table kept in a single JSON document.

    File shape on disk:
        {
          "orders":  [ {...order row...}, ... ],
          "clients": [ {...client row...}, ... ]
        }

    Rows follow the dashboard's orders table (shipping_details, product_details,
    delivery_status, last_scan_location, ...). Integer ids are assigned on create.
    Returned rows are copies; mutate through update_order().
    """

    path: Path
    logger: Optional[logging.Logger] = None
    _orders: List[Dict[str, Any]] = field(default_factory=list, init=False, repr=False)
    _clients: List[Dict[str, Any]] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.logger = self.logger or logging.getLogger("shipment_dashboard.io.store")
        self.reload()

    def reload(self) -> None:
        if not self.path.exists():
            self._orders, self._clients = [], []
            return
        raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        if isinstance(raw, list):
            # bare list of order rows
            raw = {"orders": raw}
        if not isinstance(raw, dict):
            raise ValueError(f"Order store {self.path} must hold a JSON object or list")
        self._orders = [o for o in raw.get("orders", []) if isinstance(o, dict)]
        self._clients = [c for c in raw.get("clients", []) if isinstance(c, dict)]
        self.logger.debug("Loaded %d orders from %s", len(self._orders), self.path)

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as fh:
            json.dump({"orders": self._orders, "clients": self._clients},
                      fh, ensure_ascii=False, indent=2, default=str)

    def _next_id(self) -> int:
        ids = [o.get("id") for o in self._orders if isinstance(o.get("id"), int)]
        return (max(ids) if ids else 0) + 1

    # --- reads -----------------------------------------------------------

    def all_orders(self, client_id: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = self._orders
        if client_id:
            rows = [o for o in rows if o.get("client_id") == client_id]
        # newest first, same as the dashboard's default listing
        rows = sorted(rows, key=lambda o: str(o.get("created_at") or ""), reverse=True)
        return copy.deepcopy(rows)

    def get_by_awb(self, awb: str) -> Optional[Dict[str, Any]]:
        key = (awb or "").strip()
        if not key:
            return None
        for o in self._orders:
            if str(o.get("awb") or "").strip() == key:
                return copy.deepcopy(o)
        return None

    def get_by_order_id(self, order_id: str) -> Optional[Dict[str, Any]]:
        for o in self._orders:
            if str(o.get("order_id")) == str(order_id):
                return copy.deepcopy(o)
        return None

    def get_client(self, client_id: str) -> Optional[Dict[str, Any]]:
        for c in self._clients:
            if c.get("client_id") == client_id:
                return copy.deepcopy(c)
        return None

    # --- writes ----------------------------------------------------------

    def create_order(self, record: Dict[str, Any]) -> Dict[str, Any]:
        order_id = record.get("order_id")
        if not order_id:
            raise ValueError("order_id is required")
        if self.get_by_order_id(order_id) is not None:
            raise ValueError(f"order {order_id} already exists")
        row = copy.deepcopy(record)
        row["id"] = self._next_id()
        row.setdefault("created_at", dt.datetime.now(dt.timezone.utc).isoformat())
        self._orders.append(row)
        self._persist()
        return copy.deepcopy(row)

    def update_order(self, record_id: Any, changes: Dict[str, Any]) -> Dict[str, Any]:
        for row in self._orders:
            if row.get("id") == record_id:
                row.update(copy.deepcopy(changes))
                self._persist()
                return copy.deepcopy(row)
        raise KeyError(record_id)

    def add_client(self, client: Dict[str, Any]) -> None:
        self._clients.append(copy.deepcopy(client))
        self._persist()
