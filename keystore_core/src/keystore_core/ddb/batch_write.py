"""Folds several ``PutItem`` requests into one ``BatchWriteItem`` request."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

Request = Dict[str, Any]


class BatchWriteConverter:
    def from_put_item_requests(self, *requests: Mapping[str, Any]) -> Request:
        items: Dict[str, List[Dict[str, Any]]] = {}
        for request in requests:
            items.setdefault(request["TableName"], []).append({"PutRequest": {"Item": request["Item"]}})
        return {"RequestItems": items, "ReturnConsumedCapacity": "TOTAL"}

    def unprocessed_request(self, response: Mapping[str, Any]) -> Optional[Request]:
        """Build the follow-up request for whatever the store did not write, if anything."""
        unprocessed = {table: writes for table, writes in (response.get("UnprocessedItems") or {}).items() if writes}
        if not unprocessed:
            return None
        return {"RequestItems": unprocessed, "ReturnConsumedCapacity": "TOTAL"}


__all__ = ["BatchWriteConverter"]
