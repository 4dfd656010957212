# Overview: Per-line outcome reporting for batch workflow operations (issue, receive).

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


OUTCOME_APPLIED = "APPLIED"
OUTCOME_SKIPPED = "SKIPPED"

# Skip reasons
SKIP_NON_POSITIVE_QUANTITY = "non_positive_quantity"
SKIP_NOT_ON_REQUEST = "not_on_request"
SKIP_NOT_ON_ORDER = "not_on_order"
SKIP_EXCEEDS_REMAINING = "exceeds_remaining"
SKIP_INSUFFICIENT_STOCK = "insufficient_stock"


@dataclass
class LineOutcome:
    product_id: Any
    quantity: Any
    status: str
    reason: Optional[str] = None
    available: Optional[int] = None

    @property
    def applied(self) -> bool:
        return self.status == OUTCOME_APPLIED

    def to_dict(self) -> dict:
        data = {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "status": self.status,
        }
        if self.reason:
            data["reason"] = self.reason
        if self.available is not None:
            data["available"] = self.available
        return data


@dataclass
class BatchResult:
    """
    Outcome of one batch call. document is the updated request / order;
    records are the IssueRecords (or the ReceiveRecord) the call created.
    """
    document: Any
    lines: list[LineOutcome] = field(default_factory=list)
    records: list[Any] = field(default_factory=list)
    previous_status: Optional[str] = None
    # Warehouse ledger rows this batch drove to <= 0
    low_stock: list[Any] = field(default_factory=list)

    def apply(self, product_id, quantity) -> LineOutcome:
        outcome = LineOutcome(product_id=product_id, quantity=quantity, status=OUTCOME_APPLIED)
        self.lines.append(outcome)
        return outcome

    def skip(self, product_id, quantity, reason: str, available: Optional[int] = None) -> LineOutcome:
        outcome = LineOutcome(
            product_id=product_id,
            quantity=quantity,
            status=OUTCOME_SKIPPED,
            reason=reason,
            available=available,
        )
        self.lines.append(outcome)
        return outcome

    @property
    def applied(self) -> list[LineOutcome]:
        return [line for line in self.lines if line.applied]

    @property
    def skipped(self) -> list[LineOutcome]:
        return [line for line in self.lines if not line.applied]

    @property
    def status_changed(self) -> bool:
        return self.previous_status is not None and self.previous_status != self.document.status

    def to_dict(self, document_key: str) -> dict:
        return {
            document_key: self.document.to_dict(),
            "records": [record.to_dict() for record in self.records],
            "lines": [line.to_dict() for line in self.lines],
            "applied_count": len(self.applied),
            "skipped_count": len(self.skipped),
        }
