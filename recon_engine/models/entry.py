"""Ledger entry model shared by bank transactions and invoices."""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Dict, Any

from .enums import EntryKind, InvoiceStatus

INVOICE_KINDS = {
    "sales": EntryKind.SALES_INVOICE,
    "purchase": EntryKind.PURCHASE_INVOICE,
}


def to_cents(amount: Any) -> int:
    """Convert an amount in standard units (e.g. 50.25 EUR) to integer cents."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _parse_date(value: Any) -> date:
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class LedgerEntry:
    """
    Immutable snapshot of a bank transaction or invoice.

    All monetary amounts are stored in CENTS (integer) to avoid floating point
    errors. Positive amounts are inflows, negative amounts are outflows.

    The ``reconciled`` flag is only meaningful on snapshots handed out by the
    reconciliation ledger; other components never flip it.
    """
    id: str
    kind: EntryKind
    date: date
    amount_cents: int
    description: str = ""
    reconciled: bool = False

    # Context from the bookkeeping records
    account_id: Optional[str] = None
    reference: Optional[str] = None
    counterparty: Optional[str] = None
    currency: str = "EUR"
    status: Optional[InvoiceStatus] = None  # Invoices only

    raw_data: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def amount(self) -> float:
        """Return amount in standard units."""
        return self.amount_cents / 100.0

    @property
    def is_zero(self) -> bool:
        return self.amount_cents == 0

    def with_reconciled(self, reconciled: bool) -> "LedgerEntry":
        """Return a copy carrying the given reconciled flag."""
        if reconciled == self.reconciled:
            return self
        return replace(self, reconciled=reconciled)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "date": self.date.isoformat(),
            "amount_cents": self.amount_cents,
            "amount": self.amount,
            "currency": self.currency,
            "description": self.description,
            "reconciled": self.reconciled,
            "account_id": self.account_id,
            "reference": self.reference,
            "counterparty": self.counterparty,
            "status": self.status.value if self.status else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerEntry":
        """Build an entry from a record in this model's own layout."""
        return cls(
            id=str(data["id"]),
            kind=EntryKind(data["kind"]),
            date=_parse_date(data["date"]),
            amount_cents=int(data["amount_cents"]),
            description=data.get("description") or "",
            reconciled=bool(data.get("reconciled", False)),
            account_id=data.get("account_id"),
            reference=data.get("reference"),
            counterparty=data.get("counterparty"),
            currency=data.get("currency") or "EUR",
            status=InvoiceStatus(data["status"]) if data.get("status") else None,
            raw_data=dict(data),
        )

    @classmethod
    def from_bank_transaction(cls, row: Dict[str, Any]) -> "LedgerEntry":
        """
        Build an entry from a bank transaction row of the bookkeeping app.

        Rows carry a signed decimal ``amount`` in standard units plus the
        owning ``account_id``; the ``category`` is kept in ``raw_data`` only.
        """
        return cls(
            id=str(row["id"]),
            kind=EntryKind.BANK_TRANSACTION,
            date=_parse_date(row["date"]),
            amount_cents=to_cents(row["amount"]),
            description=row.get("description") or "",
            reconciled=bool(row.get("reconciled", False)),
            account_id=row.get("account_id"),
            currency=row.get("currency") or "EUR",
            raw_data=dict(row),
        )

    @classmethod
    def from_invoice(cls, row: Dict[str, Any]) -> "LedgerEntry":
        """
        Build an entry from an invoice row of the bookkeeping app.

        ``type`` selects sales or purchase. Invoices are booked with a
        positive total, so the sign is applied here: a sales invoice is an
        inflow, a purchase invoice an outflow. The invoice ``number`` becomes
        the reference and is also prepended to the description, since bank
        statements usually quote it.
        """
        invoice_type = row.get("type")
        if invoice_type not in INVOICE_KINDS:
            raise ValueError(f"Unknown invoice type: {invoice_type!r}")
        kind = INVOICE_KINDS[invoice_type]

        total = abs(to_cents(row["amount"]))
        number = row.get("number")
        description = " ".join(
            part for part in (number, row.get("description")) if part
        )

        return cls(
            id=str(row["id"]),
            kind=kind,
            date=_parse_date(row["date"]),
            amount_cents=-total if kind == EntryKind.PURCHASE_INVOICE else total,
            description=description,
            reconciled=bool(row.get("reconciled", False)),
            reference=number,
            counterparty=row.get("counterparty"),
            currency=row.get("currency") or "EUR",
            status=InvoiceStatus(row["status"]) if row.get("status") else None,
            raw_data=dict(row),
        )
