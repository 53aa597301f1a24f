# Overview: Purchase orders from suppliers, their payments and cancellation.

"""
Purchase Service

WHY: Stock bought from a supplier is owed until paid. A purchase order
records what was bought and keeps the supplier account in step: the order
debits the supplier, each payment credits it.

LIFECYCLE:
- status: open -> cancelled (terminal)
- payment_status: unpaid -> partial -> paid, from recorded payments
- Cancelling or deleting posts an adjustment credit equal to total_amount,
  so the supplier balance no longer includes the order
- Only orders without payments can be deleted

NUMBERING: PO-YYYYMMDD-NNNN, restarting daily per shop.
"""

from decimal import Decimal

from ..extensions import db
from ..models import Purchase, PurchasePayment, Shop, Supplier
from ..money import ZERO, payment_status_for, q_money, to_decimal
from ..time_utils import utc_today, utcnow
from ..validation import (
    ValidationError,
    enforce_rules_payment,
    enforce_rules_range,
    parse_optional_date,
    parse_positive_money,
)
from .concurrency import check_version, lock_for_update, run_with_retry
from .document_service import next_document_number
from .ledger_service import append_activity_event
from .supplier_service import PAYMENT_TYPES, _post_entry as _post_supplier_entry
from .tenant_service import require_in_shop


PURCHASE_STATUSES = ("open", "cancelled")
PAYMENT_STATUSES = ("unpaid", "partial", "paid")


class PurchaseError(Exception):
    """Raised for purchase operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _active_supplier(shop_id: int, supplier_id: int) -> Supplier:
    supplier = require_in_shop(Supplier, supplier_id, shop_id, label="Supplier")
    if supplier.status != "active":
        raise PurchaseError("Supplier is not active", details={"supplier_id": supplier_id})
    return supplier


def _locked_supplier(shop_id: int, supplier_id: int) -> Supplier:
    return lock_for_update(
        db.session.query(Supplier).filter_by(id=supplier_id, shop_id=shop_id)
    ).first()


def _locked_purchase(shop_id: int, purchase_id: int) -> Purchase:
    purchase = lock_for_update(
        db.session.query(Purchase).filter_by(id=purchase_id, shop_id=shop_id)
    ).first()
    if not purchase:
        raise PurchaseError("Purchase not found")
    return purchase


def _reverse_on_supplier(purchase: Purchase, description: str, actor_user_id: int | None) -> None:
    supplier = _locked_supplier(purchase.shop_id, purchase.supplier_id)
    _post_supplier_entry(
        supplier,
        transaction_type="adjustment",
        credit=to_decimal(purchase.total_amount),
        reference=purchase.purchase_number,
        description=description,
        actor_user_id=actor_user_id,
    )


def create_purchase(
    *,
    shop_id: int,
    patch: dict,
    actor_user_id: int | None = None,
) -> Purchase:
    """
    Create an open, unpaid purchase and debit the supplier account.

    Raises:
        TenantAccessError: supplier missing or in another shop
        PurchaseError: supplier is inactive
    """
    supplier_id = patch["supplier_id"]
    _active_supplier(shop_id, supplier_id)
    if not patch.get("currency"):
        patch = {**patch, "currency": db.session.get(Shop, shop_id).currency}

    def _op():
        purchase_number = next_document_number(
            shop_id=shop_id,
            document_type="PURCHASE",
            prefix="PO-",
            on_date=utc_today(),
        )
        purchase = Purchase(
            shop_id=shop_id,
            purchase_number=purchase_number,
            paid_amount=ZERO,
            payment_status="unpaid",
            status="open",
            created_by_user_id=actor_user_id,
            **patch,
        )
        db.session.add(purchase)
        db.session.flush()

        invoice = f" (Invoice: {purchase.invoice_number})" if purchase.invoice_number else ""
        supplier = _locked_supplier(shop_id, supplier_id)
        _post_supplier_entry(
            supplier,
            transaction_type="purchase",
            debit=to_decimal(purchase.total_amount),
            reference=purchase_number,
            description=f"Purchase {purchase_number}{invoice}",
            actor_user_id=actor_user_id,
        )

        append_activity_event(
            shop_id=shop_id,
            event_type="purchase.created",
            entity_type="purchase",
            entity_id=purchase.id,
            actor_user_id=actor_user_id,
            payload={"supplier_id": supplier_id, "total_amount": purchase.total_amount},
        )
        db.session.commit()
        return purchase

    return run_with_retry(_op)


def get_purchase(*, shop_id: int, purchase_id: int) -> Purchase:
    return require_in_shop(Purchase, purchase_id, shop_id, label="Purchase")


def update_purchase(
    *,
    shop_id: int,
    purchase_id: int,
    patch: dict,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> Purchase:
    """
    Edit an open purchase.

    A changed total_amount posts the difference to the supplier account
    (debit when raised, credit when lowered). It may not drop below what
    has already been paid.
    """
    purchase = get_purchase(shop_id=shop_id, purchase_id=purchase_id)
    check_version(purchase, expected_version)
    if purchase.status == "cancelled":
        raise PurchaseError("Cannot edit a cancelled purchase")

    old_total = to_decimal(purchase.total_amount)
    new_total = to_decimal(patch.get("total_amount", old_total))
    if new_total < to_decimal(purchase.paid_amount):
        raise PurchaseError(
            "total_amount cannot be less than the amount already paid",
            details={"paid_amount": str(q_money(purchase.paid_amount))},
        )

    for key, value in patch.items():
        setattr(purchase, key, value)
    purchase.payment_status = payment_status_for(purchase.paid_amount, new_total)

    difference = q_money(new_total - old_total)
    if difference != ZERO:
        supplier = _locked_supplier(shop_id, purchase.supplier_id)
        _post_supplier_entry(
            supplier,
            transaction_type="adjustment",
            debit=difference if difference > ZERO else ZERO,
            credit=-difference if difference < ZERO else ZERO,
            reference=purchase.purchase_number,
            description=f"Purchase {purchase.purchase_number} total changed",
            actor_user_id=actor_user_id,
        )

    append_activity_event(
        shop_id=shop_id,
        event_type="purchase.updated",
        entity_type="purchase",
        entity_id=purchase.id,
        actor_user_id=actor_user_id,
        payload={"fields": sorted(patch)},
    )
    db.session.commit()
    return purchase


def record_purchase_payment(
    *,
    shop_id: int,
    purchase_id: int,
    amount,
    payment_type: str,
    payment_date=None,
    cheque_number: str | None = None,
    notes: str | None = None,
    actor_user_id: int | None = None,
) -> PurchasePayment:
    """
    Pay towards a purchase and credit the supplier account.

    The running total may not exceed total_amount.
    """
    amount = parse_positive_money("amount", amount)
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}")
    enforce_rules_payment(payment_type, cheque_number)
    paid_on = parse_optional_date("payment_date", payment_date) or utc_today()
    get_purchase(shop_id=shop_id, purchase_id=purchase_id)

    def _op():
        purchase = _locked_purchase(shop_id, purchase_id)
        if purchase.status == "cancelled":
            raise PurchaseError("Cannot pay a cancelled purchase")

        outstanding = q_money(to_decimal(purchase.total_amount) - to_decimal(purchase.paid_amount))
        if amount > outstanding:
            raise PurchaseError(
                "Payment exceeds the outstanding amount",
                details={"outstanding": str(outstanding)},
            )

        supplier = _locked_supplier(shop_id, purchase.supplier_id)
        entry = _post_supplier_entry(
            supplier,
            transaction_type="payment",
            credit=amount,
            payment_type=payment_type,
            cheque_number=cheque_number.strip() if cheque_number else None,
            reference=purchase.purchase_number,
            description=f"Payment for {purchase.purchase_number}" + (f" - {notes}" if notes else ""),
            actor_user_id=actor_user_id,
        )

        payment = PurchasePayment(
            shop_id=shop_id,
            purchase_id=purchase.id,
            supplier_transaction_id=entry.id,
            amount=amount,
            payment_type=payment_type,
            payment_date=paid_on,
            cheque_number=entry.cheque_number,
            notes=notes,
            created_by_user_id=actor_user_id,
        )
        db.session.add(payment)

        purchase.paid_amount = q_money(to_decimal(purchase.paid_amount) + amount)
        purchase.payment_status = payment_status_for(purchase.paid_amount, purchase.total_amount)

        append_activity_event(
            shop_id=shop_id,
            event_type="purchase.payment_recorded",
            entity_type="purchase",
            entity_id=purchase.id,
            actor_user_id=actor_user_id,
            payload={"amount": amount, "payment_type": payment_type},
        )
        db.session.commit()
        return payment

    return run_with_retry(_op)


def cancel_purchase(
    *,
    shop_id: int,
    purchase_id: int,
    reason: str,
    actor_user_id: int | None = None,
) -> Purchase:
    """
    open -> cancelled. The supplier is credited the full total; money
    already paid stays on the account as supplier credit.
    """
    if not (reason or "").strip():
        raise ValidationError("reason is required")
    reason = reason.strip()
    get_purchase(shop_id=shop_id, purchase_id=purchase_id)

    def _op():
        purchase = _locked_purchase(shop_id, purchase_id)
        if purchase.status == "cancelled":
            raise PurchaseError("Purchase is already cancelled")

        _reverse_on_supplier(
            purchase,
            f"Purchase {purchase.purchase_number} cancelled: {reason}",
            actor_user_id,
        )
        purchase.status = "cancelled"
        purchase.cancelled_at = utcnow()
        purchase.cancellation_reason = reason

        append_activity_event(
            shop_id=shop_id,
            event_type="purchase.cancelled",
            entity_type="purchase",
            entity_id=purchase.id,
            actor_user_id=actor_user_id,
            note=reason,
        )
        db.session.commit()
        return purchase

    return run_with_retry(_op)


def delete_purchase(*, shop_id: int, purchase_id: int, actor_user_id: int | None = None) -> None:
    purchase = get_purchase(shop_id=shop_id, purchase_id=purchase_id)

    if purchase.payments:
        raise PurchaseError("Cannot delete a purchase with payments")

    if purchase.status != "cancelled":
        _reverse_on_supplier(purchase, f"Purchase {purchase.purchase_number} deleted", actor_user_id)

    append_activity_event(
        shop_id=shop_id,
        event_type="purchase.deleted",
        entity_type="purchase",
        entity_id=purchase.id,
        actor_user_id=actor_user_id,
        note=f"Purchase {purchase.purchase_number} deleted",
    )
    db.session.delete(purchase)
    db.session.commit()


def list_purchases(
    *,
    shop_id: int,
    supplier_id: int | None = None,
    payment_status: str | None = None,
    status: str | None = None,
    start_date=None,
    end_date=None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Purchase], int]:
    start = parse_optional_date("start_date", start_date)
    end = parse_optional_date("end_date", end_date)
    enforce_rules_range(start_date=start, end_date=end)

    query = db.session.query(Purchase).filter(Purchase.shop_id == shop_id)

    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    if payment_status:
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")
        query = query.filter(Purchase.payment_status == payment_status)
    if status:
        if status not in PURCHASE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(PURCHASE_STATUSES)}")
        query = query.filter(Purchase.status == status)
    if start:
        query = query.filter(Purchase.purchase_date >= start)
    if end:
        query = query.filter(Purchase.purchase_date <= end)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            db.or_(Purchase.purchase_number.ilike(term), Purchase.invoice_number.ilike(term))
        )

    total = query.count()
    rows = (
        query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def supplier_outstanding(*, shop_id: int, supplier_id: int) -> Decimal:
    """Unpaid remainder across a supplier's open purchases."""
    require_in_shop(Supplier, supplier_id, shop_id, label="Supplier")
    remaining = (
        db.session.query(db.func.coalesce(db.func.sum(Purchase.total_amount - Purchase.paid_amount), 0))
        .filter(
            Purchase.shop_id == shop_id,
            Purchase.supplier_id == supplier_id,
            Purchase.status == "open",
        )
        .scalar()
    )
    return q_money(remaining)
