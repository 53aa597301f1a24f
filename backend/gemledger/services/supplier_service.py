# Overview: Supplier records and supplier account ledger (purchases and payments).

"""
Supplier Service

WHY: The shop buys metal, stones and findings on credit. Purchases raise
what the shop owes, payments lower it, and every movement is recorded with
the running balance.

MULTI-TENANT: company_name is unique within a shop only.

DESIGN:
- current_balance > 0: shop owes the supplier
- opening_balance on create posts a single opening_balance debit
- Cheque payments require a cheque number
"""

from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Supplier, SupplierTransaction
from ..money import ZERO, q_money, to_decimal
from ..validation import (
    ConflictError,
    ValidationError,
    enforce_rules_payment,
    parse_positive_money,
    parse_signed_money,
)
from .concurrency import check_version, lock_for_update, run_with_retry
from .ledger_service import append_activity_event
from .tenant_service import require_in_shop


PAYMENT_TYPES = ("cash", "card", "bank_transfer", "cheque", "other")
SUPPLIER_STATUSES = ("active", "inactive")


class SupplierError(Exception):
    """Raised for supplier operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _ensure_unique_name(shop_id: int, company_name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Supplier).filter(
        Supplier.shop_id == shop_id,
        db.func.lower(Supplier.company_name) == company_name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Supplier.id != exclude_id)
    if query.first():
        raise ConflictError(f"Supplier '{company_name}' already exists")


def _post_entry(
    supplier: Supplier,
    *,
    transaction_type: str,
    debit: Decimal = ZERO,
    credit: Decimal = ZERO,
    payment_type: str | None = None,
    cheque_number: str | None = None,
    reference: str | None = None,
    description: str | None = None,
    actor_user_id: int | None = None,
) -> SupplierTransaction:
    new_balance = q_money(to_decimal(supplier.current_balance) + debit - credit)
    supplier.current_balance = new_balance

    entry = SupplierTransaction(
        shop_id=supplier.shop_id,
        supplier_id=supplier.id,
        transaction_type=transaction_type,
        debit=q_money(debit),
        credit=q_money(credit),
        balance_after=new_balance,
        payment_type=payment_type,
        cheque_number=cheque_number,
        reference=reference,
        description=description[:500] if description else None,
        created_by_user_id=actor_user_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def create_supplier(
    *,
    shop_id: int,
    patch: dict,
    opening_balance=None,
    actor_user_id: int | None = None,
) -> Supplier:
    """
    Create a supplier, optionally with an opening balance.

    Raises:
        ConflictError: company_name already used in this shop
    """
    _ensure_unique_name(shop_id, patch["company_name"])

    opening = parse_signed_money("opening_balance", opening_balance) if opening_balance not in (None, "") else ZERO

    supplier = Supplier(shop_id=shop_id, **patch)
    supplier.current_balance = ZERO
    db.session.add(supplier)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Supplier '{patch['company_name']}' already exists")

    if opening != ZERO:
        _post_entry(
            supplier,
            transaction_type="opening_balance",
            debit=opening if opening > ZERO else ZERO,
            credit=-opening if opening < ZERO else ZERO,
            description="Opening balance",
            actor_user_id=actor_user_id,
        )

    append_activity_event(
        shop_id=shop_id,
        event_type="supplier.created",
        entity_type="supplier",
        entity_id=supplier.id,
        actor_user_id=actor_user_id,
    )
    db.session.commit()
    return supplier


def get_supplier(*, shop_id: int, supplier_id: int) -> Supplier:
    return require_in_shop(Supplier, supplier_id, shop_id, label="Supplier")


def update_supplier(
    *,
    shop_id: int,
    supplier_id: int,
    patch: dict,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> Supplier:
    supplier = get_supplier(shop_id=shop_id, supplier_id=supplier_id)
    check_version(supplier, expected_version)

    if "company_name" in patch:
        _ensure_unique_name(shop_id, patch["company_name"], exclude_id=supplier.id)

    for key, value in patch.items():
        setattr(supplier, key, value)

    append_activity_event(
        shop_id=shop_id,
        event_type="supplier.updated",
        entity_type="supplier",
        entity_id=supplier.id,
        actor_user_id=actor_user_id,
        payload={"fields": sorted(patch)},
    )
    db.session.commit()
    return supplier


def list_suppliers(
    *,
    shop_id: int,
    search: str | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Supplier], int]:
    query = db.session.query(Supplier).filter(Supplier.shop_id == shop_id)

    if status:
        if status not in SUPPLIER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(SUPPLIER_STATUSES)}")
        query = query.filter(Supplier.status == status)

    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Supplier.company_name.ilike(term),
                Supplier.contact_person.ilike(term),
                Supplier.phone.ilike(term),
                Supplier.email.ilike(term),
            )
        )

    total = query.count()
    suppliers = query.order_by(Supplier.company_name.asc()).offset(offset).limit(limit).all()
    return suppliers, total


def record_supplier_purchase(
    *,
    shop_id: int,
    supplier_id: int,
    amount,
    reference: str | None = None,
    description: str | None = None,
    actor_user_id: int | None = None,
) -> SupplierTransaction:
    """Goods bought on account: debit, balance += amount."""
    amount = parse_positive_money("amount", amount)
    get_supplier(shop_id=shop_id, supplier_id=supplier_id)

    def _op():
        supplier = lock_for_update(
            db.session.query(Supplier).filter_by(id=supplier_id, shop_id=shop_id)
        ).first()
        entry = _post_entry(
            supplier,
            transaction_type="purchase",
            debit=amount,
            reference=reference,
            description=description or "Purchase",
            actor_user_id=actor_user_id,
        )
        append_activity_event(
            shop_id=shop_id,
            event_type="supplier.purchase_recorded",
            entity_type="supplier",
            entity_id=supplier.id,
            actor_user_id=actor_user_id,
            payload={"amount": str(amount)},
        )
        db.session.commit()
        return entry

    return run_with_retry(_op)


def record_supplier_payment(
    *,
    shop_id: int,
    supplier_id: int,
    amount,
    payment_type: str,
    cheque_number: str | None = None,
    reference: str | None = None,
    notes: str | None = None,
    actor_user_id: int | None = None,
) -> SupplierTransaction:
    """
    Pay the supplier: credit, balance -= amount.

    The balance may go negative (prepayment / supplier credit).
    """
    amount = parse_positive_money("amount", amount)
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}")
    enforce_rules_payment(payment_type, cheque_number)
    get_supplier(shop_id=shop_id, supplier_id=supplier_id)

    def _op():
        supplier = lock_for_update(
            db.session.query(Supplier).filter_by(id=supplier_id, shop_id=shop_id)
        ).first()
        entry = _post_entry(
            supplier,
            transaction_type="payment",
            credit=amount,
            payment_type=payment_type,
            cheque_number=cheque_number.strip() if cheque_number else None,
            reference=reference,
            description=notes or f"Payment ({payment_type})",
            actor_user_id=actor_user_id,
        )
        append_activity_event(
            shop_id=shop_id,
            event_type="supplier.payment_recorded",
            entity_type="supplier",
            entity_id=supplier.id,
            actor_user_id=actor_user_id,
            payload={"amount": str(amount), "payment_type": payment_type},
        )
        db.session.commit()
        return entry

    return run_with_retry(_op)


def get_supplier_ledger(
    *,
    shop_id: int,
    supplier_id: int,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[SupplierTransaction], int]:
    get_supplier(shop_id=shop_id, supplier_id=supplier_id)

    query = db.session.query(SupplierTransaction).filter(
        SupplierTransaction.shop_id == shop_id,
        SupplierTransaction.supplier_id == supplier_id,
    )
    total = query.count()
    rows = query.order_by(SupplierTransaction.id.desc()).offset(offset).limit(limit).all()
    return rows, total
