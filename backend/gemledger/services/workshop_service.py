# Overview: Workshops (internal/external craftsmen), work orders and workshop account ledger.

"""
Workshop Service

WHY: Repairs, resizing and custom pieces are sent to workshops. The shop
needs to know which items are out, what each order costs, and what it owes
each workshop.

DESIGN:
- Order status follows ORDER_TRANSITIONS; completing sets completed_date,
  reopening to pending clears it
- Inventory-sourced orders move their item to workshop on create and back
  to available on complete/cancel
- Completing an order debits actual_cost to the workshop balance
- Payments credit the balance and, when tied to an order, update the
  order's paid amount and payment status
- order_number: WO-YYYYMMDD-NNN, daily per shop
"""

from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, InventoryItem, Workshop, WorkshopOrder, WorkshopTransaction
from ..money import ZERO, payment_status_for, q_money, to_decimal
from ..time_utils import utc_today
from ..validation import ConflictError, ValidationError, parse_positive_money
from .concurrency import check_version, lock_for_update, run_with_retry
from .document_service import next_document_number
from .inventory_service import transition_item_status
from .ledger_service import append_activity_event
from .tenant_service import require_in_shop


ORDER_STATUSES = ("pending", "in_progress", "completed", "cancelled")

ORDER_TRANSITIONS = {
    "pending": {"in_progress", "cancelled"},
    "in_progress": {"completed", "cancelled", "pending"},
    "completed": set(),
    "cancelled": {"pending"},
}

PAYMENT_TYPES = ("cash", "card", "bank_transfer", "cheque", "other")


class WorkshopError(Exception):
    """Raised for workshop operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# -- Workshops --

def _check_name(shop_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Workshop).filter(
        Workshop.shop_id == shop_id,
        db.func.lower(Workshop.workshop_name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Workshop.id != exclude_id)
    if query.first():
        raise ConflictError(f"Workshop '{name}' already exists")


def create_workshop(*, shop_id: int, patch: dict, actor_user_id: int | None = None) -> Workshop:
    _check_name(shop_id, patch["workshop_name"])

    workshop = Workshop(shop_id=shop_id, current_balance=ZERO, **patch)
    db.session.add(workshop)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Workshop '{patch['workshop_name']}' already exists")

    append_activity_event(
        shop_id=shop_id,
        event_type="workshop.created",
        entity_type="workshop",
        entity_id=workshop.id,
        actor_user_id=actor_user_id,
    )
    db.session.commit()
    return workshop


def get_workshop(*, shop_id: int, workshop_id: int) -> Workshop:
    return require_in_shop(Workshop, workshop_id, shop_id, label="Workshop")


def update_workshop(
    *,
    shop_id: int,
    workshop_id: int,
    patch: dict,
    expected_version: int | None = None,
) -> Workshop:
    workshop = get_workshop(shop_id=shop_id, workshop_id=workshop_id)
    check_version(workshop, expected_version)
    if "workshop_name" in patch:
        _check_name(shop_id, patch["workshop_name"], exclude_id=workshop.id)

    for key, value in patch.items():
        setattr(workshop, key, value)
    db.session.commit()
    return workshop


def list_workshops(
    *,
    shop_id: int,
    status: str | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Workshop], int]:
    query = db.session.query(Workshop).filter(Workshop.shop_id == shop_id)
    if status:
        query = query.filter(Workshop.status == status)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Workshop.workshop_name.ilike(term),
                Workshop.contact_person.ilike(term),
                Workshop.specialization.ilike(term),
            )
        )
    total = query.count()
    rows = query.order_by(Workshop.workshop_name.asc()).offset(offset).limit(limit).all()
    return rows, total


def _post_entry(
    workshop: Workshop,
    *,
    transaction_type: str,
    debit: Decimal = ZERO,
    credit: Decimal = ZERO,
    order_id: int | None = None,
    payment_type: str | None = None,
    description: str | None = None,
    actor_user_id: int | None = None,
) -> WorkshopTransaction:
    new_balance = q_money(to_decimal(workshop.current_balance) + debit - credit)
    workshop.current_balance = new_balance

    entry = WorkshopTransaction(
        shop_id=workshop.shop_id,
        workshop_id=workshop.id,
        order_id=order_id,
        transaction_type=transaction_type,
        debit=q_money(debit),
        credit=q_money(credit),
        balance_after=new_balance,
        payment_type=payment_type,
        description=description[:500] if description else None,
        created_by_user_id=actor_user_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


# -- Orders --

def get_order(*, shop_id: int, order_id: int) -> WorkshopOrder:
    return require_in_shop(WorkshopOrder, order_id, shop_id, label="Workshop order")


def _locked_item(shop_id: int, item_id: int) -> InventoryItem:
    return lock_for_update(
        db.session.query(InventoryItem).filter_by(id=item_id, shop_id=shop_id)
    ).first()


def create_order(*, shop_id: int, patch: dict, actor_user_id: int | None = None) -> WorkshopOrder:
    """
    Open a work order at an active workshop.

    An inventory-sourced order requires inventory_item_id and sends that
    item to the workshop.
    """
    workshop = get_workshop(shop_id=shop_id, workshop_id=patch["workshop_id"])
    if workshop.status != "active":
        raise WorkshopError("Workshop is not active")

    item_source = patch.get("item_source") or "customer"
    if item_source == "inventory" and patch.get("inventory_item_id") is None:
        raise ValidationError("inventory_item_id is required for inventory orders")
    if patch.get("inventory_item_id") is not None:
        require_in_shop(InventoryItem, patch["inventory_item_id"], shop_id, label="Item")
    if patch.get("customer_id") is not None:
        require_in_shop(Customer, patch["customer_id"], shop_id, label="Customer")

    def _op():
        today = utc_today()
        order_number = next_document_number(
            shop_id=shop_id,
            document_type="WORKSHOP_ORDER",
            prefix="WO-",
            pad=3,
            on_date=today,
        )
        fields = dict(patch)
        fields["item_source"] = item_source
        fields.setdefault("received_date", today)

        order = WorkshopOrder(
            shop_id=shop_id,
            order_number=order_number,
            status="pending",
            payment_status="unpaid",
            paid_amount=ZERO,
            created_by_user_id=actor_user_id,
            **fields,
        )
        db.session.add(order)
        db.session.flush()

        if item_source == "inventory":
            item = _locked_item(shop_id, order.inventory_item_id)
            transition_item_status(item, "workshop", reason=f"Workshop order {order_number}", actor_user_id=actor_user_id)

        append_activity_event(
            shop_id=shop_id,
            event_type="workshop.order_created",
            entity_type="workshop_order",
            entity_id=order.id,
            actor_user_id=actor_user_id,
            note=f"Order {order_number}",
        )
        db.session.commit()
        return order

    return run_with_retry(_op)


def update_order(
    *,
    shop_id: int,
    order_id: int,
    patch: dict,
    expected_version: int | None = None,
) -> WorkshopOrder:
    """Edit order details. Status, workshop and item source are fixed here."""
    for locked in ("status", "workshop_id", "item_source", "inventory_item_id"):
        if locked in patch:
            raise ValidationError(f"{locked} cannot be changed here")

    order = get_order(shop_id=shop_id, order_id=order_id)
    check_version(order, expected_version)
    if order.status in ("completed", "cancelled"):
        raise WorkshopError(f"Cannot edit a {order.status} order")
    if patch.get("customer_id") is not None:
        require_in_shop(Customer, patch["customer_id"], shop_id, label="Customer")

    for key, value in patch.items():
        setattr(order, key, value)
    db.session.commit()
    return order


def change_order_status(
    *,
    shop_id: int,
    order_id: int,
    new_status: str,
    actor_user_id: int | None = None,
) -> WorkshopOrder:
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
    get_order(shop_id=shop_id, order_id=order_id)

    def _op():
        order = lock_for_update(
            db.session.query(WorkshopOrder).filter_by(id=order_id, shop_id=shop_id)
        ).first()
        old_status = order.status
        if new_status not in ORDER_TRANSITIONS[old_status]:
            raise WorkshopError(
                f"Cannot change order status from {old_status} to {new_status}",
                details={"from": old_status, "to": new_status},
            )

        order.status = new_status
        if new_status == "completed":
            order.completed_date = utc_today()
        elif new_status == "pending":
            order.completed_date = None

        if order.item_source == "inventory" and order.inventory_item_id is not None:
            item = _locked_item(shop_id, order.inventory_item_id)
            if new_status in ("completed", "cancelled") and item.status == "workshop":
                transition_item_status(item, "available", reason=f"Workshop order {order.order_number} {new_status}", actor_user_id=actor_user_id)
            elif new_status == "pending" and old_status == "cancelled" and item.status == "available":
                transition_item_status(item, "workshop", reason=f"Workshop order {order.order_number} reopened", actor_user_id=actor_user_id)

        if new_status == "completed":
            cost = to_decimal(order.actual_cost)
            if cost > ZERO:
                workshop = lock_for_update(
                    db.session.query(Workshop).filter_by(id=order.workshop_id, shop_id=shop_id)
                ).first()
                _post_entry(
                    workshop,
                    transaction_type="order_charge",
                    debit=cost,
                    order_id=order.id,
                    description=f"Order {order.order_number}",
                    actor_user_id=actor_user_id,
                )
            order.payment_status = payment_status_for(order.paid_amount, order.actual_cost)

        append_activity_event(
            shop_id=shop_id,
            event_type="workshop.order_status_changed",
            entity_type="workshop_order",
            entity_id=order.id,
            actor_user_id=actor_user_id,
            payload={"from": old_status, "to": new_status},
        )
        db.session.commit()
        return order

    return run_with_retry(_op)


def list_orders(
    *,
    shop_id: int,
    workshop_id: int | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[WorkshopOrder], int]:
    query = db.session.query(WorkshopOrder).filter(WorkshopOrder.shop_id == shop_id)
    if workshop_id is not None:
        query = query.filter(WorkshopOrder.workshop_id == workshop_id)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
        query = query.filter(WorkshopOrder.status == status)
    total = query.count()
    rows = query.order_by(WorkshopOrder.id.desc()).offset(offset).limit(limit).all()
    return rows, total


# -- Payments --

def record_workshop_payment(
    *,
    shop_id: int,
    workshop_id: int,
    amount,
    payment_type: str = "cash",
    order_id: int | None = None,
    description: str | None = None,
    actor_user_id: int | None = None,
) -> WorkshopTransaction:
    """
    Pay a workshop: credit, balance -= amount.

    With order_id (which must belong to this workshop) the payment also
    counts toward that order. Payments on an unfinished order are
    advance payments.
    """
    amount = parse_positive_money("amount", amount)
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}")
    get_workshop(shop_id=shop_id, workshop_id=workshop_id)
    if order_id is not None:
        order = get_order(shop_id=shop_id, order_id=order_id)
        if order.workshop_id != workshop_id:
            raise WorkshopError("Order does not belong to this workshop")

    def _op():
        workshop = lock_for_update(
            db.session.query(Workshop).filter_by(id=workshop_id, shop_id=shop_id)
        ).first()

        transaction_type = "order_payment"
        if order_id is not None:
            order = lock_for_update(
                db.session.query(WorkshopOrder).filter_by(id=order_id, shop_id=shop_id)
            ).first()
            if order.status != "completed":
                transaction_type = "advance_payment"
            order.paid_amount = q_money(to_decimal(order.paid_amount) + amount)
            order.payment_status = payment_status_for(
                order.paid_amount,
                order.actual_cost if order.actual_cost is not None else order.estimated_cost,
            )

        entry = _post_entry(
            workshop,
            transaction_type=transaction_type,
            credit=amount,
            order_id=order_id,
            payment_type=payment_type,
            description=description or f"Payment ({payment_type})",
            actor_user_id=actor_user_id,
        )

        append_activity_event(
            shop_id=shop_id,
            event_type="workshop.payment_recorded",
            entity_type="workshop",
            entity_id=workshop.id,
            actor_user_id=actor_user_id,
            payload={"amount": amount, "order_id": order_id},
        )
        db.session.commit()
        return entry

    return run_with_retry(_op)


def get_workshop_ledger(
    *,
    shop_id: int,
    workshop_id: int,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[WorkshopTransaction], int]:
    get_workshop(shop_id=shop_id, workshop_id=workshop_id)
    query = db.session.query(WorkshopTransaction).filter(
        WorkshopTransaction.shop_id == shop_id,
        WorkshopTransaction.workshop_id == workshop_id,
    )
    total = query.count()
    rows = query.order_by(WorkshopTransaction.id.desc()).offset(offset).limit(limit).all()
    return rows, total
