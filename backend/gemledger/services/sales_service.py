# Overview: POS sale documents: lines, discounts, payments, completion and voiding.

"""
Sales Service - document-first sale processing

WHY: A sale is built up while pending (items reserved, discount applied,
payments taken) and only touches the customer account when completed.
Voiding a pending sale releases its items.

DESIGN:
- Totals are recomputed through cart.compute_totals on every line or
  discount change and stored on the sale
- Items move available -> reserved on add, reserved -> sold on complete,
  reserved -> available on remove/void
- tax_rate is snapshotted from the shop when the sale is created
- sale_number: {invoice_prefix}{YYYYMMDD}-{seq:04d}, daily per shop
"""

from decimal import Decimal

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Customer, InventoryItem, Sale, SaleItem, SalePayment, Shop
from ..money import ZERO, HUNDRED, payment_status_for, q_money, to_decimal
from ..time_utils import utc_today, utcnow
from ..validation import (
    ValidationError,
    parse_money,
    parse_optional_date,
    parse_positive_money,
    parse_quantity,
)
from .cart import DISCOUNT_TYPES, CartLine, compute_totals, discount_for
from .concurrency import lock_for_update, run_with_retry
from .customer_service import validate_customer_for_shop, _post_entry as _post_customer_entry
from .document_service import next_document_number
from .inventory_service import transition_item_status
from .ledger_service import append_activity_event
from .tenant_service import require_in_shop


SALE_STATUSES = ("pending", "completed", "returned", "partial_return")
PAYMENT_TYPES = ("cash", "card", "bank_transfer", "cheque", "mixed", "refund")
CHEQUE_STATUSES = ("pending", "cleared", "bounced")


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _locked_sale(shop_id: int, sale_id: int) -> Sale:
    sale = lock_for_update(
        db.session.query(Sale).filter_by(id=sale_id, shop_id=shop_id)
    ).first()
    if not sale:
        raise SaleError("Sale not found")
    return sale


def _require_pending(sale: Sale, action: str) -> None:
    if sale.status != "pending":
        raise SaleError(f"Cannot {action} a {sale.status} sale", details={"status": sale.status})


def parse_discount(discount_type: str | None, discount_value) -> tuple[str | None, Decimal | None]:
    if discount_type in (None, ""):
        return None, None
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of: {', '.join(DISCOUNT_TYPES)}")
    value = parse_money("discount_value", discount_value if discount_value is not None else 0)
    if discount_type == "percentage" and value > HUNDRED:
        raise ValidationError("Percentage discount cannot exceed 100")
    return discount_type, value


def cart_lines_for(sale: Sale) -> list[CartLine]:
    return [
        CartLine(
            item_id=line.inventory_item_id,
            unit_price=to_decimal(line.unit_price),
            quantity=line.quantity,
            discount_type=line.discount_type,
            discount_value=line.discount_value,
        )
        for line in sale.items
    ]


def totals_for(sale: Sale):
    return compute_totals(
        cart_lines_for(sale),
        discount_type=sale.discount_type,
        discount_value=sale.discount_value,
        tax_rate=sale.tax_rate,
        paid=sale.paid_amount,
    )


def _recalculate(sale: Sale) -> None:
    for line in sale.items:
        gross = to_decimal(line.unit_price) * line.quantity
        line.discount_amount = discount_for(gross, line.discount_type, line.discount_value)
        line.total_price = q_money(max(ZERO, gross - line.discount_amount))

    totals = totals_for(sale)
    sale.subtotal = totals.subtotal
    sale.discount_amount = totals.discount_amount
    sale.tax_amount = totals.tax_amount
    sale.total_amount = totals.total
    sale.payment_status = payment_status_for(sale.paid_amount, sale.total_amount)


def create_sale(
    *,
    shop_id: int,
    customer_id: int | None = None,
    notes: str | None = None,
    actor_user_id: int | None = None,
    commit: bool = True,
) -> Sale:
    """Create a pending sale. customer_id None means walk-in."""
    shop = db.session.get(Shop, shop_id)
    if not shop:
        raise SaleError("Shop not found")
    validate_customer_for_shop(customer_id, shop_id)

    today = utc_today()
    sale_number = next_document_number(
        shop_id=shop_id,
        document_type="SALE",
        prefix=shop.invoice_prefix,
        pad=4,
        on_date=today,
    )

    sale = Sale(
        shop_id=shop_id,
        sale_number=sale_number,
        customer_id=customer_id,
        sale_date=today,
        status="pending",
        payment_status="unpaid",
        subtotal=ZERO,
        discount_amount=ZERO,
        tax_rate=shop.tax_rate or ZERO,
        tax_amount=ZERO,
        total_amount=ZERO,
        paid_amount=ZERO,
        currency=shop.currency,
        notes=notes,
        created_by_user_id=actor_user_id,
    )
    db.session.add(sale)
    db.session.flush()

    append_activity_event(
        shop_id=shop_id,
        event_type="sale.created",
        entity_type="sale",
        entity_id=sale.id,
        actor_user_id=actor_user_id,
        note=f"Sale {sale_number} created",
    )
    if commit:
        db.session.commit()
    return sale


def get_sale(*, shop_id: int, sale_id: int) -> Sale:
    return require_in_shop(Sale, sale_id, shop_id, label="Sale")


def add_item(
    *,
    shop_id: int,
    sale_id: int,
    inventory_item_id: int,
    unit_price=None,
    quantity=1,
    discount_type: str | None = None,
    discount_value=None,
    actor_user_id: int | None = None,
    commit: bool = True,
) -> SaleItem:
    """
    Put an available item on a pending sale and reserve it.

    unit_price defaults to the item's sale_price.
    """
    quantity = parse_quantity("quantity", quantity)
    line_discount_type, line_discount_value = parse_discount(discount_type, discount_value)
    get_sale(shop_id=shop_id, sale_id=sale_id)
    require_in_shop(InventoryItem, inventory_item_id, shop_id, label="Item")

    def _op():
        sale = _locked_sale(shop_id, sale_id)
        _require_pending(sale, "add items to")

        item = lock_for_update(
            db.session.query(InventoryItem).filter_by(id=inventory_item_id, shop_id=shop_id)
        ).first()

        if any(line.inventory_item_id == item.id for line in sale.items):
            raise SaleError("Item is already on this sale", details={"inventory_item_id": item.id})

        if item.status != "available":
            raise SaleError(
                f"Item is not available for sale (current status: {item.status})",
                details={"inventory_item_id": item.id, "status": item.status},
            )

        if unit_price is not None:
            price = parse_money("unit_price", unit_price)
        elif item.sale_price is not None:
            price = q_money(item.sale_price)
        else:
            raise SaleError("Item has no sale price", details={"inventory_item_id": item.id})

        line = SaleItem(
            shop_id=shop_id,
            sale_id=sale.id,
            inventory_item_id=item.id,
            unit_price=price,
            quantity=quantity,
            discount_type=line_discount_type,
            discount_value=line_discount_value,
            discount_amount=ZERO,
            total_price=ZERO,
        )
        db.session.add(line)
        sale.items.append(line)

        transition_item_status(item, "reserved", reason=f"Sale {sale.sale_number}", actor_user_id=actor_user_id)
        _recalculate(sale)
        db.session.flush()

        if commit:
            db.session.commit()
        return line

    return run_with_retry(_op) if commit else _op()


def _get_line(sale: Sale, line_id: int) -> SaleItem:
    for line in sale.items:
        if line.id == line_id:
            return line
    raise SaleError("Sale item not found", details={"sale_item_id": line_id})


def remove_item(
    *,
    shop_id: int,
    sale_id: int,
    sale_item_id: int,
    actor_user_id: int | None = None,
) -> Sale:
    get_sale(shop_id=shop_id, sale_id=sale_id)

    def _op():
        sale = _locked_sale(shop_id, sale_id)
        _require_pending(sale, "remove items from")
        line = _get_line(sale, sale_item_id)

        item = lock_for_update(
            db.session.query(InventoryItem).filter_by(id=line.inventory_item_id, shop_id=shop_id)
        ).first()
        if item is not None and item.status == "reserved":
            transition_item_status(item, "available", reason=f"Removed from sale {sale.sale_number}", actor_user_id=actor_user_id)

        db.session.delete(line)
        db.session.flush()
        db.session.expire(sale, ["items"])
        _recalculate(sale)
        db.session.commit()
        return sale

    return run_with_retry(_op)


def update_item(
    *,
    shop_id: int,
    sale_id: int,
    sale_item_id: int,
    unit_price=None,
    quantity=None,
    discount_type: str | None = None,
    discount_value=None,
    clear_discount: bool = False,
) -> SaleItem:
    """Change price, quantity or line discount while the sale is pending."""
    get_sale(shop_id=shop_id, sale_id=sale_id)
    new_price = parse_money("unit_price", unit_price) if unit_price is not None else None
    new_quantity = parse_quantity("quantity", quantity) if quantity is not None else None
    new_discount = parse_discount(discount_type, discount_value) if discount_type else None

    def _op():
        sale = _locked_sale(shop_id, sale_id)
        _require_pending(sale, "update items on")
        line = _get_line(sale, sale_item_id)

        if new_price is not None:
            line.unit_price = new_price
        if new_quantity is not None:
            line.quantity = new_quantity
        if clear_discount:
            line.discount_type = None
            line.discount_value = None
        elif new_discount is not None:
            line.discount_type, line.discount_value = new_discount

        _recalculate(sale)
        db.session.commit()
        return line

    return run_with_retry(_op)


def apply_discount(
    *,
    shop_id: int,
    sale_id: int,
    discount_type: str | None,
    discount_value=None,
    actor_user_id: int | None = None,
) -> Sale:
    """Set or clear (discount_type None) the order-level discount."""
    parsed_type, parsed_value = parse_discount(discount_type, discount_value)
    get_sale(shop_id=shop_id, sale_id=sale_id)

    def _op():
        sale = _locked_sale(shop_id, sale_id)
        _require_pending(sale, "discount")
        sale.discount_type = parsed_type
        sale.discount_value = parsed_value
        _recalculate(sale)

        append_activity_event(
            shop_id=shop_id,
            event_type="sale.discount_applied",
            entity_type="sale",
            entity_id=sale.id,
            actor_user_id=actor_user_id,
            payload={"discount_type": parsed_type, "discount_value": parsed_value},
        )
        db.session.commit()
        return sale

    return run_with_retry(_op)


def record_payment(
    *,
    shop_id: int,
    sale_id: int,
    payment_type: str,
    amount,
    cheque_number: str | None = None,
    cheque_date=None,
    cheque_bank: str | None = None,
    reference: str | None = None,
    notes: str | None = None,
    actor_user_id: int | None = None,
) -> SalePayment:
    """
    Record a tender against a sale.

    refund payments reduce paid_amount. On a completed sale with a
    customer, the payment also moves the customer account.
    """
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}")
    amount = parse_positive_money("amount", amount)
    parsed_cheque_date = parse_optional_date("cheque_date", cheque_date)
    if payment_type == "cheque":
        if not (cheque_number or "").strip():
            raise ValidationError("cheque_number is required for cheque payments")
        if parsed_cheque_date is None:
            raise ValidationError("cheque_date is required for cheque payments")
    get_sale(shop_id=shop_id, sale_id=sale_id)

    def _op():
        sale = _locked_sale(shop_id, sale_id)
        if sale.status in ("returned", "partial_return"):
            raise SaleError(f"Cannot record payment on a {sale.status} sale", details={"status": sale.status})

        paid = to_decimal(sale.paid_amount)
        if payment_type == "refund":
            if amount > paid:
                raise SaleError("Refund exceeds amount paid", details={"paid_amount": str(q_money(paid))})
            paid = paid - amount
        else:
            paid = paid + amount

        payment = SalePayment(
            shop_id=shop_id,
            sale_id=sale.id,
            customer_id=sale.customer_id,
            payment_type=payment_type,
            amount=amount,
            cheque_number=cheque_number.strip() if cheque_number else None,
            cheque_date=parsed_cheque_date,
            cheque_bank=cheque_bank,
            cheque_status="pending" if payment_type == "cheque" else None,
            reference=reference,
            notes=notes,
            created_by_user_id=actor_user_id,
        )
        db.session.add(payment)

        sale.paid_amount = q_money(paid)
        sale.payment_status = payment_status_for(sale.paid_amount, sale.total_amount)
        db.session.flush()

        if sale.status == "completed" and sale.customer_id is not None:
            customer = lock_for_update(
                db.session.query(Customer).filter_by(id=sale.customer_id, shop_id=shop_id)
            ).first()
            if payment_type == "refund":
                _post_customer_entry(
                    customer,
                    transaction_type="refund",
                    debit=amount,
                    reference_type="sale_payment",
                    reference_id=payment.id,
                    description=f"Refund on sale {sale.sale_number}",
                    actor_user_id=actor_user_id,
                )
            else:
                _post_customer_entry(
                    customer,
                    transaction_type="payment",
                    credit=amount,
                    reference_type="sale_payment",
                    reference_id=payment.id,
                    description=f"Payment on sale {sale.sale_number}",
                    actor_user_id=actor_user_id,
                )

        append_activity_event(
            shop_id=shop_id,
            event_type="sale.payment_recorded",
            entity_type="sale",
            entity_id=sale.id,
            actor_user_id=actor_user_id,
            payload={"payment_type": payment_type, "amount": amount},
        )
        db.session.commit()
        return payment

    return run_with_retry(_op)


def complete_sale(
    *,
    shop_id: int,
    sale_id: int,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> Sale:
    """
    Finalize a pending sale.

    Items become sold. With a customer: debit the total, credit whatever
    was already paid, and add the total to total_purchases.
    """
    get_sale(shop_id=shop_id, sale_id=sale_id)

    def _op():
        sale = _locked_sale(shop_id, sale_id)
        if expected_version is not None and sale.version_id != int(expected_version):
            raise SaleError("concurrent_modification", details={"version_id": sale.version_id})
        _require_pending(sale, "complete")
        if not sale.items:
            raise SaleError("Cannot complete a sale with no items")

        for line in sale.items:
            item = lock_for_update(
                db.session.query(InventoryItem).filter_by(id=line.inventory_item_id, shop_id=shop_id)
            ).first()
            transition_item_status(item, "sold", reason=f"Sale {sale.sale_number}", actor_user_id=actor_user_id)

        _recalculate(sale)
        sale.status = "completed"
        sale.completed_at = utcnow()
        db.session.flush()

        if sale.customer_id is not None:
            customer = lock_for_update(
                db.session.query(Customer).filter_by(id=sale.customer_id, shop_id=shop_id)
            ).first()
            total = to_decimal(sale.total_amount)
            paid = to_decimal(sale.paid_amount)
            if total > ZERO:
                _post_customer_entry(
                    customer,
                    transaction_type="sale",
                    debit=total,
                    reference_type="sale",
                    reference_id=sale.id,
                    description=f"Sale {sale.sale_number}",
                    actor_user_id=actor_user_id,
                )
            if paid > ZERO:
                _post_customer_entry(
                    customer,
                    transaction_type="payment",
                    credit=paid,
                    reference_type="sale",
                    reference_id=sale.id,
                    description=f"Payments on sale {sale.sale_number}",
                    actor_user_id=actor_user_id,
                )
            customer.total_purchases = q_money(to_decimal(customer.total_purchases) + total)

        append_activity_event(
            shop_id=shop_id,
            event_type="sale.completed",
            entity_type="sale",
            entity_id=sale.id,
            actor_user_id=actor_user_id,
            occurred_at=sale.completed_at,
            note=f"Sale {sale.sale_number} completed",
            payload={"total_amount": sale.total_amount},
        )
        db.session.commit()
        return sale

    try:
        sale = run_with_retry(_op)
    except StaleDataError:
        raise SaleError("concurrent_modification")

    current_app.logger.info("Sale %s completed for shop %s", sale.sale_number, shop_id)
    return sale


def void_sale(
    *,
    shop_id: int,
    sale_id: int,
    reason: str | None = None,
    actor_user_id: int | None = None,
) -> Sale:
    """Void a pending sale: release its items and mark it returned."""
    get_sale(shop_id=shop_id, sale_id=sale_id)

    def _op():
        sale = _locked_sale(shop_id, sale_id)
        _require_pending(sale, "void")

        for line in sale.items:
            item = lock_for_update(
                db.session.query(InventoryItem).filter_by(id=line.inventory_item_id, shop_id=shop_id)
            ).first()
            if item is not None and item.status == "reserved":
                transition_item_status(item, "available", reason=f"Sale {sale.sale_number} voided", actor_user_id=actor_user_id)

        sale.status = "returned"
        marker = f"[VOIDED] {reason}" if reason else "[VOIDED]"
        sale.notes = f"{sale.notes}\n{marker}" if sale.notes else marker

        append_activity_event(
            shop_id=shop_id,
            event_type="sale.voided",
            entity_type="sale",
            entity_id=sale.id,
            actor_user_id=actor_user_id,
            note=reason,
        )
        db.session.commit()
        return sale

    return run_with_retry(_op)


def list_sales(
    *,
    shop_id: int,
    status: str | None = None,
    customer_id: int | None = None,
    start_date=None,
    end_date=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Sale], int]:
    query = db.session.query(Sale).filter(Sale.shop_id == shop_id)

    if status:
        if status not in SALE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(SALE_STATUSES)}")
        query = query.filter(Sale.status == status)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)

    start = parse_optional_date("start_date", start_date)
    end = parse_optional_date("end_date", end_date)
    if start and end and start > end:
        raise ValidationError("start_date must be on or before end_date")
    if start:
        query = query.filter(Sale.sale_date >= start)
    if end:
        query = query.filter(Sale.sale_date <= end)

    total = query.count()
    sales = query.order_by(Sale.id.desc()).offset(offset).limit(limit).all()
    return sales, total
