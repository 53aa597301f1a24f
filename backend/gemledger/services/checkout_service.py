# Overview: Persisted checkout sessions driving a sale through the checkout flow.

"""
Checkout Service

WHY: The POS checkout spans several requests (review cart, pick customer,
take payments, finalize). The step lives server-side in CheckoutSession so
a refresh or a second terminal can't skip validation.

DESIGN:
- Step rules come from CheckoutFlow (pure); this module loads a flow from
  the session row, applies one move, and writes the step back
- Money work is delegated to sales_service
- Entering processing only happens through finalize()
"""

from flask import current_app

from ..extensions import db
from ..models import CheckoutSession, Sale
from ..time_utils import utcnow
from ..validation import ValidationError
from .checkout_flow import CheckoutError, CheckoutFlow, STEPS
from .customer_service import validate_customer_for_shop
from .inventory_service import InventoryError
from .ledger_service import append_activity_event
from .sales_service import (
    SaleError,
    add_item,
    apply_discount,
    complete_sale,
    create_sale,
    parse_discount,
    record_payment,
    totals_for,
    void_sale,
)
from .tenant_service import TenantAccessError, require_in_shop


def get_session(*, shop_id: int, checkout_id: int) -> CheckoutSession:
    return require_in_shop(CheckoutSession, checkout_id, shop_id, label="Checkout")


def _sale_for(session: CheckoutSession) -> Sale | None:
    if session.sale_id is None:
        return None
    return db.session.get(Sale, session.sale_id)


def _flow_for(session: CheckoutSession) -> CheckoutFlow:
    sale = _sale_for(session)
    flow = CheckoutFlow(
        step=session.step,
        sale_id=session.sale_id,
        customer_id=session.customer_id,
        error_message=session.error_message,
    )
    if sale is not None:
        flow.has_items = bool(sale.items)
        flow.remaining = totals_for(sale).remaining
    return flow


def _save_flow(session: CheckoutSession, flow: CheckoutFlow) -> None:
    session.step = flow.step
    session.sale_id = flow.sale_id
    session.customer_id = flow.customer_id
    session.error_message = flow.error_message


def describe_checkout(session: CheckoutSession) -> dict:
    flow = _flow_for(session)
    sale = _sale_for(session)
    data = session.to_dict()
    data.update({
        "step_index": flow.step_index,
        "total_steps": flow.total_steps,
        "progress_percent": flow.progress_percent,
        "can_proceed": flow.can_proceed(),
        "can_go_back": flow.can_go_back(),
        "sale": sale.to_dict(include_lines=True) if sale is not None else None,
        "totals": totals_for(sale).to_dict() if sale is not None else None,
    })
    return data


def start_checkout(
    *,
    shop_id: int,
    lines: list[dict],
    customer_id: int | None = None,
    discount_type: str | None = None,
    discount_value=None,
    actor_user_id: int | None = None,
) -> CheckoutSession:
    """
    Open a checkout: create the sale and put every cart line on it.

    The order discount is checked before anything is written. If a line
    or the discount fails afterwards, the sale is voided (releasing items
    already reserved) and CheckoutError reports what failed.
    """
    if not isinstance(lines, list) or not lines:
        raise ValidationError("lines must be a non-empty list")
    for index, line in enumerate(lines):
        if not isinstance(line, dict) or line.get("inventory_item_id") is None:
            raise ValidationError(f"lines[{index}].inventory_item_id is required")
    parse_discount(discount_type, discount_value)

    sale = create_sale(shop_id=shop_id, customer_id=customer_id, actor_user_id=actor_user_id)

    for index, line in enumerate(lines):
        try:
            add_item(
                shop_id=shop_id,
                sale_id=sale.id,
                inventory_item_id=line["inventory_item_id"],
                unit_price=line.get("unit_price"),
                quantity=line.get("quantity", 1),
                discount_type=line.get("discount_type"),
                discount_value=line.get("discount_value"),
                actor_user_id=actor_user_id,
            )
        except (SaleError, InventoryError, ValidationError, TenantAccessError) as e:
            db.session.rollback()
            void_sale(shop_id=shop_id, sale_id=sale.id, reason="Checkout aborted", actor_user_id=actor_user_id)
            raise CheckoutError(
                str(e),
                details={"line": index, "inventory_item_id": line["inventory_item_id"]},
            )

    if discount_type:
        try:
            apply_discount(
                shop_id=shop_id,
                sale_id=sale.id,
                discount_type=discount_type,
                discount_value=discount_value,
                actor_user_id=actor_user_id,
            )
        except (SaleError, ValidationError) as e:
            db.session.rollback()
            void_sale(shop_id=shop_id, sale_id=sale.id, reason="Checkout aborted", actor_user_id=actor_user_id)
            raise CheckoutError(str(e), details={"discount_type": discount_type})

    session = CheckoutSession(
        shop_id=shop_id,
        sale_id=sale.id,
        customer_id=customer_id,
        step="review",
        created_by_user_id=actor_user_id,
    )
    db.session.add(session)
    db.session.flush()

    append_activity_event(
        shop_id=shop_id,
        event_type="checkout.started",
        entity_type="checkout",
        entity_id=session.id,
        actor_user_id=actor_user_id,
        payload={"sale_id": sale.id},
    )
    db.session.commit()
    return session


def advance(*, shop_id: int, checkout_id: int) -> CheckoutSession:
    session = get_session(shop_id=shop_id, checkout_id=checkout_id)
    flow = _flow_for(session)
    if flow.step == "payment":
        raise CheckoutError("Use finalize to complete the checkout")
    flow.next()
    _save_flow(session, flow)
    db.session.commit()
    return session


def go_back(*, shop_id: int, checkout_id: int) -> CheckoutSession:
    session = get_session(shop_id=shop_id, checkout_id=checkout_id)
    flow = _flow_for(session)
    flow.back()
    _save_flow(session, flow)
    db.session.commit()
    return session


def go_to_step(*, shop_id: int, checkout_id: int, step: str) -> CheckoutSession:
    session = get_session(shop_id=shop_id, checkout_id=checkout_id)
    flow = _flow_for(session)
    flow.go_to(step)
    _save_flow(session, flow)
    db.session.commit()
    return session


def set_customer(*, shop_id: int, checkout_id: int, customer_id: int | None) -> CheckoutSession:
    """Attach (or clear, with None) the customer during the customer step."""
    session = get_session(shop_id=shop_id, checkout_id=checkout_id)
    if session.step != "customer":
        raise CheckoutError("Customer can only be set during the customer step")

    validate_customer_for_shop(customer_id, shop_id)

    sale = _sale_for(session)
    if sale is None or sale.status != "pending":
        raise CheckoutError("Checkout has no pending sale")

    sale.customer_id = customer_id
    session.customer_id = customer_id
    db.session.commit()
    return session


def add_payment(
    *,
    shop_id: int,
    checkout_id: int,
    payments: list[dict],
    actor_user_id: int | None = None,
) -> CheckoutSession:
    """
    Record tenders during the payment step.

    Refund entries are skipped: a checkout only takes money in.
    """
    session = get_session(shop_id=shop_id, checkout_id=checkout_id)
    if session.step != "payment":
        raise CheckoutError("Payments can only be added during the payment step")
    if not isinstance(payments, list) or not payments:
        raise ValidationError("payments must be a non-empty list")

    for entry in payments:
        if not isinstance(entry, dict):
            raise ValidationError("Each payment must be an object")
        if entry.get("payment_type") == "refund":
            continue
        record_payment(
            shop_id=shop_id,
            sale_id=session.sale_id,
            payment_type=entry.get("payment_type"),
            amount=entry.get("amount"),
            cheque_number=entry.get("cheque_number"),
            cheque_date=entry.get("cheque_date"),
            cheque_bank=entry.get("cheque_bank"),
            reference=entry.get("reference"),
            notes=entry.get("notes"),
            actor_user_id=actor_user_id,
        )

    return get_session(shop_id=shop_id, checkout_id=checkout_id)


def finalize(*, shop_id: int, checkout_id: int, actor_user_id: int | None = None) -> CheckoutSession:
    """
    payment -> processing -> complete.

    A failure while completing the sale moves the checkout to error (with
    the message kept) and is re-raised as CheckoutError.
    """
    session = get_session(shop_id=shop_id, checkout_id=checkout_id)
    flow = _flow_for(session)
    if flow.step != "payment":
        raise CheckoutError("Checkout can only be finalized from the payment step")
    flow.next()
    _save_flow(session, flow)
    db.session.commit()

    try:
        complete_sale(shop_id=shop_id, sale_id=session.sale_id, actor_user_id=actor_user_id)
    except (SaleError, InventoryError) as e:
        db.session.rollback()
        session = get_session(shop_id=shop_id, checkout_id=checkout_id)
        session.step = "error"
        session.error_message = str(e)
        db.session.commit()
        current_app.logger.warning("Checkout %s failed: %s", checkout_id, e)
        raise CheckoutError(str(e), details=getattr(e, "details", {}))

    session = get_session(shop_id=shop_id, checkout_id=checkout_id)
    flow = _flow_for(session)
    flow.step = STEPS[-1]
    _save_flow(session, flow)
    session.completed_at = utcnow()

    append_activity_event(
        shop_id=shop_id,
        event_type="checkout.completed",
        entity_type="checkout",
        entity_id=session.id,
        actor_user_id=actor_user_id,
        payload={"sale_id": session.sale_id},
    )
    db.session.commit()
    return session


def retry(*, shop_id: int, checkout_id: int) -> CheckoutSession:
    session = get_session(shop_id=shop_id, checkout_id=checkout_id)
    if session.step != "error":
        raise CheckoutError("Only a failed checkout can be retried")
    flow = _flow_for(session)
    flow.retry()
    _save_flow(session, flow)
    db.session.commit()
    return session


def cancel(*, shop_id: int, checkout_id: int, actor_user_id: int | None = None) -> CheckoutSession:
    """Abandon the checkout, voiding its pending sale so items are released."""
    session = get_session(shop_id=shop_id, checkout_id=checkout_id)
    if session.step == "complete":
        raise CheckoutError("A completed checkout cannot be cancelled")

    sale = _sale_for(session)
    if sale is not None and sale.status == "pending":
        void_sale(shop_id=shop_id, sale_id=sale.id, reason="Checkout cancelled", actor_user_id=actor_user_id)
        session = get_session(shop_id=shop_id, checkout_id=checkout_id)

    flow = _flow_for(session)
    flow.cancel()
    _save_flow(session, flow)
    session.cancelled_at = utcnow()

    append_activity_event(
        shop_id=shop_id,
        event_type="checkout.cancelled",
        entity_type="checkout",
        entity_id=session.id,
        actor_user_id=actor_user_id,
    )
    db.session.commit()
    return session
