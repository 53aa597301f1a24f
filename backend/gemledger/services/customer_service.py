# Overview: Customer records and customer account ledger.

"""
Customer Service

WHY: Jewelry shops sell on account. Every charge and payment must move the
customer's running balance and leave a ledger row with balance_after, so
statements can be reproduced from the ledger alone.

DESIGN:
- current_balance > 0: customer owes the shop
- current_balance < 0: shop holds customer credit
- financial_status is recomputed on every movement (owes, paid, credit)
- Posting helpers take commit=False so sales can post inside their own
  transaction
"""

from decimal import Decimal

from ..extensions import db
from ..models import Customer, CustomerTransaction
from ..money import ZERO, q_money, to_decimal
from ..validation import ValidationError, parse_positive_money
from .concurrency import check_version, lock_for_update, run_with_retry
from .ledger_service import append_activity_event
from .tenant_service import require_in_shop


class CustomerError(Exception):
    """Raised for customer operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def financial_status_for(balance) -> str:
    balance = to_decimal(balance)
    if balance > ZERO:
        return "owes"
    if balance < ZERO:
        return "credit"
    return "paid"


def create_customer(*, shop_id: int, patch: dict, actor_user_id: int | None = None) -> Customer:
    customer = Customer(shop_id=shop_id, **patch)
    customer.current_balance = ZERO
    customer.total_purchases = ZERO
    customer.financial_status = "paid"
    db.session.add(customer)
    db.session.flush()

    append_activity_event(
        shop_id=shop_id,
        event_type="customer.created",
        entity_type="customer",
        entity_id=customer.id,
        actor_user_id=actor_user_id,
    )
    db.session.commit()
    return customer


def get_customer(*, shop_id: int, customer_id: int) -> Customer:
    return require_in_shop(Customer, customer_id, shop_id, label="Customer")


def update_customer(
    *,
    shop_id: int,
    customer_id: int,
    patch: dict,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> Customer:
    customer = get_customer(shop_id=shop_id, customer_id=customer_id)
    check_version(customer, expected_version)

    for key, value in patch.items():
        setattr(customer, key, value)

    append_activity_event(
        shop_id=shop_id,
        event_type="customer.updated",
        entity_type="customer",
        entity_id=customer.id,
        actor_user_id=actor_user_id,
        payload={"fields": sorted(patch)},
    )
    db.session.commit()
    return customer


def list_customers(
    *,
    shop_id: int,
    search: str | None = None,
    include_inactive: bool = False,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Customer], int]:
    query = db.session.query(Customer).filter(Customer.shop_id == shop_id)

    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))

    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Customer.full_name.ilike(term),
                Customer.phone.ilike(term),
                Customer.email.ilike(term),
            )
        )

    total = query.count()
    customers = query.order_by(Customer.full_name.asc()).offset(offset).limit(limit).all()
    return customers, total


def deactivate_customer(*, shop_id: int, customer_id: int, actor_user_id: int | None = None) -> Customer:
    customer = get_customer(shop_id=shop_id, customer_id=customer_id)
    if not customer.is_active:
        raise CustomerError("Customer is already inactive")

    customer.is_active = False
    append_activity_event(
        shop_id=shop_id,
        event_type="customer.deactivated",
        entity_type="customer",
        entity_id=customer.id,
        actor_user_id=actor_user_id,
    )
    db.session.commit()
    return customer


def _post_entry(
    customer: Customer,
    *,
    transaction_type: str,
    debit: Decimal = ZERO,
    credit: Decimal = ZERO,
    reference_type: str | None = None,
    reference_id: int | None = None,
    description: str | None = None,
    actor_user_id: int | None = None,
) -> CustomerTransaction:
    new_balance = q_money(to_decimal(customer.current_balance) + debit - credit)
    customer.current_balance = new_balance
    customer.financial_status = financial_status_for(new_balance)

    entry = CustomerTransaction(
        shop_id=customer.shop_id,
        customer_id=customer.id,
        transaction_type=transaction_type,
        reference_type=reference_type,
        reference_id=reference_id,
        debit=q_money(debit),
        credit=q_money(credit),
        balance_after=new_balance,
        description=description[:255] if description else None,
        created_by_user_id=actor_user_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def record_customer_charge(
    *,
    shop_id: int,
    customer_id: int,
    amount,
    transaction_type: str = "sale",
    reference_type: str | None = None,
    reference_id: int | None = None,
    description: str | None = None,
    actor_user_id: int | None = None,
    commit: bool = True,
) -> CustomerTransaction:
    """Debit the customer account (balance increases)."""
    amount = parse_positive_money("amount", amount)
    get_customer(shop_id=shop_id, customer_id=customer_id)

    def _op():
        customer = lock_for_update(
            db.session.query(Customer).filter_by(id=customer_id, shop_id=shop_id)
        ).first()
        if not customer:
            raise CustomerError("Customer not found")

        entry = _post_entry(
            customer,
            transaction_type=transaction_type,
            debit=amount,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            actor_user_id=actor_user_id,
        )
        if commit:
            db.session.commit()
        return entry

    return run_with_retry(_op) if commit else _op()


def record_customer_credit(
    *,
    shop_id: int,
    customer_id: int,
    amount,
    transaction_type: str = "payment",
    reference_type: str | None = None,
    reference_id: int | None = None,
    description: str | None = None,
    actor_user_id: int | None = None,
    commit: bool = True,
) -> CustomerTransaction:
    """Credit the customer account (balance decreases, may go negative)."""
    amount = parse_positive_money("amount", amount)
    get_customer(shop_id=shop_id, customer_id=customer_id)

    def _op():
        customer = lock_for_update(
            db.session.query(Customer).filter_by(id=customer_id, shop_id=shop_id)
        ).first()
        if not customer:
            raise CustomerError("Customer not found")

        entry = _post_entry(
            customer,
            transaction_type=transaction_type,
            credit=amount,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            actor_user_id=actor_user_id,
        )
        if commit:
            db.session.commit()
        return entry

    return run_with_retry(_op) if commit else _op()


def get_customer_ledger(
    *,
    shop_id: int,
    customer_id: int,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[CustomerTransaction], int]:
    get_customer(shop_id=shop_id, customer_id=customer_id)

    query = db.session.query(CustomerTransaction).filter(
        CustomerTransaction.shop_id == shop_id,
        CustomerTransaction.customer_id == customer_id,
    )
    total = query.count()
    rows = query.order_by(CustomerTransaction.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def validate_customer_for_shop(customer_id: int | None, shop_id: int) -> Customer | None:
    """Resolve an optional customer reference; None means walk-in."""
    if customer_id is None:
        return None
    customer = get_customer(shop_id=shop_id, customer_id=customer_id)
    if not customer.is_active:
        raise ValidationError("Customer is not active")
    return customer
