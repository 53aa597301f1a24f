# Overview: Checkout step state machine (pure, no persistence).

"""
Checkout flow

Steps run strictly forward: review -> customer -> payment -> processing ->
complete. Any step may escape to error; retry() returns to review and
cancel() clears everything.

The flow holds no money of its own. Callers pass the cart state it needs
(has_items, remaining) when asking whether it can proceed.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from ..money import SETTLEMENT_TOLERANCE, ZERO, to_decimal


STEPS = ("review", "customer", "payment", "processing", "complete")
ERROR_STEP = "error"
ALL_STEPS = STEPS + (ERROR_STEP,)


class CheckoutError(Exception):
    """Raised for invalid checkout moves or failed checkout operations."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class CheckoutFlow:
    step: str = "review"
    sale_id: int | None = None
    customer_id: int | None = None
    error_message: str | None = None
    has_items: bool = False
    remaining: Decimal = field(default=ZERO)

    @property
    def total_steps(self) -> int:
        return len(STEPS) - 1

    @property
    def step_index(self) -> int:
        if self.step in STEPS:
            return STEPS.index(self.step)
        return -1

    @property
    def progress_percent(self) -> float:
        if self.step_index < 0:
            return 0.0
        return self.step_index / self.total_steps * 100

    def can_proceed(self) -> bool:
        if self.step == "review":
            return self.has_items or self.sale_id is not None
        if self.step == "customer":
            return True
        if self.step == "payment":
            return to_decimal(self.remaining) <= SETTLEMENT_TOLERANCE
        return False

    def can_go_back(self) -> bool:
        if self.step in ("processing", "complete", ERROR_STEP):
            return False
        return self.step_index > 0

    def next(self) -> str:
        if not self.can_proceed():
            raise CheckoutError(f"Cannot proceed from step {self.step}")
        self.step = STEPS[self.step_index + 1]
        return self.step

    def back(self) -> str:
        if not self.can_go_back():
            raise CheckoutError(f"Cannot go back from step {self.step}")
        self.step = STEPS[self.step_index - 1]
        return self.step

    def go_to(self, target: str) -> str:
        """Jump backward to an earlier step."""
        if target not in STEPS:
            raise CheckoutError(f"Unknown step: {target}")
        if not self.can_go_back():
            raise CheckoutError(f"Cannot go back from step {self.step}")
        if STEPS.index(target) >= self.step_index:
            raise CheckoutError("Can only jump to an earlier step")
        self.step = target
        return self.step

    def fail(self, message: str) -> None:
        self.step = ERROR_STEP
        self.error_message = message

    def retry(self) -> None:
        self.step = "review"
        self.error_message = None

    def cancel(self) -> None:
        self.step = "review"
        self.sale_id = None
        self.customer_id = None
        self.error_message = None
        self.has_items = False
        self.remaining = ZERO
