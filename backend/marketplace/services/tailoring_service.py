# Overview: Service-layer operations for tailoring orders; encapsulates business logic and database work.

"""
Tailoring Order Workflow

    PLACED -(tailor quote)-> QUOTED -(customer confirm)-> CONFIRMED
    -(customer pay)-> PAID -(tailor start)-> IN_PROGRESS
    -(tailor complete)-> COMPLETED -(customer confirm receipt)-> DELIVERED

    PLACED | QUOTED -(customer cancel)-> CANCELLED

Every step is ONE conditional UPDATE keyed on (id, authorized actor, expected
status). When it matches no row, a diagnostic read explains why:
- no such order                         -> NotFoundError
- actor is not the order's tailor/customer -> ForbiddenError
- order is not in the expected status   -> InvalidStateError

price_cents and delivery_date are written only by the quote.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..models import Garment, MeasurementHead, MeasurementOption, Payment, TailoringOrder, User
from ..models.orders import PAYMENT_STATUS_PAID
from ..models.tailoring import (
    MEASUREMENT_FIELD_DROPDOWN,
    MEASUREMENT_FIELD_NUMBER,
    MEASUREMENT_FIELD_TYPES,
    TAILORING_STATUS_CANCELLED,
    TAILORING_STATUS_COMPLETED,
    TAILORING_STATUS_CONFIRMED,
    TAILORING_STATUS_DELIVERED,
    TAILORING_STATUS_IN_PROGRESS,
    TAILORING_STATUS_PAID,
    TAILORING_STATUS_PLACED,
    TAILORING_STATUS_QUOTED,
    TAILORING_STATUSES,
)
from ..permissions import ROLE_CUSTOMER, ROLE_TAILOR, is_admin
from ..validation import ModelValidationPolicy, coerce_int, require_amount_cents, validate_payload
from marketplace.time_utils import parse_iso_date, utcnow
from .concurrency import apply_lock_timeout, run_with_retry
from .payment_service import normalize_payment_mode, normalize_transaction_ref


MAX_NOTES_LENGTH = 500
MAX_GARMENT_NAME_LENGTH = 120
MAX_MEASUREMENT_OPTION_LENGTH = 120

MEASUREMENT_UNITS = ("inch", "cm")


# =============================================================================
# GARMENTS
# =============================================================================

def create_garment(tailor: User, name) -> Garment:
    if tailor.role != ROLE_TAILOR:
        raise ForbiddenError("Only tailors can offer garments")
    name = str(name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > MAX_GARMENT_NAME_LENGTH:
        raise ValidationError(f"name exceeds max length {MAX_GARMENT_NAME_LENGTH}")

    def _op():
        garment = Garment(tailor_id=tailor.id, name=name)
        db.session.add(garment)
        db.session.commit()
        return garment

    try:
        return run_with_retry(_op)
    except IntegrityError:
        raise ConflictError(f"Garment {name!r} already exists")


def list_garments(tailor_id: int) -> list[Garment]:
    return (
        db.session.query(Garment)
        .filter(Garment.tailor_id == tailor_id)
        .order_by(Garment.name.asc())
        .all()
    )


# =============================================================================
# MEASUREMENTS
# =============================================================================

MEASUREMENT_HEAD_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"garment_id", "label", "field_type", "unit", "is_required", "sort_order"}),
    required_on_create=frozenset({"garment_id", "label", "field_type"}),
)


def _owned_garment(tailor: User, garment_id: int) -> Garment:
    garment = db.session.get(Garment, garment_id)
    if garment is None or garment.tailor_id != tailor.id:
        raise NotFoundError(f"Garment {garment_id} not found")
    return garment


def add_measurement_head(tailor: User, payload: dict) -> MeasurementHead:
    """
    Tailor defines a measurement for one of their garments.

    is_required defaults to False and sort_order to 0. Labels are unique per
    garment; unit is only meaningful for number heads.
    """
    if tailor.role != ROLE_TAILOR:
        raise ForbiddenError("Only tailors can define measurements")

    payload = {
        k: v for k, v in (payload or {}).items()
        if not (k in ("is_required", "sort_order") and v is None)
    }
    patch = validate_payload(
        model=MeasurementHead, payload=payload, policy=MEASUREMENT_HEAD_POLICY, partial=False,
    )

    patch["field_type"] = patch["field_type"].lower()
    if patch["field_type"] not in MEASUREMENT_FIELD_TYPES:
        raise ValidationError(f"field_type must be one of: {', '.join(MEASUREMENT_FIELD_TYPES)}")

    unit = (patch.get("unit") or "").lower() or None
    if unit is not None and unit not in MEASUREMENT_UNITS:
        raise ValidationError(f"unit must be one of: {', '.join(MEASUREMENT_UNITS)}")
    if unit is not None and patch["field_type"] != MEASUREMENT_FIELD_NUMBER:
        raise ValidationError("unit applies to number measurements only")
    patch["unit"] = unit

    patch.setdefault("is_required", False)
    patch.setdefault("sort_order", 0)
    if patch["sort_order"] < 0:
        raise ValidationError("sort_order must be >= 0")

    _owned_garment(tailor, patch["garment_id"])

    def _op():
        head = MeasurementHead(created_by=tailor.id, created_at=utcnow(), **patch)
        db.session.add(head)
        db.session.commit()
        return head

    try:
        head = run_with_retry(_op)
    except IntegrityError:
        raise ConflictError(f"Measurement {patch['label']!r} already exists for this garment")

    current_app.logger.info(
        "Measurement head %s (%s) added to garment %s by tailor %s",
        head.id, head.field_type, head.garment_id, tailor.id,
    )
    return head


def add_measurement_option(tailor: User, measurement_head_id, value) -> MeasurementOption:
    """Tailor adds an allowed value to one of their dropdown measurements."""
    if tailor.role != ROLE_TAILOR:
        raise ForbiddenError("Only tailors can define measurements")
    if measurement_head_id is None:
        raise ValidationError("measurement_head_id is required")
    measurement_head_id = coerce_int("measurement_head_id", measurement_head_id)
    value = str(value or "").strip()
    if not value:
        raise ValidationError("value is required")
    if len(value) > MAX_MEASUREMENT_OPTION_LENGTH:
        raise ValidationError(f"value exceeds max length {MAX_MEASUREMENT_OPTION_LENGTH}")

    head = db.session.get(MeasurementHead, measurement_head_id)
    if head is None or head.garment.tailor_id != tailor.id:
        raise NotFoundError(f"Measurement head {measurement_head_id} not found")
    label = head.label
    if head.field_type != MEASUREMENT_FIELD_DROPDOWN:
        raise ValidationError(f"Options apply to dropdown measurements only, {label!r} is {head.field_type}")

    def _op():
        option = MeasurementOption(measurement_head_id=measurement_head_id, value=value, created_at=utcnow())
        db.session.add(option)
        db.session.commit()
        return option

    try:
        option = run_with_retry(_op)
    except IntegrityError:
        raise ConflictError(f"Option {value!r} already exists for {label!r}")

    current_app.logger.info("Measurement option %s added to head %s", option.id, measurement_head_id)
    return option


def list_measurement_heads(tailor: User, garment_id: int) -> list[MeasurementHead]:
    """A garment's measurements in display order (sort_order, then creation)."""
    _owned_garment(tailor, garment_id)
    return (
        db.session.query(MeasurementHead)
        .filter(MeasurementHead.garment_id == garment_id)
        .order_by(MeasurementHead.sort_order.asc(), MeasurementHead.id.asc())
        .all()
    )


# =============================================================================
# PLACEMENT & QUERIES
# =============================================================================

def place_tailoring_order(customer: User, *, tailor_id, garment_id, notes=None) -> TailoringOrder:
    """Customer asks a tailor to stitch one of the tailor's garments (status PLACED)."""
    if customer.role != ROLE_CUSTOMER:
        raise ForbiddenError("Only customers can place tailoring orders")
    tailor_id = coerce_int("tailor_id", tailor_id)
    garment_id = coerce_int("garment_id", garment_id)
    if notes is not None:
        notes = str(notes).strip() or None
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"notes exceeds max length {MAX_NOTES_LENGTH}")

    tailor = db.session.get(User, tailor_id)
    if tailor is None or tailor.role != ROLE_TAILOR or not tailor.can_authenticate:
        raise NotFoundError("Tailor not found")
    garment = db.session.get(Garment, garment_id)
    if garment is None or garment.tailor_id != tailor_id:
        raise NotFoundError("Garment not found for this tailor")

    def _op():
        order = TailoringOrder(
            customer_id=customer.id,
            tailor_id=tailor_id,
            garment_id=garment_id,
            notes=notes,
            status=TAILORING_STATUS_PLACED,
            created_at=utcnow(),
        )
        db.session.add(order)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Tailoring order %s placed by customer %s", order.id, customer.id)
    return order


def get_tailoring_order(actor: User, order_id: int) -> TailoringOrder:
    order = db.session.get(TailoringOrder, order_id)
    if order is None or not (
        is_admin(actor.role) or actor.id in (order.customer_id, order.tailor_id)
    ):
        raise NotFoundError(f"Tailoring order {order_id} not found")
    return order


def list_tailoring_orders(actor: User, *, status: str | None = None) -> list[TailoringOrder]:
    query = db.session.query(TailoringOrder)
    if actor.role == ROLE_TAILOR:
        query = query.filter(TailoringOrder.tailor_id == actor.id)
    elif not is_admin(actor.role):
        query = query.filter(TailoringOrder.customer_id == actor.id)
    if status is not None:
        if status not in TAILORING_STATUSES:
            raise ValidationError(f"Unknown tailoring status: {status}")
        query = query.filter(TailoringOrder.status == status)
    return query.order_by(TailoringOrder.created_at.desc(), TailoringOrder.id.desc()).all()


# =============================================================================
# CONDITIONAL TRANSITIONS
# =============================================================================

def _diagnose(order_id: int, actor_column: str, actor_id: int, expected: tuple[str, ...]):
    order = db.session.get(TailoringOrder, order_id, populate_existing=True)
    if order is None:
        return NotFoundError(f"Tailoring order {order_id} not found")
    if getattr(order, actor_column) != actor_id:
        return ForbiddenError(f"Not the {actor_column.removesuffix('_id')} of this order")
    return InvalidStateError(
        f"Tailoring order is {order.status}, expected {' or '.join(expected)}",
        current_status=order.status,
    )


def _transition(
    order_id: int,
    *,
    actor_column: str,
    actor_id: int,
    expected: tuple[str, ...],
    new_status: str,
    values: dict | None = None,
) -> None:
    """Single conditional UPDATE inside the caller's transaction."""
    column = getattr(TailoringOrder, actor_column)
    result = db.session.execute(
        update(TailoringOrder)
        .where(
            TailoringOrder.id == order_id,
            column == actor_id,
            TailoringOrder.status.in_(expected),
        )
        .values(status=new_status, **(values or {}))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise _diagnose(order_id, actor_column, actor_id, expected)


def _run_transition(order_id: int, actor: User, **kwargs) -> TailoringOrder:
    def _op():
        apply_lock_timeout()
        _transition(order_id, actor_id=actor.id, **kwargs)
        db.session.commit()
        return db.session.get(TailoringOrder, order_id, populate_existing=True)

    order = run_with_retry(_op)
    current_app.logger.info(
        "Tailoring order %s moved to %s by user %s", order_id, kwargs["new_status"], actor.id,
    )
    return order


def quote(tailor: User, order_id: int, *, price_cents, delivery_date) -> TailoringOrder:
    """Tailor prices the order and commits to a delivery date (PLACED -> QUOTED)."""
    price_cents = require_amount_cents("price_cents", price_cents)
    if delivery_date is None:
        raise ValidationError("delivery_date is required")
    try:
        parsed_date = parse_iso_date(delivery_date)
    except (TypeError, ValueError):
        raise ValidationError("delivery_date must be an ISO-8601 date (YYYY-MM-DD)")
    if not isinstance(parsed_date, date):
        raise ValidationError("delivery_date is required")

    now = utcnow()
    return _run_transition(
        order_id, tailor,
        actor_column="tailor_id",
        expected=(TAILORING_STATUS_PLACED,),
        new_status=TAILORING_STATUS_QUOTED,
        values={"price_cents": price_cents, "delivery_date": parsed_date, "quoted_at": now},
    )


def confirm(customer: User, order_id: int) -> TailoringOrder:
    """Customer accepts the quote (QUOTED -> CONFIRMED)."""
    return _run_transition(
        order_id, customer,
        actor_column="customer_id",
        expected=(TAILORING_STATUS_QUOTED,),
        new_status=TAILORING_STATUS_CONFIRMED,
        values={"confirmed_at": utcnow()},
    )


def cancel(customer: User, order_id: int) -> TailoringOrder:
    """Customer withdraws before confirming (PLACED | QUOTED -> CANCELLED)."""
    return _run_transition(
        order_id, customer,
        actor_column="customer_id",
        expected=(TAILORING_STATUS_PLACED, TAILORING_STATUS_QUOTED),
        new_status=TAILORING_STATUS_CANCELLED,
        values={"cancelled_at": utcnow()},
    )


def pay(
    customer: User,
    order_id: int,
    *,
    payment_mode: str | None = None,
    transaction_ref: str | None = None,
) -> tuple[TailoringOrder, Payment]:
    """
    Customer pays the quoted price (CONFIRMED -> PAID).

    The status change and the payment row (amount = quoted price) commit
    together. A replay with the same transaction_ref returns the earlier payment.
    """
    payment_mode = normalize_payment_mode(payment_mode)
    transaction_ref = normalize_transaction_ref(transaction_ref)

    def _replay():
        if not transaction_ref:
            return None
        existing = db.session.query(Payment).filter_by(transaction_ref=transaction_ref).first()
        if existing is None:
            return None
        if existing.tailoring_order_id != order_id or existing.payer_id != customer.id:
            raise ConflictError("transaction_ref already used for a different payment")
        return existing

    def _op():
        apply_lock_timeout()

        replay = _replay()
        if replay is not None:
            return db.session.get(TailoringOrder, order_id), replay

        now = utcnow()
        _transition(
            order_id,
            actor_column="customer_id",
            actor_id=customer.id,
            expected=(TAILORING_STATUS_CONFIRMED,),
            new_status=TAILORING_STATUS_PAID,
            values={"paid_at": now},
        )
        order = db.session.get(TailoringOrder, order_id, populate_existing=True)

        payment = Payment(
            tailoring_order_id=order_id,
            payer_id=customer.id,
            payer_role=customer.role,
            amount_cents=order.price_cents,
            payment_mode=payment_mode,
            payment_status=PAYMENT_STATUS_PAID,
            transaction_ref=transaction_ref,
            created_at=now,
        )
        db.session.add(payment)
        db.session.commit()
        return order, payment

    try:
        order, payment = run_with_retry(_op)
    except IntegrityError:
        replay = _replay()
        if replay is None:
            raise
        return db.session.get(TailoringOrder, order_id), replay

    current_app.logger.info(
        "Tailoring order %s paid: payment=%s amount_cents=%s", order_id, payment.id, payment.amount_cents,
    )
    return order, payment


def start_work(tailor: User, order_id: int) -> TailoringOrder:
    """PAID -> IN_PROGRESS."""
    return _run_transition(
        order_id, tailor,
        actor_column="tailor_id",
        expected=(TAILORING_STATUS_PAID,),
        new_status=TAILORING_STATUS_IN_PROGRESS,
        values={"work_started_at": utcnow()},
    )


def complete_work(tailor: User, order_id: int) -> TailoringOrder:
    """IN_PROGRESS -> COMPLETED."""
    return _run_transition(
        order_id, tailor,
        actor_column="tailor_id",
        expected=(TAILORING_STATUS_IN_PROGRESS,),
        new_status=TAILORING_STATUS_COMPLETED,
        values={"completed_at": utcnow()},
    )


def confirm_delivery(customer: User, order_id: int) -> TailoringOrder:
    """Customer confirms receipt (COMPLETED -> DELIVERED)."""
    return _run_transition(
        order_id, customer,
        actor_column="customer_id",
        expected=(TAILORING_STATUS_COMPLETED,),
        new_status=TAILORING_STATUS_DELIVERED,
        values={"delivered_at": utcnow()},
    )
