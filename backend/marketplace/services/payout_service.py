# Overview: Service-layer operations for payouts; encapsulates settlement business logic and database work.

"""
Payout Settlement Service

WHY: Once money for a transaction has been collected, the platform owes the
seller the gross amount minus its commission. This service records that debt
(a Payout) and links it to the exact orders or invoices it settles.

LEDGER RULES:
- One ledger: payouts + payout_sources
- A source (order or invoice) is settled at most once: UNIQUE(source_type, source_id)
- Every line and every payout balances: gross == commission + payable
- The commission rate comes from the settlement context, never a shared constant
- pending -> paid only; a paid payout is immutable

SOURCES OF PAYOUTS:
- Delivering a product order creates its pending payout in the delivering
  transaction (context product_order)
- Admins settle invoices (single: tailoring_invoice, batch: tailor_batch) and
  any delivered + paid order that is not yet linked
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PayoutAlreadyPaidError,
    ValidationError,
)
from ..config import (
    COMMISSION_CONTEXT_PRODUCT_ORDER,
    COMMISSION_CONTEXT_TAILOR_BATCH,
    COMMISSION_CONTEXT_TAILORING_INVOICE,
)
from ..models import Invoice, Order, Payout, PayoutSource, User
from ..models.orders import ORDER_PAYMENT_PAID, ORDER_STATUS_DELIVERED
from ..models.payouts import (
    DEFAULT_PAYOUT_MODE,
    PAYOUT_STATUS_PAID,
    PAYOUT_STATUS_PENDING,
    SOURCE_TYPE_INVOICE,
    SOURCE_TYPE_ORDER,
    VALID_PAYOUT_STATUSES,
    VALID_SOURCE_TYPES,
)
from ..permissions import ROLE_TAILOR, is_admin
from ..validation import coerce_int
from marketplace.time_utils import utcnow
from .commission_service import calculate_commission, rate_for_context
from .concurrency import apply_lock_timeout, lock_for_update, run_with_retry
from .payment_service import normalize_transaction_ref


# Settlement contexts each source type may be settled under
SOURCE_CONTEXTS = {
    SOURCE_TYPE_ORDER: frozenset({COMMISSION_CONTEXT_PRODUCT_ORDER}),
    SOURCE_TYPE_INVOICE: frozenset({COMMISSION_CONTEXT_TAILORING_INVOICE, COMMISSION_CONTEXT_TAILOR_BATCH}),
}

MAX_PAYOUT_NOTES_LENGTH = 500
MAX_PAYOUT_MODE_LENGTH = 32


def normalize_payout_mode(payout_mode) -> str | None:
    """Free-form label (bank_transfer, UPI, cheque); blank reads as unset."""
    if payout_mode is None:
        return None
    mode = str(payout_mode).strip()
    if not mode:
        return None
    if len(mode) > MAX_PAYOUT_MODE_LENGTH:
        raise ValidationError(f"payout_mode exceeds max length {MAX_PAYOUT_MODE_LENGTH}")
    return mode


def _require_admin(actor: User) -> None:
    if not is_admin(actor.role):
        raise ForbiddenError("Admin role required")


def default_context(source_type: str, source_count: int) -> str:
    if source_type == SOURCE_TYPE_ORDER:
        return COMMISSION_CONTEXT_PRODUCT_ORDER
    if source_count > 1:
        return COMMISSION_CONTEXT_TAILOR_BATCH
    return COMMISSION_CONTEXT_TAILORING_INVOICE


def _validate_context(source_type: str, context: str) -> None:
    if context not in SOURCE_CONTEXTS[source_type]:
        raise ValidationError(f"Settlement context {context} does not apply to {source_type} sources")


# =============================================================================
# ELIGIBILITY
# =============================================================================

def _unlinked(source_type: str, id_column):
    linked = select(PayoutSource.source_id).where(PayoutSource.source_type == source_type)
    return id_column.not_in(linked)


def _eligible_orders_query():
    return db.session.query(Order).filter(
        Order.status == ORDER_STATUS_DELIVERED,
        Order.payment_status == ORDER_PAYMENT_PAID,
        _unlinked(SOURCE_TYPE_ORDER, Order.id),
    )


def _eligible_invoices_query():
    return db.session.query(Invoice).filter(_unlinked(SOURCE_TYPE_INVOICE, Invoice.id))


def _source_line(source_type: str, source) -> dict:
    if source_type == SOURCE_TYPE_ORDER:
        return {
            "source_type": SOURCE_TYPE_ORDER,
            "source_id": source.id,
            "beneficiary_id": source.seller_id,
            "beneficiary_role": source.seller_role,
            "gross_amount_cents": source.total_amount_cents,
        }
    return {
        "source_type": SOURCE_TYPE_INVOICE,
        "source_id": source.id,
        "beneficiary_id": source.tailor_id,
        "beneficiary_role": ROLE_TAILOR,
        "gross_amount_cents": source.amount_cents,
    }


def list_pending_settlements(
    actor: User,
    *,
    source_type: str | None = None,
    beneficiary_id: int | None = None,
    context: str | None = None,
) -> list[dict]:
    """
    Preview settlement-eligible sources with their computed split.

    Orders: delivered + paid and not linked. Invoices: not linked.
    context overrides the default per-source context (e.g. tailor_batch).
    """
    _require_admin(actor)
    if source_type is not None and source_type not in VALID_SOURCE_TYPES:
        raise ValidationError(f"source_type must be one of {list(VALID_SOURCE_TYPES)}")

    rows = []
    if source_type in (None, SOURCE_TYPE_ORDER):
        query = _eligible_orders_query()
        if beneficiary_id is not None:
            query = query.filter(Order.seller_id == beneficiary_id)
        rows.extend(_source_line(SOURCE_TYPE_ORDER, o) for o in query.order_by(Order.id.asc()).all())
    if source_type in (None, SOURCE_TYPE_INVOICE):
        query = _eligible_invoices_query()
        if beneficiary_id is not None:
            query = query.filter(Invoice.tailor_id == beneficiary_id)
        rows.extend(_source_line(SOURCE_TYPE_INVOICE, i) for i in query.order_by(Invoice.id.asc()).all())

    for row in rows:
        row_context = context or default_context(row["source_type"], 1)
        _validate_context(row["source_type"], row_context)
        split = calculate_commission(row["gross_amount_cents"], rate_for_context(row_context))
        row.update(split.to_dict())
        row["settlement_context"] = row_context
    return rows


# =============================================================================
# PAYOUT CREATION
# =============================================================================

def _build_payout(
    *,
    beneficiary_id: int,
    beneficiary_role: str,
    context: str,
    lines: list[dict],
    created_by_user_id: int | None,
    mark_paid: bool = False,
    payout_mode: str | None = None,
    transaction_ref: str | None = None,
    notes: str | None = None,
) -> Payout:
    """Insert one payout plus its source links. Caller owns the transaction."""
    rate_bps = rate_for_context(context)
    now = utcnow()

    splits = [calculate_commission(line["gross_amount_cents"], rate_bps) for line in lines]

    payout = Payout(
        beneficiary_id=beneficiary_id,
        beneficiary_role=beneficiary_role,
        settlement_context=context,
        commission_rate_bps=rate_bps,
        gross_amount_cents=sum(s.amount_cents for s in splits),
        platform_commission_cents=sum(s.commission_cents for s in splits),
        payable_amount_cents=sum(s.payable_cents for s in splits),
        payout_status=PAYOUT_STATUS_PAID if mark_paid else PAYOUT_STATUS_PENDING,
        payout_mode=payout_mode or DEFAULT_PAYOUT_MODE,
        transaction_ref=transaction_ref,
        notes=notes,
        created_by_user_id=created_by_user_id,
        paid_by_user_id=created_by_user_id if mark_paid else None,
        created_at=now,
        paid_at=now if mark_paid else None,
    )
    db.session.add(payout)

    for line, split in zip(lines, splits):
        db.session.add(PayoutSource(
            payout=payout,
            source_type=line["source_type"],
            source_id=line["source_id"],
            gross_amount_cents=split.amount_cents,
            platform_commission_cents=split.commission_cents,
            payable_amount_cents=split.payable_cents,
            created_at=now,
        ))

    db.session.flush()
    return payout


def settle_delivered_order(order: Order) -> Payout:
    """
    Pending payout for a product order that just entered delivered.

    Runs inside the delivering transaction and does not commit.
    """
    payout = _build_payout(
        beneficiary_id=order.seller_id,
        beneficiary_role=order.seller_role,
        context=COMMISSION_CONTEXT_PRODUCT_ORDER,
        lines=[_source_line(SOURCE_TYPE_ORDER, order)],
        created_by_user_id=None,
    )
    current_app.logger.info(
        "Payout %s pending for order %s: gross=%s commission=%s payable=%s",
        payout.id, order.id, payout.gross_amount_cents,
        payout.platform_commission_cents, payout.payable_amount_cents,
    )
    return payout


def _normalize_source_ids(source_ids) -> list[int]:
    if not isinstance(source_ids, list) or not source_ids:
        raise ValidationError("source_ids must be a non-empty list")
    ids = [coerce_int("source_id", value) for value in source_ids]
    if len(set(ids)) != len(ids):
        raise ValidationError("source_ids must not contain duplicates")
    return sorted(ids)


def _normalize_notes(notes) -> str | None:
    if notes is None:
        return None
    notes = str(notes).strip()
    if len(notes) > MAX_PAYOUT_NOTES_LENGTH:
        raise ValidationError(f"notes exceeds max length {MAX_PAYOUT_NOTES_LENGTH}")
    return notes or None


def create_payout(
    actor: User,
    *,
    source_type: str,
    source_ids,
    context: str | None = None,
    mark_paid: bool = False,
    payout_mode: str | None = None,
    transaction_ref: str | None = None,
    notes: str | None = None,
) -> Payout:
    """
    Admin settles one or more sources of ONE beneficiary in one payout.

    Sources are locked, checked for eligibility and for an existing link, then
    the payout and one link per source are inserted together. A concurrent
    settlement of the same source loses on the unique link constraint and
    surfaces as ConflictError.
    """
    _require_admin(actor)
    if source_type not in VALID_SOURCE_TYPES:
        raise ValidationError(f"source_type must be one of {list(VALID_SOURCE_TYPES)}")
    ids = _normalize_source_ids(source_ids)
    context = context or default_context(source_type, len(ids))
    _validate_context(source_type, context)
    payout_mode = normalize_payout_mode(payout_mode)
    transaction_ref = normalize_transaction_ref(transaction_ref)
    notes = _normalize_notes(notes)
    if not isinstance(mark_paid, bool):
        raise ValidationError("mark_paid must be a boolean")

    model = Order if source_type == SOURCE_TYPE_ORDER else Invoice

    def _op():
        apply_lock_timeout()

        sources = lock_for_update(
            db.session.query(model).filter(model.id.in_(ids)).order_by(model.id.asc())
        ).all()
        found = {s.id for s in sources}
        missing = [i for i in ids if i not in found]
        if missing:
            raise NotFoundError(f"{source_type} not found: {missing}", missing_ids=missing)

        if source_type == SOURCE_TYPE_ORDER:
            not_ready = [
                o.id for o in sources
                if o.status != ORDER_STATUS_DELIVERED or o.payment_status != ORDER_PAYMENT_PAID
            ]
            if not_ready:
                raise ValidationError(
                    "Orders must be delivered and paid before settlement",
                    source_ids=not_ready,
                )

        linked = [
            row.source_id for row in db.session.query(PayoutSource.source_id).filter(
                PayoutSource.source_type == source_type,
                PayoutSource.source_id.in_(ids),
            ).all()
        ]
        if linked:
            raise ConflictError("Sources already settled", source_ids=sorted(linked))

        lines = [_source_line(source_type, s) for s in sources]
        beneficiaries = {(line["beneficiary_id"], line["beneficiary_role"]) for line in lines}
        if len(beneficiaries) != 1:
            raise ValidationError("All sources of a payout must belong to one beneficiary")
        beneficiary_id, beneficiary_role = beneficiaries.pop()

        payout = _build_payout(
            beneficiary_id=beneficiary_id,
            beneficiary_role=beneficiary_role,
            context=context,
            lines=lines,
            created_by_user_id=actor.id,
            mark_paid=mark_paid,
            payout_mode=payout_mode,
            transaction_ref=transaction_ref,
            notes=notes,
        )
        db.session.commit()
        return payout

    try:
        payout = run_with_retry(_op)
    except IntegrityError:
        raise ConflictError("Sources already settled")

    current_app.logger.info(
        "Payout %s created by admin %s: %s %s context=%s status=%s payable=%s",
        payout.id, actor.id, source_type, ids, context,
        payout.payout_status, payout.payable_amount_cents,
    )
    return payout


# =============================================================================
# PAYOUT MARKING
# =============================================================================

def mark_payout_paid(
    actor: User,
    payout_id: int,
    *,
    payout_mode: str | None = None,
    transaction_ref: str | None = None,
) -> Payout:
    """pending -> paid via conditional update; a paid payout is never touched again."""
    _require_admin(actor)
    payout_mode = normalize_payout_mode(payout_mode)
    transaction_ref = normalize_transaction_ref(transaction_ref)

    def _op():
        apply_lock_timeout()
        payout = db.session.get(Payout, payout_id)
        if payout is None:
            raise NotFoundError(f"Payout {payout_id} not found")

        values = {
            "payout_status": PAYOUT_STATUS_PAID,
            "paid_at": utcnow(),
            "paid_by_user_id": actor.id,
            "version_id": Payout.version_id + 1,
        }
        if payout_mode:
            values["payout_mode"] = payout_mode
        if transaction_ref:
            values["transaction_ref"] = transaction_ref

        result = db.session.execute(
            update(Payout)
            .where(Payout.id == payout_id, Payout.payout_status == PAYOUT_STATUS_PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise PayoutAlreadyPaidError(f"Payout {payout_id} is already paid")

        db.session.commit()
        return db.session.get(Payout, payout_id, populate_existing=True)

    payout = run_with_retry(_op)
    current_app.logger.info("Payout %s marked paid by admin %s", payout_id, actor.id)
    return payout


# =============================================================================
# QUERIES
# =============================================================================

def _status_filter(query, status: str | None):
    if status is None:
        return query
    if status not in VALID_PAYOUT_STATUSES:
        raise ValidationError(f"status must be one of {list(VALID_PAYOUT_STATUSES)}")
    return query.filter(Payout.payout_status == status)


def list_payouts_for_user(actor: User, *, status: str | None = None) -> list[Payout]:
    query = db.session.query(Payout).filter(Payout.beneficiary_id == actor.id)
    return _status_filter(query, status).order_by(Payout.created_at.desc(), Payout.id.desc()).all()


def list_payouts(actor: User, *, status: str | None = None, beneficiary_id: int | None = None) -> list[Payout]:
    _require_admin(actor)
    query = db.session.query(Payout)
    if beneficiary_id is not None:
        query = query.filter(Payout.beneficiary_id == beneficiary_id)
    return _status_filter(query, status).order_by(Payout.created_at.desc(), Payout.id.desc()).all()


def get_payout(actor: User, payout_id: int) -> Payout:
    payout = db.session.get(Payout, payout_id)
    if payout is None or (not is_admin(actor.role) and payout.beneficiary_id != actor.id):
        raise NotFoundError(f"Payout {payout_id} not found")
    return payout
