from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z


PAYOUT_STATUS_PENDING = "pending"
PAYOUT_STATUS_PAID = "paid"
VALID_PAYOUT_STATUSES = (PAYOUT_STATUS_PENDING, PAYOUT_STATUS_PAID)

# What a PayoutSource points at
SOURCE_TYPE_ORDER = "order"
SOURCE_TYPE_INVOICE = "invoice"
VALID_SOURCE_TYPES = (SOURCE_TYPE_ORDER, SOURCE_TYPE_INVOICE)

DEFAULT_PAYOUT_MODE = "manual"


class Payout(db.Model):
    """
    Money owed (or paid) by the platform to one beneficiary.

    LEDGER RULES:
    - gross_amount_cents == platform_commission_cents + payable_amount_cents
    - Totals are the sums of the linked PayoutSource lines
    - pending -> paid only (conditional update); a paid payout is immutable
    - commission_rate_bps and settlement_context record how the split was made
    """
    __tablename__ = "payouts"
    __table_args__ = (
        db.CheckConstraint(
            "gross_amount_cents = platform_commission_cents + payable_amount_cents",
            name="ck_payouts_split_balances",
        ),
        db.CheckConstraint("platform_commission_cents >= 0", name="ck_payouts_commission_non_negative"),
        db.CheckConstraint("payable_amount_cents >= 0", name="ck_payouts_payable_non_negative"),
        db.Index("ix_payouts_beneficiary_status", "beneficiary_id", "payout_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    beneficiary_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    beneficiary_role = db.Column(db.String(32), nullable=False)

    settlement_context = db.Column(db.String(32), nullable=False)
    commission_rate_bps = db.Column(db.Integer, nullable=False)

    gross_amount_cents = db.Column(db.Integer, nullable=False)
    platform_commission_cents = db.Column(db.Integer, nullable=False)
    payable_amount_cents = db.Column(db.Integer, nullable=False)

    payout_status = db.Column(db.String(16), nullable=False, default=PAYOUT_STATUS_PENDING, index=True)
    payout_mode = db.Column(db.String(32), nullable=False, default=DEFAULT_PAYOUT_MODE)
    transaction_ref = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    # Null when created by the delivery transition (system)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    paid_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    paid_at = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    beneficiary = db.relationship("User", foreign_keys=[beneficiary_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_sources: bool = False) -> dict:
        data = {
            "id": self.id,
            "beneficiary_id": self.beneficiary_id,
            "beneficiary_role": self.beneficiary_role,
            "settlement_context": self.settlement_context,
            "commission_rate_bps": self.commission_rate_bps,
            "gross_amount_cents": self.gross_amount_cents,
            "platform_commission_cents": self.platform_commission_cents,
            "payable_amount_cents": self.payable_amount_cents,
            "payout_status": self.payout_status,
            "payout_mode": self.payout_mode,
            "transaction_ref": self.transaction_ref,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "paid_by_user_id": self.paid_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "paid_at": to_utc_z(self.paid_at),
            "version_id": self.version_id,
        }
        if include_sources:
            data["sources"] = [source.to_dict() for source in self.sources]
        return data


class PayoutSource(db.Model):
    """
    Settlement link: one order or invoice settled by one payout.

    UNIQUE(source_type, source_id) is the double-settlement guard; it holds
    even when two admins settle the same source concurrently.
    """
    __tablename__ = "payout_sources"
    __table_args__ = (
        db.UniqueConstraint("source_type", "source_id", name="uq_payout_sources_source"),
        db.CheckConstraint(
            "gross_amount_cents = platform_commission_cents + payable_amount_cents",
            name="ck_payout_sources_split_balances",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payout_id = db.Column(db.Integer, db.ForeignKey("payouts.id"), nullable=False, index=True)

    source_type = db.Column(db.String(16), nullable=False)
    source_id = db.Column(db.Integer, nullable=False)

    gross_amount_cents = db.Column(db.Integer, nullable=False)
    platform_commission_cents = db.Column(db.Integer, nullable=False)
    payable_amount_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    payout = db.relationship("Payout", backref=db.backref("sources", lazy=True, order_by="PayoutSource.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payout_id": self.payout_id,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "gross_amount_cents": self.gross_amount_cents,
            "platform_commission_cents": self.platform_commission_cents,
            "payable_amount_cents": self.payable_amount_cents,
        }
