from __future__ import annotations

from ..extensions import db
from ..permissions import APPROVAL_APPROVED, APPROVAL_PENDING
from marketplace.time_utils import to_utc_z


class User(db.Model):
    """
    Marketplace participant (customer, supplier, retailer, tailor, delivery, admin).

    WHY: Every order, payment and payout is attributable to a user and the role
    they held. Registration and credentials live outside this service; a user
    row only needs identity, role and account state.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_approval", "role", "approval_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    mobile = db.Column(db.String(20), nullable=False, unique=True, index=True)
    role = db.Column(db.String(32), nullable=False, index=True)

    # pending -> approved | blocked (admin onboarding)
    approval_status = db.Column(db.String(16), nullable=False, default=APPROVAL_PENDING)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    @property
    def can_authenticate(self) -> bool:
        return bool(self.is_active) and self.approval_status == APPROVAL_APPROVED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "mobile": self.mobile,
            "role": self.role,
            "approval_status": self.approval_status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role}>"


class SessionToken(db.Model):
    """
    Opaque bearer token for an authenticated user.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute and idle timeouts (see Config)
    - Revocable
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime, nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    # Client context for security monitoring
    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
