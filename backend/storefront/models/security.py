from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow

EVENT_AUTH_FAILED = "AUTH_FAILED"
EVENT_ADMIN_REQUIRED = "ADMIN_REQUIRED"
EVENT_OWNERSHIP_DENIED = "OWNERSHIP_DENIED"


class SecurityEvent(db.Model):
    """
    Append-only record of a refused request.

    Written for rejected bearer tokens and credentials, store owners hitting
    admin routes, and actors touching a store they do not control. Rows are
    only ever inserted; `flask maintenance cleanup-security-events` prunes
    old ones.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)  # None when no valid session

    event_type = db.Column(db.String(64), nullable=False, index=True)
    resource = db.Column(db.String(255), nullable=True)  # request path
    action = db.Column(db.String(16), nullable=True)     # HTTP method
    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<SecurityEvent {self.event_type} user_id={self.user_id} {self.action} {self.resource}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "user_id": self.user_id,
            "request": f"{self.action or ''} {self.resource or ''}".strip(),
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
