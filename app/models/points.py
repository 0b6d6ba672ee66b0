"""
Points ledger model.

A PointsTransaction is one signed credit/debit against a user's point
balance. User.points is kept equal to the sum of a user's transactions by
app.services.points_service, which is the only writer of this table.
"""

import uuid
from datetime import datetime, timezone

from app.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class PointsTransaction(db.Model):
    __tablename__ = "points_transactions"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    meta = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=_utcnow)

    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": self.amount,
            "reason": self.reason,
            "meta": self.meta or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
