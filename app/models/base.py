"""
TenantModel — abstract base for startup-owned tables.

A startup is the tenant of this platform: it owns its task statuses and
tasks. Models that belong to exactly one startup inherit from TenantModel
instead of db.Model directly, which gives them:
  - a cascading tenant_id FK column with index
  - query_for_tenant(tenant_id) for scoped list queries
"""

from app.models import db


class TenantModel(db.Model):
    """Abstract base for startup-scoped tables."""
    __abstract__ = True

    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    @classmethod
    def query_for_tenant(cls, tenant_id):
        """Return a query restricted to one startup's rows."""
        return cls.query.filter_by(tenant_id=tenant_id)
