"""Startup membership / authorization collaborator.

The task engine never derives membership on its own; every mutation asks
one of these three questions first:

    is_tenant_member(user_id, tenant_id)      owner or linked member
    is_assignee(task_id, user_id)             user is in the task's assignee set
    is_creator_or_tenant_owner(task_id, uid)  may delete the task

Rules:
  - Read-only: nothing in this module writes or commits.
  - Unknown ids answer False rather than raising; the caller decides
    whether that is a 404 or a 403.
"""

import logging

from sqlalchemy import select

from app.models import db
from app.models.auth import Tenant, TenantMember
from app.models.task import Task, TaskAssignee

logger = logging.getLogger(__name__)


def is_tenant_member(user_id: int | None, tenant_id: int | None) -> bool:
    """True if the user owns the startup or holds any role in it."""
    if user_id is None or tenant_id is None:
        return False

    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        return False
    if tenant.owner_id == user_id:
        return True

    link = db.session.execute(
        select(TenantMember.id).where(
            TenantMember.tenant_id == tenant_id,
            TenantMember.user_id == user_id,
        )
    ).first()
    return link is not None


def is_assignee(task_id: str, user_id: int | None) -> bool:
    if user_id is None:
        return False
    link = db.session.execute(
        select(TaskAssignee.id).where(
            TaskAssignee.task_id == task_id,
            TaskAssignee.user_id == user_id,
        )
    ).first()
    return link is not None


def is_creator_or_tenant_owner(task_id: str, user_id: int | None) -> bool:
    """True if the user created the task or owns the task's startup."""
    if user_id is None:
        return False
    task = db.session.get(Task, task_id)
    if task is None:
        return False
    if task.created_by == user_id:
        return True
    tenant = db.session.get(Tenant, task.tenant_id)
    return tenant is not None and tenant.owner_id == user_id
