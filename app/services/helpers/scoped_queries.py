"""
Scope-enforced lookup helpers.

A status id is only meaningful inside its owning startup. Resolving
one with ``db.session.get(Model, pk)`` would let a caller move a task
into another startup's "Done" column, so every scoped get-by-id goes
through these helpers.

Usage:
    # Status must belong to the task's startup
    status = get_scoped(TaskStatus, status_id, tenant_id=task.tenant_id)
"""

import logging

from sqlalchemy import select

from app.core.exceptions import NotFoundError
from app.models import db

logger = logging.getLogger(__name__)


def get_scoped(model, pk, *, tenant_id: int):
    """Fetch a single entity by PK inside one startup.

    Cross-startup access is indistinguishable from a missing record: both
    raise NotFoundError → HTTP 404.

    Raises:
        ValueError: The model has no ``tenant_id`` column, or no tenant
                    was given.
        NotFoundError: The entity does not exist in the startup.
    """
    if tenant_id is None:
        raise ValueError(f"{model.__name__} id={pk} requires a tenant_id scope.")
    if not hasattr(model, "tenant_id"):
        raise ValueError(
            f"{model.__name__} has no tenant_id column; refusing an unscoped lookup."
        )

    result = db.session.execute(
        select(model).where(model.id == pk, model.tenant_id == tenant_id)
    ).scalar_one_or_none()
    if result is None:
        logger.debug("get_scoped: %s id=%s not found in tenant_id=%s", model.__name__, pk, tenant_id)
        raise NotFoundError(resource=model.__name__, resource_id=pk, tenant_id=tenant_id)
    return result
