"""
Create the default roles and their permissions. Safe to re-run. Run from project root:
  python -m app.scripts.seed_roles
"""
import logging
import sys

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.logging import configure_logging
from app.models import Permission, Role, RolePermission

logger = logging.getLogger(__name__)

P = Permission

DEFAULT_ROLES: dict[str, tuple[str, tuple[Permission, ...]]] = {
    "Admin": ("Full system access", tuple(Permission)),
    "Manager": (
        "Operations management access",
        (
            P.USERS_VIEW,
            P.INVENTORY_VIEW,
            P.INVENTORY_CREATE,
            P.INVENTORY_UPDATE,
            P.INVENTORY_ADJUST_STOCK,
            P.ORDERS_VIEW,
            P.ORDERS_CREATE,
            P.ORDERS_UPDATE,
            P.LOCATIONS_MANAGE,
            P.SUPPLIERS_MANAGE,
            P.REPORTS_VIEW,
            P.AUDIT_VIEW,
        ),
    ),
    "Operator": (
        "Day-to-day operations",
        (
            P.INVENTORY_VIEW,
            P.INVENTORY_UPDATE,
            P.INVENTORY_ADJUST_STOCK,
            P.ORDERS_VIEW,
            P.ORDERS_UPDATE,
            P.REPORTS_VIEW,
        ),
    ),
    "Viewer": ("Read-only access", (P.INVENTORY_VIEW, P.ORDERS_VIEW, P.REPORTS_VIEW)),
}


def seed_roles(db: Session) -> dict[str, str]:
    """
    Ensure every default role exists with at least its default permissions.
    Existing roles keep extra grants. Returns role name -> role id. Caller commits.
    """
    role_ids: dict[str, str] = {}
    for name, (description, permissions) in DEFAULT_ROLES.items():
        role = db.scalars(select(Role).where(Role.name == name)).first()
        if role is None:
            role = Role(name=name, description=description)
            db.add(role)
            logger.info("Creating role %s", name)
        granted = {rp.permission for rp in role.permissions}
        for permission in permissions:
            if permission not in granted:
                role.permissions.append(RolePermission(permission=permission))
        db.flush()
        role_ids[name] = role.id
    return role_ids


def main() -> int:
    configure_logging(get_settings())
    db = SessionLocal()
    try:
        role_ids = seed_roles(db)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Seeding roles failed")
        return 1
    finally:
        db.close()
    for name, role_id in role_ids.items():
        print(f"{name}: {role_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
