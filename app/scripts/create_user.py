"""
Create a user (e.g. the first admin). Run from project root after seed_roles:
  python -m app.scripts.create_user EMAIL USERNAME PASSWORD FIRST LAST [role]
Example:
  python -m app.scripts.create_user admin@example.com admin 'Secure123!@#' System Administrator Admin
"""
import argparse
import asyncio
import sys

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select

from app.api.deps import get_auth_service
from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.errors import AppError
from app.core.logging import configure_logging
from app.models import Role
from app.schemas.auth import RegisterRequest


def _role_id(name: str) -> str | None:
    db = SessionLocal()
    try:
        role = db.scalars(select(Role).where(Role.name == name)).first()
        return role.id if role else None
    finally:
        db.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create an InventoryFlow user (no self-registration).")
    parser.add_argument("email", help="Email address")
    parser.add_argument("username", help="Username (1-50 chars)")
    parser.add_argument("password", help="Password (8-128 chars, mixed case, digit, special)")
    parser.add_argument("first_name")
    parser.add_argument("last_name")
    parser.add_argument("role", nargs="?", default="Viewer", help="Role name (default: Viewer)")
    args = parser.parse_args()

    configure_logging(get_settings())

    role_id = _role_id(args.role)
    if role_id is None:
        print(f"Role '{args.role}' not found. Run app.scripts.seed_roles first.", file=sys.stderr)
        return 1

    try:
        request = RegisterRequest(
            email=args.email,
            username=args.username,
            password=args.password,
            first_name=args.first_name,
            last_name=args.last_name,
            role_id=role_id,
        )
    except SchemaValidationError as e:
        for err in e.errors():
            print(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}", file=sys.stderr)
        return 1

    try:
        user = asyncio.run(get_auth_service().register(request))
    except AppError as e:
        print(e.message, file=sys.stderr)
        return 1
    print(f"Created user '{user.username}' with role '{args.role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
