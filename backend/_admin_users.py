from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

# Allow running this script from any working directory.
BACKEND_DIR = Path(__file__).resolve().parents[0]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.database import SessionLocal
from core.security import hash_password
from models.user import USER_ROLES, User


def _summary(user: User) -> dict:
    return {"id": user.id, "username": user.username, "role": user.role, "is_active": bool(user.is_active)}


def _find(db: Session, username: str) -> User | None:
    return db.execute(select(User).where(func.lower(User.username) == username.lower())).scalar_one_or_none()


def _prompt_password() -> str:
    pw1 = getpass.getpass("Password: ")
    pw2 = getpass.getpass("Confirm password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")
    if not pw1:
        raise SystemExit("Password cannot be empty")
    return pw1


def cmd_list(db: Session, _args: argparse.Namespace) -> None:
    for user in db.execute(select(User).order_by(User.id.asc())).scalars():
        print(_summary(user))


def cmd_create(db: Session, args: argparse.Namespace) -> None:
    role = args.role.strip().lower()
    if role not in USER_ROLES:
        raise SystemExit(f"Invalid --role. Use one of: {', '.join(USER_ROLES)}")
    if _find(db, args.username) is not None:
        raise SystemExit(f"Username already exists: {args.username!r}")
    if not args.yes:
        print(f"Dry run. Would create username={args.username!r} role={role}. Re-run with --yes to apply.")
        return

    user = User(
        username=args.username,
        password_hash=hash_password(_prompt_password()),
        role=role,
        name=(args.name or args.username).strip(),
        email=(args.email or "").strip() or None,
        is_active=True,
    )
    db.add(user)
    db.commit()
    print(_summary(user))


def cmd_set_password(db: Session, args: argparse.Namespace) -> None:
    user = _find(db, args.username)
    if user is None:
        raise SystemExit(f"No such user: {args.username!r}")
    if not args.yes:
        print(f"Dry run. Would set password for username={user.username!r}. Re-run with --yes to apply.")
        return

    user.password_hash = hash_password(_prompt_password())
    db.commit()
    print(_summary(user))


def cmd_set_active(db: Session, args: argparse.Namespace) -> None:
    user = _find(db, args.username)
    if user is None:
        raise SystemExit(f"No such user: {args.username!r}")
    active = args.command == "activate"
    if not args.yes:
        print(f"Dry run. Would set is_active={active} for username={user.username!r}. Re-run with --yes to apply.")
        return

    user.is_active = active
    db.commit()
    print(_summary(user))


def main() -> None:
    parser = argparse.ArgumentParser(description="Manage API users (admin/teacher accounts).")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List all users")

    create = sub.add_parser("create", help="Create a user; prompts for the password")
    create.add_argument("--role", default="teacher", help="admin or teacher (default: teacher)")
    create.add_argument("--name", default=None, help="Display name (default: username)")
    create.add_argument("--email", default=None, help="Optional email")

    sub.add_parser("set-password", help="Replace a user's password; prompts for the new one")
    sub.add_parser("activate", help="Allow a user to sign in again")
    sub.add_parser("deactivate", help="Block a user from signing in")

    for name, p in sub.choices.items():
        if name == "list":
            continue
        p.add_argument("username", help="Username (matched case-insensitively)")
        p.add_argument("--yes", action="store_true", help="Actually apply changes")

    args = parser.parse_args()
    if getattr(args, "username", None) is not None:
        args.username = args.username.strip()
        if not args.username:
            raise SystemExit("Username is required")

    handlers = {
        "list": cmd_list,
        "create": cmd_create,
        "set-password": cmd_set_password,
        "activate": cmd_set_active,
        "deactivate": cmd_set_active,
    }
    with SessionLocal() as db:
        handlers[args.command](db, args)


if __name__ == "__main__":
    main()
