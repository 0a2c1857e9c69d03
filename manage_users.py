from __future__ import annotations

import argparse
import asyncio
from typing import Any

from permitdesk import db as database
from permitdesk import user_store
from permitdesk.errors import ConflictError
from permitdesk.user_store import MIN_PASSWORD_LENGTH, Role


def print_user(user: dict[str, object]) -> None:
    sharing = "sharing" if user.get("isLocationSharingEnabled") else "-"
    print(f"{user['id']}  {user['role']:<5} {sharing:<7} {user['email']:<32} {user['name']}")


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise SystemExit(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


async def _require_user(db: Any, email: str) -> dict[str, Any]:
    user = await user_store.get_user_by_email(db, email)
    if not user:
        raise SystemExit(f"User '{email}' not found")
    return user


async def cmd_list(ns: argparse.Namespace, db: Any) -> None:
    role = Role.ADMIN if ns.admins else None
    users = await user_store.list_users(db, role=role)
    if not users:
        print("(no users)")
        return
    for user in users:
        print_user(user)


async def cmd_add(ns: argparse.Namespace, db: Any) -> None:
    _check_password(ns.password)
    try:
        record = await user_store.create_user(
            db,
            name=ns.name,
            email=ns.email,
            password=ns.password,
            role=Role.ADMIN if ns.admin else Role.USER,
        )
    except ConflictError as exc:
        raise SystemExit(exc.message) from exc
    print("Created user:")
    print_user(record)


async def cmd_set_password(ns: argparse.Namespace, db: Any) -> None:
    _check_password(ns.password)
    user = await _require_user(db, ns.email)
    await user_store.set_password(db, user["id"], ns.password)
    print(f"Password updated for '{user['email']}'")


async def cmd_delete(ns: argparse.Namespace, db: Any) -> None:
    user = await _require_user(db, ns.email)
    if user.get("role") == Role.ADMIN.value and await user_store.count_users(db, role=Role.ADMIN) <= 1:
        raise SystemExit("Cannot delete the last admin. At least one admin must exist.")
    await user_store.delete_user(db, user["id"])
    print(f"Deleted user '{user['email']}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage PermitDesk user and admin accounts")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List accounts")
    p_list.add_argument("--admins", action="store_true", help="Only list admins")
    p_list.set_defaults(func=cmd_list)

    p_add = sub.add_parser("add", help="Create a new account")
    p_add.add_argument("email")
    p_add.add_argument("password")
    p_add.add_argument("--name", required=True)
    p_add.add_argument("--admin", action="store_true")
    p_add.set_defaults(func=cmd_add)

    p_pw = sub.add_parser("set-password", help="Reset an account password")
    p_pw.add_argument("email")
    p_pw.add_argument("password")
    p_pw.set_defaults(func=cmd_set_password)

    p_delete = sub.add_parser("delete", help="Delete an account")
    p_delete.add_argument("email")
    p_delete.set_defaults(func=cmd_delete)

    return parser


async def run(ns: argparse.Namespace, db: Any = None) -> None:
    if db is not None:
        await ns.func(ns, db)
        return
    client = database.create_client()
    try:
        await ns.func(ns, database.get_database(client))
    finally:
        client.close()


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
