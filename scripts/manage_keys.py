"""CLI for user and API key management.

Usage::

    uv run python -m scripts.manage_keys <command> [options]

Commands:
    create-user   Create a user profile
    create-key    Generate an API key for a user
    list-keys     List API keys for a user
    revoke-key    Revoke an API key by prefix
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from maas_gateway.auth.keys import generate_api_key
from maas_gateway.config import settings
from maas_gateway.storage.orm import APIKey, User

ROLES = ("admin", "user", "viewer")
PLANS = ("free", "pro", "enterprise")


def get_sync_session() -> Session:
    """Create sync session for CLI operations.

    Uses the same database URL as the async app (psycopg v3
    handles both sync and async natively).
    """
    engine = create_engine(settings.database_url)
    return Session(engine)


def create_user(args: argparse.Namespace) -> None:
    """Create a user profile."""
    with get_sync_session() as session:
        existing = session.get(User, args.user_id)
        if existing is not None:
            print(f"User already exists: {args.user_id}", file=sys.stderr)
            sys.exit(1)

        user = User(
            id=args.user_id,
            email=args.email,
            role=args.role,
            plan=args.plan,
            app_metadata={"role": args.role},
        )
        session.add(user)
        session.commit()
        print(f"User created: {args.user_id} (role: {args.role}, plan: {args.plan})")


def create_key(args: argparse.Namespace) -> None:
    """Generate an API key for a user."""
    with get_sync_session() as session:
        user = session.get(User, args.user)
        if user is None:
            print(f"User not found: {args.user}", file=sys.stderr)
            sys.exit(1)

        full_key, key_hash, key_prefix = generate_api_key()
        expires_at = (
            datetime.now(UTC) + timedelta(days=args.expires_days)
            if args.expires_days
            else None
        )

        api_key = APIKey(
            user_id=user.id,
            key_hash=key_hash,
            key_prefix=key_prefix,
            name=args.name,
            service=args.service,
            expires_at=expires_at,
        )
        session.add(api_key)
        session.commit()

        print(f'API key created for "{args.user}":')
        print(f"   Key:     {full_key}")
        print(f"   Prefix:  {key_prefix}")
        print(f"   Name:    {args.name}")
        print(f"   Service: {args.service}")
        if expires_at is not None:
            print(f"   Expires: {expires_at.isoformat(timespec='seconds')}")
        print()
        print("Save this key now -- it cannot be retrieved later!")


def list_keys(args: argparse.Namespace) -> None:
    """List API keys for a user."""
    with get_sync_session() as session:
        user = session.get(User, args.user)
        if user is None:
            print(f"User not found: {args.user}", file=sys.stderr)
            sys.exit(1)

        keys = (
            session.execute(
                select(APIKey)
                .where(APIKey.user_id == user.id)
                .order_by(APIKey.created_at)
            )
            .scalars()
            .all()
        )

        if not keys:
            print(f'No keys for "{args.user}".')
            return

        print(f'Keys for "{args.user}":')
        for i, key in enumerate(keys, 1):
            status = "active" if key.is_active else "revoked"
            print(f"  {i}. {key.key_prefix} [{key.name}] service={key.service} {status}")


def revoke_key(args: argparse.Namespace) -> None:
    """Revoke an API key by its prefix."""
    with get_sync_session() as session:
        key = session.execute(
            select(APIKey).where(APIKey.key_prefix == args.prefix)
        ).scalar_one_or_none()
        if key is None:
            print(f"Key not found: {args.prefix}", file=sys.stderr)
            sys.exit(1)

        if not key.is_active:
            print(f"Key already revoked: {args.prefix}", file=sys.stderr)
            sys.exit(1)

        key.is_active = False
        session.commit()
        print(f"Key revoked: {args.prefix}")


def main() -> None:
    """Parse arguments and dispatch to command handler."""
    parser = argparse.ArgumentParser(description="API key management CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # create-user
    p = sub.add_parser("create-user", help="Create a user profile")
    p.add_argument("--user-id", required=True, help="Identity provider user id")
    p.add_argument("--email", default="", help="Contact email")
    p.add_argument("--role", choices=ROLES, default="user", help="User role")
    p.add_argument("--plan", choices=PLANS, default="free", help="Subscription plan")

    # create-key
    p = sub.add_parser("create-key", help="Generate API key for a user")
    p.add_argument("--user", required=True, help="User id")
    p.add_argument("--name", default="default", help="Key name")
    p.add_argument("--service", default="all", help="Service the key is for")
    p.add_argument("--expires-days", type=int, default=0, help="0 = never expires")

    # list-keys
    p = sub.add_parser("list-keys", help="List API keys for a user")
    p.add_argument("--user", required=True, help="User id")

    # revoke-key
    p = sub.add_parser("revoke-key", help="Revoke an API key")
    p.add_argument("--prefix", required=True, help="Key prefix to revoke")

    args = parser.parse_args()
    commands: dict[str, Callable[[argparse.Namespace], None]] = {
        "create-user": create_user,
        "create-key": create_key,
        "list-keys": list_keys,
        "revoke-key": revoke_key,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
