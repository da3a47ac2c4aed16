#!/usr/bin/env python3
"""
Status Check Script

Inspect hosting accounts and deployments directly from the database.
Useful for debugging without needing API authentication.

Usage:
    # Hosting account pool with usage
    ENV=staging uv run python scripts/check_status.py accounts

    # Deployments, optionally filtered
    ENV=staging uv run python scripts/check_status.py deployments --status failed
    ENV=staging uv run python scripts/check_status.py deployments --email user@example.com --recent 5

    # Provisioning journal of one deployment
    ENV=staging uv run python scripts/check_status.py logs --id <uuid>
"""

import argparse
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional
from uuid import UUID

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

env_file = os.getenv("ENV", "local")
load_dotenv(f".env.{env_file}")

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.db.database import get_sync_db_session
from app.models import Bot, Deployment, DeploymentStatus, HerokuAccount, User


def format_datetime(dt: Optional[datetime]) -> str:
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def truncate(s: Optional[str], length: int = 20) -> str:
    if s is None:
        return "-"
    if len(s) <= length:
        return s
    return s[: length - 3] + "..."


def list_accounts(db: Session):
    """Print every hosting account with its slot usage."""
    accounts = db.execute(select(HerokuAccount).order_by(HerokuAccount.id)).scalars().all()
    if not accounts:
        print("No hosting accounts registered.")
        return

    live_counts = dict(
        db.execute(
            select(Deployment.account_id, func.count(Deployment.id))
            .where(Deployment.account_released.is_(False))
            .group_by(Deployment.account_id)
        ).all()
    )

    print("\nHosting Accounts")
    print("=" * 90)
    print(f"{'ID':<6}  {'Email':<32}  {'Active':<6}  {'Used':<9}  {'Holding':<8}  {'Created'}")
    print("-" * 90)
    for account in accounts:
        holding = live_counts.get(account.id, 0)
        drift = " !" if holding != account.used_count else ""
        print(
            f"{account.id:<6}  "
            f"{truncate(account.email, 32):<32}  "
            f"{'yes' if account.is_active else 'no':<6}  "
            f"{account.used_count}/{account.max_deployments:<6}  "
            f"{holding:<8}{drift}  "
            f"{format_datetime(account.created_at)}"
        )
    print(f"\nTotal: {len(accounts)} account(s). '!' marks a counter that disagrees with held slots.")


def list_deployments(
    db: Session,
    status: Optional[str] = None,
    email: Optional[str] = None,
    recent: Optional[int] = None,
):
    query = (
        select(Deployment, User, Bot)
        .join(User, Deployment.user_id == User.id)
        .outerjoin(Bot, Deployment.bot_id == Bot.id)
    )
    if status:
        query = query.where(Deployment.status == status)
    if email:
        query = query.where(User.email == email)
    query = query.order_by(Deployment.created_at.desc())
    if recent:
        query = query.limit(recent)

    results = db.execute(query).all()
    if not results:
        print("No deployments found matching criteria.")
        return

    print("\nDeployments")
    print("=" * 120)
    print(f"{'ID':<36}  {'App':<30}  {'Bot':<16}  {'Status':<12}  {'Account':<7}  {'Created'}")
    print("-" * 120)
    for deployment, user, bot in results:
        print(
            f"{str(deployment.id):<36}  "
            f"{deployment.app_name:<30}  "
            f"{truncate(bot.name if bot else None, 16):<16}  "
            f"{deployment.status:<12}  "
            f"{deployment.account_id or '-':<7}  "
            f"{format_datetime(deployment.created_at)}"
        )
    print(f"\nTotal: {len(results)} deployment(s)")


def show_logs(db: Session, deployment_id: str, tail: int = 100):
    try:
        uuid_id = UUID(deployment_id)
    except ValueError:
        print(f"Error: Invalid UUID format: {deployment_id}")
        return

    deployment = db.get(Deployment, uuid_id)
    if deployment is None:
        print("No deployment found.")
        return

    print(f"\nDeployment: {deployment.id}")
    print(f"App: {deployment.app_name}")
    print(f"Status: {deployment.status}")
    if deployment.error_message:
        print(f"Error: {deployment.error_message}")
    print("=" * 80)

    lines = (deployment.logs or "").splitlines()
    if not lines:
        print("(no journal entries)")
        return
    if tail and len(lines) > tail:
        print(f"(showing last {tail} lines, total {len(lines)} lines)\n")
        lines = lines[-tail:]
    for line in lines:
        print(line)


def main():
    parser = argparse.ArgumentParser(
        description="Check hosting accounts and deployments from the database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("accounts", help="List hosting accounts")

    deployments_parser = subparsers.add_parser("deployments", help="List deployments")
    deployments_parser.add_argument(
        "--status", type=str, choices=[s.value for s in DeploymentStatus], help="Filter by status"
    )
    deployments_parser.add_argument("--email", type=str, help="Filter by user email")
    deployments_parser.add_argument("--recent", type=int, help="Show only the N most recent items")

    logs_parser = subparsers.add_parser("logs", help="Show a deployment's journal")
    logs_parser.add_argument("--id", type=str, dest="deployment_id", required=True)
    logs_parser.add_argument("--tail", type=int, default=100, help="Lines to show (0 for all)")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    print(f"Environment: {env_file}")

    with get_sync_db_session() as db:
        if args.command == "accounts":
            list_accounts(db)
        elif args.command == "deployments":
            list_deployments(db, args.status, args.email, args.recent)
        elif args.command == "logs":
            show_logs(db, args.deployment_id, args.tail)


if __name__ == "__main__":
    main()
