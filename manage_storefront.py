#!/usr/bin/env python3
"""
Storefront management commands.

Usage:
    python manage_storefront.py run [--host 0.0.0.0] [--port 8000] [--reload]
    python manage_storefront.py create-admin USERNAME EMAIL [--password ...]

Settings come from the environment or .env, the same way the app reads them.
"""
import argparse
import asyncio
import getpass
import os
import platform
import sys

import uvicorn

from shared.utils import AppException, create_engine_from_settings, create_session_factory, settings
from storefront.models import UserRole, init_models
from storefront.schemas import UserCreate
from storefront.services.users import UserService

# --- Colors ---
class Colors:
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'

if platform.system() == "Windows":
    os.system('color')

def log(msg, color=Colors.ENDC, bold=False):
    prefix = Colors.BOLD if bold else ""
    print(f"{prefix}{color}{msg}{Colors.ENDC}")

# --- Commands ---

def run_server(args):
    log("\nStarting Storefront...", Colors.HEADER, bold=True)
    log(f"- API:        {Colors.BLUE}http://{args.host}:{args.port}{Colors.ENDC}")
    log(f"- Swagger UI: {Colors.BLUE}http://{args.host}:{args.port}/docs{Colors.ENDC}\n")
    uvicorn.run("storefront.main:app", host=args.host, port=args.port, reload=args.reload)

async def _create_admin(username: str, email: str, password: str):
    engine = create_engine_from_settings(settings)
    try:
        await init_models(engine)
        users = UserService(create_session_factory(engine))
        data = UserCreate(username=username, email=email, password=password, role=UserRole.ADMIN)
        return await users.create_user(data, UserRole.ADMIN)
    finally:
        await engine.dispose()

def create_admin(args):
    password = args.password or getpass.getpass("Password: ")
    try:
        user = asyncio.run(_create_admin(args.username, args.email, password))
    except AppException as e:
        log(f"❌ {e.detail}", Colors.FAIL)
        if e.context:
            log(f"   {e.context}", Colors.FAIL)
        sys.exit(1)
    except ValueError as e:
        log(f"❌ {e}", Colors.FAIL)
        sys.exit(1)
    log(f"✓ Admin '{user.username}' created (id {user.id})", Colors.GREEN)

# --- Main ---

def main():
    parser = argparse.ArgumentParser(description="Storefront management commands")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Serve the API with uvicorn")
    run.add_argument("--host", default="0.0.0.0")
    run.add_argument("--port", type=int, default=8000)
    run.add_argument("--reload", action="store_true", help="Reload on code changes")
    run.set_defaults(func=run_server)

    admin = sub.add_parser("create-admin", help="Create an administrator account")
    admin.add_argument("username")
    admin.add_argument("email")
    admin.add_argument("--password", help="Prompted for when omitted")
    admin.set_defaults(func=create_admin)

    args = parser.parse_args()
    args.func(args)

if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        log("\nAborted by user.", Colors.WARNING)
        sys.exit(0)
