"""Command-line interface for the account manager."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from getpass import getpass
from pathlib import Path
from typing import Sequence

from accounts.config import Settings, load_settings, open_storage
from accounts.errors import AccountStoreError
from accounts.store import AccountStore
from accounts.validation import MIN_PASSWORD_LENGTH

logger = logging.getLogger("accounts.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Account manager utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: ACCOUNTS_CONFIG or config/accounts.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP account service")
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument("--port", type=int, default=None, help="Port for the API")

    subparsers.add_parser("admin", help="Launch the interactive administration console")
    subparsers.add_parser("init-store", help="Create the user collection with the demo accounts")
    subparsers.add_parser("stats", help="Print user statistics as JSON")

    export_parser = subparsers.add_parser("export", help="Export every user as JSON")
    export_parser.add_argument(
        "--output",
        default=None,
        help="File to write the export to (default: standard output)",
    )

    import_parser = subparsers.add_parser("import", help="Import users from an export file")
    import_parser.add_argument("path", help="JSON file produced by the export command")
    import_parser.add_argument(
        "--merge",
        action="store_true",
        help="Only add users whose email is not already registered",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "admin", "init-store", "stats", "export", "import"}

    # Bare options (``--port 9000``) belong to the default ``serve`` command.
    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first == "--config" and len(args_list) >= 2:
            rest = args_list[2:]
            if not rest or rest[0] not in known_commands:
                args_list = [*args_list[:2], "serve", *rest]
        elif first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _open_store(settings: Settings) -> AccountStore:
    store = AccountStore(open_storage(settings), seed_defaults=settings.seed_defaults)
    logger.info(
        "Account store ready (%s backend at %s, %d user(s))",
        settings.storage_backend,
        settings.storage_path,
        len(store.list_users()),
    )
    return store


def _serve(*, store: AccountStore, host: str, port: int) -> None:
    from accounts.service import create_app
    import uvicorn

    logger.info("Starting account API on http://%s:%s", host, port)
    app = create_app(store=store)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _run_admin_cli(store: AccountStore) -> None:
    """Provide an interactive console for managing accounts."""

    print("Account Manager Administration Console")
    print("Press Ctrl+C at any time to exit.\n")

    try:
        while True:
            print("Select an option:")
            print("  1) List all users")
            print("  2) Add a new user")
            print("  3) Search users")
            print("  4) Show statistics")
            print("  5) Enable or disable a user")
            print("  6) Delete a user")
            print("  7) Exit")

            choice = input("Enter choice [1-7]: ").strip()

            if choice == "1":
                _list_users(store)
            elif choice == "2":
                _add_user(store)
            elif choice == "3":
                _search_users(store)
            elif choice == "4":
                _print_stats(store)
            elif choice == "5":
                _toggle_user(store)
            elif choice == "6":
                _delete_user(store)
            elif choice == "7":
                print("Goodbye!")
                return
            else:
                print("Invalid selection. Please choose a number from the menu.\n")

            print()
    except KeyboardInterrupt:
        print("\nExiting administration console.")


def _print_users(users) -> None:
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  {'Active':<6}  Created")
    print("-" * 90)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        active = "yes" if user.is_active else "no"
        print(f"{user.id:>4}  {user.full_name:<24}  {user.email:<32}  {active:<6}  {created}")


def _list_users(store: AccountStore) -> None:
    users = store.list_users()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    _print_users(users)


def _search_users(store: AccountStore) -> None:
    query = input("Search for: ").strip()
    users = store.search_users(query)
    if not users:
        print(f"No users match {query!r}.")
        return

    print(f"{len(users)} user(s) match {query!r}:")
    _print_users(users)


def _print_stats(store: AccountStore) -> None:
    stats = store.get_stats()
    print(f"Total users:           {stats.total_users}")
    print(f"Active users:          {stats.active_users}")
    print(f"Inactive users:        {stats.inactive_users}")
    print(f"Users who signed in:   {stats.users_with_login}")
    print(f"Registered this week:  {stats.recent_registrations}")


def _add_user(store: AccountStore) -> None:
    print("\nCreate a new user (leave the first name blank to cancel).")
    first_name = input("First name: ").strip()
    if not first_name:
        print("User creation cancelled.")
        return

    data = {
        "first_name": first_name,
        "last_name": input("Last name: ").strip(),
        "email": input("Email address: ").strip(),
        "phone": input("Phone number: ").strip(),
    }

    password = _prompt_for_password()
    if password is None:
        print("Aborted creating user.")
        return
    data["password"] = password

    result = store.validate(data)
    if not result.is_valid:
        print("Failed to create user:")
        for error in result.errors:
            print(f"  - {error}")
        return

    try:
        user = store.create_user(**data)
    except AccountStoreError as exc:
        print(f"Failed to create user: {exc}")
        return

    print(f"Created user #{user.id}: {user.full_name} <{user.email}>")


def _prompt_for_user(store: AccountStore):
    raw = input("User ID: ").strip()
    user = store.get_user(raw)
    if user is None:
        print(f"No user with ID {raw!r}.")
    return user


def _toggle_user(store: AccountStore) -> None:
    user = _prompt_for_user(store)
    if user is None:
        return

    try:
        updated = store.update_user(user.id, is_active=not user.is_active)
    except AccountStoreError as exc:
        print(f"Failed to update user: {exc}")
        return

    state = "enabled" if updated.is_active else "disabled"
    print(f"User #{updated.id} is now {state}.")


def _delete_user(store: AccountStore) -> None:
    user = _prompt_for_user(store)
    if user is None:
        return

    confirmation = input(f"Delete {user.full_name} <{user.email}>? [y/N]: ").strip().lower()
    if confirmation not in {"y", "yes"}:
        print("Deletion cancelled.")
        return

    try:
        store.delete_user(user.id)
    except AccountStoreError as exc:
        print(f"Failed to delete user: {exc}")
        return
    print(f"Deleted user #{user.id}.")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {MIN_PASSWORD_LENGTH} characters): ")
        if len(password) < MIN_PASSWORD_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _export(store: AccountStore, output: str | None) -> None:
    payload = store.export_json()
    if output is None:
        print(payload)
        return

    path = Path(output).expanduser()
    path.write_text(payload + "\n", encoding="utf-8")
    print(f"Exported {len(store.list_users())} user(s) to {path}")


def _import(store: AccountStore, source: str, *, merge: bool) -> int:
    path = Path(source).expanduser()
    try:
        payload = path.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Unable to read {path}: {exc}", file=sys.stderr)
        return 1

    try:
        count = store.import_users(payload, merge=merge)
    except AccountStoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if merge:
        print(f"Added {count} new user(s) from {path}")
    else:
        print(f"Replaced the user collection with {count} user(s) from {path}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    config_path = Path(args.config).expanduser() if args.config else None
    try:
        settings = load_settings(config_path)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    try:
        store = _open_store(settings)
    except AccountStoreError as exc:
        print(f"Unable to open the account store: {exc}", file=sys.stderr)
        return 1

    if args.command == "serve":
        _serve(
            store=store,
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
    elif args.command == "admin":
        _run_admin_cli(store)
    elif args.command == "init-store":
        print(f"Account store initialised with {len(store.list_users())} user(s).")
    elif args.command == "stats":
        print(json.dumps(store.get_stats().to_dict(), indent=2))
    elif args.command == "export":
        _export(store, args.output)
    elif args.command == "import":
        return _import(store, args.path, merge=args.merge)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
