import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from accounts.config import load_settings, open_storage
from accounts.errors import AccountStoreError
from accounts.store import AccountStore
from accounts.validation import MIN_PASSWORD_LENGTH


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an account manager user")
    parser.add_argument("first_name", help="Given name")
    parser.add_argument("last_name", help="Family name")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument("phone", help="Phone number, digits with an optional leading +")
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to the YAML configuration (defaults to ACCOUNTS_CONFIG or config/accounts.yaml)",
    )
    parser.add_argument(
        "--inactive",
        action="store_true",
        help="Create the account disabled",
    )
    return parser.parse_args()


def prompt_for_password(attempts: int = 3) -> str:
    """Ask for the new account's password on the terminal, without echo."""

    while attempts:
        attempts -= 1
        password = getpass.getpass(f"Password (min {MIN_PASSWORD_LENGTH} chars): ")
        if len(password) < MIN_PASSWORD_LENGTH:
            print("That password is too short.", file=sys.stderr)
        elif getpass.getpass("Repeat password: ") == password:
            return password
        else:
            print("The two entries differ.", file=sys.stderr)
    raise SystemExit("No password set; aborting.")


def main() -> int:
    args = parse_args()
    data = {
        "first_name": args.first_name.strip(),
        "last_name": args.last_name.strip(),
        "email": args.email.strip(),
        "phone": args.phone.strip(),
    }
    data["password"] = prompt_for_password()

    result = AccountStore.validate(data)
    if not result.is_valid:
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    config_path = Path(args.config_path).expanduser() if args.config_path else None
    settings = load_settings(config_path)
    store = AccountStore(open_storage(settings), seed_defaults=settings.seed_defaults)

    try:
        user = store.create_user(**data)
        if args.inactive:
            user = store.update_user(user.id, is_active=False)
    except AccountStoreError as exc:  # duplicates, storage failures
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.full_name} <{user.email}>")
    if not user.is_active:
        print("The account is disabled until an administrator enables it.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
