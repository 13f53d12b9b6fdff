"""
Operator command line for the RaknaGo store.

    python admin_cli.py list-users [--target EMAIL] [--yes]
    python admin_cli.py make-admin [--email EMAIL] [--yes]
    python admin_cli.py setup

Connects with RAKNAGO_DATABASE_URL and bypasses the access rules entirely.
Exit code 0 on success or when the operator cancels, 1 when the user cannot
be found or something fails.
"""
import argparse
import logging
import sys
from typing import Callable, List, Optional

from admin_tools import (
    COLLECTION_INFO_ID, UserMatch, describe_user, find_users_by_email, list_users, promote_to_admin,
    seed_collections,
)
from config import get_settings
from store import DocumentStore

logger = logging.getLogger("admin_cli")

EXIT_OK = 0
EXIT_FAILURE = 1

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def confirm(question: str, input_func: Callable[[str], str]) -> bool:
    answer = input_func(f"{question} (yes/no): ").strip().lower()
    return answer in ("yes", "y")


def print_user(match: UserMatch) -> None:
    info = describe_user(match.snapshot)
    print("User Info:")
    print(f"   Name: {info['name']}")
    print(f"   Email: {info['email']}")
    print(f"   Current Role: {info['role']}")
    print(f"   User ID: {info['id']}\n")


def print_next_steps() -> None:
    print("User is now admin!")
    print("   The user needs to logout and login again to see the admin dashboard.\n")


def cmd_list_users(store: DocumentStore, args, input_func) -> int:
    print("Listing all users...\n")
    users = list_users(store)
    if not users:
        print("No users found in the users collection!")
        print("Make sure users have signed up and their profiles were created.\n")
        return EXIT_OK

    print(f"Found {len(users)} user(s):\n")
    for index, snapshot in enumerate(users, start=1):
        info = describe_user(snapshot)
        print(f"{index}. {info['email']}")
        print(f"   Name: {info['name']}")
        print(f"   Role: {info['role']}")
        print(f"   Status: {info['status']}")
        print(f"   User ID: {info['id']}\n")

    if not args.target:
        return EXIT_OK

    matches = find_users_by_email(store, args.target)
    if not matches:
        print(f'Target email "{args.target}" not found in the list above.')
        print("Please check the email spelling or make sure the user has signed up.\n")
        return EXIT_OK

    match = matches[0]
    print(f"Found target user: {args.target}")
    print(f"   User ID: {match.id}")
    print(f"   Current Role: {match.data.get('role') or 'user'}\n")
    if args.yes or confirm("Make this user admin?", input_func):
        promote_to_admin(store, match.id)
        print_next_steps()
    else:
        print("Operation cancelled.\n")
    return EXIT_OK


def cmd_make_admin(store: DocumentStore, args, input_func) -> int:
    email = args.email or input_func("Enter user email: ").strip()
    print(f"Searching for: {email}\n")

    matches = find_users_by_email(store, email)
    if not matches:
        print("User not found!")
        users = list_users(store)
        if not users:
            print("   No users found in database.\n")
        else:
            print(f"\nAvailable users ({len(users)}):")
            for index, snapshot in enumerate(users, start=1):
                info = describe_user(snapshot)
                print(f"   {index}. {info['email']} ({info['name']})")
            print("\nMake sure the user has completed signup; the profile is created at signup.\n")
        return EXIT_FAILURE

    if not matches[0].exact:
        print(f"Exact match not found. Found {len(matches)} case-insensitive match(es).\n")
    match = matches[0]
    print_user(match)

    if not args.yes and not confirm("Make this user admin?", input_func):
        print("Operation cancelled.\n")
        return EXIT_OK

    promote_to_admin(store, match.id)
    print_next_steps()
    return EXIT_OK


def cmd_setup(store: DocumentStore, args, input_func) -> int:
    print("Starting RaknaGo store setup...\n")
    for collection in seed_collections(store):
        print(f"   {collection}: {COLLECTION_INFO_ID} written")
    print("\nSetup completed successfully!")
    print("Next steps:")
    print("   1. Start the API: uvicorn main:app")
    print("   2. Register an account and create its profile")
    print(f"   3. Promote it: python admin_cli.py make-admin --email <email>  (project {get_settings().project_id})")
    return EXIT_OK


COMMANDS = {
    "list-users": cmd_list_users,
    "make-admin": cmd_make_admin,
    "setup": cmd_setup,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RaknaGo administrative tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list-users", help="List every user profile")
    list_parser.add_argument("--target", help="Email to look for and offer to promote")
    list_parser.add_argument("--yes", action="store_true", help="Promote the target without asking")

    admin_parser = subparsers.add_parser("make-admin", help="Give a user the admin role")
    admin_parser.add_argument("--email", help="Email of the user; prompted for when omitted")
    admin_parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    subparsers.add_parser("setup", help="Write collection metadata documents")
    return parser


def main(argv: Optional[List[str]] = None, input_func: Callable[[str], str] = input, session_factory=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    if session_factory is None:
        from database import Base, SessionLocal, engine
        Base.metadata.create_all(bind=engine)
        session_factory = SessionLocal

    db = session_factory()
    try:
        return COMMANDS[args.command](DocumentStore(db), args, input_func)
    except Exception as e:
        logger.exception("Command %s failed", args.command)
        print(f"Error: {e}")
        return EXIT_FAILURE
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
