"""
Command-line interface for the account directory.

Provides CLI commands for server management:
- init-db: Initialize the database schema
- seed: Fill the directory with development accounts
- create-account: Create an account interactively or via environment variables
- run: Start the API server

Usage:
    account-directory init-db
    account-directory seed [--count N] [--random-seed S]
    account-directory create-account [--two-factor] [--unverified]
    account-directory run [--port PORT] [--host HOST]

Environment Variables:
    DIRECTORY_ACCOUNT_USER:     Username for create-account
    DIRECTORY_ACCOUNT_EMAIL:    Email for create-account
    DIRECTORY_ACCOUNT_PASSWORD: Password for create-account
    DIRECTORY_HOST / DIRECTORY_PORT: Bind address for run (see config.py)
"""

import argparse
import getpass
import os
import sys

DEFAULT_SEED_COUNT = 25


def get_account_credentials_from_env() -> tuple[str, str, str] | None:
    """
    Returns:
        Tuple of (username, email, password) if all three variables are set.
        None if any is missing.
    """
    username = os.environ.get("DIRECTORY_ACCOUNT_USER")
    email = os.environ.get("DIRECTORY_ACCOUNT_EMAIL")
    password = os.environ.get("DIRECTORY_ACCOUNT_PASSWORD")

    if username and email and password:
        return username, email, password
    return None


def prompt_for_account() -> tuple[str, str, str]:
    """
    Interactively prompt for account details.

    Returns:
        Tuple of (username, email, password) that pass registration checks.

    Raises:
        SystemExit: If the user cancels (Ctrl+C) during input.
    """
    from account_directory.auth.passwords import password_problems
    from account_directory.auth.registration import USERNAME_MAX_LENGTH, USERNAME_MIN_LENGTH

    print("\n" + "=" * 60)
    print("CREATE ACCOUNT")
    print("=" * 60)

    while True:
        username = input("Username: ").strip()
        if len(username) < USERNAME_MIN_LENGTH or len(username) > USERNAME_MAX_LENGTH:
            print(f"Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} characters.")
            continue
        break

    email = input("Email: ").strip()

    while True:
        password = getpass.getpass("Password: ")
        problems = password_problems(password)
        if problems:
            print("\nPassword does not meet requirements:")
            for problem in problems:
                print(f"  - {problem}")
            print()
            continue

        password_confirm = getpass.getpass("Confirm password: ")
        if password != password_confirm:
            print("Passwords do not match. Try again.\n")
            continue
        break

    return username, email, password


def cmd_init_db(args: argparse.Namespace) -> int:
    """
    Initialize the database schema.

    Returns:
        0 on success, 1 on error
    """
    from account_directory.db.errors import DatabaseError
    from account_directory.db.schema import init_database

    try:
        init_database()
        print("Database initialized successfully.")
        return 0
    except DatabaseError as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1


def cmd_seed(args: argparse.Namespace) -> int:
    """
    Seed the directory with verified development accounts.

    Returns:
        0 on success, 1 on error
    """
    import random

    from account_directory.db.errors import DatabaseError
    from account_directory.db.schema import init_database
    from account_directory.db.seed import SEED_PASSWORD, seed_directory

    count = getattr(args, "count", DEFAULT_SEED_COUNT)
    if count < 1:
        print("Error: --count must be at least 1.", file=sys.stderr)
        return 1

    random_seed = getattr(args, "random_seed", None)
    rng = random.Random(random_seed) if random_seed is not None else None  # nosec B311
    try:
        init_database()
        created = seed_directory(count, rng)
    except DatabaseError as e:
        print(f"Error seeding database: {e}", file=sys.stderr)
        return 1

    print(f"Seeded {len(created)} account(s). Password for all: {SEED_PASSWORD}")
    return 0


def cmd_create_account(args: argparse.Namespace) -> int:
    """
    Create an account, verified by default so it can sign in straight away.

    Checks DIRECTORY_ACCOUNT_USER/EMAIL/PASSWORD first. If not set, prompts
    interactively. With ``--two-factor`` the otpauth URI is printed once.

    Returns:
        0 on success, 1 on error
    """
    from account_directory.auth import second_factor
    from account_directory.auth.passwords import hash_password
    from account_directory.auth.registration import validate_registration
    from account_directory.config import config
    from account_directory.db import accounts_repo
    from account_directory.db.errors import DatabaseError
    from account_directory.db.schema import init_database
    from account_directory.errors import InvalidRequest

    env_creds = get_account_credentials_from_env()
    if env_creds:
        username, email, password = env_creds
        print(f"Using credentials from environment variables for user '{username}'")
    else:
        if not sys.stdin.isatty():
            print(
                "Error: No credentials provided.\n"
                "Set DIRECTORY_ACCOUNT_USER, DIRECTORY_ACCOUNT_EMAIL and "
                "DIRECTORY_ACCOUNT_PASSWORD,\n"
                "or run interactively to be prompted for credentials.",
                file=sys.stderr,
            )
            return 1
        username, email, password = prompt_for_account()

    try:
        validate_registration(username, email, password)
    except InvalidRequest as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    two_factor = getattr(args, "two_factor", False)
    totp_secret = second_factor.generate_secret() if two_factor else None
    try:
        init_database()
        account_id = accounts_repo.create_account(
            username,
            email,
            hash_password(password),
            totp_secret=totp_secret,
            two_factor_enabled=two_factor,
            email_verified=not getattr(args, "unverified", False),
        )
    except DatabaseError as e:
        print(f"Error creating account: {e}", file=sys.stderr)
        return 1

    if account_id is None:
        print(f"Error: User '{username}' already exists.", file=sys.stderr)
        return 1

    print(f"\nAccount '{username}' created successfully.")
    if totp_secret:
        uri = second_factor.provisioning_uri(totp_secret, username, config.auth.totp_issuer)
        print(f"Enroll this URI in an authenticator app: {uri}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run the API server in the foreground.

    Returns:
        0 on clean shutdown (Ctrl+C), 1 on startup error
    """
    from account_directory.api.server import start_server
    from account_directory.config import print_config_summary

    print_config_summary()
    try:
        start_server(host=getattr(args, "host", None), port=getattr(args, "port", None))
        return 0
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0
    except OSError as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="account-directory",
        description="Account Directory - a gated, paginated account leaderboard",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser(
        "init-db",
        help="Initialize the database schema",
        description="Initialize the database with required tables.",
    )
    init_parser.set_defaults(func=cmd_init_db)

    seed_parser = subparsers.add_parser(
        "seed",
        help="Seed development accounts",
        description=(
            "Create verified accounts without 2FA, each with one character per "
            "class and a random reward score."
        ),
    )
    seed_parser.add_argument(
        "--count",
        "-n",
        type=int,
        default=DEFAULT_SEED_COUNT,
        help=f"Number of accounts to create (default: {DEFAULT_SEED_COUNT})",
    )
    seed_parser.add_argument(
        "--random-seed",
        type=int,
        default=None,
        help="Seed for reproducible scores",
    )
    seed_parser.set_defaults(func=cmd_seed)

    account_parser = subparsers.add_parser(
        "create-account",
        help="Create an account",
        description=(
            "Create an account. Uses DIRECTORY_ACCOUNT_USER, DIRECTORY_ACCOUNT_EMAIL and "
            "DIRECTORY_ACCOUNT_PASSWORD if set, otherwise prompts interactively."
        ),
    )
    account_parser.add_argument(
        "--two-factor",
        action="store_true",
        help="Enroll a TOTP second factor and print its otpauth URI",
    )
    account_parser.add_argument(
        "--unverified",
        action="store_true",
        help="Leave the email unverified so sign-in requires the email step",
    )
    account_parser.set_defaults(func=cmd_create_account)

    run_parser = subparsers.add_parser(
        "run",
        help="Run the API server",
        description="Start the API server with uvicorn.",
    )
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="API server port (default: 8080, or DIRECTORY_PORT env var)",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind to (default: 0.0.0.0, or DIRECTORY_HOST env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
