"""Validate that an env file (plus the process env) carries every required setting.

Exits non-zero and lists the missing/invalid variables otherwise.
"""

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from qpaybridge.common.config_model import CommonSettings

REQUIRED_VARS = [
    "DATABASE_DSN",
    "QPAY_USER",
    "QPAY_PASS",
    "SERVER_URL",
    "BREVO_API_KEY",
    "RECAPTCHA_SECRET_KEY",
]


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for environment checks."""

    parser = argparse.ArgumentParser(description="Check bridge environment variables.")
    parser.add_argument("--env-file", default=".env")
    parser.add_argument("--allow-missing-file", action="store_true", help="Rely on process env only")
    args = parser.parse_args(argv)

    env_file = Path(args.env_file)
    if not env_file.exists() and not args.allow_missing_file:
        raise SystemExit(f"Error: {env_file} not found. Please create it based on .env.example.")

    try:
        loaded = CommonSettings(_env_file=env_file if env_file.exists() else None)
    except ValidationError as exc:
        names = sorted({str(err["loc"][0]).upper() for err in exc.errors()})
        raise SystemExit(f"Error: Missing or invalid environment variables: {', '.join(names)}") from exc

    empty = [name for name in REQUIRED_VARS if not getattr(loaded, name.lower())]
    if empty:
        raise SystemExit(f"Error: Missing required environment variables: {', '.join(empty)}")
    print(f"Environment variables check passed ({env_file}).")


if __name__ == "__main__":
    sys.exit(main())
