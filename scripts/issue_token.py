"""Mint a bearer token for local development.

Tokens are normally issued by the identity provider. This signs one with
the configured JWT secret so the API can be called by hand.

Usage:
    python scripts/issue_token.py <user_id> [--minutes 60]
"""
import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.utils.auth import create_access_token


def main():
    parser = argparse.ArgumentParser(description="Mint a development JWT")
    parser.add_argument("user_id", help="User ID placed in the 'sub' claim")
    parser.add_argument(
        "--minutes",
        type=int,
        default=None,
        help="Token lifetime in minutes (defaults to JWT_EXPIRATION_MINUTES)",
    )
    args = parser.parse_args()

    expires = timedelta(minutes=args.minutes) if args.minutes else None
    print(create_access_token(user_id=args.user_id, expires_delta=expires))


if __name__ == "__main__":
    main()
