#!/usr/bin/env python3
"""
Mint a bearer token for local development and manual testing.

Production tokens are issued by the identity provider; this signs one
with SECRET_KEY so the API can be exercised without it.

Usage:
    python scripts/create_access_token.py --user-id u-1 --role admin
    python scripts/create_access_token.py --user-id u-2 --role recruiter --email r@example.com --minutes 120
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add parent directory to path to import secure_upload
sys.path.insert(0, str(Path(__file__).parent.parent))

from secure_upload.core.security import create_access_token
from secure_upload.schemas.auth import UserRole


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Create a development bearer token for Secure Upload API")
    parser.add_argument("--user-id", required=True, help="Caller id placed in the token (required)")
    parser.add_argument("--role", required=True, choices=[r.value for r in UserRole], help="Caller role (required)")
    parser.add_argument("--email", default=None, help="Caller e-mail (optional)")
    parser.add_argument("--minutes", type=int, default=None, help="Lifetime in minutes (default from settings)")

    args = parser.parse_args()

    claims = {"id": args.user_id, "role": args.role}
    if args.email:
        claims["email"] = args.email
    expires = timedelta(minutes=args.minutes) if args.minutes else None

    token = create_access_token(claims, expires_delta=expires)

    print("\n" + "=" * 70)
    print(f"Token for {args.user_id} ({args.role})")
    print("=" * 70)
    print(f"\n{token}\n")
    print("Use it in the Authorization header: Authorization: Bearer <token>")
    print("=" * 70 + "\n")


if __name__ == "__main__":
    main()
