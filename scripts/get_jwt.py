#!/usr/bin/env python3
import argparse

from releasehub.core.security import create_access_token


def main() -> None:
    parser = argparse.ArgumentParser(description="Mint an uploader token (uses APP_JWT_SECRET_KEY)")
    parser.add_argument("identity", help="value recorded as uploadedBy")
    parser.add_argument("--minutes", type=int, default=None, help="token lifetime")
    args = parser.parse_args()
    print(create_access_token(args.identity, expires_minutes=args.minutes))


if __name__ == "__main__":
    main()
