#!/usr/bin/env python3
"""
EMERGENCY: sign every user out of every device.

Needs an identity-admin factory, given as ``module:callable``, that returns
an object with ``list_users()`` and ``sign_out_user(user_id)`` coroutines
(service-role credentials are the factory's business).  Nothing happens
without --confirm.

Usage:
  python3 scripts/revoke_all_sessions.py --provider myapp.identity:build_admin --confirm

Exit codes: 0 all revoked (or not confirmed), 1 listing failed,
2 some accounts could not be signed out.
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from security_kernel.domain.identity import IdentityAdmin  # noqa: E402
from security_kernel.logging_config import configure_logging  # noqa: E402
from security_services.emergency import revoke_all_sessions  # noqa: E402

WARNING = """\
WARNING: this signs out ALL users immediately.

To confirm, run:
  python3 scripts/revoke_all_sessions.py --provider module:factory --confirm
"""


def load_admin(spec: str) -> IdentityAdmin:
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ValueError(f"expected module:callable, got {spec!r}")
    factory = getattr(importlib.import_module(module_name), attr)
    return factory()


def main(argv: list[str] | None = None, admin: IdentityAdmin | None = None) -> int:
    parser = argparse.ArgumentParser(description="Revoke every user session")
    parser.add_argument("--provider", help="Identity-admin factory as module:callable")
    parser.add_argument("--confirm", action="store_true", help="Actually revoke")
    args = parser.parse_args(argv)

    if not args.confirm:
        print(WARNING)
        return 0

    if admin is None:
        if not args.provider:
            parser.error("--provider is required")
        admin = load_admin(args.provider)

    configure_logging()

    try:
        report = asyncio.run(revoke_all_sessions(admin))
    except Exception as exc:
        print(f"Error: could not list users: {exc}", file=sys.stderr)
        return 1

    for user_id in report.failed:
        print(f"FAILED  {user_id}")
    print(f"Revoked sessions for {len(report.revoked)}/{report.total} users.")
    if not report.complete:
        return 2
    print("All users will need to sign in again.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
