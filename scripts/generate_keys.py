#!/usr/bin/env python3
"""
Generate secrets for a new environment.

Prints an ENCRYPTION_MASTER_KEY (32 random bytes, hex) and, unless
--master-only is given, an API_KEY (32 bytes) and a JWT_SECRET (64 bytes).
Output is ``NAME=value`` lines, ready for an env file.

Usage:
  python3 scripts/generate_keys.py [--master-only]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from security_kernel.crypto.engine import CryptoEngine  # noqa: E402

KEY_SIZES = (
    ("ENCRYPTION_MASTER_KEY", 32),
    ("API_KEY", 32),
    ("JWT_SECRET", 64),
)


def generate_keys(master_only: bool = False) -> dict[str, str]:
    sizes = KEY_SIZES[:1] if master_only else KEY_SIZES
    return {name: CryptoEngine.generate_secure_token(size) for name, size in sizes}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate encryption and API secrets")
    parser.add_argument(
        "--master-only",
        action="store_true",
        help="Print only ENCRYPTION_MASTER_KEY",
    )
    args = parser.parse_args(argv)

    for name, value in generate_keys(args.master_only).items():
        print(f"{name}={value}")

    print(
        "\n# Store these outside version control, use different values per"
        "\n# environment and rotate them every 90 days.",
        file=sys.stderr,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
