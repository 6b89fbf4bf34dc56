"""
Security Kernel - cross-cutting protection for the accounting platform.

Provides:
- Envelope encryption of sensitive columns (AES-256-GCM, PBKDF2 key derivation)
- Per-field codec with partial-failure isolation
- Brute-force rate limiting keyed by identifier
- Password policy, breach lookup (k-anonymity), expiration and history
- Append-only audit trail with sensitive-data masking
- Client session lifecycle: inactivity expiry and concurrent-tab detection
- MFA backup codes with idempotent consumption
- Input schemas and sanitizers for user-supplied data
"""

__version__ = "0.1.0"
