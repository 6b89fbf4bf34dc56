"""
Sensitive-data masking for logs, audit payloads and display.

Responsibility:
    Decide which fields of a record are sensitive and replace their values
    with a partially-masked rendering.  Masking is one-way and for display
    only: a masked value is never stored where the original is needed.

Detection model:
    Field names are normalized to lower case without separators
    (``bankAccountNumber`` -> ``bankaccountnumber``, ``TAX_ID`` -> ``taxid``).
    A key is sensitive when

      1. its normalized form is NOT on the allow list of known-innocuous
         names (``passwordHint``, ``tokenExpiresAt`` ...), and
      2. it is on the explicit deny list of the record's entity type, or
      3. a deny term is a substring of the normalized key.

    Terms of three characters or fewer (``pin``, ``ssn``, ``cvv``) must
    start or end one of the key's word tokens instead: ``userPin``,
    ``pincode`` and ``ssn4`` match, ``shipping`` and ``opinion`` do not.
    Entity lists catch fields whose names carry no sensitive term at all
    (a company's ``legalName`` or ``phone``).

Non-goals:
    - Value-based detection (e.g. recognizing a card number in free text).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

MASK_CHAR = "*"


def mask_sensitive_data(data: str, show_chars: int = 4) -> str:
    """
    Keep the first and last ``show_chars`` characters, mask the interior.

    Strings of length ``<= show_chars * 2`` are masked entirely so that a
    short secret is never fully revealed by its edges.

    >>> mask_sensitive_data("ABCDEFGHIJ", 4)
    'ABCD**GHIJ'
    """
    if show_chars < 0:
        raise ValueError("show_chars must be >= 0")
    if len(data) <= show_chars * 2:
        return MASK_CHAR * len(data)
    start = data[:show_chars]
    end = data[len(data) - show_chars:]
    masked = MASK_CHAR * (len(data) - show_chars * 2)
    return f"{start}{masked}{end}"


_CAMEL_1 = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_2 = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")


def tokenize_key(key: str) -> tuple[str, ...]:
    """Split a field name into lower-case word tokens."""
    spaced = _CAMEL_2.sub(r"\1 \2", _CAMEL_1.sub(r"\1 \2", key))
    return tuple(t.lower() for t in _NON_ALNUM.split(spaced) if t)


def normalize_key(key: str) -> str:
    """Lower-case a field name and drop separators: ``tax_id`` -> ``taxid``."""
    return "".join(tokenize_key(key))


DEFAULT_DENY_TERMS: tuple[str, ...] = (
    "password",
    "token",
    "api key",
    "secret",
    "credit card",
    "ssn",
    "tax id",
    "bank account",
    "cvv",
    "pin",
    "private key",
)

# Terms this short match only at the start or end of a word token.
SHORT_TERM_LENGTH = 3

DEFAULT_ALLOW_KEYS: frozenset[str] = frozenset(
    normalize_key(k)
    for k in (
        "passwordHint",
        "passwordChangedAt",
        "passwordExpiresAt",
        "passwordPolicy",
        "tokenExpiresAt",
        "tokenType",
        "secretName",
    )
)

DEFAULT_ALLOW_TOKENS: frozenset[str] = frozenset(
    {"pinned", "pinpoint", "ping", "spin"}
)

ENTITY_SENSITIVE_FIELDS: dict[str, frozenset[str]] = {
    "company": frozenset(
        normalize_key(k)
        for k in ("legalName", "taxId", "address", "phone", "bankAccount")
    ),
    "client": frozenset(
        normalize_key(k)
        for k in (
            "fullName",
            "taxId",
            "address",
            "phone",
            "bankAccountNumber",
            "notes",
        )
    ),
    "user": frozenset(
        normalize_key(k)
        for k in ("password", "mfaSecret", "backupCodes", "passwordHistory")
    ),
}


@dataclass(frozen=True)
class SensitiveFieldPolicy:
    """
    Decides whether a field name is sensitive.

    Contract:
        ``is_sensitive(key, entity)`` is a pure function of its arguments
        and the policy's lists.
    """

    deny_terms: tuple[str, ...] = DEFAULT_DENY_TERMS
    allow_keys: frozenset[str] = DEFAULT_ALLOW_KEYS
    allow_tokens: frozenset[str] = DEFAULT_ALLOW_TOKENS
    entity_fields: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: dict(ENTITY_SENSITIVE_FIELDS)
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_terms",
            tuple(normalize_key(t) for t in self.deny_terms),
        )

    def entity_for(self, resource: str | None) -> str | None:
        """
        Entity list selected by a resource name, if any.

        ``"companies"``, ``"Company"`` and ``"company"`` all select
        ``company``.
        """
        if not resource:
            return None
        name = normalize_key(resource)
        candidates = [name]
        if name.endswith("ies"):
            candidates.append(name[:-3] + "y")
        if name.endswith("s"):
            candidates.append(name[:-1])
        for candidate in candidates:
            if candidate in self.entity_fields:
                return candidate
        return None

    def is_sensitive(self, key: str, entity: str | None = None) -> bool:
        normalized = normalize_key(key)
        if normalized in self.allow_keys:
            return False
        if entity is not None and normalized in self.entity_fields.get(entity, ()):
            return True
        tokens = [t for t in tokenize_key(key) if t not in self.allow_tokens]
        for term in self._terms:  # type: ignore[attr-defined]
            if len(term) > SHORT_TERM_LENGTH:
                if term in normalized:
                    return True
            elif any(t.startswith(term) or t.endswith(term) for t in tokens):
                return True
        return False


DEFAULT_POLICY = SensitiveFieldPolicy()


def _mask_value(value: Any, show_chars: int) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return mask_sensitive_data(value, show_chars)
    if isinstance(value, (bool, int, float)):
        return mask_sensitive_data(str(value), show_chars)
    return value


def mask_mapping(
    data: Any,
    policy: SensitiveFieldPolicy = DEFAULT_POLICY,
    entity: str | None = None,
    show_chars: int = 2,
) -> Any:
    """
    Return a masked copy of ``data``.

    Mappings are copied key by key; sensitive scalar values are masked,
    nested mappings and lists are walked recursively.  Non-container input
    is returned unchanged.
    """
    if isinstance(data, Mapping):
        masked: dict[Any, Any] = {}
        for key, value in data.items():
            sensitive = isinstance(key, str) and policy.is_sensitive(key, entity)
            if isinstance(value, Mapping):
                masked[key] = mask_mapping(value, policy, entity, show_chars)
            elif isinstance(value, (list, tuple)):
                # Scalars inside a sensitive list (e.g. backupCodes) are masked too.
                masked[key] = [
                    mask_mapping(item, policy, entity, show_chars)
                    if isinstance(item, (Mapping, list, tuple)) or not sensitive
                    else _mask_value(item, show_chars)
                    for item in value
                ]
            elif sensitive:
                masked[key] = _mask_value(value, show_chars)
            else:
                masked[key] = value
        return masked
    if isinstance(data, (list, tuple)):
        return [mask_mapping(item, policy, entity, show_chars) for item in data]
    return data
