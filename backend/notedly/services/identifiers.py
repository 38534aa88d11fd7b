"""
Notedly Backend — Content-Derived Identifiers
===============================================

What:  Deterministic 64-character identifiers for boards and notes, and the
       hash stored in place of a bearer token.
How:   HMAC-SHA3-256 keyed with settings.identifier_secret over the entity's
       defining fields. Each part is length-prefixed before hashing, so
       ("ab", "c") and ("a", "bc") never produce the same digest.
Who:   BoardService and NoteService at creation; IdentityService for tokens.

Identifier inputs:
    board  →  (owner_id, title[, generation])
    note   →  (board_id, author_id, title[, generation])

An identifier is computed once, at creation, and stored. Renaming a board or
note never re-keys it, so the stored value is authoritative afterwards. The
slot of a renamed entity stays taken; a new entity with the old title gets
the next generation (1, 2, ...) instead. Generation 0 adds no part.
"""

import hashlib
import hmac
from typing import Tuple, Union

IDENTIFIER_LENGTH = 64

# Renamed entities a single title can be re-used past before creation fails
MAX_GENERATIONS = 16

Part = Union[str, int]


def hash_token(access_token: str) -> str:
    """SHA3-256 hex digest of a provider access token."""
    return hashlib.sha3_256(access_token.encode("utf-8")).hexdigest()


def content_identifier(secret: str, *parts: Part) -> str:
    """
    HMAC-SHA3-256 hex digest over length-prefixed parts.

    Args:
        secret: Identifier key (settings.identifier_secret)
        parts:  Defining fields of the entity, in a fixed order

    Returns:
        64 lowercase hex characters
    """
    mac = hmac.new(secret.encode("utf-8"), digestmod=hashlib.sha3_256)
    for part in parts:
        encoded = str(part).encode("utf-8")
        mac.update(len(encoded).to_bytes(8, "big"))
        mac.update(encoded)
    return mac.hexdigest()


def board_identifier(secret: str, owner_id: int, title: str, generation: int = 0) -> str:
    parts: Tuple[Part, ...] = ("board", owner_id, title)
    if generation:
        parts += (generation,)
    return content_identifier(secret, *parts)


def note_identifier(secret: str, board_id: str, author_id: int, title: str, generation: int = 0) -> str:
    parts: Tuple[Part, ...] = ("note", board_id, author_id, title)
    if generation:
        parts += (generation,)
    return content_identifier(secret, *parts)


def is_identifier(value: str) -> bool:
    """True if `value` has the shape of a stored identifier (64 lowercase hex chars)."""
    if len(value) != IDENTIFIER_LENGTH:
        return False
    return all(c in "0123456789abcdef" for c in value)
