"""
Notedly Backend — User SQLAlchemy Model
=========================================

What:  ORM model for the `users` table: one row per external identity.
Who:   Written by IdentityService; referenced by boards, notes and grants.

Table Design:
    - id: stable internal integer, the only user reference other tables hold
    - (provider, provider_id): the identity-provider assertion, unique as a pair
    - email: verified email, unique across providers
    - token_hash: SHA3-256 hex digest of the current provider access token;
      empty until the first token is supplied, so no bearer token matches it
    - users are never deleted: historical boards and notes reference them
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from notedly.database import Base

# Stored until a real access token is supplied; sha3 digests are never empty
PLACEHOLDER_TOKEN_HASH = ""


class User(Base):
    """An authenticated person, as asserted by an identity provider."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Stable internal identifier",
    )

    # ── External Identity ─────────────────────────────────────────────────
    provider: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Identity provider name, e.g. github or google",
    )
    provider_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Provider-scoped user identifier",
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        comment="Verified email address (lower-cased)",
    )

    # ── Credentials ───────────────────────────────────────────────────────
    token_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=PLACEHOLDER_TOKEN_HASH,
        server_default=text("''"),
        comment="SHA3-256 hex digest of the current provider access token",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("provider", "provider_id", name="uq_users_provider_identity"),
        Index("idx_users_token_hash", "token_hash"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, provider='{self.provider}', email='{self.email}')>"
