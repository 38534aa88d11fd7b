"""
Notedly Backend — Identity Registry
=====================================

What:  Maps identity-provider assertions to stable internal users, and bearer
       tokens back to those users.
How:   One `users` row per (provider, provider_id). The provider access token
       is never stored, only its SHA3-256 digest, which is rotated on every
       login that supplies a new token.
Who:   The OAuth callback layer (outside this service) calls register() after
       the provider has verified the user; routes call authenticate() with
       the bearer token of each request.

Email binding:
    A provider id whose verified email changed is an IdentityConflictError
    unless the caller explicitly accepts the change. An email already bound to
    a different identity is always a conflict: emails are unique across
    providers, and grants are issued by email in legacy data.
"""

import logging
import re
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notedly.config import Settings, settings
from notedly.database import storage_errors
from notedly.exceptions import (
    AuthenticationError,
    IdentityConflictError,
    NotFoundError,
    ValidationError,
)
from notedly.models.user import PLACEHOLDER_TOKEN_HASH, User
from notedly.schemas.user import IdentityAssertion
from notedly.services.identifiers import hash_token

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityService:
    """
    Identity Registry operations.

    Responsibilities:
        - resolve(): first login creates, later logins find and rotate the token
        - authenticate(): bearer token → User
        - get_user(): id → User
    Users are never removed.
    """

    def __init__(self, config: Settings):
        self.config = config

    def _validate_assertion(self, provider: str, provider_id: str, email: str):
        provider = provider.strip().lower()
        if provider not in self.config.oauth_provider_list:
            raise ValidationError(
                message=f"Unknown identity provider '{provider}'",
                field="provider",
                context={"allowed": self.config.oauth_provider_list},
            )
        provider_id = provider_id.strip()
        if not provider_id:
            raise ValidationError(message="Provider user ID must not be empty", field="provider_id")
        email = normalize_email(email)
        if not _EMAIL_PATTERN.match(email):
            raise ValidationError(message="A valid email address is required", field="email")
        return provider, provider_id, email

    async def _find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def resolve(
        self,
        db: AsyncSession,
        provider: str,
        provider_id: str,
        email: str,
        access_token: Optional[str] = None,
        accept_email_change: bool = False,
    ) -> User:
        """
        Find or create the User for a verified provider assertion.

        Args:
            db:                   Async database session
            provider:             Provider name, must be configured
            provider_id:          Provider-scoped user id
            email:                Verified email (normalized to lower case)
            access_token:         Current provider access token, if any
            accept_email_change:  Update the stored email instead of raising

        Returns:
            The existing or newly created User

        Raises:
            ValidationError: Unknown provider, empty provider id, bad email
            IdentityConflictError: Email mismatch, or email bound elsewhere
        """
        provider, provider_id, email = self._validate_assertion(provider, provider_id, email)

        async with storage_errors("resolve identity"):
            result = await db.execute(
                select(User).where(User.provider == provider, User.provider_id == provider_id)
            )
            user = result.scalar_one_or_none()

            if user is None:
                holder = await self._find_by_email(db, email)
                if holder is not None:
                    raise IdentityConflictError(
                        message="This email address is already bound to a different identity",
                        context={"provider": provider, "existing_user_id": holder.id},
                    )
                user = User(
                    provider=provider,
                    provider_id=provider_id,
                    email=email,
                    token_hash=hash_token(access_token) if access_token else PLACEHOLDER_TOKEN_HASH,
                )
                db.add(user)
                await db.flush()
                logger.info("Registered user %d via %s", user.id, provider)
                return user

            if user.email != email:
                if not accept_email_change:
                    raise IdentityConflictError(
                        context={"user_id": user.id, "provider": provider},
                    )
                holder = await self._find_by_email(db, email)
                if holder is not None and holder.id != user.id:
                    raise IdentityConflictError(
                        message="This email address is already bound to a different identity",
                        context={"user_id": user.id, "existing_user_id": holder.id},
                    )
                logger.info("Accepted email change for user %d", user.id)
                user.email = email

            if access_token:
                user.token_hash = hash_token(access_token)
            await db.flush()
            return user

    async def register(
        self,
        db: AsyncSession,
        assertion: IdentityAssertion,
        accept_email_change: bool = False,
    ) -> User:
        """resolve() for an assertion handed over by the login layer (or `notedly register`)."""
        return await self.resolve(
            db,
            assertion.provider,
            assertion.provider_id,
            assertion.email,
            access_token=assertion.access_token,
            accept_email_change=accept_email_change,
        )

    async def authenticate(self, db: AsyncSession, access_token: Optional[str]) -> User:
        """
        Return the user whose current token hash matches `access_token`.

        Raises:
            AuthenticationError: Missing token, or no user holds it
        """
        if not access_token:
            raise AuthenticationError()

        token_hash = hash_token(access_token)
        async with storage_errors("authenticate"):
            result = await db.execute(
                select(User).where(User.token_hash == token_hash).limit(1)
            )
            user = result.scalar_one_or_none()

        if user is None:
            raise AuthenticationError(message="The bearer token is not recognized")
        return user

    async def get_user(self, db: AsyncSession, user_id: int) -> User:
        async with storage_errors("get user"):
            result = await db.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user


# ── Singleton Instance ────────────────────────────────────────────────────
identity_service = IdentityService(settings)
