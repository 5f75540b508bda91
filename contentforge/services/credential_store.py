import asyncio
import logging
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from contentforge.database import session_scope
from contentforge.datetime_utils import as_utc, utcnow
from contentforge.errors import CredentialRefreshError, NotFoundError
from contentforge.models.social_account import SocialAccount
from contentforge.schemas.social_media import SocialAccountCreate
from contentforge.services.platforms.registry import AdapterRegistry

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Linked platform accounts and their tokens.

    This is the only shared mutable resource in the publishing core. Token
    refresh runs inside a per-account lock so concurrent publishes on the same
    expired account trigger at most one refresh call.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        registry: AdapterRegistry,
        expiry_skew_seconds: int = 60,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.expiry_skew = timedelta(seconds=expiry_skew_seconds)
        self._refresh_locks: Dict[int, asyncio.Lock] = {}

    # --- Lookups ---

    def get(self, team_id: str, platform: str, account_id: Optional[int] = None) -> Optional[SocialAccount]:
        """
        The account to publish with for (team, platform).

        With `account_id` that exact account is returned when it belongs to the
        team and platform, active or not. Without it, the most recently
        connected active account wins.
        """
        with session_scope(self.session_factory) as db:
            query = db.query(SocialAccount).filter(
                SocialAccount.team_id == team_id,
                SocialAccount.platform == platform,
            )
            if account_id is not None:
                return query.filter(SocialAccount.id == account_id).first()
            return query.filter(SocialAccount.is_active == True).order_by(  # noqa: E712
                SocialAccount.connected_at.desc(), SocialAccount.id.desc()
            ).first()

    def get_by_id(self, account_id: int, team_id: Optional[str] = None) -> SocialAccount:
        with session_scope(self.session_factory) as db:
            query = db.query(SocialAccount).filter(SocialAccount.id == account_id)
            if team_id is not None:
                query = query.filter(SocialAccount.team_id == team_id)
            account = query.first()
            if account is None:
                raise NotFoundError("Social account", account_id)
            return account

    def list_accounts(self, team_id: str) -> List[SocialAccount]:
        with session_scope(self.session_factory) as db:
            return db.query(SocialAccount).filter(
                SocialAccount.team_id == team_id
            ).order_by(SocialAccount.platform, SocialAccount.id).all()

    # --- Mutations ---

    def link_account(self, team_id: str, account_data: SocialAccountCreate) -> SocialAccount:
        """Create or update the account for (team, platform, platform user) and mark it active."""
        if not self.registry.supports(account_data.platform):
            raise NotFoundError("Platform adapter", account_data.platform)

        with session_scope(self.session_factory) as db:
            account = db.query(SocialAccount).filter(
                SocialAccount.team_id == team_id,
                SocialAccount.platform == account_data.platform,
                SocialAccount.platform_user_id == account_data.platform_user_id,
            ).first()

            if account is None:
                account = SocialAccount(team_id=team_id, platform=account_data.platform,
                                        platform_user_id=account_data.platform_user_id)
                db.add(account)
                logger.info(f"Linking new {account_data.platform} account for team {team_id}")
            else:
                logger.info(f"Re-linking {account_data.platform} account {account.id} for team {team_id}")

            account.username = account_data.username
            account.display_name = account_data.display_name
            account.access_token = account_data.access_token
            account.refresh_token = account_data.refresh_token
            account.token_expires_at = as_utc(account_data.token_expires_at)
            account.platform_data = account_data.platform_data or {}
            account.is_active = True
            account.connected_at = utcnow()
            db.flush()
            return account

    def deactivate(self, account_id: int, reason: str = "") -> SocialAccount:
        with session_scope(self.session_factory) as db:
            account = db.query(SocialAccount).filter(SocialAccount.id == account_id).first()
            if account is None:
                raise NotFoundError("Social account", account_id)
            account.is_active = False
            db.flush()
            logger.warning(f"Deactivated {account.platform} account {account_id}{': ' + reason if reason else ''}")
            return account

    # --- Token lifecycle ---

    def is_expired(self, account: SocialAccount) -> bool:
        expires_at = as_utc(account.token_expires_at)
        return expires_at is not None and expires_at <= utcnow() + self.expiry_skew

    async def validate(self, account: SocialAccount) -> bool:
        """
        True when the token can be used right now.

        Inactive accounts and tokens past their known expiry fail without a
        remote call; otherwise the platform adapter decides. An unreachable
        platform raises AdapterError rather than reporting the token invalid.
        """
        if not account.is_active:
            return False
        if self.is_expired(account):
            logger.info(f"Token for {account.platform} account {account.id} expired at {account.token_expires_at}")
            return False
        return await self.registry.get(account.platform).validate_token(account)

    async def refresh(self, account: SocialAccount) -> SocialAccount:
        """
        Refresh the account's token, serialized per account.

        A caller that waited on the lock reuses the outcome of the refresh that
        ran before it: a new token is returned as-is, a deactivated account
        fails. A refused refresh deactivates the account and raises
        CredentialRefreshError.
        """
        seen_token = account.access_token
        lock = self._refresh_locks.setdefault(account.id, asyncio.Lock())

        async with lock:
            current = self.get_by_id(account.id)
            if not current.is_active:
                raise CredentialRefreshError(f"{current.platform} account {current.id} is inactive")
            if current.access_token != seen_token:
                logger.info(f"Token for {current.platform} account {current.id} already refreshed, reusing it")
                return current

            adapter = self.registry.get(current.platform)
            try:
                grant = await adapter.refresh_access_token(current)
            except CredentialRefreshError as e:
                logger.error(f"❌ Token refresh failed for {current.platform} account {current.id}: {e}")
                self.deactivate(current.id, reason="token refresh failed")
                raise

            with session_scope(self.session_factory) as db:
                stored = db.query(SocialAccount).filter(SocialAccount.id == current.id).one()
                stored.access_token = grant.access_token
                if grant.refresh_token:
                    stored.refresh_token = grant.refresh_token
                stored.token_expires_at = (
                    utcnow() + timedelta(seconds=grant.expires_in) if grant.expires_in else None
                )
                stored.last_refreshed_at = utcnow()
                db.flush()
                logger.info(f"✅ Refreshed token for {stored.platform} account {stored.id}")
                return stored
