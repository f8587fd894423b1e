"""
Referral service.

Attaches a user to a referrer through a referral code. The upline pointer is
written once and never changed.
"""

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.models.enums import ReferralStatus
from tierpay.models.user import User
from tierpay.repositories.referral_repository import ReferralRepository
from tierpay.repositories.user_repository import UserRepository
from tierpay.utils.db_decorators import with_rollback_on_error
from tierpay.utils.exceptions import ReferralError, UserNotFoundError

# How far up the referrer's chain a cycle is searched for
CYCLE_CHECK_DEPTH = 64


class ReferralService:
    """Referral code handling."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral service."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.referral_repo = ReferralRepository(session)

    @with_rollback_on_error
    async def set_referrer(self, user_id: int, referrer_code: str) -> User:
        """
        Set a user's referrer from a referral code.

        Args:
            user_id: User being referred
            referrer_code: Referral code of the referrer

        Returns:
            Referrer

        Raises:
            UserNotFoundError: User does not exist
            ReferralError: Unknown code, self-referral, referrer already
                set, or the link would close a cycle
        """
        user = await self.user_repo.get_for_update(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        referrer = await self.user_repo.get_by_referral_code(referrer_code.strip())
        if referrer is None:
            raise ReferralError("Invalid referral code")

        if referrer.id == user.id:
            raise ReferralError("Cannot refer yourself")

        if user.referred_by_user_id is not None:
            raise ReferralError("Referrer already set")

        if await self.user_repo.upline_contains(
            referrer.id, user.id, max_hops=CYCLE_CHECK_DEPTH
        ):
            logger.bind(user_id=user.id, referrer_id=referrer.id).warning(
                "Referral loop rejected"
            )
            raise ReferralError("Circular referral chain detected")

        user.referred_by_user_id = referrer.id
        self.session.add(user)
        try:
            await self.referral_repo.create(
                referrer_user_id=referrer.id,
                referred_user_id=user.id,
                status=ReferralStatus.ACTIVE.value,
            )
            await self.session.commit()
        except IntegrityError as e:
            raise ReferralError("Referrer already set") from e

        logger.bind(user_id=user.id, referrer_id=referrer.id).info(
            "Referrer set"
        )
        return referrer
