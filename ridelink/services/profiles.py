"""
Profile Store.

Provisioning from a signed-in identity, driver vehicle/document details,
availability, and the admin operations on users (listing, verification).
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from .base import Service
from .context import SessionContext
from ridelink.domain.entities import CarDetails, User
from ridelink.domain.enums import UserRole
from ridelink.domain.exceptions import (
    PermissionDeniedError,
    UserNotFoundError,
    ValidationError,
)
from ridelink.external.blob_storage import BlobStorage
from ridelink.external.identity import Identity
from ridelink.infrastructure.change_feed import USERS_CHANNEL, user_channel
from ridelink.infrastructure.models import UserModel
from ridelink.infrastructure.repositories import UserRepository, user_to_entity

logger = logging.getLogger(__name__)


def default_avatar_url(user_id: str) -> str:
    return f"https://picsum.photos/seed/{user_id}/100/100"


class ProfileService(Service):
    def __init__(self, session_factory, feed, blob_storage: BlobStorage, admin_email: str):
        super().__init__(session_factory, feed)
        self.blob_storage = blob_storage
        self.admin_email = admin_email

    def is_admin_identity(self, identity: Identity) -> bool:
        return bool(identity.email) and (
            identity.email.strip().lower() == self.admin_email.strip().lower()
        )

    async def provision(self, identity: Identity, requested_role: UserRole) -> User:
        """
        Return the profile for *identity*, creating it on first sign-in.

        The ADMIN role is granted only when the identity's email matches the
        configured admin email; asking for it with any other identity is
        rejected.  Existing profiles are returned unchanged.
        """
        is_admin = self.is_admin_identity(identity)
        if requested_role == UserRole.ADMIN and not is_admin:
            raise PermissionDeniedError(
                "This account is not authorized for admin access",
                code="ADMIN_NOT_AUTHORIZED",
                details={"email": identity.email},
            )
        role = UserRole.ADMIN if is_admin else requested_role

        async def work(session) -> tuple[User, bool]:
            users = UserRepository(session)
            existing = await users.get_by_id(identity.external_id)
            if existing is not None:
                return user_to_entity(existing), False
            row = await users.add(
                UserModel(
                    id=identity.external_id,
                    name=(identity.display_name or "").strip() or "Anonymous",
                    email=identity.email or "",
                    avatar_url=identity.photo_url or default_avatar_url(identity.external_id),
                    role=role,
                    is_verified=False,
                )
            )
            return user_to_entity(row), True

        try:
            user, created = await self._write(work)
        except IntegrityError:
            # Lost a race with a concurrent first sign-in of the same identity.
            return await self.get_profile(identity.external_id)

        if created:
            logger.info("Signed up %s as %s", user.id, user.role.value)
            await self._notify(USERS_CHANNEL)
        return user

    async def get_profile(self, user_id: str) -> User:
        async def work(session) -> Optional[User]:
            row = await UserRepository(session).get_by_id(user_id)
            return user_to_entity(row) if row else None

        user = await self._read(work)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def update_driver_profile(
        self,
        ctx: SessionContext,
        car_details: CarDetails,
        license_image: bytes,
        photo_image: Optional[bytes] = None,
    ) -> User:
        ctx.require_role(UserRole.DRIVER)
        blank = [
            name
            for name, value in car_details.to_dict().items()
            if not str(value).strip()
        ]
        if blank:
            raise ValidationError(
                "All vehicle details are required",
                code="CAR_DETAILS_INCOMPLETE",
                details={"missing": blank},
            )
        if not license_image:
            raise ValidationError(
                "A driver's license image is required", code="LICENSE_REQUIRED"
            )
        if not photo_image and not ctx.user.avatar_url:
            raise ValidationError("A profile photo is required", code="PHOTO_REQUIRED")

        user_id = ctx.user_id
        license_url = await self.blob_storage.upload(
            license_image, f"drivers/{user_id}/license.jpg"
        )
        photo_url = (
            await self.blob_storage.upload(photo_image, f"drivers/{user_id}/photo.jpg")
            if photo_image
            else None
        )
        details = CarDetails(
            make=car_details.make.strip(),
            model=car_details.model.strip(),
            color=car_details.color.strip(),
            license_plate=car_details.license_plate.strip(),
        )

        async def work(session) -> User:
            row = await UserRepository(session).get_by_id(user_id)
            if row is None:
                raise UserNotFoundError(user_id)
            row.car_details = details.to_dict()
            row.license_url = license_url
            if photo_url:
                row.avatar_url = photo_url
            await session.flush()
            return user_to_entity(row)

        user = await self._write(work)
        ctx.user = user
        logger.info("Driver %s submitted vehicle details", user_id)
        await self._notify(user_channel(user_id), USERS_CHANNEL)
        return user

    async def set_availability(self, ctx: SessionContext, available: bool) -> User:
        ctx.require_role(UserRole.DRIVER)
        user_id = ctx.user_id

        async def work(session) -> User:
            row = await UserRepository(session).get_by_id(user_id)
            if row is None:
                raise UserNotFoundError(user_id)
            row.is_available = available
            await session.flush()
            return user_to_entity(row)

        user = await self._write(work)
        ctx.user = user
        await self._notify(user_channel(user_id))
        return user

    # ── Admin ─────────────────────────────────────────────────────────

    async def list_users(self, ctx: SessionContext) -> list[User]:
        ctx.require_admin()

        async def work(session) -> list[User]:
            return [user_to_entity(r) for r in await UserRepository(session).list_all()]

        return await self._read(work)

    async def set_verification(
        self, ctx: SessionContext, user_id: str, verified: bool
    ) -> User:
        ctx.require_admin()

        async def work(session) -> User:
            row = await UserRepository(session).get_by_id(user_id)
            if row is None:
                raise UserNotFoundError(user_id)
            if row.role != UserRole.DRIVER:
                raise ValidationError(
                    "Only drivers can be verified",
                    code="NOT_A_DRIVER",
                    details={"user_id": user_id, "role": row.role.value},
                )
            row.is_verified = verified
            await session.flush()
            return user_to_entity(row)

        user = await self._write(work)
        logger.info(
            "Admin %s %s driver %s",
            ctx.user_id,
            "verified" if verified else "unverified",
            user_id,
        )
        await self._notify(user_channel(user_id), USERS_CHANNEL)
        return user
