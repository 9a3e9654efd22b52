"""Seed the admin account if not present."""
import logging

from tahfidz.api.deps import get_password_hash
from tahfidz.config import settings
from tahfidz.models.user import UserRole
from tahfidz.repository import Repositories

logger = logging.getLogger(__name__)


async def seed_admin(repos: Repositories):
    if not settings.admin_password:
        logger.warning("ADMIN_PASSWORD not set; skipping admin seed")
        return
    existing = await repos.users.find_first({"email": settings.admin_email})
    if existing:
        return
    await repos.users.create(
        {
            "name": settings.admin_name,
            "email": settings.admin_email,
            "hashed_password": get_password_hash(settings.admin_password),
            "role": UserRole.ADMIN,
        }
    )
    logger.info("Seeded admin account %s", settings.admin_email)
