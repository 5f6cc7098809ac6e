"""
Seed script to populate default permissions, roles and bonus configs.

Run this script after database initialization to create:
- The built-in permission catalogue (updated in place when it changes)
- Default roles (admin plus rank roles)
- Bonus configs for every tracked activity (amount 0 until set by an admin)

Usage:
    python -m scripts.seed_permissions
"""
import asyncio

from personalsystem.core.database.engine import get_db, init_db
from personalsystem.features.bonus.service import init_default_configs
from personalsystem.features.permissions.registry import DEFAULT_ROLES, seed_permissions, seed_roles
from personalsystem.utils import get_logger


log = get_logger(__name__)


async def main():
    """Main function to seed permissions, roles and bonus configs."""
    log.info("Starting seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    # Get database session
    async for db in get_db():
        try:
            counts = await seed_permissions(db)
            log.info("Permissions: %d created, %d updated", counts["created"], counts["updated"])

            await seed_roles(db)
            configs = await init_default_configs(db)
            log.info("Bonus configs created: %d", configs)

            log.info("Seeding completed successfully!")
            log.info("Default roles:")
            for role_name, values in DEFAULT_ROLES.items():
                log.info("  - %s (level %d): %s", role_name, values["level"], values["display_name"])

        except Exception as e:
            log.error("Error seeding: %s", e, exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
