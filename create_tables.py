"""
Database table creation script for the Contact Identity Resolution service
This script tests the database connection and creates the contacts table.
Run this script after provisioning your database to initialize the schema.
"""

import asyncio
import logging
import sys
from typing import Optional

from sqlalchemy import func, select

from database import DatabaseManager, db_manager
from models import Contact

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def create_tables(database: Optional[DatabaseManager] = None) -> bool:
    """
    Create all database tables defined in the models
    Returns False instead of raising so the script can report a clean failure
    """
    database = database or db_manager
    try:
        logger.info("Starting database table creation...")

        if not await database.test_connection():
            logger.error("Database connection failed - cannot create tables")
            return False

        await database.create_tables()

        async with database.get_session() as session:
            count = await session.scalar(select(func.count()).select_from(Contact))
            logger.info(f"Contacts table accessible - current count: {count}")

        return True

    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")
        return False


def main() -> int:
    """Main function to run the table creation"""
    logger.info("Contact Identity Resolution - Database Setup")

    success = asyncio.run(create_tables())

    if success:
        logger.info("Database setup completed successfully!")
        logger.info("You can now start the API server with: python main.py")
    else:
        logger.error("Database setup failed!")
        logger.error("Please check your database configuration and try again")

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
