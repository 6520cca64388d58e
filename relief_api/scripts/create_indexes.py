#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create the MongoDB indexes: uniqueness of user identifiers and
query indexes for listings, logistics history and the activity trail.
"""

import sys
import logging

from relief_api.services.mongodb import MongoDBPersistence

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Create MongoDB indexes."""
    persistence = MongoDBPersistence()
    try:
        logger.info("Starting MongoDB index creation...")

        health = persistence.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            sys.exit(1)

        logger.info(f"Connected to MongoDB {health['version']} - Database: {health['database']}")

        persistence.create_indexes()

        logger.info("MongoDB indexes created successfully!")

    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")
        sys.exit(1)
    finally:
        persistence.close()


if __name__ == "__main__":
    main()
