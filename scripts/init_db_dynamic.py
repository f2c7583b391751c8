#!/usr/bin/env python3
"""Initialize the entities table with a configurable text search config."""

import asyncio
import re

import asyncpg
from campaign_search.common.config import SearchConfig


async def init_database():
    """Create the entities table, its weighted search vector, and indexes."""
    config = SearchConfig()
    ts_config = config.cs_text_search_config
    if not re.fullmatch(r"[a-z_]+", ts_config):
        raise ValueError(f"Invalid text search config: {ts_config}")

    print(f"Initializing database with text search config: {ts_config}")

    # Connect to database
    conn = await asyncpg.connect(config.cs_db_dsn)

    try:
        # Name weighs A, description and related names B, metadata C; the
        # prefilter must query with the same config.
        await conn.execute(f"""
            CREATE TABLE IF NOT EXISTS entities (
                id VARCHAR(255) PRIMARY KEY,
                campaign_id VARCHAR(255) NOT NULL,
                entity_type VARCHAR(50) NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                metadata TEXT,
                related_names TEXT,
                created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                deleted_at TIMESTAMP WITH TIME ZONE,
                search_vector tsvector GENERATED ALWAYS AS (
                    setweight(to_tsvector('{ts_config}'::regconfig, coalesce(name, '')), 'A') ||
                    setweight(to_tsvector('{ts_config}'::regconfig, coalesce(description, '')), 'B') ||
                    setweight(to_tsvector('{ts_config}'::regconfig, coalesce(related_names, '')), 'B') ||
                    setweight(to_tsvector('{ts_config}'::regconfig, coalesce(metadata, '')), 'C')
                ) STORED
            );
        """)
        print("✓ entities table created")

        # Create indexes
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_entities_scope ON entities(campaign_id, entity_type) WHERE deleted_at IS NULL;",
            "CREATE INDEX IF NOT EXISTS idx_entities_search ON entities USING gin(search_vector);",
        ]

        for index_sql in indexes:
            await conn.execute(index_sql)
        print("✓ indexes created")

        # Create update trigger function
        await conn.execute("""
            CREATE OR REPLACE FUNCTION update_updated_at_column()
            RETURNS TRIGGER AS $$
            BEGIN
                NEW.updated_at = CURRENT_TIMESTAMP;
                RETURN NEW;
            END;
            $$ language 'plpgsql';
        """)

        await conn.execute("""
            DROP TRIGGER IF EXISTS update_entities_updated_at ON entities;
            CREATE TRIGGER update_entities_updated_at BEFORE UPDATE ON entities
                FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();
        """)
        print("✓ triggers created")

        print("Database initialization completed successfully!")

    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(init_database())
