"""
MongoDB Setup Script
Tests connection and creates the intelligence collections' indexes.
"""
import asyncio
from lead_intelligence.repositories import db_manager
from lead_intelligence.repositories.connection import INDEXES
from lead_intelligence.config import settings


async def setup_mongodb():
    """Connect, create indexes and list them per intelligence collection."""
    print("🔄 Connecting to MongoDB...")
    print(f"   Database: {settings.mongodb_database}")
    print()

    try:
        await db_manager.connect()
        db = db_manager.database
        print("✅ Connection successful!")
        print()

        existing_collections = await db.list_collection_names()
        print(f"📦 Existing collections: {existing_collections or 'None'}")
        print()

        print("🔨 Creating indexes...")
        await db_manager.create_indexes()
        print("✅ Indexes created successfully!")
        print()

        print("📊 Verifying indexes:")
        total = 0
        for name in INDEXES:
            indexes = await db[name].index_information()
            total += len(indexes)
            print(f"   {name}: {len(indexes)} indexes")
            for idx_name in indexes:
                print(f"      - {idx_name}")

        print()
        print("🎉 MongoDB setup complete!")
        print(f"   ✅ Indexes across {len(INDEXES)} collections: {total} total")
        print()

    except Exception as e:
        print(f"❌ Error: {e}")
        print()
        print("💡 Troubleshooting:")
        print("   1. Check MONGODB_URI and that the server is reachable")
        print("   2. Verify the user may create indexes on the database")
        raise

    finally:
        await db_manager.disconnect()
        print("👋 Disconnected from MongoDB")


if __name__ == "__main__":
    asyncio.run(setup_mongodb())
