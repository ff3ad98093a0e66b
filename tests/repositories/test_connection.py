"""
Database Connection Tests
Tests for MongoDB client lifecycle that do not need a running server.
"""
import pytest
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from lead_intelligence.repositories.connection import INDEXES, DatabaseManager, db_manager, get_database



class TestDatabaseManager:
    """Test suite for DatabaseManager singleton."""

    async def test_singleton_pattern(self):
        """DatabaseManager should return same instance."""
        assert DatabaseManager() is DatabaseManager()
        assert DatabaseManager() is db_manager

    async def test_connect_builds_tz_aware_client(self):
        """Motor connects lazily, so no server is needed here."""
        manager = DatabaseManager()
        await manager.disconnect()

        await manager.connect()

        assert isinstance(manager.client, AsyncIOMotorClient)
        assert isinstance(manager.database, AsyncIOMotorDatabase)
        assert manager.client.codec_options.tz_aware is True
        assert manager.is_connected

        await manager.disconnect()

    async def test_disconnect_is_idempotent(self):
        manager = DatabaseManager()

        await manager.disconnect()
        await manager.disconnect()

        assert not manager.is_connected

    async def test_database_property_raises_when_not_connected(self):
        manager = DatabaseManager()
        await manager.disconnect()

        with pytest.raises(RuntimeError, match="Database not connected"):
            _ = manager.database

        with pytest.raises(RuntimeError):
            await get_database()

    async def test_ping_false_when_disconnected(self):
        manager = DatabaseManager()
        await manager.disconnect()

        assert await manager.ping() is False


class TestIndexes:

    def test_profile_and_optimization_keys_are_unique(self):
        profile = INDEXES["lead_intelligence"][0].document
        optimization = INDEXES["communication_optimizations"][0].document

        assert profile["unique"] is True
        assert list(profile["key"].keys()) == ["org_id", "subject_key"]
        assert optimization["unique"] is True

    def test_lock_leases_expire(self):
        lease = INDEXES["intelligence_locks"][0].document

        assert lease["expireAfterSeconds"] == 0
