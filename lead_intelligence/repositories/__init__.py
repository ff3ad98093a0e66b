"""
Repositories Layer
Data persistence and query operations for the lead intelligence service.
"""
from .connection import db_manager, get_database, DatabaseManager
from .base import BaseRepository
from .subjects import ContactRepository, LeadRepository
from .signals import EmailThreadRepository, TaskRepository, CalendarEventRepository
from .intelligence import (
    IntelligenceProfileRepository,
    InsightRepository,
    PredictionRepository,
    OptimizationRepository,
    IntelligenceStore,
)

__all__ = [
    "db_manager",
    "get_database",
    "DatabaseManager",
    "BaseRepository",
    "ContactRepository",
    "LeadRepository",
    "EmailThreadRepository",
    "TaskRepository",
    "CalendarEventRepository",
    "IntelligenceProfileRepository",
    "InsightRepository",
    "PredictionRepository",
    "OptimizationRepository",
    "IntelligenceStore",
]
