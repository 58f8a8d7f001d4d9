"""
Database package initialization.
Exports models and session utilities.
"""

from Database.base import Base, DatabaseManager
from Database.Application import Application
from Database.Alert import Alert
from Database.AgentRun import AgentRun

__all__ = [
    'Base',
    'DatabaseManager',
    'Application',
    'Alert',
    'AgentRun',
]
