"""Migration pipeline and its building blocks."""

from .context import MigrationContext, MigrationStatus, ProjectResult
from .engine import MigrationEngine
from .errors import (
    EXIT_FAILURE,
    EXIT_GROUP_NOT_FOUND,
    EXIT_MIGRATION_FAILED,
    EXIT_SUCCESS,
    MigrationError,
)
from .orchestrator import MigrationOrchestrator, MigrationPlan, MigrationSummary
from .transfer import TransferMode

__all__ = [
    'EXIT_FAILURE',
    'EXIT_GROUP_NOT_FOUND',
    'EXIT_MIGRATION_FAILED',
    'EXIT_SUCCESS',
    'MigrationContext',
    'MigrationEngine',
    'MigrationError',
    'MigrationOrchestrator',
    'MigrationPlan',
    'MigrationStatus',
    'MigrationSummary',
    'ProjectResult',
    'TransferMode',
]
