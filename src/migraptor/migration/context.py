"""Shared state for one migration run."""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ..api.client import GitLabClient
from ..config.config import MigrationConfig
from ..container.client import ContainerClient


class MigrationStatus(str, Enum):
    """Migration status enumeration."""

    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    FAILED = 'failed'


class ProjectResult(BaseModel):
    """Outcome of migrating one project."""

    project_id: int = Field(..., description='Source project ID')
    project_path: str = Field(..., description='Project path')
    status: MigrationStatus = Field(
        default=MigrationStatus.PENDING, description='Migration status'
    )

    started_at: datetime = Field(
        default_factory=datetime.now, description='Processing start time'
    )
    completed_at: Optional[datetime] = Field(
        default=None, description='Processing completion time'
    )

    # Images
    registry_repository_ids: List[int] = Field(
        default_factory=list, description='Source registry repository IDs'
    )
    backed_up: List[str] = Field(
        default_factory=list, description='Image references pulled locally'
    )
    restored: List[str] = Field(
        default_factory=list, description='Image references pushed to destination'
    )
    failed_images: List[str] = Field(
        default_factory=list, description='Image references that failed to restore'
    )
    eviction_confirmed: Optional[bool] = Field(
        default=None, description='Source registry confirmed empty'
    )

    # Lifecycle flags
    unarchived: bool = Field(default=False, description='Temporarily unarchived')
    transferred: bool = Field(default=False, description='Moved to destination')
    rearchived: bool = Field(default=False, description='Archived again')

    error_message: Optional[str] = Field(
        default=None, description='Error message if failed'
    )
    warnings: List[str] = Field(default_factory=list, description='Warning messages')

    @property
    def success(self) -> bool:
        return self.status == MigrationStatus.COMPLETED

    def fail(self, message: str) -> None:
        self.status = MigrationStatus.FAILED
        self.error_message = message
        self.completed_at = datetime.now()

    def warn(self, message: str) -> None:
        self.warnings.append(message)


@dataclass
class MigrationContext:
    """Clients and run settings shared by every migration step."""

    source_client: GitLabClient
    container_client: Optional[ContainerClient] = None
    dry_run: bool = False

    transfer_delay: float = 10.0
    deletion_delay: float = 10.0
    poll_delay: float = 20.0
    max_poll_attempts: int = 30

    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def from_config(
        cls,
        source_client: GitLabClient,
        container_client: Optional[ContainerClient],
        config: MigrationConfig,
    ) -> 'MigrationContext':
        return cls(
            source_client=source_client,
            container_client=container_client,
            dry_run=config.dry_run,
            transfer_delay=config.transfer_delay,
            deletion_delay=config.deletion_delay,
            poll_delay=config.poll_delay,
            max_poll_attempts=config.max_poll_attempts,
        )

    def pause(self, seconds: float) -> None:
        """Wait for the platform to catch up with an asynchronous change."""
        if seconds <= 0:
            return
        logger.info(f'💤 Waiting {seconds:g} seconds...')
        self.sleep(seconds)
