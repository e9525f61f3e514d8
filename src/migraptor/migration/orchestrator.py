"""Migration orchestrator for the phased transfer pipeline."""

from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ..models.group import Group
from ..models.project import Project
from ..models.registry import RegistryRepository
from .archival import ArchivalStatePreserver
from .context import MigrationContext, MigrationStatus, ProjectResult
from .errors import ArchivalError, TransferError
from .eviction import RegistryEvictor
from .images import ImageBackupEngine, ImageRestoreEngine
from .transfer import TransferEngine, TransferMode, namespace_roots, select_mode


class MigrationPlan(BaseModel):
    """What a run migrates, fixed once discovery is done."""

    source_group: Group = Field(..., description='Discovered root group')
    destination_group: Group = Field(..., description='Destination group')
    projects: Dict[int, Project] = Field(..., description='Projects to migrate')
    subgroups: Dict[int, Group] = Field(
        default_factory=dict, description='Descendant subgroups of the root'
    )

    project_filter: List[str] = Field(
        default_factory=list, description='Project paths to migrate'
    )
    tag_filter: List[str] = Field(default_factory=list, description='Tags to keep')
    preserve_hierarchy: bool = Field(
        default=True, description='Move the root group as a whole'
    )

    class Config:
        """Pydantic configuration."""

        frozen = True

    @property
    def mode(self) -> TransferMode:
        return select_mode(self.preserve_hierarchy, self.project_filter)


class MigrationSummary(BaseModel):
    """Summary of migration results."""

    dry_run: bool = Field(default=False, description='Run was simulated')
    mode: TransferMode = Field(..., description='Transfer mode used')

    started_at: datetime = Field(..., description='Migration start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Migration completion time'
    )

    project_results: List[ProjectResult] = Field(
        default_factory=list, description='Per-project results'
    )

    @property
    def total_projects(self) -> int:
        return len(self.project_results)

    @property
    def successful_projects(self) -> int:
        return sum(1 for r in self.project_results if r.success)

    @property
    def failed_projects(self) -> int:
        return sum(
            1 for r in self.project_results if r.status == MigrationStatus.FAILED
        )

    @property
    def restored_images(self) -> int:
        return sum(len(r.restored) for r in self.project_results)

    @property
    def failed_images(self) -> int:
        return sum(len(r.failed_images) for r in self.project_results)


class MigrationOrchestrator:
    """Runs backup, eviction, transfer and restore over a migration plan.

    Phases run one after another over all projects. A backup failure stops
    the run before any registry is deleted, and a rejected group-level
    operation stops it too. Any other failure is confined to its project.
    """

    def __init__(self, context: MigrationContext):
        """Initialize migration orchestrator.

        Args:
            context: Migration context with clients and settings
        """
        self.context = context
        self.logger = logger.bind(component='MigrationOrchestrator')

        self.archival = ArchivalStatePreserver(context)
        self.backup_engine = ImageBackupEngine(context)
        self.evictor = RegistryEvictor(context)
        self.transfer_engine = TransferEngine(context)
        self.restore_engine = ImageRestoreEngine(context)

    def execute(self, plan: MigrationPlan) -> MigrationSummary:
        """Execute the migration plan.

        Args:
            plan: Migration plan

        Returns:
            Migration summary with per-project results

        Raises:
            BackupError: If a registry could not be listed or an image pulled
            TransferError: If the group-level transfer or subgroup creation fails
        """
        self.logger.info(
            f'Starting migration of {len(plan.projects)} projects '
            f'({plan.mode.value} mode)'
        )
        started_at = datetime.now()

        results = {
            project.id: ProjectResult(project_id=project.id, project_path=project.path)
            for project in plan.projects.values()
        }
        backups: Dict[int, List[str]] = {}

        try:
            active = self._prepare(plan, results)
            repositories = self._backup(plan, active, results, backups)
            self._evict(active, repositories, results)
            target = self._transfer(plan, active, results)
            self._restore(plan, target, active, results, backups)
        finally:
            for project in self.archival.pending:
                self._rearchive(project, results[project.id])

        for result in results.values():
            if result.status != MigrationStatus.FAILED:
                result.status = MigrationStatus.COMPLETED
                result.completed_at = datetime.now()

        summary = MigrationSummary(
            dry_run=self.context.dry_run,
            mode=plan.mode,
            started_at=started_at,
            completed_at=datetime.now(),
            project_results=list(results.values()),
        )

        self.logger.info(
            f'Migration completed: {summary.successful_projects} successful, '
            f'{summary.failed_projects} failed, '
            f'{summary.restored_images} images restored'
        )
        return summary

    def _prepare(
        self, plan: MigrationPlan, results: Dict[int, ProjectResult]
    ) -> List[Project]:
        """Unarchive archived projects; drop those that cannot be."""
        active = []
        for project in plan.projects.values():
            result = results[project.id]
            result.status = MigrationStatus.IN_PROGRESS
            try:
                result.unarchived = self.archival.unarchive(project)
            except ArchivalError as e:
                result.fail(str(e))
                continue
            active.append(project)
        return active

    def _backup(
        self,
        plan: MigrationPlan,
        projects: List[Project],
        results: Dict[int, ProjectResult],
        backups: Dict[int, List[str]],
    ) -> Dict[int, List[RegistryRepository]]:
        """Pull every project's images.

        Entries of ``projects`` that were backed up are replaced by copies
        carrying their registry repository ids.
        """
        repositories: Dict[int, List[RegistryRepository]] = {}

        for index, project in enumerate(projects):
            if not project.container_registry_enabled:
                continue

            self.logger.info(f'💾 Backup ===== {project.path} =====')
            references, repos = self.backup_engine.backup(project, plan.tag_filter)
            repository_ids = [repo.id for repo in repos]
            projects[index] = project.copy(
                update={'registry_repository_ids': repository_ids}
            )
            backups[project.id] = references
            results[project.id].backed_up = list(references)
            results[project.id].registry_repository_ids = repository_ids
            if repos:
                repositories[project.id] = repos

        return repositories

    def _evict(
        self,
        projects: List[Project],
        repositories: Dict[int, List[RegistryRepository]],
        results: Dict[int, ProjectResult],
    ) -> None:
        if not repositories:
            return

        for project in projects:
            if project.id in repositories:
                self.evictor.evict(project, repositories[project.id])

        confirmed = self.evictor.await_eviction(
            p for p in projects if p.id in repositories
        )
        for project_id, done in confirmed.items():
            results[project_id].eviction_confirmed = done
            if not done:
                results[project_id].warn(
                    'Registry still listed after waiting; transfer may be refused'
                )

    def _transfer(
        self,
        plan: MigrationPlan,
        projects: List[Project],
        results: Dict[int, ProjectResult],
    ) -> Group:
        """Move projects according to the plan's mode.

        Returns:
            The group projects (or the root group) now live in
        """
        destination = plan.destination_group

        if plan.mode == TransferMode.WHOLE_GROUP:
            self.transfer_engine.transfer_group(plan.source_group, destination)
            for project in projects:
                results[project.id].transferred = True
            return destination

        if plan.mode == TransferMode.SUBGROUP:
            target = self.transfer_engine.locate_or_create_subgroup(
                plan.source_group, destination, projects
            )
        else:
            target = destination

        for project in projects:
            self.logger.info(f'🚚 Transfer ===== {project.path} =====')
            try:
                self.transfer_engine.transfer_project(project, target)
            except TransferError as e:
                self.logger.error(f'Failed to transfer project: {e}')
                results[project.id].fail(str(e))
                continue
            results[project.id].transferred = True

        return target

    def _restore(
        self,
        plan: MigrationPlan,
        target: Group,
        projects: List[Project],
        results: Dict[int, ProjectResult],
        backups: Dict[int, List[str]],
    ) -> None:
        for project in projects:
            result = results[project.id]
            references = backups.get(project.id)

            if result.transferred and references:
                self.logger.info(f'🪄 Restore ===== {project.path} =====')
                old_root, new_root = namespace_roots(
                    plan.mode, project, plan.source_group, target
                )
                report = self.restore_engine.restore(references, old_root, new_root)
                result.restored = report.restored
                result.failed_images = report.failed
                if report.failed:
                    result.warn(f'{len(report.failed)} images were not restored')

            self._rearchive(project, result)

            if result.status != MigrationStatus.FAILED:
                self.logger.info(f'🎉 Migration of {project.path} complete')

    def _rearchive(self, project: Project, result: ProjectResult) -> None:
        if project.id not in {p.id for p in self.archival.pending}:
            return
        result.rearchived = self.archival.rearchive(project)
        if not result.rearchived:
            result.warn('Project must be archived again by hand')
