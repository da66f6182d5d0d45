"""Main Config Engine - orchestrates a single reconciliation pass.

Provides a single entry point for:
1. Fetching the desired configuration
2. Checking whether the node already converged
3. Calculating the change set against the node
4. Applying it
5. Persisting the last-applied marker
6. Recording the checksum on the node object
"""
import asyncio
import logging
import posixpath
from typing import TYPE_CHECKING

from ..config.settings import AgentConfig
from ..host.base import Filesystem, ServiceManager
from ..sources.base import (
    ANNOTATION_CONFIG_CHECKSUM,
    ConfigSource,
    DesiredConfigResource,
    NodeClient,
    ResourceNotFoundError,
)
from ..utils.audit_log import EventRecorder
from ..utils.logging_config import timed
from .diff import DEFAULT_UNIT_DIRECTORY, DiffEngine, summarize_diff
from .executor import ConfigExecutor
from .gate import should_skip
from .parser import ConfigParser
from .schema import ChangeSet, ReconcileOutcome, ReconcileResult
from .validator import ConfigValidationError, ConfigValidator

if TYPE_CHECKING:
    from ..config_store.store import LastAppliedStore

logger = logging.getLogger(__name__)


class ReconcileError(Exception):
    """A reconciliation step failed."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"unable to {step}: {cause}")


class ConfigEngine:
    """
    Reconciles the node against its desired configuration.

    Usage:
        engine = ConfigEngine.from_config(load_config())
        result = await engine.reconcile()
    """

    def __init__(
        self,
        source: ConfigSource,
        node_client: NodeClient,
        fs: Filesystem,
        service_manager: ServiceManager,
        store: "LastAppliedStore",
        recorder: EventRecorder,
        unit_directory: str = DEFAULT_UNIT_DIRECTORY,
        sync_period: float = 60.0,
        reconcile_timeout: float = 180.0,
        node_requeue_delay: float = 5.0,
        max_concurrent_commands: int = 10,
    ):
        """
        Initialize the Config Engine.

        Args:
            source: Source of the desired configuration
            node_client: Access to the node object's annotations
            fs: Filesystem the configuration is applied to
            service_manager: Client of the node's service manager
            store: Store of the last-applied marker
            recorder: Event recorder
            unit_directory: Directory systemd units are installed to
            sync_period: Seconds until the next pass after success
            reconcile_timeout: Upper bound for a whole pass in seconds
            node_requeue_delay: Seconds until the next pass while the node is missing
            max_concurrent_commands: Upper bound of parallel unit commands
        """
        self.source = source
        self.node_client = node_client
        self.store = store
        self.recorder = recorder
        self.sync_period = sync_period
        self.reconcile_timeout = reconcile_timeout
        self.node_requeue_delay = node_requeue_delay
        self.parser = ConfigParser()
        self.validator = ConfigValidator()
        self.diff_engine = DiffEngine(fs, unit_directory)
        self.executor = ConfigExecutor(
            fs,
            service_manager,
            recorder,
            unit_directory=unit_directory,
            max_concurrent_commands=max_concurrent_commands,
        )

    @classmethod
    def from_config(cls, config: AgentConfig) -> "ConfigEngine":
        """Build an engine operating on the local host."""
        from ..config_store.store import LastAppliedStore
        from ..host.local import LocalFilesystem
        from ..host.systemd import SystemctlServiceManager
        from ..sources.local import FileConfigSource, LocalNodeClient

        fs = LocalFilesystem(config.root_dir, temp_base=posixpath.join(config.state_dir, "tmp"))
        return cls(
            source=FileConfigSource(config.desired_config_path, config.desired_checksum_path),
            node_client=LocalNodeClient(config.node_state_path, config.node_name),
            fs=fs,
            service_manager=SystemctlServiceManager(
                config.systemctl_path, timeout=config.systemctl_timeout
            ),
            store=LastAppliedStore(fs, config.state_dir),
            recorder=EventRecorder(config.node_name),
            unit_directory=config.unit_directory,
            sync_period=config.sync_period,
            reconcile_timeout=config.reconcile_timeout,
            node_requeue_delay=config.node_requeue_delay,
            max_concurrent_commands=config.max_concurrent_commands,
        )

    @property
    def node_name(self) -> str:
        return self.recorder.node_name

    @timed("reconcile")
    async def reconcile(self) -> ReconcileResult:
        """
        Run one reconciliation pass.

        Returns:
            ReconcileResult with the outcome and when to run next

        Raises:
            ReconcileError: If fetching or persisting failed
            ParseError, ConfigValidationError: If the configuration is malformed
            ApplyError: If applying a change failed
            asyncio.TimeoutError: If the pass exceeded the reconcile timeout
        """
        try:
            result = await asyncio.wait_for(self._reconcile(), timeout=self.reconcile_timeout)
        except asyncio.TimeoutError:
            message = f"Reconciliation timed out after {self.reconcile_timeout}s"
            logger.error(message)
            self.recorder.record("ReconcileFailed", message, target=self.node_name, success=False)
            raise
        except Exception as e:
            logger.error(f"Reconciliation failed: {e}")
            self.recorder.record("ReconcileFailed", str(e), target=self.node_name, success=False)
            raise

        return result

    async def _reconcile(self) -> ReconcileResult:
        try:
            resource = await self.source.fetch()
        except ResourceNotFoundError:
            logger.info("Desired configuration is gone, stop reconciling")
            self.recorder.record(
                "ConfigAbsent",
                "No desired configuration, nothing to reconcile",
                target=self.node_name,
            )
            return ReconcileResult(outcome=ReconcileOutcome.ABSENT)
        except Exception as e:
            raise ReconcileError("retrieve desired configuration", e) from e

        try:
            annotations = await self.node_client.get_annotations()
        except Exception as e:
            raise ReconcileError(f"fetch node {self.node_name}", e) from e

        node_checksum = annotations.get(ANNOTATION_CONFIG_CHECKSUM) if annotations else None
        if should_skip(node_checksum, resource.checksum):
            logger.info("Configuration on this node is up to date, nothing to be done")
            self.recorder.record(
                "ConfigUpToDate",
                f"Configuration {resource.checksum} is already applied",
                target=self.node_name,
            )
            return ReconcileResult(
                outcome=ReconcileOutcome.UP_TO_DATE,
                checksum=resource.checksum,
                requeue_after=self.sync_period,
            )

        changes = self._compute_changes(resource)
        logger.info(summarize_diff(changes))

        await self.executor.execute(changes)
        logger.info(
            "Successfully applied configuration: "
            + ", ".join(f"{k}={v}" for k, v in changes.counts().items())
        )

        logger.info(f"Persisting current configuration as last applied to {self.store.marker_path}")
        try:
            self.store.save(resource.raw, resource.checksum)
        except OSError as e:
            raise ReconcileError(
                f"write last applied configuration to {self.store.marker_path}", e
            ) from e

        result = ReconcileResult(
            outcome=ReconcileOutcome.APPLIED,
            checksum=resource.checksum,
            requeue_after=self.sync_period,
            changes=changes,
        )

        if annotations is None:
            logger.info("Waiting for node to get registered, requeuing")
            self.recorder.record(
                "ConfigAppliedNodePending",
                "Configuration has been applied, node is not registered yet",
                target=self.node_name,
            )
            result.requeue_after = self.node_requeue_delay
            return result

        self.recorder.record(
            "ConfigApplied",
            "Configuration has been applied successfully",
            target=self.node_name,
        )

        try:
            await self.node_client.set_annotations({ANNOTATION_CONFIG_CHECKSUM: resource.checksum})
        except Exception as e:
            logger.warning(f"Unable to record checksum on node {self.node_name}, requeuing: {e}")
            result.requeue_after = self.node_requeue_delay

        return result

    def _compute_changes(self, resource: DesiredConfigResource) -> ChangeSet:
        """Parse, validate and diff the desired configuration."""
        desired = self.parser.parse(resource.raw)

        validation = self.validator.validate(desired)
        for warning in validation.warnings:
            logger.warning(warning)
        if not validation.valid:
            raise ConfigValidationError(validation.errors)

        try:
            previous = self.store.load_config(self.parser)
        except OSError as e:
            raise ReconcileError("read last applied configuration", e) from e

        try:
            return self.diff_engine.calculate(desired, previous)
        except OSError as e:
            raise ReconcileError("calculate configuration changes", e) from e

    async def preview(self) -> str:
        """
        Preview changes without applying.

        Returns human-readable change summary.
        """
        try:
            resource = await self.source.fetch()
        except ResourceNotFoundError as e:
            return f"Nothing to reconcile: {e}"

        return summarize_diff(self._compute_changes(resource))

