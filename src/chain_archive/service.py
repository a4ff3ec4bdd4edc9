"""
Archive service.

Wires the trigger source to the sync engine and keeps the archive current
until shutdown.

Each trigger runs exactly one cycle. The next trigger is pulled from the
source only after that cycle returns, so cycles never overlap and triggers
that arrive meanwhile wait in the source.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from chain_archive import metrics
from chain_archive.api import ApiServer, ApiServerConfig
from chain_archive.commands import CommandRunner, SubprocessRunner
from chain_archive.rpc import CliNodeClient, JsonRpcNodeClient, NodeClient, NodeClientError
from chain_archive.storage import BlockStore
from chain_archive.sync import SyncEngine
from chain_archive.triggers import PollingTrigger, SubscriptionTrigger, TriggerSource
from chain_archive.vcs import Committer, GitCommitter, NullCommitter

if TYPE_CHECKING:
    from chain_archive.config import ArchiveConfig

logger = logging.getLogger(__name__)


def build_node_client(config: ArchiveConfig, runner: CommandRunner | None = None) -> NodeClient:
    """Create the node client selected by ``config.node``."""
    if config.node == "cli":
        return CliNodeClient.from_command_string(
            config.cli_command, runner=runner or SubprocessRunner()
        )
    return JsonRpcNodeClient(
        url=config.rpc_url,
        auth=config.rpc_auth,
        cookie_file=config.rpc_cookie_file,
        timeout=config.rpc_timeout,
    )


def build_trigger_source(config: ArchiveConfig, node: NodeClient) -> TriggerSource:
    """Create the trigger source selected by ``config.trigger``."""
    if config.trigger == "subscribe":
        return SubscriptionTrigger(endpoint=config.zmq_endpoint, topic=config.zmq_topic)
    return PollingTrigger(node=node, interval=config.poll_interval)


def build_committer(config: ArchiveConfig, runner: CommandRunner | None = None) -> Committer:
    """Create the committer: git when committing is enabled, logging only otherwise."""
    if not config.commit:
        return NullCommitter()
    return GitCommitter(
        repo_path=config.repo_path,
        runner=runner or SubprocessRunner(),
        push=config.push,
        paths=(config.blocks_dir,),
    )


@dataclass(slots=True)
class ArchiveService:
    """
    Runs one sync cycle per trigger until stopped.

    Cycle failures are logged and counted. The service then waits for the
    next trigger, which re-runs the full reconciliation.
    """

    engine: SyncEngine
    """Sync engine run on every trigger."""

    trigger_source: TriggerSource
    """Source of "tip may have changed" signals."""

    api_server: ApiServer | None = None
    """Optional HTTP server for health, status and metrics."""

    _shutdown: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    """Set when shutdown is requested."""

    _running: bool = field(default=False, repr=False)
    """Whether the trigger loop is active."""

    @classmethod
    def from_config(
        cls,
        config: ArchiveConfig,
        *,
        node: NodeClient | None = None,
        runner: CommandRunner | None = None,
    ) -> ArchiveService:
        """Assemble a service from validated configuration."""
        node = node or build_node_client(config, runner)
        engine = SyncEngine(
            store=BlockStore(root=config.archive_root, extension=config.extension),
            node=node,
            committer=build_committer(config, runner),
            reorg_window=config.reorg_window,
        )
        service = cls(engine=engine, trigger_source=build_trigger_source(config, node))
        if config.api_enabled:
            service.api_server = ApiServer(
                config=ApiServerConfig(host=config.api_host, port=config.api_port),
                status_getter=service.status,
            )
        return service

    @property
    def is_running(self) -> bool:
        """Check if the trigger loop is active."""
        return self._running

    def status(self) -> dict[str, Any]:
        """Snapshot of the archive and the last cycle, served by /status."""
        report = self.engine.last_report
        return {
            "running": self._running,
            "cycle_in_progress": self.engine.is_running,
            "archive_height": self.engine.store.highest_stored_height(),
            "last_cycle": None if report is None else report.as_dict(),
        }

    async def run(self, *, install_signal_handlers: bool = True) -> None:
        """
        Run the trigger loop (and the API server) until shutdown.

        Args:
            install_signal_handlers: Whether to handle SIGINT/SIGTERM.
                Disable for testing or non-main threads.
        """
        if install_signal_handlers:
            self._install_signal_handlers()

        try:
            if self.api_server is not None:
                await self.api_server.start()

            async with asyncio.TaskGroup() as tg:
                tg.create_task(self._trigger_loop())
                if self.api_server is not None:
                    tg.create_task(self.api_server.run())
                tg.create_task(self._wait_shutdown())
        finally:
            await self.engine.node.close()

    async def run_once(self) -> bool:
        """
        Run a single cycle outside the trigger loop.

        Returns:
            True if the cycle completed without error.
        """
        try:
            return await self._run_cycle()
        finally:
            await self.engine.node.close()

    def stop(self) -> None:
        """
        Request graceful shutdown.

        The trigger stream ends; a cycle in flight runs to completion first.
        """
        self._shutdown.set()

    async def _trigger_loop(self) -> None:
        self._running = True
        try:
            async for trigger in self.trigger_source.events():
                logger.debug("Trigger: %s", trigger.reason.name)
                await self._run_cycle()
        finally:
            self._running = False
            # A source that ends by itself also ends the service.
            self._shutdown.set()

    async def _run_cycle(self) -> bool:
        try:
            await self.engine.perform_cycle()
        except (NodeClientError, OSError):
            logger.exception("Sync cycle failed; waiting for the next trigger")
            metrics.cycle_failures.inc()
            return False
        return True

    def _install_signal_handlers(self) -> None:
        """
        Install signal handlers for graceful shutdown.

        Silently ignores errors if handlers cannot be installed.
        This happens in non-main threads or embedded contexts.
        """
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._shutdown.set)
        except (ValueError, RuntimeError, NotImplementedError):
            pass

    async def _wait_shutdown(self) -> None:
        """Wait for the shutdown signal, then stop the trigger source and API server."""
        await self._shutdown.wait()
        logger.info("Shutting down...")

        self.trigger_source.stop()
        if self.api_server is not None:
            self.api_server.stop()
