"""Plugin contract and the process-wide plugin registry.

Each plugin is tagged with exactly one stage and an integer priority. For a
stage, the manager runs the enabled plugins in ascending priority (ties keep
registration order), one at a time, against the same context. A plugin that
raises is recorded as a failed audit entry plus an error string; the next
plugin still runs.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod

from proposal_engine.core.logging import get_logger, log_with_context
from proposal_engine.core.schemas_context import (
    PLUGIN_STAGES,
    AuditEntry,
    ProposalContext,
    ProposalStage,
)

logger = get_logger(__name__)


class ProposalPlugin(ABC):
    """Base class for pipeline plugins.

    Subclasses set the descriptor attributes and implement ``run``. ``enabled``
    is only the initial state; the manager owns the live flag.
    """

    id: str
    name: str
    version: str = "1.0.0"
    stage: ProposalStage
    enabled: bool = True
    priority: int = 100

    @abstractmethod
    async def run(self, context: ProposalContext) -> ProposalContext:
        """Validate, enrich or compute on ``context`` and return it."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} v{self.version} stage={self.stage.value} priority={self.priority}>"


class PluginManager:
    """Registry of plugins keyed by id, plus stage execution.

    Built once at startup and injected into the orchestrator. Registry access
    is serialized by a lock so a toggle never produces a torn read.
    """

    def __init__(self) -> None:
        self._plugins: dict[str, ProposalPlugin] = {}
        self._enabled: dict[str, bool] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, plugin: ProposalPlugin) -> None:
        """
        Add a plugin, or overwrite one with the same id.

        Overwriting keeps the original registration position.

        Raises:
            ValueError: If the plugin's stage cannot hold plugins
        """
        if plugin.stage not in PLUGIN_STAGES:
            raise ValueError(f"Plugin {plugin.id} has invalid stage: {plugin.stage}")

        with self._lock:
            self._plugins[plugin.id] = plugin
            self._enabled[plugin.id] = plugin.enabled
        logger.info(f"[PluginManager] Registered plugin: {plugin.id} v{plugin.version}")

    def unregister(self, plugin_id: str) -> None:
        with self._lock:
            self._plugins.pop(plugin_id, None)
            self._enabled.pop(plugin_id, None)
        logger.info(f"[PluginManager] Unregistered plugin: {plugin_id}")

    def set_enabled(self, plugin_id: str, enabled: bool) -> bool:
        """
        Toggle a plugin. Takes effect on the next stage resolution.

        Returns:
            True if the plugin exists, False otherwise
        """
        with self._lock:
            if plugin_id not in self._plugins:
                return False
            self._enabled[plugin_id] = enabled
        logger.info(f"[PluginManager] {plugin_id} enabled={enabled}")
        return True

    def is_enabled(self, plugin_id: str) -> bool:
        with self._lock:
            return self._enabled.get(plugin_id, False)

    def get_plugin(self, plugin_id: str) -> ProposalPlugin | None:
        with self._lock:
            return self._plugins.get(plugin_id)

    def get_all_plugins(self) -> list[ProposalPlugin]:
        with self._lock:
            return list(self._plugins.values())

    def get_plugins_by_stage(self, stage: ProposalStage) -> list[ProposalPlugin]:
        """
        Enabled plugins for a stage, in execution order.

        Args:
            stage: Pipeline stage

        Returns:
            Plugins sorted ascending by priority; ties in registration order
        """
        with self._lock:
            candidates = [
                p for p in self._plugins.values()
                if p.stage == stage and self._enabled.get(p.id, False)
            ]
        # sorted() is stable
        return sorted(candidates, key=lambda p: p.priority)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run_stage(self, stage: ProposalStage, context: ProposalContext) -> ProposalContext:
        """
        Run every enabled plugin of ``stage`` against ``context``, in order.

        Args:
            stage: Pipeline stage to run
            context: Context to mutate

        Returns:
            The context after all plugins were attempted
        """
        plugins = self.get_plugins_by_stage(stage)

        for plugin in plugins:
            start_time = time.perf_counter()
            try:
                log_with_context(
                    logger, logging.DEBUG, "Running plugin",
                    proposal_id=context.id, stage=stage, plugin=plugin.id,
                )
                result = await plugin.run(context)
                if result is not None:
                    context = result

                context.add_audit(AuditEntry(
                    stage=stage,
                    plugin=plugin.id,
                    action=f"Executed {plugin.name}",
                    duration_ms=_elapsed_ms(start_time),
                    success=True,
                ))
            except Exception as e:
                error_message = str(e) or type(e).__name__
                duration_ms = _elapsed_ms(start_time)
                log_with_context(
                    logger, logging.ERROR, f"Plugin failed: {error_message}",
                    proposal_id=context.id, stage=stage, plugin=plugin.id, duration_ms=duration_ms,
                )

                context.add_audit(AuditEntry(
                    stage=stage,
                    plugin=plugin.id,
                    action=f"Failed: {plugin.name}",
                    duration_ms=duration_ms,
                    success=False,
                    error=error_message,
                ))
                context.add_error(f"{plugin.id}: {error_message}")

        return context


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)
