"""Built-in proposal plugins.

    validate  field-validation        (priority 10)
    enrich    web-scraper             (priority 20)
    enrich    interchange-calculator  (priority 25)
    compile   proposal-writer         (priority 10)

Usage:
    from proposal_engine.plugins import build_plugin_manager

    manager = build_plugin_manager(router)
"""

from proposal_engine.core.logging import get_logger
from proposal_engine.core.model_router import ModelRouter
from proposal_engine.core.plugin_manager import PluginManager
from proposal_engine.plugins.field_validation import FieldValidationPlugin
from proposal_engine.plugins.interchange_calculator import InterchangeCalculatorPlugin
from proposal_engine.plugins.proposal_writer import ProposalWriterPlugin
from proposal_engine.plugins.web_scraper import WebScraperPlugin

logger = get_logger(__name__)


def register_all_plugins(manager: PluginManager, router: ModelRouter) -> None:
    """Register every built-in plugin on ``manager``."""
    logger.info("[Plugins] Registering all plugins...")

    manager.register(FieldValidationPlugin())
    manager.register(WebScraperPlugin(router))
    manager.register(InterchangeCalculatorPlugin())
    manager.register(ProposalWriterPlugin(router))

    logger.info(f"[Plugins] {len(manager.get_all_plugins())} plugins registered")


def build_plugin_manager(router: ModelRouter) -> PluginManager:
    manager = PluginManager()
    register_all_plugins(manager, router)
    return manager


__all__ = [
    "FieldValidationPlugin",
    "InterchangeCalculatorPlugin",
    "ProposalWriterPlugin",
    "WebScraperPlugin",
    "build_plugin_manager",
    "register_all_plugins",
]
