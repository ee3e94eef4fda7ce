"""StrategyRegistry: discovers and orders advice strategies."""

from __future__ import annotations
import importlib
from typing import TYPE_CHECKING, Optional

from advisor.config import SETTINGS
from advisor.utils.logger import setup_logger

if TYPE_CHECKING:
    from advisor.analysis.base import BaseAdviceStrategy

logger = setup_logger("registry")

_registry_instance = None


def get_registry() -> StrategyRegistry:
    """Get or create the singleton registry."""
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = StrategyRegistry()
        _registry_instance.auto_discover()
    return _registry_instance


class StrategyRegistry:
    """Central registry of the available advice strategies."""

    def __init__(self):
        self._strategies: dict[str, BaseAdviceStrategy] = {}
        self._priorities: dict[str, int] = {}

    def register(self, strategy: BaseAdviceStrategy, priority: Optional[int] = None) -> None:
        self._strategies[strategy.name] = strategy
        self._priorities[strategy.name] = (
            priority if priority is not None else len(self._priorities) + 1
        )
        logger.info("Registered strategy: %s", strategy.name)

    def get(self, name: str) -> BaseAdviceStrategy | None:
        return self._strategies.get(name)

    def names(self) -> list[str]:
        """Strategy names in the order they should be tried."""
        return sorted(self._strategies, key=lambda n: self._priorities[n])

    def ordered(self) -> list[BaseAdviceStrategy]:
        return [self._strategies[n] for n in self.names()]

    def auto_discover(self, registry_config: Optional[dict] = None) -> None:
        """Load strategies from the advice.registry section of settings."""
        if registry_config is None:
            registry_config = SETTINGS.get("advice", {}).get("registry", {})

        for name, conf in registry_config.items():
            if not conf.get("enabled", True):
                logger.info("Skipping disabled strategy: %s", name)
                continue

            module_path = conf["module"]
            class_name = conf["class"]

            try:
                mod = importlib.import_module(module_path)
                cls = getattr(mod, class_name)
                self.register(cls(), conf.get("priority"))
            except Exception as e:
                logger.error("Failed to load strategy %s: %s", name, e)
