# workflow_transfer/registry.py
"""
Strategy Registry for deduplicators, validators and mutations.

The registry maintains a static catalog of strategy classes populated once
at startup and provides:
- Strategy registration (built-ins via ``initialize`` and manual)
- Instantiation by kind and name with constructor options
- Listings for the ``--list-strategies`` command output
"""

import logging
from typing import Any, Dict, List, Type

from .core.errors import InvalidArgumentError

logger = logging.getLogger("workflow_transfer.registry")

KINDS = ("deduplicator", "validator", "mutation")


class StrategyRegistry:
    """
    Central registry for pluggable strategies.

    Usage:
        registry.initialize()
        dedup = registry.create("deduplicator", "fuzzy", threshold=0.9)
        validators = [registry.create("validator", n) for n in ("schema", "integrity")]

        for kind, names in registry.describe().items():
            print(kind, names)
    """

    def __init__(self):
        self._strategies: Dict[str, Dict[str, Type]] = {kind: {} for kind in KINDS}
        self._initialized = False

    def register(self, kind: str, strategy_class: Type, *aliases: str) -> None:
        """
        Register a strategy class under its ``name`` and any aliases.

        Raises:
            InvalidArgumentError: If ``kind`` is unknown or the class has no name
        """
        if kind not in self._strategies:
            raise InvalidArgumentError(f"Unknown strategy kind '{kind}'")
        name = getattr(strategy_class, "name", None)
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError(f"Strategy class {strategy_class} must define a 'name'")

        for key in (name, *aliases):
            if key in self._strategies[kind]:
                logger.warning(f"Overwriting {kind} registration: {key}")
            self._strategies[kind][key] = strategy_class
        logger.debug(f"Registered {kind}: {name}")

    def get_class(self, kind: str, name: str) -> Type:
        self.initialize()
        try:
            return self._strategies[kind][name]
        except KeyError:
            raise InvalidArgumentError(
                f"Unknown {kind} '{name}'. Available: {', '.join(self.list_names(kind))}"
            ) from None

    def create(self, kind: str, name: str, **options: Any) -> Any:
        """Instantiate the strategy ``name`` of ``kind`` with ``options``."""
        strategy_class = self.get_class(kind, name)
        try:
            return strategy_class(**options)
        except TypeError as e:
            raise InvalidArgumentError(f"Invalid options for {kind} '{name}': {e}") from e

    def list_names(self, kind: str) -> List[str]:
        self.initialize()
        if kind not in self._strategies:
            raise InvalidArgumentError(f"Unknown strategy kind '{kind}'")
        return sorted(self._strategies[kind])

    def describe(self) -> Dict[str, List[Dict[str, Any]]]:
        """Name, description and aliases of every registered strategy."""
        self.initialize()
        listing: Dict[str, List[Dict[str, Any]]] = {}
        for kind, entries in self._strategies.items():
            by_class: Dict[Type, List[str]] = {}
            for key, strategy_class in entries.items():
                by_class.setdefault(strategy_class, []).append(key)
            listing[kind] = [
                {
                    "name": cls.name,
                    "description": getattr(cls, "description", ""),
                    "aliases": sorted(k for k in keys if k != cls.name),
                }
                for cls, keys in sorted(by_class.items(), key=lambda pair: pair[0].name)
            ]
        return listing

    def initialize(self) -> None:
        """Register the built-in strategies. Safe to call repeatedly."""
        if self._initialized:
            return
        self._initialized = True
        self._register_builtins()
        logger.debug(
            "Strategy registry initialized: "
            + ", ".join(f"{kind}={len(entries)}" for kind, entries in self._strategies.items())
        )

    def _register_builtins(self) -> None:
        from .dedup.exact import ExactDeduplicator
        from .dedup.fuzzy import FuzzyDeduplicator
        from .services.mutations import RecreateMutation, RenameMutation, TagMutation
        from .validators.integrity import IntegrityValidator
        from .validators.schema import SchemaValidator

        self.register("deduplicator", ExactDeduplicator, "standard")
        self.register("deduplicator", FuzzyDeduplicator)
        self.register("validator", SchemaValidator)
        self.register("validator", IntegrityValidator)
        self.register("mutation", RecreateMutation)
        self.register("mutation", RenameMutation)
        self.register("mutation", TagMutation)


# Global registry instance
strategy_registry = StrategyRegistry()
