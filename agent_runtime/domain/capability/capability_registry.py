from typing import List, Sequence, Tuple
import structlog

from agent_runtime.domain.exceptions import RuntimeConfigurationError
from .capabilities import Action, Evaluator, Plugin, Provider, Service

logger = structlog.get_logger(__name__)


class CapabilityRegistry:
    """Append-only registry of actions, evaluators and providers.

    A second action or evaluator with an already registered name is skipped
    with a warning, as is a provider object registered twice.

    Registration is only allowed while the owning runtime is being
    constructed. After ``freeze`` the collections are exposed as tuples and
    any further registration raises.
    """

    def __init__(self):
        self._actions: List[Action] = []
        self._evaluators: List[Evaluator] = []
        self._providers: List[Provider] = []
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def actions(self) -> Tuple[Action, ...]:
        return tuple(self._actions)

    @property
    def evaluators(self) -> Tuple[Evaluator, ...]:
        return tuple(self._evaluators)

    @property
    def providers(self) -> Tuple[Provider, ...]:
        return tuple(self._providers)

    def register_action(self, action: Action) -> None:
        """Register a new action"""
        self._append(self._actions, action, "action")

    def register_evaluator(self, evaluator: Evaluator) -> None:
        """Register a new evaluator"""
        self._append(self._evaluators, evaluator, "evaluator")

    def register_provider(self, provider: Provider) -> None:
        """Register a new provider"""
        self._append(self._providers, provider, "provider")

    def register_plugin(self, plugin: Plugin) -> Sequence[Service]:
        """Merge a plugin's capabilities; its services are returned to the caller"""

        self._check_open()
        for action in plugin.actions:
            self.register_action(action)
        for evaluator in plugin.evaluators:
            self.register_evaluator(evaluator)
        for provider in plugin.providers:
            self.register_provider(provider)

        logger.info(
            "Registered plugin",
            plugin=plugin.name,
            actions=len(plugin.actions),
            evaluators=len(plugin.evaluators),
            providers=len(plugin.providers),
            services=len(plugin.services)
        )
        return list(plugin.services)

    def freeze(self) -> None:
        self._frozen = True

    def get_action(self, name: str):
        for action in self._actions:
            if action.name == name:
                return action
        return None

    def _append(self, collection: list, item, kind: str) -> None:
        self._check_open()

        name = getattr(item, "name", None)
        # Actions and evaluators are keyed by name; providers have none
        if any(
            existing is item or (name is not None and getattr(existing, "name", None) == name)
            for existing in collection
        ):
            logger.warning(
                "Capability already registered, skipping",
                kind=kind,
                name=name or type(item).__name__
            )
            return

        collection.append(item)
        logger.debug("Registered capability", kind=kind, name=name or type(item).__name__)

    def _check_open(self) -> None:
        if self._frozen:
            raise RuntimeConfigurationError("Capabilities can only be registered while the runtime is being built")
