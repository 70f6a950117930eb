from __future__ import annotations

from typing import Callable, Dict

from chat_sessions.core.config import get_settings
from chat_sessions.responders.base import BaseResponder
from chat_sessions.responders.demo_responder import DemoResponder
from chat_sessions.responders.llm_responder import LLMResponder

ResponderFactory = Callable[[], BaseResponder]


class ResponderRegistry:
    def __init__(self) -> None:
        self._factories: Dict[str, ResponderFactory] = {}
        self._instances: Dict[str, BaseResponder] = {}
        self._register_default_responders()

    def _register_default_responders(self) -> None:
        self.register(DemoResponder.name, DemoResponder)
        # Built lazily: the OpenAI client needs an API key.
        self.register(LLMResponder.name, LLMResponder)

    def register(self, name: str, factory: ResponderFactory) -> None:
        self._factories[name] = factory
        self._instances.pop(name, None)

    def get(self, name: str) -> BaseResponder:
        if name not in self._factories:
            raise KeyError(f"Responder '{name}' not registered.")
        if name not in self._instances:
            self._instances[name] = self._factories[name]()
        return self._instances[name]

    @property
    def names(self) -> list[str]:
        return sorted(self._factories)


_responder_registry: ResponderRegistry | None = None


def get_responder_registry() -> ResponderRegistry:
    global _responder_registry
    if _responder_registry is None:
        _responder_registry = ResponderRegistry()
    return _responder_registry


def get_responder() -> BaseResponder:
    return get_responder_registry().get(get_settings().responder_backend)
