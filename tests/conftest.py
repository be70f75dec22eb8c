from __future__ import annotations

from typing import Callable, Dict, List, Optional

import pytest

from src.forge.models.events import Event
from src.forge.models.generation_models import GenerationRequest
from src.forge.services.chat_orchestrator import ChatOrchestrator
from src.forge.services.context_store import ContextStore
from src.forge.services.project_context_manager import ProjectContextManager
from src.forge.services.prompt_engine import PromptEngine
from src.forge.services.storage_backends import InMemoryStorage
from src.forge.services.template_registry import TemplateRegistry


class RecordingEventBus:
    """Synchronous in-memory event bus used by tests."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Callable[[Event], None]]] = {}
        self.dispatched: List[Event] = []

    def subscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        self._subscribers.setdefault(event_type, []).append(callback)

    def dispatch(self, event: Event) -> None:
        self.dispatched.append(event)
        for callback in self._subscribers.get(event.event_type, []):
            callback(event)

    def of_type(self, event_type: str) -> List[Event]:
        return [event for event in self.dispatched if event.event_type == event_type]


class FakeAIService:
    """Records generation requests and replays scripted responses or errors."""

    def __init__(self, responses: Optional[List[object]] = None) -> None:
        self.responses = list(responses or [])
        self.requests: List[GenerationRequest] = []

    def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        outcome = self.responses.pop(0) if self.responses else "OK"
        if isinstance(outcome, Exception):
            raise outcome
        return str(outcome)


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def store(storage: InMemoryStorage) -> ContextStore:
    return ContextStore(storage)


@pytest.fixture
def context_manager(store: ContextStore, event_bus: RecordingEventBus) -> ProjectContextManager:
    manager = ProjectContextManager(store, event_bus=event_bus)
    manager.set_project("proj-1")
    return manager


@pytest.fixture
def registry(event_bus: RecordingEventBus) -> TemplateRegistry:
    return TemplateRegistry(event_bus=event_bus)


@pytest.fixture
def prompt_engine(registry: TemplateRegistry, context_manager: ProjectContextManager) -> PromptEngine:
    return PromptEngine(registry, context_manager)


@pytest.fixture
def ai_service() -> FakeAIService:
    return FakeAIService()


@pytest.fixture
def orchestrator(
    context_manager: ProjectContextManager,
    prompt_engine: PromptEngine,
    ai_service: FakeAIService,
    event_bus: RecordingEventBus,
) -> ChatOrchestrator:
    return ChatOrchestrator(context_manager, prompt_engine, ai_service, event_bus=event_bus)
