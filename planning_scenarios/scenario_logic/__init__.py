"""
Framework-agnostic scenario management logic.

This package holds the stateful pieces of the scenario engine. None of them
import a UI framework; any front end (CLI, web, desktop) can drive them.

Core principles:
- Explicit context objects instead of global state
- Copy-on-write writes, persisted before they are published
- Typed failures for callers, logged failures for background work
- Listener callbacks for change notification
"""

from .store import ScenarioStore
from .templates import TemplateRegistry, TemplateApplication
from .lifecycle import ScenarioLifecycleManager
from .context_router import ContextRouter
from .engine import ScenarioEngine, build_engine

__all__ = [
    "ScenarioStore",
    "TemplateRegistry",
    "TemplateApplication",
    "ScenarioLifecycleManager",
    "ContextRouter",
    "ScenarioEngine",
    "build_engine",
]
