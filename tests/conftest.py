"""
Pytest configuration for ensuring the project root is on sys.path.

This allows test modules to import the in-repo package layout like:
    from planning_scenarios.scenario_logic import ScenarioStore

Without relying on external environment variables. Shared fixtures build
stores and registries on in-memory storage with a controllable clock.
"""

import itertools
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Insert the repository root (one directory up from tests/) at the
# beginning of sys.path to prioritize local modules over site-packages.
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from planning_scenarios.scenario_logic import ScenarioStore, TemplateRegistry  # noqa: E402
from planning_scenarios.storage import InMemoryStorage  # noqa: E402

START = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock frozen at a settable instant."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


def sequential_ids(prefix="id"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def live():
    """Mutable live dataset; the store reads it through a provider."""
    return {
        "people": [
            {"id": "u1", "name": "Ada", "team_id": "t1", "role_id": "r1"},
            {"id": "u2", "name": "Grace", "team_id": "t2", "role_id": "r1"},
        ],
        "teams": [
            {"id": "t1", "name": "Platform", "capacity": 40},
            {"id": "t2", "name": "Mobile", "capacity": 30},
        ],
        "projects": [
            {"id": "P1", "name": "Apollo", "budget": 100, "start_date": "2025-02-01", "end_date": "2025-06-30"},
        ],
        "allocations": [
            {"id": "a1", "team_id": "t1", "project_id": "P1", "percentage": 50},
        ],
        "roles": [{"id": "r1", "name": "Engineer"}],
        "config": {"financial_year_start": "2025-01-01", "iterations": 6},
    }


@pytest.fixture
def registry(storage, clock):
    reg = TemplateRegistry(storage, clock=clock, id_factory=sequential_ids("mod"))
    reg.seed()
    return reg


@pytest.fixture
def store(storage, live, clock, registry):
    return ScenarioStore(
        storage,
        live_data_provider=lambda: live,
        template_registry=registry,
        clock=clock,
        id_factory=sequential_ids("scn"),
    )
