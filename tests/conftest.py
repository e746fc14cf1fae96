from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from main import app
from services.conquest import get_job_dispatcher
from services.payment import get_payment_gateway
from services.rate_limiter import SlidingWindowRateLimiter, get_rate_limiter
from stores import get_grid_store, get_job_store
from tests.fakes import FakeGateway, FakeGridStore, FakeJobStore, make_cell


@dataclass
class Api:
    client: TestClient
    grid: FakeGridStore
    jobs: FakeJobStore
    gateway: FakeGateway
    limiter: SlidingWindowRateLimiter
    dispatched: list[str] = field(default_factory=list)


@pytest.fixture
def api() -> Iterator[Api]:
    grid = FakeGridStore([make_cell(x, y) for y in range(3) for x in range(3)])
    grid.cells[(2, 2)]["owner_id"] = "alice"
    jobs = FakeJobStore()
    gateway = FakeGateway()
    limiter = SlidingWindowRateLimiter()
    ctx = Api(client=TestClient(app), grid=grid, jobs=jobs, gateway=gateway, limiter=limiter)

    def dispatch(job_id: str) -> bool:
        ctx.dispatched.append(job_id)
        return True

    app.dependency_overrides[get_grid_store] = lambda: grid
    app.dependency_overrides[get_job_store] = lambda: jobs
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_job_dispatcher] = lambda: dispatch
    try:
        yield ctx
    finally:
        app.dependency_overrides.clear()
