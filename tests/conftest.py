import pytest
from typer.testing import CliRunner
from unittest.mock import AsyncMock

from briefai.domain.interfaces.serp_provider import SerpProvider
from briefai.domain.models.common import Url
from briefai.domain.models.serp import Competitor
from briefai.infrastructure.config.settings import clear_test_config
from briefai.infrastructure.resilience.api_retry import ApiRetryService
from briefai.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """Every delay passed to the fake sleep, in order."""
    return []


@pytest.fixture
def fake_sleep(sleeps, clock):
    """Records the delay and advances the fake clock instead of waiting."""
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock.advance(seconds)
    return _sleep


@pytest.fixture
def events():
    return []


@pytest.fixture
def retry_service(fake_sleep, events):
    """Single-attempt retry service so failures reach the breaker immediately."""
    return ApiRetryService(max_attempts=1, sleep=fake_sleep, event_sink=events.append)


@pytest.fixture
def breakers(retry_service, clock, events):
    return CircuitBreakerRegistry(
        retry_service,
        failure_threshold=5,
        recovery_timeout_s=60.0,
        clock=clock,
        event_sink=events.append,
    )


@pytest.fixture
def make_competitors():
    """Factory for lists of Competitors on distinct example domains."""
    def _make(prefix: str = "site", count: int = 3):
        return [
            Competitor(
                url=Url(f"https://www.{prefix}{i}.com/page"),
                title=f"{prefix.title()} {i}",
                domain=f"{prefix}{i}.com",
                snippet=f"Snippet about {prefix} {i}",
                position=i + 1,
            )
            for i in range(count)
        ]
    return _make


@pytest.fixture
def mock_serp_provider(make_competitors):
    provider = AsyncMock(spec=SerpProvider)
    provider.fetch_serp_results.return_value = make_competitors()
    return provider


@pytest.fixture(autouse=True)
def reset_test_config():
    yield
    clear_test_config()
