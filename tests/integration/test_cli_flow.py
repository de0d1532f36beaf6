import json

import pytest
from typer.testing import CliRunner
from unittest.mock import AsyncMock, MagicMock

from briefai import main
from briefai.core.command_handler import CommandHandler
from briefai.core.services.brief_service import BriefService
from briefai.core.services.fanout_service import QueryFanoutService
from briefai.core.services.query_expander import QueryExpander
from briefai.domain.interfaces.ai_model import AIModel
from briefai.domain.interfaces.user_interface import UserInterface
from briefai.domain.models.ai import StructuredAIResponse
from briefai.domain.models.errors import ConfigurationError, TransientFailure
from briefai.infrastructure.cache.caching_service import CachingServiceImpl
from briefai.infrastructure.cli.display import ConsoleDisplay
from briefai.infrastructure.optimization.token_usage import TokenUsageTracker
from briefai.main import app

BRIEF_ANSWER = json.dumps({
    "primaryKeyword": "seo",
    "titleSuggestions": {"clickFocused": "SEO that works", "seoFocused": "SEO Guide"},
    "contentOutline": [{"level": "H1", "title": "SEO Guide", "content": "Intro"}],
    "faqSection": [{"question": "What is SEO?", "answer": "Search engine optimization."}],
})


@pytest.fixture
def mock_ai_model():
    model = AsyncMock(spec=AIModel)
    model.send_messages.return_value = StructuredAIResponse(
        content=BRIEF_ANSWER,
        token_usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    )
    return model


@pytest.fixture
def build_dependencies(mock_serp_provider, mock_ai_model, breakers, clock, fake_sleep):
    """Wires real services around mocked SERP and AI adapters."""
    def _build(ui):
        cache = CachingServiceImpl(clock=clock)
        tracker = TokenUsageTracker()
        fanout_service = QueryFanoutService(
            mock_serp_provider, QueryExpander(), breakers, cache=cache, sleep=fake_sleep
        )
        brief_service = BriefService(mock_ai_model, breakers, cache=cache, usage_tracker=tracker)
        return {
            "ui": ui,
            "cache_service": cache,
            "serp_client": None,
            "command_handler": CommandHandler(
                ui=ui,
                cache_service=cache,
                breakers=breakers,
                fanout_service=fanout_service,
                brief_service=brief_service,
                usage_tracker=tracker,
            ),
        }
    return _build


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def cli(mocker, monkeypatch, build_dependencies, mock_ui):
    """Patches the dependency container used by the Typer commands."""
    monkeypatch.setattr(main, "_dependencies", None)
    deps = build_dependencies(mock_ui)
    mocker.patch("briefai.main.create_dependencies", return_value=deps)
    return deps


def test_serp_command_flow(runner: CliRunner, cli, mock_ui, mock_serp_provider):
    result = runner.invoke(app, ["serp", "seo"])

    assert result.exit_code == 0, result.output
    mock_serp_provider.fetch_serp_results.assert_awaited_once()
    keyword, competitors = mock_ui.display_competitors.call_args.args
    assert keyword == "seo"
    assert [c.domain for c in competitors] == ["site0.com", "site1.com", "site2.com"]


def test_fanout_command_flow(runner: CliRunner, cli, mock_ui):
    result = runner.invoke(app, ["fanout", "seo", "--max-queries", "4", "--batch-size", "2", "--no-longtail"])

    assert result.exit_code == 0, result.output
    fanout_result = mock_ui.display_fanout.call_args.args[0]
    assert len(fanout_result.outcomes) == 4
    assert fanout_result.success_rate == 1.0
    assert all(o.item.kind.value != "longtail" for o in fanout_result.outcomes)


def test_fanout_command_reports_degraded_run(runner: CliRunner, cli, mock_ui, mock_serp_provider):
    mock_serp_provider.fetch_serp_results.side_effect = TransientFailure("503")

    result = runner.invoke(app, ["fanout", "seo", "--no-competitors"])

    assert result.exit_code == 0, result.output
    fanout_result = mock_ui.display_fanout.call_args.args[0]
    assert fanout_result.success_rate == 0.0
    assert fanout_result.fallback_used is True


def test_brief_command_flow(runner: CliRunner, cli, mock_ui, mock_ai_model):
    result = runner.invoke(app, ["brief", "seo", "-c", "2", "--no-fanout"])

    assert result.exit_code == 0, result.output
    mock_ai_model.send_messages.assert_awaited_once()
    brief = mock_ui.display_brief.call_args.args[0]
    assert brief.title_suggestions.seo_focused == "SEO Guide"
    assert brief.degraded is False


def test_brief_command_json_output(runner: CliRunner, cli, mock_ui):
    result = runner.invoke(app, ["brief", "seo", "--json", "--no-fanout"])

    assert result.exit_code == 0, result.output
    output = json.loads(mock_ui.display_output.call_args.args[0])
    assert output["titleSuggestions"]["seoFocused"] == "SEO Guide"


def test_brief_command_falls_back_when_ai_fails(runner: CliRunner, cli, mock_ui, mock_ai_model):
    mock_ai_model.send_messages.side_effect = TransientFailure("429")

    result = runner.invoke(app, ["brief", "seo"])

    assert result.exit_code == 0, result.output
    brief = mock_ui.display_brief.call_args.args[0]
    assert brief.degraded is True


def test_clear_cache_and_usage_commands(runner: CliRunner, cli, mock_ui):
    assert runner.invoke(app, ["serp", "seo"]).exit_code == 0

    result = runner.invoke(app, ["clear-cache", "--pattern", "^serp:"])
    assert result.exit_code == 0, result.output
    mock_ui.display_info.assert_called_with("Removed 1 cache entries matching '^serp:'.")

    result = runner.invoke(app, ["usage"])
    assert result.exit_code == 0, result.output
    title, _, rows = mock_ui.display_table.call_args.args
    assert title == "Circuit breakers"
    assert rows == [["serp", "closed", 0]]


def test_console_output_for_serp(runner: CliRunner, mocker, monkeypatch, build_dependencies):
    monkeypatch.setattr(main, "_dependencies", None)
    mocker.patch("briefai.main.create_dependencies", return_value=build_dependencies(ConsoleDisplay()))

    result = runner.invoke(app, ["serp", "seo"])

    assert result.exit_code == 0, result.output
    assert "site0.com" in result.output


def test_initialization_failure_exits_with_error(runner: CliRunner, mocker, monkeypatch):
    monkeypatch.setattr(main, "_dependencies", None)
    mocker.patch("briefai.main.create_dependencies", side_effect=ConfigurationError("bad config"))

    result = runner.invoke(app, ["cache-stats"])

    assert result.exit_code == 1
