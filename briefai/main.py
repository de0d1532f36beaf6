"""Main entry point for the briefai application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Annotated, Any, Coroutine, Dict, Optional

import typer

from briefai.core.command_handler import CommandHandler
from briefai.core.services.brief_service import DEFAULT_MAX_PROMPT_TOKENS, BriefService
from briefai.core.services.fanout_service import QueryFanoutService
from briefai.core.services.query_expander import QueryExpander
from briefai.domain.models.errors import BriefAIError, ConfigurationError
from briefai.infrastructure.ai.gemini.gemini_client import GeminiClient
from briefai.infrastructure.ai.groq.groq_client import GroqClient
from briefai.infrastructure.cache.caching_service import CachingServiceImpl
from briefai.infrastructure.cli.display import ConsoleDisplay
from briefai.infrastructure.config.settings import (
    get_backoff_policy,
    get_breaker_settings,
    get_cache_settings,
    get_config,
    get_dataforseo_credentials,
    get_default_model,
    get_default_provider,
    get_fanout_settings,
    get_gemini_api_key,
    get_groq_api_key,
    get_serp_locale,
    load_configuration,
)
from briefai.infrastructure.monitoring.logger_setup import (
    DEFAULT_LOG_FORMAT,
    level_from_name,
    setup_logging,
)
from briefai.infrastructure.optimization.token_estimator import TokenEstimator
from briefai.infrastructure.optimization.token_usage import TokenUsageTracker
from briefai.infrastructure.resilience.api_retry import ApiRetryService
from briefai.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry
from briefai.infrastructure.resilience.rate_limiter import RateLimiter
from briefai.infrastructure.serp.dataforseo_client import DataForSeoClient

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def _create_ai_model():
    """Picks the configured provider, falling back to whichever key is present."""
    clients = {}
    gemini_key = get_gemini_api_key()
    if gemini_key:
        clients["gemini"] = lambda: GeminiClient(api_key=gemini_key, model=get_default_model("gemini"))
    groq_key = get_groq_api_key()
    if groq_key:
        clients["groq"] = lambda: GroqClient(api_key=groq_key, model=get_default_model("groq"))

    if not clients:
        logger.warning("No AI API key found, brief generation disabled.")
        return None

    provider = get_default_provider()
    if provider not in clients:
        fallback = next(iter(clients))
        logger.warning(f"Default provider '{provider}' not available, falling back to {fallback}.")
        provider = fallback
    logger.info(f"AI provider selected: {provider}")
    return clients[provider]()


def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    load_configuration()
    setup_logging(
        log_level=level_from_name(get_config("logging.level")),
        log_format=get_config("logging.format", DEFAULT_LOG_FORMAT),
        log_file=get_config("logging.file"),
    )
    logger.info("Initializing application dependencies...")

    dependencies: Dict[str, Any] = {}
    dependencies["ui"] = ConsoleDisplay()

    ttl_s, max_items = get_cache_settings()
    dependencies["cache_service"] = CachingServiceImpl(default_ttl=ttl_s, max_items=max_items)

    retry_service = ApiRetryService.from_policy(get_backoff_policy())
    failure_threshold, recovery_timeout_s = get_breaker_settings()
    dependencies["breakers"] = CircuitBreakerRegistry(
        retry_service,
        failure_threshold=failure_threshold,
        recovery_timeout_s=recovery_timeout_s,
    )

    token_limit = get_config("ai.token_limit")
    dependencies["usage_tracker"] = TokenUsageTracker(limit=int(token_limit) if token_limit else None)

    ai_model = _create_ai_model()
    dependencies["ai_model"] = ai_model

    language, location_code = get_serp_locale()
    fanout = get_fanout_settings()

    try:
        login, password = get_dataforseo_credentials()
    except ConfigurationError as e:
        logger.warning(f"{e}; SERP commands disabled.")
        dependencies["serp_client"] = None
    else:
        dependencies["serp_client"] = DataForSeoClient(
            login,
            password,
            language_code=language,
            location_code=location_code,
            rate_limiter=RateLimiter(
                max_requests=int(get_config("serp.rate_limit.requests", 30)),
                time_window=float(get_config("serp.rate_limit.window_s", 60.0)),
            ),
        )

    fanout_service = None
    if dependencies["serp_client"] is not None:
        fanout_service = QueryFanoutService(
            serp_provider=dependencies["serp_client"],
            expander=QueryExpander(ai_model=ai_model, breakers=dependencies["breakers"]),
            breakers=dependencies["breakers"],
            cache=dependencies["cache_service"],
            batch_size=fanout["batch_size"],
            inter_batch_delay_s=fanout["inter_batch_delay_s"],
            language=language,
            location_code=location_code,
        )
    dependencies["fanout_service"] = fanout_service

    brief_service = None
    if ai_model is not None:
        brief_service = BriefService(
            ai_model=ai_model,
            breakers=dependencies["breakers"],
            cache=dependencies["cache_service"],
            token_estimator=TokenEstimator(get_config("ai.tokenizer")),
            usage_tracker=dependencies["usage_tracker"],
            max_prompt_tokens=int(get_config("ai.max_prompt_tokens", DEFAULT_MAX_PROMPT_TOKENS)),
        )
    dependencies["brief_service"] = brief_service

    dependencies["command_handler"] = CommandHandler(
        ui=dependencies["ui"],
        cache_service=dependencies["cache_service"],
        breakers=dependencies["breakers"],
        fanout_service=fanout_service,
        brief_service=brief_service,
        usage_tracker=dependencies["usage_tracker"],
        language=language,
        default_max_queries=fanout["max_queries"],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


_dependencies: Optional[Dict[str, Any]] = None


def get_dependencies() -> Dict[str, Any]:
    """Builds the dependency container on first use."""
    global _dependencies
    if _dependencies is None:
        try:
            _dependencies = create_dependencies()
        except BriefAIError as e:
            logger.error(f"Application initialization failed: {e}", exc_info=True)
            ConsoleDisplay().display_error(f"Application Initialization Failed: {e}")
            raise typer.Exit(code=1)
    return _dependencies


# --- Typer App Definition ---
app = typer.Typer(
    name="briefai",
    help="briefai: SEO content briefs from live SERP data, with query fan-out.",
    add_completion=False,
)


# --- Helper for Running Async Commands ---

async def _run_and_close(coro: Coroutine[Any, Any, None], deps: Dict[str, Any]) -> None:
    try:
        await coro
    finally:
        serp_client = deps.get("serp_client")
        if serp_client is not None:
            await serp_client.aclose()


def run_async(coro: Coroutine[Any, Any, None]) -> None:
    """Runs an async command handler from a sync Typer command."""
    deps = get_dependencies()
    try:
        asyncio.run(_run_and_close(coro, deps))
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        deps["ui"].display_error(f"Command execution failed: {e}")
        raise typer.Exit(code=1)


def _handler() -> CommandHandler:
    return get_dependencies()["command_handler"]


# --- CLI Commands ---

@app.command()
def serp(
    keyword: Annotated[str, typer.Argument(help="Keyword to look up.")],
):
    """List the organic results competing for a keyword."""
    run_async(_handler().handle_serp(keyword))


@app.command()
def fanout(
    topic: Annotated[str, typer.Argument(help="Topic to expand.")],
    max_queries: Annotated[Optional[int], typer.Option("--max-queries", min=1, help="Maximum number of derived queries.")] = None,
    batch_size: Annotated[Optional[int], typer.Option("--batch-size", min=1, help="Queries per concurrent batch.")] = None,
    no_semantic: Annotated[bool, typer.Option("--no-semantic", help="Skip semantic variants.")] = False,
    no_longtail: Annotated[bool, typer.Option("--no-longtail", help="Skip long-tail variants.")] = False,
    no_competitors: Annotated[bool, typer.Option("--no-competitors", help="Skip competitor comparison queries.")] = False,
):
    """Expand a topic into related queries and run them in batches."""
    run_async(_handler().handle_fanout(
        topic,
        max_queries=max_queries,
        batch_size=batch_size,
        include_semantic=not no_semantic,
        include_longtail=not no_longtail,
        include_competitors=not no_competitors,
    ))


@app.command()
def brief(
    topic: Annotated[str, typer.Argument(help="Topic of the content brief.")],
    competitors: Annotated[int, typer.Option("--competitors", "-c", min=0, help="Number of competitors to analyse.")] = 5,
    use_fanout: Annotated[bool, typer.Option("--fanout/--no-fanout", help="Run a query fan-out for extra insights.")] = True,
    as_json: Annotated[bool, typer.Option("--json", help="Print the brief as JSON.")] = False,
):
    """Generate an SEO content brief for a topic."""
    run_async(_handler().handle_brief(
        topic, competitor_count=competitors, use_fanout=use_fanout, as_json=as_json
    ))


@app.command(name="clear-cache")
def clear_cache_command(
    pattern: Annotated[Optional[str], typer.Option("--pattern", help="Only remove keys matching this regex.")] = None,
):
    """Clears the application cache."""
    run_async(_handler().handle_clear_cache(pattern))


@app.command(name="cache-stats")
def cache_stats_command():
    """Shows cache size, hit rate and entries."""
    run_async(_handler().handle_cache_stats())


@app.command()
def usage():
    """Shows token usage and circuit breaker states."""
    run_async(_handler().handle_usage())


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    logger.info("Starting briefai application...")
    app()


if __name__ == "__main__":
    cli_entry_point()
