import logging
from typing import Any, List, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from briefai.domain.interfaces.user_interface import UserInterface
from briefai.domain.models.brief import ContentBrief
from briefai.domain.models.query import FanoutResult
from briefai.domain.models.serp import Competitor

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_output(self, output: str, **kwargs: Any) -> None:
        """Prints output without decoration; ``as_json=True`` pretty-prints JSON."""
        if kwargs.get("as_json"):
            self.console.print_json(output)
        else:
            self.console.print(output)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_table(self, title: str, columns: List[str], rows: List[List[Any]]) -> None:
        table = Table(title=title, box=ROUNDED, border_style="cyan", padding=(0, 1))
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(str(cell) for cell in row))
        self.console.print(table)

    def display_competitors(self, keyword: str, competitors: List[Competitor]) -> None:
        """Lists the organic results for ``keyword``, one row per competitor."""
        if not competitors:
            self.display_warning(f"No organic results found for '{keyword}'.")
            return
        self.display_table(
            f"Competitors for '{keyword}'",
            ["#", "Domain", "Title", "URL"],
            [[c.position, c.domain, c.title, c.url] for c in competitors],
        )

    def display_fanout(self, result: FanoutResult) -> None:
        report = result.report
        summary = (
            f"Primary query: [bold]{result.primary_query}[/bold]\n"
            f"Queries: {report.total}  Succeeded: {report.succeeded}  Failed: {report.failed}\n"
            f"Success rate: {report.success_rate:.1%}  Unique results: {report.unique_count}\n"
            f"Execution time: {result.execution_time_s:.2f}s\n"
            f"Strategy: {report.recommended_strategy}"
        )
        if report.content_gaps:
            summary += f"\nContent gaps: {', '.join(report.content_gaps)}"
        border = "yellow" if result.fallback_used else "green"
        self.console.print(Panel(summary, title="[bold]Query Fan-Out[/bold]", border_style=border, box=ROUNDED))

        rows = []
        for outcome in result.outcomes:
            if outcome.succeeded:
                status = "cached" if outcome.from_cache else "ok"
                detail = f"{len(outcome.payload.results)} results" if outcome.payload else ""
            else:
                status = "failed"
                detail = outcome.failure_reason or ""
            rows.append([f"{outcome.item.priority:.1f}", outcome.item.kind.value, outcome.item.text, status, detail])
        self.display_table("Queries", ["Priority", "Kind", "Query", "Status", "Detail"], rows)

        kind_rows = [
            [kind.value, stats.count, stats.success_count, f"{stats.success_rate:.0%}", f"{stats.avg_priority:.2f}"]
            for kind, stats in report.by_kind.items()
        ]
        self.display_table("By kind", ["Kind", "Count", "Succeeded", "Rate", "Avg priority"], kind_rows)

        if result.fallback_used:
            self.display_warning("Less than 80% of the queries succeeded; results are partial.")

    def display_brief(self, brief: ContentBrief) -> None:
        """Renders the brief as Markdown inside a panel."""
        lines = [
            f"# {brief.topic}",
            f"**User intent:** {brief.user_intent}",
            f"**Competitor tone:** {brief.competitor_tone}",
            f"**Unique value:** {brief.unique_value}",
            f"**Competitor analysis:** {brief.competitor_analysis_summary}",
            "",
            "## Keywords",
            f"- Primary: {brief.primary_keyword}",
            f"- Secondary: {', '.join(brief.secondary_keywords)}",
            "",
            "## Titles",
            f"- Click-focused: {brief.title_suggestions.click_focused}",
            f"- SEO-focused: {brief.title_suggestions.seo_focused}",
            f"- Meta description: {brief.meta_description}",
            "",
            "## Outline",
        ]
        for section in brief.content_outline:
            indent = "  " * (int(section.level[1]) - 1)
            lines.append(f"{indent}- **{section.level}** {section.title}: {section.content}")
            if section.key_info:
                lines.append(f"{indent}  - Key info: {section.key_info}")
            if section.storytelling:
                lines.append(f"{indent}  - Storytelling: {section.storytelling}")
        lines += ["", "## FAQ"]
        for faq in brief.faq_section:
            lines.append(f"- **{faq.question}** {faq.answer}")
        schema = brief.schema_strategy
        lines += [
            "",
            "## Schema",
            f"- Main: {schema.main_schema}",
            f"- Supporting: {', '.join(schema.supporting_schemas)}",
            f"- Reasoning: {schema.reasoning}",
        ]

        border = "yellow" if brief.degraded else "blue"
        self.console.print(Panel(
            Markdown("\n".join(lines)),
            title="[bold]Content Brief[/bold]",
            title_align="left",
            border_style=border,
            box=ROUNDED,
            padding=(0, 1),
        ))
        if brief.degraded:
            self.display_warning(
                f"The AI model was unavailable; this is a generic brief ({brief.failure_reason})."
            )
