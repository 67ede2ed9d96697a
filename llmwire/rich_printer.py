"""
Rich stream printer for displaying an ApiStream in the terminal.
"""
from typing import Optional

from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .types import ApiStream, UsageChunk


class RichStreamPrinter:
    """
    Displays streaming chunks live using rich.

    Text is rendered as Markdown, reasoning as dimmed text above it and the
    usage report as a table once the stream ends.

    Attributes:
        title: Title for the display panel
        show_reasoning: Whether to display reasoning chunks
        show_usage: Whether to show the usage table at the end
        code_theme: Theme for code blocks
        refresh_rate: Refresh rate for Live display
        border_style: Border style while streaming
    """

    def __init__(
        self,
        title: str = "Streaming Response",
        show_reasoning: bool = True,
        show_usage: bool = True,
        code_theme: str = "coffee",
        refresh_rate: int = 30,
        border_style: str = "blue",
        console: Optional[Console] = None,
    ):
        self.title = title
        self.show_reasoning = show_reasoning
        self.show_usage = show_usage
        self.code_theme = code_theme
        self.refresh_rate = refresh_rate
        self.border_style = border_style
        self.console = console or Console()
        self._full_text = ""
        self._reasoning = ""
        self._usage: Optional[UsageChunk] = None

    async def print_stream(self, stream: ApiStream) -> str:
        """
        Consume and display a stream.

        Args:
            stream: Chunks from ``ApiHandler.create_message``.

        Returns:
            str: The assembled response text.
        """
        self._full_text = ""
        self._reasoning = ""
        self._usage = None

        with Live(Panel(""), refresh_per_second=self.refresh_rate, console=self.console) as live:
            async for chunk in stream:
                if chunk["type"] == "text":
                    self._full_text += chunk["text"]
                elif chunk["type"] == "reasoning":
                    self._reasoning += chunk["text"]
                elif chunk["type"] == "usage":
                    self._usage = chunk
                self._update_display(live, is_final=False)
            self._update_display(live, is_final=True)

        return self._full_text

    def _update_display(self, live: Live, is_final: bool) -> None:
        title = "[bold]Final Response[/bold]" if is_final else f"[bold]{self.title}[/bold]"
        live.update(
            Panel(
                self._build_content(is_final),
                title=title,
                border_style="green" if is_final else self.border_style,
                padding=(1, 2),
            )
        )

    def _build_content(self, is_final: bool) -> Group:
        parts = []
        if self.show_reasoning and self._reasoning:
            parts.append(Text(self._reasoning, style="dim italic"))
        if self._full_text.strip():
            parts.append(Markdown(self._full_text, code_theme=self.code_theme))
        elif not is_final:
            parts.append(Text("(waiting for response...)", style="dim italic"))
        if is_final and self.show_usage and self._usage:
            parts.append(self._usage_table(self._usage))
        return Group(*parts)

    @staticmethod
    def _usage_table(usage: UsageChunk) -> Table:
        table = Table(title="Usage", show_header=False, box=None)
        table.add_column("field", style="bold")
        table.add_column("tokens", justify="right")
        table.add_row("input", str(usage["input_tokens"]))
        table.add_row("output", str(usage["output_tokens"]))
        if "cache_write_tokens" in usage:
            table.add_row("cache writes", str(usage["cache_write_tokens"]))
        if "cache_read_tokens" in usage:
            table.add_row("cache reads", str(usage["cache_read_tokens"]))
        return table

    def get_full_text(self) -> str:
        """Get the full assembled text."""
        return self._full_text

    def get_reasoning(self) -> str:
        return self._reasoning

    def get_usage(self) -> Optional[UsageChunk]:
        """Get the usage report, if the stream carried one."""
        return self._usage
