"""Dictionary CLI commands for sketchparty.

Adds helpers for inspecting the word dictionary and trying the AI
theme-word provider.
"""

from __future__ import annotations

import asyncio
from collections import Counter

import rich_click as click
from litestar.plugins import CLIPluginProtocol
from rich.console import Console
from rich.table import Table

from sketchparty.core.settings import AppSettings
from sketchparty.game.hints import is_hintable
from sketchparty.game.wordbank import WordBank

console = Console()


def load_word_bank(file_path: str | None) -> WordBank:
    """Load the dictionary from a file, the environment, or the bundled list."""
    path = file_path or AppSettings.from_env().dictionary_path
    return WordBank.from_file(path) if path else WordBank()


@click.group(name="words", help="Inspect the word dictionary.")
def words_group() -> None:
    """Inspect the word dictionary."""


@words_group.command(name="stats", help="Show dictionary statistics.")
@click.option("--file", "-f", "file_path", default=None, help="Dictionary file (one word per line)")
def words_stats(file_path: str | None) -> None:
    """Show how many words the dictionary holds, grouped by hintable length."""
    bank = load_word_bank(file_path)
    lengths = Counter(sum(1 for char in word if is_hintable(char)) for word in bank.words)

    table = Table(title=f"Dictionary ({len(bank)} words)")
    table.add_column("Letters", style="cyan", justify="right")
    table.add_column("Words", style="green", justify="right")

    for length, count in sorted(lengths.items()):
        table.add_row(str(length), str(count))

    console.print(table)
    multi_word = sum(1 for word in bank.words if " " in word)
    if multi_word:
        console.print(f"[dim]{multi_word} entries contain several words[/dim]")


@words_group.command(name="sample", help="Print random words, like a drawer's choice.")
@click.option("--count", "-c", default=3, type=click.IntRange(1, 20), help="Number of words")
@click.option("--file", "-f", "file_path", default=None, help="Dictionary file (one word per line)")
def words_sample(count: int, file_path: str | None) -> None:
    """Print distinct random words from the dictionary."""
    bank = load_word_bank(file_path)
    for word in bank.random_words(count):
        console.print(f"[cyan]{word}[/cyan]")


@words_group.command(name="theme", help="Generate themed words with the AI provider.")
@click.argument("theme")
@click.option("--count", "-c", default=10, type=click.IntRange(1, 50), help="Number of words")
def words_theme(theme: str, count: int) -> None:
    """Ask the AI provider for words on a theme."""
    settings = AppSettings.from_env()
    if not settings.openai_api_key:
        console.print("[red]Error: OPENAI_API_KEY is not set.[/red]")
        return

    from sketchparty.game.providers import OpenAIThemeProvider

    provider = OpenAIThemeProvider(api_key=settings.openai_api_key, model=settings.ai_model)
    try:
        words = asyncio.run(provider.generate(theme, count))
    except ImportError:
        console.print("[red]Error: openai is not installed.[/red]")
        console.print("Install with: [cyan]pip install sketchparty[ai][/cyan]")
        return
    except Exception as e:  # noqa: BLE001
        console.print(f"[red]Generation failed: {e}[/red]")
        return

    table = Table(title=f"Theme: {theme}")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Word", style="cyan")
    for index, word in enumerate(words, start=1):
        table.add_row(str(index), word)
    console.print(table)


class SketchPartyCLIPlugin(CLIPluginProtocol):
    """CLI plugin that adds the dictionary commands.

    Adds the `words` command group with subcommands:
    - stats: Show dictionary statistics
    - sample: Print random words
    - theme: Generate themed words with the AI provider
    """

    def on_cli_init(self, cli: click.Group) -> None:
        """Register the words command group."""
        cli.add_command(words_group)
