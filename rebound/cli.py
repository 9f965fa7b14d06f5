"""CLI for inspecting rebound's recovery policy."""

import builtins
import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from rebound.errors.classifier import ErrorClassifier, get_user_friendly_message
from rebound.errors.strategies import ExponentialBackoff
from rebound.models.config import ReboundConfig


console = Console()


def load_config(config: Optional[str]) -> ReboundConfig:
    """Resolve configuration the same way for every command."""
    if config and Path(config).exists():
        return ReboundConfig.from_yaml(config)
    if Path("rebound.yaml").exists():
        return ReboundConfig.from_yaml("rebound.yaml")
    return ReboundConfig.from_env()


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """rebound - optimistic updates with classified recovery."""
    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING)


@main.command()
@click.argument("message")
@click.option("--type", "type_name", help="Exception type name, e.g. ConnectionError")
def classify(message: str, type_name: Optional[str]):
    """Show how an error MESSAGE would be classified."""
    error_type = getattr(builtins, type_name or "", None)
    if not (isinstance(error_type, type) and issubclass(error_type, BaseException)):
        # Names that are not builtins still take part in type-name matching
        error_type = type(type_name, (Exception,), {}) if type_name else None

    category = ErrorClassifier.categorize(message, error_type)
    classification = ErrorClassifier.classification_for(category)
    friendly, suggestion = get_user_friendly_message(classification)

    table = Table(title="Error classification")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("category", classification.category.value)
    table.add_row("severity", classification.severity.value)
    table.add_row("recoverable", str(classification.recoverable))
    table.add_row("strategy", classification.strategy.value)
    table.add_row("suggested delay", f"{classification.suggested_retry_delay:g}s")
    table.add_row("message", friendly)
    table.add_row("suggestion", suggestion)
    console.print(table)


@main.command()
@click.option("--config", help="Path to config file")
@click.option("--attempts", type=int, help="Number of attempts to show")
@click.option("--base-delay", type=float, help="Base delay in seconds")
@click.option("--multiplier", type=float, help="Backoff multiplier")
@click.option("--max-delay", type=float, help="Delay cap in seconds")
@click.option("--jitter", is_flag=True, help="Apply jitter")
def backoff(
    config: Optional[str],
    attempts: Optional[int],
    base_delay: Optional[float],
    multiplier: Optional[float],
    max_delay: Optional[float],
    jitter: bool,
):
    """Print the retry delay schedule of the recovery engine."""
    recovery = load_config(config).recovery

    strategy = ExponentialBackoff(
        max_attempts=attempts if attempts is not None else recovery.max_attempts,
        base_delay=base_delay if base_delay is not None else recovery.base_delay,
        multiplier=multiplier if multiplier is not None else recovery.backoff_multiplier,
        max_delay=max_delay if max_delay is not None else recovery.max_delay,
        jitter=jitter,
    )

    table = Table(title="Backoff schedule")
    table.add_column("After attempt", justify="right")
    table.add_column("Delay (s)", justify="right")
    for attempt in range(1, strategy.max_attempts + 1):
        table.add_row(str(attempt), f"{strategy.get_delay(attempt):.2f}")
    console.print(table)


@main.command(name="config")
@click.option("--config", "config_path", help="Path to config file")
def show_config(config_path: Optional[str]):
    """Print the effective configuration."""
    rebound_config = load_config(config_path)

    for section_name in ("optimistic", "recovery"):
        section = getattr(rebound_config, section_name)
        table = Table(title=section_name)
        table.add_column("Option", style="cyan")
        table.add_column("Value")
        for key, value in section.model_dump().items():
            table.add_row(key, str(value))
        console.print(table)


if __name__ == "__main__":
    main()
