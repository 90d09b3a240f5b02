"""Operator confirmation gate and network selection."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)


def token_matches(answer: Optional[str], token: str) -> bool:
    """Exact, case-insensitive comparison after trimming surrounding whitespace.

    Empty input never matches.
    """
    if answer is None:
        return False
    answer = answer.strip()
    if not answer:
        return False
    return answer.casefold() == token.strip().casefold()


class ConfirmationPort(ABC):
    """Blocks until the operator accepts or declines an action."""

    @abstractmethod
    def confirm(self, prompt: str, required_token: str) -> bool:
        """Return True only when the operator typed ``required_token``."""


class ConsoleConfirmation(ConfirmationPort):
    """Reads a single line from the terminal.

    End of input or an interrupt counts as a decline.
    """

    def __init__(self, console: Optional[Console] = None, destructive: bool = False):
        self.console = console or Console()
        self.destructive = destructive

    def confirm(self, prompt: str, required_token: str) -> bool:
        style = "red" if self.destructive else "yellow"
        title = "⚠ Destructive action" if self.destructive else "Confirmation required"
        self.console.print(Panel.fit(prompt, title=title, border_style=style))

        try:
            answer = click.prompt(
                f"Type '{required_token}' to continue",
                default='',
                show_default=False,
            )
        except (click.Abort, EOFError, KeyboardInterrupt):
            self.console.print()
            answer = None

        accepted = token_matches(answer, required_token)
        logger.info(f"Operator {'confirmed' if accepted else 'declined'}",
                    extra={'operation': 'confirm'})
        return accepted


class NetworkSelector(ABC):
    """Chooses an existing network to deploy into."""

    @abstractmethod
    def select(self, networks: Sequence) -> Optional[str]:
        """Return the id of the network to reuse, or None to create one."""


class ConsoleNetworkSelector(NetworkSelector):
    """Lists candidate networks and reads the operator's choice by number."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def select(self, networks: Sequence) -> Optional[str]:
        if not networks:
            self.console.print("[yellow]No existing project networks found; a new one will be created[/yellow]")
            return None

        table = Table(title="Existing networks", show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("VPC ID", style="cyan")
        table.add_column("Name")
        table.add_column("CIDR")
        table.add_column("State")
        for index, network in enumerate(networks, 1):
            table.add_row(str(index), network.id, network.name or "-",
                          network.cidr_block or "-", network.state or "-")
        self.console.print(table)

        choices: List[str] = [str(i) for i in range(len(networks) + 1)]
        try:
            choice = click.prompt(
                "Network to reuse (0 creates a new one)",
                type=click.Choice(choices),
                default='0',
            )
        except (click.Abort, EOFError, KeyboardInterrupt):
            return None

        if choice == '0':
            return None
        selected = networks[int(choice) - 1]
        logger.info(f"Reusing network {selected.id}")
        return selected.id
