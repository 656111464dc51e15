from __future__ import annotations

import json
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..core.config import Config
from ..core.exceptions import DeliberatorError
from ..core.system import DecisionSystem
from ..domain import demo
from ..graph.assignment import Assignment
from ..graph.tables import UtilityTable
from ..utils.strings import short_form


app = typer.Typer(add_completion=False, no_args_is_help=True,
                  help="Deliberator: decision-theoretic planning and reward learning demos.")
console = Console()


def setup_logging(config: Config, debug: bool = False, verbose: bool = False) -> None:
    """Setup logging from the config, with optional debug/verbose override"""
    if debug:
        log_level = logging.DEBUG
    elif verbose:
        log_level = logging.INFO
    else:
        log_level = getattr(logging, str(config.get('logging.level', 'WARNING')).upper(), logging.WARNING)

    logging.basicConfig(
        level=log_level,
        format=config.get('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        datefmt='%H:%M:%S'
    )
    logging.getLogger('deliberator').setLevel(log_level)


def _load_config(config_path: Optional[str], debug: bool, verbose: bool) -> Config:
    try:
        config = Config(config_path)
    except DeliberatorError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1)
    setup_logging(config, debug, verbose)
    return config


def _q_table(q_values: UtilityTable, title: str) -> Table:
    table = Table(title=title, min_width=len(title) + 4)
    table.add_column("Action", style="cyan")
    table.add_column("Q-value", justify="right")
    for action, value in q_values.items():
        table.add_row(str(action), short_form(value))
    return table


@app.callback()
def main() -> None:
    """Planning and learning demos over a probabilistic state graph."""


@app.command()
def plan(
    horizon: int = typer.Option(2, "--horizon", help="Planning horizon (>= 1)"),
    discount: float = typer.Option(0.9, "--discount", help="Discount factor in (0, 1]"),
    samples: int = typer.Option(200, "--samples", help="Samples per inference query"),
    seed: Optional[int] = typer.Option(42, "--seed", help="Deterministic seed"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to a YAML config file"),
    debug: bool = typer.Option(False, "--debug", help="Debug logging"),
    verbose: bool = typer.Option(False, "--verbose", help="Info logging"),
) -> None:
    """Run one planning cycle on the lookahead demo domain."""
    config = _load_config(config_path, debug, verbose)
    config.set('planning.horizon', horizon)
    config.set('planning.discount_factor', discount)
    config.set('sampling.nb_samples', samples)
    config.set('sampling.seed', seed)

    try:
        system = DecisionSystem(config, demo.lookahead_models())
    except DeliberatorError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    try:
        result = system.add_content({demo.USER_ACT: "request"})
    finally:
        system.close()

    if result is None:
        console.print("[yellow]No planning cycle ran[/yellow]")
        raise typer.Exit(code=1)
    console.print(_q_table(result.q_values, f"Q-values (horizon={horizon}, discount={discount})"))
    typer.echo(json.dumps({
        "action": str(result.action) if result.action is not None else None,
        "defaulted": result.defaulted,
        "cancelled": result.cancelled,
        "duration_ms": round(result.duration_ms, 1)
    }))


@app.command()
def learn(
    turns: int = typer.Option(5, "--turns", help="Number of decision/feedback cycles"),
    true_theta: float = typer.Option(0.8, "--true-theta", help="Reward actually received for 'yes'"),
    samples: int = typer.Option(500, "--samples", help="Samples per inference query"),
    seed: Optional[int] = typer.Option(42, "--seed", help="Deterministic seed"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to a YAML config file"),
    debug: bool = typer.Option(False, "--debug", help="Debug logging"),
    verbose: bool = typer.Option(False, "--verbose", help="Info logging"),
) -> None:
    """Refine the demo parameter `theta` from simulated reward feedback."""
    config = _load_config(config_path, debug, verbose)
    config.set('sampling.nb_samples', samples)
    config.set('sampling.seed', seed)
    config.set('planning.horizon', 1)

    system = DecisionSystem(config, demo.learning_models(), demo.learning_state())
    try:
        for turn in range(1, turns + 1):
            result = system.add_content({demo.USER_ACT: "request"})
            action = result.action if result is not None and result.action is not None else None
            if action is None:
                console.print(f"[yellow]Turn {turn}: no decision[/yellow]")
                continue
            reward = true_theta if action.get(demo.SYSTEM_ACT) == "yes" else 0.0
            system.add_reward(action, reward)
            console.print(f"Turn {turn}: {action} -> reward {short_form(reward)}")
        posterior = system.query(["theta"])
    finally:
        system.close()

    table = Table(title="Posterior over theta", min_width=24)
    table.add_column("theta", style="cyan")
    table.add_column("P", justify="right")
    for row, prob in sorted(posterior.items(), key=lambda item: str(item[0])):
        table.add_row(str(row.get("theta")), short_form(prob))
    console.print(table)


@app.command("config")
def show_config(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to a YAML config file"),
) -> None:
    """Print the resolved configuration as JSON."""
    config = _load_config(config_path, False, False)
    try:
        resolved = {
            "sampling": config.sampling,
            "planning": config.planning,
            "learning": config.learning,
            "logging": config.logging,
        }
    except DeliberatorError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(resolved))


@app.command()
def parse(text: str = typer.Argument(..., help="Assignment such as 'a_m=yes ^ x=1'")) -> None:
    """Parse an assignment string and print its canonical form."""
    try:
        assignment = Assignment.from_string(text)
    except ValueError as exc:
        console.print(f"[red]Invalid assignment:[/red] {exc}")
        raise typer.Exit(code=1)
    typer.echo(str(assignment))


if __name__ == "__main__":
    app()
