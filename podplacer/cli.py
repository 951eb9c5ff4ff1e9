"""PodPlacer CLI - Main entry point for the placement puzzle engine."""

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click

from podplacer.config.loader import CATALOG_ENV_VAR, load_catalog, load_levels
from podplacer.config.validator import ValidationError, validate_catalog
from podplacer.models import GamePhase, Level
from podplacer.output.generator import ReportGenerator, render_level, render_level_list
from podplacer.session import GameSession

PLAY_HELP = """Commands:
  begin               start playing the briefed level
  move POD NODE       schedule POD (id) onto NODE (id)
  reveal              apply the level's solution (limited per run)
  status              show the board
  next                continue to the next level once complete
  jump N              jump to level N
  restart             back to the menu, resetting score and reveals
  quit                leave the game"""


def _load_or_exit(catalog: Optional[str]) -> List[Level]:
    """Load the level catalog, exiting with status 1 on failure."""
    try:
        return load_levels(catalog)
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        for error in e.errors:
            click.echo(f"  - {error}", err=True)
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error loading catalog: {e}", err=True)
        sys.exit(1)


def _level_index(levels: List[Level], number: int) -> int:
    """Convert a 1-based level number to an index, exiting if out of range."""
    if not 1 <= number <= len(levels):
        click.echo(
            f"Error: level {number} does not exist (catalog has {len(levels)} levels)",
            err=True,
        )
        sys.exit(1)
    return number - 1


def _parse_move(move: str) -> Tuple[str, str]:
    pod_id, sep, node_id = move.partition("=")
    if not sep or not pod_id or not node_id:
        raise click.BadParameter(f"expected POD=NODE, got '{move}'", param_hint="MOVES")
    return pod_id.strip(), node_id.strip()


@click.group()
@click.version_option()
@click.option(
    "--catalog",
    "-c",
    type=click.Path(),
    envvar=CATALOG_ENV_VAR,
    default=None,
    help=f"Level catalog file or directory (env: {CATALOG_ENV_VAR}; default: built-in levels)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, catalog: Optional[str], verbose: bool):
    """PodPlacer - schedule pods onto nodes under cluster constraints.

    Each level is a small cluster with a set of pending pods and a list of
    objectives. Moves are checked against capacity, resources, storage and
    anti-affinity before they are applied.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["catalog"] = catalog


@main.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def levels(ctx: click.Context, json_output: bool):
    """List the levels of the catalog."""
    catalog = _load_or_exit(ctx.obj["catalog"])
    if json_output:
        click.echo(json.dumps([level.summary() for level in catalog], indent=2))
    else:
        click.echo(render_level_list(catalog))


@main.command()
@click.argument("number", type=int)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx: click.Context, number: int, json_output: bool):
    """Show the briefing of level NUMBER (1-based)."""
    catalog = _load_or_exit(ctx.obj["catalog"])
    index = _level_index(catalog, number)
    level = catalog[index]
    if json_output:
        click.echo(json.dumps(level.summary(), indent=2))
    else:
        click.echo(render_level(level, index))


@main.command()
@click.argument("catalog_path", type=click.Path(exists=True))
def validate(catalog_path: str):
    """Validate a level catalog without playing it.

    CATALOG_PATH: Directory or file containing Level YAML documents.
    """
    click.echo(f"Validating {catalog_path}...")
    try:
        catalog = load_catalog(catalog_path)
        validate_catalog(catalog)
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        for error in e.errors:
            click.echo(f"  - {error}", err=True)
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error loading catalog: {e}", err=True)
        sys.exit(1)

    click.echo(f"  {len(catalog['levels'])} level(s) OK")


@main.command()
@click.argument("number", type=int)
@click.argument("moves", nargs=-1)
@click.option("--reveal", is_flag=True, help="Reveal the solution after the moves")
@click.option("--json", "json_output", is_flag=True, help="Output the final report as JSON")
@click.option("--output", "-o", type=click.Path(), help="Write the JSON report to a file")
@click.pass_context
def simulate(
    ctx: click.Context,
    number: int,
    moves: Tuple[str, ...],
    reveal: bool,
    json_output: bool,
    output: Optional[str],
):
    """Play a scripted sequence of moves on level NUMBER.

    MOVES are POD=NODE pairs applied in order, e.g. pod-1=node-1.

    \b
    Example:
      podplacer simulate 1 pod-1=node-1 pod-2=node-1 pod-3=node-2
    """
    parsed = [_parse_move(m) for m in moves]
    catalog = _load_or_exit(ctx.obj["catalog"])
    index = _level_index(catalog, number)

    session = GameSession(catalog)
    session.jump_to_level(index)
    session.begin()

    for pod_id, node_id in parsed:
        result = session.attempt_move(pod_id, node_id)
        if not json_output:
            if result.accepted:
                click.echo(f"  {pod_id} -> {node_id}: ok")
            else:
                click.echo(f"  {pod_id} -> {node_id}: {result.reason.value}: {result.detail}")

    if reveal:
        result = session.reveal_solution()
        if not json_output:
            status = "revealed" if result.ok else f"{result.reason.value}: {result.detail}"
            click.echo(f"  solution: {status}")

    generator = ReportGenerator(session)
    report = generator.generate()

    if output:
        Path(output).write_text(json.dumps(report, indent=2))
        if not json_output:
            click.echo(f"  Report written to {output}")

    if json_output:
        click.echo(json.dumps(report, indent=2))
    else:
        click.echo(generator.render_board())


@main.command()
@click.option("--level", "-l", "start_level", type=int, default=None, help="Start at level N")
@click.pass_context
def play(ctx: click.Context, start_level: Optional[int]):
    """Play the catalog interactively."""
    catalog = _load_or_exit(ctx.obj["catalog"])
    session = GameSession(catalog)
    generator = ReportGenerator(session)

    if start_level is None:
        session.start()
    else:
        session.jump_to_level(_level_index(catalog, start_level))
    click.echo(render_level(session.level, session.current_level))
    click.echo("Type 'begin' to start, 'help' for commands.")

    while True:
        try:
            line = click.prompt("podplacer", prompt_suffix="> ", default="", show_default=False)
        except click.Abort:
            click.echo()
            break

        command, *args = line.split() or [""]
        if not command:
            continue
        if command in ("quit", "exit"):
            break

        if command == "help":
            click.echo(PLAY_HELP)
        elif command == "begin":
            _echo_action(session.begin())
            click.echo(generator.render_board())
        elif command == "move":
            if len(args) != 2:
                click.echo("usage: move POD NODE")
                continue
            result = session.attempt_move(args[0], args[1])
            if result.accepted:
                click.echo(generator.render_board())
            else:
                click.echo(f"Rejected ({result.reason.value}): {result.detail}")
            if session.phase == GamePhase.LEVEL_COMPLETE:
                level = session.level
                click.echo(f"Level complete! Score: {session.score}")
                if level.analysis:
                    click.echo(level.analysis)
        elif command == "reveal":
            result = session.reveal_solution()
            _echo_action(result)
            if result.ok:
                click.echo(generator.render_board())
        elif command == "status":
            click.echo(generator.render_board())
        elif command == "next":
            result = session.advance()
            _echo_action(result)
            if session.phase == GamePhase.GAME_COMPLETE:
                click.echo(f"All levels complete! Final score: {session.score}")
                break
            if result.ok:
                click.echo(render_level(session.level, session.current_level))
        elif command == "jump":
            if len(args) != 1 or not args[0].isdigit():
                click.echo("usage: jump N")
                continue
            result = session.jump_to_level(int(args[0]) - 1)
            _echo_action(result)
            if result.ok:
                click.echo(render_level(session.level, session.current_level))
        elif command == "restart":
            session.restart()
            session.start()
            click.echo(render_level(session.level, session.current_level))
        else:
            click.echo(f"Unknown command '{command}'. Type 'help' for commands.")


def _echo_action(result) -> None:
    if not result.ok:
        click.echo(f"{result.reason.value}: {result.detail}")
    elif result.remaining is not None:
        click.echo(f"{result.remaining} reveal(s) remaining")


if __name__ == "__main__":
    main()
