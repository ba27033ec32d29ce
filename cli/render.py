from __future__ import annotations

import html
import re
from typing import List

import typer

_PARAGRAPH = re.compile(r"<p>(.*?)</p>", re.DOTALL)
_TAG = re.compile(r"<[^>]+>")


def status_lines(document: str) -> List[str]:
    """Extract the visible paragraph text from the status page."""
    lines = []
    for match in _PARAGRAPH.finditer(document):
        text = html.unescape(_TAG.sub("", match.group(1))).strip()
        if text:
            lines.append(text)
    return lines


def render_status(document: str) -> None:
    typer.secho("Relay Status", bold=True)
    lines = status_lines(document)
    if not lines:
        typer.echo("No status information returned.")
        return
    for line in lines:
        typer.echo(line)


def render_command_result(message: str) -> None:
    text = message.strip()
    if text.startswith("Writes enabled:"):
        typer.secho(text, fg=typer.colors.GREEN)
    else:
        typer.secho(text, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
