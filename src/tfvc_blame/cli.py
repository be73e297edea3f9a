from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from tfvc_blame.blame import TfvcBlameCommand
from tfvc_blame.config import resolve_settings
from tfvc_blame.exceptions import BlameError, ConfigurationError
from tfvc_blame.models import AnnotationRecord, BlameInput
from tfvc_blame.protocol.variants import VARIANTS

app = typer.Typer(add_completion=False)

_LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"


def count_lines(path: Path) -> int | None:
    """Line count as the annotate backend sees it: a trailing newline opens an empty last line."""
    try:
        data = path.read_bytes()
    except OSError:
        return None
    return data.count(b"\n") + 1


def request_path(path: Path, root: Path) -> str:
    resolved = path.resolve()
    try:
        return str(resolved.relative_to(root.resolve()))
    except ValueError:
        return str(resolved)


def build_inputs(paths: List[Path], root: Path) -> list[BlameInput]:
    return [
        BlameInput(path=request_path(path, root), line_count=count_lines(path))
        for path in paths
    ]


def record_payload(record: AnnotationRecord) -> dict[str, object]:
    return {
        "revision": record.revision,
        "author": record.author,
        "timestamp": record.timestamp.isoformat() if record.timestamp is not None else None,
    }


def _echo_result(path: str, lines: tuple[AnnotationRecord, ...]) -> None:
    typer.echo(
        json.dumps(
            {"path": path, "lines": [record_payload(record) for record in lines]},
            sort_keys=True,
        )
    )


@app.command()
def annotate(
    paths: List[Path] = typer.Argument(..., help="Files to annotate."),
    executable: Optional[Path] = typer.Option(None, "--executable"),
    config: Optional[Path] = typer.Option(None, "--config"),
    root: Path = typer.Option(Path("."), "--root"),
    variant: Optional[str] = typer.Option(None, "--variant"),
    failure_policy: Optional[str] = typer.Option(None, "--failure-policy"),
    username: Optional[str] = typer.Option(None, "--username"),
    password: Optional[str] = typer.Option(None, "--password"),
    pat: Optional[str] = typer.Option(None, "--pat"),
    collection_uri: Optional[str] = typer.Option(None, "--collection-uri"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Annotate PATHS and print one JSON object per annotated file."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=_LOG_FORMAT)
    try:
        settings = resolve_settings(
            root=root,
            config_path=config,
            overrides={
                "executable": str(executable) if executable is not None else None,
                "variant": variant,
                "failure_policy": failure_policy,
                "username": username,
                "password": password,
                "personal_access_token": pat,
                "collection_uri": collection_uri,
            },
        )
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if settings.executable is None:
        raise typer.BadParameter(
            "no annotate executable configured (use --executable or TFVC_BLAME_EXECUTABLE)"
        )
    command = TfvcBlameCommand(
        settings.executable,
        settings.credentials,
        variant=settings.variant,
        failure_policy=settings.failure_policy,
        logger=logging.getLogger("tfvc_blame"),
    )
    try:
        command.annotate(build_inputs(paths, root), _echo_result)
    except BlameError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)


@app.command()
def variants() -> None:
    """List the protocol generations the driver speaks."""
    for name, variant in sorted(VARIANTS.items()):
        typer.echo(
            f"{name}: separator={variant.separator.value} "
            f"timestamp={variant.timestamp_format.value} "
            f"pat={'yes' if variant.sends_personal_access_token else 'no'} "
            f"collection={'yes' if variant.sends_collection_uri else 'no'}"
        )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
