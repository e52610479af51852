"""Command line interface for remote-webdriver."""

from __future__ import annotations

import asyncio
import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from .command import Command
from .config import ClientConfig, load_config
from .errors import CommandError, ErrorSummary, WebDriverError
from .helpers import poll_until
from .server import Server

app = typer.Typer(help="Remote WebDriver client")
console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to YAML configuration."),
]
EnvFileOption = Annotated[
    Optional[Path],
    typer.Option("--env-file", help="Path to an .env file with default configuration values."),
]
ServerUrlOption = Annotated[
    Optional[str],
    typer.Option("--server", "-s", help="URL of the WebDriver server."),
]


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure logging before executing any command."""

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def build_server(config: ClientConfig) -> Server:
    return Server.from_config(config.server)


def _load(config_path: Optional[Path], env_file: Optional[Path], server_url: Optional[str]) -> ClientConfig:
    overrides: dict[str, Any] = {}
    if server_url:
        overrides["server"] = {"url": server_url}
    return load_config(config_path, env_file=env_file, **overrides)


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except (WebDriverError, CommandError) as exc:
        summary = ErrorSummary.from_exception(exc)
        console.print(f"{summary.kind}: {summary.message}", style="red", markup=False)
        if summary.request is not None:
            console.print(
                f"while requesting {summary.request.method} {summary.request.url}",
                style="dim",
                markup=False,
            )
        raise typer.Exit(code=1) from exc


@app.command()
def version() -> None:
    """Print the package version."""

    try:
        typer.echo(get_version("remote-webdriver"))
    except PackageNotFoundError:  # pragma: no cover - when running from source tree
        typer.echo("0.0.0")


@app.command()
def status(
    config_path: ConfigOption = None,
    env_file: EnvFileOption = None,
    server_url: ServerUrlOption = None,
) -> None:
    """Print the status reported by the WebDriver server."""

    config = _load(config_path, env_file, server_url)

    async def _status() -> dict[str, Any]:
        async with build_server(config) as server:
            return await server.get_status()

    report = _run(_status())
    console.print(f"Server: {config.server.url}", markup=False)
    console.print(report)


@app.command()
def sessions(
    config_path: ConfigOption = None,
    env_file: EnvFileOption = None,
    server_url: ServerUrlOption = None,
) -> None:
    """List the sessions currently active on the WebDriver server."""

    config = _load(config_path, env_file, server_url)

    async def _sessions() -> list[dict[str, Any]]:
        async with build_server(config) as server:
            return await server.get_sessions()

    active = _run(_sessions())
    if not active:
        console.print("No active sessions.")
        return
    table = Table("Session", "Browser", "Version", "Platform")
    for entry in active:
        capabilities = entry.get("capabilities") or {}
        table.add_row(
            str(entry.get("id", "")),
            str(capabilities.get("browserName", "")),
            str(capabilities.get("version", "")),
            str(capabilities.get("platform", "")),
        )
    console.print(table)


@app.command()
def inspect(
    url: Annotated[str, typer.Argument(help="Page to open.")],
    selector: Annotated[
        Optional[str],
        typer.Option("--selector", help="CSS selector whose visible text is printed."),
    ] = None,
    screenshot: Annotated[
        Optional[Path],
        typer.Option("--screenshot", help="Write a PNG screenshot of the page to this path."),
    ] = None,
    wait_for: Annotated[
        Optional[str],
        typer.Option(
            "--wait-for",
            help="JavaScript function body polled until it returns a non-null value.",
        ),
    ] = None,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Seconds to wait for --wait-for."),
    ] = None,
    config_path: ConfigOption = None,
    env_file: EnvFileOption = None,
    server_url: ServerUrlOption = None,
) -> None:
    """Open a page in a new session and print what it shows."""

    config = _load(config_path, env_file, server_url)

    async def _inspect() -> dict[str, Any]:
        async with build_server(config) as server:
            session = await server.create_session(
                config.desired_capabilities,
                config.required_capabilities or None,
            )
            try:
                page = Command(session).get(url)
                if wait_for:
                    page = page.then(
                        poll_until(
                            wait_for,
                            timeout=timeout,
                            poll_interval=config.command.poll_interval,
                        )
                    )
                report: dict[str, Any] = {"title": await page.get_page_title(), "texts": []}
                if selector:
                    matches = page.find_all_by_css_selector(selector)
                    if await matches:
                        report["texts"] = await matches.get_visible_text()
                if screenshot is not None:
                    report["screenshot"] = await page.take_screenshot()
                return report
            finally:
                await session.quit()

    report = _run(_inspect())
    console.print(f"Title: {report['title']}", markup=False)
    for text in report["texts"]:
        console.print(f"- {text}", markup=False)
    if screenshot is not None:
        screenshot.write_bytes(report["screenshot"])
        console.print(f"Screenshot written to {screenshot}", markup=False)


if __name__ == "__main__":
    app()
