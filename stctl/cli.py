"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path

import typer

from stctl.core.config import ControllerConfig
from stctl.core.errors import StctlError
from stctl.core.service import StudioService
from stctl.core.tables import allowed_values

app = typer.Typer(help="Studio Technologies intercom control over the STcontroller UDP protocol")


def _build_service(devices_dir: Path | None = None) -> StudioService:
    config = ControllerConfig.from_env()
    if devices_dir is not None:
        config = dataclasses.replace(config, devices_dir=devices_dir)
    service = StudioService(config=config)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _require_host(service: StudioService, host: str | None) -> str:
    target = host or service.config.host
    if not target:
        typer.echo("Error: no target host. Pass --host or set STCTL_HOST.", err=True)
        raise typer.Exit(code=1)
    return target


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log packets and replies")) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@app.command("models")
def list_models(
    devices_dir: Path | None = typer.Option(None, "--devices-dir", help="Directory of device files"),
) -> None:
    """List loaded device models and their settings."""
    try:
        service = _build_service(devices_dir)
        schemas = service.list_models()
        if not schemas:
            typer.echo("No device models loaded")
            raise typer.Exit(code=1)

        for schema in schemas:
            typer.echo(schema.model)
            for name, descriptor in schema.settings.items():
                values = ", ".join(allowed_values(descriptor)) or "-"
                flag = " (read-only)" if descriptor.read_only else ""
                typer.echo(f"  {name}: {values}{flag}")
    except StctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("actions")
def list_actions(
    model: str | None = typer.Option(None, "--model", help="Only show this model"),
    devices_dir: Path | None = typer.Option(None, "--devices-dir", help="Directory of device files"),
) -> None:
    """List generated action ids."""
    try:
        service = _build_service(devices_dir)
        for action_id, action in sorted(service.action_table().items()):
            if model and action.model != model:
                continue
            if action.choices:
                detail = ", ".join(f"{c.id}={c.label}" for c in action.choices)
            elif action.range is not None:
                detail = f"{action.range.min}..{action.range.max} step {action.range.step}"
            else:
                detail = action.descriptor.value_type.value
            typer.echo(f"{action_id} {action.name}: {detail}")
    except StctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("feedbacks")
def list_feedbacks(
    model: str | None = typer.Option(None, "--model", help="Only show this model"),
    devices_dir: Path | None = typer.Option(None, "--devices-dir", help="Directory of device files"),
) -> None:
    """List generated feedback ids."""
    try:
        service = _build_service(devices_dir)
        for feedback_id, feedback in sorted(service.feedback_table().items()):
            if model and feedback.model != model:
                continue
            typer.echo(f"{feedback_id} {feedback.name} ({feedback.option_type.value})")
    except StctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("discover")
def discover_devices(
    timeout: float | None = typer.Option(None, "--timeout", help="Discovery window in seconds"),
) -> None:
    """Broadcast a discovery probe and list responding devices."""
    try:
        service = _build_service()
        devices = asyncio.run(service.discover(timeout))
        if not devices:
            typer.echo("No devices found")
            return

        for device in sorted(devices, key=lambda d: d.ip):
            typer.echo(f"{device.ip} {device.model} fw={device.firmware or '-'} mac={device.mac or '-'}")
    except StctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("set")
def set_setting(
    model: str,
    setting: str,
    value: str | None = typer.Argument(None),
    host: str | None = typer.Option(None, "--host", help="Device IP address"),
    devices_dir: Path | None = typer.Option(None, "--devices-dir", help="Directory of device files"),
) -> None:
    """Set a device setting and wait for the ACK.

    If VALUE is omitted, prints the accepted values for SETTING on MODEL.
    """
    try:
        service = _build_service(devices_dir)
        if value is None:
            _, values = service.setting_values(model, setting)
            typer.echo(f"Accepted values for '{setting}' on {model}: {', '.join(values) or '-'}")
            return
        target = _require_host(service, host)
        result = asyncio.run(service.set_setting(model, setting, value, target))
        typer.echo(f"Sent {result.setting}={value} to {result.model} at {result.host} packet={result.packet_hex}")
        typer.echo(f"ack={result.response_hex}")
    except StctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("get-all")
def get_all_settings(
    model: str,
    host: str | None = typer.Option(None, "--host", help="Device IP address"),
) -> None:
    """Request all settings from a device and print the raw reply."""
    try:
        service = _build_service()
        target = _require_host(service, host)
        reply = asyncio.run(service.get_all_settings(model, target))
        typer.echo(reply.hex(" "))
    except StctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("reset")
def reset_device(
    model: str,
    host: str | None = typer.Option(None, "--host", help="Device IP address"),
    yes: bool = typer.Option(False, "--yes", help="Skip confirmation"),
) -> None:
    """Reset a device to factory settings."""
    if not yes:
        typer.confirm(f"Reset {model} to factory settings?", abort=True)
    try:
        service = _build_service()
        target = _require_host(service, host)
        reply = asyncio.run(service.reset_device(model, target))
        typer.echo(f"Reset acknowledged: {reply.hex(' ')}")
    except StctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
