#!/usr/bin/env python3
"""Wearable relay - a CLI for the wearable_relay library."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from typing import Any, Final

import click
import voluptuous as vol

from wearable_relay import (
    BleakDevice,
    DeviceListener,
    RelayException,
    Streamer,
    StreamKind,
    TcpProbeMonitor,
)
from wearable_relay.schemas import (
    SCH_CONFIG_FILE,
    SZ_DEVICE,
    SZ_LISTENER,
    SZ_SCAN_TIMEOUT,
    SZ_STREAMER,
)
from wearable_tx.codec import PROFILES

_LOGGER = logging.getLogger(__name__)

LISTEN: Final = "listen"
RELAY: Final = "relay"

SZ_ADDRESS: Final = "address"
SZ_DEBUG: Final = "debug"
SZ_DURATION: Final = "duration"
SZ_LOG_LEVEL: Final = "log_level"
SZ_NO_PROBE: Final = "no_probe"
SZ_PROFILE: Final = "profile"
SZ_URL: Final = "url"

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


#
# 1/4: The top-level command, and its options
@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("-c", "--config-file", type=click.File("r"), help="a JSON config file")
@click.option("-d", "--debug", is_flag=True, help="enable debug logging")
@click.option(
    "-l",
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
@click.pass_context
def cli(ctx: click.Context, config_file: Any = None, **kwargs: Any) -> None:
    """A CLI for the wearable_relay library."""

    try:
        lib_kwargs = SCH_CONFIG_FILE(json.load(config_file) if config_file else {})
    except (json.JSONDecodeError, vol.Invalid) as err:
        raise click.BadParameter(str(err), param_hint="--config-file") from err

    ctx.obj = lib_kwargs, kwargs


#
# 2/4: The listen command
@cli.command()
@click.argument("address")
@click.option("-s", "--scan-timeout", type=float, help="secs to scan for the device")
@click.option("-t", "--duration", type=float, help="secs to run (default: forever)")
@click.pass_obj
def listen(obj: tuple[dict, dict], **kwargs: Any) -> tuple[str, dict, dict]:
    """Listen to the notifications of a wearable, and count its packets."""
    lib_kwargs, cli_kwargs = obj
    return LISTEN, _device_kwargs(lib_kwargs, kwargs), {**cli_kwargs, **kwargs}


#
# 3/4: The relay command
@cli.command()
@click.argument("url")
@click.option("-a", "--address", required=True, help="the BLE address of the wearable")
@click.option("-p", "--profile", type=click.Choice(list(PROFILES)))
@click.option("-s", "--scan-timeout", type=float, help="secs to scan for the device")
@click.option("-t", "--duration", type=float, help="secs to run (default: forever)")
@click.option("--no-probe", is_flag=True, help="do not check for internet access")
@click.pass_obj
def relay(obj: tuple[dict, dict], **kwargs: Any) -> tuple[str, dict, dict]:
    """Relay the notifications of a wearable to a websocket server."""
    lib_kwargs, cli_kwargs = obj

    if kwargs[SZ_PROFILE]:
        lib_kwargs[SZ_STREAMER] = SCH_CONFIG_FILE(
            {SZ_STREAMER: {**lib_kwargs[SZ_STREAMER], SZ_PROFILE: kwargs[SZ_PROFILE]}}
        )[SZ_STREAMER]

    return RELAY, _device_kwargs(lib_kwargs, kwargs), {**cli_kwargs, **kwargs}


def _device_kwargs(lib_kwargs: dict, kwargs: dict) -> dict:
    if kwargs.get(SZ_SCAN_TIMEOUT):
        lib_kwargs[SZ_DEVICE] = {
            **lib_kwargs[SZ_DEVICE],
            SZ_SCAN_TIMEOUT: kwargs[SZ_SCAN_TIMEOUT],
        }
    return lib_kwargs


#
# 4/4: Running the commands
async def _wait_until_stopped(duration: float | None) -> None:
    """Wait for the duration (if any), or until SIGINT/SIGTERM."""

    loop = asyncio.get_running_loop()
    stopped = asyncio.Event()

    signals = () if sys.platform == "win32" else (signal.SIGINT, signal.SIGTERM)
    for sig in signals:
        loop.add_signal_handler(sig, stopped.set)

    try:
        await asyncio.wait_for(stopped.wait(), duration)
    except TimeoutError:
        pass
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)


def print_summary(listener: DeviceListener) -> None:
    for kind in StreamKind:
        snapshot = listener.snapshot(kind)
        click.echo(
            f"{kind:<8} packets={snapshot.packets_received}, "
            f"active={snapshot.is_active}, error={snapshot.last_error}"
        )


async def _listen(device: BleakDevice, lib_kwargs: dict, **kwargs: Any) -> None:
    listener = DeviceListener(device, lib_kwargs[SZ_LISTENER])

    def handler_factory(kind: StreamKind) -> Any:
        def handler(data: bytes) -> None:
            _LOGGER.debug("%s: %s", kind, data.hex())

        return handler

    try:
        for kind in StreamKind:
            await listener.start(kind, handler_factory(kind))
        await _wait_until_stopped(kwargs[SZ_DURATION])
    finally:
        await listener.stop_all()
        print_summary(listener)
        listener.close()


async def _relay(device: BleakDevice, lib_kwargs: dict, **kwargs: Any) -> None:
    reachability = None if kwargs[SZ_NO_PROBE] else TcpProbeMonitor()
    streamer = Streamer(lib_kwargs[SZ_STREAMER], reachability=reachability)
    listener = DeviceListener(device, lib_kwargs[SZ_LISTENER])

    # notifications are synchronous, so are queued for sending
    queue: asyncio.Queue[tuple[StreamKind, bytes]] = asyncio.Queue()

    async def pump() -> None:
        while True:
            kind, data = await queue.get()
            await streamer.send(kind, data)

    def handler_factory(kind: StreamKind) -> Any:
        return lambda data: queue.put_nowait((kind, data))

    pump_task = asyncio.create_task(pump())
    try:
        if reachability is not None:
            await reachability.start()
        await streamer.start(kwargs[SZ_URL])

        for kind in StreamKind:
            if kind in streamer.context.config.profile.channels:
                await listener.start(kind, handler_factory(kind))

        await _wait_until_stopped(kwargs[SZ_DURATION])

    finally:
        await listener.stop_all()
        await streamer.stop()
        pump_task.cancel()
        if reachability is not None:
            await reachability.stop()

        click.echo(f"sent: {streamer.snapshot.packets_sent} packets")
        print_summary(listener)
        listener.close()
        streamer.close()


async def async_main(command: str, lib_kwargs: dict, **kwargs: Any) -> None:
    device = BleakDevice(kwargs[SZ_ADDRESS], lib_kwargs[SZ_DEVICE])

    await device.connect()
    try:
        if command == LISTEN:
            await _listen(device, lib_kwargs, **kwargs)
        elif command == RELAY:
            await _relay(device, lib_kwargs, **kwargs)
        else:
            raise NotImplementedError(f"Unknown command: {command}")
    finally:
        await device.disconnect()


def main() -> None:
    try:
        result = cli(standalone_mode=False)
    except click.exceptions.ClickException as err:
        err.show()
        sys.exit(err.exit_code)

    if isinstance(result, int):  # e.g. --help
        sys.exit(result)

    (command, lib_kwargs, kwargs) = result

    logging.basicConfig(
        format=LOG_FORMAT,
        level=logging.DEBUG if kwargs[SZ_DEBUG] else kwargs[SZ_LOG_LEVEL].upper(),
    )

    try:
        asyncio.run(async_main(command, lib_kwargs, **kwargs))
    except RelayException as err:
        click.echo(f"Error: {err}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
