"""Command-line interface for hwtest-gpio.

Usage:
    # Export a pin and leave it exported
    hwtest-gpio export 17

    # Drive a pin high (switches it to output first)
    hwtest-gpio set 17 1

    # Read a pin by its alias from a config file
    hwtest-gpio --config board.yaml get door_sensor

    # Show direction, edge and value
    hwtest-gpio info 17

    # Report export/unexport requests sent to sockets in a directory
    hwtest-gpio --base-dir /tmp/gpio listen
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from hwtest_gpio.config import GpioConfig, load_config, resolve_base_dir
from hwtest_gpio.errors import GpioError
from hwtest_gpio.listener import ExportListener, ListenerEvent
from hwtest_gpio.pin import GpioPin
from hwtest_gpio.sysfs import SysfsBackend
from hwtest_gpio.types import Direction


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _open_pin(args: argparse.Namespace) -> GpioPin:
    number = args.config.resolve_pin(args.pin)
    return GpioPin(number, SysfsBackend(args.base_dir)).enable()


def cmd_export(args: argparse.Namespace) -> int:
    """Export a pin and keep it exported."""
    pin = _open_pin(args)
    pin.release()
    print(f"Exported GPIO {pin.number}")
    return 0


def cmd_unexport(args: argparse.Namespace) -> int:
    """Unexport a pin, taking it over from whoever exported it."""
    number = args.config.resolve_pin(args.pin)
    backend = SysfsBackend(args.base_dir)
    if backend.is_exported(number):
        GpioPin(number, backend).enable().disable()
    print(f"Unexported GPIO {number}")
    return 0


def cmd_get(args: argparse.Namespace) -> int:
    """Print the level of a pin."""
    pin = _open_pin(args)
    try:
        print("1" if pin.get_value() else "0")
    finally:
        pin.release()
    return 0


def cmd_set(args: argparse.Namespace) -> int:
    """Drive a pin as output."""
    pin = _open_pin(args)
    try:
        pin.set_direction(Direction.OUT)
        pin.set_value(args.value == "1")
    finally:
        pin.release()
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    """Show the state of a pin."""
    pin = _open_pin(args)
    try:
        print(f"GPIO {pin.number}")
        print(f"  Direction: {pin.get_direction().value}")
        print(f"  Edge: {pin.get_edge().value}")
        print(f"  Value: {'1' if pin.get_value() else '0'}")
    finally:
        pin.release()
    return 0


def cmd_listen(args: argparse.Namespace) -> int:
    """Report export/unexport requests until interrupted."""

    def report(event: ListenerEvent) -> None:
        print(event, flush=True)

    with ExportListener(args.base_dir, on_event=report, poll_timeout=args.poll_timeout) as listener:
        try:
            listener.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hwtest-gpio",
        description="Control GPIO pins through the sysfs interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--base-dir",
        help="Base directory of the GPIO tree (default: $HWTEST_GPIO_BASE or /sys/class/gpio)",
    )
    parser.add_argument("--config", "-c", help="YAML config file with pin aliases")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    export_parser = subparsers.add_parser("export", help="Export a pin")
    export_parser.add_argument("pin", help="GPIO number or alias")

    unexport_parser = subparsers.add_parser("unexport", help="Unexport a pin")
    unexport_parser.add_argument("pin", help="GPIO number or alias")

    get_parser = subparsers.add_parser("get", help="Read a pin level")
    get_parser.add_argument("pin", help="GPIO number or alias")

    set_parser = subparsers.add_parser("set", help="Drive a pin level")
    set_parser.add_argument("pin", help="GPIO number or alias")
    set_parser.add_argument("value", choices=("0", "1"), help="Level to drive")

    info_parser = subparsers.add_parser("info", help="Show direction, edge and value")
    info_parser.add_argument("pin", help="GPIO number or alias")

    listen_parser = subparsers.add_parser("listen", help="Report export/unexport requests")
    listen_parser.add_argument(
        "--poll-timeout", type=float, default=30.0,
        help="Seconds per poll (default: 30)"
    )

    return parser


_COMMANDS = {
    "export": cmd_export,
    "unexport": cmd_unexport,
    "get": cmd_get,
    "set": cmd_set,
    "info": cmd_info,
    "listen": cmd_listen,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.debug)

    try:
        args.config = load_config(args.config) if args.config else GpioConfig()
        args.base_dir = resolve_base_dir(
            args.config, Path(args.base_dir) if args.base_dir else None
        )
        return _COMMANDS[args.command](args)
    except (GpioError, ValueError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
