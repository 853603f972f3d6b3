"""Command-line utility for inspecting and exercising a DyIO device."""

from __future__ import annotations

import argparse
import itertools
import logging
import sys
import time
from typing import Optional

from . import __version__
from .device import DyIO
from .errors import DyIOError
from .formatting import (
    format_address_line,
    format_channel_features,
    format_channels,
    format_info,
    format_namespaces,
)
from .models.channel import ChannelMode
from .protocol.transaction import READ_TIMEOUT_S
from .transport.serial_connection import DEFAULT_BAUDRATE

logger = logging.getLogger(__name__)

BUTTON_CHANNEL = 23
LED_CHANNELS = (0, 1)
POLL_INTERVAL_S = 0.01


def run_test1(
    dyio: DyIO,
    iterations: Optional[int] = None,
    interval: float = POLL_INTERVAL_S,
) -> None:
    """Digital I/O test: a button on channel 23 drives LEDs on channels 0 and 1.

    While the button is idle LED 0 is off and LED 1 is on; pressing it
    swaps them. Runs until interrupted unless ``iterations`` is given.
    """
    print("Test 1: button at channel 23, two LEDs at channels 00 and 01.")
    dyio.set_mode(BUTTON_CHANNEL, ChannelMode.DI)
    for ch in LED_CHANNELS:
        dyio.set_mode(ch, ChannelMode.DO)

    led0 = led1 = 0
    steps = itertools.count() if iterations is None else range(iterations)
    for _ in steps:
        # The input reads low while the button is pressed.
        pressed = not dyio.get_value(BUTTON_CHANNEL)
        if pressed:
            if not led0:
                print("#", end="")
                led0 = 1
                dyio.set_value(LED_CHANNELS[0], led0)
            if led1:
                led1 = 0
                dyio.set_value(LED_CHANNELS[1], led1)
        else:
            if led0:
                print(".", end="")
                led0 = 0
                dyio.set_value(LED_CHANNELS[0], led0)
            if not led1:
                led1 = 1
                dyio.set_value(LED_CHANNELS[1], led1)
        sys.stdout.flush()
        time.sleep(interval)


TESTS = {1: run_test1}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dyio",
        description=f"DyIO utility, version {__version__}.",
    )
    p.add_argument("-v", "--verbose", action="count", default=0, help="verbose mode")
    p.add_argument("-d", "--debug", action="store_true", help="print debug trace of the protocol")
    p.add_argument("-i", "--info", action="store_true", help="display generic information about the device")
    p.add_argument("-n", "--namespaces", action="store_true", help="show namespaces and RPC calls")
    p.add_argument("-c", "--channels", action="store_true", help="show channel status")
    p.add_argument("-t", "--test", type=int, choices=sorted(TESTS), metavar="NUM", help="run test with given number")
    p.add_argument("--baudrate", type=int, default=DEFAULT_BAUDRATE)
    p.add_argument("--timeout", type=float, default=READ_TIMEOUT_S, help="reply timeout in seconds")
    p.add_argument("port", help="serial port name or pyserial URL")
    return p


def run(args: argparse.Namespace) -> int:
    if not (args.info or args.namespaces or args.channels or args.test):
        # By default, print generic information.
        args.info = True
        args.verbose += 1

    if args.verbose:
        print(f"Port name: {args.port}")

    dyio = DyIO.open(args.port, baudrate=args.baudrate, timeout=args.timeout)
    try:
        if args.verbose:
            print(format_address_line(dyio.reply_address))
        if args.info:
            print(format_info(dyio.info()))
        if args.namespaces:
            print(format_namespaces(dyio.namespaces()))
        if args.channels:
            if args.verbose:
                print(format_channel_features(dyio.channel_features()))
            print(format_channels(dyio.channels()))
        if args.test:
            TESTS[args.test](dyio)
    finally:
        dyio.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.debug:
        logging.getLogger("dyio_mcp").setLevel(logging.DEBUG)

    try:
        return run(args)
    except DyIOError as e:
        print(f"dyio: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print()
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
