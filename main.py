#!/usr/bin/env python3
import sys
import logging
import argparse
from typing import List, Optional

import coloredlogs

from BlipConfig import BlipConfig, DEFAULT_BIN, DEFAULT_CHAIN, split_csv
from BlipErrors import BlipError
from ChainManager import ChainManager, Runner, run_command

__version__ = "1.0.1"

LEVELS = {0: "WARNING", 1: "INFO", 2: "DEBUG"}

logger = logging.getLogger("blip")


# ───────────────────────────
# Logger setup
# ───────────────────────────
def setup_logging(verbose: int):
    coloredlogs.install(
        level=LEVELS.get(verbose, "DEBUG"),
        logger=logger,
        fmt="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level_styles={
            'debug': {'color': 'white'},
            'info': {'color': 'green'},
            'warning': {'color': 'yellow'},
            'error': {'color': 'red', 'bold': True},
            'critical': {'color': 'red', 'bold': True, 'background': 'white'},
        },
        field_styles={
            'asctime': {'color': 'cyan'},
            'levelname': {'color': 'white', 'bold': True},
        }
    )


# ───────────────────────────
# Command line
# ───────────────────────────
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blip",
        description="Block and unblock IPs in a dedicated iptables chain.",
        epilog="Multiple addresses can be passed separated by commas.",
    )
    action = parser.add_mutually_exclusive_group()
    action.add_argument("-block", metavar="ADDR[,ADDR...]", help="block these IPs")
    action.add_argument("-unblock", metavar="ADDR[,ADDR...]", help="unblock these IPs")
    action.add_argument("-list", action="store_true", help="show blocked IPs")
    action.add_argument("-wipe", action="store_true", help="unblock everything and remove the chain")

    parser.add_argument("-verbose", type=int, nargs="?", const=1, choices=sorted(LEVELS),
                        help="0 quiet, 1 actions, 2 raw commands and output")
    parser.add_argument("-bin", metavar="PATH", help=f"path to iptables (default {DEFAULT_BIN})")
    parser.add_argument("-chain", metavar="NAME", help=f"chain to add IPs to (default {DEFAULT_CHAIN})")
    parser.add_argument("-hook", metavar="PARENT[,PARENT...]",
                        help="parent chains that should jump to the chain, e.g. INPUT,FORWARD")
    parser.add_argument("-timeout", type=float, metavar="SECONDS",
                        help="give up on an iptables call after this long")
    parser.add_argument("-version", action="version", version=f"%(prog)s v{__version__}")
    return parser


def run(args: argparse.Namespace, manager: ChainManager):
    if args.list:
        print("Blocked IPs:")
        for ip in manager.listAddresses():
            print(ip)
    elif args.unblock:
        manager.unblockAll(split_csv(args.unblock))
    elif args.block:
        blocked = manager.blockAll(split_csv(args.block))
        logger.debug(f"{len(blocked)} rule(s) inserted into {manager.config.chain}")
    elif args.wipe:
        manager.wipe()


def main(argv: Optional[List[str]] = None, runner: Optional[Runner] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    if not argv:
        parser.print_help(sys.stderr)
        return 1

    args = parser.parse_args(argv)
    if not (args.block or args.unblock or args.list or args.wipe):
        parser.print_help(sys.stderr)
        return 1

    try:
        config = BlipConfig.fromEnv(
            bin=args.bin,
            chain=args.chain,
            verbose=args.verbose,
            hook=split_csv(args.hook) if args.hook else None,
            timeout=args.timeout,
        )
    except ValueError as e:
        parser.error(str(e))

    setup_logging(config.verbose)

    try:
        manager = ChainManager(config, runner or run_command)
        run(args, manager)
    except BlipError as e:
        logger.error(f"{e.prefix}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
