import ipaddress
import logging
import subprocess
from typing import Callable, List, Optional, Sequence, Tuple

from BlipConfig import BlipConfig
from BlipErrors import (
    ChainCreationError,
    ChainDeletionError,
    ChainNotFoundError,
    ExecutionError,
    InvalidAddressError,
    PermissionDeniedError,
    RuleOperationError,
)
from ChainListing import ChainSnapshot, is_denied, is_missing_chain, parse_listing

logger = logging.getLogger("blip")

Runner = Callable[[Sequence[str], Optional[float]], str]


def one_line(info: str) -> str:
    """Collapse multi-line tool output for a single diagnostic line."""
    return " ".join(info.split())


def run_command(argv: Sequence[str], timeout: Optional[float] = None) -> str:
    """Run argv and return stdout and stderr merged, the way iptables reports errors."""
    try:
        proc = subprocess.run(
            list(argv),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ExecutionError(f"{' '.join(argv)} timed out after {timeout}s") from e
    except OSError as e:
        raise ExecutionError(f"Cannot execute {' '.join(argv)} ({e})") from e
    return proc.stdout or ""


class ChainManager:
    def __init__(self, config: BlipConfig, runner: Runner = run_command):
        self.config = config
        self.runner = runner
        self.snapshot: Optional[ChainSnapshot] = None
        self.setupChain()

    # ───────────────────────────
    # Plumbing
    # ───────────────────────────
    def execute(self, *args: str) -> str:
        argv = [self.config.bin, *args]
        cmd = " ".join(argv)
        logger.debug(f"CMD: {cmd}")
        info = self.runner(argv, self.config.timeout)
        logger.debug(f"{'-' * 20}OUTPUT{'-' * 50}\n{info or '<empty>'}\n{'-' * 76}")
        return info

    def listChain(self) -> str:
        return self.execute("-L", self.config.chain, "-n")

    def requireSnapshot(self) -> ChainSnapshot:
        if self.snapshot is None:
            raise ChainNotFoundError(f"Cannot find chain {self.config.chain} in iptables")
        return self.snapshot

    @staticmethod
    def checkAddress(ip: str) -> str:
        try:
            return str(ipaddress.IPv4Address(ip.strip()))
        except ValueError as e:
            raise InvalidAddressError(f"{ip!r} is not an IPv4 address") from e

    # ───────────────────────────
    # Chain lifecycle
    # ───────────────────────────
    def setupChain(self):
        """Probe the chain, create it when missing, and cache the listing."""
        info = self.listChain()
        if is_denied(info):
            raise PermissionDeniedError("Need to be root to do this")

        if is_missing_chain(info):
            self.createChain()
            info = self.listChain()

        snapshot = parse_listing(info)
        if not snapshot.header_found:
            logger.debug(f"No rule table header in listing of {self.config.chain}")
            return
        self.snapshot = snapshot

        for parent in self.config.hook:
            self.linkChain(parent)

    def createChain(self):
        chain = self.config.chain
        logger.info(f"Creating chain {chain}")
        info = self.execute("-N", chain)
        if info:
            raise ChainCreationError(f"{self.config.bin} -N {chain} failed ({one_line(info)})")

    def isLinked(self, parent: str) -> bool:
        return not self.execute("-C", parent, "-j", self.config.chain)

    def linkChain(self, parent: str):
        """Jump from parent into our chain, unless a jump is already there."""
        if self.isLinked(parent):
            logger.debug(f"{parent} already jumps to {self.config.chain}")
            return
        logger.info(f"Linking {parent} -> {self.config.chain}")
        info = self.execute("-I", parent, "1", "-j", self.config.chain)
        if info:
            raise RuleOperationError(f"Cannot link {parent} to {self.config.chain} ({one_line(info)})")

    def unlinkChain(self, parent: str):
        if not self.isLinked(parent):
            return
        logger.info(f"Unlinking {parent} -> {self.config.chain}")
        info = self.execute("-D", parent, "-j", self.config.chain)
        if info:
            raise RuleOperationError(f"Cannot unlink {parent} from {self.config.chain} ({one_line(info)})")

    # ───────────────────────────
    # Rules
    # ───────────────────────────
    def listAddresses(self) -> List[str]:
        """Blocked addresses, newest first, as of the cached listing."""
        return list(self.requireSnapshot().addresses)

    def block(self, ip: str) -> bool:
        """Insert a DROP rule for ip at the head of the chain. False if already there."""
        snapshot = self.requireSnapshot()
        ip = self.checkAddress(ip)
        if ip in snapshot.addresses:
            logger.warning(f"{ip} already blocked")
            return False

        logger.info(f"Blocking {ip}")
        info = self.execute("-I", self.config.chain, "-s", ip, "-j", "DROP")
        if info:
            raise RuleOperationError(f"Cannot block {ip} ({one_line(info)})")
        return True

    def unblock(self, ip: str):
        """Delete the DROP rule for ip. There is no presence check."""
        self.requireSnapshot()
        ip = self.checkAddress(ip)

        logger.info(f"Unblocking {ip}")
        info = self.execute("-D", self.config.chain, "-s", ip, "-j", "DROP")
        if info:
            raise RuleOperationError(f"Cannot unblock {ip} ({one_line(info)})")

    def blockAll(self, ips: Sequence[str]) -> Tuple[str, ...]:
        return tuple(ip for ip in ips if self.block(ip))

    def unblockAll(self, ips: Sequence[str]):
        for ip in ips:
            self.unblock(ip)

    def wipe(self):
        """Drain every listed rule, drop parent jumps, then delete the chain."""
        chain = self.config.chain
        addresses = self.listAddresses()
        logger.info(f"Removing chain {chain}")

        self.unblockAll(addresses)
        for parent in self.config.hook:
            self.unlinkChain(parent)

        info = self.execute("-X", chain)
        if info:
            raise ChainDeletionError(f"Cannot wipe {self.config.bin} -X {chain} ({one_line(info)})")
