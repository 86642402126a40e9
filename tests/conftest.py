from typing import Dict, List, Optional, Sequence

import pytest

from BlipConfig import BlipConfig

NO_CHAIN  = "iptables: No chain/target/match by that name.\n"
BAD_RULE  = "iptables: Bad rule (does a matching rule exist in that chain?).\n"
DENIED    = ("iptables v1.8.7 (legacy): can't initialize iptables table `filter': "
             "Permission denied (you must be root)\nPerhaps iptables or your kernel needs to be upgraded.\n")


class FakeIptables:
    """In-memory stand-in for the iptables binary, shared across manager instances."""

    def __init__(self, chains: Optional[Dict[str, List[tuple]]] = None, denied: bool = False):
        self.chains = {"INPUT": [], "FORWARD": [], "OUTPUT": []}
        self.chains.update(chains or {})
        self.denied = denied
        self.fail: Dict[str, str] = {}
        self.calls: List[List[str]] = []
        self.timeouts: List[Optional[float]] = []

    def __call__(self, argv: Sequence[str], timeout: Optional[float] = None) -> str:
        args = list(argv[1:])
        self.calls.append(args)
        self.timeouts.append(timeout)
        if self.denied:
            return DENIED
        if args[0] in self.fail:
            return self.fail[args[0]]
        return getattr(self, "op_" + args[0].lstrip("-"))(*args[1:])

    def ops(self, flag: str) -> List[List[str]]:
        return [c for c in self.calls if c[0] == flag]

    def render(self, chain: str) -> str:
        refs = sum(1 for rules in self.chains.values() for target, _ in rules if target == chain)
        lines = [f"Chain {chain} ({refs} references)",
                 "target     prot opt source               destination         "]
        for target, source in self.chains[chain]:
            lines.append(f"{target:<10} all  --  {source:<20} 0.0.0.0/0           ")
        return "\n".join(lines) + "\n"

    def op_L(self, chain, *_):
        if chain not in self.chains:
            return NO_CHAIN
        return self.render(chain)

    def op_N(self, chain):
        if chain in self.chains:
            return "iptables: Chain already exists.\n"
        self.chains[chain] = []
        return ""

    def op_X(self, chain):
        if chain not in self.chains:
            return NO_CHAIN
        if self.chains[chain]:
            return "iptables: Directory not empty.\n"
        if any(target == chain for rules in self.chains.values() for target, _ in rules):
            return "iptables v1.8.7 (legacy): Too many links.\n"
        del self.chains[chain]
        return ""

    def parseRule(self, args):
        if args[0] == "-s":
            return ("DROP", args[1])
        return (args[1], "0.0.0.0/0")

    def op_I(self, chain, *args):
        if chain not in self.chains:
            return NO_CHAIN
        if args[0] == "1":
            args = args[1:]
        self.chains[chain].insert(0, self.parseRule(args))
        return ""

    def op_D(self, chain, *args):
        if chain not in self.chains:
            return NO_CHAIN
        rule = self.parseRule(args)
        if rule not in self.chains[chain]:
            return BAD_RULE
        self.chains[chain].remove(rule)
        return ""

    def op_C(self, chain, *args):
        if chain not in self.chains:
            return NO_CHAIN
        return "" if self.parseRule(args) in self.chains[chain] else BAD_RULE


@pytest.fixture
def fake():
    return FakeIptables()


@pytest.fixture
def config():
    return BlipConfig()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("IPTABLES_BIN", "CHAIN", "BLIP_VERBOSE", "BLIP_HOOK", "BLIP_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
