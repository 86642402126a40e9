import re
from dataclasses import dataclass
from typing import Tuple

# `iptables -L <chain> -n` looks like:
#   Chain BLIP (0 references)
#   target     prot opt source               destination
#   DROP       all  --  203.0.113.5          0.0.0.0/0
HEADER_RE   = re.compile(r"^target\b", re.MULTILINE)
DROP_RE     = re.compile(r"^DROP\b.*?--\s+(\d{1,3}(?:\.\d{1,3}){3})\b(?!/)", re.MULTILINE)
DENIED_RE   = re.compile(r"denied", re.IGNORECASE)
NO_CHAIN_RE = re.compile(r"no chain|does not exist", re.IGNORECASE)


@dataclass(frozen=True)
class ChainSnapshot:
    """Parsed output of one chain listing."""
    raw: str
    header_found: bool
    addresses: Tuple[str, ...]


def parse_listing(text: str) -> ChainSnapshot:
    text = text or ""
    return ChainSnapshot(
        raw=text,
        header_found=bool(HEADER_RE.search(text)),
        addresses=tuple(DROP_RE.findall(text)),
    )


def is_denied(text: str) -> bool:
    return bool(DENIED_RE.search(text or ""))


def is_missing_chain(text: str) -> bool:
    return bool(NO_CHAIN_RE.search(text or ""))
