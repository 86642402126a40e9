import os
from dataclasses import dataclass
from typing import Optional, Tuple

# ───────────────────────────
# Built-in defaults
# ───────────────────────────
DEFAULT_BIN    = "/sbin/iptables"
DEFAULT_CHAIN  = "BLIP"


def split_csv(value: str) -> Tuple[str, ...]:
    """Split a comma list, dropping blanks and repeats but keeping order."""
    out: list = []
    for item in (value or "").split(","):
        item = item.strip()
        if item and item not in out:
            out.append(item)
    return tuple(out)


@dataclass(frozen=True)
class BlipConfig:
    bin: str = DEFAULT_BIN
    chain: str = DEFAULT_CHAIN
    verbose: int = 0
    hook: Tuple[str, ...] = ()
    timeout: Optional[float] = None

    def __post_init__(self):
        if not self.bin:
            raise ValueError("iptables path must not be empty")
        if not self.chain:
            raise ValueError("chain name must not be empty")
        if self.verbose < 0:
            raise ValueError(f"verbose must be >= 0, got {self.verbose}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    @classmethod
    def fromEnv(cls, **overrides) -> "BlipConfig":
        """Env overrides built-in defaults; non-None overrides win over both."""
        timeout = os.getenv("BLIP_TIMEOUT", "")
        values = {
            "bin":     os.getenv("IPTABLES_BIN", DEFAULT_BIN),
            "chain":   os.getenv("CHAIN", DEFAULT_CHAIN),
            "verbose": int(os.getenv("BLIP_VERBOSE", "0") or 0),
            "hook":    split_csv(os.getenv("BLIP_HOOK", "")),
            "timeout": float(timeout) if timeout else None,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
