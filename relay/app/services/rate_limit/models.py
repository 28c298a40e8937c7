"""Data models for per-identity token-bucket rate limiting."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class RateLimitState:
    """Durable bucket state for one identity.

    Attributes:
        identity: Client IP, egress URL or any other bucket key
        tokens: Tokens left, always within [0, capacity]
        last_refill: Refill anchor as epoch milliseconds
    """
    identity: str
    tokens: float
    last_refill: int

    def to_dict(self) -> dict:
        """Convert to the JSON document stored in the durable store."""
        return {"tokens": self.tokens, "last_refill": self.last_refill}

    @classmethod
    def from_dict(cls, identity: str, data: dict) -> "RateLimitState":
        """Create from a stored JSON document."""
        return cls(
            identity=identity,
            tokens=float(data["tokens"]),
            last_refill=int(data["last_refill"]),
        )


@dataclass
class LocalCacheEntry:
    """Process-local approximation of a RateLimitState."""
    tokens: float
    last_refill: int
    last_update: int


@dataclass
class RateLimitResult:
    """Result of a combined client + egress admission check."""
    allowed: bool
    reason: Optional[str] = None
