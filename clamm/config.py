"""Engine configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from clamm.constants import (
    MAX_TICK_SPACING,
    MIN_PROTOCOL_FEE_DENOMINATOR,
    MIN_TICK_SPACING,
    ZERO_ADDRESS,
)
from clamm.models.types import normalize_address


@dataclass(frozen=True)
class EngineConfig:
    """Settings for a PoolManager.

    Attributes:
        owner: Address allowed to administer protocol fees
        min_tick_spacing: Smallest accepted pool tick spacing
        max_tick_spacing: Largest accepted pool tick spacing
        min_protocol_fee_denominator: Lowest nonzero protocol fee denominator
            (4 caps the protocol share at 25% of the swap fee)
    """

    owner: str = ZERO_ADDRESS
    min_tick_spacing: int = MIN_TICK_SPACING
    max_tick_spacing: int = MAX_TICK_SPACING
    min_protocol_fee_denominator: int = MIN_PROTOCOL_FEE_DENOMINATOR

    def __post_init__(self) -> None:
        # Frozen: normalize through object.__setattr__
        object.__setattr__(self, "owner", normalize_address(self.owner))
        if self.min_tick_spacing < 1 or self.max_tick_spacing < self.min_tick_spacing:
            raise ValueError(
                f"Invalid tick spacing bounds [{self.min_tick_spacing}, {self.max_tick_spacing}]"
            )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> EngineConfig:
        """Build a config from CLAMM_* environment variables.

        - CLAMM_OWNER: Fee administrator address (default: zero address)
        - CLAMM_MIN_TICK_SPACING / CLAMM_MAX_TICK_SPACING: Tick spacing bounds
        - CLAMM_MIN_PROTOCOL_FEE_DENOMINATOR: Protocol fee floor (default: 4)
        """
        env = os.environ if environ is None else environ
        return cls(
            owner=env.get("CLAMM_OWNER", ZERO_ADDRESS),
            min_tick_spacing=int(env.get("CLAMM_MIN_TICK_SPACING", str(MIN_TICK_SPACING))),
            max_tick_spacing=int(env.get("CLAMM_MAX_TICK_SPACING", str(MAX_TICK_SPACING))),
            min_protocol_fee_denominator=int(
                env.get(
                    "CLAMM_MIN_PROTOCOL_FEE_DENOMINATOR", str(MIN_PROTOCOL_FEE_DENOMINATOR)
                )
            ),
        )


# Default configuration instance
DEFAULT_ENGINE_CONFIG = EngineConfig()

__all__ = ["EngineConfig", "DEFAULT_ENGINE_CONFIG"]
