"""Packed bitmap of initialized ticks.

Each 256-bit word covers 256 consecutive *compressed* ticks (tick divided
by tick spacing). A set bit means the tick has nonzero gross liquidity.
Searches never look past the current word, so the cost of finding the next
liquidity boundary is bounded by the word size rather than the tick range.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from clamm.constants import MAX_TICK, MAX_UINT256, MIN_TICK
from clamm.errors import TickMisaligned


def position(compressed_tick: int) -> tuple[int, int]:
    """Split a compressed tick into (word position, bit position)."""
    return compressed_tick >> 8, compressed_tick % 256


def most_significant_bit(x: int) -> int:
    """Index of the highest set bit of a nonzero word."""
    return x.bit_length() - 1


def least_significant_bit(x: int) -> int:
    """Index of the lowest set bit of a nonzero word."""
    return (x & -x).bit_length() - 1


@dataclass
class TickBitmap:
    """Sparse map from word position to a 256-bit word."""

    words: dict[int, int] = field(default_factory=dict)

    def get_word(self, word_pos: int) -> int:
        return self.words.get(word_pos, 0)

    def is_initialized(self, tick: int, tick_spacing: int) -> bool:
        """Whether the bit for an aligned tick is set."""
        word_pos, bit_pos = position(tick // tick_spacing)
        return bool(self.get_word(word_pos) & (1 << bit_pos))

    def flip_tick(self, tick: int, tick_spacing: int) -> None:
        """Toggle the initialized bit for a tick.

        Raises:
            TickMisaligned: If tick is not a multiple of tick_spacing
        """
        if tick % tick_spacing != 0:
            raise TickMisaligned(f"Tick {tick} not aligned to spacing {tick_spacing}")
        word_pos, bit_pos = position(tick // tick_spacing)
        word = self.get_word(word_pos) ^ (1 << bit_pos)
        if word:
            self.words[word_pos] = word
        else:
            self.words.pop(word_pos, None)

    def next_initialized_tick_within_one_word(
        self,
        tick: int,
        tick_spacing: int,
        lte: bool,
    ) -> tuple[int, bool]:
        """Find the next initialized tick in the same word as ``tick``.

        Args:
            tick: Starting tick
            tick_spacing: Pool tick spacing
            lte: Search left (at or below ``tick``) if True, else strictly right

        Returns:
            (next_tick, initialized). When no initialized tick exists in the
            word, next_tick is the word boundary and initialized is False.
        """
        compressed = tick // tick_spacing

        if lte:
            word_pos, bit_pos = position(compressed)
            # All bits at or to the right of the current bit
            mask = (1 << bit_pos) - 1 + (1 << bit_pos)
            masked = self.get_word(word_pos) & mask
            if masked:
                return (compressed - (bit_pos - most_significant_bit(masked))) * tick_spacing, True
            return (compressed - bit_pos) * tick_spacing, False

        # Start from the next compressed tick; the current one is not a candidate
        word_pos, bit_pos = position(compressed + 1)
        # All bits at or to the left of the bit
        mask = MAX_UINT256 ^ ((1 << bit_pos) - 1)
        masked = self.get_word(word_pos) & mask
        if masked:
            return (
                compressed + 1 + (least_significant_bit(masked) - bit_pos)
            ) * tick_spacing, True
        return (compressed + 1 + (255 - bit_pos)) * tick_spacing, False

    def next_initialized_tick(
        self,
        tick: int,
        tick_spacing: int,
        lte: bool,
        bound: int | None = None,
    ) -> tuple[int, bool]:
        """Find the next initialized tick across words, stopping at ``bound``.

        Walks word by word using next_initialized_tick_within_one_word.
        ``bound`` defaults to MIN_TICK / MAX_TICK for the search direction.

        Returns:
            (tick, initialized); tick is clamped to ``bound`` when none is found.
        """
        if bound is None:
            bound = MIN_TICK if lte else MAX_TICK

        current = tick
        while True:
            next_tick, initialized = self.next_initialized_tick_within_one_word(
                current, tick_spacing, lte
            )
            if lte:
                if next_tick < bound:
                    return bound, False
                if initialized:
                    return next_tick, True
                current = next_tick - 1
            else:
                if next_tick > bound:
                    return bound, False
                if initialized:
                    return next_tick, True
                current = next_tick


__all__ = [
    "TickBitmap",
    "position",
    "most_significant_bit",
    "least_significant_bit",
]
