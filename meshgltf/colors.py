"""Color-space helpers for physically-based output."""

from __future__ import annotations

# Linear 0-1 colors are compressed into this range so a PBR renderer neither
# clips highlights nor crushes shadows.
PBR_COLOR_LOW = 0.04
PBR_COLOR_HIGH = 0.85


def remap(x: float, src_low: float, src_high: float, dst_low: float, dst_high: float) -> float:
    """Affine map of x from [src_low, src_high] onto [dst_low, dst_high], unclamped."""
    return (x - src_low) * (dst_high - dst_low) / (src_high - src_low) + dst_low


def remap_color(x: float) -> float:
    return remap(x, 0.0, 1.0, PBR_COLOR_LOW, PBR_COLOR_HIGH)


def to_byte(x: float) -> int:
    """Convert a 0-1 channel to 0-255, rounding to nearest and clipping."""
    return max(0, min(255, int(round(x * 255.0))))
