"""The SeaHash 64-bit non-cryptographic hash function."""

from __future__ import annotations

_MASK = (1 << 64) - 1
_MULTIPLIER = 0x6EED0E9DA4D94A4F
_SEEDS = (
    0x16F11FE89B0D677C,
    0xB480A793D8E6C86C,
    0x6FE2E5AAF078EBC9,
    0x14F994A4C5259381,
)


def _diffuse(x: int) -> int:
    x = (x * _MULTIPLIER) & _MASK
    x ^= (x >> 32) >> (x >> 60)
    return (x * _MULTIPLIER) & _MASK


def seahash(data: bytes | bytearray | memoryview) -> int:
    """Return the SeaHash of ``data`` as an unsigned 64-bit integer."""
    buf = bytes(data)
    a, b, c, d = _SEEDS
    for offset in range(0, len(buf), 8):
        word = int.from_bytes(buf[offset:offset + 8], "little")
        a, b, c, d = b, c, d, _diffuse(a ^ word)
    return _diffuse(a ^ b ^ c ^ d ^ len(buf))