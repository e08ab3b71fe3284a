"""
Edwards25519 point checks.

Program-derived addresses must NOT be valid Ed25519 public keys, so the
address deriver needs to tell whether 32 bytes decompress to a curve point.
The rules here match the ledger's own decompression (curve25519-dalek):

- The top bit of byte 31 is the sign of x and is ignored for validity.
- The remaining 255 bits are y, taken modulo p (non-canonical y accepted).
- The point is valid iff (y^2 - 1) / (d*y^2 + 1) is a square mod p.

Curve:  -x^2 + y^2 = 1 + d*x^2*y^2  over GF(2^255 - 19)
"""

# Field prime
P = 2**255 - 19

# Edwards d = -121665/121666 mod p
D = (-121665 * pow(121666, P - 2, P)) % P

POINT_SIZE = 32


def _is_square(a: int) -> bool:
    """Euler's criterion (0 counts as a square)."""
    a %= P
    if a == 0:
        return True
    return pow(a, (P - 1) // 2, P) == 1


def is_on_curve(point: bytes) -> bool:
    """
    Check whether 32 bytes are a valid compressed Edwards25519 point.

    Args:
        point: 32-byte compressed point (little-endian y, sign bit on top)

    Returns:
        True if the bytes decompress to a curve point
    """
    if len(point) != POINT_SIZE:
        raise ValueError(f"Compressed point must be {POINT_SIZE} bytes, got {len(point)}")

    y = int.from_bytes(point, "little") & ((1 << 255) - 1)
    y %= P
    y2 = (y * y) % P

    u = (y2 - 1) % P
    v = (D * y2 + 1) % P

    # v is never zero: -1/d is a non-square, so d*y^2 + 1 = 0 has no solution
    x2 = (u * pow(v, P - 2, P)) % P
    return _is_square(x2)


__all__ = ["is_on_curve", "P", "D"]
