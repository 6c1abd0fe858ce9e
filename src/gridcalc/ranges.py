"""Range token expansion (``A1`` or ``A1:C3``) into coordinates."""

from __future__ import annotations

from gridcalc.refs import address_to_coord, make_addr


def resolve(token: str) -> list[tuple[int, int]]:
    """Expand a single address or a rectangular range into coordinates.

    Corners are normalised independently per axis, so ``C3:A1`` covers
    the same rectangle as ``A1:C3``.  Coordinates come back in row-major
    order.  Empty tokens and tokens with more than one ``:`` yield ``[]``.

    Args:
        token: e.g. ``"B2"`` or ``"A1:C3"``.

    Returns:
        List of ``(row, col)`` tuples.
    """
    if not token or not token.strip():
        return []
    parts = token.strip().split(":")
    if len(parts) == 1:
        return [address_to_coord(parts[0].strip())]
    if len(parts) != 2:
        return []

    r0, c0 = address_to_coord(parts[0].strip())
    r1, c1 = address_to_coord(parts[1].strip())
    # Normalise so r0 <= r1, c0 <= c1
    if r0 > r1:
        r0, r1 = r1, r0
    if c0 > c1:
        c0, c1 = c1, c0
    return [(r, c) for r in range(r0, r1 + 1) for c in range(c0, c1 + 1)]


def expand_rect(start: str, end: str) -> list[str]:
    """Expand a rectangular range into a flat list of addresses (row-major)."""
    return [make_addr(r, c) for r, c in resolve(f"{start}:{end}")]


def resolve_within(token: str, rows: int, cols: int) -> list[tuple[int, int]]:
    """Like :func:`resolve` but clipped to a ``rows`` x ``cols`` grid.

    The rectangle is clipped before enumeration, so ``A1:ZZ9999`` over a
    small grid costs only the in-bounds cells.
    """
    if not token or not token.strip():
        return []
    parts = token.strip().split(":")
    if len(parts) == 1:
        return [rc for rc in resolve(token) if 0 <= rc[0] < rows and 0 <= rc[1] < cols]
    if len(parts) != 2:
        return []
    r0, c0 = address_to_coord(parts[0].strip())
    r1, c1 = address_to_coord(parts[1].strip())
    top, bottom = max(min(r0, r1), 0), min(max(r0, r1), rows - 1)
    left, right = max(min(c0, c1), 0), min(max(c0, c1), cols - 1)
    return [(r, c) for r in range(top, bottom + 1) for c in range(left, right + 1)]
