from __future__ import annotations

from .contracts import PageSelectionError


def canonical_page_selection(selection: str | None) -> str:
    """
    Deterministic canonicalization for audit metadata (does NOT validate semantics).
    """
    if selection is None:
        return "all"
    s = "".join(selection.split())
    return s if s != "" else "all"


def _parse_int(text: str) -> int | None:
    try:
        return int(text.strip())
    except ValueError:
        return None


def parse_page_selection(selection: str | None, *, page_count: int, strict: bool = False) -> list[int]:
    """
    Parse "1,3-5" into a sorted list of unique 1-indexed page numbers.

    Lenient mode (default) drops parts that do not parse, reversed ranges and
    pages outside 1..page_count. Strict mode raises PageSelectionError instead.
    An empty or None selection yields no pages.
    """

    if selection is None or selection.strip() == "":
        return []

    pages: set[int] = set()
    for part in selection.split(","):
        part = part.strip()
        if not part:
            continue

        if "-" in part:
            a_str, b_str = part.split("-", 1)
            a, b = _parse_int(a_str), _parse_int(b_str)
            if a is None or b is None or b < a:
                if strict:
                    raise PageSelectionError(f"invalid range: {part!r}")
                continue
            candidates = range(a, b + 1)
        else:
            p = _parse_int(part)
            if p is None:
                if strict:
                    raise PageSelectionError(f"invalid page number: {part!r}")
                continue
            candidates = range(p, p + 1)

        for p in candidates:
            if 1 <= p <= page_count:
                pages.add(p)
            elif strict:
                raise PageSelectionError(f"page selection out of bounds (1..{page_count}): {p}")

    return sorted(pages)


def parse_insert_positions(positions: str | None, *, page_count: int) -> list[int]:
    """
    Parse "0,2" into sorted unique insertion indices within 0..page_count.

    Position 0 inserts before the first page, page_count appends at the end.
    """

    if positions is None:
        return []

    out: set[int] = set()
    for part in positions.split(","):
        p = _parse_int(part) if part.strip() else None
        if p is not None and 0 <= p <= page_count:
            out.add(p)
    return sorted(out)
