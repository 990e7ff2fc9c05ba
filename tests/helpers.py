"""Test doubles shared across test modules."""

from unittest.mock import MagicMock


def make_result(value=None, items=None, scalar=None, rows=None) -> MagicMock:
    """
    A stand-in for the object ``db.execute()`` returns.

    ``value`` feeds scalar_one_or_none(), ``items`` feeds scalars().all(),
    ``scalar`` feeds scalar_one() and ``rows`` feeds all() / one().
    """
    result = MagicMock()
    result.scalar_one_or_none = MagicMock(return_value=value)
    result.scalar_one = MagicMock(return_value=scalar if scalar is not None else value)
    scalars = MagicMock()
    scalars.all = MagicMock(return_value=list(items or []))
    result.scalars = MagicMock(return_value=scalars)
    result.all = MagicMock(return_value=list(rows or []))
    result.one = MagicMock(return_value=rows[0] if rows else None)
    return result
