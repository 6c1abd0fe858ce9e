"""gridcalc -- spreadsheet recalculation engine.

Public API::

    from gridcalc import recalc_all, Sheet
"""

__version__ = "0.3.0"

from gridcalc.engine import CIRCULAR, ERROR, RecalcResult, recalc, recalc_all
from gridcalc.sheet import Sheet

__all__ = [
    "CIRCULAR",
    "ERROR",
    "RecalcResult",
    "Sheet",
    "__version__",
    "recalc",
    "recalc_all",
]
