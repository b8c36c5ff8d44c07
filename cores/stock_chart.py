"""
Stock line chart rendering

Draws the close price of a date-keyed history as a line chart and returns
the PNG bytes. Figures are built with the matplotlib object API (no pyplot
state), so several charts can be rendered from worker threads at once.
"""

import logging
import time
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, List, Optional, Tuple

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from cores.data_client import PriceData
from cores.periods import friendly_name

logger = logging.getLogger(__name__)

# =============================================================================
# Style
# =============================================================================

LINE_COLOR = "#0066cc"
GRID_COLOR = "#e0e0e0"
BACKGROUND_COLOR = "#FFFFFF"

FIGURE_SIZE = (10, 5)
DPI = 80
MAX_X_TICKS = 8


@dataclass
class ChartImage:
    """Rendered chart ready to be attached to a message."""
    name: str
    data: bytes


def chart_points(hist: Dict[str, PriceData], period: str) -> Tuple[List[str], List[float]]:
    """
    Build the plotted series of a history.

    Keys are sorted (ISO dates sort chronologically). Bars with a zero close
    are treated as "no trade" and left out. For the 1 day view the label is
    the time part of the key.

    Returns:
        Tuple of (x labels, close prices)
    """
    labels = []
    closes = []
    for key in sorted(hist):
        price = hist[key]
        if price.close == 0:
            continue

        label = key
        if period == "1d" and " " in key:
            label = key.split(" ")[1]
        labels.append(label)
        closes.append(price.close)
    return labels, closes


def _tick_positions(count: int, max_ticks: int = MAX_X_TICKS) -> List[int]:
    if count <= max_ticks:
        return list(range(count))
    step = (count - 1) / (max_ticks - 1)
    return sorted({round(i * step) for i in range(max_ticks)})


def render_line_chart(
    hist: Dict[str, PriceData],
    symbol: str,
    currency: str,
    period: str
) -> Optional[ChartImage]:
    """
    Render the close price line chart of a symbol.

    Args:
        hist: Date-keyed history
        symbol: Stock ticker symbol (used in the title)
        currency: Quote currency (used in the y axis label)
        period: Period of the history (used in the title and x labels)

    Returns:
        ChartImage with PNG data, or None if rendering failed
    """
    try:
        labels, closes = chart_points(hist, period)

        fig = Figure(figsize=FIGURE_SIZE, dpi=DPI, facecolor=BACKGROUND_COLOR)
        FigureCanvasAgg(fig)
        ax = fig.add_subplot(1, 1, 1)

        positions = list(range(len(closes)))
        ax.plot(positions, closes, color=LINE_COLOR, linewidth=1.5)

        ax.set_title(f"{symbol} over {friendly_name(period)}")
        ax.set_ylabel(f"Price ({currency})")
        ax.set_xlabel("Date")
        ax.grid(True, linestyle=':', color=GRID_COLOR)

        ticks = _tick_positions(len(labels))
        ax.set_xticks(ticks)
        ax.set_xticklabels([labels[i] for i in ticks], rotation=30, ha='right', fontsize=8)

        if closes:
            bbox_props = dict(boxstyle="round,pad=0.3", fc="#f8f9fa", ec="none", alpha=0.9)
            ax.annotate(
                f"{closes[-1]:,.2f}",
                xy=(positions[-1], closes[-1]),
                xytext=(8, 0),
                textcoords='offset points',
                ha='left',
                va='center',
                bbox=bbox_props,
                fontsize=9
            )

        fig.tight_layout()

        buffer = BytesIO()
        fig.savefig(buffer, format='png', facecolor=BACKGROUND_COLOR)
        buffer.seek(0)

        return ChartImage(name=f"chart-{symbol}-{time.time_ns()}.png", data=buffer.getvalue())

    except Exception as e:
        logger.error(f"Error rendering chart for {symbol}: {e}")
        return None
