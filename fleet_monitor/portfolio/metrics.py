from dataclasses import dataclass

from fleet_monitor.agents.schemas import PortfolioValue


@dataclass(frozen=True)
class PerformanceMetrics:
    roi: float
    pnl: float
    drawdown_from_peak: float


def calculate_roi(start_value: float, end_value: float) -> float:
    """
    Calculates Return on Investment (ROI) as a percentage.
    A zero starting value yields 0.0 rather than dividing by zero.
    """
    if start_value == 0:
        return 0.0
    return ((end_value - start_value) / start_value) * 100.0


def calculate_pnl(start_value: float, end_value: float) -> float:
    # No funded baseline, no PnL; matches calculate_roi.
    if start_value == 0:
        return 0.0
    return end_value - start_value


def calculate_drawdown_from_peak(peak: float, current: float) -> float:
    """
    Calculates the current drawdown from the running peak.
    Returns a positive percentage (e.g., 5.0 for 5% below peak) or 0.0.
    """
    if peak <= 0:
        return 0.0
    return max(0.0, (peak - current) / peak * 100.0)


def compute_performance(value: PortfolioValue) -> PerformanceMetrics:
    """
    Performance of a wallet from its recorded portfolio values.
    Pure; never raises for a validated PortfolioValue.
    """
    return PerformanceMetrics(
        roi=calculate_roi(value.initial, value.current),
        pnl=calculate_pnl(value.initial, value.current),
        drawdown_from_peak=calculate_drawdown_from_peak(value.peak, value.current),
    )
