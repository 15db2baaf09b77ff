"""Portfolio performance metrics."""
