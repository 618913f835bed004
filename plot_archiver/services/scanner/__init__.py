from .plot_scanner import PlotScannerService

__all__ = ["PlotScannerService"]
