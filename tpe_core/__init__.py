"""
Tag Position Estimator (TPE) Core Package.

3-anchor range-only 2D positioning for indoor tag tracking.

Package structure:
- proto: Data schemas (anchors, range samples, fixes, smoothed positions)
- localization: Multilateration, track filter, range gating, tag pipeline
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"
__author__ = "Indoor Positioning Team"
