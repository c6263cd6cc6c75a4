"""
Tissue expression (eFP) pipeline.

This package resolves eFP diagram sample catalogs, queries the BAR expression
webservice for a locus, aggregates per-region statistics and colors each
region of a diagram on a yellow-to-red gradient.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
