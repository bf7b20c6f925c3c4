"""
overdose_maps
=============
Drug-overdose share of all deaths by US state from the CDC VSRR provisional
counts: loading, cause normalisation, proportions, polygon join and figures.
The report entry point is ``overdose_maps.report:main``.
"""

__version__ = "0.1.0"
