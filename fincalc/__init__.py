"""
fincalc - deterministic decimal financial calculators.
"""

__version__ = "0.1.0"
