"""
bj-fit-tools: Psi4 input generation, idempotent batch execution and
Becke-Johnson damping-parameter (a1, a2) fits.
"""

__version__ = "0.1.0"
