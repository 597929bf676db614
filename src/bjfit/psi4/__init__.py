"""
Psi4-facing stages.

- generate: render <name>.dat inputs per (method, basis) combination
- batch: idempotent execution of psi4 over .dat files
"""
