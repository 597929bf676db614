"""
Reference dataset readers.

- din: DIN-style coefficient/name/reference records
- structure: XYZ-like structure files (atom count, charge/multiplicity, atoms)
"""
from .din import DatasetRecord, ParseState, next_state, parse_din, load_names, load_reference_values
from .structure import Structure, read_structure

__all__ = [
    "DatasetRecord",
    "ParseState",
    "next_state",
    "parse_din",
    "load_names",
    "load_reference_values",
    "Structure",
    "read_structure",
]
