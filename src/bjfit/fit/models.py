from __future__ import annotations

from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

PLACEHOLDER = "-"

COLUMNS = ["status", "combo", "a1_fit", "a2_fit", "MAD", "MAPD", "n", "result_dir"]


def _blank(v):
    if v is None:
        return None
    s = str(v).strip()
    return None if s in ("", PLACEHOLDER) else s


class FitResult(BaseModel):
    # One row of the fit report
    status: str
    combo: str
    a1_fit: Optional[float] = None
    a2_fit: Optional[float] = None
    mad: Optional[float] = Field(default=None, alias="MAD")
    mapd: Optional[float] = Field(default=None, alias="MAPD")
    n: Optional[int] = None
    result_dir: str

    model_config = {"populate_by_name": True}

    @classmethod
    def placeholder(cls, status: str, combo: str, result_dir: str) -> "FitResult":
        return cls(status=status, combo=combo, result_dir=result_dir)

    @classmethod
    def from_fields(cls, fields: Sequence[str], *, fallback_dir: str) -> "FitResult":
        """
        Build from a routine result line split on tabs:
        status, combo, a1, a2, MAD, MAPD, n, result_dir.

        SKIP lines may be shorter; their last field is the result directory.
        Raises pydantic.ValidationError when numeric fields do not parse.
        """
        f = list(fields)
        status = f[0]
        combo = f[1] if len(f) > 1 else ""

        if len(f) >= 8:
            return cls(
                status=status,
                combo=combo,
                a1_fit=_blank(f[2]),
                a2_fit=_blank(f[3]),
                MAD=_blank(f[4]),
                MAPD=_blank(f[5]),
                n=_blank(f[6]),
                result_dir=f[7] or fallback_dir,
            )

        result_dir = f[-1] if len(f) > 2 else fallback_dir
        return cls.placeholder(status, combo, result_dir)

    def to_fields(self) -> List[str]:
        def fmt(v) -> str:
            if v is None:
                return PLACEHOLDER
            if isinstance(v, float):
                return f"{v:.6f}"
            return str(v)

        return [
            self.status,
            self.combo,
            fmt(self.a1_fit),
            fmt(self.a2_fit),
            fmt(self.mad),
            fmt(self.mapd),
            fmt(self.n),
            self.result_dir,
        ]

    def line(self) -> str:
        return "\t".join(self.to_fields())
