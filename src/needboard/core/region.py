"""Region keys that partition the board into rooms."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Region:
    """Normalized (state, lga) pair.

    Construct through :meth:`of` so both parts are trimmed; two regions are equal
    exactly when their trimmed pairs are equal.
    """

    state: str
    lga: str

    @classmethod
    def of(cls, state: str | None, lga: str | None) -> Region:
        return cls((state or "").strip(), (lga or "").strip())

    @property
    def key(self) -> str:
        """Room name used in logs and for clients."""
        return f"{self.state}_{self.lga}"

    @property
    def is_blank(self) -> bool:
        return not self.state and not self.lga

    def as_dict(self) -> dict[str, str]:
        return {"state": self.state, "lga": self.lga}
