from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol, Tuple


class InstrumentCatalog(Protocol):
    """Resolves display names and the known instrument universe."""

    def resolve_display_name(self, key: str) -> str:
        ...

    def list_known_instruments(self) -> List[str]:
        ...


class StaticInstrumentCatalog:
    """In-memory catalog; unknown keys resolve to themselves."""

    def __init__(self, instruments: Optional[Iterable[Tuple[str, str]]] = None):
        self._names: Dict[str, str] = {}
        for key, name in instruments or ():
            self._names[key] = name

    def resolve_display_name(self, key: str) -> str:
        return self._names.get(key, key)

    def list_known_instruments(self) -> List[str]:
        return list(self._names.keys())
