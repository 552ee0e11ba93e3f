from __future__ import annotations

import logging

from .model import Property, RawProperty, Xml
from .scribe import Scribe
from .scribes import RawScribe, XmlScribe, default_scribes, is_foreign

logger = logging.getLogger(__name__)


class ScribeIndex:
    """Looks scribes up by property name, xCard element name or property class.

    Every reader and writer owns its own index, so registering a scribe on one
    never affects another. Registering replaces whatever default shares the
    new scribe's name, qname or kind.
    """

    def __init__(self, scribes: list[Scribe] | None = None):
        self._by_name: dict[str, Scribe] = {}
        self._by_qname: dict[tuple[str, str], Scribe] = {}
        self._by_kind: dict[type, Scribe] = {}
        for s in default_scribes() if scribes is None else scribes:
            self._add(s)

    def _add(self, scribe: Scribe) -> None:
        self._by_name[scribe.name.upper()] = scribe
        self._by_qname[scribe.qname] = scribe
        self._by_kind[scribe.kind] = scribe

    # ── lookups ────────────────────────────────────────────────────────────

    def get(self, name: str) -> Scribe | None:
        """The registered scribe for ``name``, or ``None``."""
        return self._by_name.get(name.upper())

    def lookup_name(self, name: str) -> Scribe:
        """Like :meth:`get`, but unknown names get a raw scribe."""
        scribe = self.get(name)
        return scribe if scribe is not None else RawScribe(name)

    @staticmethod
    def needs_warning(name: str) -> bool:
        """Unknown names only deserve a warning if they are not extensions."""
        return not name.upper().startswith("X-")

    def lookup_qname(self, qname: tuple[str, str]) -> Scribe:
        scribe = self._by_qname.get(qname)
        if scribe is not None:
            return scribe
        namespace, name = qname
        if is_foreign(f"{{{namespace}}}{name}"):
            return self._by_kind.get(Xml) or XmlScribe()
        return RawScribe(name.upper())

    def lookup_kind(self, kind: type[Property]) -> Scribe | None:
        return self._by_kind.get(kind)

    def scribe_for(self, prop: Property) -> Scribe | None:
        if isinstance(prop, RawProperty):
            return RawScribe(prop.name)
        return self.lookup_kind(type(prop))

    # ── mutation ───────────────────────────────────────────────────────────

    def register(self, scribe: Scribe) -> None:
        self.unregister_matching(scribe)
        self._add(scribe)
        logger.debug("Registered %r", scribe)

    def unregister_matching(self, scribe: Scribe) -> None:
        for table, key in (
            (self._by_name, scribe.name.upper()),
            (self._by_qname, scribe.qname),
            (self._by_kind, scribe.kind),
        ):
            old = table.get(key)
            if old is not None:
                self._drop(old)

    def _drop(self, scribe: Scribe) -> None:
        for table, key in (
            (self._by_name, scribe.name.upper()),
            (self._by_qname, scribe.qname),
            (self._by_kind, scribe.kind),
        ):
            if table.get(key) is scribe:
                del table[key]

    def unregister(self, scribe: Scribe) -> None:
        self._drop(scribe)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.upper() in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)
