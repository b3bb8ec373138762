"""URL-backed store for the connect flow parameters."""

from __future__ import annotations

import logging
from dataclasses import asdict, replace
from typing import Callable, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode

from bankconnect.core.connect.models import ConnectParams

logger = logging.getLogger(__name__)

# Field name -> query string key
QUERY_KEYS: Dict[str, str] = {
    "step": "step",
    "provider": "provider",
    "institution_id": "institution_id",
    "token": "token",
    "enrollment_id": "enrollment_id",
    "country_code": "countryCode",
    "query": "q",
}

_FIELDS_BY_KEY = {key: name for name, key in QUERY_KEYS.items()}

Listener = Callable[[ConnectParams], None]


def _plain(value):
    """Store enum members by their value so the state encodes cleanly."""
    return getattr(value, "value", value)


class ConnectParamsStore:
    """Holds the shared connect params and reflects every write.

    Writes merge into the current state: a field passed as ``None`` is
    cleared, a field not passed is left alone. The store performs no
    validation. Callers (the flow controller) own the invariants.
    """

    def __init__(self, params: Optional[ConnectParams] = None):
        self._params = params or ConnectParams()
        self._listeners: List[Listener] = []

    def read(self) -> ConnectParams:
        """Return a copy of the current params."""
        return replace(self._params)

    def write(self, **partial) -> ConnectParams:
        """Merge ``partial`` into the current params.

        Args:
            **partial: Any ConnectParams fields. ``None`` clears a field.

        Returns:
            The params after the write
        """
        unknown = set(partial) - set(QUERY_KEYS)
        if unknown:
            raise TypeError(f"Unknown connect params: {', '.join(sorted(unknown))}")

        changes = {
            name: _plain(value)
            for name, value in partial.items()
            if getattr(self._params, name) != _plain(value)
        }
        if not changes:
            return self.read()

        self._params = replace(self._params, **changes)
        logger.debug(f"Connect params updated: {sorted(changes)}")
        self._notify()
        return self.read()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every effective write.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.read()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Connect params listener failed")

    # URL encoding

    def to_query_string(self) -> str:
        """Encode the current params as a query string (unset keys omitted)."""
        return encode_params(self._params)

    def location(self, path: str = "/") -> str:
        """Shareable location for the current params."""
        query = self.to_query_string()
        return f"{path}?{query}" if query else path

    @classmethod
    def from_query_string(cls, query_string: str) -> "ConnectParamsStore":
        """Rebuild a store from an encoded location or query string."""
        return cls(decode_params(query_string))


def encode_params(params: ConnectParams) -> str:
    """Encode params as a flat query string."""
    values = asdict(params)
    pairs = [
        (key, values[name])
        for name, key in QUERY_KEYS.items()
        if values[name] not in (None, "")
    ]
    return urlencode(pairs)


def decode_params(query_string: str) -> ConnectParams:
    """Decode a query string (or full location) into params.

    Unrecognized keys are ignored; empty values count as unset.
    """
    if "?" in query_string:
        query_string = query_string.split("?", 1)[1]
    fields = {}
    for key, value in parse_qsl(query_string, keep_blank_values=False):
        name = _FIELDS_BY_KEY.get(key)
        if name:
            fields[name] = value
    return ConnectParams(**fields)
