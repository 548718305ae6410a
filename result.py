"""
Uniform outcome of every portal command.

A Result carries the success flag, optional message and code, and the raw
payload tree returned by the portal. Field access into the payload is
null-safe: absent keys, out-of-range indices and type mismatches yield the
default instead of raising. Each command has its own subclass exposing the
typed view it produces.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from errors import PortalError
from models import KeyMetadata, KeyRecord, format_date, parse_timestamp

__all__ = [
    "Result",
    "LookupResult",
    "MetadataResult",
    "RetrieveResult",
    "RenewResult",
    "UsageResult",
    "format_date",
    "parse_timestamp",
]


class Result(BaseModel):
    successful: bool
    message: Optional[str] = None
    code: Optional[str] = None
    payload: Any = None

    class Config:
        frozen = True

    def get(self, *path: Any, default: Any = None) -> Any:
        """Walk ``path`` through the payload; mapping keys and sequence indices both work."""
        node = self.payload
        for part in path:
            if isinstance(node, Mapping):
                if part not in node:
                    return default
                node = node[part]
            elif isinstance(node, (list, tuple)) and isinstance(part, int) and not isinstance(part, bool):
                if not -len(node) <= part < len(node):
                    return default
                node = node[part]
            else:
                return default
        return default if node is None else node

    def get_date(self, *path: Any) -> Optional[datetime]:
        return parse_timestamp(self.get(*path))

    @classmethod
    def ok(cls, payload: Any = None, message: str = None, code: str = None, **fields):
        return cls(successful=True, payload=payload, message=message, code=code, **fields)

    @classmethod
    def failure(cls, message: str, code: str = None, payload: Any = None, **fields):
        return cls(successful=False, payload=payload, message=message, code=code, **fields)

    @classmethod
    def from_error(cls, error: PortalError, **fields):
        return cls.failure(error.message, code=error.code, **fields)

    @classmethod
    def from_envelope(cls, envelope: Dict[str, Any], **fields):
        """
        Build a result from the portal's response envelope.

        The ``success`` flag is taken verbatim; message and code fall back to
        the nested ``error`` object when not given at the top level.
        """
        error = envelope.get("error")
        if not isinstance(error, Mapping):
            error = {}
        code = envelope.get("code")
        if code is None:
            code = error.get("code")
        return cls(
            successful=bool(envelope.get("success")),
            message=envelope.get("message") or error.get("message"),
            code=_as_code(code),
            payload=envelope.get("data"),
            **fields
        )


def _as_code(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class LookupResult(Result):
    keys: List[KeyRecord] = []

class MetadataResult(Result):
    metadata: Optional[KeyMetadata] = None

class RetrieveResult(Result):
    key_number: Optional[str] = None
    key_data: Optional[bytes] = None

class RenewResult(Result):
    pass

class UsageResult(Result):
    """
    Usage report for a key.

    The portal inverts its success flag for this call: ``successful`` is True
    when no usage has been reported for the key yet, and False when the
    payload holds the usage report (or when the call itself failed, in which
    case there is no payload).
    """

    @property
    def no_usage_reported(self) -> bool:
        return self.successful

    @property
    def has_usage_data(self) -> bool:
        return not self.successful and self.payload is not None
