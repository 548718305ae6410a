from datetime import date, datetime, timezone
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, field_validator

# Raw date shapes seen from the portal besides ISO-8601 and epoch seconds
DATE_FORMATS = (
    "%Y%m%dT%H:%M:%S",
    "%Y%m%dT%H%M%S",
    "%Y%m%d",
    "%Y-%m-%d %H:%M:%S",
    "%d.%m.%Y",
)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Normalize a date-like value from the portal into a datetime.

    Accepts datetimes, dates, UNIX epoch seconds (numbers or digit strings),
    ISO-8601 strings and the compact formats in DATE_FORMATS. Anything else
    yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.isascii() and text.isdigit() and len(text) != 8:
        return parse_timestamp(int(text))

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def format_date(value: Any, fmt: str = "%Y-%m-%d") -> Optional[str]:
    """Format a date-like value as a calendar string, or None when absent."""
    timestamp = parse_timestamp(value)
    if timestamp is None:
        return None
    return timestamp.strftime(fmt)


def _as_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _as_flag(value: Any) -> Any:
    return False if value is None else value


class Credentials(BaseModel):
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"

class Criteria(BaseModel):
    ips: Tuple[str, ...] = ()
    macs: Tuple[str, ...] = ()

    class Config:
        frozen = True

    @property
    def is_empty(self) -> bool:
        return not self.ips and not self.macs

class Feature(BaseModel):
    name: Optional[str] = None
    apiName: Optional[str] = None

class AdditionalKey(BaseModel):
    keyType: Optional[str] = None
    apiKeyType: Optional[str] = None
    keyNumber: Optional[str] = None
    expirationDate: Optional[datetime] = None

    @field_validator("keyNumber", mode="before")
    @classmethod
    def coerce_key_number(cls, value):
        return _as_str(value)

    @field_validator("expirationDate", mode="before")
    @classmethod
    def normalize_dates(cls, value):
        return parse_timestamp(value)

class KeyRecord(BaseModel):
    keyNumber: str
    keyType: Optional[str] = None
    createDate: Optional[datetime] = None
    lastReportingDate: Optional[datetime] = None
    lastReportingIp: Optional[str] = None
    terminated: bool = False

    @field_validator("keyNumber", mode="before")
    @classmethod
    def coerce_key_number(cls, value):
        return _as_str(value)

    @field_validator("createDate", "lastReportingDate", mode="before")
    @classmethod
    def normalize_dates(cls, value):
        return parse_timestamp(value)

    @field_validator("terminated", mode="before")
    @classmethod
    def default_terminated(cls, value):
        return _as_flag(value)

class KeyMetadata(KeyRecord):
    productKey: Optional[str] = None
    billingType: Optional[str] = None
    expirationDate: Optional[datetime] = None
    updateDate: Optional[datetime] = None
    problem: bool = False
    features: List[Feature] = []
    additionalKeys: List[AdditionalKey] = []

    @field_validator("expirationDate", "updateDate", mode="before")
    @classmethod
    def normalize_metadata_dates(cls, value):
        return parse_timestamp(value)

    @field_validator("problem", mode="before")
    @classmethod
    def default_problem(cls, value):
        return _as_flag(value)

    @field_validator("features", "additionalKeys", mode="before")
    @classmethod
    def default_sequences(cls, value):
        return [] if value is None else value


# Request bodies sent to the portal
class LookupRequest(BaseModel):
    ips: List[str] = []
    macs: List[str] = []

class RetrieveRequest(BaseModel):
    compatible: bool = False

class NoteRequest(BaseModel):
    message: str

class SendKeyRequest(BaseModel):
    email: str
    compress: bool = False
