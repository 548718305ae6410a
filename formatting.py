import json
from datetime import datetime
from typing import Any, Iterable, List, Sequence

from models import KeyMetadata, KeyRecord, format_date
from result import Result, UsageResult

MISSING = "-"

KEY_COLUMNS = (
    ("Key number", "keyNumber"),
    ("Type", "keyType"),
    ("Created", "createDate"),
    ("Last report", "lastReportingDate"),
    ("Last IP", "lastReportingIp"),
    ("Terminated", "terminated"),
)


def display(value: Any) -> str:
    if value is None or value == "":
        return MISSING
    if isinstance(value, datetime):
        return format_date(value)
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def _table(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    rows = [list(row) for row in rows]
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]
    lines = ["  ".join(h.ljust(w) for h, w in zip(headers, widths))]
    lines.append("  ".join("-" * w for w in widths))
    for row in rows:
        lines.append("  ".join(cell.ljust(w) for cell, w in zip(row, widths)).rstrip())
    return "\n".join(lines)


def format_key_records(keys: List[KeyRecord]) -> str:
    headers = [title for title, _ in KEY_COLUMNS]
    rows = ([display(getattr(key, field)) for _, field in KEY_COLUMNS] for key in keys)
    return _table(headers, rows)


def format_metadata(metadata: KeyMetadata) -> str:
    """Key details followed by its features and additional keys, in portal order."""
    fields = [
        ("Key number", metadata.keyNumber),
        ("Key type", metadata.keyType),
        ("Product key", metadata.productKey),
        ("Billing type", metadata.billingType),
        ("Created", metadata.createDate),
        ("Updated", metadata.updateDate),
        ("Expires", metadata.expirationDate),
        ("Last report", metadata.lastReportingDate),
        ("Last IP", metadata.lastReportingIp),
        ("Terminated", metadata.terminated),
        ("Problem", metadata.problem),
    ]
    width = max(len(label) for label, _ in fields)
    lines = [f"{label.ljust(width)}  {display(value)}" for label, value in fields]

    lines.append("")
    lines.append("Features:")
    if metadata.features:
        lines.extend(f"  {display(f.name)} ({display(f.apiName)})" for f in metadata.features)
    else:
        lines.append(f"  {MISSING}")

    lines.append("")
    lines.append("Additional keys:")
    if metadata.additionalKeys:
        lines.append(_table(
            ["Key number", "Type", "API type", "Expires"],
            (
                [display(k.keyNumber), display(k.keyType), display(k.apiKeyType), display(k.expirationDate)]
                for k in metadata.additionalKeys
            )
        ))
    else:
        lines.append(f"  {MISSING}")
    return "\n".join(lines)


def format_usage(result: UsageResult) -> str:
    if result.no_usage_reported:
        return result.message or "No usage data has been reported for this key yet"
    if not result.has_usage_data:
        return format_result(result)

    payload = result.payload
    if isinstance(payload, dict):
        width = max((len(str(k)) for k in payload), default=0)
        return "\n".join(f"{str(k).ljust(width)}  {display(v)}" for k, v in payload.items())
    return display(payload)


def format_result(result: Result) -> str:
    status = "OK" if result.successful else "FAILED"
    text = f"{status}: {result.message or ('done' if result.successful else 'unknown error')}"
    if result.code:
        text += f" (code {result.code})"
    return text


def format_json(value: Any) -> str:
    """Render a Result, model, or list of models as JSON."""
    if isinstance(value, list):
        value = [item.model_dump(mode="json") if hasattr(item, "model_dump") else item for item in value]
    elif hasattr(value, "model_dump"):
        value = value.model_dump(mode="json", exclude={"key_data"})
    return json.dumps(value, indent=2, default=str)
