"""
CSV exports for usage logs, candidates, jobs and audit logs.

Every cell, header included, is double-quoted and rows are separated by a
bare ``\\n``. An export of N records therefore has N + 1 rows; an empty
usage export is the empty string.
"""

import csv
from datetime import datetime
from io import StringIO
from typing import Any, Callable, Iterable, Mapping, Sequence

NOT_AVAILABLE = "N/A"

USAGE_HEADERS = [
    "Date",
    "User ID",
    "Endpoint",
    "Model",
    "Input Tokens",
    "Output Tokens",
    "Total Tokens",
    "Total Cost (USD)",
    "Success",
    "Response Time (ms)",
]

CANDIDATE_HEADERS = [
    "First Name",
    "Last Name",
    "Email",
    "Phone",
    "Current Position",
    "Years of Experience",
    "Education",
    "Skills",
    "Score",
    "Status",
    "Created At",
]

JOB_HEADERS = [
    "Job Title",
    "Department",
    "Location",
    "Employment Type",
    "Status",
    "Description",
    "Requirements",
    "Created At",
]

AUDIT_HEADERS = [
    "Date",
    "User ID",
    "Action",
    "Resource Type",
    "Resource ID",
    "Details",
    "IP Address",
]


def _field(record: Any, name: str, default: Any = None) -> Any:
    """Read a field from an ORM object or a mapping."""
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def _or_na(value: Any) -> Any:
    if value is None or value == "" or value == []:
        return NOT_AVAILABLE
    return value


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def format_timestamp(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if value is None:
        return NOT_AVAILABLE
    return str(value)


def format_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    return _or_na(value)


def write_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """Render rows as fully quoted CSV without a trailing newline."""
    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue().rstrip("\n")


def _export(
    records: Sequence[Any],
    headers: Sequence[str],
    to_row: Callable[[Any], Sequence[Any]],
) -> str:
    return write_csv(headers, (to_row(record) for record in records))


def _usage_row(log: Any) -> list[Any]:
    response_time = _field(log, "response_time_ms")
    return [
        format_timestamp(_field(log, "created_at")),
        _field(log, "user_id"),
        _field(log, "endpoint"),
        _field(log, "model"),
        _field(log, "input_tokens", 0),
        _field(log, "output_tokens", 0),
        _field(log, "total_tokens", 0),
        f"${float(_field(log, 'total_cost', 0) or 0):.6f}",
        "Yes" if _field(log, "success") else "No",
        NOT_AVAILABLE if response_time is None else response_time,
    ]


def export_usage_logs_to_csv(logs: Sequence[Any]) -> str:
    """
    Export API usage logs.

    Returns:
        ``""`` for no logs, otherwise a header line plus one line per log
    """
    if not logs:
        return ""
    return _export(logs, USAGE_HEADERS, _usage_row)


def _candidate_row(candidate: Any) -> list[Any]:
    skills = _field(candidate, "skills") or []
    if isinstance(skills, (list, tuple)):
        skills = ", ".join(str(s) for s in skills)
    return [
        _field(candidate, "first_name"),
        _field(candidate, "last_name"),
        _field(candidate, "email"),
        _or_na(_field(candidate, "phone")),
        _or_na(_field(candidate, "current_position")),
        _or_na(_field(candidate, "years_of_experience")),
        _or_na(_field(candidate, "education")),
        _or_na(skills),
        _field(candidate, "score", 0),
        _or_na(_enum_value(_field(candidate, "status"))),
        format_date(_field(candidate, "created_at")),
    ]


def export_candidates_to_csv(candidates: Sequence[Any]) -> str:
    return _export(candidates, CANDIDATE_HEADERS, _candidate_row)


def _job_row(job: Any) -> list[Any]:
    return [
        _field(job, "title"),
        _or_na(_field(job, "department")),
        _or_na(_field(job, "location")),
        _or_na(_field(job, "employment_type")),
        _enum_value(_field(job, "status")),
        _or_na(_field(job, "description")),
        _or_na(_field(job, "requirements")),
        format_date(_field(job, "created_at")),
    ]


def export_jobs_to_csv(jobs: Sequence[Any]) -> str:
    return _export(jobs, JOB_HEADERS, _job_row)


def _audit_row(entry: Any) -> list[Any]:
    details = _field(entry, "details")
    if isinstance(details, Mapping):
        details = "; ".join(f"{key}={value}" for key, value in details.items())
    return [
        format_timestamp(_field(entry, "created_at")),
        _field(entry, "user_id"),
        _enum_value(_field(entry, "action")),
        _enum_value(_field(entry, "resource_type")),
        _or_na(_field(entry, "resource_id")),
        _or_na(details),
        _or_na(_field(entry, "ip_address")),
    ]


def export_audit_logs_to_csv(entries: Sequence[Any]) -> str:
    return _export(entries, AUDIT_HEADERS, _audit_row)
