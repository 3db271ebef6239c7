"""Tests for CSV exports."""

from datetime import datetime
from types import SimpleNamespace

from database.models import AuditAction, AuditResourceType, CandidateStatus, JobStatus
from lib.export import (
    export_audit_logs_to_csv,
    export_candidates_to_csv,
    export_jobs_to_csv,
    export_usage_logs_to_csv,
    write_csv,
)


CREATED = datetime(2024, 3, 5, 14, 7, 9)


def usage_log(**overrides):
    data = dict(
        created_at=CREATED,
        user_id="user-1",
        endpoint="analyze_resume_match",
        model="gemini-2.0-flash",
        input_tokens=1000,
        output_tokens=500,
        total_tokens=1500,
        total_cost=0.0003,
        success=True,
        response_time_ms=850,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


class TestWriteCsv:

    def test_every_cell_is_quoted(self):
        assert write_csv(["a", "b"], [[1, None]]) == '"a","b"\n"1",""'

    def test_embedded_quotes_and_newlines(self):
        content = write_csv(["Name"], [['Say "hi"\nthere']])

        assert content == '"Name"\n"Say ""hi""\nthere"'


class TestUsageExport:

    def test_empty_usage_export_is_empty_string(self):
        assert export_usage_logs_to_csv([]) == ""

    def test_rows(self):
        content = export_usage_logs_to_csv([usage_log(), usage_log(success=False, response_time_ms=None)])

        lines = content.split("\n")
        assert len(lines) == 3
        assert lines[0].startswith('"Date","User ID","Endpoint"')
        assert lines[1] == (
            '"2024-03-05 14:07:09","user-1","analyze_resume_match","gemini-2.0-flash",'
            '"1000","500","1500","$0.000300","Yes","850"'
        )
        assert lines[2].endswith('"No","N/A"')

    def test_accepts_mappings(self):
        content = export_usage_logs_to_csv([vars(usage_log())])

        assert '"user-1"' in content


class TestCandidateExport:

    def test_header_only_when_empty(self):
        assert export_candidates_to_csv([]) == (
            '"First Name","Last Name","Email","Phone","Current Position",'
            '"Years of Experience","Education","Skills","Score","Status","Created At"'
        )

    def test_missing_values_are_na(self):
        candidate = SimpleNamespace(
            first_name="Alice", last_name="Smith", email="alice@example.com",
            phone=None, current_position="", years_of_experience=None, education=None,
            skills=["Python", "SQL"], score=82, status=CandidateStatus.SHORTLISTED,
            created_at=CREATED,
        )

        line = export_candidates_to_csv([candidate]).split("\n")[1]

        assert line == (
            '"Alice","Smith","alice@example.com","N/A","N/A","N/A","N/A",'
            '"Python, SQL","82","shortlisted","2024-03-05"'
        )

    def test_empty_skills(self):
        candidate = SimpleNamespace(first_name="Bob", last_name="Jones", email="b@x.io", skills=[])

        assert '"N/A"' in export_candidates_to_csv([candidate]).split("\n")[1]


class TestJobExport:

    def test_rows(self):
        jobs = [
            SimpleNamespace(
                title="Backend Engineer", department="Engineering", location=None,
                employment_type="full-time", status=JobStatus.ACTIVE,
                description='Build "fast" APIs', requirements=None, created_at=CREATED,
            ),
            SimpleNamespace(title="Designer", status=JobStatus.ACTIVE),
        ]

        lines = export_jobs_to_csv(jobs).split("\n")

        assert len(lines) == 3
        assert lines[1] == (
            f'"Backend Engineer","Engineering","N/A","full-time","{JobStatus.ACTIVE.value}",'
            '"Build ""fast"" APIs","N/A","2024-03-05"'
        )


class TestAuditExport:

    def test_details_are_flattened(self):
        entry = SimpleNamespace(
            created_at=CREATED, user_id="user-1", action=AuditAction.UPDATE,
            resource_type=AuditResourceType.MEMBER, resource_id="12",
            details={"old_role": "member", "new_role": "admin"}, ip_address=None,
        )

        line = export_audit_logs_to_csv([entry]).split("\n")[1]

        assert line == (
            f'"2024-03-05 14:07:09","user-1","{AuditAction.UPDATE.value}",'
            f'"{AuditResourceType.MEMBER.value}","12","old_role=member; new_role=admin","N/A"'
        )
