"""Shared fixtures and utilities for tests."""

import os
from types import SimpleNamespace

# Settings are read once at import time, so the environment must be ready
# before any application module is imported.
os.environ.update({
    "APP_ENV": "test",
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "JWT_SECRET_KEY": "test-jwt-secret-key-min-32-chars-long-for-security",
    "JWT_ALGORITHM": "HS256",
    "RATE_LIMIT_ENABLED": "false",
    "JSON_LOGS": "false",
})
os.environ.pop("GOOGLE_API_KEY", None)
os.environ.pop("REDIS_URL", None)

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from core.throttle import AsyncTokenBucket
from database.engine import Base
from database.models import (
    Candidate,
    CandidateStatus,
    JobListing,
    MemberStatus,
    Organization,
    OrganizationMember,
    OrganizationRole,
)
from tests.helpers import (
    ADMIN_ID,
    MEMBER_ID,
    OUTSIDER_ID,
    OWNER_ID,
    VIEWER_ID,
    FakeEvaluationAgent,
    FakeResumeAgent,
    run_sync,
)


# ==================== Database ===================== #

@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine; NullPool lets sessions run on any event loop."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    run_sync(create_schema())
    yield engine
    run_sync(engine.dispose())


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


async def _seed(session_factory) -> SimpleNamespace:
    async with session_factory() as session:
        acme = Organization(name="Acme")
        globex = Organization(name="Globex")
        session.add_all([acme, globex])
        await session.flush()

        members = {
            "owner": OrganizationMember(
                organization_id=acme.id, user_id=OWNER_ID, user_email="owner@acme.test",
                role=OrganizationRole.OWNER, status=MemberStatus.ACTIVE,
            ),
            "admin": OrganizationMember(
                organization_id=acme.id, user_id=ADMIN_ID, user_email="admin@acme.test",
                role=OrganizationRole.ADMIN, status=MemberStatus.ACTIVE,
            ),
            "member": OrganizationMember(
                organization_id=acme.id, user_id=MEMBER_ID, user_email="member@acme.test",
                role=OrganizationRole.MEMBER, status=MemberStatus.ACTIVE,
            ),
            "viewer": OrganizationMember(
                organization_id=acme.id, user_id=VIEWER_ID, user_email="viewer@acme.test",
                role=OrganizationRole.VIEWER, status=MemberStatus.ACTIVE,
            ),
            "outsider": OrganizationMember(
                organization_id=globex.id, user_id=OUTSIDER_ID, user_email="boss@globex.test",
                role=OrganizationRole.OWNER, status=MemberStatus.ACTIVE,
            ),
        }
        session.add_all(members.values())

        job = JobListing(
            organization_id=acme.id,
            title="Backend Engineer",
            description="Build APIs",
            requirements="Python, SQL",
            department="Engineering",
            employment_type="full-time",
        )
        other_job = JobListing(organization_id=globex.id, title="Designer")
        session.add_all([job, other_job])

        alice = Candidate(
            organization_id=acme.id, first_name="Alice", last_name="Smith",
            email="alice@example.com", resume_text="Alice Smith\nPython developer",
            skills=["Python"], years_of_experience=5, status=CandidateStatus.PENDING,
        )
        bob = Candidate(
            organization_id=acme.id, first_name="Bob", last_name="Jones",
            email="bob@example.com", resume_text="Bob Jones\nJava developer",
            skills=["Java"], years_of_experience=2, status=CandidateStatus.PENDING,
        )
        session.add_all([alice, bob])
        await session.commit()

        return SimpleNamespace(
            org_id=acme.id,
            other_org_id=globex.id,
            job_id=job.id,
            other_job_id=other_job.id,
            alice_id=alice.id,
            bob_id=bob.id,
            member_ids={name: m.id for name, m in members.items()},
        )


@pytest.fixture
def seeded(session_factory):
    """Two organizations: Acme with one member per role, a job and two candidates;
    Globex with its own owner and job but no candidates."""
    return run_sync(_seed(session_factory))


# ==================== Fake agents ===================== #

@pytest.fixture
def resume_agent():
    return FakeResumeAgent()


@pytest.fixture
def evaluation_agent():
    return FakeEvaluationAgent()


@pytest.fixture
def fast_limiter():
    return AsyncTokenBucket(rate=10_000, capacity=100)


# ==================== API client ===================== #

@pytest.fixture
def client(session_factory, seeded, resume_agent, evaluation_agent, fast_limiter):
    """TestClient with the database, resolver, agents and limiter swapped for test doubles."""
    from fastapi.testclient import TestClient

    from api.dependencies import (
        get_evaluation_agent,
        get_resume_agent,
        get_usage_session_factory,
    )
    from api.main import app
    from api.services.shortlisting import get_ai_limiter
    from core.middleware.authorization import PermissionResolver, get_permission_resolver
    from database.engine import get_db

    resolver = PermissionResolver(session_factory=session_factory)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_permission_resolver] = lambda: resolver
    app.dependency_overrides[get_resume_agent] = lambda: resume_agent
    app.dependency_overrides[get_evaluation_agent] = lambda: evaluation_agent
    app.dependency_overrides[get_ai_limiter] = lambda: fast_limiter
    app.dependency_overrides[get_usage_session_factory] = lambda: session_factory

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
