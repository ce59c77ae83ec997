"""Shared fixtures: an in-memory SQLite database per test and domain builders."""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("GEOLOCATION_ENABLED", "false")

from datetime import date, datetime, timezone  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import loanflow.models  # noqa: E402,F401
from loanflow.database import Base  # noqa: E402
from loanflow.models.applicant import (  # noqa: E402
    Address, AddressType, Applicant, EmploymentRecord, EmploymentType,
)
from loanflow.models.application import ApplicationStatus  # noqa: E402
from loanflow.models.product import Product  # noqa: E402
from loanflow.services import notifier  # noqa: E402
from loanflow.services.application_state_machine import change_status  # noqa: E402
from loanflow.services.applications import create_application  # noqa: E402
from loanflow.services.context import Actor  # noqa: E402

TENANT = "tenant-mx"


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def _reset_notifier():
    notifier.clear()
    yield
    notifier.clear()


# ── Actors ───────────────────────────────────────────────────

def applicant_actor(user_id: str = "user-1", name: str = "Ana Pérez") -> Actor:
    return Actor(id=user_id, name=name, role="applicant", tenant_id=TENANT)


def staff_actor(user_id: str = "staff-1") -> Actor:
    return Actor(id=user_id, name="Revisor", role="staff", tenant_id=TENANT)


@pytest.fixture
def applicant_user() -> Actor:
    return applicant_actor()


@pytest.fixture
def reviewer() -> Actor:
    return staff_actor()


# ── Builders ─────────────────────────────────────────────────

async def make_applicant(
    db: AsyncSession,
    *,
    user_id: str = "user-1",
    with_address: bool = True,
    with_employment: bool = True,
    signed: bool = True,
    **overrides,
) -> Applicant:
    fields = dict(
        tenant_id=TENANT,
        user_id=user_id,
        first_name="ANA",
        last_name_1="PEREZ",
        last_name_2="LOPEZ",
        curp="PELA900101MDFRPN09",
        rfc="PELA900101AB1",
        ine_clave="PRLPAN90010109M100",
        birth_date=date(1990, 1, 1),
        phone="5512345678",
        email="ana@example.com",
        signed_at=datetime(2026, 1, 5, tzinfo=timezone.utc) if signed else None,
    )
    fields.update(overrides)
    addresses = []
    if with_address:
        addresses.append(Address(
            type=AddressType.HOME,
            is_primary=True,
            street="Av. Reforma",
            ext_number="100",
            neighborhood="Juárez",
            postal_code="06600",
            municipality="Cuauhtémoc",
            state="CDMX",
        ))
    records = []
    if with_employment:
        records.append(EmploymentRecord(
            is_current=True,
            employment_type=EmploymentType.EMPLOYEE,
            company_name="ACME",
            position="Analista",
            monthly_income=25000,
            seniority_months=30,
        ))
    applicant = Applicant(addresses=addresses, employment_records=records, **fields)
    db.add(applicant)
    await db.flush()
    return applicant


async def make_product(db: AsyncSession, required_documents=None) -> Product:
    product = Product(
        tenant_id=TENANT,
        name="Crédito Personal",
        required_documents=required_documents if required_documents is not None else [],
    )
    db.add(product)
    await db.flush()
    return product


async def make_application(
    db: AsyncSession,
    applicant: Applicant,
    *,
    path=(),
    product: Product | None = None,
    purpose: str | None = "PERSONAL",
):
    """Create a DRAFT application and walk it along ``path`` through legal moves."""
    application = await create_application(
        db, applicant,
        product_id=product.id if product else None,
        purpose=purpose,
        actor_id="system",
    )
    for status in path:
        await change_status(
            db, application, ApplicationStatus(status),
            reason="setup", actor_id="system", enforce_guards=False,
        )
    return application


IN_REVIEW_PATH = (ApplicationStatus.SUBMITTED, ApplicationStatus.IN_REVIEW)
