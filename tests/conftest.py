"""Pytest fixtures for testing"""

import itertools
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from harambee_sacco.api.main import create_app
from harambee_sacco.infrastructure.database.models import Base, Loan, Member, SavingsAccount, Transaction
from harambee_sacco.infrastructure.database.session import get_db, get_session_factory
from harambee_sacco.utils.date_utils import utcnow

_sequence = itertools.count(1)


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite file per test"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sacco_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(db: AsyncSession, session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """API client bound to the test database"""
    app = create_app()

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class Seed:
    """Committed test rows with sensible defaults"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _save(self, record):
        self.db.add(record)
        await self.db.commit()
        return record

    async def member(self, number: str = "HAR-000001", **fields: Any) -> Member:
        values = {
            "member_number": number,
            "first_name": "Wanjiku",
            "last_name": "Kamau",
            "phone": f"+254711{number[-6:]}",
            "joined_at": utcnow() - timedelta(days=30),
        }
        values.update(fields)
        return await self._save(Member(**values))

    async def savings(self, member: Member, balance: float, **fields: Any) -> SavingsAccount:
        return await self._save(
            SavingsAccount(member_id=member.id, account_number=f"SAV-{member.member_number}", balance=balance, **fields)
        )

    async def loan(self, member: Member, principal: float = 10_000.0, **fields: Any) -> Loan:
        """Disbursed 12-month loan at 1.5%/month unless overridden"""
        now = utcnow()
        total = principal * 1.18
        values = {
            "member_id": member.id,
            "loan_number": f"LN-TEST-{next(_sequence)}",
            "principal_amount": principal,
            "interest_rate": 1.5,
            "interest_amount": total - principal,
            "total_amount": total,
            "paid_amount": 0.0,
            "balance": total,
            "term_months": 12,
            "installment_amount": total / 12,
            "status": "disbursed",
            "disbursed_at": now - timedelta(days=10),
            "due_date": now + timedelta(days=355),
        }
        values.update(fields)
        return await self._save(Loan(**values))

    async def transaction(
        self,
        member: Member,
        transaction_type: str,
        amount: float,
        when: Optional[datetime] = None,
        **fields: Any,
    ) -> Transaction:
        return await self._save(
            Transaction(
                member_id=member.id,
                transaction_number=f"TXN-TEST-{next(_sequence)}",
                transaction_type=transaction_type,
                amount=amount,
                balance_after=0.0,
                transaction_date=when or utcnow(),
                **fields,
            )
        )


@pytest.fixture
def seed(db: AsyncSession) -> Seed:
    return Seed(db)
