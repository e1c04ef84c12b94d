"""Shared fixtures: in-memory database and in-memory workbooks."""

import io
from datetime import datetime

import pytest
from openpyxl import Workbook
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tendertrack.database import Base, Tender, TenderSource, TenderStatus, TenderStore
from tendertrack.ingestion import title_digest


def build_workbook(sheets: dict, links: dict | None = None) -> bytes:
    """
    Build an .xlsx file in memory.

    Args:
        sheets: Sheet name -> list of rows.
        links: (sheet name, row index, column index) -> hyperlink target,
            indexes 0-based.
    """
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    for (sheet, r, c), url in (links or {}).items():
        wb[sheet].cell(row=r + 1, column=c + 1).hyperlink = url

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return TenderStore(session_factory)


@pytest.fixture
def make_tender(store):
    """Insert a tender directly through the store."""
    def _make(
        title="Sample tender",
        deadline=None,
        status=TenderStatus.ACTIVE,
        assigned_to=None,
        external_id=None,
        organization="Test Org",
    ):
        tender = Tender(
            title=title,
            title_digest=title_digest(title),
            external_id=external_id,
            organization=organization,
            value=0,
            deadline=deadline or datetime(2030, 1, 1),
            status=status,
            source=TenderSource.NON_GEM,
            assigned_to=assigned_to,
            requirements=[],
        )
        return store.insert(tender)
    return _make
