"""Tests for tender spreadsheet ingestion."""

import io
import threading
import zipfile
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from tendertrack.database import Tender, TenderSource, TenderStatus, TenderStore, UploadStatus
from tendertrack.exceptions import PersistenceUnavailableError, WorkbookError
from tendertrack.ingestion import TenderIngestor, open_workbook

from conftest import build_workbook


HEADERS = ["TENDER BRIEF", "Organization", "ESTIMATED COST", "Deadline", "T247 ID", "Reference No", "Location"]
ROWS = [
    ["Supply of software licences", "Ministry of Electronics", "₹50,00,000.00",
     datetime(2030, 1, 15), 101, "MEITY/2030/1", "Delhi"],
    ["Road repair works", "GeM Buyer - PWD", "1200", "15/02/2030", 102, "GEM/2030/B/2", "Pune"],
]


def tenders_in(store):
    with store.session() as session:
        return list(session.execute(select(Tender).order_by(Tender.id)).scalars())


def many_rows(count):
    return [HEADERS[:4]] + [
        [f"Tender number {i}", "NIC", "1000", datetime(2030, 1, 1)] for i in range(count)
    ]


@pytest.fixture
def ingestor(store):
    ingestor = TenderIngestor(store, sweep_after=False)
    ingestor.progress_interval = 10
    return ingestor


@pytest.fixture
def workbook():
    return build_workbook({"Tenders": [HEADERS] + ROWS})


def test_ingest_adds_tenders(store, ingestor, workbook):
    summary = ingestor.ingest(workbook, "tenders.xlsx", uploaded_by="alice")

    assert summary.success
    assert summary.status == "completed"
    assert summary.records_added == 2
    assert summary.tenders_processed == 2
    assert summary.duplicates_skipped == 0
    assert summary.errors_encountered == 0
    assert summary.total_rows == 2
    assert summary.sheets_processed == 1
    assert summary.gem_added == 1
    assert summary.non_gem_added == 1

    first, second = tenders_in(store)
    assert first.title == "Supply of software licences"
    assert first.value == 500000000
    assert first.deadline == datetime(2030, 1, 15)
    assert first.status == TenderStatus.ACTIVE
    assert first.source == TenderSource.NON_GEM
    assert first.external_id == "101"
    assert first.ai_score == 60
    assert first.location == "Delhi"
    assert first.description == "Imported from Tenders - tenders.xlsx"
    assert first.requirement("sheet") == "Tenders"
    assert first.requirement("reference") == "MEITY/2030/1"
    assert first.requirement("external_id") == "101"
    assert first.link == "https://tender247.com/tender-search?ref=MEITY%2F2030%2F1"

    assert second.source == TenderSource.GEM
    assert second.deadline == datetime(2030, 2, 15)
    assert second.value == 120000
    assert second.link == "https://gem.gov.in/tender/search?q=GEM%2F2030%2FB%2F2"


def test_audit_row_written_once(store, ingestor, workbook):
    summary = ingestor.ingest(workbook, "tenders.xlsx", uploaded_by="alice")

    [upload] = store.list_uploads()
    assert upload.id == summary.upload_id
    assert upload.file_name == "tenders.xlsx"
    assert upload.file_path.startswith("sha256:")
    assert upload.uploaded_by == "alice"
    assert upload.upload_kind == "tenders"
    assert upload.entries_added == 2
    assert upload.gem_added == 1
    assert upload.status == UploadStatus.COMPLETED
    assert upload.error_log is None


def test_reupload_is_idempotent(store, ingestor, workbook):
    ingestor.ingest(workbook, "tenders.xlsx")
    summary = ingestor.ingest(workbook, "tenders.xlsx")

    assert summary.records_added == 0
    assert summary.duplicates_skipped == summary.total_rows == 2
    assert len(tenders_in(store)) == 2
    assert len(store.list_uploads()) == 2


def test_duplicate_rows_within_file(store, ingestor):
    data = build_workbook({"Tenders": [
        ["Title", "Organization"],
        ["Supply of pumps", "NIC"],
        ["Supply of pumps", "NIC"],
    ]})

    summary = ingestor.ingest(data, "dupes.xlsx")

    assert summary.records_added == 1
    assert summary.duplicates_skipped == 1


def test_external_id_match_is_duplicate(store, ingestor, workbook):
    ingestor.ingest(workbook, "tenders.xlsx")
    renamed = build_workbook({"Tenders": [HEADERS, ["Renamed tender", "NIC", "10", None, 101, "", ""]]})

    summary = ingestor.ingest(renamed, "renamed.xlsx")

    assert summary.duplicates_skipped == 1
    assert summary.records_added == 0


def test_blank_titles_are_not_counted(store, ingestor):
    data = build_workbook({"Tenders": [
        ["Title", "Organization"],
        ["Supply of pumps", "NIC"],
        ["", "NIC"],
        [None, "Orphan org"],
    ]})

    summary = ingestor.ingest(data, "blanks.xlsx")

    assert summary.total_rows == 1
    assert summary.records_added == 1
    assert summary.errors_encountered == 0


def test_missing_deadline_defaults_to_thirty_days(store, ingestor):
    data = build_workbook({"Tenders": [["Title", "Organization"], ["Supply of pumps", ""]]})

    ingestor.ingest(data, "t.xlsx")

    [tender] = tenders_in(store)
    assert tender.organization == "Unknown"
    assert timedelta(days=29) < tender.deadline - datetime.now() <= timedelta(days=30)


def test_title_hyperlink_is_kept(store, ingestor):
    data = build_workbook(
        {"Tenders": [["Title", "Organization"], ["Supply of pumps", "NIC"]]},
        links={("Tenders", 1, 0): "https://eprocure.gov.in/tender/991"},
    )

    ingestor.ingest(data, "t.xlsx")

    [tender] = tenders_in(store)
    assert tender.link == "https://eprocure.gov.in/tender/991"


def test_sheet_without_header_is_skipped(store, ingestor):
    data = build_workbook({
        "Notes": [["just some notes"], ["more notes"]],
        "Tenders": [HEADERS] + ROWS,
    })

    summary = ingestor.ingest(data, "mixed.xlsx")

    assert summary.success
    assert summary.sheets_skipped == 1
    assert summary.sheets_processed == 1
    assert summary.records_added == 2
    assert "Skipped sheet: Notes" in store.list_uploads()[0].error_log


def test_optional_columns_become_requirements(store, ingestor):
    data = build_workbook({"Tenders": [
        ["Title", "Organization", "EMD", "Eligibility Criteria", "Quantity"],
        ["Supply of pumps", "NIC", "50000", "ISO 9001", 12],
    ]})

    ingestor.ingest(data, "t.xlsx")

    [tender] = tenders_in(store)
    assert tender.requirement("emd") == "50000"
    assert tender.requirement("eligibility") == "ISO 9001"
    assert tender.requirement("quantity") == "12"


def test_csv_upload(store, ingestor):
    data = (
        "Title,Organization,Value,Deadline\n"
        'Supply of pumps,NIC,"1,00,000",2030-01-31\n'
    ).encode("utf-8")

    summary = ingestor.ingest(data, "tenders.csv")

    assert summary.records_added == 1
    [tender] = tenders_in(store)
    assert tender.value == 10000000
    assert tender.deadline == datetime(2030, 1, 31)
    assert tender.requirement("sheet") == "tenders"


class FlakyStore(TenderStore):
    def insert(self, record):
        if record.title == "Bad row":
            raise ValueError("boom")
        return super().insert(record)


def test_row_failure_does_not_stop_upload(session_factory):
    store = FlakyStore(session_factory)
    ingestor = TenderIngestor(store, sweep_after=False)
    data = build_workbook({"Tenders": [
        ["Title", "Organization"],
        ["Good row", "NIC"],
        ["Bad row", "NIC"],
        ["Another good row", "NIC"],
    ]})

    summary = ingestor.ingest(data, "t.xlsx")

    assert summary.success
    assert summary.records_added == 2
    assert summary.errors_encountered == 1
    assert str(summary.row_errors[0]) == "Tenders row 3: boom"
    [upload] = store.list_uploads()
    assert upload.entries_rejected == 1
    assert "Tenders row 3: boom" in upload.error_log


def test_progress_updates(store, ingestor):
    updates = []

    summary = ingestor.ingest(build_workbook({"Tenders": many_rows(25)}), "t.xlsx", on_progress=updates.append)

    assert summary.records_added == 25
    assert len(updates) == 3
    assert updates[0].processed == 10
    assert updates[0].total == 25
    assert updates[0].percentage == 40
    assert not updates[0].completed
    assert updates[-1].completed
    assert updates[-1].processed == 25
    assert updates[-1].percentage == 100
    assert updates[-1].non_gem_added == 25


def test_failing_progress_callback_is_ignored(store, ingestor):
    def explode(update):
        raise RuntimeError("UI went away")

    summary = ingestor.ingest(build_workbook({"Tenders": many_rows(25)}), "t.xlsx", on_progress=explode)

    assert summary.success
    assert summary.records_added == 25


def test_cancellation_keeps_inserted_rows(store, ingestor):
    cancel = threading.Event()

    def stop_after_first_batch(update):
        if update.processed >= 10:
            cancel.set()

    summary = ingestor.ingest(
        build_workbook({"Tenders": many_rows(25)}),
        "t.xlsx",
        on_progress=stop_after_first_batch,
        cancel=cancel,
    )

    assert summary.status == "cancelled"
    assert not summary.success
    assert summary.records_added == 10
    assert len(tenders_in(store)) == 10
    [upload] = store.list_uploads()
    assert upload.status == UploadStatus.CANCELLED
    assert upload.entries_added == 10


def test_cancelled_upload_reports_real_percentage(store, ingestor):
    cancel = threading.Event()
    updates = []

    def stop_after_first_batch(update):
        updates.append(update)
        if update.processed >= 10:
            cancel.set()

    ingestor.ingest(
        build_workbook({"Tenders": many_rows(25)}),
        "t.xlsx",
        on_progress=stop_after_first_batch,
        cancel=cancel,
    )

    assert updates[-1].completed
    assert updates[-1].percentage == 40


@pytest.mark.parametrize("data,name", [
    (b"", "empty.xlsx"),
    (b"this is not a workbook", "broken.xlsx"),
    (b"\xd0\xcf\x11\xe0legacy", "old.xls"),
])
def test_file_errors(store, ingestor, data, name):
    summary = ingestor.ingest(data, name, uploaded_by="alice")

    assert not summary.success
    assert summary.error_kind == "file"
    assert summary.records_added == 0
    [upload] = store.list_uploads()
    assert upload.status == UploadStatus.FAILED
    assert upload.error_log.startswith("[file]")


def truncate_sheet(data):
    """Cut the first worksheet's XML in half inside an otherwise valid .xlsx."""
    source = zipfile.ZipFile(io.BytesIO(data))
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as target:
        for item in source.infolist():
            content = source.read(item.filename)
            if item.filename == "xl/worksheets/sheet1.xml":
                content = content[: len(content) // 2]
            target.writestr(item, content)
    return buffer.getvalue()


def test_corrupt_sheet_xml_is_a_file_error(store, ingestor, workbook):
    updates = []

    summary = ingestor.ingest(truncate_sheet(workbook), "corrupt.xlsx", on_progress=updates.append)

    assert not summary.success
    assert summary.error_kind == "file"
    assert summary.records_added == 0
    assert updates[-1].completed
    assert updates[-1].percentage == 0
    [upload] = store.list_uploads()
    assert upload.status == UploadStatus.FAILED


def test_unexpected_error_is_reported(store, ingestor, workbook, monkeypatch):
    def explode(data, file_name):
        raise RuntimeError("reader crashed")

    monkeypatch.setattr("tendertrack.ingestion.base.open_workbook", explode)

    summary = ingestor.ingest(workbook, "tenders.xlsx")

    assert not summary.success
    assert summary.error_kind == "file"
    assert "reader crashed" in summary.error
    [upload] = store.list_uploads()
    assert upload.status == UploadStatus.FAILED


def test_open_workbook_rejects_empty():
    with pytest.raises(WorkbookError):
        open_workbook(b"", "empty.xlsx")


class BlindStore(TenderStore):
    """Store whose lookups miss, as when another upload inserts concurrently."""

    def find_by_identity(self, key, model=Tender):
        return None


def test_insert_race_counts_as_duplicate(session_factory, workbook):
    ingestor = TenderIngestor(BlindStore(session_factory), sweep_after=False)
    ingestor.ingest(workbook, "first.xlsx")

    summary = ingestor.ingest(workbook, "second.xlsx")

    assert summary.success
    assert summary.records_added == 0
    assert summary.duplicates_skipped == 2
    assert summary.errors_encountered == 0


class DownStore(TenderStore):
    def find_by_identity(self, key, model=Tender):
        raise PersistenceUnavailableError("connection refused")

    def record_upload_audit(self, summary):
        raise PersistenceUnavailableError("connection refused")


def test_persistence_unavailable(session_factory, workbook):
    ingestor = TenderIngestor(DownStore(session_factory), sweep_after=False)

    summary = ingestor.ingest(workbook, "tenders.xlsx")

    assert not summary.success
    assert summary.error_kind == "persistence_unavailable"
    assert summary.upload_id is None
    assert summary.as_dict()["error_kind"] == "persistence_unavailable"
