"""Tests for the missed-opportunity sweeper and reactivation on re-upload."""

from contextlib import contextmanager
from datetime import datetime

import pytest

from tendertrack.database import TenderStatus, TenderStore
from tendertrack.ingestion import TenderIngestor
from tendertrack.lifecycle import MissedOpportunitySweeper, sweep_missed_opportunities

from conftest import build_workbook


NOW = datetime(2025, 6, 1, 12, 0)


def upload(title, deadline):
    return build_workbook({"Tenders": [
        ["Title", "Organization", "Deadline"],
        [title, "NIC", deadline],
    ]})


def actions(store, tender_id):
    return [entry.action for entry in store.activity_for(tender_id)]


def test_sweep_marks_expired_unassigned(store, make_tender):
    expired = make_tender(title="Expired", deadline=datetime(2025, 5, 1), organization="PWD")
    assigned = make_tender(title="Assigned", deadline=datetime(2025, 5, 1), assigned_to="bob")
    future = make_tender(title="Future", deadline=datetime(2025, 7, 1))

    result = MissedOpportunitySweeper(store).sweep(now=NOW)

    assert result.processed_count == 1
    [moved] = result.transitioned
    assert moved.id == expired.id
    assert moved.title == "Expired"
    assert moved.organization == "PWD"
    assert moved.deadline == datetime(2025, 5, 1)

    assert store.get_tender(expired.id).status == TenderStatus.MISSED_OPPORTUNITY
    assert store.get_tender(assigned.id).status == TenderStatus.ACTIVE
    assert store.get_tender(future.id).status == TenderStatus.ACTIVE

    [entry] = store.activity_for(expired.id)
    assert entry.action == "missed_opportunity"
    assert entry.details["reason"] == "deadline_expired"
    assert entry.details["previous_status"] == "active"
    assert entry.details["new_status"] == "missed_opportunity"
    assert entry.details["source"] == "automated_check"


def test_sweep_is_idempotent(store, make_tender):
    make_tender(deadline=datetime(2025, 5, 1))

    assert sweep_missed_opportunities(store, now=NOW).processed_count == 1
    assert sweep_missed_opportunities(store, now=NOW).processed_count == 0


def test_sweep_result_as_dict(store, make_tender):
    make_tender(title="Expired", deadline=datetime(2025, 5, 1))

    data = sweep_missed_opportunities(store, now=NOW).as_dict()

    assert data["processed_count"] == 1
    assert data["transitioned"][0]["deadline"] == "2025-05-01T00:00:00"


def test_missed_opportunity_round_trip(store):
    ingestor = TenderIngestor(store, sweep_after=False)
    ingestor.ingest(upload("Supply of pumps", datetime(2020, 1, 1)), "first.xlsx")

    result = sweep_missed_opportunities(store)
    [moved] = result.transitioned
    assert store.get_tender(moved.id).status == TenderStatus.MISSED_OPPORTUNITY

    summary = ingestor.ingest(upload("Supply of pumps", datetime(2031, 1, 1)), "extended.xlsx")

    assert summary.records_added == 0
    assert summary.duplicates_skipped == 1
    assert summary.reactivated == 1

    tender = store.get_tender(moved.id)
    assert tender.status == TenderStatus.ACTIVE
    assert tender.deadline == datetime(2031, 1, 1)
    assert actions(store, moved.id) == ["missed_opportunity", "deadline_extended", "reactivated"]


def test_earlier_deadline_does_not_reactivate(store):
    ingestor = TenderIngestor(store, sweep_after=False)
    ingestor.ingest(upload("Supply of pumps", datetime(2020, 6, 1)), "first.xlsx")
    [moved] = sweep_missed_opportunities(store).transitioned

    summary = ingestor.ingest(upload("Supply of pumps", datetime(2020, 1, 1)), "older.xlsx")

    assert summary.reactivated == 0
    assert store.get_tender(moved.id).status == TenderStatus.MISSED_OPPORTUNITY
    assert actions(store, moved.id) == ["missed_opportunity"]


def test_later_deadline_extends_active_tender(store):
    ingestor = TenderIngestor(store, sweep_after=False)
    first = ingestor.ingest(upload("Supply of pumps", datetime(2030, 1, 1)), "first.xlsx")
    assert first.records_added == 1

    summary = ingestor.ingest(upload("Supply of pumps", datetime(2030, 3, 1)), "extended.xlsx")

    assert summary.reactivated == 0
    tender = store.get_tender(1)
    assert tender.status == TenderStatus.ACTIVE
    assert tender.deadline == datetime(2030, 3, 1)
    assert actions(store, 1) == ["deadline_extended"]


def test_sweep_runs_after_upload(store):
    ingestor = TenderIngestor(store, sweep_after=True)

    ingestor.ingest(upload("Supply of pumps", datetime(2020, 1, 1)), "late.xlsx")

    assert store.get_tender(1).status == TenderStatus.MISSED_OPPORTUNITY


class ReactivationFailsOnce(TenderStore):
    """Store whose first reactivation transaction fails at commit."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.failures_left = 1
        self.fail_commit = False

    @contextmanager
    def session(self):
        with super().session() as session:
            yield session
            if self.fail_commit:
                self.fail_commit = False
                raise RuntimeError("commit failed")

    def reactivate(self, *args, **kwargs):
        if self.failures_left:
            self.failures_left -= 1
            self.fail_commit = True
        return super().reactivate(*args, **kwargs)


def test_failed_reactivation_leaves_tender_retryable(session_factory):
    store = ReactivationFailsOnce(session_factory)
    ingestor = TenderIngestor(store, sweep_after=False)
    ingestor.ingest(upload("Supply of pumps", datetime(2020, 1, 1)), "first.xlsx")
    [moved] = sweep_missed_opportunities(store).transitioned

    failed = ingestor.ingest(upload("Supply of pumps", datetime(2031, 1, 1)), "extended.xlsx")

    assert failed.errors_encountered == 1
    assert failed.reactivated == 0
    tender = store.get_tender(moved.id)
    assert tender.status == TenderStatus.MISSED_OPPORTUNITY
    assert tender.deadline == datetime(2020, 1, 1)
    assert actions(store, moved.id) == ["missed_opportunity"]

    retried = ingestor.ingest(upload("Supply of pumps", datetime(2031, 1, 1)), "extended.xlsx")

    assert retried.reactivated == 1
    tender = store.get_tender(moved.id)
    assert tender.status == TenderStatus.ACTIVE
    assert tender.deadline == datetime(2031, 1, 1)
    assert actions(store, moved.id) == ["missed_opportunity", "deadline_extended", "reactivated"]
