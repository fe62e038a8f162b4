import json
import logging

import pytest

from mongo_transfer.config.manager import MirrorMode
from mongo_transfer.transfer.audit import AuditWriter
from mongo_transfer.transfer.identifiers import IdentifierSet
from mongo_transfer.transfer.reconciler import MirrorReconciler
from mongo_transfer.transfer.snapshot import IdentifierSnapshot

from conftest import FakeCollection, audit_files, make_client


@pytest.mark.asyncio
async def test_snapshot_skipped_without_mirror(tmp_path):
    target = FakeCollection([{"_id": 1}])
    snapshot = IdentifierSnapshot(make_client(target, "target"), AuditWriter(tmp_path))

    identifiers = await snapshot.capture(MirrorMode.NONE)

    assert not identifiers
    assert target.find_calls == []
    assert audit_files(tmp_path) == []


@pytest.mark.asyncio
async def test_snapshot_reads_identifiers_only_and_audits(tmp_path):
    target = FakeCollection([{"_id": 2, "big": "x" * 10}, {"_id": 3}])
    snapshot = IdentifierSnapshot(make_client(target, "target"), AuditWriter(tmp_path))

    identifiers = await snapshot.capture(MirrorMode.TEST)

    assert sorted(identifiers) == [2, 3]
    assert target.find_calls == [({}, {"_id": 1})]
    assert audit_files(tmp_path) == [snapshot.audit_path]
    assert json.loads(snapshot.audit_path.read_text(encoding="utf-8")) == [2, 3]


@pytest.mark.asyncio
async def test_empty_snapshot_writes_no_file(tmp_path):
    snapshot = IdentifierSnapshot(make_client(FakeCollection(), "target"), AuditWriter(tmp_path))

    identifiers = await snapshot.capture(MirrorMode.DELETE)

    assert not identifiers
    assert snapshot.audit_path is None
    assert audit_files(tmp_path) == []


@pytest.mark.asyncio
async def test_test_mode_reports_without_deleting(tmp_path):
    target = FakeCollection([{"_id": 4}, {"_id": 5}])
    reconciler = MirrorReconciler(make_client(target, "target"), AuditWriter(tmp_path), MirrorMode.TEST)

    result = await reconciler.reconcile(IdentifierSet([4, 5]))

    assert result.residual_count == 2
    assert result.deleted_count == 0
    assert result.audit_path.name.endswith(".out.json")
    assert sorted(json.loads(result.audit_path.read_text(encoding="utf-8"))) == [4, 5]
    assert target.bulk_calls == []
    assert len(target.documents) == 2


@pytest.mark.asyncio
async def test_delete_mode_issues_one_batch(tmp_path):
    target = FakeCollection([{"_id": 1}, {"_id": 4}, {"_id": 5}])
    reconciler = MirrorReconciler(make_client(target, "target"), AuditWriter(tmp_path), MirrorMode.DELETE)

    result = await reconciler.reconcile(IdentifierSet([4, 5]))

    assert len(target.bulk_calls) == 1
    assert sorted(op._filter["_id"] for op in target.bulk_calls[0]) == [4, 5]
    assert result.deleted_count == 2
    assert result.acknowledged
    assert target.documents == [{"_id": 1}]


@pytest.mark.asyncio
async def test_unacknowledged_delete_reports_submitted_count(tmp_path, caplog):
    target = FakeCollection([{"_id": 1}, {"_id": 4}, {"_id": 5}], acknowledged=False)
    reconciler = MirrorReconciler(make_client(target, "target"), AuditWriter(tmp_path), MirrorMode.DELETE)

    with caplog.at_level(logging.INFO, logger="mongo_transfer.transfer.reconciler"):
        result = await reconciler.reconcile(IdentifierSet([4, 5]))

    assert result.deleted_count == 2
    assert not result.acknowledged
    assert "2 document(s) have been submitted for deletion from the output collection." in caplog.text
    assert "have been deleted" not in caplog.text


@pytest.mark.asyncio
async def test_empty_residual_is_trivial_mirror(tmp_path):
    target = FakeCollection([{"_id": 1}])
    reconciler = MirrorReconciler(make_client(target, "target"), AuditWriter(tmp_path), MirrorMode.DELETE)

    result = await reconciler.reconcile(IdentifierSet())

    assert result.already_mirrored
    assert result.audit_path is None
    assert target.bulk_calls == []
    assert audit_files(tmp_path) == []


@pytest.mark.asyncio
async def test_none_mode_does_nothing(tmp_path):
    target = FakeCollection([{"_id": 9}])
    reconciler = MirrorReconciler(make_client(target, "target"), AuditWriter(tmp_path), MirrorMode.NONE)

    result = await reconciler.reconcile(IdentifierSet([9]))

    assert result.residual_count == 0
    assert not result.already_mirrored
    assert target.bulk_calls == []


@pytest.mark.asyncio
async def test_delete_failure_propagates_after_audit(tmp_path):
    target = FakeCollection([{"_id": 4}], fail_bulk_on_call=1)
    reconciler = MirrorReconciler(make_client(target, "target"), AuditWriter(tmp_path), MirrorMode.DELETE)

    with pytest.raises(ConnectionError):
        await reconciler.reconcile(IdentifierSet([4]))

    assert len(audit_files(tmp_path)) == 1
    assert target.documents == [{"_id": 4}]
