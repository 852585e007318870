"""
Unit tests for the checklist item service helpers: signature hashing,
receipt construction and progress summaries.
"""

import hashlib
import json
import uuid
from datetime import timedelta
from types import SimpleNamespace

from staffready.models import ChecklistItemStatus as S
from staffready.services.checklistItemService import (
    build_signature_receipt,
    compute_signature_hash,
    receipt_key,
    summarize_progress,
)
from tests.conftest import NOW, make_item


class TestSignatureHash:

    def test_hash_matches_documented_payload(self):
        clinician_id = uuid.uuid4()
        item_id = uuid.uuid4()
        expected = hashlib.sha256(
            f"Dana Reyes|{clinician_id}|{item_id}|{NOW.isoformat()}".encode("utf-8")
        ).hexdigest()
        assert compute_signature_hash("Dana Reyes", clinician_id, item_id, NOW) == expected

    def test_hash_is_deterministic(self):
        ids = (uuid.uuid4(), uuid.uuid4())
        assert compute_signature_hash("A", *ids, NOW) == compute_signature_hash("A", *ids, NOW)

    def test_any_input_change_changes_hash(self):
        clinician_id, item_id = uuid.uuid4(), uuid.uuid4()
        base = compute_signature_hash("A", clinician_id, item_id, NOW)
        assert compute_signature_hash("B", clinician_id, item_id, NOW) != base
        assert compute_signature_hash("A", clinician_id, item_id, NOW + timedelta(seconds=1)) != base

    def test_hash_is_hex_sha256(self):
        digest = compute_signature_hash("A", uuid.uuid4(), uuid.uuid4(), NOW)
        assert len(digest) == 64
        int(digest, 16)


class TestSignatureReceipt:

    def _item(self):
        return SimpleNamespace(
            id=uuid.uuid4(),
            clinician_id=uuid.uuid4(),
            organization_id=uuid.uuid4(),
            signer_name="Dana Reyes",
            signer_ip="203.0.113.9",
            signature_timestamp=NOW,
            signature_hash="ab" * 32,
        )

    def test_receipt_key_layout(self):
        item = self._item()
        assert receipt_key(item) == (
            f"signatures/{item.organization_id}/{item.clinician_id}/{item.id}.json"
        )

    def test_receipt_contains_signature_fields(self):
        item = self._item()
        definition = SimpleNamespace(
            label="Handbook",
            config_json={"agreementText": "I agree."},
            linked_document_path="documents/handbook.pdf",
        )
        receipt = json.loads(build_signature_receipt(item, definition))
        assert receipt["signer_name"] == "Dana Reyes"
        assert receipt["signature_hash"] == "ab" * 32
        assert receipt["signature_timestamp"] == NOW.isoformat()
        assert receipt["agreement_text"] == "I agree."
        assert receipt["linked_document"] == "documents/handbook.pdf"


class TestSummarizeProgress:

    def test_counts(self):
        items = [
            make_item(S.APPROVED),
            make_item(S.APPROVED, label="CPR"),
            make_item(S.SUBMITTED, label="TB"),
            make_item(S.PENDING_REVIEW, label="Flu", blocking=False),
            make_item(S.REJECTED, label="Refs", blocking=False, required=False),
            make_item(S.EXPIRED, label="License"),
            make_item(S.NOT_STARTED, label="Handbook", blocking=False),
        ]
        progress = summarize_progress(items)
        assert progress.total == 7
        assert progress.approved == 2
        assert progress.submitted == 2
        assert progress.rejected == 1
        assert progress.expired == 1
        assert progress.not_started == 1
        assert progress.required_total == 6
        assert progress.required_approved == 2
        assert progress.blocking_total == 4
        assert progress.blocking_approved == 2
        assert progress.percentage == 29

    def test_empty(self):
        progress = summarize_progress([])
        assert progress.total == 0
        assert progress.percentage == 0
