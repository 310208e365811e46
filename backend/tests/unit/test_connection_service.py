"""Tests for ConnectionService."""

import pytest

from models import BrokerConnection
from models.broker_connection import CONNECTED_CREDENTIAL, PENDING_CREDENTIAL
from services.connection_service import DEFAULT_BROKER_ID, ConnectionService


@pytest.fixture
def service():
    return ConnectionService()


class TestRecordPending:
    def test_creates_inactive_pending_row(self, db, service):
        conn = service.record_pending(db, "u1", "robinhood")

        stored = db.query(BrokerConnection).one()
        assert stored.id == conn.id
        assert stored.user_id == "u1"
        assert stored.broker_id == "robinhood"
        assert stored.status == "pending"
        assert stored.is_active is False
        assert stored.api_key == PENDING_CREDENTIAL
        assert stored.api_secret_encrypted == PENDING_CREDENTIAL
        assert "connection_started" in stored.broker_data

    def test_defaults_broker_id(self, db, service):
        conn = service.record_pending(db, "u1")
        assert conn.broker_id == DEFAULT_BROKER_ID

    def test_committed_immediately(self, db, service):
        conn = service.record_pending(db, "u1")
        db.rollback()
        assert db.get(BrokerConnection, conn.id) is not None


class TestFindPending:
    def test_finds_by_id_and_user(self, db, service):
        conn = service.record_pending(db, "u1")
        assert service.find_pending(db, conn.id, "u1").id == conn.id

    def test_other_user_does_not_match(self, db, service):
        conn = service.record_pending(db, "u1")
        assert service.find_pending(db, conn.id, "u2") is None

    def test_missing_id(self, db, service):
        service.record_pending(db, "u1")
        assert service.find_pending(db, None, "u1") is None
        assert service.find_pending(db, "nope", "u1") is None

    def test_finished_connection_is_not_pending(self, db, service):
        conn = service.record_pending(db, "u1")
        service.mark_active(db, conn)
        assert service.find_pending(db, conn.id, "u1") is None


class TestTransitions:
    def test_mark_active_updates_in_place(self, db, service):
        conn = service.record_pending(db, "u1", "etrade")

        service.mark_active(db, conn)

        rows = db.query(BrokerConnection).all()
        assert len(rows) == 1
        assert rows[0].status == "active"
        assert rows[0].is_active is True
        assert rows[0].api_key == CONNECTED_CREDENTIAL
        assert rows[0].broker_id == "etrade"
        assert "connection_started" in rows[0].broker_data
        assert "connected_at" in rows[0].broker_data

    def test_mark_failed_records_code(self, db, service):
        conn = service.record_pending(db, "u1")

        service.mark_failed(db, conn, "service_unavailable")

        assert conn.status == "failed"
        assert conn.is_active is False
        assert conn.broker_data["failure_code"] == "service_unavailable"
        assert "failed_at" in conn.broker_data

    def test_active_cannot_fail(self, db, service):
        conn = service.record_pending(db, "u1")
        service.mark_active(db, conn)

        with pytest.raises(ValueError, match="from active to failed"):
            service.mark_failed(db, conn, "sync_failed")

    def test_failed_cannot_activate(self, db, service):
        conn = service.record_pending(db, "u1")
        service.mark_failed(db, conn, "sync_failed")

        with pytest.raises(ValueError, match="from failed to active"):
            service.mark_active(db, conn)


class TestRecordConnected:
    def test_inserts_active_row(self, db, service):
        conn = service.record_connected(db, "u1")

        assert conn.status == "active"
        assert conn.is_active is True
        assert conn.broker_id == DEFAULT_BROKER_ID
        assert conn.api_key == CONNECTED_CREDENTIAL
