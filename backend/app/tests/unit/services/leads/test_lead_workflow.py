"""Tests for the lead lifecycle workflow."""

from datetime import date, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from leadflow.models.enums import LeadStatus, NotificationKind, StaffRole
from leadflow.models.identity_models import Identity
from leadflow.repositories.records.crud.leads_crud import CRUDLead
from leadflow.repositories.records.models import CalendarEvent, Lead, LeadActivity
from leadflow.repositories.records.schemas.lead_schema import LeadCreate, LeadUpdate
from leadflow.services.errors import (
    LeadValidationError,
    NoEligibleAssigneeError,
    PermissionDeniedError,
    RecordNotFoundError,
)
from leadflow.services.leads.lead_workflow import LEAD_CREATED, describe_changes

ADMIN = Identity(id="admin-1", role=StaffRole.ADMIN, name="Admin")


def as_identity(staff) -> Identity:
    return Identity(id=staff.id, role=staff.role, name=staff.full_name)


def activity_texts(db, lead_id):
    return [
        entry.activity_description
        for entry in db.query(LeadActivity)
        .filter(LeadActivity.lead_id == lead_id)
        .order_by(LeadActivity.id)
    ]


def sent_kinds(notifier):
    return [call.args[0] for call in notifier.send.call_args_list]


class TestCreateLead:
    def test_admin_without_assignee_and_nobody_online_is_rejected(
        self, db, workflow, make_staff, notifier
    ) -> None:
        make_staff("Somchai", online=False)

        with pytest.raises(NoEligibleAssigneeError):
            workflow.create_lead(db, LeadCreate(name="Ploy", phone="0812345678"), ADMIN)

        assert db.query(Lead).count() == 0
        notifier.send.assert_not_called()

    def test_admin_without_assignee_gets_least_loaded_online_sales(
        self, db, workflow, make_staff, make_lead
    ) -> None:
        busy = make_staff("Anan", online=True)
        free = make_staff("Boon", online=True)
        make_lead(assigned_to=busy.id)

        lead = workflow.create_lead(db, LeadCreate(name="Ploy", phone="0812345678"), ADMIN)

        assert lead.assigned_to == free.id

    def test_ties_are_broken_by_name(self, db, workflow, make_staff) -> None:
        make_staff("Boon", online=True)
        anan = make_staff("Anan", online=True)

        lead = workflow.create_lead(db, LeadCreate(name="Ploy", phone="0812345678"), ADMIN)

        assert lead.assigned_to == anan.id

    def test_explicit_offline_assignee_is_accepted(self, db, workflow, make_staff) -> None:
        offline = make_staff("Nok", online=False)

        lead = workflow.create_lead(
            db,
            LeadCreate(name="Ploy", phone="0812345678", assigned_to=offline.id),
            ADMIN,
        )

        assert lead.assigned_to == offline.id

    def test_unknown_explicit_assignee_is_rejected(self, db, workflow) -> None:
        with pytest.raises(LeadValidationError):
            workflow.create_lead(
                db,
                LeadCreate(name="Ploy", phone="0812345678", assigned_to="ghost"),
                ADMIN,
            )
        assert db.query(Lead).count() == 0

    def test_sales_without_assignee_self_assigns(self, db, workflow, make_staff) -> None:
        sales = make_staff("Nok", online=False)

        lead = workflow.create_lead(
            db, LeadCreate(name="Ploy", phone="0812345678"), as_identity(sales)
        )

        assert lead.assigned_to == sales.id

    def test_after_care_without_assignee_stays_pooled(self, db, workflow, make_staff) -> None:
        care = make_staff("Care Desk", role=StaffRole.AFTER_CARE)

        lead = workflow.create_lead(
            db, LeadCreate(name="Ploy", phone="0812345678"), as_identity(care)
        )

        assert lead.assigned_to is None

    def test_create_logs_entry_and_notifies(self, db, workflow, make_staff, notifier) -> None:
        make_staff("Somchai", online=True)

        lead = workflow.create_lead(
            db, LeadCreate(name="Ploy", phone="0812345678", value="1,500"), ADMIN
        )

        assert lead.value == 1500.0
        assert lead.last_update_date is not None
        entries = db.query(LeadActivity).filter(LeadActivity.lead_id == lead.id).all()
        assert [e.activity_description for e in entries] == [LEAD_CREATED]
        assert entries[0].user_name == "Admin"
        notifier.send.assert_called_once()
        kind, payload = notifier.send.call_args.args
        assert kind == NotificationKind.NEW_LEAD
        assert payload["lead_name"] == "Ploy"
        assert payload["assignee"] == "Somchai"

    def test_invalid_value_is_stored_as_zero(self, db, workflow, make_staff) -> None:
        make_staff("Somchai", online=True)

        lead = workflow.create_lead(
            db, LeadCreate(name="Ploy", phone="0812345678", value="call me"), ADMIN
        )

        assert lead.value == 0.0


class TestUpdateLead:
    def test_status_change_appends_one_diff_entry(
        self, db, workflow, make_staff, make_lead, notifier
    ) -> None:
        sales = make_staff("Nok")
        lead = make_lead(assigned_to=sales.id)

        updated = workflow.update_lead(
            db, lead.id, LeadUpdate(status=LeadStatus.CONTACTED), as_identity(sales)
        )

        assert updated.status == LeadStatus.CONTACTED
        assert updated.last_update_date is not None
        assert activity_texts(db, lead.id) == ['Status changed to "contacted"']
        assert sent_kinds(notifier) == [NotificationKind.UPDATE_STATUS]
        payload = notifier.send.call_args.args[1]
        assert payload["status"] == "contacted"
        assert payload["phone"] == "0812345678"

    def test_status_and_assignee_change_share_one_entry(
        self, db, workflow, make_staff, make_lead
    ) -> None:
        old = make_staff("Nok")
        new = make_staff("Somchai")
        lead = make_lead(assigned_to=old.id)

        workflow.update_lead(
            db,
            lead.id,
            LeadUpdate(status=LeadStatus.FOLLOW_UP, assigned_to=new.id),
            ADMIN,
        )

        assert activity_texts(db, lead.id) == [
            'Status changed to "follow_up", Assigned to "Somchai"'
        ]

    def test_other_fields_do_not_touch_the_trail(
        self, db, workflow, make_staff, make_lead, notifier
    ) -> None:
        sales = make_staff("Nok")
        lead = make_lead(assigned_to=sales.id)

        updated = workflow.update_lead(
            db, lead.id, LeadUpdate(notes="Prefers LINE"), as_identity(sales)
        )

        assert updated.notes == "Prefers LINE"
        assert updated.last_update_date is not None
        assert activity_texts(db, lead.id) == []
        notifier.send.assert_not_called()

    def test_same_status_is_not_a_change(self, db, workflow, make_staff, make_lead) -> None:
        sales = make_staff("Nok")
        lead = make_lead(assigned_to=sales.id, status=LeadStatus.CONTACTED)

        workflow.update_lead(
            db, lead.id, LeadUpdate(status=LeadStatus.CONTACTED), as_identity(sales)
        )

        assert activity_texts(db, lead.id) == []

    def test_unknown_assignee_is_rejected(self, db, workflow, make_lead) -> None:
        lead = make_lead()

        with pytest.raises(LeadValidationError):
            workflow.update_lead(db, lead.id, LeadUpdate(assigned_to="ghost"), ADMIN)

        assert activity_texts(db, lead.id) == []

    def test_sales_cannot_touch_someone_elses_lead(
        self, db, workflow, make_staff, make_lead
    ) -> None:
        owner = make_staff("Nok")
        other = make_staff("Somchai")
        lead = make_lead(assigned_to=owner.id)

        with pytest.raises(PermissionDeniedError):
            workflow.update_lead(
                db, lead.id, LeadUpdate(status=LeadStatus.LOST), as_identity(other)
            )

    def test_unknown_lead(self, db, workflow) -> None:
        with pytest.raises(RecordNotFoundError):
            workflow.update_lead(db, 999, LeadUpdate(status=LeadStatus.LOST), ADMIN)

    def test_terminal_status_can_be_corrected(self, db, workflow, make_lead) -> None:
        lead = make_lead(status=LeadStatus.LOST)

        updated = workflow.update_lead(
            db, lead.id, LeadUpdate(status=LeadStatus.CONTACTED), ADMIN
        )

        assert updated.status == LeadStatus.CONTACTED

    def test_racing_writes_each_leave_an_entry(
        self, session_factory, workflow, make_lead
    ) -> None:
        lead_id = make_lead().id
        first = session_factory()
        second = session_factory()
        try:
            # second session holds a stale copy while the first one writes
            first.get(Lead, lead_id)
            second.get(Lead, lead_id)

            workflow.update_lead(first, lead_id, LeadUpdate(status=LeadStatus.CONTACTED), ADMIN)
            workflow.update_lead(second, lead_id, LeadUpdate(status=LeadStatus.FOLLOW_UP), ADMIN)

            first.expire_all()
            assert first.get(Lead, lead_id).status == LeadStatus.FOLLOW_UP
            assert activity_texts(first, lead_id) == [
                'Status changed to "contacted"',
                'Status changed to "follow_up"',
            ]
        finally:
            first.close()
            second.close()


class TestLogContact:
    def test_status_and_note_in_one_entry(self, db, workflow, make_staff, make_lead) -> None:
        sales = make_staff("Nok")
        lead = make_lead(assigned_to=sales.id)

        workflow.log_contact(
            db, lead.id, LeadStatus.CONTACTED, "Wants a quote", as_identity(sales)
        )

        assert activity_texts(db, lead.id) == [
            'Status changed to "contacted". Note: Wants a quote'
        ]

    def test_note_without_status_change(
        self, db, workflow, make_staff, make_lead, notifier
    ) -> None:
        sales = make_staff("Nok")
        lead = make_lead(assigned_to=sales.id, status=LeadStatus.CONTACTED)

        workflow.log_contact(db, lead.id, LeadStatus.CONTACTED, "No answer", as_identity(sales))

        assert activity_texts(db, lead.id) == ["Note: No answer"]
        assert sent_kinds(notifier) == [NotificationKind.UPDATE_STATUS]


class TestDeleteLead:
    def test_only_admins_delete(self, db, workflow, make_staff, make_lead) -> None:
        sales = make_staff("Nok")
        lead = make_lead(assigned_to=sales.id)

        with pytest.raises(PermissionDeniedError):
            workflow.delete_lead(db, lead.id, as_identity(sales))

        assert db.query(Lead).count() == 1

    def test_notification_goes_out_before_removal(
        self, db, workflow, make_lead, notifier
    ) -> None:
        lead = make_lead(name="Ploy")
        seen = {}

        def record(kind, payload):
            seen["rows"] = db.query(Lead).count()
            seen["payload"] = payload
            return True

        notifier.send.side_effect = record

        workflow.delete_lead(db, lead.id, ADMIN)

        assert notifier.send.call_args.args[0] == NotificationKind.DELETE_LEAD
        assert seen["rows"] == 1
        assert seen["payload"]["lead_name"] == "Ploy"
        assert db.query(Lead).count() == 0

    def test_removes_trail_and_appointments(self, db, workflow, make_staff, make_lead) -> None:
        sales = make_staff("Nok")
        lead = make_lead(assigned_to=sales.id)
        workflow.confirm_sale(db, lead.id, date(2024, 3, 10), as_identity(sales))

        workflow.delete_lead(db, lead.id, ADMIN)

        assert db.query(LeadActivity).count() == 0
        assert db.query(CalendarEvent).count() == 0

    def test_store_failure_propagates_after_notification(
        self, db, workflow, make_lead, notifier
    ) -> None:
        lead = make_lead()

        with patch.object(CRUDLead, "delete", side_effect=SQLAlchemyError("locked")):
            with pytest.raises(SQLAlchemyError):
                workflow.delete_lead(db, lead.id, ADMIN)

        assert sent_kinds(notifier) == [NotificationKind.DELETE_LEAD]

    def test_notification_failure_does_not_block_delete(
        self, db, workflow, make_lead, notifier
    ) -> None:
        lead = make_lead()
        notifier.send.side_effect = RuntimeError("boom")

        workflow.delete_lead(db, lead.id, ADMIN)

        assert db.query(Lead).count() == 0

    def test_unknown_lead(self, db, workflow, notifier) -> None:
        with pytest.raises(RecordNotFoundError):
            workflow.delete_lead(db, 404, ADMIN)
        notifier.send.assert_not_called()


class TestReassignAndSale:
    def test_reassign_moves_to_other_online_sales(
        self, db, workflow, make_staff, make_lead
    ) -> None:
        current = make_staff("Anan", online=True)
        other = make_staff("Boon", online=True)
        lead = make_lead(assigned_to=current.id)

        updated = workflow.reassign_lead(db, lead.id, ADMIN)

        assert updated.assigned_to == other.id
        assert activity_texts(db, lead.id) == ['Assigned to "Boon"']

    def test_reassign_without_candidates(self, db, workflow, make_staff, make_lead) -> None:
        current = make_staff("Anan", online=True)
        make_staff("Boon", online=False)
        lead = make_lead(assigned_to=current.id)

        with pytest.raises(NoEligibleAssigneeError):
            workflow.reassign_lead(db, lead.id, ADMIN)

    def test_confirm_sale_wins_lead_and_books_follow_ups(
        self, db, workflow, make_staff, make_lead
    ) -> None:
        sales = make_staff("Nok")
        lead = make_lead(name="Ploy", assigned_to=sales.id, status=LeadStatus.CONTACTED)

        updated, events = workflow.confirm_sale(
            db, lead.id, date(2024, 3, 10), as_identity(sales)
        )

        assert updated.status == LeadStatus.WON
        assert activity_texts(db, lead.id) == ['Status changed to "won"']
        assert len(events) == 5
        assert {event.salesperson_id for event in events} == {sales.id}
        assert events[0].title == "1-day follow-up - Ploy"


class TestReads:
    def test_listing_is_scoped_by_role(self, db, workflow, make_staff, make_lead) -> None:
        nok = make_staff("Nok")
        care = make_staff("Care Desk", role=StaffRole.AFTER_CARE)
        now = datetime(2024, 5, 1, 8, 0)
        own = make_lead(name="Own", assigned_to=nok.id, created_at=now)
        pooled = make_lead(name="Pooled", created_at=now + timedelta(minutes=1))
        make_lead(name="Care", assigned_to=care.id, created_at=now + timedelta(minutes=2))

        assert [lead.name for lead in workflow.list_leads(db, ADMIN)] == ["Care", "Pooled", "Own"]
        assert [lead.id for lead in workflow.list_leads(db, as_identity(nok))] == [own.id]
        assert [lead.name for lead in workflow.list_leads(db, as_identity(care))] == ["Care", "Pooled"]
        assert pooled.assigned_to is None

    def test_pending_count(self, db, workflow, make_staff, make_lead) -> None:
        nok = make_staff("Nok")
        make_lead(assigned_to=nok.id, status=LeadStatus.NEW)
        make_lead(assigned_to=nok.id, status=LeadStatus.UNCALLED)
        make_lead(assigned_to=nok.id, status=LeadStatus.CONTACTED)

        assert workflow.pending_count(db, as_identity(nok)) == 2


def test_describe_changes_ignores_untracked_fields() -> None:
    before = {"status": LeadStatus.NEW, "assigned_to": "a", "notes": "x"}
    after = {"status": LeadStatus.NEW, "assigned_to": "a", "notes": "y"}

    assert describe_changes(before, after) is None


def test_describe_changes_unassigned() -> None:
    before = {"status": LeadStatus.NEW, "assigned_to": "a"}
    after = {"status": LeadStatus.NEW, "assigned_to": None}

    assert describe_changes(before, after) == "Unassigned"
