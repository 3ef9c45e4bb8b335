"""Tests for utils/labels.py: enum parsing and display labels."""
import pytest

from utils.labels import (
    PaymentStatus,
    Recurring,
    TaskStatus,
    TaskType,
    parse_payment_status,
    parse_payment_status_or_pending,
    parse_recurring,
    parse_recurring_or_none,
    parse_task_category,
    parse_task_status,
    parse_task_type,
    payment_status_label,
    recurring_label,
    task_status_label,
    task_type_label,
)
from utils.strings import label_key


class TestLabelKey:
    def test_strips_separators_and_case(self):
        assert label_key(" In_Progress ") == "inprogress"
        assert label_key("IT-Notice") == "itnotice"

    def test_enum_uses_value(self):
        assert label_key(TaskType.CACertificate) == "cacertificate"

    def test_none(self):
        assert label_key(None) == ""


class TestParseTaskType:
    @pytest.mark.parametrize("text,expected", [
        ("GST", TaskType.GST),
        ("gst", TaskType.GST),
        ("IT Notice", TaskType.ITNotice),
        ("itnotice", TaskType.ITNotice),
        (" Form Filing ", TaskType.FormFiling),
        ("CA Certificate", TaskType.CACertificate),
        ("Others", TaskType.Other),
    ])
    def test_accepted(self, text, expected):
        assert parse_task_type(text) is expected

    def test_unknown_is_none(self):
        assert parse_task_type("Payroll") is None
        assert parse_task_type("") is None

    def test_category_falls_back_to_other(self):
        assert parse_task_category("Payroll") is TaskType.Other
        assert parse_task_category("Audit") is TaskType.Audit


class TestParseStatus:
    @pytest.mark.parametrize("text,expected", [
        ("Pending", TaskStatus.pending),
        ("in progress", TaskStatus.inProgress),
        ("INPROGRESS", TaskStatus.inProgress),
        ("Docs Pending", TaskStatus.docsPending),
        ("on hold", TaskStatus.hold),
        ("completed", TaskStatus.completed),
    ])
    def test_task_status(self, text, expected):
        assert parse_task_status(text) is expected

    def test_unknown_task_status(self):
        assert parse_task_status("Cancelled") is None

    def test_payment_status(self):
        assert parse_payment_status(" PAID ") is PaymentStatus.paid
        assert parse_payment_status("late") is None
        assert parse_payment_status_or_pending("") is PaymentStatus.pending

    def test_recurring(self):
        assert parse_recurring("Quarterly") is Recurring.quarterly
        assert parse_recurring("annual") is Recurring.yearly
        assert parse_recurring_or_none("weekly") is Recurring.none


class TestLabels:
    def test_round_trip_display(self):
        assert task_type_label("ITNotice") == "IT Notice"
        assert task_status_label("docsPending") == "Docs Pending"
        assert payment_status_label(PaymentStatus.overdue) == "Overdue"
        assert recurring_label("none") == "None"

    def test_unknown_passes_through(self):
        assert task_type_label("Payroll") == "Payroll"
        assert task_status_label(None) == ""
