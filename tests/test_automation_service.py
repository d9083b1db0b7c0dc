"""
Tests for automation rule evaluation and dispatch

Test Coverage:
1. Every condition operator, including type mismatches
2. Action routing covers every action type
3. Trigger: only enabled rules for the trigger fire, failures are isolated
4. Event data wins over rule params; send_email payload shape
"""

from datetime import date
from decimal import Decimal

import pytest

from rentdesk.errors import ValidationFailure
from rentdesk.models.automation import (
    ActionType, Automation, AutomationJob, ConditionOperator, JobQueueName,
)
from rentdesk.services.automation_service import (
    ACTION_ROUTES,
    AutomationDispatcher,
    evaluate_conditions,
    normalize_event_data,
)
from rentdesk.services.job_queue import JobProcessor, JobQueue


def cond(operator, value=None):
    return {"operator": operator, "value": value}


class TestConditions:

    @pytest.mark.parametrize("conditions", [None, {}])
    def test_no_conditions_always_match(self, conditions):
        assert evaluate_conditions(conditions, {"nights": 1})

    def test_literal_means_equals(self):
        assert evaluate_conditions({"channel": "airbnb"}, {"channel": "airbnb"})
        assert not evaluate_conditions({"channel": "airbnb"}, {"channel": "direct"})

    @pytest.mark.parametrize("operator,expected,actual,result", [
        ("equals", 3, 3, True),
        ("notEquals", 3, 4, True),
        ("greaterThan", 3, 4, True),
        ("greaterThan", 3, 3, False),
        ("lessThan", 3, 2, True),
        ("greaterThanOrEqual", 3, 3, True),
        ("lessThanOrEqual", 3, 4, False),
        ("contains", "VIP", "VIP guest, late arrival", True),
        ("contains", "VIP", None, False),
        ("in", ["airbnb", "booking_com"], "airbnb", True),
        ("in", ["airbnb", "booking_com"], "direct", False),
        ("notIn", ["airbnb"], "direct", True),
        ("notIn", ["airbnb"], "airbnb", False),
    ])
    def test_operators(self, operator, expected, actual, result):
        assert evaluate_conditions({"field": cond(operator, expected)}, {"field": actual}) is result

    def test_exists_and_not_exists(self):
        assert evaluate_conditions({"unitId": cond("exists")}, {"unitId": "u-1"})
        assert not evaluate_conditions({"unitId": cond("exists")}, {})
        assert evaluate_conditions({"unitId": cond("notExists")}, {"unitId": None})

    def test_in_with_non_list_value(self):
        assert not evaluate_conditions({"channel": cond("in", "airbnb")}, {"channel": "airbnb"})
        assert evaluate_conditions({"channel": cond("notIn", "airbnb")}, {"channel": "airbnb"})

    def test_ordered_comparison_type_mismatch_never_matches(self):
        assert not evaluate_conditions({"nights": cond("greaterThan", 2)}, {"nights": "five"})
        assert not evaluate_conditions({"nights": cond("lessThan", 2)}, {})

    def test_all_conditions_must_hold(self):
        conditions = {"nights": cond("greaterThanOrEqual", 3), "channel": "airbnb"}
        assert evaluate_conditions(conditions, {"nights": 4, "channel": "airbnb"})
        assert not evaluate_conditions(conditions, {"nights": 4, "channel": "direct"})

    def test_unknown_operator_is_rejected(self):
        with pytest.raises(ValidationFailure):
            evaluate_conditions({"nights": cond("between", [1, 3])}, {"nights": 2})


def test_every_action_type_has_a_route():
    assert set(ACTION_ROUTES) == set(ActionType)
    for queue, job_type in ACTION_ROUTES.values():
        assert isinstance(queue, JobQueueName)


def test_every_routed_job_has_a_handler(db):
    processor = JobProcessor(db)
    for _, job_type in ACTION_ROUTES.values():
        assert job_type in processor.handlers


def test_event_data_is_normalized():
    data = normalize_event_data({
        "checkinDate": date(2026, 4, 1),
        "totalAmount": Decimal("400.50"),
        "nights": 3,
    })
    assert data == {"checkinDate": "2026-04-01", "totalAmount": 400.5, "nights": 3}


def add_rule(db, name, trigger="booking.created", conditions=None, actions=None, enabled=True):
    rule = Automation(
        name=name,
        trigger=trigger,
        conditions=conditions,
        actions=actions if actions is not None else [{"type": "create_cleaning_task", "params": {}}],
        enabled=enabled,
    )
    db.add(rule)
    db.commit()
    return rule


class TestDispatcher:

    @pytest.fixture
    def dispatcher(self, db):
        return AutomationDispatcher(db, JobQueue(db))

    def test_matching_rules_enqueue_jobs(self, db, dispatcher):
        add_rule(db, "Long stays", conditions={"nights": cond("greaterThanOrEqual", 3)})
        add_rule(db, "Short stays", conditions={"nights": cond("lessThan", 3)})
        add_rule(db, "Disabled", enabled=False)
        add_rule(db, "Other trigger", trigger="booking.checkout")

        result = dispatcher.trigger("booking.created", {"bookingId": "b-1", "nights": 5})

        assert result.triggered == 1
        assert result.errors == []
        jobs = db.query(AutomationJob).all()
        assert [(j.queue, j.job_type) for j in jobs] == [("automations", "create_cleaning_task")]
        assert jobs[0].payload["bookingId"] == "b-1"

    def test_no_rules_is_a_no_op(self, db, dispatcher):
        result = dispatcher.trigger("scheduled.daily", {"date": "2026-03-15"})
        assert result.triggered == 0
        assert result.errors == []
        assert db.query(AutomationJob).count() == 0

    def test_failing_rule_does_not_stop_others(self, db, dispatcher):
        add_rule(db, "Broken action", actions=[{"type": "launch_rocket", "params": {}}])
        add_rule(db, "Broken condition", conditions={"nights": cond("between", 1)})
        add_rule(db, "Healthy")

        result = dispatcher.trigger("booking.created", {"bookingId": "b-1", "nights": 2})

        assert result.triggered == 1
        assert len(result.errors) == 2
        assert any(e.startswith("Automation Broken action:") and "launch_rocket" in e for e in result.errors)
        assert any(e.startswith("Automation Broken condition:") for e in result.errors)
        assert db.query(AutomationJob).count() == 1

    def test_event_data_overrides_params(self, db, dispatcher):
        add_rule(db, "Cleaner", actions=[
            {"type": "create_cleaning_task", "params": {"cleanerId": "c-1", "bookingId": "stale"}},
        ])

        dispatcher.trigger("booking.created", {"bookingId": "b-9"})

        job = db.query(AutomationJob).one()
        assert job.payload == {"cleanerId": "c-1", "bookingId": "b-9"}

    def test_send_email_payload(self, db, dispatcher):
        add_rule(db, "Welcome", actions=[{
            "type": "send_email",
            "params": {"to": "guest@example.com", "subject": "Welcome", "template": "welcome", "data": {"x": 1}},
        }])

        dispatcher.trigger("booking.created", {"bookingId": "b-1"})

        job = db.query(AutomationJob).one()
        assert job.queue == JobQueueName.EMAILS.value
        assert job.job_type == "send_email"
        assert job.payload == {"to": "guest@example.com", "subject": "Welcome", "template": "welcome", "data": {"x": 1}}

    def test_rule_with_several_actions_counts_once(self, db, dispatcher):
        add_rule(db, "Checkout", trigger="booking.checkout", actions=[
            {"type": "create_cleaning_task", "params": {}},
            {"type": "send_checkout_email", "params": {}},
        ])

        result = dispatcher.trigger("booking.checkout", {"bookingId": "b-1"})

        assert result.triggered == 1
        assert sorted(j.job_type for j in db.query(AutomationJob).all()) == [
            "create_cleaning_task", "send_checkout_email",
        ]


def test_operator_enum_lists_supported_operators():
    assert {op.value for op in ConditionOperator} == {
        "equals", "notEquals", "greaterThan", "lessThan", "greaterThanOrEqual",
        "lessThanOrEqual", "contains", "in", "notIn", "exists", "notExists",
    }
