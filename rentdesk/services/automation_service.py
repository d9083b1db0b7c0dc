"""
Automation Dispatcher

Matches a named event (booking.created, booking.checkin, scheduled.daily ...)
against the enabled Automation rules for that trigger and queues one job per
action of every rule whose conditions hold.

Conditions map a field of the event data to either a literal (equality) or
an ``{"operator": ..., "value": ...}`` pair. All conditions must hold.
A failing rule is reported in ``errors`` and never stops the other rules.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from ..errors import ValidationFailure
from ..models.audit_log import _serialize_for_json
from ..models.automation import Automation, ActionType, ConditionOperator, JobQueueName
from .job_queue import JobQueue

logger = logging.getLogger(__name__)


# Queue and job type for every built-in action
ACTION_ROUTES: Dict[ActionType, Tuple[JobQueueName, str]] = {
    ActionType.CREATE_CLEANING_TASK: (JobQueueName.AUTOMATIONS, "create_cleaning_task"),
    ActionType.SEND_EMAIL: (JobQueueName.EMAILS, "send_email"),
    ActionType.SEND_CHECKIN_EMAIL: (JobQueueName.AUTOMATIONS, "send_checkin_email"),
    ActionType.SEND_CHECKOUT_EMAIL: (JobQueueName.AUTOMATIONS, "send_checkout_email"),
    ActionType.CREATE_MAINTENANCE_REMINDER: (JobQueueName.AUTOMATIONS, "maintenance_reminder"),
}


@dataclass
class TriggerResult:
    triggered: int = 0
    errors: List[str] = field(default_factory=list)


def normalize_event_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Event data as JSON types: dates become ISO strings, decimals floats"""
    return _serialize_for_json(dict(data or {}))


def _compare(operator: ConditionOperator, actual: Any, expected: Any) -> bool:
    if operator == ConditionOperator.EQUALS:
        return actual == expected
    if operator == ConditionOperator.NOT_EQUALS:
        return actual != expected
    if operator == ConditionOperator.EXISTS:
        return actual is not None
    if operator == ConditionOperator.NOT_EXISTS:
        return actual is None
    if operator == ConditionOperator.CONTAINS:
        return isinstance(actual, str) and isinstance(expected, str) and expected in actual
    if operator == ConditionOperator.IN:
        return isinstance(expected, list) and actual in expected
    if operator == ConditionOperator.NOT_IN:
        return not (isinstance(expected, list) and actual in expected)

    # Ordered comparisons; mismatched types never match
    try:
        if operator == ConditionOperator.GREATER_THAN:
            return actual > expected
        if operator == ConditionOperator.LESS_THAN:
            return actual < expected
        if operator == ConditionOperator.GREATER_THAN_OR_EQUAL:
            return actual >= expected
        if operator == ConditionOperator.LESS_THAN_OR_EQUAL:
            return actual <= expected
    except TypeError:
        return False

    raise ValidationFailure(f"Unsupported condition operator: {operator}")


def parse_operator(raw: Any) -> ConditionOperator:
    try:
        return ConditionOperator(raw)
    except ValueError:
        raise ValidationFailure(f"Unknown condition operator: {raw}")


def parse_action_type(raw: Any) -> ActionType:
    try:
        return ActionType(raw)
    except ValueError:
        raise ValidationFailure(f"Unknown action type: {raw}")


def evaluate_conditions(conditions: Dict[str, Any], data: Dict[str, Any]) -> bool:
    """
    True when every condition holds for ``data``.

    No conditions (None or empty) always match. Raises ValidationFailure on
    an unknown operator.
    """
    if not conditions:
        return True

    for key, condition in conditions.items():
        actual = data.get(key)

        if isinstance(condition, dict) and "operator" in condition:
            operator = parse_operator(condition["operator"])
            if not _compare(operator, actual, condition.get("value")):
                return False
        elif actual != condition:
            return False

    return True


class AutomationDispatcher:
    """Evaluates rules for one trigger and enqueues their actions"""

    def __init__(self, db: Session, queue: JobQueue):
        self.db = db
        self.queue = queue

    def execute_action(self, action: Dict[str, Any], data: Dict[str, Any]):
        action_type = parse_action_type(action.get("type"))
        queue_name, job_type = ACTION_ROUTES[action_type]

        # Event data wins over rule params
        params = {**(action.get("params") or {}), **data}

        if action_type == ActionType.SEND_EMAIL:
            payload = {
                "to": params.get("to"),
                "subject": params.get("subject"),
                "template": params.get("template"),
                "data": params.get("data"),
            }
        else:
            payload = params

        return self.queue.enqueue(queue_name, job_type, payload)

    def trigger(self, trigger: str, data: Dict[str, Any]) -> TriggerResult:
        result = TriggerResult()
        data = normalize_event_data(data)

        try:
            automations = self.db.query(Automation).filter(
                Automation.trigger == trigger,
                Automation.enabled == True,  # noqa: E712
            ).order_by(Automation.created_at).all()
        except Exception as e:
            logger.error(f"Failed to load automations for {trigger}: {e}")
            result.errors.append(f"Failed to trigger automations: {e}")
            return result

        for automation in automations:
            try:
                if not evaluate_conditions(automation.conditions, data):
                    continue

                for action in automation.actions or []:
                    self.execute_action(action, data)

                result.triggered += 1
            except Exception as e:
                self.db.rollback()
                message = e.message if isinstance(e, ValidationFailure) else str(e)
                logger.warning(f"Automation {automation.name} failed on {trigger}: {message}")
                result.errors.append(f"Automation {automation.name}: {message}")

        if result.triggered or result.errors:
            logger.info(f"Trigger {trigger}: {result.triggered} fired, {len(result.errors)} errors")

        return result
