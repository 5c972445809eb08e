import uuid
from typing import Any, List, Optional

from src.csv_agent.core.conditions import check_condition
from src.csv_agent.models import ConditionalFormatRule, ConditionalFormatStep, FormattingColor


def rule_from_step(step: ConditionalFormatStep) -> ConditionalFormatRule:
    return ConditionalFormatRule(
        id=uuid.uuid4().hex,
        column=step.column,
        condition=step.condition,
        value=step.value,
        color=step.color,
    )


def remove_rule(rules: List[ConditionalFormatRule], rule_id: str) -> List[ConditionalFormatRule]:
    return [rule for rule in rules if rule.id != rule_id]


def cell_color(value: Any, column: str, rules: List[ConditionalFormatRule]) -> Optional[FormattingColor]:
    """Color of the first rule on `column` that the cell satisfies, if any."""
    for rule in rules:
        if rule.column == column and check_condition(value, rule.condition, rule.value):
            return rule.color
    return None
