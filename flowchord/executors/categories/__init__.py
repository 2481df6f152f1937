"""Per-category execution strategies."""

from flowchord.executors.categories.action import ActionNodeExecutor, GoogleSheetsAction
from flowchord.executors.categories.ai_agent import AIAgentNodeExecutor
from flowchord.executors.categories.condition import ConditionNodeExecutor, fold_rows
from flowchord.executors.categories.trigger import TriggerNodeExecutor, build_form_output

__all__ = [
    "ActionNodeExecutor",
    "AIAgentNodeExecutor",
    "ConditionNodeExecutor",
    "GoogleSheetsAction",
    "TriggerNodeExecutor",
    "build_form_output",
    "fold_rows",
]
