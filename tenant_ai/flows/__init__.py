"""
Flows Module
Declarative conversation flows and the engine that walks them
"""

from .flow_definitions import (
    ALWAYS,
    COMPLETED,
    FLOWS,
    Condition,
    ConditionKind,
    ContextPredicate,
    FlowDefinition,
    StateDefinition,
    Transition,
)
from .flow_engine import ConversationFlowEngine, flow_engine

__all__ = [
    "ALWAYS",
    "COMPLETED",
    "FLOWS",
    "Condition",
    "ConditionKind",
    "ContextPredicate",
    "FlowDefinition",
    "StateDefinition",
    "Transition",
    "ConversationFlowEngine",
    "flow_engine",
]
