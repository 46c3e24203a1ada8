"""Conditional routing functions for the LangGraph workflows."""

from workflow.state import TaskWorkflowState


def route_after_step(state: TaskWorkflowState) -> str:
    """Route after a regular node: on to the next node, or into error handling."""
    if state.get("error"):
        return "handle_error"
    return "next"


def route_after_error(state: TaskWorkflowState) -> str:
    """Route after handle_error: re-enter the failed node, or stop."""
    if state.get("should_stop", True):
        return "__end__"
    return state.get("last_node") or "__end__"
