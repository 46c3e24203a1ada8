"""Workflow package: LangGraph graphs, state, conditions, dispatch and task actions."""

from workflow.graph import (
    FLOWS,
    WorkflowResources,
    build_graph,
    resume_task,
    run_analysis,
    run_flow,
    run_generate,
    run_generate_from_outline,
)
from workflow.state import TaskWorkflowState
from workflow.conditions import route_after_step, route_after_error
from workflow.callbacks import WorkflowCallback, LoggingCallback, RichProgressCallback
from workflow.dispatch import TaskDispatcher
from workflow.tasks import (
    create_analysis_task,
    create_generation_task,
    get_active_task_count,
    get_task_status,
    list_user_tasks,
    select_chapters,
)

__all__ = [
    "FLOWS",
    "WorkflowResources",
    "build_graph",
    "resume_task",
    "run_analysis",
    "run_flow",
    "run_generate",
    "run_generate_from_outline",
    "TaskWorkflowState",
    "route_after_step",
    "route_after_error",
    "WorkflowCallback",
    "LoggingCallback",
    "RichProgressCallback",
    "TaskDispatcher",
    "create_analysis_task",
    "create_generation_task",
    "get_active_task_count",
    "get_task_status",
    "list_user_tasks",
    "select_chapters",
]
