"""Bounded background execution of task workflows.

Generation runs (single-shot and from-outline) share one ceiling, or one
ceiling per plan tier when ``partition_concurrency_by_plan`` is set.
Analysis is cheaper and gets its own, looser ceiling.
"""

import asyncio
import logging
from typing import Optional

from models.enums import UserPlan
from workflow.graph import WorkflowResources, run_flow

logger = logging.getLogger(__name__)

_SHARED_KEY = "*"


class TaskDispatcher:
    """Runs task workflows under global concurrency ceilings."""

    def __init__(self, resources: Optional[WorkflowResources] = None):
        self.resources = resources or WorkflowResources()
        settings = self.resources.settings
        self._generation_limit = settings.generation_concurrency
        self._partition = settings.partition_concurrency_by_plan
        self._generation: dict[str, asyncio.Semaphore] = {}
        self._analysis = asyncio.Semaphore(settings.analysis_concurrency)
        self._submitted: set[asyncio.Task] = set()

    def _generation_slot(self, plan: UserPlan) -> asyncio.Semaphore:
        key = plan.value if self._partition else _SHARED_KEY
        if key not in self._generation:
            self._generation[key] = asyncio.Semaphore(self._generation_limit)
        return self._generation[key]

    def _slot_for(self, flow: str, task_id: str) -> asyncio.Semaphore:
        if flow == "analyze":
            return self._analysis
        task = self.resources.db.require_task(task_id)
        return self._generation_slot(task.user_plan)

    async def _run(self, flow: str, task_id: str, callback=None) -> dict:
        slot = self._slot_for(flow, task_id)
        async with slot:
            logger.debug("Task %s acquired a %s slot", task_id, flow)
            return await run_flow(flow, task_id, self.resources, callback)

    async def run_generate(self, task_id: str, callback=None) -> dict:
        return await self._run("generate", task_id, callback)

    async def run_analysis(self, task_id: str, callback=None) -> dict:
        return await self._run("analyze", task_id, callback)

    async def run_generate_from_outline(self, task_id: str, callback=None) -> dict:
        return await self._run("generate_from_outline", task_id, callback)

    def submit(self, flow: str, task_id: str, callback=None) -> asyncio.Task:
        """Start a flow in the background; must be called from a running loop."""
        job = asyncio.create_task(self._run(flow, task_id, callback), name=f"{flow}:{task_id}")
        self._submitted.add(job)
        job.add_done_callback(self._submitted.discard)
        return job

    @property
    def pending(self) -> int:
        return len(self._submitted)

    async def gather(self) -> list:
        """Wait for every submitted run. Failed runs appear as exception objects."""
        jobs = list(self._submitted)
        results = await asyncio.gather(*jobs, return_exceptions=True)
        for job, result in zip(jobs, results):
            if isinstance(result, BaseException):
                logger.error("Background run %s raised: %s", job.get_name(), result)
        return results
