"""
Encode job orchestration: submit one job against a region and wait for it.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from .assets import Asset, AssetCreationOptions
from .errors import JobTimeout
from .job_tracker import Job, StateTransition, Task
from .logging_config import log_state_transition

logger = logging.getLogger(__name__)

TransitionListener = Callable[[StateTransition], None]

ENCODER_TASK_NAME = "Encoder Task"


def output_asset_name(asset_name: str, profile: str) -> str:
    return f"{asset_name} {profile}"


def log_transition(transition: StateTransition) -> None:
    log_state_transition(logger, transition.job_id, transition.region, transition.previous.value, transition.current.value)


class JobOrchestrator:
    """Submits encode jobs and blocks until they are terminal.

    Every state change is delivered in order to the listeners before the
    wait continues. The wait is bounded by `timeout_seconds` and can be
    interrupted through a cancellation event, which asks the region to
    cancel the job and keeps waiting for the canceled state.
    """

    def __init__(self, encoder_name: str, poll_seconds: float = 5.0, timeout_seconds: float = 4 * 3600,
                 listeners: Optional[List[TransitionListener]] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.encoder_name = encoder_name
        self.poll_seconds = poll_seconds
        self.timeout_seconds = timeout_seconds
        self.listeners = list(listeners) if listeners is not None else [log_transition]
        self._sleep = sleep

    def add_listener(self, listener: TransitionListener) -> None:
        self.listeners.append(listener)

    def _notify(self, transition: StateTransition) -> None:
        for listener in self.listeners:
            listener(transition)

    def submit(self, asset: Asset, profile: str, region, cancel_event: Optional[threading.Event] = None,
               timeout: Optional[float] = None) -> Job:
        """Encode `asset` with `profile` in `region` and return the terminal job"""
        processor = region.processors.latest(self.encoder_name)
        output = region.assets.create(output_asset_name(asset.name, profile), AssetCreationOptions.NONE)

        task = Task(
            name=ENCODER_TASK_NAME,
            processor_id=processor.processor_id,
            configuration=profile,
            input_asset_ids=[asset.asset_id],
            output_asset_ids=[output.asset_id],
        )
        job = region.jobs.submit(Job.new(f"Encoding {asset.name}", region.name, [task]))
        return self.wait(job, region, cancel_event=cancel_event, timeout=timeout)

    def _pause(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and not cancel_event.is_set():
            cancel_event.wait(self.poll_seconds)
        else:
            self._sleep(self.poll_seconds)

    def wait(self, job: Job, region, cancel_event: Optional[threading.Event] = None,
             timeout: Optional[float] = None) -> Job:
        timeout = self.timeout_seconds if timeout is None else timeout
        deadline = time.monotonic() + timeout
        seen = len(job.state_history)
        cancel_requested = False

        while True:
            current = region.jobs.get(job.job_id)
            for transition in current.transitions(seen):
                self._notify(transition)
            seen = max(seen, len(current.state_history))

            if current.state.is_terminal:
                if current.error_message:
                    logger.warning(f"Job {current.job_id} ended {current.state.value}: {current.error_message}")
                else:
                    logger.info(f"Job {current.job_id} is {current.state.value}")
                return current

            if cancel_event is not None and cancel_event.is_set() and not cancel_requested:
                region.jobs.request_cancel(job.job_id)
                cancel_requested = True
                continue

            if time.monotonic() >= deadline:
                region.jobs.request_cancel(job.job_id)
                raise JobTimeout(job.job_id, timeout)

            self._pause(cancel_event)
