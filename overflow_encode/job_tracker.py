#!/usr/bin/env python3
"""
Job tracking for encode jobs
Uses DynamoDB for job records and SQS to hand jobs to the region's encode workers
"""

import json
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from enum import Enum
import logging

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from .errors import InvalidStateTransition, JobNotFound
from .retry import NO_RETRY, RetryPolicy

logger = logging.getLogger(__name__)


class JobState(Enum):
    """Job state enumeration"""
    QUEUED = "queued"
    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    FINISHED = "finished"
    ERROR = "error"
    CANCELED = "canceled"
    CANCELING = "canceling"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATES


TERMINAL_STATES = frozenset({JobState.FINISHED, JobState.ERROR, JobState.CANCELED})
ACTIVE_STATES = frozenset({JobState.QUEUED, JobState.SCHEDULED, JobState.PROCESSING})

ALLOWED_TRANSITIONS = {
    JobState.QUEUED: {JobState.SCHEDULED, JobState.CANCELING, JobState.ERROR},
    JobState.SCHEDULED: {JobState.PROCESSING, JobState.CANCELING, JobState.ERROR},
    JobState.PROCESSING: {JobState.FINISHED, JobState.CANCELING, JobState.ERROR},
    JobState.CANCELING: {JobState.CANCELED},
}


@dataclass
class Task:
    name: str
    processor_id: str
    configuration: str
    input_asset_ids: List[str] = field(default_factory=list)
    output_asset_ids: List[str] = field(default_factory=list)


@dataclass
class StateTransition:
    job_id: str
    previous: JobState
    current: JobState
    region: str = ""


@dataclass
class Job:
    """Unit of encode work bound to one region"""
    job_id: str
    name: str
    region: str
    tasks: List[Task] = field(default_factory=list)
    state: JobState = JobState.QUEUED
    state_history: List[JobState] = field(default_factory=list)
    error_message: str = ""
    created_at: int = 0
    updated_at: int = 0

    @classmethod
    def new(cls, name: str, region: str, tasks: List[Task]) -> "Job":
        return cls(job_id=uuid.uuid4().hex, name=name, region=region, tasks=tasks)

    @property
    def output_asset_ids(self) -> List[str]:
        return [asset_id for task in self.tasks for asset_id in task.output_asset_ids]

    @property
    def first_output_asset_id(self) -> Optional[str]:
        outputs = self.output_asset_ids
        return outputs[0] if outputs else None

    def transitions(self, start: int = 0) -> List[StateTransition]:
        """Transitions recorded in the history from index `start` onwards"""
        history = self.state_history
        return [
            StateTransition(self.job_id, history[i - 1], history[i], self.region)
            for i in range(max(1, start), len(history))
        ]

    def to_item(self) -> Dict[str, Any]:
        return {
            'job_id': self.job_id,
            'name': self.name,
            'region': self.region,
            'state': self.state.value,
            'state_history': [s.value for s in self.state_history],
            'tasks': [
                {
                    'name': t.name,
                    'processor_id': t.processor_id,
                    'configuration': t.configuration,
                    'input_asset_ids': list(t.input_asset_ids),
                    'output_asset_ids': list(t.output_asset_ids),
                }
                for t in self.tasks
            ],
            'error_message': self.error_message,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'updated_at_iso': datetime.now(timezone.utc).isoformat(),
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Job":
        tasks = [
            Task(
                name=t['name'],
                processor_id=t['processor_id'],
                configuration=t['configuration'],
                input_asset_ids=list(t.get('input_asset_ids', [])),
                output_asset_ids=list(t.get('output_asset_ids', [])),
            )
            for t in item.get('tasks', [])
        ]
        return cls(
            job_id=item['job_id'],
            name=item['name'],
            region=item.get('region', ''),
            tasks=tasks,
            state=JobState(item['state']),
            state_history=[JobState(s) for s in item.get('state_history', [])],
            error_message=item.get('error_message', ''),
            created_at=int(item.get('created_at', 0)),
            updated_at=int(item.get('updated_at', 0)),
        )


class JobTracker:
    """DynamoDB-based job records plus the SQS hand-off to encode workers"""

    def __init__(self, table, sqs_client, queue_url: str, region_name: str, retry: RetryPolicy = NO_RETRY):
        self.table = table
        self.sqs_client = sqs_client
        self.queue_url = queue_url
        self.region_name = region_name
        self.retry = retry

    def submit(self, job: Job) -> Job:
        """Persist the job as queued and notify the region's workers"""
        now = int(time.time())
        job.state = JobState.QUEUED
        job.state_history = [JobState.QUEUED]
        job.created_at = now
        job.updated_at = now

        self.retry.call(self.region_name, f"create job {job.job_id}", self.table.put_item,
                        Item=job.to_item(), ConditionExpression=Attr('job_id').not_exists())
        body = {'job_id': job.job_id, 'region': self.region_name}
        self.retry.call(self.region_name, f"enqueue job {job.job_id}", self.sqs_client.send_message,
                        QueueUrl=self.queue_url, MessageBody=json.dumps(body))
        logger.info(f"Submitted job '{job.name}' ({job.job_id}) in {self.region_name}")
        return job

    def get(self, job_id: str) -> Job:
        response = self.retry.call(self.region_name, f"get job {job_id}", self.table.get_item,
                                   Key={'job_id': job_id})
        if 'Item' not in response:
            raise JobNotFound(self.region_name, job_id)
        return Job.from_item(response['Item'])

    def _conditional_put(self, job: Job, expected: JobState) -> None:
        try:
            self.table.put_item(Item=job.to_item(), ConditionExpression=Attr('state').eq(expected.value))
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                raise InvalidStateTransition(
                    f"Job {job.job_id} left state {expected.value} before moving to {job.state.value}"
                ) from e
            raise

    def transition(self, job_id: str, new_state: JobState, error_message: str = "") -> Job:
        """Move a job to a new state, appending it to the state history"""
        job = self.get(job_id)
        allowed = ALLOWED_TRANSITIONS.get(job.state, set())
        if new_state not in allowed:
            raise InvalidStateTransition(f"Job {job_id}: {job.state.value} -> {new_state.value} not allowed")

        previous = job.state
        job.state = new_state
        job.state_history.append(new_state)
        job.updated_at = int(time.time())
        if error_message:
            job.error_message = error_message[:500]  # Limit error message length

        self.retry.call(self.region_name, f"update job {job_id}", self._conditional_put, job, previous)
        logger.debug(f"Job {job_id}: {previous.value} -> {new_state.value}")
        return job

    def request_cancel(self, job_id: str) -> Job:
        """Ask the workers to cancel a job; a no-op once it is terminal or canceling.

        A worker may move the job on between the read and the write, so the
        request is retried against the fresh state until it lands or the job
        is no longer active.
        """
        while True:
            job = self.get(job_id)
            if not job.state.is_active:
                return job
            logger.info(f"Requesting cancellation of job {job_id} ({job.state.value})")
            try:
                return self.transition(job_id, JobState.CANCELING)
            except InvalidStateTransition as e:
                logger.debug(f"Cancellation of job {job_id} raced a state change: {e}")

    def _count(self, state: JobState) -> int:
        total = 0
        kwargs = {'Select': 'COUNT', 'FilterExpression': Attr('state').eq(state.value)}
        while True:
            response = self.table.scan(**kwargs)
            total += int(response.get('Count', 0))
            if 'LastEvaluatedKey' not in response:
                return total
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

    def count_in_state(self, state: JobState) -> int:
        """Number of jobs currently in the given state"""
        return self.retry.call(self.region_name, f"count {state.value} jobs", self._count, state)

    def delete(self, job_id: str) -> None:
        self.get(job_id)
        self.retry.call(self.region_name, f"delete job {job_id}", self.table.delete_item, Key={'job_id': job_id})
        logger.info(f"Deleted job {job_id} from {self.region_name}")
