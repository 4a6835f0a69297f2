"""
The download run state machine, expressed as a pure transition table.

The pipeline feeds every control request and loop observation through
``transition`` and then carries out the returned effects; nothing else changes
the run state.
"""

from dataclasses import dataclass
from enum import Enum


class RunState(Enum):
    """States of a download run."""

    IDLE = "idle"  # Nothing started yet
    RUNNING = "running"  # Worker is processing the queue
    PAUSED = "paused"  # Worker and in-flight transfer are suspended
    STOPPING = "stopping"  # Stop requested, waiting for the worker to notice
    COMPLETED = "completed"  # Results delivered, run is over


class RunEvent(Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    DRAINED = "drained"
    CANCEL_OBSERVED = "cancel_observed"


class Effect(Enum):
    """Side effects the pipeline must perform after a transition."""

    SUSPEND_TRANSFER = "suspend_transfer"
    RESUME_TRANSFER = "resume_transfer"
    CANCEL_TRANSFER = "cancel_transfer"
    DISCARD_QUEUE = "discard_queue"
    DELIVER_RESULTS = "deliver_results"


@dataclass(frozen=True)
class Transition:
    state: RunState
    effects: tuple[Effect, ...] = ()


_ACTIVE = (RunState.RUNNING, RunState.PAUSED, RunState.STOPPING)

_TABLE: dict[tuple[RunState, RunEvent], Transition] = {
    (RunState.IDLE, RunEvent.START): Transition(RunState.RUNNING),
    (RunState.COMPLETED, RunEvent.START): Transition(RunState.RUNNING),
    (RunState.RUNNING, RunEvent.PAUSE): Transition(
        RunState.PAUSED, (Effect.SUSPEND_TRANSFER,)
    ),
    (RunState.PAUSED, RunEvent.RESUME): Transition(
        RunState.RUNNING, (Effect.RESUME_TRANSFER,)
    ),
    (RunState.RUNNING, RunEvent.STOP): Transition(
        RunState.STOPPING, (Effect.CANCEL_TRANSFER, Effect.DISCARD_QUEUE)
    ),
    (RunState.PAUSED, RunEvent.STOP): Transition(
        RunState.STOPPING, (Effect.CANCEL_TRANSFER, Effect.DISCARD_QUEUE)
    ),
    (RunState.RUNNING, RunEvent.DRAINED): Transition(
        RunState.COMPLETED, (Effect.DELIVER_RESULTS,)
    ),
    (RunState.STOPPING, RunEvent.CANCEL_OBSERVED): Transition(
        RunState.COMPLETED, (Effect.DELIVER_RESULTS,)
    ),
}


def transition(state: RunState, event: RunEvent) -> Transition:
    """
    Computes the next state and the effects to perform.

    Pairs missing from the table leave the state unchanged and produce no
    effects, which makes repeated pauses, resumes and stops harmless.
    """
    return _TABLE.get((state, event), Transition(state))


def is_active(state: RunState) -> bool:
    """True while a run owns the queue (running, paused, or stopping)."""
    return state in _ACTIVE
