"""BlockWindow: Maps block heights onto fixed-length submission windows.

A window spans ``interval`` consecutive heights. Each provider submits at most
once per window, and only while the position inside the window leaves at
least ``margin`` blocks before the window closes:

    window   = height // interval
    position = height % interval

.. code-block:: python

    >>> scheduler = BlockWindowScheduler(interval=100, margin=10)
    >>> plan = scheduler.evaluate(905, WindowState())
    >>> plan.decision
    <WindowDecision.SUBMIT: 'submit'>
    >>> scheduler.evaluate(995, WindowState()).decision
    <WindowDecision.SKIP_MISSED: 'skip-missed'>
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class WindowDecision(str, Enum):
    """What the agent should do at a given height."""

    SUBMIT = "submit"
    SKIP_MISSED = "skip-missed"
    ALREADY_DONE = "already-done"


@dataclass(frozen=True)
class WindowState:
    """Last window this agent acted on (submitted or deliberately skipped).

    :ivar executed_window: Window index, -1 before the first action.
    """

    executed_window: int = -1

    def advance(self, window: int) -> WindowState:
        """Return a state marking ``window`` as handled.

        The executed window never moves backwards.
        """
        return WindowState(executed_window=max(self.executed_window, window))


@dataclass(frozen=True)
class WindowPlan:
    """Scheduler verdict for one height observation.

    :ivar height: Observed block height.
    :ivar window: Window index containing the height.
    :ivar position: Offset of the height inside its window.
    :ivar decision: Action to take.
    """

    height: int
    window: int
    position: int
    decision: WindowDecision


class BlockWindowScheduler:
    """Decides, per height observation, whether to submit in the current window.

    :ivar interval: Window length in blocks.
    :ivar margin: Tail of the window (in blocks) reserved as unsafe.
    """

    def __init__(self, interval: int, margin: int) -> None:
        """Initialize the scheduler.

        :param interval: Window length in blocks (at least 1).
        :param margin: Unsafe tail length in blocks (0 <= margin < interval).
        :raises ConfigurationError: If the parameters are inconsistent.
        """
        if interval < 1:
            raise ConfigurationError(f"interval must be at least 1 block, got {interval}")
        if margin < 0 or margin >= interval:
            raise ConfigurationError(
                f"margin must be in [0, interval), got margin={margin} interval={interval}"
            )
        self.interval = interval
        self.margin = margin

    @property
    def last_safe_position(self) -> int:
        """Highest in-window position at which a submission is still allowed."""
        return self.interval - self.margin

    def evaluate(self, height: int, state: WindowState) -> WindowPlan:
        """Evaluate the latest height against the window state.

        Only the given height is considered; windows skipped between two
        observations are never back-filled.

        :param height: Latest observed block height.
        :param state: Current window state.
        :returns: WindowPlan with the decision for this height.
        :raises ValueError: If height is negative.
        """
        if height < 0:
            raise ValueError(f"Block height must not be negative, got {height}")

        window, position = divmod(height, self.interval)

        if window <= state.executed_window:
            decision = WindowDecision.ALREADY_DONE
        elif position <= self.last_safe_position:
            decision = WindowDecision.SUBMIT
        else:
            decision = WindowDecision.SKIP_MISSED

        return WindowPlan(
            height=height, window=window, position=position, decision=decision
        )


class WindowStateStore:
    """Persists the window state as a small JSON document.

    Without a store the state lives only in memory and a restart forgets the
    last handled window.

    :ivar path: Location of the JSON state file.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> WindowState:
        """Load the stored state, or a fresh one if the file does not exist."""
        if not self.path.exists():
            return WindowState()
        try:
            with open(self.path, "r") as file:
                data = json.load(file)
            return WindowState(executed_window=int(data["executed_window"]))
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise ConfigurationError(f"Unreadable window state file {self.path}: {e}") from e

    def save(self, state: WindowState) -> None:
        """Atomically replace the stored state."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as file:
            json.dump({"executed_window": state.executed_window}, file)
        tmp_path.replace(self.path)
        logger.debug(f"Saved window state {state.executed_window} to {self.path}")
