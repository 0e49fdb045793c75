import bisect
import logging
import math
from typing import Callable

from pydantic import BaseModel, ConfigDict

from arlog.items import LogSymbol

logger = logging.getLogger(__name__)

AT_SESSION_START = 0.0
AT_SESSION_END = math.inf

Predicate = Callable[[], bool]


class LateRegistrationError(RuntimeError):
    def __init__(self, description: str):
        super().__init__(f'Test case {description!r} registered after the session started.')


class ARTestCase(BaseModel):
    """
    An assertion evaluated once, `trigger_time` seconds after session start.

    The predicate runs on the frame-tick thread; it must be cheap and must not
    change application state.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    description: str
    trigger_time: float = AT_SESSION_END
    predicate: Predicate
    executed: bool = False
    passed: bool = False

    def evaluate(self) -> LogSymbol:
        if self.executed:
            raise RuntimeError(f'Test case {self.description!r} was already evaluated.')
        try:
            self.passed = bool(self.predicate())
        except Exception:
            logger.exception('test case %r raised', self.description)
            self.passed = False
        self.executed = True
        return LogSymbol.PASSED if self.passed else LogSymbol.FAILED


class TestSchedule:
    """Test cases ordered by ascending trigger time."""

    __test__ = False  # not a pytest test class

    def __init__(self):
        self.cases: list[ARTestCase] = []
        self.frozen = False

    def __len__(self) -> int:
        return len(self.cases)

    def register(self,
                 description: str,
                 predicate: Predicate,
                 trigger_time: float = AT_SESSION_END) -> ARTestCase:
        if self.frozen:
            raise LateRegistrationError(description)
        case = ARTestCase(description=description, trigger_time=trigger_time, predicate=predicate)
        # equal trigger times keep registration order
        bisect.insort_right(self.cases, case, key=lambda c: c.trigger_time)
        return case

    def freeze(self) -> None:
        self.frozen = True

    def unfreeze(self) -> None:
        self.frozen = False

    def due(self, elapsed: float) -> list[ARTestCase]:
        """Evaluate every pending case whose trigger time has passed."""
        evaluated = []
        for case in self.cases:
            if elapsed < case.trigger_time:
                break
            if not case.executed:
                case.evaluate()
                evaluated.append(case)
        return evaluated

    def finish(self) -> list[ARTestCase]:
        """Evaluate every case still pending, regardless of trigger time."""
        evaluated = []
        for case in self.cases:
            if not case.executed:
                case.evaluate()
                evaluated.append(case)
        return evaluated

    def pending(self) -> list[ARTestCase]:
        return [c for c in self.cases if not c.executed]

    def clear(self) -> None:
        self.cases.clear()
        self.unfreeze()
