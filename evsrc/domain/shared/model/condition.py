"""Status conditions and the rules that roll them up into readiness.

A ConditionSet names one "happy" condition (Ready) and the dependent
conditions it summarizes. Ready is True only while every dependent is True.
A False dependent makes it False; otherwise an Unknown dependent makes it
Unknown.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Callable

from evsrc.domain.shared.model.value import ValueObject

READY = "Ready"


class ConditionStatus(StrEnum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Condition(ValueObject):
    type: str
    status: ConditionStatus = ConditionStatus.UNKNOWN
    reason: str = ""
    message: str = ""
    last_transition_time: datetime | None = None

    @property
    def is_true(self) -> bool:
        return self.status == ConditionStatus.TRUE

    @property
    def is_false(self) -> bool:
        return self.status == ConditionStatus.FALSE

    @property
    def is_unknown(self) -> bool:
        return self.status == ConditionStatus.UNKNOWN

    def same_state(self, other: "Condition") -> bool:
        """Equality ignoring the transition timestamp."""
        return (
            self.type == other.type
            and self.status == other.status
            and self.reason == other.reason
            and self.message == other.message
        )


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ConditionSet:
    """Immutable description of the conditions a reconciler owns."""

    happy: str
    dependents: tuple[str, ...]

    @classmethod
    def living(cls, *dependents: str) -> "ConditionSet":
        return cls(happy=READY, dependents=tuple(dependents))

    @property
    def types(self) -> tuple[str, ...]:
        return (self.happy, *self.dependents)

    def manage(
        self, conditions: list[Condition], clock: Callable[[], datetime] = _utc_now
    ) -> "ConditionManager":
        return ConditionManager(self, conditions, clock)


class ConditionManager:
    """Applies a ConditionSet's transition rules to a mutable list of conditions."""

    def __init__(
        self,
        condition_set: ConditionSet,
        conditions: list[Condition],
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._set = condition_set
        self._conditions = conditions
        self._clock = clock

    @property
    def condition_set(self) -> ConditionSet:
        return self._set

    def get(self, type_: str) -> Condition | None:
        for cond in self._conditions:
            if cond.type == type_:
                return cond
        return None

    def set(self, condition: Condition) -> None:
        """Store a condition, keeping the transition time when nothing changed."""
        existing = self.get(condition.type)
        if existing is not None and existing.same_state(condition):
            return
        stamped = condition.model_copy(update={"last_transition_time": self._clock()})
        kept = [c for c in self._conditions if c.type != condition.type]
        kept.append(stamped)
        kept.sort(key=lambda c: c.type)
        self._conditions[:] = kept

    def initialize_conditions(self) -> None:
        happy = self.get(self._set.happy)
        if happy is None:
            happy = Condition(type=self._set.happy, status=ConditionStatus.UNKNOWN)
            self.set(happy)

        # A True happy condition implies every dependent was True.
        status = ConditionStatus.TRUE if happy.is_true else ConditionStatus.UNKNOWN
        for type_ in self._set.dependents:
            if self.get(type_) is None:
                self.set(Condition(type=type_, status=status))

    def mark_true(self, type_: str) -> None:
        self.set(Condition(type=type_, status=ConditionStatus.TRUE))
        self._roll_up()

    def mark_false(self, type_: str, reason: str, message: str) -> None:
        self.set(
            Condition(type=type_, status=ConditionStatus.FALSE, reason=reason, message=message)
        )
        self._roll_up()

    def mark_unknown(self, type_: str, reason: str, message: str) -> None:
        self.set(
            Condition(type=type_, status=ConditionStatus.UNKNOWN, reason=reason, message=message)
        )
        self._roll_up()

    def _roll_up(self) -> None:
        """Derive the happy condition from the dependents.

        The first failed dependent in declaration order supplies reason and
        message, then the first unknown one.
        """
        failed: Condition | None = None
        unknown: Condition | None = None
        for type_ in self._set.dependents:
            cond = self.get(type_) or Condition(type=type_)
            if cond.is_false and failed is None:
                failed = cond
            elif cond.is_unknown and unknown is None:
                unknown = cond

        if failed is not None:
            happy = Condition(
                type=self._set.happy,
                status=ConditionStatus.FALSE,
                reason=failed.reason,
                message=failed.message,
            )
        elif unknown is not None:
            happy = Condition(
                type=self._set.happy,
                status=ConditionStatus.UNKNOWN,
                reason=unknown.reason,
                message=unknown.message,
            )
        else:
            happy = Condition(type=self._set.happy, status=ConditionStatus.TRUE)
        self.set(happy)

    def is_happy(self) -> bool:
        """Overall readiness: every owned condition is True."""
        for type_ in self._set.dependents:
            cond = self.get(type_)
            if cond is None or not cond.is_true:
                return False
        return True
