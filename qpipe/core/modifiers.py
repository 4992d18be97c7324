"""State modifiers: the operations attached to qubit graph edges."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple
from enum import Enum

from qpipe.core.operators import QubitOp


class ModifierKind(Enum):
    UNITARY = "unitary"
    MEASURE = "measure"


@dataclass(frozen=True, eq=False)
class StateModifier:
    """
    A named unitary application or measurement instruction.

    Attributes:
        name: Diagnostic label
        kind: UNITARY or MEASURE
        op: Operator to apply (UNITARY only)
        measurement_id: Key for the result record (MEASURE only)
        indices: Measured absolute indices, in order (MEASURE only)
    """
    name: str
    kind: ModifierKind
    op: Optional[QubitOp] = None
    measurement_id: Optional[int] = None
    indices: Tuple[int, ...] = field(default_factory=tuple)

    @classmethod
    def new_unitary(cls, name: str, op: QubitOp) -> StateModifier:
        return cls(name=name, kind=ModifierKind.UNITARY, op=op)

    @classmethod
    def new_measurement(cls, name: str, measurement_id: int, indices) -> StateModifier:
        return cls(
            name=name,
            kind=ModifierKind.MEASURE,
            measurement_id=int(measurement_id),
            indices=tuple(int(i) for i in indices),
        )

    @property
    def is_measurement(self) -> bool:
        return self.kind == ModifierKind.MEASURE

    def __repr__(self) -> str:
        if self.is_measurement:
            return f"StateModifier({self.name!r}, measure#{self.measurement_id} @ {self.indices})"
        return f"StateModifier({self.name!r}, {self.op!r})"
