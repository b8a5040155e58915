"""
One-dimensional (stringer) elements adjoining panels.

Panels only need two things from a stringer: its three grips (start, middle,
end) and its cross-section height. A panel grip that coincides with the
middle grip of a stringer loses half the stringer height of lever arm.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

import numpy as np

from spm_panel.core.errors import ContractViolationError


@dataclass(frozen=True)
class Stringer:
    """
    Stringer data consumed by panel elements.

    Parameters
    ----------
    number : int
        Stringer number.
    grips : Tuple[int, int, int]
        Node ids of the start, middle and end grips.
    height : float
        Cross-section height [mm].
    """

    number: int
    grips: Tuple[int, int, int]
    height: float

    def __post_init__(self):
        if len(self.grips) != 3:
            raise ContractViolationError(
                f"Stringer {self.number} needs 3 grips (start, middle, end), got {len(self.grips)}"
            )
        object.__setattr__(self, "grips", tuple(int(g) for g in self.grips))
        if self.height < 0:
            raise ValueError(f"Stringer {self.number} height must be non-negative: {self.height}")

    @property
    def middle_grip(self) -> int:
        return self.grips[1]


def stringer_depth_corrections(grips: Sequence[int], stringers: Iterable[Stringer]) -> np.ndarray:
    """
    Half height of the stringer whose middle grip coincides with each panel grip.

    Parameters
    ----------
    grips : Sequence[int]
        The four panel grips.
    stringers : Iterable[Stringer]
        Candidate stringers of the model.

    Returns
    -------
    np.ndarray
        Corrections (4,), zero where no stringer is attached.
    """
    by_middle = {}
    for stringer in stringers:
        # First stringer found wins, as in a linear scan
        by_middle.setdefault(stringer.middle_grip, stringer)

    corrections = np.zeros(len(grips))
    for i, grip in enumerate(grips):
        stringer = by_middle.get(grip)
        if stringer is not None:
            corrections[i] = 0.5 * stringer.height
    return corrections
