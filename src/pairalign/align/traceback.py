"""
Module for reconstructing alignments from filled score matrices.

The walk re-derives every step from the matrices instead of storing traceback pointers: at each cell the penalty
of the current state is recomputed, and the first predecessor (in the order GAP_FIRST, GAP_SECOND, MATCH) whose
score plus that penalty reproduces the current score is taken.
"""
import numpy as np

from pairalign.align.alignment import Alignment
from pairalign.align.matrices import Aligner, FillParams, Mode, State


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class TracebackError(RuntimeError):
    """
    Raised when the traceback cannot reproduce the forward fill.

    This only happens on score overflow or an engine defect, never for valid input of sensible size.

    Attributes:
        state (State): The state the walk was in.
        x (int): Position in the first sequence.
        y (int): Position in the second sequence.
        score (int): The score that could not be reproduced.
    """
    def __init__(self, message: str, state: State = None, x: int = None, y: int = None, score: int = None):
        super().__init__(message)
        self.state = state
        self.x = x
        self.y = y
        self.score = score


# Constants ------------------------------------------------------------------------------------------------------------
_PRIORITY = (State.GAP_FIRST, State.GAP_SECOND, State.MATCH)


# Classes --------------------------------------------------------------------------------------------------------------
class Traceback:
    """
    Backward walk over the matrices of a filled ``Aligner``.

    Examples:
        >>> aligner.fill('ACGT', 'AGT', Scoring(), 'global')
        >>> aligned_a, aligned_b, score = Traceback(aligner).walk()
    """
    __slots__ = ('_aligner', '_params', '_scores', '_matches', '_seq_a', '_seq_b', '_matrices', '_n', '_m')

    def __init__(self, aligner: Aligner):
        if not aligner.filled: raise TracebackError('Cannot trace back an aligner that has not been filled')
        self._aligner = aligner
        self._params: FillParams = aligner.params
        self._scores, self._matches = aligner.tables
        self._seq_a, self._seq_b = aligner.seq_a, aligner.seq_b
        self._matrices = tuple(aligner.matrix(s) for s in State)
        self._n, self._m = len(self._seq_a), len(self._seq_b)

    def walk(self, result: Alignment = None) -> Alignment:
        """
        Reconstructs the optimal alignment into ``result`` (a new ``Alignment`` if omitted).

        Raises:
            TracebackError: If no predecessor reproduces the score of the current cell.
        """
        if result is None: result = Alignment(self._n + self._m + 1)
        result.clear()
        result.ensure_capacity(self._n + self._m)
        out_a, out_b = result._a, result._b
        gap = Alignment.GAP
        seq_a, seq_b = self._seq_a, self._seq_b
        is_local = self._params.is_local

        state, x, y, score = self._aligner.terminal()
        if not is_local and score == Aligner.SENTINEL:
            raise TracebackError('No reachable alignment under this scoring', state, x, y, score)
        end_x, end_y, total = x, y, score
        k = 0

        while x > 0 and y > 0 and (score > 0 or not is_local):
            if state == State.MATCH:
                out_a[k], out_b[k] = seq_a[x - 1], seq_b[y - 1]
            elif state == State.GAP_FIRST:
                out_a[k], out_b[k] = gap, seq_b[y - 1]
            else:
                out_a[k], out_b[k] = seq_a[x - 1], gap
            k += 1
            state, x, y, score = self._reverse_move(state, x, y, score)

        if not is_local:
            # Leading overhang along the boundary row / column
            while x > 0:
                out_a[k], out_b[k] = seq_a[x - 1], gap
                k += 1
                x -= 1
            while y > 0:
                out_a[k], out_b[k] = gap, seq_b[y - 1]
                k += 1
                y -= 1

        result._seal_reversed(k)
        result.score = total
        result.pos_a, result.pos_b = x, y
        result.len_a, result.len_b = end_x - x, end_y - y
        return result

    def _reverse_move(self, state: State, x: int, y: int, score: int) -> tuple[State, int, int, int]:
        """Steps from ``(state, x, y)`` to the predecessor cell that produced ``score``."""
        params = self._params
        a, b = self._seq_a[x - 1], self._seq_b[y - 1]

        if state == State.MATCH:
            sub = int(self._scores[a, b])
            penalties = (sub, sub, sub)
            x, y = x - 1, y - 1
            if params.is_local and score - sub == 0:
                # Predecessor term was the local reset floor
                return State.MATCH, x, y, 0
        elif state == State.GAP_FIRST:
            gap_open, gap_extend = params.gap_penalties(trailing=x == self._n)
            penalties = (gap_open, gap_extend, gap_open)
            y -= 1
        else:
            gap_open, gap_extend = params.gap_penalties(trailing=y == self._m)
            penalties = (gap_open, gap_open, gap_extend)
            x -= 1

        for candidate in _PRIORITY:
            if not self._allowed(candidate, x, y): continue
            value = int(self._matrices[candidate][x, y])
            if value == Aligner.SENTINEL: continue
            if value + penalties[candidate] == score: return candidate, x, y, value

        raise TracebackError(
            f'Traceback failed at {state.name} ({x}, {y}) with score {score}; this is usually an integer '
            f'overflow from long sequences or large scores', state, x, y, score
        )

    def _allowed(self, state: State, x: int, y: int) -> bool:
        """Applies the same legality rules the fill used to the predecessor cell ``(x, y)``."""
        params = self._params
        if state == State.GAP_FIRST:
            return not params.no_gaps_in_first or x == 0 or x == self._n
        if state == State.GAP_SECOND:
            return not params.no_gaps_in_second or y == 0 or y == self._m
        if x == 0 or y == 0: return x == y
        return not params.no_mismatches or bool(self._matches[self._seq_a[x - 1], self._seq_b[y - 1]])


# Functions ------------------------------------------------------------------------------------------------------------
def reconstruct(aligner: Aligner, result: Alignment = None) -> Alignment:
    """
    Reconstructs the optimal alignment of a filled aligner.

    Args:
        aligner: An ``Aligner`` that has been filled.
        result: Optional buffer to reuse; it is cleared and rewritten.

    Returns:
        The alignment, which also unpacks as ``(aligned_a, aligned_b, score)``.

    Raises:
        TracebackError: If the aligner is unfilled or the matrices are inconsistent.
    """
    return Traceback(aligner).walk(result)
