"""
Module for the affine-gap dynamic programming engine.

Three score matrices are kept, addressed ``[x, y]`` where ``x`` indexes the first sequence and ``y`` the second:

* ``match``: best score of an alignment of the prefixes ending with ``A[x-1]`` aligned to ``B[y-1]``.
* ``gap_first``: best score ending with a gap in the first sequence opposite ``B[y-1]``.
* ``gap_second``: best score ending with a gap in the second sequence opposite ``A[x-1]``.
"""
from enum import Enum, IntEnum
from typing import Final, NamedTuple, Union
from warnings import warn

import numpy as np

from pairalign.core.scoring import Scoring
from pairalign.align.alignment import next_power_of_two
from pairalign.utils.resources import RESOURCES, DependencyWarning, jit


# Constants ------------------------------------------------------------------------------------------------------------
_SENTINEL = -2147483648  # np.iinfo(np.int32).min, unreachable state
_SCORE_MAX = 2147483647
_PURE_PYTHON_CELL_LIMIT = 1 << 20


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class AlignerError(ValueError):
    """Raised when the engine is given invalid input or queried before a fill."""


# Classes --------------------------------------------------------------------------------------------------------------
class Mode(str, Enum):
    GLOBAL = 'global'
    LOCAL = 'local'


class State(IntEnum):
    MATCH = 0
    GAP_FIRST = 1
    GAP_SECOND = 2


class FillParams(NamedTuple):
    """Snapshot of a scoring configuration taken at fill time and shared with the traceback."""
    gap_open: int
    gap_extend: int
    no_mismatches: bool
    no_gaps_in_first: bool
    no_gaps_in_second: bool
    no_start_gap_penalty: bool
    no_end_gap_penalty: bool
    is_local: bool

    @classmethod
    def from_scoring(cls, scoring: Scoring, mode: Mode) -> 'FillParams':
        return cls(scoring.gap_open, scoring.gap_extend, scoring.no_mismatches, scoring.no_gaps_in_first,
                   scoring.no_gaps_in_second, scoring.no_start_gap_penalty, scoring.no_end_gap_penalty,
                   mode is Mode.LOCAL)

    def gap_penalties(self, trailing: bool) -> tuple[int, int]:
        """Returns (open, extend) penalties, both waived on the trailing edge when end gaps are free."""
        if trailing and self.no_end_gap_penalty: return 0, 0
        return self.gap_open + self.gap_extend, self.gap_extend


class Aligner:
    """
    Reusable affine-gap matrix engine for global (Needleman-Wunsch) and local (Smith-Waterman) alignment.

    The engine owns three flat score buffers that are viewed as ``(len(a) + 1, len(b) + 1)`` matrices.
    Buffers grow to the next power of two when a fill needs more cells and are never shrunk.
    An instance must not be shared between threads.

    Examples:
        >>> aligner = Aligner()
        >>> aligner.fill('GATTACA', 'GCATGCU', Scoring.linear(), 'global')
        >>> aligner.score
        0
    """
    SENTINEL: Final = _SENTINEL
    DTYPE: Final = np.int32
    __slots__ = ('_buffers', '_capacity', '_shape', '_seq_a', '_seq_b', '_tables', '_params', '_mode')

    def __init__(self, capacity: int = 0):
        self._capacity = 0
        self._buffers = (np.empty(0, dtype=self.DTYPE),) * 3
        self._shape = None
        self._seq_a = self._seq_b = self._tables = self._params = self._mode = None
        if capacity: self.ensure_capacity(capacity)

    def __repr__(self):
        if self._shape is None: return f"Aligner(capacity={self._capacity})"
        return f"Aligner(shape={self._shape}, mode={self._mode.value}, capacity={self._capacity})"

    @property
    def capacity(self) -> int: return self._capacity
    @property
    def filled(self) -> bool: return self._shape is not None

    @property
    def shape(self) -> tuple[int, int]:
        self._check_filled()
        return self._shape

    @property
    def mode(self) -> Mode:
        self._check_filled()
        return self._mode

    @property
    def params(self) -> FillParams:
        self._check_filled()
        return self._params

    @property
    def tables(self) -> tuple[np.ndarray, np.ndarray]:
        """The (scores, is_match) lookup tables the last fill was computed with."""
        self._check_filled()
        return self._tables

    @property
    def seq_a(self) -> np.ndarray:
        self._check_filled()
        return self._seq_a

    @property
    def seq_b(self) -> np.ndarray:
        self._check_filled()
        return self._seq_b

    @property
    def match_scores(self) -> np.ndarray: return self.matrix(State.MATCH)
    @property
    def gap_first_scores(self) -> np.ndarray: return self.matrix(State.GAP_FIRST)
    @property
    def gap_second_scores(self) -> np.ndarray: return self.matrix(State.GAP_SECOND)

    def matrix(self, state: State) -> np.ndarray:
        """Returns a 2-D view of one filled matrix."""
        self._check_filled()
        rows, cols = self._shape
        return self._buffers[state][:rows * cols].reshape(rows, cols)

    def cell(self, state: State, x: int, y: int) -> int:
        """Returns the score of one cell (``Aligner.SENTINEL`` when unreachable)."""
        return int(self.matrix(state)[x, y])

    def ensure_capacity(self, cells: int):
        """
        Grows the three buffers so that each holds at least ``cells`` scores.

        Args:
            cells: The number of matrix cells required.
        """
        if cells <= self._capacity: return
        capacity = next_power_of_two(cells)
        self._buffers = tuple(np.empty(capacity, dtype=self.DTYPE) for _ in range(3))
        self._capacity = capacity

    def fill(self, seq_a: Union[str, bytes], seq_b: Union[str, bytes], scoring: Scoring,
             mode: Union[Mode, str] = Mode.GLOBAL):
        """
        Fills the score matrices for aligning ``seq_a`` against ``seq_b``.

        Args:
            seq_a: The first sequence (may be empty).
            seq_b: The second sequence (may be empty).
            scoring: Scoring policy; its tables and flags are captured for the traceback.
            mode: 'global' or 'local'.

        Raises:
            AlignerError: If the scoring, sequences or mode are invalid. Nothing is modified in that case.
        """
        if not isinstance(scoring, Scoring):
            raise AlignerError(f'Expected a Scoring instance, got {type(scoring).__name__}')
        try: mode = Mode(mode)
        except ValueError: raise AlignerError(f'Unknown alignment mode: {mode!r}') from None
        enc_a, enc_b = _encode(seq_a), _encode(seq_b)
        rows, cols = len(enc_a) + 1, len(enc_b) + 1

        if rows * cols > _PURE_PYTHON_CELL_LIMIT and not RESOURCES.has_module('numba'):
            warn(f'numba is not installed; filling {rows * cols} cells in pure Python will be slow '
                 f'(install {RESOURCES.package}[numba])',
                 DependencyWarning)
        self.ensure_capacity(rows * cols)
        self._shape = (rows, cols)
        self._seq_a, self._seq_b = enc_a, enc_b
        self._tables = scoring.tables()
        self._params = FillParams.from_scoring(scoring, mode)
        self._mode = mode
        _fill_kernel(enc_a, enc_b, *self._tables, *self._params, *(self.matrix(s) for s in State))

    def terminal(self) -> tuple[State, int, int, int]:
        """
        Returns the cell the traceback starts from as ``(state, x, y, score)``.

        Global alignments end at ``(len(a), len(b))`` in the best state, ties resolved MATCH, GAP_FIRST, GAP_SECOND.
        Local alignments end at the first maximum met scanning ``x``, then ``y``, then the states in that order.
        """
        rows, cols = self.shape
        if self._mode is Mode.GLOBAL:
            corner = [self.cell(s, rows - 1, cols - 1) for s in State]
            state = State(corner.index(max(corner)))
            return state, rows - 1, cols - 1, corner[state]
        stacked = np.stack([self.matrix(s) for s in State], axis=-1)
        x, y, state = np.unravel_index(int(np.argmax(stacked)), stacked.shape)
        return State(int(state)), int(x), int(y), int(stacked[x, y, state])

    @property
    def score(self) -> int:
        """The optimal score of the last fill."""
        return self.terminal()[3]

    def format_matrices(self) -> str:
        """Renders the three filled matrices as text, one row per position of the first sequence."""
        lines = []
        for state in State:
            lines.append(f'{state.name.lower()}:')
            for x, row in enumerate(self.matrix(state).tolist()):
                lines.append(f'{x:3d}:' + ''.join('  -inf' if v == _SENTINEL else f' {v:5d}' for v in row))
        return '\n'.join(lines)

    def _check_filled(self):
        if self._shape is None: raise AlignerError('The aligner has not been filled yet')


# Functions ------------------------------------------------------------------------------------------------------------
def _encode(seq: Union[str, bytes]) -> np.ndarray:
    if isinstance(seq, str):
        try: seq = seq.encode('ascii')
        except UnicodeEncodeError: raise AlignerError('Sequences must be ASCII') from None
    elif isinstance(seq, (bytearray, memoryview)): seq = bytes(seq)
    elif not isinstance(seq, bytes):
        raise AlignerError(f'Expected a str or bytes sequence, got {type(seq).__name__}')
    if not seq.isascii(): raise AlignerError('Sequences must be ASCII')
    return np.frombuffer(seq, dtype=np.uint8)


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _add(score, penalty):
    # Sentinels absorb penalties so an unreachable state never looks reachable
    if score == _SENTINEL: return np.int64(_SENTINEL)
    return np.int64(score) + penalty


@jit(nopython=True, cache=True, nogil=True)
def _combine(a, b, c, is_local):
    best = np.int64(a)
    if b > best: best = np.int64(b)
    if c > best: best = np.int64(c)
    if is_local and best < 0: best = np.int64(0)
    return best


@jit(nopython=True, cache=True, nogil=True)
def _narrow(value):
    if value <= _SENTINEL: return np.int64(_SENTINEL)
    if value > _SCORE_MAX: return np.int64(_SCORE_MAX)
    return value


@jit(nopython=True, cache=True, nogil=True)
def _gap_score(match, gap_same, gap_other, open_pen, ext_pen, is_local):
    return _narrow(_combine(_add(match, open_pen), _add(gap_same, ext_pen), _add(gap_other, open_pen), is_local))


@jit(nopython=True, cache=True, nogil=True)
def _fill_kernel(seq_a, seq_b, scores, matches, gap_open, gap_extend, no_mismatches, no_gaps_in_first,
                 no_gaps_in_second, no_start_gap_penalty, no_end_gap_penalty, is_local, M, F, S):
    n = len(seq_a)
    m = len(seq_b)
    floor = np.int64(0) if is_local else np.int64(_SENTINEL)
    open_pen = np.int64(gap_open) + np.int64(gap_extend)
    ext_pen = np.int64(gap_extend)
    zero = np.int64(0)

    M[0, 0] = 0
    F[0, 0] = 0
    S[0, 0] = 0

    # [x][0]: the first sequence runs ahead, so the second is gapped
    free = no_start_gap_penalty or (no_end_gap_penalty and m == 0)
    for x in range(1, n + 1):
        M[x, 0] = floor
        F[x, 0] = floor
        S[x, 0] = zero if free else _narrow(np.int64(gap_open) + x * ext_pen)

    # [0][y]: mirror of the above
    free = no_start_gap_penalty or (no_end_gap_penalty and n == 0)
    for y in range(1, m + 1):
        M[0, y] = floor
        S[0, y] = floor
        F[0, y] = zero if free else _narrow(np.int64(gap_open) + y * ext_pen)

    for x in range(1, n + 1):
        a = seq_a[x - 1]
        if x == n and no_end_gap_penalty:
            f_open = zero
            f_ext = zero
        else:
            f_open = open_pen
            f_ext = ext_pen
        for y in range(1, m + 1):
            b = seq_b[y - 1]

            if no_mismatches and not matches[a, b]:
                M[x, y] = floor
            else:
                best = _combine(M[x - 1, y - 1], F[x - 1, y - 1], S[x - 1, y - 1], is_local)
                M[x, y] = _narrow(_add(best, np.int64(scores[a, b])))

            if no_gaps_in_first:
                F[x, y] = floor
            else:
                F[x, y] = _gap_score(M[x, y - 1], F[x, y - 1], S[x, y - 1], f_open, f_ext, is_local)

            if no_gaps_in_second:
                S[x, y] = floor
            else:
                if y == m and no_end_gap_penalty:
                    s_open = zero
                    s_ext = zero
                else:
                    s_open = open_pen
                    s_ext = ext_pen
                S[x, y] = _gap_score(M[x - 1, y], S[x - 1, y], F[x - 1, y], s_open, s_ext, is_local)

    # Forbidden gaps are still allowed as trailing overhang: the last column / row is filled separately.
    # Nothing in the main sweep reads these cells, so filling them afterwards is safe.
    if no_gaps_in_first and n > 0:
        if no_end_gap_penalty:
            f_open = zero
            f_ext = zero
        else:
            f_open = open_pen
            f_ext = ext_pen
        for y in range(1, m + 1):
            F[n, y] = _gap_score(M[n, y - 1], F[n, y - 1], S[n, y - 1], f_open, f_ext, is_local)

    if no_gaps_in_second and m > 0:
        if no_end_gap_penalty:
            s_open = zero
            s_ext = zero
        else:
            s_open = open_pen
            s_ext = ext_pen
        for x in range(1, n + 1):
            S[x, m] = _gap_score(M[x - 1, m], S[x - 1, m], F[x - 1, m], s_open, s_ext, is_local)
