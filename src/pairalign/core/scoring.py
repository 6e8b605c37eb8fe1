"""
Module for scoring symbol pairs during alignment.
"""
from typing import Union, Final
from warnings import warn

import numpy as np

from pairalign.utils.resources import PairalignWarning


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class ScoringError(ValueError):
    """Raised when a scoring configuration is invalid."""


class ScoringWarning(PairalignWarning):
    """Issued for scoring configurations that are valid but unusual (e.g. positive gap penalties)."""


# Classes --------------------------------------------------------------------------------------------------------------
class ScoreMatrix:
    """
    Represents a substitution matrix over an alphabet of ASCII symbols.

    Attributes:
        symbols (bytes): The row/column symbols in order.
        _data (np.ndarray): The raw matrix data.

    Examples:
        >>> m = ScoreMatrix.build(b'ACGT', match=2, mismatch=-2)
        >>> m[b'A', b'C']
        -2
    """
    _DTYPE = np.int8
    __slots__ = ('symbols', '_data')

    def __init__(self, symbols: bytes, data: np.ndarray):
        if data.shape != (len(symbols), len(symbols)):
            raise ScoringError(f'Matrix shape {data.shape} does not match {len(symbols)} symbols')
        self.symbols = symbols
        self._data = data

    def __getitem__(self, item: tuple[bytes, bytes]) -> int:
        a, b = item
        return int(self._data[self.symbols.index(a), self.symbols.index(b)])

    def __len__(self): return len(self.symbols)

    def items(self):
        """Yields ``(symbol_a, symbol_b, score)`` for every cell of the matrix."""
        for i, a in enumerate(self.symbols):
            for j, b in enumerate(self.symbols):
                yield a, b, int(self._data[i, j])

    @classmethod
    def blosum62(cls):
        """Returns the BLOSUM62 matrix."""
        return cls(b'ACDEFGHIKLMNPQRSTVWY', np.reshape([
            4, 0, -2, -1, -2, 0, -2, -1, -1, -1, -1, -2, -1, -1, -1, 1, 0, 0, -3, -2,
            0, 9, -3, -4, -2, -3, -3, -1, -3, -1, -1, -3, -3, -3, -3, -1, -1, -1, -2, -2,
            -2, -3, 6, 2, -3, -1, -1, -3, -1, -4, -3, 1, -1, 0, -2, 0, -1, -3, -4, -3,
            -1, -4, 2, 5, -3, -2, 0, -3, 1, -3, -2, 0, -1, 2, 0, 0, -1, -2, -3, -2,
            -2, -2, -3, -3, 6, -3, -1, 0, -3, 0, 0, -3, -4, -3, -3, -2, -2, -1, 1, 3,
            0, -3, -1, -2, -3, 6, -2, -4, -2, -4, -3, 0, -2, -2, -2, 0, -2, -3, -2, -3,
            -2, -3, -1, 0, -1, -2, 8, -3, -1, -3, -2, 1, -2, 0, 0, -1, -2, -3, -2, 2,
            -1, -1, -3, -3, 0, -4, -3, 4, -3, 2, 1, -3, -3, -3, -3, -2, -1, 3, -3, -1,
            -1, -3, -1, 1, -3, -2, -1, -3, 5, -2, -3, 2, 0, -3, -3, 1, 0, -3, -1, 2,
            -1, -1, -4, -3, 0, -4, -3, 2, -2, 4, 2, -3, -3, -2, -2, -2, -1, 1, -2, -1,
            -1, -1, -3, -2, 0, -3, -2, 1, -3, 2, 5, -2, -2, 0, -1, -1, -1, 1, -1, -1,
            -2, -3, 1, 0, -3, 0, 1, -3, 2, -3, -2, 6, -2, -4, -4, -1, 0, -3, -1, -3,
            -1, -3, -1, -1, -4, -2, -2, -3, 0, -3, -2, -2, 7, -1, -2, -1, -1, -2, -4, -3,
            -1, -3, 0, 2, -3, -2, 0, -3, -3, -2, 0, -4, -1, 5, 1, 0, -1, -2, -2, -1,
            -1, -3, -2, 0, -3, -2, 0, -3, -3, -2, -1, -4, -2, 1, 5, -1, -1, -3, -3, -2,
            1, -1, 0, 0, -2, 0, -1, -2, 1, -2, -1, -1, -1, 0, -1, 4, 1, -2, -3, -2,
            0, -1, -1, -1, -2, -2, -2, -1, 0, -1, -1, 0, -1, -1, -1, 1, 5, 0, -2, -2,
            0, -1, -3, -2, -1, -3, -3, 3, -3, 1, 1, -3, -2, -2, -3, -2, 0, 4, -3, -1,
            -3, -2, -4, -3, 1, -2, -2, -3, -1, -2, -1, -1, -4, -2, -3, -3, -2, -3, 11, 2,
            -2, -2, -3, -2, 3, -3, 2, -1, 2, -1, -1, -3, -3, -1, -2, -2, -2, -1, 2, 7
        ], (20, 20)).astype(cls._DTYPE))

    @classmethod
    def build(cls, symbols: bytes, match=1, mismatch=-1):
        """Builds a simple match/mismatch matrix."""
        bounds = np.iinfo(cls._DTYPE)
        for name, value in (('match', match), ('mismatch', mismatch)):
            if not bounds.min <= _check_int(name, value) <= bounds.max:
                raise ScoringError(f'{name}={value} does not fit a {bounds.bits}-bit matrix entry')
        M = np.full((len(symbols), len(symbols)), mismatch, dtype=cls._DTYPE)
        np.fill_diagonal(M, match)
        return cls(symbols, M)


class Scoring:
    """
    Scoring policy for pairwise alignment: a substitution lookup plus the affine gap model and behavioural flags.

    Penalties are signed and added to the running score, so gap penalties are normally negative or zero.
    Opening a gap costs ``gap_open + gap_extend``, each further gap symbol costs ``gap_extend``.

    Args:
        match: Score for identical symbols without an explicit substitution.
        mismatch: Score for differing symbols without an explicit substitution.
        gap_open: Penalty for opening a gap (on top of the first extension).
        gap_extend: Penalty per gap symbol.
        case_sensitive: If False, symbols are case-folded inside ``lookup``.
        no_mismatches: Forbid substitutions between differing symbols.
        no_gaps_in_first: Only allow gaps in the first sequence as leading/trailing overhang.
        no_gaps_in_second: Only allow gaps in the second sequence as leading/trailing overhang.
        no_start_gap_penalty: Leading gaps are free.
        no_end_gap_penalty: Trailing gaps are free.

    Examples:
        >>> s = Scoring(match=1, mismatch=-1, gap_open=0, gap_extend=-1)
        >>> s.lookup('a', 'A')
        (1, True)
    """
    __slots__ = ('match', 'mismatch', 'gap_open', 'gap_extend', 'case_sensitive', 'no_mismatches',
                 'no_gaps_in_first', 'no_gaps_in_second', 'no_start_gap_penalty', 'no_end_gap_penalty',
                 '_substitutions', '_wildcards', '_tables')
    N_CODES: Final = 256
    DTYPE: Final = np.int32

    def __init__(self, match: int = 1, mismatch: int = -2, gap_open: int = -4, gap_extend: int = -1, *,
                 case_sensitive: bool = False, no_mismatches: bool = False, no_gaps_in_first: bool = False,
                 no_gaps_in_second: bool = False, no_start_gap_penalty: bool = False,
                 no_end_gap_penalty: bool = False):
        self.match = _check_int('match', match)
        self.mismatch = _check_int('mismatch', mismatch)
        self.gap_open = _check_int('gap_open', gap_open)
        self.gap_extend = _check_int('gap_extend', gap_extend)
        if self.gap_open > 0 or self.gap_extend > 0:
            warn(f'Positive gap penalties (gap_open={gap_open}, gap_extend={gap_extend}) reward gaps',
                 ScoringWarning)
        self.case_sensitive = bool(case_sensitive)
        self.no_mismatches = bool(no_mismatches)
        self.no_gaps_in_first = bool(no_gaps_in_first)
        self.no_gaps_in_second = bool(no_gaps_in_second)
        self.no_start_gap_penalty = bool(no_start_gap_penalty)
        self.no_end_gap_penalty = bool(no_end_gap_penalty)
        self._substitutions: dict[tuple[int, int], int] = {}
        self._wildcards: dict[int, int] = {}
        self._tables = None

    def __repr__(self):
        flags = [f for f in ('no_mismatches', 'no_gaps_in_first', 'no_gaps_in_second', 'no_start_gap_penalty',
                             'no_end_gap_penalty') if getattr(self, f)]
        return (f"Scoring(match={self.match}, mismatch={self.mismatch}, gap_open={self.gap_open}, "
                f"gap_extend={self.gap_extend}, case_sensitive={self.case_sensitive}"
                f"{''.join(f', {f}=True' for f in flags)})")

    def __setattr__(self, key, value):
        # Any change invalidates the dense tables
        if key != '_tables': object.__setattr__(self, '_tables', None)
        object.__setattr__(self, key, value)

    @classmethod
    def blosum62(cls, gap_open: int = -10, gap_extend: int = -1, **flags) -> 'Scoring':
        """Protein scoring with the BLOSUM62 substitution matrix."""
        scoring = cls(gap_open=gap_open, gap_extend=gap_extend, **flags)
        scoring.add_matrix(ScoreMatrix.blosum62())
        return scoring

    @classmethod
    def linear(cls, match: int = 1, mismatch: int = -1, gap: int = -1, **flags) -> 'Scoring':
        """Linear gap model: every gap symbol costs ``gap`` and opening is free."""
        return cls(match=match, mismatch=mismatch, gap_open=0, gap_extend=gap, **flags)

    def add_substitution(self, a: Union[str, bytes], b: Union[str, bytes], score: int):
        """Sets an explicit score for aligning ``a`` against ``b`` (in that order)."""
        self._substitutions[(self._code(a), self._code(b))] = _check_int('score', score)
        self._tables = None

    def add_matrix(self, matrix: ScoreMatrix):
        """Loads every pair of a substitution matrix as explicit substitutions."""
        for a, b, score in matrix.items(): self._substitutions[(a, b)] = score
        self._tables = None

    def add_wildcard(self, symbol: Union[str, bytes], score: int):
        """Makes ``symbol`` match any symbol with a fixed ``score``."""
        self._wildcards[self._code(symbol)] = _check_int('score', score)
        self._tables = None

    def lookup(self, a: Union[str, bytes, int], b: Union[str, bytes, int]) -> tuple[int, bool]:
        """
        Scores a pair of symbols.

        Args:
            a: Symbol from the first sequence.
            b: Symbol from the second sequence.

        Returns:
            A tuple of (substitution score, is_match).
        """
        scores, matches = self.tables()
        i, j = self._code(a), self._code(b)
        return int(scores[i, j]), bool(matches[i, j])

    def tables(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Returns dense lookup tables indexed by byte code.

        Precedence is wildcard, then explicit substitution, then match/mismatch.
        With ``case_sensitive`` off every code is folded to lower case before lookup.

        Returns:
            A tuple of (``int32`` scores, ``bool`` is_match), both of shape (256, 256).
        """
        if self._tables is not None: return self._tables
        fold = np.arange(self.N_CODES, dtype=np.intp)
        if not self.case_sensitive: fold[ord('A'):ord('Z') + 1] += ord('a') - ord('A')
        canon_match = fold[:, None] == fold[None, :]
        canon = np.where(canon_match, self.match, self.mismatch).astype(self.DTYPE)
        # Explicit entries are written through the fold so every case variant resolves to them
        for (i, j), score in self._substitutions.items():
            canon[np.ix_(fold == fold[i], fold == fold[j])] = score
        is_wild = np.zeros(self.N_CODES, dtype=bool)
        wild_score = np.zeros(self.N_CODES, dtype=self.DTYPE)
        for i, score in self._wildcards.items():
            is_wild[fold == fold[i]] = True
            wild_score[fold == fold[i]] = score
        canon[:, is_wild] = wild_score[is_wild][None, :]
        canon[is_wild, :] = wild_score[is_wild][:, None]
        matches = canon_match | is_wild[:, None] | is_wild[None, :]
        scores = np.ascontiguousarray(canon)
        scores.flags.writeable = False
        matches.flags.writeable = False
        object.__setattr__(self, '_tables', (scores, matches))
        return self._tables

    @staticmethod
    def _code(symbol: Union[str, bytes, int]) -> int:
        if isinstance(symbol, (int, np.integer)):
            if 0 <= symbol < Scoring.N_CODES: return int(symbol)
        elif len(symbol) == 1:
            code = ord(symbol)
            if code < Scoring.N_CODES: return code
        raise ScoringError(f'Expected a single byte-sized symbol, got {symbol!r}')


# Functions ------------------------------------------------------------------------------------------------------------
def _check_int(name: str, value) -> int:
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
        raise ScoringError(f'{name} must be an integer, got {value!r}')
    if not np.iinfo(np.int32).min < value <= np.iinfo(np.int32).max:
        raise ScoringError(f'{name}={value} does not fit a 32-bit score')
    return int(value)
