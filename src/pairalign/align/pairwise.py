"""
High-level pairwise alignment API.
"""
from typing import Union, Literal

from pairalign.core.scoring import Scoring
from pairalign.align.alignment import Alignment
from pairalign.align.matrices import Aligner, AlignerError, Mode
from pairalign.align.traceback import Traceback


# Classes --------------------------------------------------------------------------------------------------------------
class PairwiseAligner:
    """
    Aligns pairs of sequences with one scoring policy, reusing its matrices and result buffer between calls.

    Note that ``align`` returns the same ``Alignment`` object every time; copy out the strings if you need
    to keep them across calls.

    Examples:
        >>> aligner = PairwiseAligner(Scoring.linear(), mode='local')
        >>> aligner.align('TTACGTAA', 'GGACGTCC').result_a
        'ACGT'
    """
    __slots__ = ('scoring', 'mode', '_aligner', '_result')

    def __init__(self, scoring: Scoring = None, mode: Union[Mode, Literal['global', 'local']] = Mode.GLOBAL):
        self.scoring = Scoring() if scoring is None else scoring
        try: self.mode = Mode(mode)
        except ValueError: raise AlignerError(f'Unknown alignment mode: {mode!r}') from None
        self._aligner = Aligner()
        self._result = Alignment()

    def __repr__(self): return f"PairwiseAligner({self.scoring!r}, mode={self.mode.value!r})"

    @property
    def aligner(self) -> Aligner: return self._aligner

    def align(self, seq_a: Union[str, bytes], seq_b: Union[str, bytes]) -> Alignment:
        """Aligns two sequences and returns the (reused) result buffer."""
        self._aligner.fill(seq_a, seq_b, self.scoring, self.mode)
        return Traceback(self._aligner).walk(self._result)

    def score(self, seq_a: Union[str, bytes], seq_b: Union[str, bytes]) -> int:
        """Returns the optimal score without reconstructing the alignment."""
        self._aligner.fill(seq_a, seq_b, self.scoring, self.mode)
        return self._aligner.score


# Functions ------------------------------------------------------------------------------------------------------------
def needleman_wunsch(seq_a: Union[str, bytes], seq_b: Union[str, bytes], scoring: Scoring = None) -> Alignment:
    """
    Global alignment of two sequences.

    Args:
        seq_a: The first sequence.
        seq_b: The second sequence.
        scoring: Scoring policy; ``Scoring()`` defaults if omitted.

    Returns:
        A new Alignment.
    """
    return _align_once(seq_a, seq_b, scoring, Mode.GLOBAL)


def smith_waterman(seq_a: Union[str, bytes], seq_b: Union[str, bytes], scoring: Scoring = None) -> Alignment:
    """
    Local alignment of two sequences; the result is empty (score 0) when nothing scores above zero.

    Args:
        seq_a: The first sequence.
        seq_b: The second sequence.
        scoring: Scoring policy; ``Scoring()`` defaults if omitted.

    Returns:
        A new Alignment.
    """
    return _align_once(seq_a, seq_b, scoring, Mode.LOCAL)


def _align_once(seq_a, seq_b, scoring, mode) -> Alignment:
    aligner = Aligner()
    aligner.fill(seq_a, seq_b, Scoring() if scoring is None else scoring, mode)
    return Traceback(aligner).walk()
