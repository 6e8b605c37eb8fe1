"""
Affine-gap pairwise sequence alignment (global Needleman-Wunsch and local Smith-Waterman).
"""
from pairalign.utils.resources import PairalignWarning, DependencyWarning, RESOURCES
from pairalign.core.scoring import Scoring, ScoreMatrix, ScoringError, ScoringWarning
from pairalign.align.alignment import Alignment, next_power_of_two
from pairalign.align.matrices import Aligner, AlignerError, Mode, State
from pairalign.align.traceback import Traceback, TracebackError, reconstruct
from pairalign.align.pairwise import PairwiseAligner, needleman_wunsch, smith_waterman

__all__ = [
    'PairalignWarning', 'DependencyWarning', 'RESOURCES',
    'Scoring', 'ScoreMatrix', 'ScoringError', 'ScoringWarning',
    'Alignment', 'next_power_of_two',
    'Aligner', 'AlignerError', 'Mode', 'State',
    'Traceback', 'TracebackError', 'reconstruct',
    'PairwiseAligner', 'needleman_wunsch', 'smith_waterman',
]
