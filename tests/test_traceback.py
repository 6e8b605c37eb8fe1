import pytest
from pairalign.align.alignment import Alignment
from pairalign.align.matrices import Aligner, State
from pairalign.align.traceback import Traceback, TracebackError, reconstruct
from pairalign.core.scoring import Scoring


def align(seq_a, seq_b, scoring, mode='global') -> Alignment:
    aligner = Aligner()
    aligner.fill(seq_a, seq_b, scoring, mode)
    return reconstruct(aligner)


def rescore(aln: Alignment, seq_a: str, seq_b: str, scoring: Scoring) -> int:
    """Scores the aligned columns independently of the matrices."""
    n, m = len(seq_a), len(seq_b)
    x, y, total, previous = aln.pos_a, aln.pos_b, 0, None
    open_pen, ext_pen = scoring.gap_open + scoring.gap_extend, scoring.gap_extend
    for a, b in zip(aln.result_a, aln.result_b):
        assert not (a == '-' and b == '-')
        if a == '-':
            free = (x == n and scoring.no_end_gap_penalty) or (x == 0 and scoring.no_start_gap_penalty)
            total += 0 if free else ext_pen if previous == State.GAP_FIRST else open_pen
            previous, y = State.GAP_FIRST, y + 1
        elif b == '-':
            free = (y == m and scoring.no_end_gap_penalty) or (y == 0 and scoring.no_start_gap_penalty)
            total += 0 if free else ext_pen if previous == State.GAP_SECOND else open_pen
            previous, x = State.GAP_SECOND, x + 1
        else:
            sub, is_match = scoring.lookup(a, b)
            assert is_match or not scoring.no_mismatches
            total += sub
            previous, x, y = State.MATCH, x + 1, y + 1
    assert (x - aln.pos_a, y - aln.pos_b) == (aln.len_a, aln.len_b)
    return total


GLOBAL_CASES = [
    ('GATTACA', 'GCATGCU', Scoring.linear()),
    ('ACGTTGCA', 'ACGGCA', Scoring()),
    ('ACGT', 'TTACGTTT', Scoring(no_start_gap_penalty=True, no_end_gap_penalty=True)),
    ('TTACGTTT', 'ACGT', Scoring(no_start_gap_penalty=True, no_end_gap_penalty=True)),
    ('ACGTACGT', 'ACGT', Scoring(no_end_gap_penalty=True)),
    ('ACGT', 'AACGTT', Scoring(no_gaps_in_first=True)),
    ('AACGTT', 'ACGT', Scoring(no_gaps_in_second=True)),
    ('ACGTAC', 'ACTTAC', Scoring(no_mismatches=True)),
    ('acgtn', 'ACGTA', Scoring()),
    ('HEAGAWGHEE', 'PAWHEAE', Scoring.blosum62()),
    ('', 'ACGT', Scoring()),
    ('ACGT', '', Scoring(gap_open=-5, gap_extend=-1)),
]

LOCAL_CASES = [
    ('TTACGTAA', 'GGACGTCC', Scoring.linear()),
    ('GATTACA', 'GCATGCU', Scoring(match=2, mismatch=-1, gap_open=-2, gap_extend=-1)),
    ('HEAGAWGHEE', 'PAWHEAE', Scoring.blosum62()),
    ('AAACCCGGGTTT', 'CCCGGAGTT', Scoring(match=3, mismatch=-3, gap_open=-2, gap_extend=-2)),
    ('AAAA', 'CCCC', Scoring()),
    ('GGACGTACGTCC', 'TTACGAACGTAA', Scoring(match=3, mismatch=-2, no_mismatches=True)),
    ('CCACGTTACGTGG', 'AACGTACGTAA', Scoring(match=3, no_gaps_in_first=True)),
    ('AACGTACGTAA', 'CCACGTTACGTGG', Scoring(match=3, no_gaps_in_second=True)),
    ('TTACGTACG', 'ACGTACGTT', Scoring(match=2, no_start_gap_penalty=True, no_end_gap_penalty=True)),
    ('ACGTTTACGT', 'ACGTACGT', Scoring(match=2, no_gaps_in_first=True, no_gaps_in_second=True,
                                        no_mismatches=True, no_end_gap_penalty=True)),
]


class TestGlobal:
    @pytest.mark.parametrize("seq_a, seq_b, scoring", GLOBAL_CASES)
    def test_columns_reproduce_score(self, seq_a, seq_b, scoring):
        aln = align(seq_a, seq_b, scoring)
        assert rescore(aln, seq_a, seq_b, scoring) == aln.score

    @pytest.mark.parametrize("seq_a, seq_b, scoring", GLOBAL_CASES)
    def test_covers_both_sequences(self, seq_a, seq_b, scoring):
        aln = align(seq_a, seq_b, scoring)
        assert aln.result_a.replace('-', '') == seq_a
        assert aln.result_b.replace('-', '') == seq_b
        assert (aln.pos_a, aln.pos_b, aln.len_a, aln.len_b) == (0, 0, len(seq_a), len(seq_b))

    def test_gattaca(self):
        aln = align('GATTACA', 'GCATGCU', Scoring.linear())
        assert aln.score == 0
        assert len(aln) >= 7
        assert len(aln.result_a) == len(aln.result_b) == len(aln)

    def test_identical(self):
        aln = align('AAA', 'AAA', Scoring(match=1, mismatch=-10, gap_open=-10, gap_extend=-10))
        assert tuple(aln) == ('AAA', 'AAA', 3)

    def test_free_end_gaps(self):
        assert tuple(align('ACGT', 'TTACGTTT', Scoring(no_start_gap_penalty=True, no_end_gap_penalty=True))) == \
               ('--ACGT--', 'TTACGTTT', 4)

    def test_penalised_end_gaps(self):
        assert align('ACGT', 'TTACGTTT', Scoring()).score == -8

    def test_free_trailing_only(self):
        aln = align('ACGT', 'ACGTTT', Scoring(no_end_gap_penalty=True))
        assert tuple(aln) == ('ACGT--', 'ACGTTT', 4)

    def test_free_leading_only(self):
        aln = align('ACGT', 'TTACGT', Scoring(no_start_gap_penalty=True))
        assert tuple(aln) == ('--ACGT', 'TTACGT', 4)

    @pytest.mark.parametrize("flags, expected", [
        ({}, -9),
        ({'no_start_gap_penalty': True}, 0),
        ({'no_end_gap_penalty': True}, 0),
    ])
    def test_empty_second_sequence(self, flags, expected):
        aln = align('ACGT', '', Scoring(gap_open=-5, gap_extend=-1, **flags))
        assert tuple(aln) == ('ACGT', '----', expected)

    def test_both_empty(self):
        assert tuple(align('', '', Scoring())) == ('', '', 0)

    def test_no_gaps_in_first_only_overhangs(self):
        aln = align('ACGT', 'AACGTT', Scoring(no_gaps_in_first=True))
        assert '-' not in aln.result_a.strip('-')

    def test_no_gaps_in_second_only_overhangs(self):
        aln = align('AACGTT', 'ACGT', Scoring(no_gaps_in_second=True))
        assert '-' not in aln.result_b.strip('-')

    def test_no_mismatches(self):
        aln = align('ACGTAC', 'ACTTAC', Scoring(no_mismatches=True))
        for a, b in zip(aln.result_a, aln.result_b):
            assert a == '-' or b == '-' or a == b


class TestTieBreaks:
    def test_terminal_prefers_match(self):
        # MATCH and GAP_SECOND both score 0 at the final cell
        assert tuple(align('AA', 'A', Scoring.linear(1, -1, -1))) == ('AA', '-A', 0)

    def test_step_prefers_gap_in_first(self):
        # X-A/-YA and XA/YA both score -1; the walk tries GAP_FIRST before MATCH
        assert tuple(align('XA', 'YA', Scoring.linear(1, -2, -1))) == ('X-A', '-YA', -1)

    def test_local_first_maximum(self):
        aln = align('AC', 'CA', Scoring.linear(), 'local')
        assert tuple(aln) == ('A', 'A', 1)
        assert (aln.pos_a, aln.pos_b) == (0, 1)


class TestLocal:
    @pytest.mark.parametrize("seq_a, seq_b, scoring", LOCAL_CASES)
    def test_columns_reproduce_score(self, seq_a, seq_b, scoring):
        aln = align(seq_a, seq_b, scoring, 'local')
        assert rescore(aln, seq_a, seq_b, scoring) == aln.score

    @pytest.mark.parametrize("seq_a, seq_b, scoring", LOCAL_CASES)
    def test_is_substring_alignment(self, seq_a, seq_b, scoring):
        aln = align(seq_a, seq_b, scoring, 'local')
        assert aln.result_a.replace('-', '') == seq_a[aln.pos_a:aln.pos_a + aln.len_a]
        assert aln.result_b.replace('-', '') == seq_b[aln.pos_b:aln.pos_b + aln.len_b]
        assert aln.score >= 0
        if len(aln):
            # Never starts or ends on a gap
            assert '-' not in (aln.result_a[0], aln.result_b[0], aln.result_a[-1], aln.result_b[-1])

    def test_core(self):
        aln = align('TTACGTAA', 'GGACGTCC', Scoring.linear(), 'local')
        assert tuple(aln) == ('ACGT', 'ACGT', 4)
        assert (aln.pos_a, aln.pos_b, aln.len_a, aln.len_b) == (2, 2, 4, 4)

    def test_nothing_positive(self):
        aln = align('AAAA', 'CCCC', Scoring(), 'local')
        assert tuple(aln) == ('', '', 0)
        assert aln.len_a == aln.len_b == 0

    def test_no_mismatches_columns(self):
        scoring = Scoring(match=3, mismatch=-2, no_mismatches=True)
        aln = align('GGACGTACGTCC', 'TTACGAACGTAA', scoring, 'local')
        assert aln.score > 0
        for a, b in zip(aln.result_a, aln.result_b):
            assert a == '-' or b == '-' or a == b

    @pytest.mark.parametrize("flag, seq_a, seq_b", [
        ('no_gaps_in_first', 'CCACGTTACGTGG', 'AACGTACGTAA'),
        ('no_gaps_in_second', 'AACGTACGTAA', 'CCACGTTACGTGG'),
    ])
    def test_forbidden_gaps_absent(self, flag, seq_a, seq_b):
        aln = align(seq_a, seq_b, Scoring(match=3, **{flag: True}), 'local')
        assert aln.score > 0
        assert '-' not in (aln.result_a if flag == 'no_gaps_in_first' else aln.result_b)

    def test_local_at_least_global(self):
        scoring = Scoring()
        assert align('GATTACA', 'GCATGCU', scoring, 'local').score >= \
               align('GATTACA', 'GCATGCU', scoring).score


class TestErrors:
    def test_unfilled(self):
        with pytest.raises(TracebackError, match="not been filled"):
            reconstruct(Aligner())

    def test_corrupted_matrix(self):
        aligner = Aligner()
        aligner.fill('ACGT', 'ACGT', Scoring(), 'global')
        aligner.match_scores[4, 4] += 100
        with pytest.raises(TracebackError) as excinfo:
            reconstruct(aligner)
        assert excinfo.value.score == 104
        assert excinfo.value.state == State.MATCH

    def test_overflow(self):
        aligner = Aligner()
        aligner.fill('AAAA', 'AAAA', Scoring(match=2 ** 30), 'global')
        with pytest.raises(TracebackError, match="overflow"):
            reconstruct(aligner)


class TestReuse:
    def test_scoring_changed_after_fill(self):
        scoring = Scoring()
        aligner = Aligner()
        aligner.fill('ACGT', 'AGT', scoring, 'global')
        expected = aligner.score
        scoring.match = 10
        scoring.gap_open = -1
        assert reconstruct(aligner).score == expected

    def test_walk_into_buffer(self):
        aligner = Aligner()
        aligner.fill('ACGT', 'ACGT', Scoring(), 'global')
        result = Alignment(capacity=2)
        assert Traceback(aligner).walk(result) is result
        assert result.result_a == 'ACGT'

    def test_unpack(self):
        aligner = Aligner()
        aligner.fill('ACGT', 'ACGT', Scoring(), 'global')
        aligned_a, aligned_b, score = reconstruct(aligner)
        assert (aligned_a, aligned_b, score) == ('ACGT', 'ACGT', 4)
