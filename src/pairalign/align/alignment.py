"""
Module for the alignment result buffer.
"""
from typing import Final, Iterator, Union

import numpy as np


# Classes --------------------------------------------------------------------------------------------------------------
class Alignment:
    """
    A pairwise alignment held in two growable, NUL-terminated byte buffers.

    The object is designed for reuse: ``clear`` truncates it, and the buffers only ever grow (to powers of two),
    so repeated alignments of similar size do not reallocate.

    Attributes:
        length (int): Number of aligned columns.
        score (int): Score of the alignment.
        pos_a (int): 0-based start of the aligned region in the first sequence.
        pos_b (int): 0-based start of the aligned region in the second sequence.
        len_a (int): Number of symbols of the first sequence covered by the alignment.
        len_b (int): Number of symbols of the second sequence covered by the alignment.

    Examples:
        >>> aln = Alignment()
        >>> aligned_a, aligned_b, score = aln
    """
    GAP: Final = ord('-')
    DTYPE: Final = np.uint8
    __slots__ = ('_a', '_b', '_capacity', 'length', 'score', 'pos_a', 'pos_b', 'len_a', 'len_b')

    def __init__(self, capacity: int = 256):
        capacity = next_power_of_two(max(capacity, 1))
        self._a = np.zeros(capacity, dtype=self.DTYPE)
        self._b = np.zeros(capacity, dtype=self.DTYPE)
        self._capacity = capacity
        self.clear()

    def __len__(self): return self.length
    def __iter__(self) -> Iterator[Union[str, int]]: return iter((self.result_a, self.result_b, self.score))

    def __repr__(self):
        return f"Alignment({self.result_a!r}, {self.result_b!r}, score={self.score})"

    def __eq__(self, other):
        if isinstance(other, self.__class__):
            return (self.score == other.score and self.result_a == other.result_a and
                    self.result_b == other.result_b and self.pos_a == other.pos_a and self.pos_b == other.pos_b)
        return False

    @property
    def capacity(self) -> int: return self._capacity

    @property
    def result_a(self) -> str:
        """The first aligned string, with gaps."""
        return self._a[:self.length].tobytes().decode('ascii')

    @property
    def result_b(self) -> str:
        """The second aligned string, with gaps."""
        return self._b[:self.length].tobytes().decode('ascii')

    @property
    def buffers(self) -> tuple[np.ndarray, np.ndarray]:
        """Read-only views of both buffers including the terminating NUL."""
        a, b = self._a[:self.length + 1], self._b[:self.length + 1]
        a.flags.writeable = False
        b.flags.writeable = False
        return a, b

    def clear(self):
        """Truncates the alignment without releasing its buffers."""
        self.length = 0
        self.score = 0
        self.pos_a = self.pos_b = self.len_a = self.len_b = 0
        self._a[0] = self._b[0] = 0

    def ensure_capacity(self, length: int):
        """
        Grows both buffers so they can hold ``length`` columns plus the terminator.

        Args:
            length: Number of aligned columns to make room for.
        """
        required = length + 1
        if self._capacity >= required: return
        capacity = next_power_of_two(required)
        for name in ('_a', '_b'):
            new = np.zeros(capacity, dtype=self.DTYPE)
            old = getattr(self, name)
            new[:len(old)] = old
            setattr(self, name, new)
        self._capacity = capacity

    def _seal_reversed(self, n: int):
        # The traceback writes columns last-to-first; flip once and terminate
        self._a[:n] = self._a[:n][::-1].copy()
        self._b[:n] = self._b[:n][::-1].copy()
        self._a[n] = self._b[n] = 0
        self.length = n


# Functions ------------------------------------------------------------------------------------------------------------
def next_power_of_two(n: int) -> int:
    """Returns the smallest power of two that is >= ``n`` (and at least 1)."""
    return 1 if n <= 1 else 1 << (int(n) - 1).bit_length()
