"""Winner selection from a delivered random word."""

from __future__ import annotations


def select_winner_index(random_word: int, player_count: int) -> int:
    """Map ``random_word`` onto a slot of the frozen participant list.

    Parameters
    ----------
    random_word : int
        First word delivered by the randomness coordinator.
    player_count : int
        Number of entries in the round at request time.

    Returns
    -------
    int
        ``random_word mod player_count``.
    """

    if isinstance(random_word, bool) or not isinstance(random_word, int):
        raise TypeError("random_word must be an integer")
    if random_word < 0:
        raise ValueError("random_word must be non-negative")
    if player_count <= 0:
        raise ValueError("cannot select a winner without players")
    return random_word % player_count


__all__ = ["select_winner_index"]
