import random

import chess


def pick_bot_move(board: chess.Board, rng: random.Random | None = None) -> chess.Move | None:
    """
    A small, beatable opponent.
    Prefers promotions, then captures, otherwise any legal move at random.
    Returns None when there is nothing to play.
    """
    rng = rng or random.Random()
    moves = list(board.legal_moves)
    if not moves:
        return None

    promotions = [m for m in moves if m.promotion is not None]
    if promotions:
        return rng.choice(promotions)

    captures = [m for m in moves if board.is_capture(m)]
    if captures:
        return rng.choice(captures)

    return rng.choice(moves)
