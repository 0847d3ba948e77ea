from dataclasses import dataclass
from enum import StrEnum

import chess

from pawnroom.errors import IllegalMove


class Side(StrEnum):
    FIRST = "first"
    SECOND = "second"

    @property
    def opponent(self) -> "Side":
        return Side.SECOND if self is Side.FIRST else Side.FIRST

    @classmethod
    def from_color(cls, color: chess.Color) -> "Side":
        return cls.FIRST if color == chess.WHITE else cls.SECOND


@dataclass(frozen=True)
class GameStatus:
    in_check: bool
    checkmate: bool
    stalemate: bool
    draw: bool

    @property
    def game_over(self) -> bool:
        return self.checkmate or self.draw


@dataclass(frozen=True)
class Move:
    """A requested move. Consumed immediately, never stored."""

    src: str
    dst: str
    promotion: str | None = None


def parse_promotion(value: str | None) -> chess.PieceType | None:
    """Accept a piece letter ("q") or name ("queen"); None when not given."""
    text = (value or "").strip().lower()
    if not text:
        return None
    if text in chess.PIECE_NAMES:
        piece_type = chess.PIECE_NAMES.index(text)
    elif len(text) == 1 and text in chess.PIECE_SYMBOLS:
        piece_type = chess.PIECE_SYMBOLS.index(text)
    else:
        raise ValueError(f"Unknown promotion piece: {value!r}")
    if piece_type in (chess.PAWN, chess.KING):
        raise ValueError(f"Cannot promote to {value!r}")
    return piece_type


# Simple class that owns all chess game state and rules
class ChessGame:
    def __init__(self, fen: str | None = None) -> None:
        self.board = chess.Board(fen) if fen else chess.Board()
        self.last_move: dict | None = None

    def reset(self) -> None:
        """Reset the game to the initial position."""
        self.board = chess.Board()
        self.last_move = None

    @property
    def side_to_move(self) -> Side:
        return Side.from_color(self.board.turn)

    @property
    def fen(self) -> str:
        return self.board.fen()

    def legal_moves(self) -> list[chess.Move]:
        return list(self.board.legal_moves)

    def legal_move_index(self) -> dict[str, list[str]]:
        """Legal destination squares grouped by origin square."""
        index: dict[str, list[str]] = {}
        for move in self.legal_moves():
            targets = index.setdefault(chess.square_name(move.from_square), [])
            target = chess.square_name(move.to_square)
            # promotions generate one move per piece for the same target
            if target not in targets:
                targets.append(target)
        return index

    def make_move(self, src: str, dst: str, promotion: str | None = None) -> dict:
        """
        Play a move and return a description of it.

        A pawn reaching the last rank is promoted to a queen unless another
        piece is requested. The promotion is ignored for any other move.
        Raises IllegalMove, leaving the board untouched, if the move is not legal.
        """
        try:
            from_square = chess.parse_square(src.strip().lower())
            to_square = chess.parse_square(dst.strip().lower())
        except (AttributeError, ValueError) as exc:
            raise IllegalMove() from exc

        candidates = [
            m
            for m in self.legal_moves()
            if m.from_square == from_square and m.to_square == to_square
        ]
        if not candidates:
            raise IllegalMove()

        move = candidates[0]
        if move.promotion is not None:
            try:
                wanted = parse_promotion(promotion) or chess.QUEEN
            except ValueError as exc:
                raise IllegalMove() from exc
            move = next((m for m in candidates if m.promotion == wanted), None)
            if move is None:
                raise IllegalMove()

        applied = {
            "from": chess.square_name(move.from_square),
            "to": chess.square_name(move.to_square),
            "promotion": chess.piece_symbol(move.promotion) if move.promotion else None,
            "san": self.board.san(move),
            "side": self.side_to_move.value,
            "capture": self.board.is_capture(move),
        }
        self.board.push(move)
        self.last_move = applied
        return applied

    def status(self) -> GameStatus:
        checkmate = self.board.is_checkmate()
        stalemate = self.board.is_stalemate()
        # fifty moves and threefold repetition end the game without a claim
        draw = not checkmate and (
            self.board.is_game_over()
            or self.board.is_fifty_moves()
            or self.board.is_repetition(3)
        )
        return GameStatus(
            in_check=self.board.is_check(),
            checkmate=checkmate,
            stalemate=stalemate,
            draw=draw,
        )

    def state_payload(self) -> dict:
        """Return the current game state as a JSON-friendly dict."""
        status = self.status()
        return {
            "position": self.board.fen(),
            "sideToMove": self.side_to_move.value,
            "lastMove": self.last_move,
            "legalMoveIndex": self.legal_move_index(),
            "inCheck": status.in_check,
            "gameOver": status.game_over,
            "checkmate": status.checkmate,
            "draw": status.draw,
        }
