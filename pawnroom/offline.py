"""Single-player game against the scripted opponent. No network involved."""

import logging
import random

import chess

from pawnroom.bot import pick_bot_move
from pawnroom.errors import OutOfTurn
from pawnroom.game_state import ChessGame, Side

logger = logging.getLogger(__name__)


class OfflineGame:
    def __init__(self, human_side: Side = Side.FIRST, rng: random.Random | None = None) -> None:
        self.game = ChessGame()
        self.human_side = human_side
        self.bot_side = human_side.opponent
        self.rng = rng or random.Random()

    def start(self) -> dict:
        """Let the bot open when the human plays the second side."""
        if self.game.side_to_move == self.bot_side:
            self._bot_reply()
        return self.state()

    def reset(self) -> dict:
        self.game.reset()
        return self.start()

    def play(self, src: str, dst: str, promotion: str | None = None) -> dict:
        """Apply the human move, then the bot's answer unless the game is over."""
        if self.game.side_to_move != self.human_side:
            raise OutOfTurn()
        self.game.make_move(src, dst, promotion)
        if not self.game.status().game_over:
            self._bot_reply()
        return self.state()

    def result(self) -> dict | None:
        status = self.game.status()
        if status.checkmate:
            # side to move is the one that got mated
            return {"winner": self.game.side_to_move.opponent.value}
        if status.game_over:
            return {"draw": True}
        return None

    def state(self) -> dict:
        payload = self.game.state_payload()
        payload["result"] = self.result()
        return payload

    def _bot_reply(self) -> None:
        move = pick_bot_move(self.game.board, self.rng)
        if move is None:
            return
        promotion = chess.piece_symbol(move.promotion) if move.promotion else None
        applied = self.game.make_move(
            chess.square_name(move.from_square),
            chess.square_name(move.to_square),
            promotion,
        )
        logger.debug(f"Bot played {applied['san']}")
