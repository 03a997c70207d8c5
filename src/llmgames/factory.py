"""
Game registry: maps a game-type identifier to its (engine, prompt builder) constructors.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from .engines import ChessEngine, TicTacToeEngine
from .engines.base import GameEngine
from .errors import UnsupportedGameType
from .prompt_builders import ChessPromptBuilder, TicTacToePromptBuilder
from .prompt_builders.base import PromptBuilder


@dataclass(frozen=True)
class GameRegistration:
    game_type: str
    engine_cls: Callable[[], GameEngine]
    builder_cls: Callable[[], PromptBuilder]
    description: str = ""


@dataclass(frozen=True)
class GameContext:
    """Fresh engine/builder pair for one session."""

    game_type: str
    engine: GameEngine
    prompt_builder: PromptBuilder


class GameFactory:
    def __init__(self) -> None:
        self._registry: Dict[str, GameRegistration] = {}

    def register(
        self,
        game_type: str,
        engine_cls: Callable[[], GameEngine],
        builder_cls: Callable[[], PromptBuilder],
        description: str = "",
    ) -> None:
        """Upsert; the last registration for a game type wins."""
        self._registry[game_type] = GameRegistration(game_type, engine_cls, builder_cls, description)

    def unregister(self, game_type: str) -> bool:
        return self._registry.pop(game_type, None) is not None

    def is_supported(self, game_type: str) -> bool:
        return game_type in self._registry

    def supported_types(self) -> List[str]:
        return list(self._registry)

    def create(self, game_type: str) -> GameContext:
        reg = self._registry.get(game_type)
        if reg is None:
            raise UnsupportedGameType(game_type, self.supported_types())
        return GameContext(game_type=game_type, engine=reg.engine_cls(), prompt_builder=reg.builder_cls())

    def games_info(self) -> List[Dict[str, Any]]:
        info: List[Dict[str, Any]] = []
        for game_type, reg in self._registry.items():
            meta = dict(reg.engine_cls().metadata())
            meta["type"] = game_type
            if reg.description:
                meta["description"] = reg.description
            info.append(meta)
        return info


def default_factory() -> GameFactory:
    factory = GameFactory()
    factory.register("chess", ChessEngine, ChessPromptBuilder, "Classic chess against an AI opponent")
    factory.register("tictactoe", TicTacToeEngine, TicTacToePromptBuilder, "Tic-tac-toe against an AI opponent")
    return factory
