from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Sequence, Tuple

from taskquest.core.database.service import DatabaseService
from taskquest.core.logging.logger import get_logger
from taskquest.database.models.player import PlayerStatsModel, PushTargetModel
from taskquest.domain.models.player import PlayerStats, PushTarget
from taskquest.modules.shared.base_repository import BaseRepository
from taskquest.modules.shared.exceptions import NotFoundError
from taskquest.modules.shared.store import SnapshotStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class PlayerStatsRepository(BaseRepository[PlayerStatsModel]):
    pass


class PushTargetRepository(BaseRepository[PushTargetModel]):
    pass


class PlayerStatsStore(SnapshotStore[str, PlayerStats, PlayerStatsModel]):
    """
    Per-player EXP and claimed rewards.

    The set of keys is the player roster.
    """

    name = "players"
    load_order = "created_at"

    def __init__(self) -> None:
        super().__init__(
            PlayerStatsRepository(PlayerStatsModel, get_logger(f"{__name__}.PlayerStatsRepository")),
            get_logger(f"{__name__}.PlayerStatsStore"),
        )

    def key_of(self, value: PlayerStats) -> str:
        return value.id

    def to_row(self, value: PlayerStats) -> PlayerStatsModel:
        return PlayerStatsModel(
            id=value.id,
            name=value.name,
            exp=value.exp,
            claimed_rewards=list(value.claimed_rewards),
        )

    def from_row(self, row: PlayerStatsModel) -> PlayerStats:
        return PlayerStats(
            id=row.id,
            name=row.name,
            exp=row.exp,
            claimed_rewards=tuple(str(reward) for reward in (row.claimed_rewards or [])),
        )

    def roster(self) -> List[str]:
        return self.keys()

    def require(self, player_id: str) -> PlayerStats:
        player = self.get(player_id)
        if player is None:
            raise NotFoundError("Player", player_id)
        return player

    def display_name(self, player_id: str) -> str:
        """Name for messages; unknown players render as their id."""
        player = self.get(player_id)
        return player.name if player is not None else player_id


class PushTargetStore(SnapshotStore[str, Tuple[str, Tuple[PushTarget, ...]], PushTargetModel]):
    """
    Registered push endpoints, one entry per player.

    Values are ``(player_id, targets)`` pairs; rows are one per endpoint.
    """

    name = "push_targets"

    def __init__(self) -> None:
        super().__init__(
            PushTargetRepository(PushTargetModel, get_logger(f"{__name__}.PushTargetRepository")),
            get_logger(f"{__name__}.PushTargetStore"),
        )

    def key_of(self, value: Tuple[str, Tuple[PushTarget, ...]]) -> str:
        return value[0]

    def targets_for(self, player_id: str) -> Tuple[PushTarget, ...]:
        entry = self.get(player_id)
        return entry[1] if entry else ()

    def all_targets(self) -> Dict[str, Tuple[PushTarget, ...]]:
        return {player_id: targets for player_id, targets in self.snapshot() if targets}

    async def load(self) -> None:
        async with DatabaseService.get_session() as session:
            rows = await self._repo.find_many_where(session, order_by=PushTargetModel.position)

        grouped: Dict[str, List[PushTarget]] = {}
        for row in rows:
            grouped.setdefault(row.player_id, []).append(PushTarget(url=row.url, token=row.token))
        self._items = {player_id: (player_id, tuple(targets)) for player_id, targets in grouped.items()}

        self.log.info(
            "push target store loaded",
            extra={"store": self.name, "count": len(rows)},
        )

    async def persist_targets(
        self, session: AsyncSession, player_id: str, targets: Sequence[PushTarget]
    ) -> None:
        self._ensure_writer()
        await self._repo.delete_where(session, PushTargetModel.player_id == player_id)
        for position, target in enumerate(targets):
            self._repo.add(
                session,
                PushTargetModel(
                    player_id=player_id,
                    position=position,
                    url=target.url,
                    token=target.token,
                ),
            )
