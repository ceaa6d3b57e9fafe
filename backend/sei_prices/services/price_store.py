"""
Price Store

Single persistence surface for raw observations, tokens and snapshots.
Every operation opens its own session and every insert commits one row;
there are no cross-row transactions.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased

from sei_prices.database import async_session_maker
from sei_prices.models import NewTokenRaw, PriceRaw, PriceSnapshot, Token
from sei_prices.price_feeds.base import PriceObservation

logger = logging.getLogger(__name__)


class PriceStore:
    """
    Append-only price storage.

    Usage:
        store = PriceStore()
        await store.insert_observation(observation)
        latest = await store.latest_for_feed("BTC/USD")
    """

    def __init__(self, session_maker=None):
        self._session_maker = session_maker or async_session_maker

    # ------------------------------------------------------------------
    # Raw observations
    # ------------------------------------------------------------------

    async def insert_observation(self, observation: PriceObservation) -> bool:
        """
        Append one raw row. Duplicates are accepted.

        Returns False on a persistence fault; the caller decides whether
        to retry.
        """
        try:
            async with self._session_maker() as db:
                row = PriceRaw(
                    price_id=observation.price_id,
                    price=observation.price,
                    conf=observation.conf,
                    expo=observation.expo,
                    publish_time=observation.publish_time,
                    source=observation.source,
                )
                db.add(row)
                await db.commit()
                observation.id = row.id
                observation.created_at = row.created_at
                return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert price for {observation.price_id}: {e}")
            return False

    def _latest_rows(self, price_id: Optional[str] = None):
        """
        Latest row per feed key by publish_time. Ties go to the row inserted
        last, so at most one row is returned per key.
        """
        rank = func.row_number().over(
            partition_by=PriceRaw.price_id,
            order_by=(PriceRaw.publish_time.desc(), PriceRaw.id.desc()),
        ).label("rank")

        inner = select(PriceRaw, rank)
        if price_id is not None:
            inner = inner.where(PriceRaw.price_id == price_id)
        ranked = inner.subquery()

        latest = aliased(PriceRaw, ranked)
        return select(latest).where(ranked.c.rank == 1).order_by(latest.price_id)

    async def latest_per_feed(self) -> List[PriceObservation]:
        """One observation per distinct feed key: the most recently published"""
        async with self._session_maker() as db:
            result = await db.execute(self._latest_rows())
            return [PriceObservation.from_row(row) for row in result.scalars().all()]

    async def latest_for_feed(self, price_id: str) -> Optional[PriceObservation]:
        """Latest observation for one feed key, or None if it was never seen"""
        async with self._session_maker() as db:
            result = await db.execute(self._latest_rows(price_id))
            row = result.scalars().first()
            return PriceObservation.from_row(row) if row else None

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def insert_snapshot(
        self,
        token_id: int,
        price: Union[Decimal, float],
        source: str,
    ) -> Optional[PriceSnapshot]:
        """
        Append one snapshot row; the timestamp is assigned here.

        Returns None on a persistence fault, like insert_observation.
        """
        try:
            async with self._session_maker() as db:
                snapshot = PriceSnapshot(
                    token_id=token_id,
                    price=float(price),
                    source=source,
                    timestamp=datetime.utcnow(),
                )
                db.add(snapshot)
                await db.commit()
                return snapshot
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert snapshot for token {token_id}: {e}")
            return None

    async def latest_snapshot_per_token(self) -> Dict[int, PriceSnapshot]:
        """Most recent snapshot for every token that has one"""
        rank = func.row_number().over(
            partition_by=PriceSnapshot.token_id,
            order_by=(PriceSnapshot.timestamp.desc(), PriceSnapshot.id.desc()),
        ).label("rank")
        ranked = select(PriceSnapshot, rank).subquery()
        latest = aliased(PriceSnapshot, ranked)

        async with self._session_maker() as db:
            result = await db.execute(select(latest).where(ranked.c.rank == 1))
            return {snap.token_id: snap for snap in result.scalars().all()}

    async def list_snapshots(self, token_id: int) -> List[PriceSnapshot]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(PriceSnapshot)
                .where(PriceSnapshot.token_id == token_id)
                .order_by(PriceSnapshot.timestamp, PriceSnapshot.id)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    async def list_tokens(self) -> List[Token]:
        async with self._session_maker() as db:
            result = await db.execute(select(Token).order_by(Token.id))
            return list(result.scalars().all())

    async def token_exists(self, contract_address: str) -> bool:
        async with self._session_maker() as db:
            result = await db.execute(
                select(Token.id).where(Token.contract_address == contract_address)
            )
            return result.first() is not None

    async def insert_token(
        self,
        name: str,
        symbol: str,
        decimals: int,
        contract_address: str,
        logo: Optional[str] = None,
    ) -> Token:
        async with self._session_maker() as db:
            token = Token(
                name=name,
                symbol=symbol,
                decimals=decimals,
                logo=logo,
                contract_address=contract_address,
            )
            db.add(token)
            await db.commit()
            return token

    async def seed_tokens(self, tokens: Iterable[dict]) -> int:
        """Insert the given tokens only when the table is empty"""
        async with self._session_maker() as db:
            count = await db.scalar(select(func.count()).select_from(Token))
            if count:
                return 0

            seeded = 0
            for token in tokens:
                db.add(Token(
                    name=token["name"],
                    symbol=token["symbol"],
                    decimals=token["decimals"],
                    logo=token.get("logo"),
                    contract_address=token["contract_address"],
                ))
                seeded += 1
            await db.commit()

        logger.info(f"Sample tokens created ({seeded})")
        return seeded

    # ------------------------------------------------------------------
    # Discovery queue
    # ------------------------------------------------------------------

    async def record_new_token(self, contract_address: str, chain_type: str = "evm") -> NewTokenRaw:
        async with self._session_maker() as db:
            entry = NewTokenRaw(chain_type=chain_type, contract_address=contract_address)
            db.add(entry)
            await db.commit()
            return entry

    async def list_unprocessed_new_tokens(self) -> List[NewTokenRaw]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(NewTokenRaw)
                .where(NewTokenRaw.processed.is_(False))
                .order_by(NewTokenRaw.id)
            )
            return list(result.scalars().all())

    async def mark_new_token_processed(self, new_token_id: int):
        async with self._session_maker() as db:
            await db.execute(
                update(NewTokenRaw)
                .where(NewTokenRaw.id == new_token_id)
                .values(processed=True)
            )
            await db.commit()
