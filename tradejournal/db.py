import asyncpg
from loguru import logger
from typing import Optional
from datetime import datetime, timezone
from tradejournal.config import DATABASE_URL
from tradejournal.exceptions import DuplicateError
from tradejournal.schemas.trade import TradeCreate

TRADE_COLUMNS = """
    t.id, t.ticker, t.enter_time, t.exit_time, t.enter_price, t.exit_price,
    t.quantity, t.manual_pl, t.comments, t.screenshot, t.tradovate_order_id,
    t.tradovate_source, t.created_at,
    COALESCE(
        ARRAY_AGG(tt.tag_id ORDER BY tt.tag_id) FILTER (WHERE tt.tag_id IS NOT NULL),
        '{}'
    ) AS tags
"""

USER_COLUMNS = """
    id, username, hashed_password, is_active, is_premium, subscription_plan,
    subscription_status, theme, tradovate_username, tradovate_password,
    tradovate_cid, tradovate_secret, tradovate_environment, tradovate_last_sync,
    created_at
"""


def _utc(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


def _trade_row(row) -> dict:
    trade = dict(row)
    trade["tags"] = list(trade.get("tags") or [])
    return trade


class DatabaseManager:
    def __init__(self):
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Initialize database connection pool"""
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                DATABASE_URL,
                min_size=1,
                max_size=10
            )
            logger.info("✅ DB pool initialized")

    async def disconnect(self):
        """Close database connection pool"""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("✅ DB pool closed")

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool, raising error if not connected"""
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    async def ping(self) -> bool:
        async with self.pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1

    # --- users ---

    async def get_user_by_username(self, username: str) -> Optional[dict]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE username = $1",
                username
            )
            return dict(row) if row else None

    async def create_user(self, username: str, hashed_password: str) -> dict:
        async with self.pool.acquire() as conn:
            try:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (username, hashed_password, is_active, created_at)
                    VALUES ($1, $2, TRUE, NOW())
                    RETURNING {USER_COLUMNS}
                    """,
                    username, hashed_password
                )
            except asyncpg.UniqueViolationError as e:
                raise DuplicateError("Username already in use.") from e
            return dict(row)

    async def update_user_password(self, user_id: int, hashed_password: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("UPDATE users SET hashed_password = $2 WHERE id = $1", user_id, hashed_password)

    async def update_user_theme(self, user_id: int, theme: str) -> Optional[dict]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"UPDATE users SET theme = $2 WHERE id = $1 RETURNING {USER_COLUMNS}",
                user_id, theme
            )
            return dict(row) if row else None

    async def save_tradovate_credentials(self, user_id: int, encrypted: dict, environment: str) -> None:
        """Store already-encrypted credentials; last sync time is kept."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE users SET
                    tradovate_username = $2,
                    tradovate_password = $3,
                    tradovate_cid = $4,
                    tradovate_secret = $5,
                    tradovate_environment = $6
                WHERE id = $1
                """,
                user_id,
                encrypted["username"],
                encrypted["password"],
                encrypted["cid"],
                encrypted["secret"],
                environment,
            )

    async def clear_tradovate_credentials(self, user_id: int) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE users SET
                    tradovate_username = NULL,
                    tradovate_password = NULL,
                    tradovate_cid = NULL,
                    tradovate_secret = NULL,
                    tradovate_environment = 'demo',
                    tradovate_last_sync = NULL
                WHERE id = $1
                """,
                user_id
            )

    async def touch_tradovate_sync(self, user_id: int) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("UPDATE users SET tradovate_last_sync = NOW() WHERE id = $1", user_id)

    async def list_tradovate_accounts(self) -> list[dict]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {USER_COLUMNS} FROM users WHERE is_active AND tradovate_username IS NOT NULL ORDER BY id"
            )
            return [dict(r) for r in rows]

    # --- trades ---

    async def list_trades(self, owner_id: int, ticker: Optional[str] = None, tag_id: Optional[int] = None) -> list[dict]:
        """Fetch an owner's trades with their tag ids, newest exit first"""
        conditions = ["t.owner_id = $1"]
        args: list = [owner_id]
        if ticker:
            args.append(ticker)
            conditions.append(f"UPPER(t.ticker) = UPPER(${len(args)})")
        if tag_id is not None:
            args.append(tag_id)
            conditions.append(
                f"EXISTS (SELECT 1 FROM trade_tags f WHERE f.trade_id = t.id AND f.tag_id = ${len(args)})"
            )

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {TRADE_COLUMNS}
                FROM trades t
                LEFT JOIN trade_tags tt ON tt.trade_id = t.id
                WHERE {' AND '.join(conditions)}
                GROUP BY t.id
                ORDER BY t.exit_time DESC, t.id DESC
                """,
                *args
            )
            return [_trade_row(r) for r in rows]

    async def _fetch_trade(self, conn, owner_id: int, trade_id: int) -> Optional[dict]:
        row = await conn.fetchrow(
            f"""
            SELECT {TRADE_COLUMNS}
            FROM trades t
            LEFT JOIN trade_tags tt ON tt.trade_id = t.id
            WHERE t.owner_id = $1 AND t.id = $2
            GROUP BY t.id
            """,
            owner_id, trade_id
        )
        return _trade_row(row) if row else None

    async def get_trade(self, owner_id: int, trade_id: int) -> Optional[dict]:
        async with self.pool.acquire() as conn:
            return await self._fetch_trade(conn, owner_id, trade_id)

    async def _set_trade_tags(self, conn, owner_id: int, trade_id: int, tag_ids: list[int]) -> None:
        await conn.execute("DELETE FROM trade_tags WHERE trade_id = $1", trade_id)
        if tag_ids:
            # only the owner's own tags can be attached
            await conn.execute(
                """
                INSERT INTO trade_tags (trade_id, tag_id)
                SELECT $1, id FROM tags WHERE owner_id = $2 AND id = ANY($3::int[])
                """,
                trade_id, owner_id, list(set(tag_ids))
            )

    async def _insert_trade(self, conn, owner_id: int, trade_data: TradeCreate) -> int:
        trade_id = await conn.fetchval(
            """
            INSERT INTO trades (
                owner_id, ticker, enter_time, exit_time, enter_price, exit_price,
                quantity, manual_pl, comments, screenshot, created_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, NOW())
            RETURNING id
            """,
            owner_id,
            trade_data.ticker,
            _utc(trade_data.enter_time),
            _utc(trade_data.exit_time),
            trade_data.enter_price,
            trade_data.exit_price,
            trade_data.quantity,
            trade_data.manual_pl,
            trade_data.comments,
            trade_data.screenshot,
        )
        await self._set_trade_tags(conn, owner_id, trade_id, trade_data.tags)
        return trade_id

    async def create_trade(self, owner_id: int, trade_data: TradeCreate) -> dict:
        """Insert a new trade and return the inserted row"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                trade_id = await self._insert_trade(conn, owner_id, trade_data)
                return await self._fetch_trade(conn, owner_id, trade_id)

    async def insert_trades(self, owner_id: int, trades: list[TradeCreate]) -> int:
        """Insert an import batch atomically; returns the number inserted"""
        if not trades:
            return 0
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                for trade_data in trades:
                    await self._insert_trade(conn, owner_id, trade_data)
        logger.info(f"✅ Imported {len(trades)} trades for owner {owner_id}")
        return len(trades)

    async def update_trade(self, owner_id: int, trade_id: int, trade_data: TradeCreate) -> Optional[dict]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                updated_id = await conn.fetchval(
                    """
                    UPDATE trades SET
                        ticker = $3,
                        enter_time = $4,
                        exit_time = $5,
                        enter_price = $6,
                        exit_price = $7,
                        quantity = $8,
                        manual_pl = $9,
                        comments = $10,
                        screenshot = $11
                    WHERE owner_id = $1 AND id = $2
                    RETURNING id
                    """,
                    owner_id,
                    trade_id,
                    trade_data.ticker,
                    _utc(trade_data.enter_time),
                    _utc(trade_data.exit_time),
                    trade_data.enter_price,
                    trade_data.exit_price,
                    trade_data.quantity,
                    trade_data.manual_pl,
                    trade_data.comments,
                    trade_data.screenshot,
                )
                if updated_id is None:
                    return None
                await self._set_trade_tags(conn, owner_id, trade_id, trade_data.tags)
                return await self._fetch_trade(conn, owner_id, trade_id)

    async def delete_trade(self, owner_id: int, trade_id: int) -> bool:
        """Delete a trade by ID. Returns True if deleted, False if not found."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM trades WHERE owner_id = $1 AND id = $2",
                owner_id, trade_id
            )
            deleted_count = int(result.split(" ")[1])
            return deleted_count > 0

    async def get_tradovate_order_ids(self, owner_id: int, order_ids: list[str]) -> set[str]:
        if not order_ids:
            return set()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT tradovate_order_id FROM trades WHERE owner_id = $1 AND tradovate_order_id = ANY($2::text[])",
                owner_id, order_ids
            )
            return {r["tradovate_order_id"] for r in rows}

    async def insert_broker_trades(self, owner_id: int, trades: list[dict]) -> int:
        """Insert synthesized broker trades one by one.

        Orders that already exist (e.g. a concurrent sync got there first)
        or fail to insert are skipped and not counted.
        """
        inserted = 0
        async with self.pool.acquire() as conn:
            for t in trades:
                try:
                    trade_id = await conn.fetchval(
                        """
                        INSERT INTO trades (
                            owner_id, ticker, enter_time, exit_time, enter_price, exit_price,
                            quantity, tradovate_order_id, tradovate_source, created_at
                        )
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, NOW())
                        ON CONFLICT (owner_id, tradovate_order_id) DO NOTHING
                        RETURNING id
                        """,
                        owner_id,
                        t["ticker"],
                        _utc(t["enter_time"]),
                        _utc(t["exit_time"]),
                        t["enter_price"],
                        t["exit_price"],
                        t["quantity"],
                        t["tradovate_order_id"],
                        t["tradovate_source"],
                    )
                except asyncpg.PostgresError as e:
                    logger.warning(f"Skipping broker order {t['tradovate_order_id']}: {e}")
                    continue
                if trade_id is not None:
                    inserted += 1
        return inserted

    # --- tags ---

    async def list_tags(self, owner_id: int) -> list[dict]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT id, name, color FROM tags WHERE owner_id = $1 ORDER BY name",
                owner_id
            )
            return [dict(r) for r in rows]

    async def create_tag(self, owner_id: int, name: str, color: str) -> dict:
        async with self.pool.acquire() as conn:
            try:
                row = await conn.fetchrow(
                    "INSERT INTO tags (owner_id, name, color) VALUES ($1, $2, $3) RETURNING id, name, color",
                    owner_id, name, color
                )
            except asyncpg.UniqueViolationError as e:
                raise DuplicateError("A tag with that name already exists!") from e
            return dict(row)

    async def update_tag(self, owner_id: int, tag_id: int, name: Optional[str], color: Optional[str]) -> Optional[dict]:
        async with self.pool.acquire() as conn:
            try:
                row = await conn.fetchrow(
                    """
                    UPDATE tags SET
                        name = COALESCE($3, name),
                        color = COALESCE($4, color)
                    WHERE owner_id = $1 AND id = $2
                    RETURNING id, name, color
                    """,
                    owner_id, tag_id, name, color
                )
            except asyncpg.UniqueViolationError as e:
                raise DuplicateError("A tag with that name already exists!") from e
            return dict(row) if row else None

    async def delete_tag(self, owner_id: int, tag_id: int) -> bool:
        """Delete a tag and detach it from every trade in one transaction."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                deleted = await conn.fetchval(
                    "DELETE FROM tags WHERE owner_id = $1 AND id = $2 RETURNING id",
                    owner_id, tag_id
                )
                if deleted is None:
                    return False
                # trade_tags rows go with the tag via ON DELETE CASCADE
                return True

db = DatabaseManager()
