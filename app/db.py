"""
Async Postgres: orders (current state per order) + order_timeline (insert-only event log).
Status changes are conditional updates keyed on the status the caller read, so a
concurrent decision on the same order fails with Conflict instead of overwriting.
"""
import json
import uuid

import asyncpg
from asyncpg.exceptions import UniqueViolationError

from app.config import settings
from app.errors import Conflict, OrderNotFound
from app.models import Order, OrderStatus, TimelineEvent
from app.repository import OrderFilter

_pool: asyncpg.Pool | None = None


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def init_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS orders (
                order_id VARCHAR(255) PRIMARY KEY,
                order_number VARCHAR(64) NOT NULL UNIQUE,
                customer_id VARCHAR(255) NOT NULL,
                customer_name VARCHAR(255),
                customer_email VARCHAR(255),
                status VARCHAR(32) NOT NULL,
                decision JSONB,
                payment_status VARCHAR(20) NOT NULL,
                payment_method VARCHAR(50),
                total_amount NUMERIC(12, 2) NOT NULL CHECK (total_amount >= 0),
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            );
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_orders_customer_id
            ON orders(customer_id);
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_orders_status
            ON orders(status);
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS order_timeline (
                id UUID PRIMARY KEY,
                order_id VARCHAR(255) NOT NULL REFERENCES orders(order_id),
                seq INT NOT NULL,
                status VARCHAR(32) NOT NULL,
                note TEXT NOT NULL DEFAULT '',
                updated_by JSONB,
                created_at TIMESTAMPTZ NOT NULL,
                UNIQUE(order_id, seq)
            );
        """)


def _dump_json(model) -> str | None:
    return None if model is None else json.dumps(model.model_dump(mode="json"))


def _row_to_event(row) -> TimelineEvent:
    return TimelineEvent(
        status=row["status"],
        note=row["note"],
        timestamp=row["created_at"],
        updated_by=json.loads(row["updated_by"]) if row["updated_by"] else None,
    )


def _row_to_order(row, events: list[TimelineEvent]) -> Order:
    return Order(
        id=row["order_id"],
        order_number=row["order_number"],
        customer_id=row["customer_id"],
        customer_name=row["customer_name"],
        customer_email=row["customer_email"],
        status=row["status"],
        decision=json.loads(row["decision"]) if row["decision"] else None,
        payment_status=row["payment_status"],
        payment_method=row["payment_method"],
        total_amount=row["total_amount"],
        timeline=tuple(events),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def _insert_events(conn: asyncpg.Connection, order_id: str, events, start_seq: int) -> None:
    for seq, event in enumerate(events, start=start_seq):
        await conn.execute(
            """
            INSERT INTO order_timeline (id, order_id, seq, status, note, updated_by, created_at)
            VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7);
            """,
            uuid.uuid4(),
            order_id,
            seq,
            event.status.value,
            event.note,
            _dump_json(event.updated_by),
            event.timestamp,
        )


class PostgresOrderRepository:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def _load_timelines(self, conn: asyncpg.Connection, order_ids: list[str]) -> dict[str, list[TimelineEvent]]:
        rows = await conn.fetch(
            """
            SELECT order_id, status, note, updated_by, created_at FROM order_timeline
            WHERE order_id = ANY($1::varchar[])
            ORDER BY order_id, seq ASC;
            """,
            order_ids,
        )
        timelines: dict[str, list[TimelineEvent]] = {oid: [] for oid in order_ids}
        for r in rows:
            timelines[r["order_id"]].append(_row_to_event(r))
        return timelines

    async def get(self, order_id: str) -> Order:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM orders WHERE order_id = $1;", order_id)
            if row is None:
                raise OrderNotFound(f"Order {order_id} not found", order_id=order_id)
            timelines = await self._load_timelines(conn, [order_id])
        return _row_to_order(row, timelines[order_id])

    async def find(self, order_filter: OrderFilter | None = None) -> list[Order]:
        order_filter = order_filter or OrderFilter()
        clauses: list[str] = []
        args: list = []
        statuses = order_filter.statuses()
        if statuses is not None:
            args.append([s.value for s in statuses])
            clauses.append(f"status = ANY(${len(args)}::varchar[])")
        if order_filter.customer_id is not None:
            args.append(order_filter.customer_id)
            clauses.append(f"customer_id = ${len(args)}")
        term = (order_filter.search or "").strip()
        if term:
            args.append(f"%{term}%")
            n = len(args)
            clauses.append(f"(order_number ILIKE ${n} OR customer_name ILIKE ${n} OR customer_email ILIKE ${n})")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT * FROM orders {where} ORDER BY created_at DESC;", *args)
            timelines = await self._load_timelines(conn, [r["order_id"] for r in rows])
        return [_row_to_order(r, timelines[r["order_id"]]) for r in rows]

    async def add(self, order: Order) -> Order:
        async with self._pool.acquire() as conn:
            try:
                async with conn.transaction():
                    await conn.execute(
                        """
                        INSERT INTO orders (order_id, order_number, customer_id, customer_name, customer_email,
                                            status, decision, payment_status, payment_method, total_amount,
                                            created_at, updated_at)
                        VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9, $10, $11, $12);
                        """,
                        order.id,
                        order.order_number,
                        order.customer_id,
                        order.customer_name,
                        order.customer_email,
                        order.status.value,
                        _dump_json(order.decision),
                        order.payment_status.value,
                        order.payment_method,
                        order.total_amount,
                        order.created_at,
                        order.updated_at,
                    )
                    await _insert_events(conn, order.id, order.timeline, start_seq=0)
            except UniqueViolationError:
                raise Conflict(f"Order {order.order_number} already exists", order_id=order.id) from None
        return order

    async def compare_and_save(self, order: Order, expected_status: OrderStatus) -> Order:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                result = await conn.execute(
                    """
                    UPDATE orders SET status = $1, decision = $2::jsonb, updated_at = $3
                    WHERE order_id = $4 AND status = $5;
                    """,
                    order.status.value,
                    _dump_json(order.decision),
                    order.updated_at,
                    order.id,
                    expected_status.value,
                )
                if result == "UPDATE 0":
                    current = await conn.fetchval("SELECT status FROM orders WHERE order_id = $1;", order.id)
                    if current is None:
                        raise OrderNotFound(f"Order {order.id} not found", order_id=order.id)
                    raise Conflict(
                        f"Order {order.order_number} is now {current}, expected {expected_status.value}",
                        order_id=order.id,
                        current=current,
                    )
                # Row is locked by the update; only events past the stored tail are new.
                stored = await conn.fetchval(
                    "SELECT COUNT(*) FROM order_timeline WHERE order_id = $1;",
                    order.id,
                )
                await _insert_events(conn, order.id, order.timeline[stored:], start_seq=stored)
        return order
