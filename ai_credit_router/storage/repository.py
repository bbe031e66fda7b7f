"""
Repository pattern for data access.

Handles the append-only usage log and the per-user credit ledger.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Union

from ai_credit_router.core.credits import CREDIT_RESET_PERIOD, TIER_MONTHLY_CREDITS
from ai_credit_router.core.errors import ValidationError
from ai_credit_router.core.routing import SubscriptionTier, parse_tier

from .db import DEFAULT_DB_PATH, get_connection
from .models import CreditBalance, CreditCheck, UsageRecord

_USAGE_COLUMNS = (
    "timestamp, user_id, task, provider, model, input_tokens, output_tokens, "
    "thinking_tokens, credit_cost, web_search, extended_thinking, request_id"
)


def _row_to_record(row) -> UsageRecord:
    return UsageRecord(
        timestamp=datetime.fromisoformat(row[0]),
        user_id=row[1],
        task=row[2],
        provider=row[3],
        model=row[4],
        input_tokens=row[5],
        output_tokens=row[6],
        thinking_tokens=row[7],
        credit_cost=row[8],
        web_search=bool(row[9]),
        extended_thinking=bool(row[10]),
        request_id=row[11]
    )


def _record_to_params(record: UsageRecord) -> tuple:
    return (
        record.timestamp.isoformat(),
        record.user_id,
        record.task,
        record.provider,
        record.model,
        record.input_tokens,
        record.output_tokens,
        record.thinking_tokens,
        record.credit_cost,
        int(record.web_search),
        int(record.extended_thinking),
        record.request_id
    )


class UsageRepository:
    """Repository for reading usage records.

    This class provides a higher-level interface to the usage log,
    making it easier to work with usage data in a type-safe manner.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def get_recent_records(
        self,
        user_id: Optional[str] = None,
        provider: Optional[str] = None,
        days: Optional[int] = None,
        limit: int = 1000
    ) -> List[UsageRecord]:
        """Get recent usage records with optional filtering.

        Args:
            user_id: Optional filter for a specific user
            provider: Optional filter for a specific provider tag
            days: Optional number of days to look back
            limit: Maximum number of records to return

        Returns:
            List of usage records ordered by timestamp (newest first)
        """
        conn = get_connection(self.db_path)
        try:
            query = f"SELECT {_USAGE_COLUMNS} FROM ai_usage_record"
            params = []
            conditions = []

            if user_id:
                conditions.append("user_id = ?")
                params.append(user_id)
            if provider:
                conditions.append("provider = ?")
                params.append(provider)
            if days is not None:
                cutoff = (datetime.now() - timedelta(days=days)).isoformat()
                conditions.append("timestamp >= ?")
                params.append(cutoff)

            if conditions:
                query += " WHERE " + " AND ".join(conditions)

            query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
            params.append(limit)

            cursor = conn.execute(query, params)
            return [_row_to_record(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_usage_stats(
        self,
        user_id: Optional[str] = None,
        provider: Optional[str] = None,
        days: int = 30
    ) -> Dict[str, float]:
        """Get usage statistics for the specified time period.

        Args:
            user_id: Optional filter for a specific user
            provider: Optional filter for a specific provider tag
            days: Number of days to include in the statistics

        Returns:
            Dictionary containing usage statistics
        """
        conn = get_connection(self.db_path)
        try:
            cutoff = (datetime.now() - timedelta(days=days)).isoformat()

            query = """
                SELECT
                    COUNT(*) as total_requests,
                    SUM(credit_cost) as total_credits,
                    AVG(credit_cost) as avg_credits,
                    SUM(input_tokens + output_tokens + thinking_tokens) as total_tokens
                FROM ai_usage_record
                WHERE timestamp >= ?
            """
            params = [cutoff]

            if user_id:
                query += " AND user_id = ?"
                params.append(user_id)
            if provider:
                query += " AND provider = ?"
                params.append(provider)

            cursor = conn.execute(query, params)
            row = cursor.fetchone()

            return {
                "total_requests": row[0] or 0,
                "total_credits": row[1] or 0,
                "avg_credits": float(row[2] or 0),
                "total_tokens": row[3] or 0
            }
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the usage log and credit ledger tables if they don't exist.

    ai_usage_record is an append-only ledger of immutable records.
    No UPDATE or DELETE operations should ever be performed on it.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ai_usage_record (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                user_id TEXT NOT NULL,
                task TEXT NOT NULL,
                provider TEXT NOT NULL,
                model TEXT NOT NULL,
                input_tokens INTEGER NOT NULL,
                output_tokens INTEGER NOT NULL,
                thinking_tokens INTEGER NOT NULL DEFAULT 0,
                credit_cost INTEGER NOT NULL CHECK (credit_cost >= 1),
                web_search INTEGER NOT NULL DEFAULT 0,
                extended_thinking INTEGER NOT NULL DEFAULT 0,
                request_id TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS user_credit_balance (
                user_id TEXT PRIMARY KEY,
                tier TEXT NOT NULL,
                credits_remaining INTEGER NOT NULL CHECK (credits_remaining >= 0),
                credits_reset_date TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


def insert_usage_record(record: UsageRecord, db_path: str = DEFAULT_DB_PATH) -> None:
    """Append a single usage record to the ledger.

    Args:
        record: The usage record to store
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute(
            f"INSERT INTO ai_usage_record ({_USAGE_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            _record_to_params(record)
        )
        conn.commit()
    finally:
        conn.close()


def fetch_recent_usage_records(
    user_id: Optional[str] = None,
    provider: Optional[str] = None,
    limit: int = 100,
    db_path: str = DEFAULT_DB_PATH
) -> List[UsageRecord]:
    """Fetch recent usage records, optionally filtered by user and provider.

    Returns records in reverse chronological order (newest first).

    Args:
        user_id: Optional filter for a specific user
        provider: Optional filter for a specific provider tag
        limit: Maximum number of records to return
        db_path: Path to SQLite database file

    Returns:
        List of usage records ordered by timestamp (newest first)
    """
    return UsageRepository(db_path).get_recent_records(
        user_id=user_id,
        provider=provider,
        limit=limit
    )


def grant_monthly_credits(
    user_id: str,
    tier: Union[SubscriptionTier, str],
    db_path: str = DEFAULT_DB_PATH,
    now: Optional[datetime] = None
) -> CreditBalance:
    """Reset a user's balance to the monthly allowance of their tier.

    Creates the ledger row if the user has none. The next reset date is
    pushed one reset period past ``now``.

    Args:
        user_id: User identifier
        tier: Subscription tier deciding the allowance
        db_path: Path to SQLite database file
        now: Grant time (defaults to the current time)

    Returns:
        The new CreditBalance
    """
    if not user_id or not user_id.strip():
        raise ValidationError("user_id is required and cannot be empty")
    sub_tier = parse_tier(tier)
    now = now or datetime.now()
    balance = CreditBalance(
        user_id=user_id,
        tier=sub_tier.value,
        credits_remaining=TIER_MONTHLY_CREDITS[sub_tier],
        credits_reset_date=now + CREDIT_RESET_PERIOD
    )

    conn = get_connection(db_path)
    try:
        conn.execute("""
            INSERT INTO user_credit_balance (user_id, tier, credits_remaining, credits_reset_date)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                tier = excluded.tier,
                credits_remaining = excluded.credits_remaining,
                credits_reset_date = excluded.credits_reset_date
        """, (
            balance.user_id,
            balance.tier,
            balance.credits_remaining,
            balance.credits_reset_date.isoformat()
        ))
        conn.commit()
    finally:
        conn.close()

    return balance


def get_credit_balance(user_id: str, db_path: str = DEFAULT_DB_PATH) -> Optional[CreditBalance]:
    """Fetch the credit balance of a user, or None if the user has no ledger row."""
    conn = get_connection(db_path)
    try:
        row = conn.execute(
            "SELECT user_id, tier, credits_remaining, credits_reset_date "
            "FROM user_credit_balance WHERE user_id = ?",
            (user_id,)
        ).fetchone()
    finally:
        conn.close()

    if row is None:
        return None
    return CreditBalance(
        user_id=row[0],
        tier=row[1],
        credits_remaining=row[2],
        credits_reset_date=datetime.fromisoformat(row[3])
    )


def check_credits(user_id: str, estimated_cost: int, db_path: str = DEFAULT_DB_PATH) -> CreditCheck:
    """Check whether a user can afford an estimated charge.

    Raises:
        LookupError: If the user has no credit balance
    """
    balance = get_credit_balance(user_id, db_path)
    if balance is None:
        raise LookupError(f"No credit balance for user: {user_id}")

    return CreditCheck(
        has_enough_credits=balance.credits_remaining >= estimated_cost,
        credits_remaining=balance.credits_remaining,
        tier=balance.tier
    )


def _deduct(conn, user_id: str, credit_cost: int) -> int:
    row = conn.execute(
        "SELECT credits_remaining FROM user_credit_balance WHERE user_id = ?",
        (user_id,)
    ).fetchone()
    if row is None:
        raise LookupError(f"No credit balance for user: {user_id}")

    new_balance = max(0, row[0] - credit_cost)
    conn.execute(
        "UPDATE user_credit_balance SET credits_remaining = ? WHERE user_id = ?",
        (new_balance, user_id)
    )
    return new_balance


def deduct_credits(user_id: str, credit_cost: int, db_path: str = DEFAULT_DB_PATH) -> int:
    """Deduct credits from a user's balance, never going below zero.

    The read and the write happen in one transaction.

    Args:
        user_id: User identifier
        credit_cost: Credits to deduct (>= 0)
        db_path: Path to SQLite database file

    Returns:
        The new balance

    Raises:
        ValidationError: If credit_cost is negative
        LookupError: If the user has no credit balance
    """
    if credit_cost < 0:
        raise ValidationError("credit_cost must be >= 0")

    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN IMMEDIATE")
        new_balance = _deduct(conn, user_id, credit_cost)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    return new_balance


def charge_usage(record: UsageRecord, db_path: str = DEFAULT_DB_PATH) -> int:
    """Deduct a call's credit cost and append its usage record atomically.

    Either both the balance update and the ledger row are committed or
    neither is.

    Args:
        record: Usage record of the call; its credit_cost is deducted
        db_path: Path to SQLite database file

    Returns:
        The new balance

    Raises:
        ValidationError: If the record's credit_cost is negative
        LookupError: If the user has no credit balance
    """
    if record.credit_cost < 0:
        raise ValidationError("credit_cost must be >= 0")

    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN IMMEDIATE")
        new_balance = _deduct(conn, record.user_id, record.credit_cost)
        conn.execute(
            f"INSERT INTO ai_usage_record ({_USAGE_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            _record_to_params(record)
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    return new_balance
