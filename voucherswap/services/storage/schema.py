"""DDL for the PostgreSQL exchange store."""

from __future__ import annotations

from voucherswap.core.constants import DBTable


SCHEMA_STATEMENTS: tuple[str, ...] = (
    f"""
    CREATE TABLE IF NOT EXISTS {DBTable.USERS} (
        id TEXT PRIMARY KEY,
        external_id TEXT NOT NULL UNIQUE,
        username TEXT,
        first_name TEXT,
        coins INTEGER NOT NULL DEFAULT 0 CHECK (coins >= 0 AND coins <= 100),
        is_banned BOOLEAN NOT NULL DEFAULT FALSE,
        banned_at TIMESTAMPTZ,
        last_report_at TIMESTAMPTZ,
        upload_count INTEGER NOT NULL DEFAULT 0,
        claim_count INTEGER NOT NULL DEFAULT 0,
        upload_report_count INTEGER NOT NULL DEFAULT 0,
        claim_report_count INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL,
        last_active_at TIMESTAMPTZ NOT NULL
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {DBTable.VOUCHERS} (
        id TEXT PRIMARY KEY,
        denomination INTEGER NOT NULL,
        status TEXT NOT NULL,
        image_ref TEXT NOT NULL,
        barcode TEXT,
        expiry_date TIMESTAMPTZ NOT NULL,
        valid_from TIMESTAMPTZ,
        uploader_id TEXT NOT NULL REFERENCES {DBTable.USERS}(id),
        claimer_id TEXT REFERENCES {DBTable.USERS}(id),
        claimed_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL,
        raw_extraction JSONB NOT NULL DEFAULT '{{}}'::jsonb
    )
    """,
    f"CREATE UNIQUE INDEX IF NOT EXISTS vouchers_barcode_key ON {DBTable.VOUCHERS} (barcode) "
    "WHERE barcode IS NOT NULL AND barcode <> ''",
    f"CREATE INDEX IF NOT EXISTS vouchers_status_denomination_idx ON {DBTable.VOUCHERS} "
    "(status, denomination, expiry_date)",
    f"CREATE INDEX IF NOT EXISTS vouchers_uploader_created_idx ON {DBTable.VOUCHERS} (uploader_id, created_at)",
    f"CREATE INDEX IF NOT EXISTS vouchers_claimer_claimed_idx ON {DBTable.VOUCHERS} (claimer_id, claimed_at)",
    f"""
    CREATE TABLE IF NOT EXISTS {DBTable.REPORTS} (
        id TEXT PRIMARY KEY,
        voucher_id TEXT NOT NULL REFERENCES {DBTable.VOUCHERS}(id),
        reporter_id TEXT NOT NULL REFERENCES {DBTable.USERS}(id),
        uploader_id TEXT NOT NULL REFERENCES {DBTable.USERS}(id),
        reason TEXT NOT NULL,
        replacement_voucher_id TEXT REFERENCES {DBTable.VOUCHERS}(id),
        created_at TIMESTAMPTZ NOT NULL
    )
    """,
    f"CREATE UNIQUE INDEX IF NOT EXISTS reports_voucher_reporter_key ON {DBTable.REPORTS} "
    "(voucher_id, reporter_id)",
    f"CREATE INDEX IF NOT EXISTS reports_uploader_idx ON {DBTable.REPORTS} (uploader_id)",
    f"CREATE INDEX IF NOT EXISTS reports_reporter_idx ON {DBTable.REPORTS} (reporter_id)",
    f"""
    CREATE TABLE IF NOT EXISTS {DBTable.TRANSACTIONS} (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES {DBTable.USERS}(id),
        kind TEXT NOT NULL,
        amount INTEGER NOT NULL,
        voucher_id TEXT REFERENCES {DBTable.VOUCHERS}(id),
        created_at TIMESTAMPTZ NOT NULL
    )
    """,
    f"CREATE INDEX IF NOT EXISTS transactions_user_idx ON {DBTable.TRANSACTIONS} (user_id, created_at)",
    f"""
    CREATE TABLE IF NOT EXISTS {DBTable.FAILED_UPLOADS} (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES {DBTable.USERS}(id),
        image_ref TEXT NOT NULL,
        failure_type TEXT NOT NULL,
        failure_reason TEXT NOT NULL,
        error_message TEXT,
        extracted_denomination TEXT,
        extracted_valid_from TEXT,
        extracted_expiry_date TEXT,
        extracted_barcode TEXT,
        created_at TIMESTAMPTZ NOT NULL
    )
    """,
    f"CREATE INDEX IF NOT EXISTS failed_uploads_created_idx ON {DBTable.FAILED_UPLOADS} (created_at DESC)",
    f"""
    CREATE TABLE IF NOT EXISTS {DBTable.INBOUND_EVENTS} (
        event_key TEXT PRIMARY KEY,
        seen_at TIMESTAMPTZ NOT NULL
    )
    """,
    f"CREATE INDEX IF NOT EXISTS inbound_events_seen_idx ON {DBTable.INBOUND_EVENTS} (seen_at)",
)
