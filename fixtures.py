"""Shared database helpers for the test modules."""

from datetime import datetime

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from greenfee import models
from greenfee.database import init_db


def memory_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


def memory_session():
    return sessionmaker(bind=memory_engine(), autoflush=False)()


def file_engine(path: str):
    """
    File-backed SQLite engine for multi-threaded tests.

    Every transaction starts with BEGIN IMMEDIATE so concurrent writers queue
    on the database lock instead of failing with "database is locked".
    """
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    init_db(engine)
    return engine


def make_sheet(**overrides) -> models.RateSheet:
    values = dict(
        club_id="club_a",
        rule_name="平日早场价格",
        day_type="weekday",
        time_slot="morning",
        status="active",
        priority=100,
        prices={"walkin": 800, "guest": 700, "member_1": 500},
        caddy_fee=200,
        cart_fee=150,
        insurance_fee=10,
    )
    values.update(overrides)
    return models.RateSheet(**values)


def make_membership(**overrides) -> models.Membership:
    values = dict(
        club_id="club_a",
        player_id="p1",
        membership_no="M-0001",
        plan_name="Gold",
        plan_category="annual",
        status="active",
        free_rounds=10,
        guest_quota=2,
        rounds_used=0,
        guest_brought=0,
        total_consumption=0.0,
        created_at=datetime(2026, 1, 1, 9, 0, 0),
    )
    values.update(overrides)
    return models.Membership(**values)
