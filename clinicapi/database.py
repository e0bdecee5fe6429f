"""
Database engine initialisation, table definitions and query helpers.
"""

import math
import sys
import traceback
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    func,
    insert,
    select,
    text,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clinicapi.config import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT, get_env
from clinicapi.errors import AppError, DuplicateError

metadata = MetaData()

# Clinics and branches are owned by other parts of the system; only the
# columns needed to resolve names and check branch existence live here.
clinics = Table(
    "clinics", metadata,
    Column("id", String(24), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("created_at", DateTime, nullable=False),
)

branches = Table(
    "branches", metadata,
    Column("id", String(24), primary_key=True),
    Column("clinic_id", String(24), nullable=False, index=True),
    Column("name", String(200), nullable=False),
    Column("created_at", DateTime, nullable=False),
)

treatments = Table(
    "treatments", metadata,
    Column("id", String(24), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("price", Float, nullable=False, index=True),
    Column("include_vat", Boolean, nullable=False, default=False),
    Column("doctor_fee", JSON, nullable=True),       # {"amount": .., "type": ..}
    Column("assistant_fee", JSON, nullable=True),
    Column("clinic_id", String(24), nullable=False, index=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    UniqueConstraint("name", "clinic_id", name="uq_treatment_name_clinic"),
)

diagnoses = Table(
    "diagnoses", metadata,
    Column("id", String(24), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("clinic_id", String(24), nullable=False, index=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    UniqueConstraint("name", "clinic_id", name="uq_diagnosis_name_clinic"),
)

assistants = Table(
    "assistants", metadata,
    Column("id", String(24), primary_key=True),
    Column("photo", String(500)),
    Column("name", String(100), nullable=False),
    Column("surname", String(100), nullable=False),
    Column("nickname", String(50)),
    Column("gender", String(10), nullable=False),
    Column("nationality", String(100)),
    Column("birthday", Date),
    Column("address", String(500)),
    Column("employment_type", String(10), nullable=False, index=True),
    Column("clinic_id", String(24), nullable=False, index=True),
    Column("branches", JSON, nullable=False, default=list),  # [{"branchId", "timetable"}]
    Column("is_active", Boolean, nullable=False, default=True, index=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)


def init_engine():
    """Create a SQLAlchemy engine and verify the connection."""
    db_uri = get_env("DB_URI")
    engine = create_engine(db_uri, echo=False, future=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


def create_schema(engine) -> None:
    metadata.create_all(engine)


def new_id() -> str:
    """24 hex chars, the same shape as the ids clients already hold."""
    return uuid.uuid4().hex[:24]


def utcnow() -> datetime:
    return datetime.utcnow()


# ── Seed helpers ─────────────────────────────────────────────────────

def create_clinic(engine, name: str) -> str:
    clinic_id = new_id()
    with engine.begin() as conn:
        conn.execute(insert(clinics).values(id=clinic_id, name=name, created_at=utcnow()))
    return clinic_id


def create_branch(engine, clinic_id: str, name: str) -> str:
    branch_id = new_id()
    with engine.begin() as conn:
        conn.execute(insert(branches).values(
            id=branch_id, clinic_id=clinic_id, name=name, created_at=utcnow(),
        ))
    return branch_id


def existing_branch_ids(conn, branch_ids: Iterable[str]) -> set:
    wanted = set(branch_ids)
    if not wanted:
        return set()
    rows = conn.execute(select(branches.c.id).where(branches.c.id.in_(wanted)))
    return {r[0] for r in rows}


def branch_names(conn, branch_ids: Iterable[str]) -> dict:
    wanted = set(branch_ids)
    if not wanted:
        return {}
    rows = conn.execute(select(branches.c.id, branches.c.name).where(branches.c.id.in_(wanted)))
    return {r[0]: r[1] for r in rows}


# ── Listing ──────────────────────────────────────────────────────────

def clamp_paging(page, limit) -> Tuple[int, int]:
    """Coerce raw page/limit values to sane positive integers."""
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = DEFAULT_PAGE
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = DEFAULT_LIMIT
    page = page if page > 0 else DEFAULT_PAGE
    limit = min(limit if limit > 0 else DEFAULT_LIMIT, MAX_LIMIT)
    return page, limit


def paginate(
    conn,
    query,
    table: Table,
    where: List,
    sort_by: Optional[str],
    sort_order: str,
    page: int,
    limit: int,
    sortable: Iterable[str],
):
    """
    Run *query* with filters, ordering and paging applied.

    Returns (rows, total, total_pages). *sort_by* must name one of the
    *sortable* columns of *table*, otherwise the list is sorted by name.
    """
    page, limit = clamp_paging(page, limit)
    column = table.c[sort_by] if sort_by in set(sortable) else table.c.name
    order = column.desc() if sort_order == "desc" else column.asc()

    for clause in where:
        query = query.where(clause)

    count_q = select(func.count()).select_from(table)
    for clause in where:
        count_q = count_q.where(clause)

    total = conn.execute(count_q).scalar_one()
    rows = conn.execute(
        query.order_by(order, table.c.id).offset((page - 1) * limit).limit(limit)
    ).mappings().all()
    total_pages = math.ceil(total / limit) if total else 0
    return rows, total, total_pages


@contextmanager
def db_errors(action: str):
    """Report database failures while *action* runs as AppErrors."""
    try:
        yield
    except IntegrityError as e:
        print(f"[WARN] Integrity error while {action}: {e.orig}", file=sys.stderr)
        raise DuplicateError("A record with this name already exists in this clinic") from e
    except SQLAlchemyError as e:
        print(f"[ERROR] Database error while {action}: {e}", file=sys.stderr)
        traceback.print_exc()
        raise AppError(f"Database error while {action}", 500) from e
