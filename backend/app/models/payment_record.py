"""PaymentRecord — the reconciled balance payment for one job.

The four cost components must sum to the balance due
(finalized price × acres − advance) within the configured tolerance
before a record is accepted.  Exactly one record per job.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class PaymentRecord(Base):
    __tablename__ = "payment_records"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("jobs.id"), unique=True, nullable=False
    )

    # ── Breakdown ────────────────────────────────────────────
    labor_cost: Mapped[float] = mapped_column(Float, nullable=False)
    transport_cost: Mapped[float] = mapped_column(Float, default=0.0)
    accommodation_cost: Mapped[float] = mapped_column(Float, default=0.0)
    other_cost: Mapped[float] = mapped_column(Float, default=0.0)
    # Balance due at the time of recording
    balance_amount: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Collection ───────────────────────────────────────────
    # cash | upi | bank_transfer | cheque
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, default=date.today)
    proof_reference: Mapped[str | None] = mapped_column(String(500))
    collected_by: Mapped[str | None] = mapped_column(String(255))

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
