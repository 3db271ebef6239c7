from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Integer,
    Boolean,
    Float,
    Text,
    DateTime,
    func,
    Index,
)
from database.engine import Base, IdType
from datetime import datetime


class ApiUsageLog(Base):
    """
    One row per AI model call, successful or not, with token counts and cost.
    """

    __tablename__ = "api_usage_logs"
    id: Mapped[int] = mapped_column(
        IdType, primary_key=True, nullable=False, autoincrement=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    organization_id: Mapped[int] = mapped_column(IdType, nullable=False, index=True)

    # Request
    endpoint: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    request_type: Mapped[str | None] = mapped_column(String(50))
    candidate_id: Mapped[int | None] = mapped_column(IdType)
    job_id: Mapped[int | None] = mapped_column(IdType)

    # Usage
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    input_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    output_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Outcome
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error_message: Mapped[str | None] = mapped_column(Text)
    response_time_ms: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    __table_args__ = (
        Index("idx_api_usage_org_created", "organization_id", "created_at"),
    )
