from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.salon.models import Base


class StaffMember(Base):
    __tablename__ = "staff_members"
    __table_args__ = (
        Index("idx_staff_members_name", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    service_assignments: Mapped[list["StaffServiceAssignment"]] = relationship(
        "StaffServiceAssignment",
        back_populates="staff",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="StaffServiceAssignment.id",
        lazy="selectin",
    )


class StaffServiceAssignment(Base):
    __tablename__ = "staff_service_assignments"
    __table_args__ = (
        UniqueConstraint("staff_id", "service_type_id", name="uq_staff_service_assignment"),
        Index("idx_staff_service_assignments_staff_id", "staff_id"),
        Index("idx_staff_service_assignments_service_type_id", "service_type_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    staff_id: Mapped[int] = mapped_column(ForeignKey("staff_members.id", ondelete="CASCADE"), nullable=False)
    service_type_id: Mapped[int] = mapped_column(ForeignKey("service_types.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    staff: Mapped[StaffMember] = relationship("StaffMember", back_populates="service_assignments", lazy="select")
    service_type = relationship("ServiceType", foreign_keys=[service_type_id], lazy="selectin")
