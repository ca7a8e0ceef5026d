from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.salon.models import Base


class ServiceRecord(Base):
    """
    One visit: a service performed on a customer.
    staff_name is free text so history survives staff removal.
    """

    __tablename__ = "services"
    __table_args__ = (
        Index("idx_services_customer_id", "customer_id", "service_date"),
        Index("idx_services_service_date", "service_date"),
        Index("idx_services_service_type_id", "service_type_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    service_type_id: Mapped[int | None] = mapped_column(
        ForeignKey("service_types.id", ondelete="RESTRICT"), nullable=True
    )

    service_name: Mapped[str] = mapped_column(Text, nullable=False)
    staff_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    service_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    customer = relationship("Customer", back_populates="services", lazy="select")
    service_type = relationship("ServiceType", foreign_keys=[service_type_id], lazy="selectin")
    images: Mapped[list["ServiceImage"]] = relationship(
        "ServiceImage",
        back_populates="service",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ServiceImage.id",
        lazy="select",
    )


class ServiceImage(Base):
    __tablename__ = "service_images"
    __table_args__ = (
        Index("idx_service_images_service_id", "service_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_id: Mapped[int] = mapped_column(ForeignKey("services.id", ondelete="CASCADE"), nullable=False)

    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    # Set only for images uploaded through the API; external URLs have no blob.
    storage_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_type: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    service: Mapped[ServiceRecord] = relationship("ServiceRecord", back_populates="images", lazy="select")
