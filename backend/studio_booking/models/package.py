"""
Bookable package (single-tenant catalog).
"""

from sqlalchemy import Column, String, Boolean, Numeric, JSON, CheckConstraint

from studio_booking.db.base import Base, TimestampMixin


class Package(Base, TimestampMixin):
    __tablename__ = "packages"

    id = Column(String(50), primary_key=True)  # slug, e.g. "indie"
    name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    features = Column(JSON, nullable=False, default=list)
    is_popular = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("price > 0", name="check_package_price_positive"),
    )

    def __repr__(self) -> str:
        return f"<Package(id={self.id}, price={self.price})>"
