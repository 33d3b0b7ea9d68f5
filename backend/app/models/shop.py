"""
Shops and their tables. Lookup-only from the reservation core's point of view.
"""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class Shop(Base, TimestampMixin):
    __tablename__ = "shops"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)
    logo = Column(String(255), nullable=True)

    tables = relationship("Table", back_populates="shop", lazy="raise")

    @property
    def topic(self) -> str:
        """Push topic that the shop's followers subscribe to."""
        return str(self.id)

    def __repr__(self) -> str:
        return f"<Shop(id={self.id}, name={self.name})>"


class Table(Base, TimestampMixin):
    __tablename__ = "tables"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(Integer, nullable=False)
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)

    shop = relationship("Shop", back_populates="tables", lazy="raise")
    reservations = relationship("Reservation", back_populates="table", lazy="raise")

    def __repr__(self) -> str:
        return f"<Table(id={self.id}, shop={self.shop_id}, number={self.number})>"
