"""
Client model: a customer account that books services.
"""

from sqlalchemy import Column, Integer, String

from marketplace.db.base import Base, TimestampMixin


class Client(Base, TimestampMixin):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, email={self.email})>"
