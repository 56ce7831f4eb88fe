"""Product domain model, mapped to the 'products' table."""

import uuid

from sqlalchemy import Column, String, Float, Boolean, DateTime
from sqlalchemy.sql import func

from app.infrastructure.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    price = Column(Float, nullable=False, default=0)
    unit = Column(String(20), nullable=False, default="each")
    # vegetables, fruits, dairy_eggs, bread_bakery, pantry, meat_protein
    category = Column(String(50), nullable=False, index=True)
    is_seasonal = Column(Boolean, default=False, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Product {self.name} - {self.price}/{self.unit}>"
