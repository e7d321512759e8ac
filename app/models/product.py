from sqlalchemy import Column, Integer, String

from ..db import Base


class Product(Base):
    """Variante vendible (p.ej. 'Aceite 1 L'); las ofertas apuntan aquí."""

    __tablename__ = "product"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    volume = Column(String(40), nullable=True)  # '500', '1'
    uom = Column(String(20), default="unit")  # 'ml', 'L', 'unit'

    @property
    def label(self) -> str:
        return f"{self.volume or ''} {self.uom or ''}".strip()
