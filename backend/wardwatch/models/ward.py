from sqlalchemy import Column, Integer, String

from wardwatch.core.database import Base


class Ward(Base):
    __tablename__ = "wards"

    id = Column(Integer, primary_key=True, index=True)
    ward_number = Column(String(20), nullable=False)
    ward_name = Column(String(255))
