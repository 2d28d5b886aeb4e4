"""Theater model"""
from sqlalchemy import Column, Float, Integer, String
from sqlalchemy.orm import relationship

from .base import Base


class Theater(Base):
    """Theater model"""
    __tablename__ = 'theaters'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False, unique=True)
    address = Column(String)
    latitude = Column(Float)
    longitude = Column(Float)

    # No cascade: schedules outlive nothing, theaters are never deleted here
    schedules = relationship("Schedule", back_populates="theater")

    def __repr__(self):
        return f"<Theater(id={self.id}, name='{self.name}')>"
