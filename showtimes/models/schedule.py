"""Schedule model"""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base


class Schedule(Base):
    """One showing of a movie at a theater.

    start_time and end_time are naive datetimes in the theaters' local
    timezone, the same convention the query side uses for "now".
    """
    __tablename__ = 'schedules'

    id = Column(Integer, primary_key=True)
    theater_id = Column(Integer, ForeignKey('theaters.id'), nullable=False)
    movie_title = Column(String, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime)
    duration = Column(Integer)  # minutes
    booking_url = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)

    theater = relationship("Theater", back_populates="schedules")

    # Same movie at same theater at same time
    __table_args__ = (
        UniqueConstraint('theater_id', 'movie_title', 'start_time', name='uq_schedule'),
        Index('idx_schedule_start_time', 'start_time'),
        Index('idx_schedule_theater_id', 'theater_id'),
    )

    def __repr__(self):
        return f"<Schedule(id={self.id}, theater_id={self.theater_id}, title='{self.movie_title}', start={self.start_time})>"
