# models.py

from sqlalchemy import Column, Integer, String, Text
from database import Base


class Segment(Base):
    """An uploaded clip belonging to one of the hook/story/cta pools."""

    __tablename__ = "segments"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    type = Column(String, index=True, nullable=False)  # hook, story, cta
    file = Column(String, nullable=False)
    preview_url = Column(String, nullable=False)
    thumbnail_url = Column(String, nullable=True)


class Combination(Base):
    """One hook + story + cta triple and the state of its render."""

    __tablename__ = "combinations"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    hook = Column(String, nullable=False)
    story = Column(String, nullable=False)
    cta = Column(String, nullable=False)
    status = Column(String, default="processing", nullable=False)  # processing, ready, error
    download_url = Column(String, nullable=True)
    error = Column(Text, nullable=True)
