from datetime import datetime
from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.models.post import post_files


class File(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    original_name = Column(String(255), nullable=False)
    file_name = Column(String(255), nullable=False)
    # Storage key, e.g. uploads/image/2024/01/<uuid>.png
    file_key = Column(String(512), nullable=False, index=True)
    # Holds the storage key as well, not a live URL
    file_url = Column(String(512), nullable=False)
    mime_type = Column(String(100), nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    file_type = Column(String(50), nullable=False, default="general")
    created_at = Column(DateTime, default=datetime.utcnow)

    owner = relationship("User", back_populates="files")
    posts = relationship("Post", secondary=post_files, back_populates="attached_files")
