from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.timestamps import utcnow

class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    collaborators = relationship(
        "Collaborator",
        back_populates="owner",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Collaborator.id",
    )

    @property
    def collaborator_usernames(self) -> list[str]:
        return [c.username for c in self.collaborators]


class Collaborator(Base):
    """One directed edge: `owner` may fast-path assignments from `username`."""
    __tablename__ = "collaborators"
    __table_args__ = (
        UniqueConstraint("owner_id", "username", name="_owner_collaborator_uc"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    username = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    owner = relationship("User", back_populates="collaborators")
