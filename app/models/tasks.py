import enum

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.timestamps import utcnow


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "inprogress"
    COMPLETED = "completed"


class Frequency(str, enum.Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class AssignStatus(str, enum.Enum):
    REQUESTED = "requested"
    ASSIGNED = "assigned"
    REJECTED = "rejected"
    DELETED = "deleted"


class LogAction(str, enum.Enum):
    # Values are the wire contract shown to clients, kept literal
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    EDITED = "edited"
    REQUEST_SENT = "Task request sent"
    ASSIGNED = "Task assigned"
    ACCEPTED = "Task accepted"
    REJECTED = "Task Rejected"


class Task(Base):
    __tablename__ = "tasks"

    task_id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    due_time = Column(String(5), nullable=True)  # HH:MM
    priority = Column(String(20), nullable=False, default=Priority.LOW.value)
    status = Column(String(20), nullable=False, default=TaskStatus.PENDING.value)
    frequency = Column(String(20), nullable=False, default=Frequency.ONCE.value)
    owner_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    logs = relationship(
        "TaskLog",
        back_populates="task",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TaskLog.log_id",
    )

    __mapper_args__ = {"version_id_col": version}


class TaskLog(Base):
    __tablename__ = "task_logs"

    log_id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.task_id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    by_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    to_id = Column(Integer, ForeignKey("users.user_id"), nullable=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    task = relationship("Task", back_populates="logs")


class AssignedTask(Base):
    __tablename__ = "assigned_tasks"
    __table_args__ = (
        CheckConstraint("sent_by_id <> send_to_id", name="_sender_is_not_receiver"),
    )

    task_id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    due_time = Column(String(5), nullable=True)
    priority = Column(String(20), nullable=False, default=Priority.LOW.value)
    status = Column(String(20), nullable=False, default=TaskStatus.PENDING.value)
    frequency = Column(String(20), nullable=False, default=Frequency.ONCE.value)
    sent_by_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    send_to_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    assign_status = Column(String(20), nullable=False, default=AssignStatus.REQUESTED.value)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    sender = relationship("User", foreign_keys=[sent_by_id], lazy="selectin")
    receiver = relationship("User", foreign_keys=[send_to_id], lazy="selectin")
    logs = relationship(
        "AssignedTaskLog",
        back_populates="task",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="AssignedTaskLog.log_id",
    )

    __mapper_args__ = {"version_id_col": version}


class AssignedTaskLog(Base):
    __tablename__ = "assigned_task_logs"

    log_id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("assigned_tasks.task_id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    by_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    to_id = Column(Integer, ForeignKey("users.user_id"), nullable=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    task = relationship("AssignedTask", back_populates="logs")
