from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, DateTime, JSON
from datetime import datetime
from typing import Optional
from diagnosis.database import Base


class UserProgress(Base):
    __tablename__ = 'user_progress'

    id: Mapped[str] = mapped_column(String, primary_key=True)  # prog-<user_id>
    user_id: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    form_data: Mapped[dict] = mapped_column(JSON, default=dict)  # answers only, no bookkeeping keys
    module_state: Mapped[dict] = mapped_column(JSON, default=dict)  # completed / step / high_water per module
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0)  # high-water mark
    status: Mapped[str] = mapped_column(String, default='in_progress')
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    completion_notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
