"""Project model - owner of quantity tables and itemized statements."""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from architrack.database import Base


class Project(Base):
    """
    Construction project.

    Project CRUD lives elsewhere; this mapping only exposes what the
    itemized statement engine needs to scope its data.
    """

    __tablename__ = 'project'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}')>"

    @property
    def is_deleted(self):
        return self.deleted_at is not None
