"""Quantity table models (read contract of the quantity table editor)."""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from architrack.database import Base


class QuantityTable(Base):
    """
    Quantity table.

    Mutable source document owned by a project. Itemized statements read it
    once at creation time and never hold a live reference afterwards.
    """

    __tablename__ = 'quantity_table'

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey('project.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    project = relationship('Project')
    groups = relationship(
        'QuantityGroup',
        back_populates='quantity_table',
        cascade='all, delete-orphan',
        order_by='QuantityGroup.display_order'
    )

    def __repr__(self):
        return f"<QuantityTable(id={self.id}, name='{self.name}', project_id={self.project_id})>"

    @property
    def is_deleted(self):
        return self.deleted_at is not None


class QuantityGroup(Base):
    """Ordered group of measured items inside a quantity table."""

    __tablename__ = 'quantity_group'

    id = Column(Integer, primary_key=True, autoincrement=True)
    quantity_table_id = Column(Integer, ForeignKey('quantity_table.id'), nullable=False, index=True)
    name = Column(String(200), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)

    # Relationships
    quantity_table = relationship('QuantityTable', back_populates='groups')
    items = relationship(
        'QuantityItem',
        back_populates='group',
        cascade='all, delete-orphan',
        order_by='QuantityItem.display_order'
    )

    def __repr__(self):
        return f"<QuantityGroup(id={self.id}, quantity_table_id={self.quantity_table_id})>"


class QuantityItem(Base):
    """Single measured construction line item."""

    __tablename__ = 'quantity_item'

    id = Column(Integer, primary_key=True, autoincrement=True)
    quantity_group_id = Column(Integer, ForeignKey('quantity_group.id'), nullable=False, index=True)
    custom_category = Column(String(100), nullable=True)
    work_type = Column(String(100), nullable=True)
    name = Column(String(200), nullable=True)
    specification = Column(String(200), nullable=True)
    unit = Column(String(50), nullable=True)
    quantity = Column(Numeric(10, 2), nullable=False, default=0)
    display_order = Column(Integer, nullable=False, default=0)

    # Relationships
    group = relationship('QuantityGroup', back_populates='items')

    def __repr__(self):
        return f"<QuantityItem(id={self.id}, name='{self.name}', quantity={self.quantity})>"
