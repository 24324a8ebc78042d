"""Itemized statement models (generated snapshots of a quantity table)."""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from architrack.database import Base


class ItemizedStatement(Base):
    """
    Itemized statement header.

    Stores a snapshot of the source quantity table reference (id and name) as
    plain values, so later edits to the table never reach the statement.
    The only permitted mutation is a logical delete guarded by ``version``.
    """

    __tablename__ = 'itemized_statement'
    __table_args__ = (
        # Names are unique per project among statements that are not deleted
        Index(
            'uq_itemized_statement_project_name_active',
            'project_id', 'name',
            unique=True,
            postgresql_where=text('deleted_at IS NULL'),
            sqlite_where=text('deleted_at IS NULL'),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey('project.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    source_quantity_table_id = Column(Integer, nullable=False)
    source_quantity_table_name = Column(String(200), nullable=False)
    item_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    project = relationship('Project')
    items = relationship(
        'ItemizedStatementItem',
        back_populates='statement',
        order_by='ItemizedStatementItem.display_order',
        lazy='select'
    )

    def __repr__(self):
        return (
            f"<ItemizedStatement(id={self.id}, name='{self.name}', "
            f"version={self.version}, items={self.item_count})>"
        )

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'projectId': self.project_id,
            'name': self.name,
            'sourceQuantityTableId': self.source_quantity_table_id,
            'sourceQuantityTableName': self.source_quantity_table_name,
            'itemCount': self.item_count,
            'version': self.version,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }


class ItemizedStatementItem(Base):
    """
    Aggregated row of an itemized statement.

    Rows are written once together with their header and never updated or
    deleted individually. Empty key fields are stored as NULL.
    """

    __tablename__ = 'itemized_statement_item'

    id = Column(Integer, primary_key=True, autoincrement=True)
    itemized_statement_id = Column(Integer, ForeignKey('itemized_statement.id'), nullable=False, index=True)
    custom_category = Column(String(100), nullable=True)
    work_type = Column(String(100), nullable=True)
    name = Column(String(200), nullable=True)
    specification = Column(String(200), nullable=True)
    unit = Column(String(50), nullable=True)
    quantity = Column(Numeric(12, 2), nullable=False)
    display_order = Column(Integer, nullable=False)

    # Relationships
    statement = relationship('ItemizedStatement', back_populates='items')

    def __repr__(self):
        return f"<ItemizedStatementItem(id={self.id}, name='{self.name}', quantity={self.quantity})>"
