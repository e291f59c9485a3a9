# backend/plantdb/apps/master_data/models.py

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from plantdb.database import Base
from plantdb.utils.identifiers import generate_uuid7


class Line(Base):
    """Production line."""

    __tablename__ = "lines"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    name = Column(String(128), nullable=False, unique=True)
    description = Column(Text, nullable=True)

    machines = relationship("Machine", back_populates="line")

    def __repr__(self) -> str:
        return f"<Line id={self.id} name={self.name}>"


class Machine(Base):
    """
    Physical asset on a line.

    `maintenance_frequency` and `pm_plan_year` are free text typed by the
    planners, e.g. "Quarterly" and "Feb-May-Aug-Nov".
    """

    __tablename__ = "machines"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    name = Column(String(255), nullable=False)
    code = Column(String(64), nullable=True, index=True)
    type = Column(String(128), nullable=True)

    line_id = Column(
        String(36),
        ForeignKey("lines.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    maintenance_frequency = Column(String(64), nullable=True)
    pm_plan_year = Column(String(255), nullable=True)

    line = relationship("Line", back_populates="machines")

    def __repr__(self) -> str:
        return f"<Machine id={self.id} code={self.code} name={self.name}>"
