"""
SQLAlchemy ORM models backing the local tabular store.

Each sheet is a named grid.  Rows are stored sparsely (only non-empty rows
are persisted) with their cell values as a JSON list of strings, so a sheet
round-trips exactly what was written to it.  Formatting spans are kept
alongside so the local store honours the same contract as Google Sheets.
"""

from sqlalchemy import Column, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Sheet(Base):
    __tablename__ = "sheets"

    sheet_id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False, unique=True)
    row_count = Column(Integer, nullable=False, default=1000)
    column_count = Column(Integer, nullable=False, default=26)

    rows = relationship(
        "SheetRow", back_populates="sheet", cascade="all, delete-orphan",
        order_by="SheetRow.row_index",
    )
    formats = relationship("CellFormat", back_populates="sheet", cascade="all, delete-orphan")


class SheetRow(Base):
    __tablename__ = "sheet_rows"
    __table_args__ = (UniqueConstraint("sheet_id", "row_index"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    sheet_id = Column(Integer, ForeignKey("sheets.sheet_id"), index=True, nullable=False)
    row_index = Column(Integer, nullable=False)  # zero-based
    values = Column(JSON, nullable=False, default=list)

    sheet = relationship("Sheet", back_populates="rows")


class CellFormat(Base):
    """One styled rectangle; row/column bounds are zero-based, end-exclusive."""
    __tablename__ = "cell_formats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sheet_id = Column(Integer, ForeignKey("sheets.sheet_id"), index=True, nullable=False)
    start_row = Column(Integer, nullable=False)
    end_row = Column(Integer, nullable=False)
    start_column = Column(Integer, nullable=False)
    end_column = Column(Integer, nullable=False)
    style = Column(JSON, nullable=False)  # userEnteredFormat payload

    sheet = relationship("Sheet", back_populates="formats")
