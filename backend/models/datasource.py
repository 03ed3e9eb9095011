"""
Config-store models: datasources, their published tables, field aliases and read grants.
Passwords are stored encrypted (AES-256-GCM, base64) and only decrypted on resolution.
"""
from __future__ import annotations
from datetime import datetime
from typing import List
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from .base import Base


class Datasource(Base):
    __tablename__ = "datasources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    driver: Mapped[str] = mapped_column(String(32), nullable=False, default="mysql")  # mysql, postgres, sqlite
    host: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    port: Mapped[int | None] = mapped_column(Integer, nullable=True)
    database_name: Mapped[str] = mapped_column(String(255), nullable=False)
    schema_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    password_encrypted: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tables: Mapped[List["DatasourceTable"]] = relationship(
        back_populates="datasource", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Datasource id={self.id} name={self.name} driver={self.driver}>"


class DatasourceTable(Base):
    __tablename__ = "datasource_tables"
    __table_args__ = (
        UniqueConstraint("datasource_id", "table_name", name="uq_datasource_table_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    datasource_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("datasources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    table_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    table_alias: Mapped[str | None] = mapped_column(String(255), nullable=True)
    query_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="table")  # "table" or "sql"
    custom_sql: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    datasource: Mapped[Datasource] = relationship(back_populates="tables")
    field_mappings: Mapped[List["DatasourceFieldMapping"]] = relationship(
        back_populates="table", cascade="all, delete-orphan"
    )
    grants: Mapped[List["DatasourceTableGrant"]] = relationship(
        back_populates="table", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<DatasourceTable id={self.id} table={self.table_name} mode={self.query_mode}>"


class DatasourceFieldMapping(Base):
    __tablename__ = "datasource_field_mappings"
    __table_args__ = (
        UniqueConstraint("datasource_table_id", "field_name", name="uq_field_mapping_per_table"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    datasource_table_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("datasource_tables.id", ondelete="CASCADE"), nullable=False, index=True
    )
    field_name: Mapped[str] = mapped_column(String(255), nullable=False)
    field_alias: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    table: Mapped[DatasourceTable] = relationship(back_populates="field_mappings")


class DatasourceTableGrant(Base):
    """A principal (platform user id) allowed to read a table. No grants means open."""
    __tablename__ = "datasource_table_grants"
    __table_args__ = (
        UniqueConstraint("datasource_table_id", "principal", name="uq_table_grant_principal"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    datasource_table_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("datasource_tables.id", ondelete="CASCADE"), nullable=False, index=True
    )
    principal: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    table: Mapped[DatasourceTable] = relationship(back_populates="grants")
