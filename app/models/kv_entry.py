from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class KVEntry(SQLModel, table=True):
    __tablename__ = "kv_store"

    key: str = Field(primary_key=True, max_length=512)
    value: Optional[Any] = Field(default=None, sa_column=Column(JSON, nullable=True))
