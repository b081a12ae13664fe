from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import declarative_base

# Separate metadata: the backend never shares tables with a client's local store
ServerBase = declarative_base()


class RemoteRecord(ServerBase):
    __tablename__ = "remote_records"

    collection = Column(String, primary_key=True)  # employees | leaves | salaries
    id = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)  # camelCase wire record, without version
    version = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, nullable=False)
