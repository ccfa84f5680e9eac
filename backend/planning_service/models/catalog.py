"""Read-only mappings of the manufacturing catalog.

These tables are owned by other modules (machines, workstations, orders,
operations, parts, clients). The planning core only reads them, for resource
resolution and for the denormalized event view.
"""
import uuid
from sqlalchemy import Column, String, Boolean, Date, DateTime, Integer
from planning_service.database import Base


class Machine(Base):
    __tablename__ = "machines"

    machine_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(150), nullable=False)
    machine_type = Column(String(50), nullable=False, default="OTHER")
    status = Column(String(30), nullable=False, default="ACTIVE")
    is_available = Column(Boolean, nullable=False, default=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)


class Workstation(Base):
    __tablename__ = "workstations"

    workstation_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(50), nullable=False, unique=True)
    label = Column(String(150), nullable=False)
    machine_id = Column(String(36), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)


class Client(Base):
    __tablename__ = "clients"

    client_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_name = Column(String(255), nullable=False)


class Part(Base):
    __tablename__ = "parts"

    part_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(100), nullable=False)
    designation = Column(String(255), nullable=True)


class ManufacturingOrder(Base):
    __tablename__ = "manufacturing_orders"

    order_id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(50), nullable=False, unique=True)
    client_id = Column(String(36), nullable=True)
    part_id = Column(String(36), nullable=True)
    planned_end_date = Column(Date, nullable=True)


class ManufacturingOperation(Base):
    __tablename__ = "manufacturing_operations"

    operation_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(Integer, nullable=False, index=True)
    phase = Column(Integer, nullable=False, default=0)
    designation = Column(String(255), nullable=False)
    machine_id = Column(String(36), nullable=True)
    workstation_id = Column(String(36), nullable=True)
