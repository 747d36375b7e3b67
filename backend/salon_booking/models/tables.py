import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    PrimaryKeyConstraint,
    Table,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class LedgerState(str, enum.Enum):
    OPEN = "open"
    HELD = "held"
    OCCUPIED = "occupied"


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


def _enum_values(cls):
    return [member.value for member in cls]


class Services(Base):
    __tablename__ = 'services'

    name = Column(Text, nullable=False)
    duration_min = Column(Integer, nullable=False)
    price = Column(Float, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    category = Column(Text)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    created_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))

    reservations = relationship('Reservations', back_populates='service')


class Specialists(Base):
    __tablename__ = 'specialists'

    id = Column(Integer, primary_key=True)
    display_name = Column(Text)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    created_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))


t_specialist_services = Table(
    'specialist_services', metadata,
    Column('service_id', ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
    Column('specialist_id', ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False),
    Column('is_active', Integer, nullable=False, server_default=text('1')),
    UniqueConstraint('service_id', 'specialist_id')
)


class WorkingHours(Base):
    __tablename__ = 'working_hours'
    __table_args__ = (
        CheckConstraint('end_time > start_time', name='working_hours_time_valid'),
        Index('ix_working_hours_specialist_date', 'specialist_id', 'date'),
    )

    specialist_id = Column(ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    id = Column(Integer, primary_key=True)
    is_available = Column(Integer, nullable=False, server_default=text('1'))


class SlotLedgerEntry(Base):
    __tablename__ = 'slot_ledger'
    __table_args__ = (
        CheckConstraint('end_time > start_time', name='slot_time_valid'),
        Index('ix_slot_ledger_specialist_day', 'specialist_id', 'work_date', 'state'),
    )

    specialist_id = Column(ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False)
    work_date = Column(Date, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    state = Column(
        Enum(LedgerState, name='ledger_state', native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=LedgerState.OPEN,
    )
    id = Column(Integer, primary_key=True)
    # Back-reference to the reservation while occupied (no FK: reservations -> slot_ledger owns the FK)
    reservation_id = Column(Integer)
    hold_token = Column(Text)
    created_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))


class LedgerDayLocks(Base):
    __tablename__ = 'ledger_day_locks'
    __table_args__ = (
        PrimaryKeyConstraint('specialist_id', 'work_date'),
    )

    specialist_id = Column(ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False)
    work_date = Column(Date, nullable=False)


class Reservations(Base):
    __tablename__ = 'reservations'
    __table_args__ = (
        Index('ix_reservations_client', 'client_id'),
    )

    service_id = Column(ForeignKey('services.id'), nullable=False)
    specialist_id = Column(ForeignKey('specialists.id'), nullable=False)
    client_id = Column(Text, nullable=False)
    ledger_entry_id = Column(ForeignKey('slot_ledger.id'), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(
        Enum(ReservationStatus, name='reservation_status', native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    id = Column(Integer, primary_key=True)
    contact_name = Column(Text)
    contact_phone = Column(Text)
    contact_email = Column(Text)
    notes = Column(Text)
    cancel_reason = Column(Text)
    cancelled_by = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(DateTime, nullable=False, server_default=text('CURRENT_TIMESTAMP'))

    service = relationship('Services', back_populates='reservations')


class Profiles(Base):
    __tablename__ = 'profiles'

    client_id = Column(Text, primary_key=True)
    full_name = Column(Text)
    phone = Column(Text)
    email = Column(Text)
    updated_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))
