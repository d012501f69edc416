from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, Date, Numeric, JSON, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from src.database import Base

# ================================
# Buses
# ================================
class Bus(Base):
    __tablename__ = "buses"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    bus_number = Column(String(50), unique=True, nullable=False, index=True)
    bus_type = Column(String(50), nullable=False, default="Normal")
    capacity = Column(Integer, nullable=False)
    operator_id = Column(String(50))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    schedules = relationship("Schedule", back_populates="bus")

# ================================
# Routes & Prices
# ================================
class Route(Base):
    __tablename__ = "routes"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    route_id = Column(String(50), unique=True, nullable=False, index=True)
    start_point = Column(String(255), nullable=False)
    end_point = Column(String(255), nullable=False)
    distance_km = Column(Numeric(8, 2))
    stops = Column(JSON, default=list)  # intermediate stop names, in travel order
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    prices = relationship("RoutePrice", back_populates="route")
    schedules = relationship("Schedule", back_populates="route")

    @property
    def stop_sequence(self):
        """All stop names from start to end point"""
        return [self.start_point, *(self.stops or []), self.end_point]

class RoutePrice(Base):
    __tablename__ = "route_prices"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    route_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("routes.id"), nullable=False, index=True)
    from_stop = Column(String(255), nullable=False)
    to_stop = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    # Relationships
    route = relationship("Route", back_populates="prices")

# ================================
# Schedules
# ================================
class Schedule(Base):
    __tablename__ = "schedules"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    schedule_id = Column(String(50), unique=True, nullable=False, index=True)
    route_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("routes.id"), nullable=False)
    bus_number = Column(String(50), ForeignKey("buses.bus_number"), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    stops = Column(JSON, default=list)  # [{"stopName": ..., "arrivalTime": ...}]
    days = Column(JSON, default=list)  # ["Monday", ...]; empty means only the start_time date
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    route = relationship("Route", back_populates="schedules")
    bus = relationship("Bus", back_populates="schedules")

# ================================
# Bookings
# ================================
class Booking(Base):
    __tablename__ = "bookings"

    transaction_id = Column(String(64), primary_key=True)
    schedule_id = Column(String(50), nullable=False)
    route_id = Column(String(50), nullable=False)
    bus_number = Column(String(50), nullable=False, index=True)
    seat_number = Column(Integer, nullable=False)
    travel_date = Column(Date, nullable=False, index=True)
    travel_time = Column(DateTime(timezone=True), nullable=False)
    passenger_name = Column(String(255), nullable=False)
    mobile_number = Column(String(20), nullable=False)
    email = Column(String(255), nullable=False)
    boarding_place = Column(String(255), nullable=False)
    destination_place = Column(String(255), nullable=False)
    fare = Column(Numeric(10, 2), nullable=False)
    cancellation_token = Column(String(128), unique=True, nullable=False)
    payment_reference = Column(String(128))
    status = Column(String(20), nullable=False, default="confirmed", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index(
            "uq_bookings_confirmed_seat",
            "bus_number", "travel_date", "seat_number",
            unique=True,
            sqlite_where=text("status = 'confirmed'"),
            postgresql_where=text("status = 'confirmed'"),
        ),
    )
