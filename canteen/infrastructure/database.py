from sqlalchemy import Boolean, Column, DateTime, JSON, Numeric, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class OrderRow(Base):
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True)
    order_number = Column(String(16), unique=True, index=True, nullable=False)  # e.g. "250314-0007"
    customer_name = Column(String(120), nullable=False)
    customer_contact = Column(String(50), nullable=False)

    # Line items are a snapshot taken at ordering time, so a JSON list is enough
    items = Column(JSON, nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    status = Column(String(20), nullable=False, index=True, default="pending")
    payment_method = Column(String(10), nullable=False)
    payment_status = Column(String(10), nullable=False, index=True, default="pending")
    is_manual_order = Column(Boolean, nullable=False, default=False)
    otp = Column(String(4), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)


def build_session_factory(database_url: str) -> sessionmaker:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are handed between the event loop and FastAPI's threadpool
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def create_tables(session_factory: sessionmaker) -> None:
    Base.metadata.create_all(bind=session_factory.kw["bind"])
