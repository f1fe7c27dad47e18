"""SQL repository for leads, dealers and assignments."""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
from functools import lru_cache

from sqlalchemy import (
    create_engine,
    Column,
    String,
    Integer,
    Boolean,
    DateTime,
    Text,
    Index,
    case,
    text,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..config import settings
from ..errors import (
    AssignmentNotFound,
    DealerAtCapacity,
    DealerNotFound,
    InvalidAssignmentTransition,
    LeadAlreadyAssigned,
    LeadNotFound,
    TransactionFailure,
)
from ..models import Lead, Dealer, LeadAssignment, LeadInteraction, LeadFollowUp
from ..models.enums import (
    ACTIVE_ASSIGNMENT_STATUSES,
    ASSIGNMENT_TRANSITIONS,
    AssignedBy,
    AssignmentStatus,
    FollowUpType,
    InteractionDirection,
    LeadStatus,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

_ACTIVE_ASSIGNMENT_WHERE = "status IN ('pending', 'accepted')"


def _value(v):
    """Plain string for an enum member or a raw value."""
    return v.value if hasattr(v, "value") else v


# =============================================================================
# SQLAlchemy Models (Database Tables)
# =============================================================================

class LeadRecord(Base):
    """SQLAlchemy model for leads table."""

    __tablename__ = "leads"

    id = Column(String(36), primary_key=True)

    # Contact
    name = Column(String(255))
    email = Column(String(255), index=True)
    phone = Column(String(50))

    # Intent
    vehicle_interest = Column(String(255))
    budget = Column(String(100))
    timeline = Column(String(100))
    preferred_contact = Column(String(10), default="email")
    source = Column(String(20), default="website", index=True)

    # Lead Management
    score = Column(Integer, default=0, index=True)
    status = Column(String(20), default="new", index=True)
    dealer_id = Column(String(36), index=True)
    notes = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_leads_status_created", "status", "created_at"),
    )


class DealerRecord(Base):
    """SQLAlchemy model for dealers table."""

    __tablename__ = "dealers"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255))
    phone = Column(String(50))

    # Routing
    capacity = Column(Integer, nullable=False, default=10)
    current_load = Column(Integer, nullable=False, default=0)
    priority = Column(Integer, nullable=False, default=0)
    specialties = Column(Text)  # JSON array
    active = Column(Boolean, default=True, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_dealers_active_priority", "active", "priority"),
    )


class LeadAssignmentRecord(Base):
    """SQLAlchemy model for lead_assignments table."""

    __tablename__ = "lead_assignments"

    id = Column(String(36), primary_key=True)
    lead_id = Column(String(36), nullable=False, index=True)
    dealer_id = Column(String(36), nullable=False, index=True)
    assigned_by = Column(String(20), nullable=False, default="system")
    status = Column(String(20), nullable=False, default="pending", index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        # At most one pending/accepted assignment per lead
        Index(
            "uq_lead_assignments_active_lead",
            "lead_id",
            unique=True,
            sqlite_where=text(_ACTIVE_ASSIGNMENT_WHERE),
            postgresql_where=text(_ACTIVE_ASSIGNMENT_WHERE),
        ),
        Index("ix_lead_assignments_dealer_status", "dealer_id", "status"),
    )


class LeadInteractionRecord(Base):
    """SQLAlchemy model for lead_interactions table."""

    __tablename__ = "lead_interactions"

    id = Column(String(36), primary_key=True)
    lead_id = Column(String(36), nullable=False, index=True)
    interaction_type = Column(String(50), nullable=False)
    direction = Column(String(10), nullable=False)
    channel = Column(String(50))
    content = Column(Text)
    metadata_json = Column("metadata", Text)  # JSON object
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class LeadFollowUpRecord(Base):
    """SQLAlchemy model for lead_followups table."""

    __tablename__ = "lead_followups"

    id = Column(String(36), primary_key=True)
    lead_id = Column(String(36), nullable=False, index=True)
    scheduled_at = Column(DateTime, nullable=False, index=True)
    followup_type = Column(String(20), nullable=False, default="call")
    status = Column(String(20), nullable=False, default="scheduled")
    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# Repository Class
# =============================================================================

class Repository:
    """Repository for database operations."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.DATABASE_URL

        engine_kwargs: dict[str, Any] = {"echo": settings.DEBUG}
        if self.database_url.startswith("sqlite"):
            # Writers wait on SQLite's database lock instead of failing fast
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            if self.database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
            else:
                # Ensure data directory exists
                db_path = Path(self.database_url.replace("sqlite:///", ""))
                db_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(self.database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def init_db(self) -> None:
        """Create all tables."""
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    # =========================================================================
    # Lead Operations
    # =========================================================================

    def save_lead(self, lead: Lead) -> Lead:
        """Save or update a lead."""
        with self.get_session() as session:
            record = session.query(LeadRecord).filter_by(id=lead.id).first()

            if record is None:
                record = LeadRecord(id=lead.id)
                session.add(record)

            record.name = lead.name
            record.email = lead.email
            record.phone = lead.phone
            record.vehicle_interest = lead.vehicle_interest
            record.budget = lead.budget
            record.timeline = lead.timeline
            record.preferred_contact = _value(lead.preferred_contact)
            record.source = _value(lead.source)
            record.score = lead.score
            record.status = _value(lead.status)
            record.dealer_id = lead.dealer_id
            record.notes = lead.notes
            record.created_at = lead.created_at
            record.updated_at = lead.updated_at

            session.commit()
            return lead

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        """Get a lead by ID."""
        with self.get_session() as session:
            record = session.query(LeadRecord).filter_by(id=lead_id).first()
            if record:
                return Lead.model_validate(record)
            return None

    def list_leads(
        self,
        status: Optional[LeadStatus] = None,
        dealer_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Lead]:
        """List leads, newest first, with optional filters."""
        with self.get_session() as session:
            query = session.query(LeadRecord)

            if status:
                query = query.filter(LeadRecord.status == _value(status))
            if dealer_id:
                query = query.filter(LeadRecord.dealer_id == dealer_id)

            query = query.order_by(LeadRecord.created_at.desc())
            query = query.offset(offset).limit(limit)

            return [Lead.model_validate(record) for record in query.all()]

    def count_leads(self, status: Optional[LeadStatus] = None) -> int:
        """Count leads with optional status filter."""
        with self.get_session() as session:
            query = session.query(LeadRecord)
            if status:
                query = query.filter(LeadRecord.status == _value(status))
            return query.count()

    def update_lead(
        self,
        lead_id: str,
        status: Optional[LeadStatus] = None,
        notes: Optional[str] = None,
    ) -> Optional[Lead]:
        """
        Update a lead's status and/or notes.

        Dealer changes go through assign_lead so dealer load stays consistent.
        Returns None when the lead does not exist.
        """
        with self.get_session() as session:
            record = session.query(LeadRecord).filter_by(id=lead_id).first()
            if record is None:
                return None

            if status is not None:
                record.status = _value(status)
            if notes is not None:
                record.notes = notes
            record.updated_at = datetime.utcnow()

            session.commit()
            return Lead.model_validate(record)

    # =========================================================================
    # Dealer Operations
    # =========================================================================

    def save_dealer(self, dealer: Dealer) -> Dealer:
        """Save or update a dealer."""
        with self.get_session() as session:
            record = session.query(DealerRecord).filter_by(id=dealer.id).first()

            if record is None:
                record = DealerRecord(id=dealer.id)
                session.add(record)

            record.name = dealer.name
            record.email = dealer.email
            record.phone = dealer.phone
            record.capacity = dealer.capacity
            record.current_load = dealer.current_load
            record.priority = dealer.priority
            record.specialties = json.dumps([_value(s) for s in dealer.specialties])
            record.active = dealer.active
            record.created_at = dealer.created_at
            record.updated_at = dealer.updated_at

            session.commit()
            return dealer

    def get_dealer(self, dealer_id: str) -> Optional[Dealer]:
        """Get a dealer by ID."""
        with self.get_session() as session:
            record = session.query(DealerRecord).filter_by(id=dealer_id).first()
            if record:
                return Dealer.model_validate(record)
            return None

    def list_dealers(self, active_only: bool = False, limit: int = 100) -> list[Dealer]:
        """List dealers by priority."""
        with self.get_session() as session:
            query = session.query(DealerRecord)
            if active_only:
                query = query.filter(DealerRecord.active.is_(True))
            query = query.order_by(DealerRecord.priority.desc(), DealerRecord.name.asc())
            return [Dealer.model_validate(record) for record in query.limit(limit).all()]

    def list_available_dealers(
        self,
        specialties: Optional[list[str]] = None,
        limit: Optional[int] = None,
        rank_by_capacity: bool = True,
    ) -> list[Dealer]:
        """
        List active dealers with spare capacity, best first.

        Args:
            specialties: Keep only dealers declaring at least one of these
            limit: Maximum dealers to return
            rank_by_capacity: Order by priority, available capacity, then load.
                When False, order by priority then load only.

        Returns:
            Ordered list of eligible dealers
        """
        wanted = {_value(s) for s in specialties or []}

        with self.get_session() as session:
            available = DealerRecord.capacity - DealerRecord.current_load
            query = session.query(DealerRecord).filter(
                DealerRecord.active.is_(True),
                available > 0,
            )

            if rank_by_capacity:
                query = query.order_by(
                    DealerRecord.priority.desc(),
                    available.desc(),
                    DealerRecord.current_load.asc(),
                )
            else:
                query = query.order_by(
                    DealerRecord.priority.desc(),
                    DealerRecord.current_load.asc(),
                )

            dealers = []
            if limit is not None and limit <= 0:
                return dealers
            for record in query.all():
                dealer = Dealer.model_validate(record)
                # Specialties are stored as JSON text, so overlap is checked here
                if wanted and not dealer.handles_any(wanted):
                    continue
                dealers.append(dealer)
                if limit is not None and len(dealers) >= limit:
                    break
            return dealers

    # =========================================================================
    # Assignment Operations
    # =========================================================================

    def assign_lead(
        self,
        lead_id: str,
        dealer_id: str,
        assigned_by: AssignedBy = AssignedBy.SYSTEM,
    ) -> LeadAssignment:
        """
        Assign a lead to a dealer as one atomic unit of work.

        Inserts a pending assignment, marks the lead qualified with the
        dealer, and increments the dealer's load. The increment only applies
        while the dealer is active and below capacity, so concurrent
        assignments can never push current_load past capacity.

        Raises:
            LeadAlreadyAssigned: Lead has a pending or accepted assignment
            LeadNotFound: Lead does not exist
            DealerNotFound: Dealer does not exist or is inactive
            DealerAtCapacity: Dealer has no spare capacity
            TransactionFailure: Any other store error (original chained)
        """
        now = datetime.utcnow()

        with self.get_session() as session:
            try:
                existing = session.query(LeadAssignmentRecord).filter(
                    LeadAssignmentRecord.lead_id == lead_id,
                    LeadAssignmentRecord.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
                ).first()
                if existing is not None:
                    raise LeadAlreadyAssigned(lead_id, existing.id)

                record = LeadAssignmentRecord(
                    id=str(uuid.uuid4()),
                    lead_id=lead_id,
                    dealer_id=dealer_id,
                    assigned_by=_value(assigned_by),
                    status=AssignmentStatus.PENDING.value,
                    created_at=now,
                    updated_at=now,
                )
                session.add(record)
                session.flush()

                updated = session.query(LeadRecord).filter(
                    LeadRecord.id == lead_id,
                ).update(
                    {
                        LeadRecord.dealer_id: dealer_id,
                        LeadRecord.status: LeadStatus.QUALIFIED.value,
                        LeadRecord.updated_at: now,
                    },
                    synchronize_session=False,
                )
                if updated == 0:
                    raise LeadNotFound(lead_id)

                incremented = session.query(DealerRecord).filter(
                    DealerRecord.id == dealer_id,
                    DealerRecord.active.is_(True),
                    DealerRecord.current_load < DealerRecord.capacity,
                ).update(
                    {
                        DealerRecord.current_load: DealerRecord.current_load + 1,
                        DealerRecord.updated_at: now,
                    },
                    synchronize_session=False,
                )
                if incremented == 0:
                    dealer = session.query(DealerRecord).filter_by(id=dealer_id).first()
                    if dealer is None or not dealer.active:
                        raise DealerNotFound(dealer_id)
                    raise DealerAtCapacity(dealer_id)

                session.commit()

            except TransactionFailure as exc:
                session.rollback()
                logger.warning("Assignment of lead %s to dealer %s rolled back: %s", lead_id, dealer_id, exc)
                raise
            except IntegrityError as exc:
                session.rollback()
                logger.warning("Assignment of lead %s hit a constraint: %s", lead_id, exc)
                raise TransactionFailure(
                    f"Assignment of lead {lead_id} violated a store constraint"
                ) from exc
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Assignment of lead %s to dealer %s failed: %s", lead_id, dealer_id, exc)
                raise TransactionFailure(
                    f"Assignment of lead {lead_id} to dealer {dealer_id} failed: {exc}"
                ) from exc

            logger.info(
                "Lead %s assigned to dealer %s by %s (assignment %s)",
                lead_id, dealer_id, record.assigned_by, record.id,
            )
            return LeadAssignment.model_validate(record)

    def get_assignment(self, assignment_id: str) -> Optional[LeadAssignment]:
        """Get an assignment by ID."""
        with self.get_session() as session:
            record = session.query(LeadAssignmentRecord).filter_by(id=assignment_id).first()
            if record:
                return LeadAssignment.model_validate(record)
            return None

    def list_assignments(
        self,
        lead_id: Optional[str] = None,
        dealer_id: Optional[str] = None,
        status: Optional[AssignmentStatus] = None,
        limit: int = 100,
    ) -> list[LeadAssignment]:
        """List assignments, newest first."""
        with self.get_session() as session:
            query = session.query(LeadAssignmentRecord)

            if lead_id:
                query = query.filter(LeadAssignmentRecord.lead_id == lead_id)
            if dealer_id:
                query = query.filter(LeadAssignmentRecord.dealer_id == dealer_id)
            if status:
                query = query.filter(LeadAssignmentRecord.status == _value(status))

            query = query.order_by(LeadAssignmentRecord.created_at.desc()).limit(limit)
            return [LeadAssignment.model_validate(record) for record in query.all()]

    def update_assignment_status(
        self,
        assignment_id: str,
        status: AssignmentStatus,
    ) -> LeadAssignment:
        """
        Move an assignment to a new status.

        Leaving the pending/accepted states releases one unit of the dealer's
        load. A rejection also detaches the dealer from the lead so it can be
        routed again.
        """
        status = _value(status)
        now = datetime.utcnow()

        with self.get_session() as session:
            try:
                record = session.query(LeadAssignmentRecord).filter_by(id=assignment_id).first()
                if record is None:
                    raise AssignmentNotFound(assignment_id)

                current = record.status
                if status not in ASSIGNMENT_TRANSITIONS.get(current, set()):
                    raise InvalidAssignmentTransition(current, status)

                # Compare-and-swap on the status we validated against
                swapped = session.query(LeadAssignmentRecord).filter(
                    LeadAssignmentRecord.id == assignment_id,
                    LeadAssignmentRecord.status == current,
                ).update(
                    {
                        LeadAssignmentRecord.status: status,
                        LeadAssignmentRecord.updated_at: now,
                    },
                    synchronize_session=False,
                )
                if swapped == 0:
                    raise InvalidAssignmentTransition(current, status)

                if current in ACTIVE_ASSIGNMENT_STATUSES and status not in ACTIVE_ASSIGNMENT_STATUSES:
                    session.query(DealerRecord).filter(
                        DealerRecord.id == record.dealer_id,
                        DealerRecord.current_load > 0,
                    ).update(
                        {
                            DealerRecord.current_load: DealerRecord.current_load - 1,
                            DealerRecord.updated_at: now,
                        },
                        synchronize_session=False,
                    )

                if status == AssignmentStatus.REJECTED.value:
                    session.query(LeadRecord).filter(
                        LeadRecord.id == record.lead_id,
                        LeadRecord.dealer_id == record.dealer_id,
                    ).update(
                        {
                            LeadRecord.dealer_id: None,
                            # Only the status set by assignment is reverted
                            LeadRecord.status: case(
                                (LeadRecord.status == LeadStatus.QUALIFIED.value, LeadStatus.NEW.value),
                                else_=LeadRecord.status,
                            ),
                            LeadRecord.updated_at: now,
                        },
                        synchronize_session=False,
                    )

                session.commit()

            except (AssignmentNotFound, InvalidAssignmentTransition):
                session.rollback()
                raise
            except SQLAlchemyError as exc:
                session.rollback()
                raise TransactionFailure(
                    f"Status change of assignment {assignment_id} failed: {exc}"
                ) from exc

            session.refresh(record)
            logger.info("Assignment %s moved %s -> %s", assignment_id, current, status)
            return LeadAssignment.model_validate(record)

    # =========================================================================
    # Interactions & Follow-ups
    # =========================================================================

    def log_interaction(
        self,
        lead_id: str,
        interaction_type: str = "chat",
        direction: InteractionDirection = InteractionDirection.INBOUND,
        channel: str = "website",
        content: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> LeadInteraction:
        """Record a message or event exchanged with a lead."""
        interaction = LeadInteraction(
            lead_id=lead_id,
            interaction_type=interaction_type,
            direction=direction,
            channel=channel,
            content=content,
            metadata=metadata or {},
        )
        with self.get_session() as session:
            session.add(LeadInteractionRecord(
                id=interaction.id,
                lead_id=interaction.lead_id,
                interaction_type=interaction.interaction_type,
                direction=_value(interaction.direction),
                channel=interaction.channel,
                content=interaction.content,
                metadata_json=json.dumps(interaction.metadata, default=str),
                created_at=interaction.created_at,
            ))
            session.commit()
        return interaction

    def list_interactions(self, lead_id: str, limit: int = 100) -> list[LeadInteraction]:
        """List a lead's interactions, oldest first."""
        with self.get_session() as session:
            query = session.query(LeadInteractionRecord).filter(
                LeadInteractionRecord.lead_id == lead_id,
            ).order_by(LeadInteractionRecord.created_at.asc()).limit(limit)

            return [
                LeadInteraction(
                    id=record.id,
                    lead_id=record.lead_id,
                    interaction_type=record.interaction_type,
                    direction=record.direction,
                    channel=record.channel,
                    content=record.content,
                    metadata=record.metadata_json,
                    created_at=record.created_at,
                )
                for record in query.all()
            ]

    def schedule_followup(
        self,
        lead_id: str,
        scheduled_at: datetime,
        followup_type: FollowUpType = FollowUpType.CALL,
    ) -> LeadFollowUp:
        """Schedule a follow-up for a lead."""
        followup = LeadFollowUp(
            lead_id=lead_id,
            scheduled_at=scheduled_at,
            followup_type=followup_type,
        )
        with self.get_session() as session:
            session.add(LeadFollowUpRecord(
                id=followup.id,
                lead_id=followup.lead_id,
                scheduled_at=followup.scheduled_at,
                followup_type=_value(followup.followup_type),
                status=followup.status,
                created_at=followup.created_at,
            ))
            session.commit()
        return followup

    def list_followups(self, lead_id: str) -> list[LeadFollowUp]:
        """List a lead's follow-ups by scheduled time."""
        with self.get_session() as session:
            query = session.query(LeadFollowUpRecord).filter(
                LeadFollowUpRecord.lead_id == lead_id,
            ).order_by(LeadFollowUpRecord.scheduled_at.asc())
            return [LeadFollowUp.model_validate(record) for record in query.all()]

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict:
        """Get database statistics."""
        with self.get_session() as session:
            dealers = session.query(DealerRecord).filter(DealerRecord.active.is_(True)).all()
            return {
                "leads": {
                    "total": session.query(LeadRecord).count(),
                    "new": session.query(LeadRecord).filter_by(status="new").count(),
                    "qualified": session.query(LeadRecord).filter_by(status="qualified").count(),
                    "converted": session.query(LeadRecord).filter_by(status="converted").count(),
                    "unassigned": session.query(LeadRecord).filter(LeadRecord.dealer_id.is_(None)).count(),
                },
                "dealers": {
                    "total": session.query(DealerRecord).count(),
                    "active": len(dealers),
                    "with_capacity": len([d for d in dealers if d.capacity - d.current_load > 0]),
                    "total_capacity": sum(d.capacity for d in dealers),
                    "total_load": sum(d.current_load for d in dealers),
                },
                "assignments": {
                    status.value: session.query(LeadAssignmentRecord).filter_by(status=status.value).count()
                    for status in AssignmentStatus
                },
            }


@lru_cache
def get_repository() -> Repository:
    """Get cached repository instance."""
    repo = Repository()
    repo.init_db()
    return repo
