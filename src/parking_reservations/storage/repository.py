"""Table operations against the reservation store."""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..exceptions import StoreError
from ..state.models import (
    ParkingSpot,
    Profile,
    Reservation,
    ReservationStatus,
    SpotDefinition,
    SpotStatus,
    VideoFeed,
)
from .tables import (
    Base,
    ParkingSpotRow,
    ProfileRow,
    ReservationRow,
    SpotDefinitionRow,
    VideoFeedRow,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def create_session_factory(url: str, echo: bool = False) -> SessionFactory:
    """
    Create the engine for a store URL and make sure all tables exist.

    Args:
        url: SQLAlchemy database URL
        echo: Log emitted SQL

    Returns:
        Session factory bound to the engine
    """
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # Keep a single connection so every session sees the same database
            kwargs["poolclass"] = StaticPool

    engine = create_engine(url, echo=echo, **kwargs)
    Base.metadata.create_all(engine)
    logger.info(f"Connected to reservation store at {engine.url.render_as_string(hide_password=True)}")

    return sessionmaker(bind=engine, expire_on_commit=False)


def _to_spot(row: ParkingSpotRow) -> ParkingSpot:
    return ParkingSpot(
        id=row.id,
        parking_complex=row.parking_complex,
        spot_id=row.spot_id,
        status=SpotStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_reservation(row: ReservationRow) -> Reservation:
    try:
        status = ReservationStatus(row.status)
    except ValueError:
        status = None

    return Reservation(
        id=row.id,
        user_id=row.user_id,
        parking_complex=row.parking_complex,
        spot_id=row.spot_id,
        vehicle_plate=row.vehicle_plate,
        date=row.date,
        time=row.time,
        duration=row.duration,
        status=status,
        created_at=row.created_at,
    )


def _to_profile(row: ProfileRow) -> Profile:
    return Profile(
        id=row.id,
        email=row.email,
        name=row.name,
        vehicle_plate=row.vehicle_plate,
    )


def _to_feed(row: VideoFeedRow) -> VideoFeed:
    return VideoFeed(
        id=row.id,
        name=row.name,
        url=row.url,
        parking_complex=row.parking_complex,
        is_active=row.is_active,
    )


def _to_definition(row: SpotDefinitionRow) -> SpotDefinition:
    return SpotDefinition(
        id=row.id,
        video_feed_id=row.video_feed_id,
        spot_id=row.spot_id,
        parking_complex=row.parking_complex,
        x=row.x,
        y=row.y,
        width=row.width,
        height=row.height,
    )


class Repository:
    """
    Select/insert/update/delete operations for every table.

    Outside a transaction each call runs in its own session and commits
    immediately. Inside ``transaction()`` all calls share one session and
    commit or roll back together.
    """

    def __init__(self, session_factory: SessionFactory, session: Optional[Session] = None):
        self._session_factory = session_factory
        self._session = session

    @contextmanager
    def transaction(self) -> Iterator["Repository"]:
        """
        Open a unit of work spanning several table operations.

        Yields:
            Repository bound to the transaction's session
        """
        if self._session is not None:
            # Nested use joins the outer transaction
            yield self
            return

        session = self._session_factory()
        try:
            yield Repository(self._session_factory, session=session)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Store transaction failed: {e}")
            raise StoreError(str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        if self._session is not None:
            try:
                yield self._session
                self._session.flush()
            except SQLAlchemyError as e:
                raise StoreError(str(e)) from e
            return

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Store operation failed: {e}")
            raise StoreError(str(e)) from e
        finally:
            session.close()

    # Parking spots

    def list_spots(self, parking_complex: Optional[str] = None) -> list[ParkingSpot]:
        with self._scope() as session:
            query = select(ParkingSpotRow).order_by(
                ParkingSpotRow.parking_complex, ParkingSpotRow.spot_id
            )
            if parking_complex is not None:
                query = query.where(ParkingSpotRow.parking_complex == parking_complex)
            return [_to_spot(row) for row in session.scalars(query)]

    def get_spot(self, parking_complex: str, spot_id: str) -> Optional[ParkingSpot]:
        with self._scope() as session:
            row = self._find_spot(session, parking_complex, spot_id)
            return _to_spot(row) if row else None

    def insert_spots(self, spots: list[tuple[str, str, SpotStatus]]) -> list[ParkingSpot]:
        """Insert (parking_complex, spot_id, status) tuples."""
        with self._scope() as session:
            rows = [
                ParkingSpotRow(parking_complex=complex_name, spot_id=spot_id, status=status.value)
                for complex_name, spot_id, status in spots
            ]
            session.add_all(rows)
            session.flush()
            return [_to_spot(row) for row in rows]

    def update_spot_status(
        self,
        parking_complex: str,
        spot_id: str,
        status: SpotStatus,
    ) -> Optional[SpotStatus]:
        """
        Overwrite a spot's status.

        Returns:
            The previous status, or None if the spot does not exist
        """
        with self._scope() as session:
            row = self._find_spot(session, parking_complex, spot_id)
            if row is None:
                return None
            previous = SpotStatus(row.status)
            row.status = status.value
            return previous

    def delete_spot(self, parking_complex: str, spot_id: str) -> bool:
        with self._scope() as session:
            row = self._find_spot(session, parking_complex, spot_id)
            if row is None:
                return False
            session.delete(row)
            return True

    def delete_spots_for_complex(self, parking_complex: str) -> int:
        with self._scope() as session:
            result = session.execute(
                delete(ParkingSpotRow).where(ParkingSpotRow.parking_complex == parking_complex)
            )
            return result.rowcount

    def list_complexes(self) -> list[tuple[str, int]]:
        """Distinct complex names with their spot counts."""
        with self._scope() as session:
            query = (
                select(ParkingSpotRow.parking_complex, func.count(ParkingSpotRow.id))
                .group_by(ParkingSpotRow.parking_complex)
                .order_by(ParkingSpotRow.parking_complex)
            )
            return [(name, count) for name, count in session.execute(query)]

    def count_spots(self) -> int:
        with self._scope() as session:
            return session.scalar(select(func.count(ParkingSpotRow.id))) or 0

    @staticmethod
    def _find_spot(session: Session, parking_complex: str, spot_id: str) -> Optional[ParkingSpotRow]:
        return session.scalars(
            select(ParkingSpotRow).where(
                ParkingSpotRow.parking_complex == parking_complex,
                ParkingSpotRow.spot_id == spot_id,
            )
        ).first()

    # Reservations

    def insert_reservation(
        self,
        user_id: str,
        parking_complex: str,
        spot_id: str,
        vehicle_plate: str,
        date: str,
        time: str,
        duration: str,
        status: ReservationStatus,
    ) -> Reservation:
        with self._scope() as session:
            row = ReservationRow(
                user_id=user_id,
                parking_complex=parking_complex,
                spot_id=spot_id,
                vehicle_plate=vehicle_plate,
                date=date,
                time=time,
                duration=duration,
                status=status.value,
            )
            session.add(row)
            session.flush()
            return _to_reservation(row)

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        with self._scope() as session:
            row = session.get(ReservationRow, reservation_id)
            return _to_reservation(row) if row else None

    def list_reservations(
        self,
        user_id: Optional[str] = None,
        parking_complex: Optional[str] = None,
    ) -> list[Reservation]:
        """List reservations, newest first."""
        with self._scope() as session:
            query = select(ReservationRow).order_by(ReservationRow.created_at.desc())
            if user_id is not None:
                query = query.where(ReservationRow.user_id == user_id)
            if parking_complex is not None:
                query = query.where(ReservationRow.parking_complex == parking_complex)
            return [_to_reservation(row) for row in session.scalars(query)]

    def update_reservation_status(self, reservation_id: str, status: ReservationStatus) -> bool:
        with self._scope() as session:
            row = session.get(ReservationRow, reservation_id)
            if row is None:
                return False
            row.status = status.value
            return True

    def delete_reservation(self, reservation_id: str) -> bool:
        with self._scope() as session:
            row = session.get(ReservationRow, reservation_id)
            if row is None:
                return False
            session.delete(row)
            return True

    def delete_reservations_for_complex(self, parking_complex: str) -> int:
        with self._scope() as session:
            result = session.execute(
                delete(ReservationRow).where(ReservationRow.parking_complex == parking_complex)
            )
            return result.rowcount

    # Profiles

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with self._scope() as session:
            row = session.get(ProfileRow, user_id)
            return _to_profile(row) if row else None

    def upsert_profile(self, user_id: str, **fields) -> Profile:
        """Create or update a profile; None values leave fields untouched."""
        with self._scope() as session:
            row = session.get(ProfileRow, user_id)
            if row is None:
                row = ProfileRow(id=user_id)
                session.add(row)
            for key, value in fields.items():
                if value is not None:
                    setattr(row, key, value)
            session.flush()
            return _to_profile(row)

    # Video feeds and spot definitions

    def insert_video_feed(self, name: str, url: str, parking_complex: str) -> VideoFeed:
        with self._scope() as session:
            row = VideoFeedRow(name=name, url=url, parking_complex=parking_complex)
            session.add(row)
            session.flush()
            return _to_feed(row)

    def get_video_feed(self, feed_id: str) -> Optional[VideoFeed]:
        with self._scope() as session:
            row = session.get(VideoFeedRow, feed_id)
            return _to_feed(row) if row else None

    def list_video_feeds(self) -> list[VideoFeed]:
        with self._scope() as session:
            query = select(VideoFeedRow).order_by(VideoFeedRow.created_at)
            return [_to_feed(row) for row in session.scalars(query)]

    def delete_video_feed(self, feed_id: str) -> bool:
        with self._scope() as session:
            row = session.get(VideoFeedRow, feed_id)
            if row is None:
                return False
            session.execute(
                delete(SpotDefinitionRow).where(SpotDefinitionRow.video_feed_id == feed_id)
            )
            session.delete(row)
            return True

    def replace_spot_definitions(
        self,
        feed_id: str,
        definitions: list[SpotDefinition],
    ) -> list[SpotDefinition]:
        with self._scope() as session:
            session.execute(
                delete(SpotDefinitionRow).where(SpotDefinitionRow.video_feed_id == feed_id)
            )
            rows = [
                SpotDefinitionRow(
                    video_feed_id=feed_id,
                    spot_id=d.spot_id,
                    parking_complex=d.parking_complex,
                    x=d.x,
                    y=d.y,
                    width=d.width,
                    height=d.height,
                )
                for d in definitions
            ]
            session.add_all(rows)
            session.flush()
            return [_to_definition(row) for row in rows]

    def list_spot_definitions(self, feed_id: str) -> list[SpotDefinition]:
        with self._scope() as session:
            query = (
                select(SpotDefinitionRow)
                .where(SpotDefinitionRow.video_feed_id == feed_id)
                .order_by(SpotDefinitionRow.spot_id)
            )
            return [_to_definition(row) for row in session.scalars(query)]
