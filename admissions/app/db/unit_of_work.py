"""Single-commit transactional boundary for multi-step service operations."""

from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from admissions.app.core.errors import AdmissionsError, ConflictError, InternalError


@contextmanager
def unit_of_work(db: Session):
    """Commit once on success; roll back and raise a typed error on any failure."""
    try:
        yield db
        db.commit()
    except AdmissionsError:
        db.rollback()
        raise
    except StaleDataError as exc:
        db.rollback()
        raise ConflictError("The record was modified by another request; reload and retry") from exc
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("The change conflicts with existing data") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise InternalError("The admissions store failed to complete the operation") from exc
    except Exception:
        db.rollback()
        raise
