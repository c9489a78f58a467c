from admissions.app.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from admissions.app.models.user import User  # noqa: F401
from admissions.app.models.tour_slot import TourSlot  # noqa: F401
from admissions.app.models.waitlist_entry import WaitlistEntry  # noqa: F401
from admissions.app.models.stage_history import StageHistoryRecord  # noqa: F401
from admissions.app.models.enrollment_application import EnrollmentApplication  # noqa: F401
