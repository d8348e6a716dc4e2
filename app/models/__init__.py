# Registers every model on Base.metadata.
from app.models.department import Department  # noqa: F401
from app.models.user import User, UserDepartmentAssignment  # noqa: F401
from app.models.storage_location import StorageLocation  # noqa: F401
from app.models.archive_file import ArchiveFile  # noqa: F401
from app.models.transaction import Transaction  # noqa: F401
