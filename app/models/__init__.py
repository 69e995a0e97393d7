from app.models.audit import AuditEvent  # noqa: F401
from app.models.document import (  # noqa: F401
    Document,
    DocumentFile,
    DocumentFileType,
    DocumentStatus,
    Field,
    FieldType,
    Recipient,
    RecipientRole,
    RecipientStatus,
    SigningOrder,
)
from app.models.organization import Organization, User, UserRole  # noqa: F401
from app.models.signing import DownloadToken, SigningSession  # noqa: F401
