# Models live in their concern sub-packages; import them here so Django
# registers them under the intakeguard app.
from intakeguard.compliance.models import ComplianceAuditEntry  # noqa: F401
from intakeguard.intakes.models import Intake  # noqa: F401
from intakeguard.retry.models import DraftRetry  # noqa: F401
