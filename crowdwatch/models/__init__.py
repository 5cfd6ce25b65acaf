# CrowdWatch — Database Models
# Import all models here for SQLAlchemy discovery

from crowdwatch.models.tenant import Tenant       # noqa
from crowdwatch.models.event import Event         # noqa
from crowdwatch.models.area import Area           # noqa
from crowdwatch.models.scan_log import ScanLog    # noqa
from crowdwatch.models.alert import Alert         # noqa
