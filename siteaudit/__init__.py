"""Site audit: bounded crawl, lab measurement and rubric scoring."""
from siteaudit.errors import (
    AuditError,
    ConfigurationError,
    ExternalServiceError,
    FetchError,
    InvalidInputError,
    MeasurementError,
)
from siteaudit.pipeline import AuditPipeline, run_audit
from siteaudit.report import AuditReport, report_to_dict

__all__ = [
    'AuditPipeline',
    'run_audit',
    'AuditReport',
    'report_to_dict',
    'AuditError',
    'ConfigurationError',
    'ExternalServiceError',
    'FetchError',
    'InvalidInputError',
    'MeasurementError',
]
