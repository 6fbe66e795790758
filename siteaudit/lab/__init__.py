"""Lab and field performance measurement"""
from siteaudit.lab.lighthouse import LighthouseAuditor, measure_median
from siteaudit.lab.metrics import LabMetrics, median
from siteaudit.lab.pagespeed import fetch_field_data, field_performance_proxy

__all__ = [
    'LighthouseAuditor',
    'measure_median',
    'LabMetrics',
    'median',
    'fetch_field_data',
    'field_performance_proxy',
]
