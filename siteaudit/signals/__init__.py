"""Content/UX signal extraction"""
from siteaudit.signals.producer import HtmlSignalProducer, SignalProducer

__all__ = ['HtmlSignalProducer', 'SignalProducer']
