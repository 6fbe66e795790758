"""Browser automation (Playwright)"""
from siteaudit.browser.session import BrowserSession, Navigation, NavigationState, PageFetcher

__all__ = ['BrowserSession', 'PageFetcher', 'Navigation', 'NavigationState']
