"""Same-site crawling"""
from siteaudit.crawl.crawler import CrawlFrontier, LinkCounts, Page, SiteCrawler, crawl
from siteaudit.crawl.urls import canonicalize

__all__ = ['crawl', 'SiteCrawler', 'CrawlFrontier', 'Page', 'LinkCounts', 'canonicalize']
