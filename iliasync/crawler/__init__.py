"""
Sync engine: link classification, fetching, scheduling and handlers.
"""

from .errors import IliasError, FetchError, ServiceError, ParseError, LoginError
from .objects import ContentNode, NodeKind, ReferenceDescriptor, classify, sanitize_name
from .fetcher import IliasFetcher
from .scheduler import CrawlScheduler, CrawlTask, OutstandingWork
from .handlers import ContentHandlers
from .syncer import IliasSyncer

__all__ = [
    'IliasError', 'FetchError', 'ServiceError', 'ParseError', 'LoginError',
    'ContentNode', 'NodeKind', 'ReferenceDescriptor', 'classify', 'sanitize_name',
    'IliasFetcher',
    'CrawlScheduler', 'CrawlTask', 'OutstandingWork',
    'ContentHandlers',
    'IliasSyncer'
]
