"""Static site build and publishing."""

from .builder import SiteBuilder
from .publisher import PublishResult, SitePublisher

__all__ = ['PublishResult', 'SiteBuilder', 'SitePublisher']
