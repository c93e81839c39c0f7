"""Built-in tool plugins."""

from .web_search import WebSearchClient, WebSearchTool, SearchOutcome, SearchHit, SearchError

__all__ = ['WebSearchClient', 'WebSearchTool', 'SearchOutcome', 'SearchHit', 'SearchError']
