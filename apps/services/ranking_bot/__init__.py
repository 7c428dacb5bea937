"""
Ranking Bot - search-ranking audit for a marketplace product

Walks paginated keyword-search results, records where the main product (or
one of its variants) ranks, and performs human-like visits on it and on a
sampled subset of other listed products. Every reported success is backed by
an independent read-back (filter echo, current-page indicator, cart diff).

Usage:
    from apps.services.ranking_bot import RankingBot

    bot = RankingBot(browser_context)
    result = await bot.handle(task)
    payload = result.to_wire()

Components:
    - PageReadiness: bounded readiness gates and anti-bot reload
    - SearchController: keyword/price filters and result summary
    - SerpPaginator: results-page state machine with resynchronization
    - ResultItemClassifier / PageSampler: item classification and random-visit sampling
    - ProductVisitEngine: product visits, human activity, verified add-to-cart
    - ProductInfoScraper: product detail scraping
    - CartInspector: cart snapshots for before/after reconciliation
"""

from .bot import RankingBot
from .cart import CartInspector, CartStatus
from .classifier import Advertised, Candidate, Main, PageSampler, ResultItemClassifier, classify
from .diagnostics import DiagnosticSink, LoggingDiagnosticSink, RecordingDiagnosticSink
from .page_readiness import PageReadiness
from .pagination import SerpPaginator
from .product_info import ProductInfoScraper
from .product_visit import ProductVisitEngine, VisitOutcome
from .search_controller import ResultSummary, SearchController
from .selectors import DEFAULT_SELECTORS, ShopSelectors

__all__ = [
    # Entry point
    'RankingBot',

    # Components
    'PageReadiness',
    'SearchController',
    'SerpPaginator',
    'ResultItemClassifier',
    'PageSampler',
    'ProductVisitEngine',
    'ProductInfoScraper',
    'CartInspector',

    # Data
    'Advertised',
    'Main',
    'Candidate',
    'classify',
    'CartStatus',
    'ResultSummary',
    'VisitOutcome',

    # Diagnostics
    'DiagnosticSink',
    'LoggingDiagnosticSink',
    'RecordingDiagnosticSink',

    # Selectors
    'ShopSelectors',
    'DEFAULT_SELECTORS',
]
