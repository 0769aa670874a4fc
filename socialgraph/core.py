"""
Explicit wiring of the core components around one Store.

Every component receives the store (and the shared counter reconciler and
clock) at construction time; nothing reaches for a global handle.
"""
from dataclasses import dataclass

from socialgraph.accounts import AccountService
from socialgraph.clock import SystemClock
from socialgraph.counters import CounterReconciler
from socialgraph.database import Store
from socialgraph.engagement import EngagementAggregator
from socialgraph.feed import FeedEngine
from socialgraph.graph import GraphEdgeManager
from socialgraph.posts import PostService


@dataclass
class SocialGraph:
    store: Store
    counters: CounterReconciler
    graph: GraphEdgeManager
    feed: FeedEngine
    engagement: EngagementAggregator
    posts: PostService
    accounts: AccountService

    @classmethod
    def build(cls, store: Store, clock=None, max_page_size: int = 100) -> "SocialGraph":
        clock = clock or SystemClock()
        counters = CounterReconciler()
        graph = GraphEdgeManager(store, counters, clock, max_page_size=max_page_size)
        return cls(
            store=store,
            counters=counters,
            graph=graph,
            feed=FeedEngine(store, graph, max_page_size=max_page_size),
            engagement=EngagementAggregator(store, counters, clock, max_page_size=max_page_size),
            posts=PostService(store, counters, clock),
            accounts=AccountService(store, graph, clock),
        )
