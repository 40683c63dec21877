"""Platform site adapters built on the resolver and simulator.

Each adapter is a fixed composition of scoped element lookups, visibility
filtering and simulated clicks / typing for one platform.
"""

from webreach.sites.bluesky import BlueskyAdapter
from webreach.sites.linkedin import LinkedInAdapter
from webreach.sites.reddit import RedditAdapter
from webreach.sites.x_com import XAdapter

__all__ = ["BlueskyAdapter", "LinkedInAdapter", "RedditAdapter", "XAdapter"]
