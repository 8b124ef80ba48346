"""Routing: a frozen route table with plain segment matching.

Routes are registered during setup and compiled into an immutable
table when the app freezes.
"""

from wren.routing.route import Route, RouteMatch
from wren.routing.router import Router

__all__ = ["Route", "RouteMatch", "Router"]
