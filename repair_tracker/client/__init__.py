from .agent import ReconciliationAgent, websocket_url
from .views import RepairViews, TicketFilters, derive_views

__all__ = ["ReconciliationAgent", "RepairViews", "TicketFilters", "derive_views", "websocket_url"]
