"""Consumer side — merged live/fallback view, polling and heartbeat."""

from truthsync.state.accessor import StateView, TruthState

__all__ = ["StateView", "TruthState"]
