"""Care connections API - connection lifecycle and negotiation engine."""
