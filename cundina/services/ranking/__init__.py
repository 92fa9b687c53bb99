"""
Ranking services.

Dual-source reads of group rankings: the indexed graph service first,
direct ledger reads when it is degraded.
"""
