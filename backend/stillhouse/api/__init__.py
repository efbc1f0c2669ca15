from stillhouse.api import container_kinds, containers, conversions, transactions

__all__ = ["container_kinds", "containers", "conversions", "transactions"]
