from .subgraph import SubgraphDiscovery

__all__ = ["SubgraphDiscovery"]
