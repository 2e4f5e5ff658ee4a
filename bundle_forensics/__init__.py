"""
Bundle Forensics - detect coordinated wallet bundles holding a token.
"""

from .clustering import BundleClusteringEngine, analyze_bundle_clusters, get_clustering_engine

__version__ = "0.1.0"

__all__ = [
    "BundleClusteringEngine",
    "analyze_bundle_clusters",
    "get_clustering_engine",
]
