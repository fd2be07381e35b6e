"""
Version information for the Knowledge Graph Engine.

This module provides version information that can be imported by other modules.
"""

__version__ = "0.3.0"
__version_info__ = (0, 3, 0)

RELEASE_STATUS = "beta"  # alpha, beta, rc, stable

# Feature flags
FEATURES = {
    "relationship_mapping": True,
    "semantic_understanding": True,
    "inference_engine": True,
    "graph_optimization": True,
    "context_awareness": True,
}


def get_version() -> str:
    """Get the version string."""
    return __version__


def is_feature_enabled(feature: str) -> bool:
    """
    Check if a feature is enabled.

    Args:
        feature: Feature name

    Returns:
        True if feature is enabled, False otherwise
    """
    return FEATURES.get(feature, False)


def get_release_info() -> dict:
    """Get release information."""
    return {
        "version": __version__,
        "version_info": __version_info__,
        "release_status": RELEASE_STATUS,
        "features": [name for name, enabled in FEATURES.items() if enabled],
    }
