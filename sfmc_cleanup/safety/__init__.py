"""Safety engine: protection rules, pattern vetting and dependency analysis."""

__all__ = [
    "analyzer",
    "checker",
    "dependency",
    "filters",
    "patterns",
]
