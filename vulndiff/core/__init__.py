"""Core pipeline for diffing base and head vulnerability scans."""

__all__ = [
    "aggregator",
    "config",
    "coordinates",
    "differ",
    "dist_loader",
    "models",
    "normalizer",
    "reporter",
    "sbom_index",
    "sbom_loader",
    "severity",
    "validation",
    "vuln_loader",
]
