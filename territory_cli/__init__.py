"""
Territory CLI - Command-line interface for the tracking service.

Usage:
    territory-cli start
    territory-cli cancel
    territory-cli status
    territory-cli export-log
    territory-cli replay config/fixes/sample_walk.yaml
    territory-cli convert 31.2304 121.4737
"""

__version__ = "1.0.0"
