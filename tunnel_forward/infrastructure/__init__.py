"""
Infrastructure layer: tunnel implementations, configuration and logging.
"""
