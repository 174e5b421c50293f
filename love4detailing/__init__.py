"""Love4Detailing booking platform: API server, admin schedule client and worker"""

__version__ = "1.0.0"
