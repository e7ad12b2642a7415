"""reqrunner - run HTTP and pub/sub requests from request documents."""

__version__ = "0.1.0"
