"""netdrive - declarative SMB/WebDAV network drive manager."""

__version__ = "0.1.0"
