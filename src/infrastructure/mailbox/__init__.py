from .filesystem_store import FilesystemMailboxStore, NULL_SENDER

__all__ = ["FilesystemMailboxStore", "NULL_SENDER"]
