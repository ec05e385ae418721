from .mailbox_store_port import MailboxStoreError, MailboxStorePort, StoredMessage

__all__ = ["MailboxStoreError", "MailboxStorePort", "StoredMessage"]
