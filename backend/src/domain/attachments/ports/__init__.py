from .attachment_storage_port import AttachmentStoragePort, StorageError, StoredAttachment

__all__ = ["AttachmentStoragePort", "StorageError", "StoredAttachment"]
