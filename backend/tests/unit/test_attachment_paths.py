"""Unit tests for attachment storage keys and path authorization"""

from uuid import UUID

import pytest

import sys
from pathlib import Path
backend_src = Path(__file__).parent.parent.parent / "src"
sys.path.insert(0, str(backend_src))

from domain.attachments.paths import (
    StorageAccessError,
    authorize_attachment_path,
    inbound_attachment_key,
    load_reply_attachments,
    sanitize_attachment_name,
)
from conftest import FakeAttachmentStorage


USER_ID = UUID("aaaaaaaa-0000-4000-8000-000000000001")
OTHER_USER_ID = UUID("bbbbbbbb-0000-4000-8000-000000000002")
APP_ID = UUID("cccccccc-0000-4000-8000-000000000003")
PREFIX = f"{USER_ID}/reply-attachments/{APP_ID}/"


class TestAuthorizeAttachmentPath:

    def test_path_under_prefix(self):
        assert authorize_attachment_path(f"/{PREFIX}cv.pdf", USER_ID, APP_ID) == f"{PREFIX}cv.pdf"

    @pytest.mark.parametrize("path", [
        f"{OTHER_USER_ID}/reply-attachments/{APP_ID}/cv.pdf",
        f"{USER_ID}/reply-attachments/{OTHER_USER_ID}/cv.pdf",
        f"{USER_ID}/inbound-attachments/{APP_ID}/cv.pdf",
        f"{PREFIX}../../{OTHER_USER_ID}/cv.pdf",
        "",
    ])
    def test_path_outside_prefix_rejected(self, path):
        with pytest.raises(StorageAccessError):
            authorize_attachment_path(path, USER_ID, APP_ID)


class TestLoadReplyAttachments:

    def test_loads_authorized_files(self):
        storage = FakeAttachmentStorage()
        storage.objects[f"{PREFIX}Lebenslauf.pdf"] = b"%PDF-1.7"

        attachments = load_reply_attachments(storage, [f"{PREFIX}Lebenslauf.pdf"], USER_ID, APP_ID)

        assert len(attachments) == 1
        assert attachments[0].filename == "Lebenslauf.pdf"
        assert attachments[0].content == b"%PDF-1.7"

    def test_rejects_unauthorized_path_before_download(self):
        storage = FakeAttachmentStorage()
        storage.objects[f"{OTHER_USER_ID}/reply-attachments/{APP_ID}/cv.pdf"] = b"secret"

        with pytest.raises(StorageAccessError):
            load_reply_attachments(
                storage,
                [f"{OTHER_USER_ID}/reply-attachments/{APP_ID}/cv.pdf"],
                USER_ID,
                APP_ID,
            )

    def test_total_size_limit(self):
        storage = FakeAttachmentStorage()
        storage.objects[f"{PREFIX}a.pdf"] = b"x" * 6
        storage.objects[f"{PREFIX}b.pdf"] = b"x" * 6

        with pytest.raises(ValueError):
            load_reply_attachments(
                storage, [f"{PREFIX}a.pdf", f"{PREFIX}b.pdf"], USER_ID, APP_ID, max_total_bytes=10
            )


class TestInboundAttachmentKey:

    def test_key_layout(self):
        message_id = UUID("dddddddd-0000-4000-8000-000000000004")
        key = inbound_attachment_key(USER_ID, message_id, 1, "Zeugnis 2024.pdf")
        assert key == f"{USER_ID}/inbound-attachments/{message_id}/1-Zeugnis_2024.pdf"

    @pytest.mark.parametrize("name,expected", [
        ("../../etc/passwd", "etc_passwd"),
        ("", "attachment"),
        ("...", "attachment"),
        ("Anschreiben (final).docx", "Anschreiben_final_.docx"),
    ])
    def test_sanitize_attachment_name(self, name, expected):
        assert sanitize_attachment_name(name) == expected
