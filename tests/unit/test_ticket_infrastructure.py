"""
Unit tests for the SLA config file, attachment policy and local storage.
"""

import pytest

from helpdesk.core import ConfigurationException, ValidationException
from helpdesk.tickets.application import AttachmentPolicy, UploadedFile
from helpdesk.tickets.infrastructure import LocalAttachmentStorage, SLAConfigManager
from tests.factories import PDF_BYTES

ALLOWED_TYPES = ["application/pdf", "image/png", "image/jpeg"]


@pytest.mark.unit
class TestSLAConfigManager:

    def test_missing_file_uses_defaults(self, tmp_path):
        manager = SLAConfigManager()

        config = manager.load(tmp_path / "missing.yaml")

        assert config.get_sla_hours("critical") == 1
        assert manager.config is config

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "sla_config.yaml"
        path.write_text("sla_hours:\n  critical: 2\n  high: 8\nat_risk_threshold_percent: 80\n")
        manager = SLAConfigManager()

        config = manager.load(path)

        assert config.get_sla_hours("critical") == 2
        assert config.get_sla_hours("medium") == 24
        assert config.at_risk_threshold_percent == 80

    def test_invalid_file_at_startup_is_a_configuration_error(self, tmp_path):
        path = tmp_path / "sla_config.yaml"
        path.write_text("sla_hours:\n  critical: -1\n")

        with pytest.raises(ConfigurationException):
            SLAConfigManager().load(path)

    def test_failed_reload_keeps_previous_config(self, tmp_path):
        path = tmp_path / "sla_config.yaml"
        path.write_text("sla_hours:\n  critical: 2\n")
        manager = SLAConfigManager()
        manager.load(path)

        path.write_text("sla_hours: [not, a, mapping\n")

        assert manager.reload() is False
        assert manager.config.get_sla_hours("critical") == 2

    def test_reload_picks_up_changes(self, tmp_path):
        path = tmp_path / "sla_config.yaml"
        path.write_text("sla_hours:\n  critical: 2\n")
        manager = SLAConfigManager()
        manager.load(path)

        path.write_text("sla_hours:\n  critical: 3\n")

        assert manager.reload() is True
        assert manager.config.get_sla_hours("critical") == 3

    def test_config_before_load(self):
        with pytest.raises(RuntimeError):
            SLAConfigManager().config


@pytest.mark.unit
class TestAttachmentPolicy:

    def test_accepts_allowed_files(self):
        policy = AttachmentPolicy(ALLOWED_TYPES, max_bytes=1024)

        policy.validate([UploadedFile("report.pdf", "application/pdf", PDF_BYTES)])

    def test_rejects_disallowed_type(self):
        policy = AttachmentPolicy(ALLOWED_TYPES, max_bytes=1024)

        with pytest.raises(ValidationException) as exc_info:
            policy.validate([UploadedFile("setup.exe", "application/x-msdownload", b"MZ")])

        assert exc_info.value.details["errors"][0]["field"] == "attachments"

    def test_rejects_oversized_file(self):
        policy = AttachmentPolicy(ALLOWED_TYPES, max_bytes=10)

        with pytest.raises(ValidationException):
            policy.validate([UploadedFile("report.pdf", "application/pdf", PDF_BYTES)])

    def test_rejects_empty_file(self):
        policy = AttachmentPolicy(ALLOWED_TYPES, max_bytes=1024)

        with pytest.raises(ValidationException):
            policy.validate([UploadedFile("empty.pdf", "application/pdf", b"")])


@pytest.mark.unit
class TestLocalAttachmentStorage:

    async def test_save_generates_name_with_extension(self, tmp_path):
        storage = LocalAttachmentStorage(tmp_path / "uploads")

        filename = await storage.save(PDF_BYTES, "Quarterly Report.PDF")

        assert filename.endswith(".pdf")
        assert "Quarterly" not in filename
        assert storage.path_for(filename).read_bytes() == PDF_BYTES

    async def test_remove_ignores_missing_files(self, tmp_path):
        storage = LocalAttachmentStorage(tmp_path)
        filename = await storage.save(PDF_BYTES, "a.pdf")

        await storage.remove(filename)
        await storage.remove(filename)

        assert not storage.path_for(filename).exists()

    def test_path_for_strips_directories(self, tmp_path):
        storage = LocalAttachmentStorage(tmp_path)

        assert storage.path_for("../../etc/passwd") == tmp_path / "passwd"
