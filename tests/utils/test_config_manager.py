import json

import pytest

from taskflow.models.config import TaskflowConfig
from taskflow.services.exceptions import UsageError, ValidationError
from taskflow.utils.config_manager import ConfigManager, parse_scalar


class TestConfigManager:
    """Smoke tests for ConfigManager functionality."""

    def test_config_manager_initialization(self, temp_project_dir):
        """Test ConfigManager initialization."""
        data_dir = temp_project_dir / ".taskflow"
        manager = ConfigManager(data_dir)
        assert manager.data_dir == data_dir
        assert manager.config_file == data_dir / "config.json"

    def test_load_config_default(self, temp_project_dir):
        """Test loading config when none exists gives the defaults."""
        config = ConfigManager(temp_project_dir / ".taskflow").load_config()
        assert config == TaskflowConfig()
        assert config.workflow_mode == "direct"
        assert config.status_commit_policy == "warn"

    def test_save_and_load_config(self, temp_project_dir):
        """Test saving and loading configuration."""
        manager = ConfigManager(temp_project_dir / ".taskflow")
        config = TaskflowConfig.model_validate({"workflow_mode": "branch_pr"})
        config.tasks.verify.required_tags = ["code"]

        manager.save_config(config)
        loaded = manager.load_config()

        assert loaded.workflow_mode == "branch_pr"
        assert loaded.tasks.verify.required_tags == ["code"]

    def test_partial_file_keeps_defaults(self, temp_project_dir):
        """Test missing keys fall back to defaults."""
        manager = ConfigManager(temp_project_dir / ".taskflow")
        manager.config_file.write_text(json.dumps({"agents": {"approvals": {"require_plan": True}}}))
        config = manager.load_config()
        assert config.agents.approvals.require_plan is True
        assert config.agents.approvals.require_verify is False
        assert config.paths.tasks_path == ".taskflow/tasks.json"

    def test_invalid_json(self, temp_project_dir):
        """Test broken JSON is a validation error."""
        manager = ConfigManager(temp_project_dir / ".taskflow")
        manager.config_file.write_text("{nope")
        with pytest.raises(ValidationError, match="Invalid JSON"):
            manager.load_config()

    def test_not_an_object(self, temp_project_dir):
        """Test the file must hold an object."""
        manager = ConfigManager(temp_project_dir / ".taskflow")
        manager.config_file.write_text("[]")
        with pytest.raises(ValidationError, match="must contain a JSON object"):
            manager.load_config()

    def test_invalid_policy(self, temp_project_dir):
        """Test unknown policies fail at load time."""
        manager = ConfigManager(temp_project_dir / ".taskflow")
        manager.config_file.write_text(json.dumps({"status_commit_policy": "sometimes"}))
        with pytest.raises(ValidationError, match="status_commit_policy"):
            manager.load_config()

    def test_set_value(self, temp_project_dir):
        """Test setting a dotted key persists the typed value."""
        manager = ConfigManager(temp_project_dir / ".taskflow")
        config = manager.set_value("agents.approvals.require_verify", "true")
        assert config.agents.approvals.require_verify is True
        assert manager.load_config().agents.approvals.require_verify is True

        manager.set_value("tasks.verify.required_tags", '["code", "ops"]')
        assert manager.load_config().tasks.verify.required_tags == ["code", "ops"]

    def test_set_unknown_key(self, temp_project_dir):
        """Test unknown keys are rejected."""
        manager = ConfigManager(temp_project_dir / ".taskflow")
        with pytest.raises(UsageError, match="Unknown config key: agents.nope"):
            manager.set_value("agents.nope", "1")
        with pytest.raises(UsageError, match="Unknown config key: workflow_mode.deep"):
            manager.set_value("workflow_mode.deep", "1")
        with pytest.raises(UsageError, match="Config key is required"):
            manager.set_value(" ", "1")

    def test_set_invalid_value(self, temp_project_dir):
        """Test values are validated before saving."""
        manager = ConfigManager(temp_project_dir / ".taskflow")
        with pytest.raises(ValidationError, match="workflow_mode"):
            manager.set_value("workflow_mode", "trunk")
        assert not manager.config_file.exists()

    @pytest.mark.parametrize("raw,expected", [
        ("TRUE", True),
        ("false", False),
        ("12", 12),
        ('["a"]', ["a"]),
        ("branch_pr", "branch_pr"),
    ])
    def test_parse_scalar(self, raw, expected):
        """Test command-line values are parsed as JSON when possible."""
        assert parse_scalar(raw) == expected
