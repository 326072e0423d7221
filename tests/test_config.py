"""Test configuration loading"""

import pytest

from kiosk_cache.core.config import DEFAULT_BATCH_SIZE, DEFAULT_REQUEST_TIMEOUT, load_config
from kiosk_cache.core.exceptions import ConfigError


def write_config(temp_dir, content: str):
    path = temp_dir / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    """Test config file parsing"""

    def test_full_config(self, temp_dir, clean_env):
        path = write_config(temp_dir, f"""
remote:
  url: "https://project.supabase.co/"
  api_key: "anon-key"
  request_timeout: 4
storage:
  data_dir: "{temp_dir / 'data'}"
sync:
  batch_size: 5
""")
        config = load_config(path)

        assert config.remote.url == "https://project.supabase.co"
        assert config.remote.api_key == "anon-key"
        assert config.remote.request_timeout == 4.0
        assert config.remote.is_configured
        assert config.storage.data_dir == (temp_dir / "data").resolve()
        assert config.storage.db_path.name == "db.sqlite"
        assert config.storage.media_dir.name == "media"
        assert config.storage.logs_dir.name == "logs"
        assert config.sync.batch_size == 5

    def test_defaults(self, temp_dir, clean_env):
        path = write_config(temp_dir, f'storage:\n  data_dir: "{temp_dir}"\n')
        config = load_config(path)

        assert not config.remote.is_configured
        assert config.remote.url == ""
        assert config.remote.request_timeout == DEFAULT_REQUEST_TIMEOUT
        assert config.sync.batch_size == DEFAULT_BATCH_SIZE

    def test_home_is_expanded(self, temp_dir, clean_env):
        clean_env.setenv("HOME", str(temp_dir))
        path = write_config(temp_dir, 'storage:\n  data_dir: "~/kiosk"\n')
        assert load_config(path).storage.data_dir == (temp_dir / "kiosk").resolve()

    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigError) as exc_info:
            load_config(temp_dir / "nope.yaml")
        assert "not found" in exc_info.value.message

    def test_default_location_is_cwd(self, temp_dir, clean_env):
        write_config(temp_dir, f'storage:\n  data_dir: "{temp_dir}"\n')
        clean_env.chdir(temp_dir)
        assert load_config().storage.data_dir == temp_dir.resolve()

    def test_invalid_yaml(self, temp_dir):
        path = write_config(temp_dir, "storage: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_not_a_mapping(self, temp_dir):
        path = write_config(temp_dir, "- just\n- a list\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_missing_storage(self, temp_dir):
        path = write_config(temp_dir, "sync:\n  batch_size: 2\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert exc_info.value.details["missing_section"] == "storage"

    def test_section_must_be_mapping(self, temp_dir):
        path = write_config(temp_dir, f'remote: "oops"\nstorage:\n  data_dir: "{temp_dir}"\n')
        with pytest.raises(ConfigError):
            load_config(path)

    def test_empty_data_dir(self, temp_dir):
        path = write_config(temp_dir, 'storage:\n  data_dir: ""\n')
        with pytest.raises(ConfigError):
            load_config(path)

    @pytest.mark.parametrize("value", ["0", "-1", "true", '"3"'])
    def test_invalid_batch_size(self, temp_dir, clean_env, value):
        path = write_config(temp_dir, f'storage:\n  data_dir: "{temp_dir}"\nsync:\n  batch_size: {value}\n')
        with pytest.raises(ConfigError):
            load_config(path)

    @pytest.mark.parametrize("value", ["0", "-2.5", "false", '"fast"'])
    def test_invalid_timeout(self, temp_dir, clean_env, value):
        path = write_config(temp_dir, f'remote:\n  request_timeout: {value}\nstorage:\n  data_dir: "{temp_dir}"\n')
        with pytest.raises(ConfigError):
            load_config(path)


class TestEnvironmentCredentials:
    """Test credential overrides from the environment and .env"""

    def test_environment_overrides_file(self, temp_dir, clean_env):
        clean_env.setenv("KIOSK_REMOTE_URL", "https://env.supabase.co")
        clean_env.setenv("KIOSK_REMOTE_API_KEY", "env-key")
        path = write_config(temp_dir, f"""
remote:
  url: "https://file.supabase.co"
  api_key: "file-key"
storage:
  data_dir: "{temp_dir}"
""")
        config = load_config(path)

        assert config.remote.url == "https://env.supabase.co"
        assert config.remote.api_key == "env-key"

    def test_supabase_fallback_names(self, temp_dir, clean_env):
        clean_env.setenv("SUPABASE_URL", "https://fallback.supabase.co")
        clean_env.setenv("SUPABASE_ANON_KEY", "fallback-key")
        path = write_config(temp_dir, f'storage:\n  data_dir: "{temp_dir}"\n')

        config = load_config(path)

        assert config.remote.url == "https://fallback.supabase.co"
        assert config.remote.api_key == "fallback-key"

    def test_primary_name_wins_over_fallback(self, temp_dir, clean_env):
        clean_env.setenv("SUPABASE_URL", "https://fallback.supabase.co")
        clean_env.setenv("KIOSK_REMOTE_URL", "https://primary.supabase.co")
        path = write_config(temp_dir, f'storage:\n  data_dir: "{temp_dir}"\n')

        assert load_config(path).remote.url == "https://primary.supabase.co"

    def test_dotenv_next_to_config(self, temp_dir, clean_env):
        (temp_dir / ".env").write_text(
            "KIOSK_REMOTE_URL=https://dotenv.supabase.co\nKIOSK_REMOTE_API_KEY=dotenv-key\n",
            encoding="utf-8",
        )
        path = write_config(temp_dir, f'storage:\n  data_dir: "{temp_dir}"\n')

        config = load_config(path)

        assert config.remote.url == "https://dotenv.supabase.co"
        assert config.remote.is_configured

    def test_dotenv_does_not_override_environment(self, temp_dir, clean_env):
        clean_env.setenv("KIOSK_REMOTE_API_KEY", "shell-key")
        (temp_dir / ".env").write_text("KIOSK_REMOTE_API_KEY=dotenv-key\n", encoding="utf-8")
        path = write_config(temp_dir, f'storage:\n  data_dir: "{temp_dir}"\n')

        assert load_config(path).remote.api_key == "shell-key"

    def test_dotenv_in_data_dir(self, temp_dir, clean_env):
        data_dir = temp_dir / "data"
        data_dir.mkdir()
        (data_dir / ".env").write_text(
            "SUPABASE_URL=https://data.supabase.co\nSUPABASE_ANON_KEY=data-key\n",
            encoding="utf-8",
        )
        path = write_config(temp_dir, f'storage:\n  data_dir: "{data_dir}"\n')

        config = load_config(path)

        assert config.remote.url == "https://data.supabase.co"
        assert config.remote.api_key == "data-key"

    def test_dotenv_next_to_config_wins_over_data_dir(self, temp_dir, clean_env):
        data_dir = temp_dir / "data"
        data_dir.mkdir()
        (temp_dir / ".env").write_text("KIOSK_REMOTE_API_KEY=config-dir-key\n", encoding="utf-8")
        (data_dir / ".env").write_text("KIOSK_REMOTE_API_KEY=data-dir-key\n", encoding="utf-8")
        path = write_config(temp_dir, f'storage:\n  data_dir: "{data_dir}"\n')

        assert load_config(path).remote.api_key == "config-dir-key"
