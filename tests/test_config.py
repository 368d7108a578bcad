"""Unit tests for configuration loading."""

import os

import pytest

from zidsync.config import (
    DEFAULT_ARCHIVER,
    DEFAULT_BASE_URL,
    DEFAULT_HOME_URL,
    Credentials,
    load_env_file,
)
from zidsync.exceptions import ZidConfigError


@pytest.fixture
def environ():
    """A complete environment."""
    return {
        "ZID_BASE": "https://web.zid.sa/",
        "ZID_EMAIL": "merchant@example.com",
        "ZID_PASSWORD": "secret",
        "THEME_ID": "1234",
        "THEME_NAME": "Vineta",
        "THEME_CODE": "vineta",
        "THEME_FOLDER": "Vineta",
        "ZIP_EXE_PATH": "C:/Program Files/7-Zip/7z.exe",
    }


class TestCredentialsFromEnv:
    """Tests for Credentials.from_env."""

    def test_reads_all_keys(self, environ, tmp_path):
        """Test every recognized key is read."""
        creds = Credentials.from_env(environ=environ, workdir=tmp_path)
        assert creds.base_url == "https://web.zid.sa"
        assert creds.email == "merchant@example.com"
        assert creds.password == "secret"
        assert creds.theme_id == "1234"
        assert creds.theme_name == "Vineta"
        assert creds.theme_code == "vineta"
        assert creds.theme_folder == "Vineta"
        assert creds.archiver_path == "C:/Program Files/7-Zip/7z.exe"

    def test_missing_email_raises(self, environ):
        """Test ZID_EMAIL is required."""
        del environ["ZID_EMAIL"]
        with pytest.raises(ZidConfigError, match="ZID_EMAIL"):
            Credentials.from_env(environ=environ)

    def test_blank_password_raises(self, environ):
        """Test a blank ZID_PASSWORD counts as missing."""
        environ["ZID_PASSWORD"] = "  "
        with pytest.raises(ZidConfigError, match="ZID_PASSWORD"):
            Credentials.from_env(environ=environ)

    def test_theme_id_only_required_when_asked(self, environ):
        """Test THEME_ID is optional for listing but required for uploads."""
        del environ["THEME_ID"]
        creds = Credentials.from_env(environ=environ)
        assert creds.theme_id == ""
        with pytest.raises(ZidConfigError, match="THEME_ID"):
            Credentials.from_env(require_theme=True, environ=environ)

    def test_reports_all_missing_keys(self):
        """Test every missing key is named in the error."""
        with pytest.raises(ZidConfigError) as exc_info:
            Credentials.from_env(require_theme=True, environ={})
        message = str(exc_info.value)
        assert "ZID_EMAIL" in message
        assert "ZID_PASSWORD" in message
        assert "THEME_ID" in message
        assert "THEME_FOLDER" in message

    def test_theme_folder_required_for_uploads(self, environ, tmp_path):
        """Test uploads need THEME_FOLDER so the archive stays outside it."""
        del environ["THEME_FOLDER"]
        assert Credentials.from_env(environ=environ, workdir=tmp_path).theme_folder == ""
        with pytest.raises(ZidConfigError, match="THEME_FOLDER"):
            Credentials.from_env(require_theme=True, environ=environ, workdir=tmp_path)

    @pytest.mark.parametrize("folder", [".", "./", "Vineta/.."])
    def test_theme_folder_containing_archive_rejected(self, environ, tmp_path, folder):
        """Test a folder that would hold its own archive is refused."""
        environ["THEME_FOLDER"] = folder
        with pytest.raises(ZidConfigError, match="must not contain the archive"):
            Credentials.from_env(require_theme=True, environ=environ, workdir=tmp_path)

    def test_archive_outside_theme_folder(self, environ, tmp_path):
        """Test the archive of a regular theme folder is written next to it."""
        creds = Credentials.from_env(require_theme=True, environ=environ, workdir=tmp_path)
        folder = creds.folder_path.resolve()
        assert folder not in creds.archive_path.resolve().parents

    def test_defaults(self):
        """Test defaults for optional keys."""
        creds = Credentials.from_env(
            environ={"ZID_EMAIL": "a@b.c", "ZID_PASSWORD": "pw"}
        )
        assert creds.base_url == DEFAULT_BASE_URL
        assert creds.archiver_path == DEFAULT_ARCHIVER
        assert creds.home_url == DEFAULT_HOME_URL
        assert creds.headless is False

    @pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
    def test_headless_flag(self, environ, value):
        """Test ZID_HEADLESS accepts common truthy values."""
        environ["ZID_HEADLESS"] = value
        assert Credentials.from_env(environ=environ).headless is True

    def test_derived_paths(self, environ, tmp_path):
        """Test folder, archive and cookie paths are relative to the workdir."""
        creds = Credentials.from_env(environ=environ, workdir=tmp_path)
        assert creds.folder_path == tmp_path / "Vineta"
        assert creds.archive_path == tmp_path / "zip" / "Vineta.zip"
        assert creds.cookies_path == tmp_path / "cookies.json"
        assert creds.login_url == "https://web.zid.sa/login"

    def test_repr_hides_password(self, environ):
        """Test the password never shows up in logs."""
        creds = Credentials.from_env(environ=environ)
        assert "secret" not in repr(creds)

    def test_credentials_are_immutable(self, environ):
        """Test credentials cannot be changed after loading."""
        creds = Credentials.from_env(environ=environ)
        with pytest.raises(AttributeError):
            creds.email = "other@example.com"


class TestLoadEnvFile:
    """Tests for load_env_file."""

    def test_missing_file(self, tmp_path):
        """Test a missing .env file is not an error."""
        assert load_env_file(str(tmp_path / ".env")) is False

    def test_loads_values(self, tmp_path, monkeypatch):
        """Test values from the file end up in the environment."""
        # Registers THEME_FOLDER with monkeypatch so it is removed afterwards
        monkeypatch.setenv("THEME_FOLDER", "placeholder")
        monkeypatch.delenv("THEME_FOLDER")
        env_file = tmp_path / ".env"
        env_file.write_text("THEME_FOLDER=Vineta\n", encoding="utf-8")

        assert load_env_file(str(env_file)) is True

        assert os.environ["THEME_FOLDER"] == "Vineta"

    def test_environment_wins(self, tmp_path, monkeypatch):
        """Test the process environment is not overridden."""
        monkeypatch.setenv("THEME_ID", "from-env")
        env_file = tmp_path / ".env"
        env_file.write_text("THEME_ID=from-file\n", encoding="utf-8")

        load_env_file(str(env_file))

        assert os.environ["THEME_ID"] == "from-env"

    def test_default_path_is_cwd(self, tmp_path, monkeypatch):
        """Test the default .env location is the working directory."""
        monkeypatch.chdir(tmp_path)
        assert load_env_file() is False
