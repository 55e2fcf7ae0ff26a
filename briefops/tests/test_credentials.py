"""Tests for the per-connector credential store."""

import os
import stat

import pytest

from briefops.connectors.credentials import (
    CredentialStore,
    env_var_name,
    field_to_env_suffix,
    format_env_line,
    sanitize_connector_id,
)
from briefops.connectors.types import ConnectorDefinition


class TestNaming:
    """Test cases for id sanitization and env var naming."""

    @pytest.mark.parametrize(
        "connector_id,expected",
        [
            ("hubspot", "hubspot"),
            ("Support-Desk", "support-desk"),
            ("../../etc", "--etc"),
            ("a/b\\c", "a-b-c"),
            ("weird id!", "weird-id-"),
        ],
    )
    def test_sanitize_connector_id(self, connector_id, expected):
        assert sanitize_connector_id(connector_id) == expected

    def test_sanitize_rejects_empty_result(self):
        with pytest.raises(ValueError):
            sanitize_connector_id("..")

    def test_field_to_env_suffix(self):
        assert field_to_env_suffix("accessToken") == "ACCESS_TOKEN"
        assert field_to_env_suffix("token") == "TOKEN"
        assert field_to_env_suffix("HUBSPOT_TOKEN") == "HUBSPOT_TOKEN"

    def test_env_var_name(self):
        assert env_var_name("support-desk", "token") == "SUPPORT_DESK_TOKEN"
        assert env_var_name("gong", "accessKeySecret") == "GONG_ACCESS_KEY_SECRET"

    def test_format_env_line(self):
        assert format_env_line("TOKEN", "abc") == "TOKEN=abc\n"
        assert format_env_line("URL", "https://x?a=b") == "URL=https://x?a=b\n"
        assert format_env_line("PW", "it's #1") == "PW='it\\'s #1'\n"


class TestCredentialStore:
    """Test cases for CredentialStore file handling."""

    def test_save_and_load(self, credential_store):
        credential_store.save_credentials("support-desk", {"SUPPORT_DESK_TOKEN": "xyz"})
        assert credential_store.load_credentials("support-desk") == {"SUPPORT_DESK_TOKEN": "xyz"}

    def test_load_hand_written_file(self, credential_store):
        credential_store.ensure_dir()
        credential_store.credentials_path("gong").write_text(
            "# keys from the admin console\n\nGONG_ACCESS_KEY=abc\nexport URL=https://x?a=b\nBARE\nQUOTED=\"two words\"\n"
        )

        assert credential_store.load_credentials("gong") == {
            "GONG_ACCESS_KEY": "abc",
            "URL": "https://x?a=b",
            "QUOTED": "two words",
        }

    @pytest.mark.parametrize("secret", ["p@ss word", "a#b #c", "quote's", "back\\slash", "${NOT_EXPANDED}", " padded "])
    def test_awkward_values_survive_a_save(self, credential_store, secret):
        credential_store.save_credentials("gong", {"GONG_SECRET": secret})

        assert credential_store.load_credentials("gong") == {"GONG_SECRET": secret}

    def test_load_missing_returns_none(self, credential_store):
        assert credential_store.load_credentials("nope") is None

    def test_file_permissions(self, credential_store):
        path = credential_store.save_credentials("hubspot", {"accessToken": "t"})

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert stat.S_IMODE(os.stat(credential_store.root).st_mode) == 0o700

    @pytest.mark.parametrize("connector_id", ["../../etc", "../passwd", "a/../../b", "..\\..\\x"])
    def test_path_never_escapes_root(self, credential_store, connector_id):
        path = credential_store.credentials_path(connector_id)

        assert path.resolve().parent == credential_store.root.resolve()

    def test_traversal_id_writes_inside_root(self, credential_store, tmp_path):
        path = credential_store.save_credentials("../../etc", {"K": "v"})

        assert path.parent.resolve() == credential_store.root.resolve()
        assert not (tmp_path.parent / "etc.env").exists()

    def test_delete(self, credential_store):
        credential_store.save_credentials("gong", {"K": "v"})

        assert credential_store.delete_credentials("gong") is True
        assert credential_store.load_credentials("gong") is None
        assert credential_store.delete_credentials("gong") is False

    def test_get_credential_env_first(self, credential_store, monkeypatch):
        credential_store.save_credentials("gong", {"GONG_KEY": "from-file"})
        assert credential_store.get_credential("gong", "GONG_KEY") == "from-file"

        monkeypatch.setenv("GONG_KEY", "from-env")
        assert credential_store.get_credential("gong", "GONG_KEY") == "from-env"


class TestResolveCredentials:
    """Test cases for resolving a connector's auth fields."""

    @pytest.fixture
    def connector(self, support_desk_data):
        data = dict(support_desk_data)
        data["auth"] = {
            "type": "token",
            "fields": {
                "token": {"required": True},
                "workspace": {"required": False},
            },
        }
        return ConnectorDefinition.from_dict(data)

    def test_env_var_wins_over_file(self, credential_store, connector, monkeypatch):
        credential_store.save_credentials("support-desk", {"SUPPORT_DESK_TOKEN": "file"})
        monkeypatch.setenv("SUPPORT_DESK_TOKEN", "env")

        assert credential_store.resolve_credentials(connector)["token"] == "env"

    def test_file_by_env_var_name(self, credential_store, connector, monkeypatch):
        monkeypatch.delenv("SUPPORT_DESK_TOKEN", raising=False)
        credential_store.save_credentials("support-desk", {"SUPPORT_DESK_TOKEN": "file"})

        assert credential_store.resolve_credentials(connector)["token"] == "file"

    def test_file_by_field_name(self, credential_store, connector, monkeypatch):
        monkeypatch.delenv("SUPPORT_DESK_TOKEN", raising=False)
        credential_store.save_credentials("support-desk", {"token": "raw"})

        assert credential_store.resolve_credentials(connector)["token"] == "raw"

    def test_missing_fields_resolve_to_empty(self, credential_store, connector, monkeypatch):
        monkeypatch.delenv("SUPPORT_DESK_TOKEN", raising=False)
        monkeypatch.delenv("SUPPORT_DESK_WORKSPACE", raising=False)

        assert credential_store.resolve_credentials(connector) == {"token": "", "workspace": ""}

    def test_connector_without_auth(self, credential_store, connector):
        connector.auth = None
        assert credential_store.resolve_credentials(connector) == {}
