import pytest

from services import settings
from services.errors import ConfigError

from fakes import make_accounts


class TestParseChatIds:

    def test_parses_signed_ids_and_skips_blanks(self):
        assert settings.parse_chat_ids(" 123, -1001234567890 ,,") == frozenset({123, -1001234567890})

    def test_empty_string(self):
        assert settings.parse_chat_ids("") == frozenset()

    def test_invalid_id_raises(self):
        with pytest.raises(ConfigError, match="abc"):
            settings.parse_chat_ids("123,abc")


class TestLoadAccounts:

    def test_accounts_keep_declaration_order(self):
        env = {
            "EXCHANGE_ACCOUNTS": "main, scalp",
            "MAIN_CHAT_IDS": "111,112",
            "MAIN_PRIVATE_KEY": "0xmain",
            "SCALP_NAME": "Scalping",
            "SCALP_CHAT_IDS": "222",
            "SCALP_PRIVATE_KEY": "0xscalp",
            "SCALP_WALLET_ADDRESS": "0xmaster",
        }
        main, scalp = settings.load_accounts(env)

        assert main.id == "main"
        assert main.name == "Main Account"
        assert main.allowed_chat_ids == frozenset({111, 112})
        assert main.has_credentials

        assert scalp.name == "Scalping"
        assert scalp.credentials["wallet_address"] == "0xmaster"

    def test_default_accounts(self):
        accounts = settings.load_accounts({})
        assert [a.id for a in accounts] == ["primary", "secondary"]
        assert not any(a.has_credentials for a in accounts)


@pytest.fixture
def full_env(monkeypatch):
    for name in ("USER_ID", "OPENAI_API_KEY", "TELEGRAM_BOT_TOKEN", "TELEGRAM_BOT_CHAT_ID",
                 "FIREBASE_PROJECT_ID", "FIREBASE_CLIENT_EMAIL", "FIREBASE_PRIVATE_KEY"):
        monkeypatch.setattr(settings, name, "set")


class TestValidateEnv:

    def test_complete_configuration_passes(self, full_env):
        settings.validate_env(make_accounts())

    def test_missing_values_are_listed(self, full_env, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", "")

        with pytest.raises(ConfigError) as excinfo:
            settings.validate_env(make_accounts(secondary_key=""))
        assert "OPENAI_API_KEY" in str(excinfo.value)
        assert "SECONDARY_PRIVATE_KEY" in str(excinfo.value)

    def test_no_chats_at_all_is_rejected(self, full_env):
        with pytest.raises(ConfigError, match="No chat IDs"):
            settings.validate_env(make_accounts(primary_chats=(), secondary_chats=()))
