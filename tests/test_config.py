import pytest

from phone_market.core.config import Settings, is_loopback_url


@pytest.mark.parametrize(
    "url,expected",
    [
        ("http://localhost:8000", True),
        ("http://127.0.0.1:8000", True),
        ("http://[::1]:8000", True),
        ("https://api.example.uz", False),
        ("http://10.0.0.5", False),
        ("not a url", False),
    ],
)
def test_is_loopback_url(url, expected):
    assert is_loopback_url(url) is expected


def test_dev_bypass_requires_flag_and_loopback():
    assert Settings(_env_file=None, allow_dev_bypass=True, public_base_url="http://localhost:8000").dev_bypass
    assert not Settings(_env_file=None, allow_dev_bypass=False, public_base_url="http://localhost:8000").dev_bypass
    assert not Settings(_env_file=None, allow_dev_bypass=True, public_base_url="https://shop.example.uz").dev_bypass


def test_bootstrap_admins_parsing(monkeypatch):
    monkeypatch.delenv("BOOTSTRAP_ADMINS", raising=False)
    s = Settings(_env_file=None, bootstrap_admins=" 5, 6,abc,,-1,0,6")
    assert s.bootstrap_admin_ids == frozenset({5, 6})


def test_admin_ids_alias(monkeypatch):
    monkeypatch.delenv("BOOTSTRAP_ADMINS", raising=False)
    monkeypatch.setenv("ADMIN_IDS", "77,88")
    assert Settings(_env_file=None).bootstrap_admin_ids == frozenset({77, 88})


def test_orders_chat_falls_back_to_channel(monkeypatch):
    monkeypatch.delenv("TELEGRAM_ORDERS_CHAT_ID", raising=False)
    s = Settings(_env_file=None, telegram_channel_id="@shop")
    assert s.orders_chat_id == "@shop"
