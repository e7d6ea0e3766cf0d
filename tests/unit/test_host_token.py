"""Tests for the token ledger contract and client."""

import logging

logger = logging.getLogger(__name__)
import pytest

from minidao.errors.exceptions import (
    AlreadyInitializedError,
    ExternalCallFailedError,
    InsufficientBalanceError,
    NotInitializedError,
    ValidationError,
)
from minidao.host import Environment, ManualClock, Token, TokenClient, TokenLedger


@pytest.fixture
def env():
    return Environment(clock=ManualClock(0))


@pytest.fixture
def token(env):
    token = Token(env, contract_id="CTOKEN")
    token.initialize("admin")
    token.mint("admin", 1_000)
    return token


class TestToken:
    """Test Token contract."""

    def test_initialize_once(self, token):
        assert token.admin() == "admin"

        with pytest.raises(AlreadyInitializedError):
            token.initialize("mallory")

    def test_uninitialized(self, env):
        token = Token(env, contract_id="CBARE")

        with pytest.raises(NotInitializedError):
            token.admin()
        with pytest.raises(NotInitializedError):
            token.mint("alice", 5)

    def test_mint_requires_admin_auth(self, env, token):
        token.mint("alice", 10)

        assert token.balance("alice") == 10
        assert any(inv.function == "mint" for inv in env.authorizer.authorized_by("admin"))

    def test_transfer(self, env, token):
        token.transfer("admin", "alice", 300)

        assert token.balance("admin") == 700
        assert token.balance("alice") == 300
        event = env.events_for("CTOKEN", "transfer")[-1]
        assert event.topics == ("transfer", "admin", "alice")
        assert event.data == {"amount": 300}

    def test_insufficient_balance(self, token):
        with pytest.raises(InsufficientBalanceError) as exc_info:
            token.transfer("alice", "bob", 1)

        assert exc_info.value.error_code == "InsufficientBalance"
        assert token.balance("bob") == 0

    @pytest.mark.parametrize("amount", [-1, 1.5, True])
    def test_invalid_amount(self, token, amount):
        with pytest.raises(ValidationError):
            token.transfer("admin", "alice", amount)

    def test_is_ledger(self, token):
        assert isinstance(token, TokenLedger)


class TestTokenClient:
    """Test TokenClient class."""

    def test_calls_through_dispatcher(self, env, token):
        client = TokenClient(env, token.contract_id)

        client.transfer("admin", "alice", 5)

        assert client.balance("alice") == 5

    def test_failures_are_external(self, env, token):
        client = TokenClient(env, token.contract_id)

        with pytest.raises(ExternalCallFailedError) as exc_info:
            client.transfer("alice", "bob", 5)

        assert isinstance(exc_info.value.cause, InsufficientBalanceError)

    def test_unknown_token(self, env):
        with pytest.raises(ExternalCallFailedError):
            TokenClient(env, "CNONE").balance("alice")
