"""Tests for the login state machine and the session-expiry retry."""
import json

import pytest

from fakes import FakeProvider, make_task

from synology_ds.core.authenticator import AuthPhase
from synology_ds.credentials.onepassword import ProviderCredentials
from synology_ds.exceptions import (
    AuthenticationCancelled,
    ConfigurationError,
    OneTimeCodeRequiredError,
    RemoteError,
    SessionExpiredError,
    TransportError,
)


def expired():
    return SessionExpiredError(119, "Session ID not found.", "Failed to list tasks.")


class TestFirstLogin:
    """Logging in with nothing cached."""

    @pytest.mark.asyncio
    async def test_prompts_and_persists_account_and_token(self, make_stack, session_file):
        """A fresh host prompts for account and secret and caches only non-secrets."""
        stack = make_stack(account=["alice"], secret=["correct horse"])

        await stack.orchestrator.ensure_authenticated()

        record = stack.stored()
        assert record.host_key == "nas.local"
        assert record.account_name == "alice"
        assert record.session_token == "token-1"
        assert stack.client.session_token == "token-1"
        assert stack.orchestrator.phase is AuthPhase.AUTHENTICATED
        assert stack.client.calls == [("login", "alice", "correct horse", None)]

        raw = session_file.read_text(encoding="utf-8")
        assert "correct horse" not in raw
        assert json.loads(raw)["nas.local"]["account_name"] == "alice"

    @pytest.mark.asyncio
    async def test_authenticated_orchestrator_does_not_log_in_again(self, make_stack):
        """A second ensure call is a no-op once authenticated."""
        stack = make_stack(account=["alice"], secret=["pw"])

        await stack.orchestrator.ensure_authenticated()
        await stack.orchestrator.ensure_authenticated()

        assert stack.client.count("login") == 1


class TestCachedToken:
    """Reusing a token from the session store."""

    @pytest.mark.asyncio
    async def test_cached_token_without_provider_needs_no_prompts(self, make_stack):
        """A cached token is installed without prompting or logging in."""
        stack = make_stack(record={"session_token": "cached", "account_name": "alice"})

        await stack.orchestrator.ensure_authenticated()

        assert stack.client.session_token == "cached"
        assert stack.prompter.asked == []
        assert stack.client.count("login") == 0

    @pytest.mark.asyncio
    async def test_provider_takes_precedence_over_cached_token(self, make_stack):
        """With a provider configured, a fresh login replaces the cached token."""
        provider = FakeProvider(ProviderCredentials("alice", "from-vault"))
        stack = make_stack(record={"session_token": "cached"}, provider=provider)

        await stack.orchestrator.ensure_authenticated()

        assert provider.fetches == 1
        assert stack.client.calls == [("login", "alice", "from-vault", None)]
        assert stack.stored().session_token == "token-1"
        assert stack.prompter.asked == []


class TestSessionExpiry:
    """Recovering from an expired session mid-call."""

    @pytest.mark.asyncio
    async def test_expired_session_relogs_once_and_retries_once(self, make_stack):
        """A stale token triggers exactly one re-login and one retry of the call."""
        stack = make_stack(
            record={"session_token": "stale", "account_name": "alice"}, secret=["pw"]
        )
        task = make_task()
        stack.client.list_results.extend([expired(), [task]])

        await stack.orchestrator.ensure_authenticated()
        tasks = await stack.orchestrator.call(stack.client.list_tasks)

        assert tasks == [task]
        assert stack.client.count("login") == 1
        assert stack.client.count("list") == 2
        assert ("login", "alice", "pw", None) in stack.client.calls
        assert stack.prompter.asked == ["account", "secret"]
        assert stack.stored().session_token == "token-1"
        assert stack.stored().account_name == "alice"

    @pytest.mark.asyncio
    async def test_second_expiry_is_surfaced(self, make_stack):
        """An expiry on the retried call propagates instead of looping."""
        stack = make_stack(
            record={"session_token": "stale", "account_name": "alice"}, secret=["pw"]
        )
        stack.client.list_results.extend([expired(), expired()])

        await stack.orchestrator.ensure_authenticated()
        with pytest.raises(SessionExpiredError):
            await stack.orchestrator.call(stack.client.list_tasks)

        assert stack.client.count("login") == 1
        assert stack.client.count("list") == 2

    @pytest.mark.asyncio
    async def test_silent_recovery_reports_no_status(self, make_stack):
        """A successful recovery is invisible on the status channel."""
        stack = make_stack(
            record={"session_token": "stale", "account_name": "alice"}, secret=["pw"]
        )
        stack.client.list_results.extend([expired(), []])

        await stack.orchestrator.ensure_authenticated()
        await stack.orchestrator.call(stack.client.list_tasks)

        assert stack.statuses == []

    @pytest.mark.asyncio
    async def test_invalidate_session_clears_token_only(self, make_stack):
        """Invalidation drops the token but keeps account and destination."""
        stack = make_stack(
            record={
                "session_token": "tok",
                "account_name": "alice",
                "default_destination": "downloads",
            }
        )
        await stack.orchestrator.ensure_authenticated()

        stack.orchestrator.invalidate_session()

        record = stack.stored()
        assert record.session_token is None
        assert record.account_name == "alice"
        assert record.default_destination == "downloads"
        assert stack.client.session_token is None
        assert stack.orchestrator.phase is AuthPhase.IDLE


class TestOneTimeCodes:
    """Two-step verification handling."""

    @pytest.mark.asyncio
    async def test_provider_supplies_fresh_code_once(self, make_stack):
        """A rejected provider code is replaced by a fresh one without prompting."""
        provider = FakeProvider(
            ProviderCredentials("alice", "pw", "111111"), fresh_codes=["222222"]
        )
        stack = make_stack(provider=provider)
        stack.client.login_results.extend(
            [OneTimeCodeRequiredError(404, "Bad code.", "Authentication failed."), "tok"]
        )

        await stack.orchestrator.ensure_authenticated()

        assert [call[3] for call in stack.client.calls] == ["111111", "222222"]
        assert provider.code_requests == 1
        assert stack.prompter.asked == []
        assert stack.stored().session_token == "tok"

    @pytest.mark.asyncio
    async def test_prompts_for_code_when_none_was_supplied(self, make_stack):
        """Without a provider the user is asked for the code."""
        stack = make_stack(account=["alice"], secret=["pw"], otp=["123456"])
        stack.client.login_results.extend(
            [OneTimeCodeRequiredError(403, "Code required.", "Authentication failed."), "tok"]
        )

        await stack.orchestrator.ensure_authenticated()

        assert stack.client.calls[-1] == ("login", "alice", "pw", "123456")
        assert stack.orchestrator.phase is AuthPhase.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_empty_code_cancels_login(self, make_stack):
        """Leaving the code blank aborts instead of retrying."""
        stack = make_stack(account=["alice"], secret=["pw"], otp=[""])
        stack.client.login_results.append(
            OneTimeCodeRequiredError(403, "Code required.", "Authentication failed.")
        )

        with pytest.raises(AuthenticationCancelled):
            await stack.orchestrator.ensure_authenticated()

        assert stack.orchestrator.phase is AuthPhase.FAILED
        assert stack.client.count("login") == 1
        assert stack.stored() is None

    @pytest.mark.asyncio
    async def test_rejected_code_asks_for_credentials_again(self, make_stack):
        """A wrong code resets the login: credentials are asked again, the code cleared."""
        stack = make_stack(account=["alice"], secret=["pw", "pw2"], otp=["000000"])
        stack.client.login_results.extend(
            [
                OneTimeCodeRequiredError(403, "Code required.", "Authentication failed."),
                OneTimeCodeRequiredError(404, "Bad code.", "Authentication failed."),
                "tok",
            ]
        )

        await stack.orchestrator.ensure_authenticated()

        assert stack.client.calls == [
            ("login", "alice", "pw", None),
            ("login", "alice", "pw", "000000"),
            ("login", "alice", "pw2", None),
        ]
        assert stack.statuses[-1].tone == "error"
        assert stack.stored().session_token == "tok"


class TestLoginFailures:
    """Errors other than two-step verification."""

    @pytest.mark.asyncio
    async def test_wrong_password_reprompts_with_cached_account(self, make_stack):
        """A refused login keeps the account name as the default and asks again."""
        stack = make_stack(account=["alice"], secret=["bad", "good"])
        stack.client.login_results.extend(
            [RemoteError(400, "No such account or incorrect password.", "Login"), "tok"]
        )

        await stack.orchestrator.ensure_authenticated()

        assert stack.client.calls[-1] == ("login", "alice", "good", None)
        assert stack.prompter.asked == ["account", "secret", "account", "secret"]
        assert any(line.tone == "error" for line in stack.statuses)

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back_to_prompts(self, make_stack):
        """An unusable provider item is treated as missing credentials."""
        provider = FakeProvider(error="You are not currently signed in.")
        stack = make_stack(provider=provider, account=["alice"], secret=["pw"])

        await stack.orchestrator.ensure_authenticated()

        assert provider.fetches == 1
        assert stack.client.calls == [("login", "alice", "pw", None)]

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, make_stack):
        """Connection failures are not retried by the orchestrator."""
        stack = make_stack(account=["alice"], secret=["pw"])
        stack.client.login_results.append(TransportError("login failed: refused"))

        with pytest.raises(TransportError):
            await stack.orchestrator.ensure_authenticated()

        assert stack.client.count("login") == 1
        assert stack.orchestrator.phase is AuthPhase.FAILED

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self, make_stack):
        """Malformed input is left to the caller to re-collect."""
        stack = make_stack(account=["alice"], secret=["pw"])
        stack.client.login_results.append(ConfigurationError("Host URL cannot be empty."))

        with pytest.raises(ConfigurationError):
            await stack.orchestrator.ensure_authenticated()


class TestRememberDestination:
    """Persisting a destination chosen by the user."""

    def test_trims_and_persists(self, make_stack):
        stack = make_stack()

        stack.orchestrator.remember_destination("  /volume1/downloads  ")

        assert stack.stored().default_destination == "/volume1/downloads"
        assert stack.state.default_destination == "/volume1/downloads"

    def test_blank_value_is_ignored(self, make_stack):
        stack = make_stack(record={"default_destination": "downloads"})

        stack.orchestrator.remember_destination("   ")

        assert stack.stored().default_destination == "downloads"
