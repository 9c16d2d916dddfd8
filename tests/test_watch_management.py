"""Tests for watch establishment, renewal and teardown."""

import asyncio
from datetime import timedelta

import pytest

from core.domain.entities import utc_now
from core.usecases.credentials import AccountLocks
from core.domain.exceptions import AccountNotFoundError, MissingOfflineGrantError, ProviderError


@pytest.fixture
def watch_management(factory, session):
    return factory.create_watch_management_usecase(session)


@pytest.mark.asyncio
async def test_establish_persists_subscription(watch_management, repository, google_client, make_account):
    account = make_account()
    await repository.upsert(account)

    subscription = await watch_management.establish(account.id)

    assert subscription.cursor == google_client.history_id
    assert subscription.channel_name == f"gmail-watch-{account.id}"
    assert subscription.expires_at > utc_now()

    watch_call = google_client.calls_to("watch_mailbox")[0]
    assert watch_call["topic_name"] == f"projects/test-project/topics/gmail-watch-{account.id}"
    assert watch_call["label_ids"] == ["INBOX"]
    assert watch_call["access_token"] == "access-token"

    loaded = await repository.get_by_id(account.id)
    assert loaded.subscription == subscription
    assert loaded.last_renewed_at is not None


@pytest.mark.asyncio
async def test_establish_missing_account_raises(watch_management):
    with pytest.raises(AccountNotFoundError):
        await watch_management.establish("missing")


@pytest.mark.asyncio
async def test_establish_propagates_provider_error(watch_management, repository, google_client, make_account):
    account = make_account(access_token="bad-token")
    google_client.failing_access_tokens.add("bad-token")
    await repository.upsert(account)

    with pytest.raises(ProviderError):
        await watch_management.establish(account.id)

    loaded = await repository.get_by_id(account.id)
    assert loaded.subscription is None


@pytest.mark.asyncio
async def test_establish_refreshes_expired_token_and_keeps_refresh_token(
    watch_management, repository, google_client, make_account
):
    account = make_account(token_expires_in=timedelta(seconds=-30))
    await repository.upsert(account)

    await watch_management.establish(account.id)

    assert google_client.calls_to("refresh_token") == [{"refresh_token": "refresh-token"}]
    assert google_client.calls_to("watch_mailbox")[0]["access_token"] == "refreshed-access-token"

    loaded = await repository.get_by_id(account.id)
    assert loaded.credentials.access_token == "refreshed-access-token"
    assert loaded.credentials.refresh_token == "refresh-token"
    assert loaded.credentials.expires_at > utc_now()


@pytest.mark.asyncio
async def test_establish_with_expired_token_and_no_refresh_token(watch_management, repository, make_account):
    account = make_account(refresh_token=None, token_expires_in=timedelta(minutes=-5))
    await repository.upsert(account)

    with pytest.raises(MissingOfflineGrantError):
        await watch_management.establish(account.id)


@pytest.mark.asyncio
async def test_renew_success_result(watch_management, repository, make_account):
    account = make_account(subscription_expires_in=timedelta(hours=40))
    await repository.upsert(account)

    result = await watch_management.renew(account.id)

    assert result.success
    assert result.mailbox_address == account.mailbox_address
    assert result.new_expiry > account.subscription.expires_at


@pytest.mark.asyncio
async def test_renew_without_refresh_token_reports_missing_offline_grant(
    watch_management, repository, google_client, make_account
):
    account = make_account(refresh_token=None, subscription_expires_in=timedelta(hours=10))
    await repository.upsert(account)

    result = await watch_management.renew(account.id)

    assert result.success is False
    assert result.error_type == "missing_offline_grant"
    assert result.mailbox_address == account.mailbox_address
    assert google_client.calls_to("watch_mailbox") == []


@pytest.mark.asyncio
async def test_renew_provider_failure_is_reported_not_raised(
    watch_management, repository, google_client, make_account
):
    account = make_account(access_token="bad-token", subscription_expires_in=timedelta(hours=10))
    google_client.failing_access_tokens.add("bad-token")
    await repository.upsert(account)

    result = await watch_management.renew(account.id)

    assert result.success is False
    assert result.error_type == "provider_error"
    assert "403" in result.error


@pytest.mark.asyncio
async def test_renew_missing_account_is_reported(watch_management):
    result = await watch_management.renew("missing")

    assert result.success is False
    assert result.error_type == "account_not_found"


@pytest.mark.asyncio
async def test_teardown_stops_watch_and_clears_subscription(
    watch_management, repository, google_client, make_account
):
    account = make_account(subscription_expires_in=timedelta(days=3))
    await repository.upsert(account)

    await watch_management.teardown(account.id)

    assert google_client.calls_to("stop_watch") == [{"access_token": "access-token"}]
    loaded = await repository.get_by_id(account.id)
    assert loaded.subscription is None


@pytest.mark.asyncio
async def test_teardown_missing_account_raises(watch_management):
    with pytest.raises(AccountNotFoundError):
        await watch_management.teardown("missing")


@pytest.mark.asyncio
async def test_establish_provisions_topic_before_watch(
    watch_management, repository, google_client, topic_provisioner, make_account
):
    account = make_account()
    await repository.upsert(account)

    await watch_management.establish(account.id)

    topic_path = f"projects/test-project/topics/gmail-watch-{account.id}"
    assert topic_provisioner.ensured == [topic_path]
    assert google_client.calls_to("watch_mailbox")[0]["topic_name"] == topic_path


@pytest.mark.asyncio
async def test_renew_provisions_topic_again(watch_management, repository, topic_provisioner, make_account):
    account = make_account(subscription_expires_in=timedelta(hours=1))
    await repository.upsert(account)

    await watch_management.establish(account.id)
    result = await watch_management.renew(account.id)

    assert result.success
    assert len(topic_provisioner.ensured) == 2


@pytest.mark.asyncio
async def test_topic_failure_stops_before_watch(
    watch_management, repository, google_client, topic_provisioner, make_account
):
    account = make_account()
    await repository.upsert(account)
    topic_provisioner.fail = True

    with pytest.raises(ProviderError):
        await watch_management.establish(account.id)

    result = await watch_management.renew(account.id)

    assert google_client.calls_to("watch_mailbox") == []
    assert not result.success
    assert result.error_type == "provider_error"


@pytest.mark.asyncio
async def test_concurrent_establish_on_same_account_is_serialized(
    factory, repository, google_client, make_account
):
    account = make_account()
    await repository.upsert(account)
    google_client.watch_delay = 0.05

    await asyncio.gather(
        factory.establish_in_new_session(account.id),
        factory.establish_in_new_session(account.id),
    )

    assert len(google_client.calls_to("watch_mailbox")) == 2
    assert google_client.max_concurrent_watches == 1


@pytest.mark.asyncio
async def test_establish_on_different_accounts_runs_in_parallel(
    factory, repository, google_client, make_account
):
    first = make_account(mailbox_address="first@gmail.com")
    second = make_account(mailbox_address="second@gmail.com")
    await repository.upsert(first)
    await repository.upsert(second)
    google_client.watch_delay = 0.05

    await asyncio.gather(
        factory.establish_in_new_session(first.id),
        factory.establish_in_new_session(second.id),
    )

    assert google_client.max_concurrent_watches == 2


@pytest.mark.asyncio
async def test_account_locks_are_dropped_when_idle():
    locks = AccountLocks()
    lock = locks.get("account-a")

    async with lock:
        assert locks.get("account-a") is lock
        assert len(locks) == 1

    del lock
    assert len(locks) == 0
