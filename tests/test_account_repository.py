"""Tests for the account store (SQLAlchemy repository adapter)."""

from datetime import timedelta

import pytest

from adapters.db.models import AccountModel
from core.domain.entities import Credentials, Subscription, utc_now
from core.domain.exceptions import StoreError


@pytest.mark.asyncio
async def test_upsert_encrypts_tokens_at_rest(repository, session, make_account):
    account = make_account(access_token="plain-access", refresh_token="plain-refresh")

    await repository.upsert(account)

    model = await session.get(AccountModel, account.id)
    assert model.access_token != "plain-access"
    assert model.refresh_token != "plain-refresh"
    assert "plain-access" not in model.access_token


@pytest.mark.asyncio
async def test_get_by_id_returns_decrypted_account(repository, make_account):
    account = make_account(access_token="plain-access", refresh_token="plain-refresh")
    await repository.upsert(account)

    loaded = await repository.get_by_id(account.id)

    assert loaded is not None
    assert loaded.credentials.access_token == "plain-access"
    assert loaded.credentials.refresh_token == "plain-refresh"
    assert loaded.mailbox_address == account.mailbox_address
    assert loaded.subscription is None


@pytest.mark.asyncio
async def test_get_by_id_missing_returns_none(repository):
    assert await repository.get_by_id("does-not-exist") is None


@pytest.mark.asyncio
async def test_upsert_is_idempotent(repository, make_account):
    account = make_account()

    await repository.upsert(account)
    await repository.upsert(account)

    assert len(await repository.list_all()) == 1


@pytest.mark.asyncio
async def test_upsert_without_refresh_token(repository, make_account):
    account = make_account(refresh_token=None)
    await repository.upsert(account)

    loaded = await repository.get_by_id(account.id)

    assert loaded.credentials.refresh_token is None
    assert not loaded.can_auto_renew()


@pytest.mark.asyncio
async def test_get_by_mailbox_is_case_insensitive(repository, make_account):
    account = make_account(mailbox_address="Someone@Gmail.com")
    await repository.upsert(account)

    loaded = await repository.get_by_mailbox("SOMEONE@gmail.com")

    assert loaded is not None
    assert loaded.id == account.id
    assert loaded.mailbox_address == "Someone@Gmail.com"
    assert await repository.get_by_mailbox("nobody@gmail.com") is None


@pytest.mark.asyncio
async def test_list_expiring_before_selects_by_threshold(repository, make_account):
    soon = make_account(mailbox_address="soon@gmail.com", subscription_expires_in=timedelta(hours=10))
    later = make_account(mailbox_address="later@gmail.com", subscription_expires_in=timedelta(hours=100))
    expired = make_account(mailbox_address="expired@gmail.com", subscription_expires_in=timedelta(hours=-1))
    unsubscribed = make_account(mailbox_address="none@gmail.com")

    for account in (soon, later, expired, unsubscribed):
        await repository.upsert(account)

    result = await repository.list_expiring_before(utc_now() + timedelta(hours=48))

    assert {account.id for account in result} == {soon.id, expired.id}


@pytest.mark.asyncio
async def test_list_expiring_before_includes_exact_threshold(repository, make_account):
    account = make_account(subscription_expires_in=timedelta(hours=5))
    await repository.upsert(account)

    result = await repository.list_expiring_before(account.subscription.expires_at)

    assert [a.id for a in result] == [account.id]


@pytest.mark.asyncio
async def test_update_subscription_stamps_last_renewed_at(repository, make_account):
    account = make_account()
    await repository.upsert(account)
    subscription = Subscription(
        cursor="555",
        expires_at=utc_now() + timedelta(days=7),
        channel_name="gmail-watch-abc",
    )

    await repository.update_subscription(account.id, subscription)

    loaded = await repository.get_by_id(account.id)
    assert loaded.subscription.cursor == "555"
    assert loaded.subscription.channel_name == "gmail-watch-abc"
    assert loaded.last_renewed_at is not None


@pytest.mark.asyncio
async def test_clearing_subscription_keeps_last_renewed_at(repository, make_account):
    account = make_account(subscription_expires_in=timedelta(days=3))
    await repository.upsert(account)

    await repository.update_subscription(account.id, None)

    loaded = await repository.get_by_id(account.id)
    assert loaded.subscription is None
    assert loaded.last_renewed_at is None


@pytest.mark.asyncio
async def test_update_subscription_for_missing_account_raises(repository):
    subscription = Subscription(cursor="1", expires_at=utc_now() + timedelta(days=1), channel_name="c")

    with pytest.raises(StoreError):
        await repository.update_subscription("missing", subscription)


@pytest.mark.asyncio
async def test_update_credentials_reencrypts(repository, session, make_account):
    account = make_account()
    await repository.upsert(account)
    new_credentials = Credentials(
        access_token="new-access",
        refresh_token="refresh-token",
        expires_at=utc_now() + timedelta(hours=1),
    )

    await repository.update_credentials(account.id, new_credentials)

    loaded = await repository.get_by_id(account.id)
    assert loaded.credentials.access_token == "new-access"
    model = await session.get(AccountModel, account.id)
    assert model.access_token != "new-access"


@pytest.mark.asyncio
async def test_delete_and_stats(repository, make_account):
    active = make_account(mailbox_address="a@gmail.com", subscription_expires_in=timedelta(days=2))
    old = make_account(
        mailbox_address="b@gmail.com",
        registered_at=utc_now() - timedelta(days=10),
    )
    await repository.upsert(active)
    await repository.upsert(old)

    stats = await repository.get_stats()
    assert stats.total_accounts == 2
    assert stats.registered_today == 1
    assert stats.registered_this_week == 1
    assert stats.active_subscriptions == 1

    assert await repository.delete(old.id) is True
    assert await repository.delete(old.id) is False
    assert (await repository.get_stats()).total_accounts == 1
