async def test_no_reminder_before_first_scheduled_day(failed_renewal, notifier, email_sender, clock):
    clock.advance(days=1)
    stats = await notifier.send_due_notifications()
    assert stats == {"sent": 0, "skipped": 0, "errors": 0}
    assert email_sender.sent == []


async def test_reminders_follow_schedule(failed_renewal, notifier, email_sender, payment_repository, clock):
    _, failed = failed_renewal

    clock.advance(days=3)
    assert (await notifier.send_due_notifications())["sent"] == 1
    assert email_sender.sent[0]["to"] == "contractor@example.com"
    assert email_sender.sent[0]["subject"] == "Action needed: payment for your Showcase plan failed"
    assert "29.00 USD" in email_sender.sent[0]["text"]
    assert payment_repository.failed_payments[failed.id].notification_sent_days == [3]

    # Same day again: nothing new is due
    assert (await notifier.send_due_notifications())["sent"] == 0

    # Days 6 and 7 both fall on the last day of a 7-day grace period; one final notice covers them
    clock.advance(days=3)
    assert (await notifier.send_due_notifications())["sent"] == 1
    assert email_sender.sent[1]["subject"] == "Final notice: your Showcase plan ends soon"
    assert "1 more day(s)" in email_sender.sent[1]["text"]
    assert "Essential" in email_sender.sent[1]["text"]
    assert payment_repository.failed_payments[failed.id].notification_sent_days == [3, 6, 7]

    clock.advance(hours=12)
    assert (await notifier.send_due_notifications())["sent"] == 0
    assert len(email_sender.sent) == 2


async def test_final_notice_goes_out_before_expiry_sweep(failed_renewal, lifecycle, notifier, email_sender, clock):
    clock.advance(days=3)
    await notifier.send_due_notifications()

    clock.advance(days=3, hours=6)
    assert (await lifecycle.expire_lapsed())["grace_expired"] == 0
    assert (await notifier.send_due_notifications())["sent"] == 1

    clock.advance(days=1)
    assert (await lifecycle.expire_lapsed())["grace_expired"] == 1
    assert (await notifier.send_due_notifications())["sent"] == 0

    subjects = [email["subject"] for email in email_sender.sent]
    assert subjects == [
        "Action needed: payment for your Showcase plan failed",
        "Final notice: your Showcase plan ends soon",
    ]


async def test_no_reminder_after_grace_period(failed_renewal, notifier, email_sender, clock):
    # Notifier was down for the whole grace period
    clock.advance(days=7, hours=1)
    stats = await notifier.send_due_notifications()
    assert stats == {"sent": 0, "skipped": 0, "errors": 0}
    assert email_sender.sent == []


async def test_reminder_without_billing_email_is_skipped(lifecycle, notifier, email_sender, gateway, clock):
    await lifecycle.subscribe("f3e2d1c0-b9a8-4765-8432-10fedcba9876", "spotlight", "monthly")
    clock.advance(days=30)
    gateway.decline_with = "expired_card"
    await lifecycle.process_renewals()

    clock.advance(days=3)
    stats = await notifier.send_due_notifications()

    assert stats["skipped"] == 1
    assert email_sender.sent == []


async def test_failed_delivery_is_retried_next_run(failed_renewal, notifier, email_sender, payment_repository, clock):
    _, failed = failed_renewal
    clock.advance(days=3)

    email_sender.fail = True
    assert (await notifier.send_due_notifications())["errors"] == 1
    assert payment_repository.failed_payments[failed.id].notification_sent_days == []

    email_sender.fail = False
    assert (await notifier.send_due_notifications())["sent"] == 1
