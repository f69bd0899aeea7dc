"""Testes de integração para configuração do Celery."""

import pytest

pytestmark = pytest.mark.integration


class TestCeleryConfig:
    """Verifica que o Celery carrega corretamente via Django."""

    def test_celery_app_is_importable(self):
        from config.celery import app

        assert app.main == "checkout"

    def test_celery_app_exported_from_init(self):
        from config import celery_app

        assert celery_app.main == "checkout"

    def test_celery_broker_url_configured(self, settings):
        assert settings.CELERY_BROKER_URL is not None
        assert "redis" in settings.CELERY_BROKER_URL

    def test_celery_serializer_is_json(self, settings):
        assert settings.CELERY_TASK_SERIALIZER == "json"
        assert settings.CELERY_RESULT_SERIALIZER == "json"
        assert settings.CELERY_ACCEPT_CONTENT == ["json"]

    def test_celery_timezone_matches_django(self, settings):
        assert settings.CELERY_TIMEZONE == settings.TIME_ZONE

    def test_beat_schedule_covers_periodic_jobs(self, settings):
        tasks = {entry["task"] for entry in settings.CELERY_BEAT_SCHEDULE.values()}
        assert tasks == {
            "payments.invalidate_expired_reservations",
            "core.dispatch_pending_outbox",
            "payouts.trigger_due_card_payouts",
        }


class TestPeriodicTasksEager:
    """Execução das tasks periódicas em modo eager."""

    def test_reservation_sweep_returns_report(self):
        from modules.payments.tasks import invalidate_expired_reservations

        result = invalidate_expired_reservations.delay()

        assert result.successful()
        assert result.result["scanned"] == 0

    def test_outbox_sweep_with_nothing_pending(self):
        from modules.core.tasks import dispatch_pending_outbox

        assert dispatch_pending_outbox.delay().result == {"candidates": 0, "published": 0}

    def test_card_payout_run(self):
        from modules.payouts.tasks import trigger_due_card_payouts

        result = trigger_due_card_payouts.delay()

        assert result.successful()
        assert result.result["picked"] == 0
