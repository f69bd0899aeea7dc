"""Payout domain constants."""

import re
from decimal import Decimal

from django.db import models

CENT = Decimal("0.01")

# Platform floor for the net amount of a single payout.
ABSOLUTE_MIN_SEND = Decimal("1.20")

PROVIDER_REF_PATTERN = re.compile(r"^[A-Za-z0-9]{1,35}$")

# idEnvio prefixes: "P{order_id}" (current) and "payout-{order_id}" (legacy).
PROVIDER_REF_PREFIXES = ("payout-", "P")


class PayoutStatus(models.TextChoices):
    CREATED = "CREATED", "Criado"
    SENT = "SENT", "Enviado"
    CONFIRMED = "CONFIRMED", "Confirmado"
    FAILED = "FAILED", "Falhou"


class PayoutResultStatus(models.TextChoices):
    SUCCESS = "SUCCESS", "Sucesso"
    FAILED = "FAILED", "Falhou"
    ERROR = "ERROR", "Erro"


class SettlementMode(models.TextChoices):
    STUB = "stub", "Stub (confirma na hora)"
    EFI = "efi", "Efí"


PAYOUT_CONFIRMED_STATUSES = frozenset({"REALIZADO"})
PAYOUT_FAILED_STATUSES = frozenset({"NAO_REALIZADO", "NÃO_REALIZADO"})
