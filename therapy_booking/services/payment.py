"""
Payment Simulator - validates card details and simulates settlement.

There is no gateway behind this service. A well-formed instrument always
settles successfully after a short delay; a malformed one is rejected
immediately without any delay.
"""

import asyncio
import random
import re
from typing import Callable, Optional, Set
from uuid import uuid4

from loguru import logger

from therapy_booking.config import Settings, get_settings
from therapy_booking.exceptions import InvalidInstrument, PaymentInProgress
from therapy_booking.models.payment import PaymentInstrument, PaymentRecord, PaymentStatus

CARD_NUMBER_LENGTH = 16
CVV_LENGTH = 3


def new_transaction_id() -> str:
    """Opaque transaction identifier."""
    return f"txn_{uuid4().hex[:16]}"


def validate_instrument(instrument: PaymentInstrument) -> None:
    """
    Check card number and CVV formats.

    Raises:
        InvalidInstrument: With the first problem found
    """
    if not re.fullmatch(rf"[0-9]{{{CARD_NUMBER_LENGTH}}}", instrument.card_number or ""):
        raise InvalidInstrument("Invalid card number")
    if not re.fullmatch(rf"[0-9]{{{CVV_LENGTH}}}", instrument.cvv or ""):
        raise InvalidInstrument("Invalid CVV")


class PaymentSimulator:
    """
    Simulated payment processor.

    Submissions sharing an attempt id are never processed concurrently;
    a second one arriving while the first is in flight is rejected.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        id_factory: Callable[[], str] = new_transaction_id,
    ):
        self.settings = settings or get_settings()
        self._id_factory = id_factory
        self._issued_ids: Set[str] = set()
        self._in_flight: Set[str] = set()

    @property
    def consultation_fee(self) -> int:
        return self.settings.consultation_fee

    def is_processing(self, attempt_id: str) -> bool:
        """Check whether a submission for this attempt is in flight."""
        return attempt_id in self._in_flight

    def _settlement_delay(self) -> float:
        delay = self.settings.payment_settlement_delay
        if self.settings.payment_settlement_jitter:
            delay += random.uniform(0, self.settings.payment_settlement_jitter)
        return delay

    def _next_transaction_id(self) -> str:
        transaction_id = self._id_factory()
        while transaction_id in self._issued_ids:
            transaction_id = self._id_factory()
        self._issued_ids.add(transaction_id)
        return transaction_id

    async def submit(
        self,
        instrument: PaymentInstrument,
        amount: Optional[int] = None,
        attempt_id: Optional[str] = None,
    ) -> PaymentRecord:
        """
        Validate and settle a payment.

        Args:
            instrument: Card details
            amount: Amount to charge (defaults to the consultation fee)
            attempt_id: Booking attempt this payment belongs to

        Returns:
            PaymentRecord with status success

        Raises:
            InvalidInstrument: If the card number or CVV is malformed
            PaymentInProgress: If this attempt already has a payment in flight
        """
        validate_instrument(instrument)

        attempt_id = attempt_id or uuid4().hex
        if attempt_id in self._in_flight:
            logger.warning(f"Rejected concurrent payment for attempt {attempt_id}")
            raise PaymentInProgress(attempt_id)

        self._in_flight.add(attempt_id)
        try:
            await asyncio.sleep(self._settlement_delay())

            record = PaymentRecord(
                transaction_id=self._next_transaction_id(),
                amount=self.consultation_fee if amount is None else amount,
                currency=self.settings.currency,
                status=PaymentStatus.SUCCESS,
                payment_method=instrument.payment_method,
                last4=instrument.last4,
            )
            logger.info(
                f"Payment settled: {record.transaction_id} "
                f"{record.formatted_amount} ({record.card_description})"
            )
            return record
        finally:
            self._in_flight.discard(attempt_id)


# Singleton instance
_payment_simulator: Optional[PaymentSimulator] = None


def get_payment_simulator() -> PaymentSimulator:
    """Get the singleton payment simulator instance."""
    global _payment_simulator
    if _payment_simulator is None:
        _payment_simulator = PaymentSimulator()
    return _payment_simulator
