"""
Alert engine for indicator threshold crossings.

A sweep loads every stored subscription, fetches recent prices for its
symbol, computes the indicators, reads the subscribed indicator off the
latest trading day and, when the reading is strictly above (or below)
the threshold, hands the subscription to a dispatcher.

Each subscription produces its own ``SweepResult``.  A failed fetch, an
indicator that is undefined for the latest day or a delivery error is
logged and recorded on that result; it never fires, never removes the
subscription and never stops the rest of the sweep.
"""
from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import httpx

from ..core.config import Settings, load_settings
from ..core.merge import build_merged_rows
from ..core.price_fetcher import PriceFetcher
from ..core.rules import UnknownIndicatorError, indicator_value
from .dispatch import ContactDispatcher, DispatchError, Dispatcher, SmtpEmailDispatcher, WebhookSmsDispatcher
from .store import Condition, NotificationStore, NotificationSubscription

logger = logging.getLogger("alert_engine")


# --- Core logic ----------------------------------------------------------------

def evaluate(subscription: NotificationSubscription, reading: Optional[float]) -> bool:
    """
    True when ``reading`` is strictly beyond the subscription's threshold.
    A reading equal to the threshold never fires, nor does a missing one.
    """
    if reading is None or math.isnan(reading):
        return False
    if subscription.condition == Condition.ABOVE.value:
        return reading > subscription.threshold
    if subscription.condition == Condition.BELOW.value:
        return reading < subscription.threshold
    return False


@dataclass
class SweepResult:
    subscription_id: str
    ok: bool
    triggered: bool = False
    reading: Optional[float] = None
    error: Optional[str] = None


@dataclass
class SweepReport:
    results: List[SweepResult] = field(default_factory=list)

    @property
    def triggered(self) -> List[SweepResult]:
        return [r for r in self.results if r.ok and r.triggered]

    @property
    def failed(self) -> List[SweepResult]:
        return [r for r in self.results if not r.ok]


class NotificationSweep:
    def __init__(
        self,
        store: NotificationStore,
        fetcher: PriceFetcher,
        dispatcher: Dispatcher,
        lookback_days: int = 120,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._dispatcher = dispatcher
        self._lookback_days = lookback_days
        self._today = today

    async def latest_reading(self, subscription: NotificationSubscription) -> Optional[float]:
        end = self._today()
        start = end - dt.timedelta(days=self._lookback_days)
        bars = await self._fetcher.fetch_historical(subscription.stock_symbol, start, end)
        rows = build_merged_rows(bars)
        if not rows:
            return None
        return indicator_value(rows[-1], subscription.indicator)

    async def _check(self, subscription: NotificationSubscription) -> SweepResult:
        sid = subscription.id
        try:
            reading = await self.latest_reading(subscription)
        except UnknownIndicatorError as e:
            logger.warning("Skipping %s: %s", sid, e)
            return SweepResult(sid, ok=False, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error reading %s for %s", subscription.stock_symbol, sid)
            return SweepResult(sid, ok=False, error=f"{e.__class__.__name__}: {e}")

        if reading is None:
            logger.warning(
                "Skipping %s: no %s reading for %s",
                sid, subscription.indicator, subscription.stock_symbol,
            )
            return SweepResult(sid, ok=False, error="no reading available")

        if not evaluate(subscription, reading):
            return SweepResult(sid, ok=True, triggered=False, reading=reading)

        logger.info(
            "%s %s %s %.4f (threshold %s %g)",
            subscription.stock_symbol, subscription.indicator, subscription.condition.lower(),
            reading, subscription.condition, subscription.threshold,
        )
        try:
            await self._dispatcher.send(subscription, reading)
        except DispatchError as e:
            logger.warning("Delivery failed for %s: %s", sid, e)
            return SweepResult(sid, ok=False, triggered=True, reading=reading, error=str(e))
        except Exception as e:
            logger.exception("Unexpected delivery error for %s", sid)
            return SweepResult(
                sid, ok=False, triggered=True, reading=reading,
                error=f"{e.__class__.__name__}: {e}",
            )
        return SweepResult(sid, ok=True, triggered=True, reading=reading)

    async def run_once(self) -> SweepReport:
        subscriptions = self._store.all()
        logger.info("Checking %d subscriptions", len(subscriptions))
        outcomes = await asyncio.gather(
            *(self._check(s) for s in subscriptions), return_exceptions=True
        )
        results = []
        for sub, outcome in zip(subscriptions, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error("Check for %s raised %r", sub.id, outcome)
                outcome = SweepResult(
                    sub.id, ok=False, error=f"{outcome.__class__.__name__}: {outcome}"
                )
            results.append(outcome)
        report = SweepReport(results=results)
        logger.info(
            "Sweep done: %d triggered, %d failed", len(report.triggered), len(report.failed)
        )
        return report

    async def run_forever(self, interval_seconds: float) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Sweep aborted")
            await asyncio.sleep(interval_seconds)


# --- Entrypoint ---------------------------------------------------------------

def build_dispatcher(settings: Settings, client: httpx.AsyncClient) -> ContactDispatcher:
    email = SmtpEmailDispatcher(settings.smtp_host, settings.smtp_port, settings.smtp_sender)
    sms = WebhookSmsDispatcher(client, settings.sms_webhook_url) if settings.sms_webhook_url else None
    return ContactDispatcher(email=email, sms=sms)


async def _run(settings: Settings, once: bool) -> None:
    store = NotificationStore.from_url(settings.database_url)
    async with httpx.AsyncClient(timeout=settings.fmp_timeout_secs) as client:
        fetcher = PriceFetcher(client, settings.fmp_base_url, settings.fmp_api_key)
        sweep = NotificationSweep(
            store,
            fetcher,
            build_dispatcher(settings, client),
            lookback_days=settings.sweep_lookback_days,
        )
        if once:
            await sweep.run_once()
        else:
            await sweep.run_forever(settings.sweep_interval_secs)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Evaluate stored stock notifications")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    args = parser.parse_args(argv)

    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)s | %(message)s",
    )
    try:
        asyncio.run(_run(settings, args.once))
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
