"""Real-time alerting loop: per-profile polling, deduplication and alert lifecycle."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from ._async_utils import _maybe_await
from .contracts import Notifier
from .errors import BackendUnavailableError, NotFoundError
from .matching import MatchingEngine
from .models import AlertPriority, AlertType, CompanyProfile, MatchAlert, MatchResult, Opportunity
from .validated_model import ValidatedModel

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

HIGH_MATCH_SCORE = 90.0
DEADLINE_WINDOW_DAYS = 14


@dataclass(frozen=True)
class MatcherConfig(ValidatedModel):
    """Process-wide matcher settings; changes apply from the next cycle."""

    check_interval_ms: int = field(default=300_000, metadata={"gt": 0})
    min_match_score: float = field(default=70.0, metadata={"ge": 0, "le": 100})
    max_alerts_per_profile: int = field(default=10, metadata={"ge": 1})
    enable_notifications: bool = True
    auto_refresh: bool = True
    top_k: int = field(default=25, metadata={"gt": 0})
    cycle_timeout_s: float = field(default=30.0, metadata={"gt": 0})

    @classmethod
    def from_settings(cls, settings: "Settings") -> "MatcherConfig":
        return cls(
            check_interval_ms=settings.match_check_interval_ms,
            min_match_score=settings.match_min_score,
            max_alerts_per_profile=settings.match_max_alerts,
            enable_notifications=settings.match_enable_notifications,
            auto_refresh=settings.match_auto_refresh,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_deadline(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _set_aside_matches(profile: CompanyProfile, opportunity: Opportunity) -> bool:
    set_aside = opportunity.set_aside.strip().lower()
    if not set_aside:
        return False
    for business_type in profile.business_types:
        kind = business_type.strip().lower()
        if kind and (kind in set_aside or set_aside in kind):
            return True
    return False


def classify_alert(
    profile: CompanyProfile,
    opportunity: Opportunity | None,
    match_score: float,
    now: datetime,
) -> tuple[AlertType, AlertPriority]:
    """Pick alert type and priority from the 0-100 score and opportunity details."""

    if match_score >= HIGH_MATCH_SCORE:
        return AlertType.HIGH_MATCH, AlertPriority.HIGH
    if opportunity is not None:
        if _set_aside_matches(profile, opportunity):
            return AlertType.SET_ASIDE_MATCH, AlertPriority.HIGH
        deadline = _parse_deadline(opportunity.response_deadline)
        if deadline is not None:
            days_left = (deadline - now).total_seconds() / 86400
            if days_left <= DEADLINE_WINDOW_DAYS:
                return AlertType.DEADLINE_APPROACHING, AlertPriority.HIGH
    return AlertType.NEW_OPPORTUNITY, AlertPriority.MEDIUM


def format_alert_message(alert: MatchAlert) -> str:
    opportunity = alert.opportunity
    title = opportunity.title if opportunity is not None and opportunity.title else alert.opportunity_id
    score = round(alert.match_score)
    if alert.alert_type == AlertType.HIGH_MATCH:
        return f"High match ({score}%): {title}"
    if alert.alert_type == AlertType.SET_ASIDE_MATCH:
        return f"Set-aside opportunity: {title}"
    if alert.alert_type == AlertType.DEADLINE_APPROACHING:
        return f"Deadline approaching: {title}"
    return f"New opportunity ({score}%): {title}"


@dataclass
class _Runner:
    profile: CompanyProfile
    stop_event: asyncio.Event
    first_cycle: asyncio.Event
    task: Optional["asyncio.Task[None]"] = None


class RealTimeMatcher:
    """Runs one polling task per profile and owns every `MatchAlert`.

    Each task runs a cycle, then sleeps `check_interval_ms` (re-read after every
    cycle) or until stopped. Cycles of one profile never overlap. The alert
    store and config live under one re-entrant lock; the dedup check, insert and
    cap happen in a single critical section.
    """

    def __init__(
        self,
        engine: MatchingEngine,
        *,
        config: MatcherConfig | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.engine = engine
        self.notifier = notifier
        self._config = config or MatcherConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._alerts: dict[str, list[MatchAlert]] = {}
        self._runners: dict[str, _Runner] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._cycles_run = 0
        self._failed_cycles = 0
        self._last_cycle_at: datetime | None = None

    @property
    def config(self) -> MatcherConfig:
        with self._lock:
            return self._config

    def update_config(self, changes: Mapping[str, Any] | None = None, **kwargs: Any) -> MatcherConfig:
        """Apply a validated partial update; running cycles keep their snapshot."""

        merged = dict(changes or {})
        merged.update(kwargs)
        with self._lock:
            self._config = self._config.with_changes(merged)
            config = self._config
        logger.info("Matcher config updated: %s", merged)
        return config

    async def start(self, profile: CompanyProfile) -> None:
        """Start (or restart) polling for `profile` and wait for its first cycle."""

        with self._lock:
            previous = self._runners.get(profile.id)
            if previous is not None:
                previous.stop_event.set()
            runner = _Runner(
                profile=profile,
                stop_event=asyncio.Event(),
                first_cycle=asyncio.Event(),
            )
            self._runners[profile.id] = runner

        previous_task = previous.task if previous is not None else None
        task = asyncio.create_task(
            self._run(runner, previous_task),
            name=f"opp-match-matcher:{profile.id}",
        )
        runner.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Starting real-time matching for %s", profile.entity_name or profile.id)
        await runner.first_cycle.wait()

    def stop(self, profile_id: str | None = None) -> None:
        """Stop one profile, or every profile when `profile_id` is None.

        No further cycles are scheduled; a cycle already in flight completes and
        its alerts are kept.
        """

        with self._lock:
            if profile_id is None:
                stopping = list(self._runners.values())
                self._runners.clear()
            else:
                runner = self._runners.pop(profile_id, None)
                stopping = [runner] if runner is not None else []
        for runner in stopping:
            runner.stop_event.set()
        if stopping:
            logger.info("Stopped real-time matching for %d profile(s)", len(stopping))

    async def shutdown(self) -> None:
        """Stop everything and wait for all polling tasks to finish."""

        self.stop()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def is_running(self, profile_id: str | None = None) -> bool:
        with self._lock:
            if profile_id is None:
                return bool(self._runners)
            return profile_id in self._runners

    async def run_cycle(self, profile: CompanyProfile) -> list[MatchAlert]:
        """Run one matching cycle now and return the alerts it created.

        Errors abandon the cycle without touching the alert store and are
        re-raised after being counted.
        """

        config = self.config
        try:
            response = await asyncio.wait_for(
                self.engine.match_profile(profile, top_k=config.top_k),
                timeout=config.cycle_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            self._record_failure()
            raise BackendUnavailableError(
                f"Match cycle for {profile.id} timed out after {config.cycle_timeout_s}s"
            ) from exc
        except Exception:
            self._record_failure()
            raise

        qualifying = [
            match for match in response.results if match.score * 100 >= config.min_match_score
        ]
        created = self._commit(profile, qualifying, config)
        logger.info(
            "Match cycle for %s: %d result(s), %d qualifying, %d new alert(s)",
            profile.id,
            response.total_results,
            len(qualifying),
            len(created),
        )

        if created and config.enable_notifications:
            await self._notify(created)
        return created

    def get_alerts(self, profile_id: str) -> list[MatchAlert]:
        """Alerts for `profile_id`, newest first. Returned objects are copies."""

        with self._lock:
            alerts = [dataclasses.replace(alert) for alert in self._alerts.get(profile_id, [])]
        alerts.sort(key=lambda alert: (alert.created_at, alert.score), reverse=True)
        return alerts

    def mark_alert_as_read(self, alert_id: str, profile_id: str) -> bool:
        with self._lock:
            alert = self._find(alert_id, profile_id)
            if alert is None:
                return False
            alert.read = True
            return True

    def mark_alert_action_taken(self, alert_id: str, profile_id: str, action: str) -> bool:
        with self._lock:
            alert = self._find(alert_id, profile_id)
            if alert is None:
                return False
            alert.action_taken = action
            alert.read = True
            return True

    def get_alert(self, alert_id: str, profile_id: str) -> MatchAlert:
        with self._lock:
            alert = self._find(alert_id, profile_id)
            if alert is None:
                raise NotFoundError(f"Alert {alert_id} not found for profile {profile_id}")
            return dataclasses.replace(alert)

    def clear_alerts(self, profile_id: str) -> int:
        with self._lock:
            removed = self._alerts.pop(profile_id, [])
        return len(removed)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "running_profiles": len(self._runners),
                "total_alerts": sum(len(alerts) for alerts in self._alerts.values()),
                "profiles_with_alerts": sum(1 for alerts in self._alerts.values() if alerts),
                "cycles_run": self._cycles_run,
                "failed_cycles": self._failed_cycles,
                "last_cycle_at": self._last_cycle_at,
                "is_running": bool(self._runners),
            }

    def format_alert_message(self, alert: MatchAlert) -> str:
        return format_alert_message(alert)

    async def _run(self, runner: _Runner, previous: Optional["asyncio.Task[None]"]) -> None:
        if previous is not None and not previous.done():
            await asyncio.gather(previous, return_exceptions=True)
        profile = runner.profile
        try:
            while not runner.stop_event.is_set():
                try:
                    await self.run_cycle(profile)
                except Exception as exc:  # noqa: BLE001
                    logger.warning("Match cycle for %s abandoned: %s", profile.id, exc)
                finally:
                    runner.first_cycle.set()

                config = self.config
                if not config.auto_refresh:
                    break
                try:
                    await asyncio.wait_for(
                        runner.stop_event.wait(),
                        timeout=config.check_interval_ms / 1000,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            runner.first_cycle.set()
            with self._lock:
                if self._runners.get(profile.id) is runner:
                    del self._runners[profile.id]

    def _commit(
        self,
        profile: CompanyProfile,
        matches: list[MatchResult],
        config: MatcherConfig,
    ) -> list[MatchAlert]:
        now = self._clock()
        with self._lock:
            existing = self._alerts.get(profile.id, [])
            seen = {alert.opportunity_id for alert in existing}
            fresh: list[MatchAlert] = []
            for match in matches:
                if match.id in seen:
                    continue
                seen.add(match.id)
                fresh.append(self._create_alert(profile, match, now))

            combined = existing + fresh
            combined.sort(key=lambda alert: (-alert.score, alert.opportunity_id))
            kept = combined[: config.max_alerts_per_profile]
            kept_ids = {alert.id for alert in kept}
            self._alerts[profile.id] = kept
            self._cycles_run += 1
            self._last_cycle_at = now
            return [dataclasses.replace(alert) for alert in fresh if alert.id in kept_ids]

    def _create_alert(self, profile: CompanyProfile, match: MatchResult, now: datetime) -> MatchAlert:
        alert_type, priority = classify_alert(profile, match.opportunity, match.score * 100, now)
        return MatchAlert(
            id=f"alert_{uuid.uuid4().hex}",
            company_profile_id=profile.id,
            opportunity_id=match.id,
            score=match.score,
            created_at=now,
            opportunity=match.opportunity,
            alert_type=alert_type,
            priority=priority,
        )

    async def _notify(self, alerts: list[MatchAlert]) -> None:
        for alert in alerts:
            if self.notifier is None:
                logger.info("Alert: %s", format_alert_message(alert))
                continue
            try:
                await _maybe_await(self.notifier(alert))
            except Exception:  # noqa: BLE001
                logger.exception("Notifier failed for alert %s", alert.id)

    def _record_failure(self) -> None:
        with self._lock:
            self._failed_cycles += 1

    def _find(self, alert_id: str, profile_id: str) -> MatchAlert | None:
        for alert in self._alerts.get(profile_id, []):
            if alert.id == alert_id:
                return alert
        return None
