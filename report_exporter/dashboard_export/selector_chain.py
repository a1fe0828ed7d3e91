from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from report_exporter.common.text_utils import fold_diacritics, normalize_text
from report_exporter.errors import SelectorExhaustedError, WaitTimeoutError

from .json_logger import JsonLogger, log_event
from .page_selectors import (
    ATTRIBUTE,
    CONTAINS_TEXT,
    COORDINATES,
    CSS,
    DEFAULT_PROFILE,
    DEFAULT_TARGETS,
    ROLE,
    TEXT_EXACT,
    TEXT_FOLDED,
    LogicalTarget,
    SelectorStrategy,
    build_targets,
)
from .polling import poll_until
from .settings import ExportSettings

__all__ = ["SelectorChain", "CoordinateTarget"]

ATTRIBUTE_SCAN_LIMIT = 200
_LABEL_REQUIRED = {TEXT_EXACT, TEXT_FOLDED, ATTRIBUTE, CONTAINS_TEXT}


class CoordinateTarget:
    """Stand-in for an element that is only known by its viewport position."""

    def __init__(self, page: Any, x: float, y: float) -> None:
        self.page = page
        self.x = x
        self.y = y

    async def click(self, **_: Any) -> None:
        await self.page.mouse.click(self.x, self.y)

    async def is_visible(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"CoordinateTarget(x={self.x}, y={self.y})"


def _page_of(scope: Any) -> Any:
    if hasattr(scope, "mouse"):
        return scope
    return getattr(scope, "page", None)


class SelectorChain:
    """Interpret the declarative target table against a page, frame or container.

    Strategies run strictly in configured order, each with its own short
    existence check; the first visible match wins. Unreliable strategies are
    held back until the reliable ones have failed for the whole timeout.
    ``last_attempts`` records the most recent pass so callers and tests can
    see what was tried.
    """

    def __init__(
        self,
        targets: Mapping[str, LogicalTarget] | None = None,
        *,
        settings: ExportSettings,
        logger: JsonLogger,
    ) -> None:
        if targets is None:
            targets = DEFAULT_TARGETS if settings.profile is DEFAULT_PROFILE else build_targets(settings.profile)
        self._targets: Dict[str, LogicalTarget] = dict(targets)
        self._settings = settings
        self._logger = logger
        self.last_attempts: List[Dict[str, Any]] = []

    def target(self, name: str) -> LogicalTarget:
        try:
            return self._targets[name]
        except KeyError:
            raise ValueError(f"Unknown logical target {name!r}") from None

    async def resolve(
        self,
        scope: Any,
        target_name: str,
        *,
        label: Optional[str] = None,
        timeout_ms: int = 0,
    ) -> Any:
        target = self.target(target_name)
        effective_label = label if label is not None else target.label
        passes = 0

        async def _run_chain() -> Any:
            nonlocal passes
            passes += 1
            attempts: List[Dict[str, Any]] = []
            self.last_attempts = attempts
            for strategy in target.strategies:
                if strategy.unreliable:
                    continue
                found = await self._try_strategy(scope, strategy, effective_label, attempts)
                if found is not None:
                    return found
            return None

        try:
            element = await poll_until(
                _run_chain,
                timeout_ms=timeout_ms,
                interval_ms=self._settings.poll_interval_ms,
                description=f"selector target {target_name!r}",
            )
        except WaitTimeoutError:
            element = await self._last_resort(scope, target, effective_label)

        if element is None:
            log_event(
                logger=self._logger,
                phase="selectors",
                status="warn",
                message=f"Selector chain exhausted for {target_name}",
                target=target_name,
                label=effective_label,
                passes=passes,
                attempts=self.last_attempts,
            )
            raise SelectorExhaustedError(target_name, attempts=self.last_attempts) from None

        log_event(
            logger=self._logger,
            phase="selectors",
            message=f"Resolved {target_name}",
            target=target_name,
            label=effective_label,
            passes=passes,
            attempts=self.last_attempts,
        )
        return element

    async def _last_resort(self, scope: Any, target: LogicalTarget, label: Optional[str]) -> Any:
        """Try the unreliable strategies once, after the reliable ones ran out of time."""

        attempts = self.last_attempts
        for strategy in target.strategies:
            if not strategy.unreliable:
                continue
            found = await self._try_strategy(scope, strategy, label, attempts)
            if found is not None:
                log_event(
                    logger=self._logger,
                    phase="selectors",
                    status="warn",
                    message=f"Falling back to {strategy.name} for {target.name}",
                    target=target.name,
                    strategy=strategy.name,
                )
                return found
        return None

    async def click(
        self,
        scope: Any,
        target_name: str,
        *,
        label: Optional[str] = None,
        timeout_ms: int = 0,
    ) -> Any:
        element = await self.resolve(scope, target_name, label=label, timeout_ms=timeout_ms)
        await element.click(timeout=self._settings.click_timeout_ms)
        return element

    async def _try_strategy(
        self,
        scope: Any,
        strategy: SelectorStrategy,
        label: Optional[str],
        attempts: List[Dict[str, Any]],
    ) -> Any:
        attempt: Dict[str, Any] = {"strategy": strategy.name, "kind": strategy.kind, "status": "miss"}
        attempts.append(attempt)

        if strategy.unreliable and not self._settings.allow_unreliable_strategies:
            attempt["status"] = "skipped"
            attempt["reason"] = "unreliable strategies disabled"
            return None

        if strategy.kind == COORDINATES:
            page = _page_of(scope)
            if page is None:
                attempt["status"] = "skipped"
                attempt["reason"] = "scope has no page"
                return None
            x, y = strategy.value  # type: ignore[misc]
            attempt["status"] = "matched"
            attempt["unreliable"] = True
            return CoordinateTarget(page, x, y)

        if strategy.kind in _LABEL_REQUIRED and not label:
            attempt["status"] = "skipped"
            attempt["reason"] = "no label"
            return None
        if strategy.kind == TEXT_FOLDED and fold_diacritics(label) == label:
            attempt["status"] = "skipped"
            attempt["reason"] = "label has no diacritics"
            return None
        if strategy.kind == CSS and "{label}" in str(strategy.value) and not label:
            attempt["status"] = "skipped"
            attempt["reason"] = "no label"
            return None

        async def _probe() -> Any:
            if strategy.kind == ATTRIBUTE:
                return await self._match_attribute(scope, str(strategy.value), label or "")
            locator = self._build_locator(scope, strategy, label)
            return await self._visible_pick(locator, strategy.pick)

        try:
            element = await poll_until(
                _probe,
                timeout_ms=self._settings.strategy_probe_timeout_ms,
                interval_ms=min(self._settings.poll_interval_ms, 250),
                description=f"strategy {strategy.name}",
            )
        except WaitTimeoutError as exc:
            if exc.last_error is not None:
                attempt["status"] = "error"
                attempt["error"] = str(exc.last_error)
            return None

        attempt["status"] = "matched"
        return element

    @staticmethod
    def _build_locator(scope: Any, strategy: SelectorStrategy, label: Optional[str]) -> Any:
        if strategy.kind == TEXT_EXACT:
            return scope.get_by_text(label, exact=True)
        if strategy.kind == TEXT_FOLDED:
            return scope.get_by_text(fold_diacritics(label), exact=True)
        if strategy.kind == ROLE:
            if label:
                pattern = re.compile(rf"^\s*{re.escape(label)}\s*$", re.IGNORECASE)
                return scope.get_by_role(str(strategy.value), name=pattern)
            return scope.get_by_role(str(strategy.value))
        if strategy.kind == CONTAINS_TEXT:
            pattern = re.compile(re.escape(label or ""), re.IGNORECASE)
            return scope.locator(str(strategy.value), has_text=pattern)
        if strategy.kind == CSS:
            selector = str(strategy.value)
            if "{label}" in selector:
                selector = selector.replace("{label}", (label or "").replace('"', '\\"'))
            return scope.locator(selector)
        raise ValueError(f"Unsupported strategy kind {strategy.kind!r}")

    @staticmethod
    async def _visible_pick(locator: Any, pick: str) -> Any:
        if not await locator.count():
            return None
        candidate = locator.last if pick == "last" else locator.first
        if await candidate.is_visible():
            return candidate
        return None

    @staticmethod
    async def _match_attribute(scope: Any, attribute: str, label: str) -> Any:
        wanted = normalize_text(label)
        nodes = scope.locator(f"[{attribute}]")
        count = min(await nodes.count(), ATTRIBUTE_SCAN_LIMIT)
        for idx in range(count):
            node = nodes.nth(idx)
            value = await node.get_attribute(attribute)
            if value and normalize_text(value) == wanted and await node.is_visible():
                return node
        return None
