import pytest

from report_exporter.dashboard_export.page_selectors import (
    CSS,
    TEXT_EXACT,
    LogicalTarget,
    SelectorStrategy,
)
from report_exporter.dashboard_export.selector_chain import CoordinateTarget, SelectorChain
from report_exporter.errors import SelectorExhaustedError
from tests.dashboard_export.fake_dom import FakePage, fast_settings


def _frame():
    page = FakePage(url="https://lookerstudio.google.com/reporting/abc")
    return page, page.add_frame(name="dashboard")


@pytest.mark.asyncio
async def test_exact_label_wins_before_later_strategies(settings, logger) -> None:
    _, frame = _frame()
    trigger = frame.add("Conta de Anúncio")
    frame.add("Filtros: Conta de Anúncio (3)")
    chain = SelectorChain(settings=settings, logger=logger)

    element = await chain.click(frame, "account_filter_trigger", timeout_ms=50)

    assert trigger.clicks == 1
    assert await element.inner_text() == "Conta de Anúncio"
    assert [attempt["strategy"] for attempt in chain.last_attempts] == ["exact_label"]


@pytest.mark.asyncio
async def test_only_last_strategy_matching_means_all_earlier_ones_were_tried(settings, logger) -> None:
    _, frame = _frame()
    container = frame.add("Filtros ▾ Conta de Anúncio (3 selecionadas)")
    chain = SelectorChain(settings=settings, logger=logger)

    element = await chain.click(frame, "account_filter_trigger", timeout_ms=50)

    assert container.clicks == 1
    assert element is not None
    attempts = chain.last_attempts
    assert [attempt["strategy"] for attempt in attempts] == [
        "exact_label",
        "exact_label_folded",
        "title_attribute",
        "aria_label_attribute",
        "container_contains_label",
    ]
    assert [attempt["status"] for attempt in attempts] == ["miss", "miss", "miss", "miss", "matched"]


@pytest.mark.asyncio
async def test_label_without_accents_is_found_by_the_folded_strategy(settings, logger) -> None:
    _, frame = _frame()
    plain = frame.add("Conta de Anuncio")
    chain = SelectorChain(settings=settings, logger=logger)

    await chain.click(frame, "account_filter_trigger", timeout_ms=50)

    assert plain.clicks == 1
    assert chain.last_attempts[-1]["strategy"] == "exact_label_folded"


@pytest.mark.asyncio
async def test_attribute_strategy_compares_normalized_values(settings, logger) -> None:
    _, frame = _frame()
    icon = frame.add("", attrs={"title": "  CONTA DE ANUNCIO "})
    chain = SelectorChain(settings=settings, logger=logger)

    await chain.click(frame, "account_filter_trigger", timeout_ms=50)

    assert icon.clicks == 1
    assert chain.last_attempts[-1]["strategy"] == "title_attribute"


@pytest.mark.asyncio
async def test_hidden_matches_do_not_count(settings, logger) -> None:
    _, frame = _frame()
    frame.add("Conta de Anúncio", visible=False)
    chain = SelectorChain(settings=settings, logger=logger)

    with pytest.raises(SelectorExhaustedError):
        await chain.resolve(frame, "account_filter_trigger", timeout_ms=20)


@pytest.mark.asyncio
async def test_exhaustion_names_the_logical_target_and_logs_attempts(settings, logger, read_logs) -> None:
    _, frame = _frame()
    chain = SelectorChain(settings=settings, logger=logger)

    with pytest.raises(SelectorExhaustedError) as excinfo:
        await chain.resolve(frame, "period_trigger", timeout_ms=20)

    error = excinfo.value
    assert error.kind == "selector_exhausted"
    assert error.logical_target == "period_trigger"
    assert {attempt["strategy"] for attempt in error.attempts} >= {"exact_label", "button_contains_label"}

    last = read_logs()[-1]
    assert last["phase"] == "selectors"
    assert last["status"] == "warn"
    assert last["target"] == "period_trigger"


@pytest.mark.asyncio
async def test_outer_timeout_reruns_chain_until_element_renders(settings, logger) -> None:
    _, frame = _frame()
    renders = {"ticks": 0}

    def _rendered() -> bool:
        renders["ticks"] += 1
        return renders["ticks"] > 6

    button = frame.add("Aplicar", tag="button", role="button", present=_rendered)
    chain = SelectorChain(settings=settings, logger=logger)

    await chain.click(frame, "apply_button", timeout_ms=500)

    assert button.clicks == 1


@pytest.mark.asyncio
async def test_coordinate_fallback_is_last_and_clicks_the_page(settings, logger) -> None:
    page, frame = _frame()
    chain = SelectorChain(settings=settings, logger=logger)

    target = await chain.click(frame, "export_menu_trigger", timeout_ms=20)

    assert isinstance(target, CoordinateTarget)
    assert page.mouse.clicks == [(1368, 20)]
    assert chain.last_attempts[-1] == {
        "strategy": "fixed_point",
        "kind": "coordinates",
        "status": "matched",
        "unreliable": True,
    }


@pytest.mark.asyncio
async def test_unreliable_strategies_can_be_disabled(logger) -> None:
    page, frame = _frame()
    chain = SelectorChain(settings=fast_settings(allow_unreliable_strategies=False), logger=logger)

    with pytest.raises(SelectorExhaustedError) as excinfo:
        await chain.click(frame, "export_menu_trigger", timeout_ms=20)

    assert page.mouse.clicks == []
    assert excinfo.value.attempts[-1]["status"] == "skipped"


@pytest.mark.asyncio
async def test_label_override_and_custom_target_table(settings, logger) -> None:
    _, frame = _frame()
    frame.add("7", tag="td")
    seven = frame.add("7", tag="button", selectors=("td.day > button",))
    targets = {
        "day": LogicalTarget(
            name="day",
            strategies=(
                SelectorStrategy("day_button", CSS, "td.day > button"),
                SelectorStrategy("day_text", TEXT_EXACT),
            ),
        )
    }
    chain = SelectorChain(targets, settings=settings, logger=logger)

    await chain.click(frame, "day", label="7", timeout_ms=20)

    assert seven.clicks == 1


def test_unknown_target_is_a_programming_error(settings, logger) -> None:
    chain = SelectorChain(settings=settings, logger=logger)

    with pytest.raises(ValueError):
        chain.target("does_not_exist")


@pytest.mark.asyncio
async def test_reliable_strategies_keep_polling_before_coordinate_fallback(settings, logger) -> None:
    page, frame = _frame()
    renders = {"ticks": 0}

    def _rendered() -> bool:
        renders["ticks"] += 1
        return renders["ticks"] > 6

    menu = frame.add("", tag="button", role="button", attrs={"aria-label": "Mais opções"}, present=_rendered)
    chain = SelectorChain(settings=settings, logger=logger)

    target = await chain.click(frame, "export_menu_trigger", timeout_ms=1_000)

    assert menu.clicks == 1
    assert not isinstance(target, CoordinateTarget)
    assert page.mouse.clicks == []
    assert "fixed_point" not in [attempt["strategy"] for attempt in chain.last_attempts]
