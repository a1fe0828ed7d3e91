import pytest

from report_exporter.dashboard_export.frames import (
    find_dashboard_frame,
    frame_text,
    is_login_wall,
    login_url_detected,
)
from report_exporter.dashboard_export.page_selectors import DEFAULT_PROFILE
from tests.dashboard_export.fake_dom import FakePage


@pytest.mark.asyncio
async def test_dashboard_iframe_is_found_by_marker_text(logger) -> None:
    page = FakePage(url="https://lookerstudio.google.com/reporting/abc")
    page.main_frame.add("Looker Studio")
    page.add_frame(name="ads").add("Advertisement")
    dashboard = page.add_frame(name="report")
    dashboard.add("Conta de Anuncio")

    frame = await find_dashboard_frame(
        page,
        DEFAULT_PROFILE.frame_markers,
        timeout_ms=100,
        interval_ms=5,
        logger=logger,
    )

    assert frame is dashboard


@pytest.mark.asyncio
async def test_frames_attached_late_are_picked_up_on_a_later_tick(logger) -> None:
    page = FakePage()
    late = page.add_frame(name="late")
    shown = {"ticks": 0}

    def _rendered() -> bool:
        shown["ticks"] += 1
        return shown["ticks"] > 3

    late.add("Conta de Anúncio", visible=_rendered)

    frame = await find_dashboard_frame(page, ["Conta de Anúncio"], timeout_ms=500, interval_ms=5, logger=logger)

    assert frame is late


@pytest.mark.asyncio
async def test_missing_markers_fall_back_to_main_frame_without_raising(logger, read_logs) -> None:
    page = FakePage()
    page.main_frame.add("Relatório sem iframe")

    frame = await find_dashboard_frame(page, ["Conta de Anúncio"], timeout_ms=20, interval_ms=5, logger=logger)

    assert frame is page.main_frame
    warning = read_logs()[-1]
    assert warning["phase"] == "frame_ready"
    assert warning["status"] == "warn"


@pytest.mark.asyncio
async def test_unreadable_frame_text_is_empty() -> None:
    page = FakePage()
    page.main_frame.text_error = RuntimeError("frame was detached")

    assert await frame_text(page.main_frame, timeout_ms=50) == ""


def test_login_url_fragments_are_case_insensitive() -> None:
    page = FakePage(url="https://accounts.google.com/v3/signin/identifier?continue=x")
    assert login_url_detected(page, DEFAULT_PROFILE) is True

    page.url = "https://lookerstudio.google.com/reporting/abc"
    assert login_url_detected(page, DEFAULT_PROFILE) is False


@pytest.mark.asyncio
async def test_sign_in_wall_is_detected_from_page_text() -> None:
    page = FakePage(url="https://lookerstudio.google.com/reporting/abc")
    page.main_frame.add("Você precisa de permissão")
    page.main_frame.add("Fazer login")

    assert await is_login_wall(page, DEFAULT_PROFILE) is True


@pytest.mark.asyncio
async def test_public_report_with_sign_in_button_is_not_a_wall() -> None:
    page = FakePage(url="https://lookerstudio.google.com/reporting/abc")
    page.main_frame.add("Fazer login", tag="button")
    page.main_frame.add("Conta de Anúncio")

    assert await is_login_wall(page, DEFAULT_PROFILE) is False


@pytest.mark.asyncio
async def test_blank_page_is_not_a_wall() -> None:
    page = FakePage(url="https://lookerstudio.google.com/reporting/abc")

    assert await is_login_wall(page, DEFAULT_PROFILE) is False
