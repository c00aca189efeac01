"""Tests for the popup show/hide channel"""

from salesflow.domain.enums import PopupSize
from salesflow.services.popup_mediator import PopupMediator


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_show_then_hide_clears_after_delay():
    clock = FakeClock()
    popups = PopupMediator(clear_delay_seconds=0.2, clock=clock)

    popups.show({"message": "hola"}, title="Nueva tarea asignada", size=PopupSize.LG)
    assert popups.is_open
    assert popups.options == {"size": PopupSize.LG, "title": "Nueva tarea asignada"}

    popups.hide()
    assert not popups.is_open
    assert popups.content == {"message": "hola"}

    clock.now += 0.25
    assert popups.content is None
    assert popups.options == {}


def test_show_during_close_keeps_new_content():
    clock = FakeClock()
    popups = PopupMediator(clear_delay_seconds=0.2, clock=clock)
    popups.show({"message": "uno"})
    popups.hide()

    clock.now += 0.1
    popups.show({"message": "dos"})
    clock.now += 0.5

    assert popups.is_open
    assert popups.content == {"message": "dos"}


def test_snapshot_defaults():
    snapshot = PopupMediator(clear_delay_seconds=0).snapshot()
    assert snapshot == {"is_open": False, "content": None, "title": None, "size": PopupSize.MD}
