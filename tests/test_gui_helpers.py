import pytest

gui = pytest.importorskip("histomed.gui_main", exc_type=ImportError)


def test_fit_size_keeps_aspect_and_never_enlarges():
    assert gui.fit_size(2000, 1000, 860, 860) == (860, 430)
    assert gui.fit_size(300, 200, 860, 860) == (300, 200)


def test_viewer_opens_fitted_to_window():
    w, h = gui.VIEWER_SIZE
    fitted = gui.fit_size(1720, 430, w - 40, h - 40)
    assert fitted == (860, 215)
    assert gui.scaled_size(1720, 430, fitted[0] / 1720) == fitted


def test_scaled_size_never_collapses():
    assert gui.scaled_size(10, 3, gui.ZOOM_MIN) == (1, 1)
    assert gui.scaled_size(100, 50, 1.5) == (150, 75)


def test_zoom_limits_allow_steps_both_ways():
    assert gui.ZOOM_MIN < 1 / gui.ZOOM_STEP < 1 < gui.ZOOM_STEP < gui.ZOOM_MAX
