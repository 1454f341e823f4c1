from optics_core.wavelength import parse_selection, rgb_to_hex, wavelength_interacts, wavelength_to_rgb


def test_empty_selection_interacts_with_everything():
    assert wavelength_interacts(400.0, None)
    assert wavelength_interacts(400.0, "")


def test_only_and_exclude_tokens():
    assert wavelength_interacts(532.0, "o532-o633")
    assert wavelength_interacts(633.0, "o532-o633")
    assert not wavelength_interacts(488.0, "o532-o633")
    assert not wavelength_interacts(532.0, "x532")
    assert wavelength_interacts(488.0, "x532")


def test_invalid_tokens_are_reported_and_ignored():
    sel = parse_selection("o532-bogus")
    assert sel.invalid == ("bogus",)
    assert sel.only == frozenset({532})


def test_visible_colours():
    r, g, b = wavelength_to_rgb(645.0)
    assert r == 1.0 and g == 0.0 and b == 0.0
    assert wavelength_to_rgb(900.0) == (1.0, 1.0, 1.0)
    assert rgb_to_hex((1.0, 1.0, 1.0)) == "#ffffff"
