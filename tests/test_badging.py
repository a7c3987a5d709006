"""Tests for the badging dump parsers."""

from droidshelf.core.badging import (
    parse_application_icons,
    parse_label,
    parse_label_line,
    select_best_icon,
)
from droidshelf.models.package import ANY_DENSITY, BadgingIcon

BADGING = """\
package: name='com.example.app' versionCode='42' versionName='1.4'
sdkVersion:'24'
targetSdkVersion:'34'
application-label:'Example'
application-label-es:'Ejemplo'
application-label-es-ES:'Ejemplo ES'
application-icon-160:'res/mipmap-mdpi-v4/ic_launcher.png'
application-icon-480:'res/mipmap-xxhdpi-v4/ic_launcher.png'
application-icon-65535:'res/mipmap-anydpi-v26/ic_launcher.xml'
application: label='Example' icon='res/mipmap-mdpi-v4/ic_launcher.png'
launchable-activity: name='com.example.app.MainActivity'  label='' icon=''
"""


class TestLabel:
    def test_generic_label(self):
        assert parse_label(BADGING) == "Example"

    def test_localized_label_wins_in_locale_order(self):
        assert parse_label(BADGING, ["es-ES", "es"]) == "Ejemplo ES"
        assert parse_label(BADGING, ["es"]) == "Ejemplo"

    def test_unknown_locale_falls_back_to_generic(self):
        assert parse_label(BADGING, ["fr"]) == "Example"

    def test_escaped_quote(self):
        assert parse_label("application-label:'Bob\\'s App'") == "Bob's App"

    def test_first_generic_line_wins(self):
        output = "application-label:'First'\napplication-label:'Second'\n"
        assert parse_label(output) == "First"

    def test_missing_or_empty_label(self):
        assert parse_label("package: name='com.example.app'") is None
        assert parse_label("application-label:''") is None
        assert parse_label("") is None

    def test_parse_label_line(self):
        assert parse_label_line("application-label-de:'Beispiel'") == ("de", "Beispiel")
        assert parse_label_line("application-label:'Example'") == (None, "Example")
        assert parse_label_line("application: label='Example'") is None


class TestIcons:
    def test_icons_in_dump_order(self):
        icons = parse_application_icons(BADGING)
        assert [icon.density for icon in icons] == [160, 480, ANY_DENSITY]
        assert icons[0].value == "res/mipmap-mdpi-v4/ic_launcher.png"

    def test_application_icon_attribute_fallback(self):
        output = "application: label='Example' icon='res/drawable/icon.png'\n"
        icons = parse_application_icons(output)
        assert icons == [BadgingIcon(density=0, value="res/drawable/icon.png")]

    def test_no_icons(self):
        assert parse_application_icons("package: name='x'") == []
        assert select_best_icon([]) is None

    def test_any_density_sentinel_outranks_numeric(self):
        best = select_best_icon(parse_application_icons(BADGING))
        assert best is not None
        assert best.density == ANY_DENSITY

    def test_raster_only_prefers_highest_raster(self):
        best = select_best_icon(parse_application_icons(BADGING), raster_only=True)
        assert best is not None
        assert best.value == "res/mipmap-xxhdpi-v4/ic_launcher.png"

    def test_raster_only_falls_back_to_all_icons(self):
        icons = [
            BadgingIcon(density=160, value="res/drawable/icon.xml"),
            BadgingIcon(density=ANY_DENSITY, value="res/mipmap-anydpi-v26/ic.xml"),
        ]
        best = select_best_icon(icons, raster_only=True)
        assert best is not None
        assert best.density == ANY_DENSITY

    def test_ties_keep_first(self):
        icons = [
            BadgingIcon(density=320, value="res/a.png"),
            BadgingIcon(density=320, value="res/b.png"),
        ]
        assert select_best_icon(icons).value == "res/a.png"
