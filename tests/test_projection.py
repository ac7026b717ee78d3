"""
Tests for sky-to-pixel projection and field-of-view culling.
"""

import math

import pytest

from core.coords import (
    VISIBILITY_MARGIN_PX,
    field_of_view,
    get_visible_stars,
    is_star_visible,
    plate_scale,
    project_star,
    to_degrees,
    to_radians,
)
from core.types import CameraState, MountState, ProjectedStar, Star, StarField


class TestPlateScale:

    def test_known_value(self):
        assert plate_scale(800.0, 4.0) == pytest.approx(1.031325)

    def test_longer_focal_length_finer_scale(self):
        assert plate_scale(2000.0, 4.0) < plate_scale(500.0, 4.0)

    def test_angle_conversions(self):
        assert to_radians(180.0) == pytest.approx(math.pi)
        assert to_degrees(to_radians(37.5)) == pytest.approx(37.5)

    def test_field_of_view(self, mount, camera):
        w, h = field_of_view(mount, camera)
        assert w == pytest.approx(64 * 1.031325 / 3600.0)
        assert h == pytest.approx(w)


class TestProjectStar:

    def test_star_at_pointing_lands_in_centre(self, mount, camera):
        p = project_star(Star(1, mount.ra, mount.dec, 5.0), mount, camera)
        assert p.x == pytest.approx(camera.width / 2.0)
        assert p.y == pytest.approx(camera.height / 2.0)

    def test_ra_offset_moves_left(self, camera):
        mount = MountState(ra=100.0, dec=0.0, focal_length=800.0)
        star = Star(1, 100.0 + 10.0 / 3600.0, 0.0, 5.0)
        p = project_star(star, mount, camera)
        scale = plate_scale(800.0, camera.pixel_size)
        assert p.x == pytest.approx(camera.width / 2.0 - 10.0 / scale)
        assert p.y == pytest.approx(camera.height / 2.0)

    def test_dec_offset_moves_down_rows(self, camera):
        mount = MountState(ra=100.0, dec=0.0, focal_length=800.0)
        star = Star(1, 100.0, 10.0 / 3600.0, 5.0)
        p = project_star(star, mount, camera)
        scale = plate_scale(800.0, camera.pixel_size)
        assert p.y == pytest.approx(camera.height / 2.0 + 10.0 / scale)

    def test_ra_offset_scaled_by_cos_dec(self, camera):
        mount = MountState(ra=100.0, dec=60.0, focal_length=800.0)
        star = Star(1, 100.0 + 20.0 / 3600.0, 60.0, 5.0)
        p = project_star(star, mount, camera)
        scale = plate_scale(800.0, camera.pixel_size)
        # 20 arcsec of RA at Dec 60 is 10 arcsec on the sky
        assert p.x == pytest.approx(camera.width / 2.0 - 10.0 / scale, rel=1e-9)

    def test_ra_wraps_at_zero(self, camera):
        mount = MountState(ra=359.9999, dec=0.0, focal_length=800.0)
        star = Star(1, 0.0001, 0.0, 5.0)
        p = project_star(star, mount, camera)
        assert abs(p.x - camera.width / 2.0) < 1.0


class TestVisibility:

    @pytest.mark.parametrize("x,y,expected", [
        (32.0, 32.0, True),
        (-VISIBILITY_MARGIN_PX, 0.0, True),
        (-VISIBILITY_MARGIN_PX - 0.01, 0.0, False),
        (64.0 + VISIBILITY_MARGIN_PX - 0.01, 10.0, True),
        (64.0 + VISIBILITY_MARGIN_PX, 10.0, False),
        (10.0, 64.0 + VISIBILITY_MARGIN_PX, False),
    ])
    def test_margin_is_half_open(self, camera, x, y, expected):
        p = ProjectedStar(Star(1, 0.0, 0.0, 5.0), x, y)
        assert is_star_visible(p, camera) is expected

    def test_get_visible_stars_filters(self, mount, camera):
        scale = plate_scale(mount.focal_length, camera.pixel_size)
        inside = Star(1, mount.ra, mount.dec, 6.0)
        outside = Star(2, mount.ra, mount.dec + 200.0 * scale / 3600.0, 6.0)
        visible = get_visible_stars([inside, outside], mount, camera)
        assert [p.star.id for p in visible] == [1]


class TestStarFieldQuery:

    def test_radius_and_magnitude_limits(self):
        stars = [
            Star(1, 10.0, 10.0, 5.0),
            Star(2, 10.0, 10.5, 5.0),
            Star(3, 10.0, 12.0, 5.0),
            Star(4, 10.0, 10.1, 18.0),
        ]
        field = StarField.from_stars(stars, 10.0, 10.0)
        found = field.query(10.0, 10.0, radius_deg=1.0, limiting_magnitude=15.0)
        assert {s.id for s in found} == {1, 2}

    def test_query_near_pole_uses_great_circle(self):
        field = StarField.from_stars([Star(1, 190.0, 89.9, 5.0)])
        # 180° apart in RA but only 0.2° apart on the sky
        assert len(field.query(10.0, 89.9, radius_deg=0.3)) == 1

    def test_field_is_immutable_snapshot(self):
        field = StarField.from_stars([Star(1, 0.0, 0.0, 1.0)])
        assert isinstance(field.stars, tuple)
        assert hash(field) == hash(StarField.from_stars([Star(1, 0.0, 0.0, 1.0)]))
