"""
Unit tests for reverse-proxy routing.
"""
import pytest

from stackboot.config import StackConfig
from stackboot.proxy import (
    RouteKind, normalize_uri, route_request, route_for_config, render_nginx
)


@pytest.fixture
def document_root(tmp_path):
    root = tmp_path / "public"
    (root / "build").mkdir(parents=True)
    (root / "build" / "app.js").write_text("console.log('app');\n")
    (root / "index.php").write_text("<?php\n")
    (root / "favicon.ico").write_bytes(b"\x00")
    return root


class TestRouteRequest:
    """Test the static routing rule."""

    def test_root_goes_to_front_controller(self, document_root):
        decision = route_request("/", document_root)

        assert decision.kind == RouteKind.FRONT_CONTROLLER
        assert decision.target == "/index.php"
        assert decision.upstream == "php:9000"
        assert decision.uses_backend

    def test_split_uses_last_php_segment(self, document_root):
        """Should split PATH_INFO after the last .php segment, like fastcgi_split_path_info."""
        decision = route_request("/a.php/b.php/c", document_root)

        assert decision.kind == RouteKind.PHP_BACKEND
        assert decision.target == "/a.php/b.php"
        assert decision.path_info == "/c"

    def test_static_asset_served_from_disk(self, document_root):
        decision = route_request("/build/app.js", document_root)

        assert decision.kind == RouteKind.STATIC
        assert decision.target == str(document_root / "build" / "app.js")
        assert not decision.uses_backend

    def test_missing_file_falls_through(self, document_root):
        decision = route_request("/blog/hello-world", document_root)

        assert decision.kind == RouteKind.FRONT_CONTROLLER

    def test_directory_falls_through(self, document_root):
        assert route_request("/build", document_root).kind == RouteKind.FRONT_CONTROLLER
        assert route_request("/build/", document_root).kind == RouteKind.FRONT_CONTROLLER

    def test_php_goes_to_backend(self, document_root):
        decision = route_request("/index.php/api/items?page=2", document_root)

        assert decision.kind == RouteKind.PHP_BACKEND
        assert decision.target == "/index.php"
        assert decision.path_info == "/api/items"
        assert decision.upstream == "php:9000"

    def test_query_string_ignored_for_static(self, document_root):
        decision = route_request("/favicon.ico?v=3", document_root)

        assert decision.kind == RouteKind.STATIC

    def test_traversal_stays_in_document_root(self, document_root, tmp_path):
        (tmp_path / "secret.txt").write_text("nope")

        decision = route_request("/../secret.txt", document_root)

        assert decision.kind == RouteKind.FRONT_CONTROLLER

    def test_route_for_config_uses_fpm_port(self, tmp_path):
        config = StackConfig(workdir=tmp_path, fpm_port=9001)

        assert route_for_config("/", config).upstream == "php:9001"


class TestNormalizeUri:

    @pytest.mark.parametrize("uri,expected", [
        ("", "/"),
        ("/", "/"),
        ("/a/./b", "/a/b"),
        ("/a/../b", "/b"),
        ("//build/app.js", "/build/app.js"),
        ("/build/?x=1", "/build/"),
    ])
    def test_normalize(self, uri, expected):
        assert normalize_uri(uri) == expected


class TestRenderNginx:

    def test_server_block(self):
        site = render_nginx(StackConfig(project_name="shop"))

        assert "root /var/www/project/public;" in site
        assert "try_files $uri /index.php$is_args$args;" in site
        assert "fastcgi_pass php:9000;" in site
        assert "location ~ \\.php(/|$)" in site
        assert "/var/log/nginx/shop_error.log" in site
