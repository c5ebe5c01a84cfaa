"""
Packaging tests.

``paygate.core`` and the ``paygate.api`` subpackages carry no ``__init__.py``,
so the distribution has to be built with namespace package discovery.
"""

from pathlib import Path

import pytest

setuptools = pytest.importorskip("setuptools")

ROOT = Path(__file__).resolve().parent.parent


class TestPackageDiscovery:

    def test_namespace_discovery_enabled(self):
        tomllib = pytest.importorskip("tomllib")
        with open(ROOT / "pyproject.toml", "rb") as f:
            config = tomllib.load(f)

        find = config["tool"]["setuptools"]["packages"]["find"]
        assert find["namespaces"] is True
        assert find["include"] == ["paygate*"]

    def test_packages_without_init_are_discovered(self):
        packages = set(setuptools.find_namespace_packages(where=str(ROOT), include=["paygate*"]))

        assert {
            "paygate",
            "paygate.core",
            "paygate.api",
            "paygate.api.routes",
            "paygate.api.dependencies",
            "paygate.integrations.payment_gateways",
            "paygate.services",
            "paygate.schemas",
        } <= packages
        assert not any(name.startswith("tests") for name in packages)
