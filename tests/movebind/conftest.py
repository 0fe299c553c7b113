"""Shared fixtures: a fake schema service over the sample packages."""

import pytest

from movebind.config import MoveBindSettings, reset_settings
from movebind.registry import BuildContext
from sample_packages import PKG_A, PKG_B, FakeProvider, package_a_payload, package_b_payload


@pytest.fixture
def settings(tmp_path):
    reset_settings()
    yield MoveBindSettings(base_path="bindings", output_dir=tmp_path)
    reset_settings()


@pytest.fixture
def payloads():
    return {PKG_A: package_a_payload(), PKG_B: package_b_payload()}


@pytest.fixture
def provider_factory(payloads):
    return lambda network, settings: FakeProvider(network, settings, payloads)


@pytest.fixture
def context(settings):
    return BuildContext(settings=settings)


@pytest.fixture
def package_a(settings):
    return FakeProvider("mainnet", settings, {}).decode(PKG_A, package_a_payload())


@pytest.fixture
def package_b(settings):
    return FakeProvider("mainnet", settings, {}).decode(PKG_B, package_b_payload())
