from collections import OrderedDict

import pytest

from wagate.common.config import Config
from wagate.server.clients import load_client_factory
from wagate.server.neonize_client import create_client


def test_load_callable() -> None:
    assert load_client_factory("collections:OrderedDict") is OrderedDict


@pytest.mark.parametrize("target", [None, ""])
def test_missing_target(target) -> None:
    with pytest.raises(ValueError, match="WAGATE_CLIENT_FACTORY"):
        load_client_factory(target)


@pytest.mark.parametrize(
    "target", ["math:pi", "no_such_module_xyz:factory", "collections:Nope", "collections"]
)
def test_bad_target(target: str) -> None:
    with pytest.raises(ValueError):
        load_client_factory(target)


def test_default_factory_is_neonize_adapter() -> None:
    assert load_client_factory(Config().CLIENT_FACTORY) is create_client
