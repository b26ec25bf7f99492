import logging

import pytest

from ingressgw.merge import Converter


@pytest.fixture
def converter():
    return Converter(logging.getLogger("ingressgw"))
