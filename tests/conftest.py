"""Shared fakes for the OpenAI client and the exchange rate service."""

import json
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
import requests

from menu_lens.config import ExtractorConfig
from menu_lens.currency import ExchangeRateResolver
from menu_lens.menu_vision import MenuExtractor
from menu_lens.schemas import MenuImage

RAMEN_RESPONSE = [
    {
        "name": "Ramen",
        "koreanName": "라멘",
        "description": "진한 돼지뼈 육수의 일본식 라멘",
        "price": 900,
        "currency": "JPY",
    }
]


def make_completion(text):
    """Build an object shaped like an OpenAI chat completion response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))]
    )


def make_openai_client(text):
    client = Mock()
    client.chat.completions.create.return_value = make_completion(text)
    return client


def make_rate_response(rates):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {"base": "USD", "rates": rates}
    return response


@pytest.fixture
def menu_image():
    return MenuImage(data=b"\xff\xd8\xff\xe0fake-jpeg", content_type="image/jpeg", filename="menu.jpg")


@pytest.fixture
def config():
    return ExtractorConfig(api_key="sk-test-key", model="gpt-4o-mini")


@pytest.fixture
def ramen_client():
    return make_openai_client(json.dumps(RAMEN_RESPONSE, ensure_ascii=False))


@pytest.fixture
def ramen_extractor(config, ramen_client):
    return MenuExtractor(config, client_factory=Mock(return_value=ramen_client))


@pytest.fixture
def offline_session():
    """requests.Session whose every GET fails as if the network were down."""
    session = Mock(spec=requests.Session)
    session.get.side_effect = requests.ConnectionError("network unreachable")
    return session


@pytest.fixture
def offline_resolver(offline_session):
    return ExchangeRateResolver(base_url="https://rates.test/v4/latest", session=offline_session)
