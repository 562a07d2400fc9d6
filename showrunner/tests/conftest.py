"""
Pytest configuration and fixtures for Showrunner tests.

This module provides:
- Network blocking fixture to prevent accidental API calls in CI
- Common fixtures for stores, gateways and story bibles
"""

import socket
import pytest
from unittest.mock import patch

from showrunner.models import StoryContext
from showrunner.services import InMemoryStoryStore
from showrunner.tests.fakes import StudioScript, make_gateway, story_bible_payload


class NetworkBlockedError(Exception):
    """Raised when a test attempts to make a network connection."""
    pass


def _block_socket_connect(*args, **kwargs):
    """Block all socket connections to prevent accidental API calls."""
    raise NetworkBlockedError(
        "Network access is blocked in unit tests. "
        "If you need to test network functionality, use mocks. "
        "This prevents accidental OpenAI/Anthropic/Gemini API calls that cost money."
    )


@pytest.fixture(autouse=True)
def block_network():
    """
    Automatically block all network connections in tests.

    Every model call in the suite goes through a scripted fake LLMClient.
    If a test needs real network calls (integration tests), it should be
    marked with @pytest.mark.integration and run separately.
    """
    with patch.object(socket.socket, 'connect', _block_socket_connect):
        with patch.object(socket, 'create_connection', _block_socket_connect):
            yield


@pytest.fixture
def store():
    """A fresh in-memory story store."""
    return InMemoryStoryStore()


@pytest.fixture
def studio():
    """A scripted studio that answers every pipeline stage."""
    return StudioScript()


@pytest.fixture
def studio_gateway(studio):
    """A gateway whose only backend is the scripted studio."""
    gateway, _, _ = make_gateway(studio)
    return gateway


@pytest.fixture
def story_bible():
    """A persisted-looking story bible for the retired detective series."""
    return StoryContext.model_validate({
        "owner_id": "user-1",
        "premise": "A retired detective takes one last case",
        **story_bible_payload(),
    })
