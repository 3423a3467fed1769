"""
Kube Actuator - K8s Executor Test Fixtures
"""

import os
import sys

import pytest

# Add the service root and this directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.dirname(__file__))

from k8s_objects import make_action_item, make_pod


@pytest.fixture
def pod():
    return make_pod()


@pytest.fixture
def action_item():
    return make_action_item()
